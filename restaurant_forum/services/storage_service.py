"""
Image uploads for avatars and restaurant photos.

Files are validated here and handed to one of two stores: the local media
directory (served by the app under /media) or an S3 bucket.
"""
import io
import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import boto3
from botocore.exceptions import ClientError
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from ..config import settings
from ..exceptions import CorruptedImageError, ImageTooLargeError, UnsupportedImageFormatError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
PILLOW_FORMATS = {"JPEG", "PNG", "GIF", "WEBP"}


def _verify_image(content: bytes) -> None:
    """Decode the upload with Pillow; the declared content type is not trusted."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise CorruptedImageError()
    if image_format not in PILLOW_FORMATS:
        raise UnsupportedImageFormatError()


class LocalImageStore:
    def __init__(self, media_dir: str, base_url: str):
        self.media_dir = Path(media_dir)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    async def save(self, filename: str, content: bytes, content_type: str) -> str:
        async with aiofiles.open(self.media_dir / filename, "wb") as f:
            await f.write(content)
        return f"{self.base_url}/media/{filename}"


class S3ImageStore:
    def __init__(self, bucket: str):
        self.client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
        )
        self.bucket = bucket
        self.public_base_url = (
            settings.s3_public_base_url
            or f"https://{bucket}.s3.{settings.s3_region}.amazonaws.com"
        )

    async def save(self, filename: str, content: bytes, content_type: str) -> str:
        # Objects are grouped by prefix: avatars/avatars_<uuid>.png
        key = f"{filename.split('_', 1)[0]}/{filename}"
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                ACL="public-read",
            )
        except ClientError as e:
            logger.error({"event": "s3_upload_failed", "key": key, "error": str(e)})
            raise
        return f"{self.public_base_url}/{key}"


class StorageService:
    """Validates uploaded images and stores them in the configured backend."""

    def __init__(self):
        if settings.storage_backend == "s3":
            self.store = S3ImageStore(settings.s3_bucket)
        else:
            self.store = LocalImageStore(settings.media_dir, settings.local_base_url)

    async def upload_image(self, file: Optional[UploadFile], prefix: str) -> Optional[str]:
        """
        Store `file` and return its public URL.

        Returns None when the form carried no file. Raises
        UnsupportedImageFormatError or ImageTooLargeError for bad uploads.
        """
        if file is None or not file.filename:
            return None

        content_type = file.content_type or ""
        extension = IMAGE_EXTENSIONS.get(content_type)
        if extension is None:
            raise UnsupportedImageFormatError()

        content = await file.read()
        if not content:
            return None
        if len(content) > settings.image_max_mb * 1024 * 1024:
            raise ImageTooLargeError(settings.image_max_mb)
        _verify_image(content)

        url = await self.store.save(f"{prefix}_{uuid.uuid4().hex}.{extension}", content, content_type)
        logger.info({"event": "image_uploaded", "prefix": prefix, "bytes": len(content)})
        return url


storage_service = StorageService()
