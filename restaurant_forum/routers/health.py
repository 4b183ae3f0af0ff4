import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health check: database unreachable")
        return JSONResponse(
            {"status": "degraded", "app": settings.app_name, "database": "down"},
            status_code=503,
        )
    return {"status": "ok", "app": settings.app_name, "database": "up"}
