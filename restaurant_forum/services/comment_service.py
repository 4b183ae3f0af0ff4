import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models import Comment, Restaurant

logger = logging.getLogger(__name__)


async def post_comment(db: AsyncSession, user_id: int, restaurant_id: int, text: str) -> Comment:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required!")
    if await db.get(Restaurant, restaurant_id) is None:
        raise NotFoundError("Restaurant didn't exist!")

    comment = Comment(user_id=user_id, restaurant_id=restaurant_id, text=text)
    db.add(comment)
    await db.commit()
    return comment


async def delete_comment(db: AsyncSession, comment_id: int) -> int:
    """Delete a comment and return the id of its restaurant."""
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError("Comment didn't exist!")
    restaurant_id = comment.restaurant_id
    await db.delete(comment)
    await db.commit()
    logger.info({"event": "delete_comment", "comment_id": comment_id})
    return restaurant_id
