"""Favorites and likes: one row per (user, restaurant)."""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ConflictError, NotFoundError
from ..models import Favorite, Like, Restaurant

logger = logging.getLogger(__name__)


async def _add(db: AsyncSession, model, user_id: int, restaurant_id: int, duplicate_message: str):
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant didn't exist!")

    res = await db.execute(
        select(model).where(model.user_id == user_id,
                            model.restaurant_id == restaurant_id)
    )
    if res.scalars().first():
        raise ConflictError(duplicate_message)

    row = model(user_id=user_id, restaurant_id=restaurant_id)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same pair
        await db.rollback()
        raise ConflictError(duplicate_message)
    logger.info({"event": f"add_{model.__tablename__}",
                "user_id": user_id, "restaurant_id": restaurant_id})
    return row


async def _remove(db: AsyncSession, model, user_id: int, restaurant_id: int, missing_message: str) -> None:
    res = await db.execute(
        select(model).where(model.user_id == user_id,
                            model.restaurant_id == restaurant_id)
    )
    row = res.scalars().first()
    if row is None:
        raise NotFoundError(missing_message)
    await db.delete(row)
    await db.commit()


async def add_favorite(db: AsyncSession, user_id: int, restaurant_id: int) -> Favorite:
    return await _add(db, Favorite, user_id, restaurant_id, "You have favorited this restaurant!")


async def remove_favorite(db: AsyncSession, user_id: int, restaurant_id: int) -> None:
    await _remove(db, Favorite, user_id, restaurant_id, "You haven't favorited this restaurant")


async def add_like(db: AsyncSession, user_id: int, restaurant_id: int) -> Like:
    return await _add(db, Like, user_id, restaurant_id, "You have liked this restaurant!")


async def remove_like(db: AsyncSession, user_id: int, restaurant_id: int) -> None:
    await _remove(db, Like, user_id, restaurant_id, "You haven't liked this restaurant")
