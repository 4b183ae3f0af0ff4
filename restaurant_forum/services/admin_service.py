from __future__ import annotations

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..models import Category, Restaurant, User
from ..schemas import AdminUserRow, RestaurantForm
from .storage_service import storage_service

logger = logging.getLogger(__name__)


# Restaurants

async def list_restaurants(db: AsyncSession) -> list[Restaurant]:
    res = await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.category))
        .order_by(Restaurant.id)
    )
    return list(res.scalars().all())


async def get_restaurant(db: AsyncSession, restaurant_id: int) -> Restaurant:
    res = await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.category))
        .where(Restaurant.id == restaurant_id)
    )
    restaurant = res.scalar_one_or_none()
    if restaurant is None:
        raise NotFoundError("Restaurant didn't exist!")
    return restaurant


async def _check_form(db: AsyncSession, form: RestaurantForm) -> None:
    if not form.name.strip():
        raise ValidationError("Restaurant name is required!")
    if form.category_id is not None and await db.get(Category, form.category_id) is None:
        raise NotFoundError("Category didn't exist!")


async def create_restaurant(db: AsyncSession, form: RestaurantForm, file: Optional[UploadFile] = None) -> Restaurant:
    await _check_form(db, form)
    image_url = await storage_service.upload_image(file, prefix="restaurants")
    restaurant = Restaurant(
        **form.model_dump(exclude={"name"}),
        name=form.name.strip(),
        image=image_url,
        view_count=0,
    )
    db.add(restaurant)
    await db.commit()
    logger.info({"event": "create_restaurant", "restaurant_id": restaurant.id})
    return restaurant


async def update_restaurant(
    db: AsyncSession,
    restaurant_id: int,
    form: RestaurantForm,
    file: Optional[UploadFile] = None,
) -> Restaurant:
    await _check_form(db, form)
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant didn't exist!")

    image_url = await storage_service.upload_image(file, prefix="restaurants")
    for field, value in form.model_dump(exclude={"name"}).items():
        setattr(restaurant, field, value)
    restaurant.name = form.name.strip()
    if image_url:
        restaurant.image = image_url
    await db.commit()
    return restaurant


async def delete_restaurant(db: AsyncSession, restaurant_id: int) -> None:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant didn't exist!")
    await db.delete(restaurant)
    await db.commit()
    logger.info({"event": "delete_restaurant", "restaurant_id": restaurant_id})


# Categories

async def list_categories(db: AsyncSession) -> list[Category]:
    res = await db.execute(select(Category).order_by(Category.id))
    return list(res.scalars().all())


async def get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category didn't exist!")
    return category


async def _save_category(db: AsyncSession, category: Category) -> Category:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Category already exists!")
    return category


async def create_category(db: AsyncSession, name: Optional[str]) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required!")
    category = Category(name=name)
    db.add(category)
    return await _save_category(db, category)


async def rename_category(db: AsyncSession, category_id: int, name: Optional[str]) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required!")
    category = await get_category(db, category_id)
    category.name = name
    return await _save_category(db, category)


async def delete_category(db: AsyncSession, category_id: int) -> None:
    """Delete a category; its restaurants become uncategorized."""
    category = await get_category(db, category_id)
    await db.execute(
        update(Restaurant)
        .where(Restaurant.category_id == category_id)
        .values(category_id=None)
    )
    await db.delete(category)
    await db.commit()


# Users

async def list_users(db: AsyncSession) -> list[AdminUserRow]:
    res = await db.execute(select(User).order_by(User.id))
    return [AdminUserRow.model_validate(u) for u in res.scalars().all()]


async def toggle_admin(db: AsyncSession, user_id: int, requester_id: int) -> User:
    if user_id == requester_id:
        raise AuthorizationError("You can't change your own role!")
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User didn't exist!")
    user.is_admin = not user.is_admin
    await db.commit()
    logger.info({"event": "toggle_admin", "user_id": user_id,
                "is_admin": user.is_admin})
    return user
