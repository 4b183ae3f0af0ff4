from __future__ import annotations

import math
from typing import Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import settings
from ..exceptions import NotFoundError
from ..models import Category, Comment, Favorite, Like, Restaurant
from ..schemas import (
    CategoryResponse,
    CommentSummary,
    Feeds,
    Pagination,
    RestaurantCard,
    RestaurantDashboard,
    RestaurantDetail,
    RestaurantListPage,
    RestaurantSummary,
    TopRestaurant,
)


def _truncate(text: Optional[str], length: int) -> Optional[str]:
    if text is None or len(text) <= length:
        return text
    return text[:length] + "..."


async def _favorited_and_liked(db: AsyncSession, user_id: int) -> tuple[set[int], set[int]]:
    fav = await db.execute(select(Favorite.restaurant_id).where(Favorite.user_id == user_id))
    liked = await db.execute(select(Like.restaurant_id).where(Like.user_id == user_id))
    return set(fav.scalars().all()), set(liked.scalars().all())


def get_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = max(1, math.ceil(total / limit))
    current = min(max(1, page), total_pages)
    return Pagination(
        current=current,
        pages=list(range(1, total_pages + 1)),
        prev=current - 1 if current > 1 else 1,
        next=current + 1 if current < total_pages else total_pages,
        total=total,
    )


async def get_restaurants(
    db: AsyncSession,
    user_id: int,
    category_id: Optional[int] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> RestaurantListPage:
    limit = limit or settings.restaurants_per_page
    filters = []
    if category_id:
        filters.append(Restaurant.category_id == category_id)

    total = await db.scalar(select(func.count(Restaurant.id)).where(*filters))
    pagination = get_pagination(page, limit, total or 0)

    res = await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.category))
        .where(*filters)
        .order_by(Restaurant.id)
        .offset((pagination.current - 1) * limit)
        .limit(limit)
    )
    restaurants = res.scalars().all()
    categories = (await db.execute(select(Category).order_by(Category.id))).scalars().all()
    favorited, liked = await _favorited_and_liked(db, user_id)

    cards = []
    for r in restaurants:
        card = RestaurantCard.model_validate(r)
        card.description = _truncate(
            r.description, settings.description_preview_length)
        card.is_favorited = r.id in favorited
        card.is_liked = r.id in liked
        cards.append(card)

    return RestaurantListPage(
        restaurants=cards,
        categories=[CategoryResponse.model_validate(c) for c in categories],
        category_id=category_id,
        pagination=pagination,
    )


async def get_restaurant(db: AsyncSession, restaurant_id: int, user_id: int) -> RestaurantDetail:
    """Restaurant page; each view bumps the view counter."""
    # Incremented in SQL so concurrent views are all counted
    bumped = await db.execute(
        update(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .values(view_count=func.coalesce(Restaurant.view_count, 0) + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount == 0:
        raise NotFoundError("Restaurant didn't exist!")
    await db.commit()

    res = await db.execute(
        select(Restaurant)
        .options(
            selectinload(Restaurant.category),
            selectinload(Restaurant.comments).selectinload(Comment.user),
            selectinload(Restaurant.comments).selectinload(Comment.restaurant),
        )
        .where(Restaurant.id == restaurant_id)
        .execution_options(populate_existing=True)
    )
    restaurant = res.scalar_one()

    favorited, liked = await _favorited_and_liked(db, user_id)
    detail = RestaurantDetail.model_validate(restaurant)
    detail.comments = sorted(
        (CommentSummary.model_validate(c) for c in restaurant.comments),
        key=lambda c: (c.created_at is not None, c.created_at, c.id),
        reverse=True,
    )
    detail.is_favorited = restaurant.id in favorited
    detail.is_liked = restaurant.id in liked
    return detail


async def get_dashboard(db: AsyncSession, restaurant_id: int) -> RestaurantDashboard:
    res = await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.category))
        .where(Restaurant.id == restaurant_id)
    )
    restaurant = res.scalar_one_or_none()
    if restaurant is None:
        raise NotFoundError("Restaurant didn't exist!")

    comment_count = await db.scalar(
        select(func.count(Comment.id)).where(Comment.restaurant_id == restaurant_id))
    favorite_count = await db.scalar(
        select(func.count(Favorite.id)).where(Favorite.restaurant_id == restaurant_id))
    like_count = await db.scalar(
        select(func.count(Like.id)).where(Like.restaurant_id == restaurant_id))

    return RestaurantDashboard(
        restaurant=RestaurantSummary.model_validate(restaurant),
        category=CategoryResponse.model_validate(
            restaurant.category) if restaurant.category else None,
        comment_count=comment_count or 0,
        favorite_count=favorite_count or 0,
        like_count=like_count or 0,
        view_count=restaurant.view_count or 0,
    )


async def get_top_restaurants(db: AsyncSession, user_id: int, limit: Optional[int] = None) -> list[TopRestaurant]:
    limit = limit or settings.top_restaurants_limit
    favorite_count = func.count(Favorite.id).label("favorited_count")
    res = await db.execute(
        select(Restaurant, favorite_count)
        .outerjoin(Favorite, Favorite.restaurant_id == Restaurant.id)
        .options(selectinload(Restaurant.category))
        .group_by(Restaurant.id)
        .order_by(desc(favorite_count), Restaurant.id)
        .limit(limit)
    )
    favorited, liked = await _favorited_and_liked(db, user_id)

    items = []
    for restaurant, count in res.all():
        item = TopRestaurant.model_validate(restaurant)
        item.description = _truncate(
            restaurant.description, settings.description_preview_length)
        item.favorited_count = count
        item.is_favorited = restaurant.id in favorited
        item.is_liked = restaurant.id in liked
        items.append(item)
    return items


async def get_feeds(db: AsyncSession, limit: Optional[int] = None) -> Feeds:
    limit = limit or settings.feeds_limit
    restaurants = (await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.category))
        .order_by(Restaurant.created_at.desc(), Restaurant.id.desc())
        .limit(limit)
    )).scalars().all()
    comments = (await db.execute(
        select(Comment)
        .options(selectinload(Comment.user), selectinload(Comment.restaurant))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .limit(limit)
    )).scalars().all()
    return Feeds(
        restaurants=[RestaurantCard.model_validate(r) for r in restaurants],
        comments=[CommentSummary.model_validate(c) for c in comments],
    )
