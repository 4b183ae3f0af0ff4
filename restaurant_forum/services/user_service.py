from __future__ import annotations

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..models import Comment, Followship, User
from ..schemas import CommentSummary, ProfilePage, TopUser, UserProfile
from .storage_service import storage_service

logger = logging.getLogger(__name__)


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User didn't exist!")
    return user


async def latest_comments_per_restaurant(db: AsyncSession, user_id: int) -> list[Comment]:
    """Most recent comment of `user_id` for each restaurant they commented on.

    MAX(created_at) per restaurant is joined back to the comment rows; a
    timestamp tie is settled by the highest comment id, so exactly one row
    comes back per restaurant.
    """
    latest = (
        select(
            Comment.restaurant_id.label("restaurant_id"),
            func.max(Comment.created_at).label("latest_at"),
        )
        .where(Comment.user_id == user_id)
        .group_by(Comment.restaurant_id)
        .subquery()
    )
    latest_ids = (
        select(func.max(Comment.id))
        .join(
            latest,
            and_(
                Comment.restaurant_id == latest.c.restaurant_id,
                Comment.created_at == latest.c.latest_at,
            ),
        )
        .where(Comment.user_id == user_id)
        .group_by(Comment.restaurant_id)
    )
    res = await db.execute(
        select(Comment)
        .options(selectinload(Comment.restaurant), selectinload(Comment.user))
        .where(Comment.id.in_(latest_ids))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return list(res.scalars().all())


async def get_profile(db: AsyncSession, user_id: int, viewer_id: int) -> ProfilePage:
    res = await db.execute(
        select(User)
        .options(
            selectinload(User.favorited_restaurants),
            selectinload(User.followers),
            selectinload(User.followings),
        )
        .where(User.id == user_id)
    )
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User didn't exist!")

    filtered = await latest_comments_per_restaurant(db, user_id)
    comment_counts = await db.scalar(
        select(func.count(Comment.id)).where(Comment.user_id == user_id)
    )

    profile = UserProfile.model_validate(user)
    profile.is_self = user.id == viewer_id
    return ProfilePage(
        user=profile,
        filtered_comments=[CommentSummary.model_validate(c) for c in filtered],
        comment_counts=comment_counts or 0,
    )


async def get_editable_user(db: AsyncSession, user_id: int, requester_id: int) -> User:
    user = await _get_user_or_404(db, user_id)
    if user.id != requester_id:
        raise AuthorizationError("Can't edit others!")
    return user


async def update_profile(
    db: AsyncSession,
    user_id: int,
    requester_id: int,
    name: Optional[str],
    file: Optional[UploadFile] = None,
) -> User:
    """Update name and, only when a file was uploaded, the profile image."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name can't be empty!")
    if user_id != requester_id:
        raise AuthorizationError("Can't edit others!")
    user = await _get_user_or_404(db, user_id)

    image_url = await storage_service.upload_image(file, prefix="avatars")
    user.name = name
    if image_url:
        user.image = image_url
    await db.commit()
    await db.refresh(user)
    return user


async def get_top_users(db: AsyncSession, viewer_id: int) -> list[TopUser]:
    """All users with follower counts, most followed first."""
    res = await db.execute(select(User).options(selectinload(User.followers)))
    users = res.scalars().all()

    following_res = await db.execute(
        select(Followship.following_id).where(
            Followship.follower_id == viewer_id)
    )
    following_ids = set(following_res.scalars().all())

    items = [
        TopUser(
            id=u.id,
            name=u.name,
            image=u.image,
            follower_count=len(u.followers),
            is_followed=u.id in following_ids,
        )
        for u in users
    ]
    # sorted() is stable; equal counts keep query order
    return sorted(items, key=lambda item: item.follower_count, reverse=True)


async def add_following(db: AsyncSession, follower_id: int, user_id: int) -> Followship:
    if user_id == follower_id:
        raise ValidationError("You can't follow yourself!")
    await _get_user_or_404(db, user_id)

    res = await db.execute(
        select(Followship).where(
            Followship.follower_id == follower_id,
            Followship.following_id == user_id,
        )
    )
    if res.scalars().first():
        raise ConflictError("You are already following this user!")

    followship = Followship(follower_id=follower_id, following_id=user_id)
    db.add(followship)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("You are already following this user!")
    logger.info({"event": "follow", "follower_id": follower_id,
                "following_id": user_id})
    return followship


async def remove_following(db: AsyncSession, follower_id: int, user_id: int) -> None:
    res = await db.execute(
        select(Followship).where(
            Followship.follower_id == follower_id,
            Followship.following_id == user_id,
        )
    )
    followship = res.scalars().first()
    if followship is None:
        raise NotFoundError("You haven't followed this user!")
    await db.delete(followship)
    await db.commit()
