"""
Tweetheart — Shared user lookups and profile snapshots.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.errors import NotFoundError
from app.services.photo_service import PhotoService
from app.utils.dates import calculate_age


async def load_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    """Fetch an active user or raise ``NotFoundError``."""
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


async def load_users(db: AsyncSession, user_ids: set[uuid.UUID]) -> dict[uuid.UUID, User]:
    if not user_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in result.scalars().all()}


def snapshot(user: User, photos: PhotoService) -> dict:
    """Denormalized counterpart profile embedded in chat payloads."""
    return {
        "id": str(user.id),
        "name": user.full_name,
        "age": calculate_age(user.birthdate),
        "gender": user.gender,
        "bio": user.bio,
        "photos": photos.urls_for(user.photos),
    }
