"""
Tweetheart — Users API

Own profile, public profiles, location, and the swipe discovery feed.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.services import get_feed_service, get_photo_service
from app.auth import get_current_user_id
from app.database import get_db
from app.models.user import User
from app.schemas.user import (
    BasicUser,
    FeedResponse,
    LocationStatus,
    LocationUpdate,
    ProfileResponse,
    ProfileUpdate,
    PublicProfile,
)
from app.services.user_service import load_user
from app.utils.dates import calculate_age

logger = structlog.get_logger("tweetheart.api.users")

router = APIRouter()


def _profile_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        gender=user.gender,
        birthdate=user.birthdate,
        age=calculate_age(user.birthdate),
        bio=user.bio,
        photos=get_photo_service().photo_items(user.photos),
        has_location=user.has_location,
        created_at=user.created_at,
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /user-profile — Own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/user-profile", response_model=ProfileResponse, summary="Get own profile")
async def get_own_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    user = await load_user(db, user_id)
    return _profile_response(user)


# ──────────────────────────────────────────────────────────────────────────────
# PUT /user-profile — Update own profile
# ──────────────────────────────────────────────────────────────────────────────

@router.put("/user-profile", response_model=ProfileResponse, summary="Update own profile")
async def update_own_profile(
    payload: ProfileUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Update mutable profile fields.

    Only fields present in the request body are applied.
    """
    log = logger.bind(user_id=str(user_id))
    log.info("update_profile_start")

    user = await load_user(db, user_id)
    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(user, field, value)

    await db.flush()
    log.info("update_profile_complete", updated_fields=list(update_data.keys()))
    return _profile_response(user)


# ──────────────────────────────────────────────────────────────────────────────
# GET /user-profile/{user_id} — Public profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/user-profile/{user_id}",
    response_model=PublicProfile,
    summary="Get another user's public profile",
)
async def get_public_profile(
    user_id: uuid.UUID,
    _caller: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PublicProfile:
    user = await load_user(db, user_id)
    return PublicProfile(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        gender=user.gender,
        birthdate=user.birthdate,
        age=calculate_age(user.birthdate),
        bio=user.bio,
        photos=get_photo_service().urls_for(user.photos),
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /users/feed — Discovery feed
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/users/feed", response_model=FeedResponse, summary="Swipe candidates")
async def discovery_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    min_age: Optional[int] = Query(None, alias="minAge"),
    max_age: Optional[int] = Query(None, alias="maxAge"),
    distance: Optional[float] = Query(None, ge=0, description="Radius in km; 0 disables"),
    cursor: Optional[str] = Query(None, description="next_cursor of the previous page"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await get_feed_service().feed(
        db,
        user_id,
        page=page,
        limit=limit,
        min_age=min_age,
        max_age=max_age,
        distance_km=distance,
        cursor=cursor,
    )


# ──────────────────────────────────────────────────────────────────────────────
# PUT /users/location — Store the caller's coordinates
# ──────────────────────────────────────────────────────────────────────────────

@router.put("/users/location", response_model=LocationStatus, summary="Update location")
async def update_location(
    payload: LocationUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> LocationStatus:
    user = await load_user(db, user_id)
    user.latitude = payload.latitude
    user.longitude = payload.longitude
    await db.flush()
    logger.info("location_updated", user_id=str(user_id))
    return LocationStatus(has_location=True)


@router.get("/location-status", response_model=LocationStatus, summary="Has a location been set")
async def location_status(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> LocationStatus:
    user = await load_user(db, user_id)
    return LocationStatus(has_location=user.has_location)


@router.get("/users/{user_id}/basic", response_model=BasicUser, summary="Basic user card")
async def basic_user(
    user_id: uuid.UUID,
    _caller: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> BasicUser:
    user = await load_user(db, user_id)
    return BasicUser(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        gender=user.gender,
        birthdate=user.birthdate,
        photos=get_photo_service().urls_for(user.photos),
    )
