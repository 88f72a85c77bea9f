"""
Tweetheart — Discovery feed.

Candidates are filtered in SQL (self, inactive, already swiped, age window)
and then by great-circle distance from the caller.  Distance is computed in
Python so the query stays portable; the candidate set is bounded by the age
window and the caller's swipe history.

Candidates are ordered by ``(distance, id)``.  Every page carries a
``next_cursor`` naming its last card; passing it back resumes strictly
after that card, whatever the caller swiped in between.
"""

from __future__ import annotations

import math
import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.like import Like
from app.models.user import User
from app.services.errors import ValidationError
from app.services.photo_service import PhotoService
from app.services.user_service import load_user
from app.utils.dates import birthdate_bounds, calculate_age

logger = structlog.get_logger("tweetheart.feed_service")

EARTH_RADIUS_KM = 6371.0
MIN_AGE = 18
MAX_AGE = 99

_CURSOR_SEP = "~"

SortKey = tuple[float, str]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def normalize_age_range(min_age: int | None, max_age: int | None) -> tuple[int, int]:
    """Clamp to [18, 99] and swap inverted bounds."""
    low = MIN_AGE if min_age is None else max(MIN_AGE, min(MAX_AGE, min_age))
    high = MAX_AGE if max_age is None else max(MIN_AGE, min(MAX_AGE, max_age))
    if low > high:
        low, high = high, low
    return low, high


def encode_cursor(key: SortKey) -> str:
    distance, user_id = key
    # repr() round-trips floats exactly, and "inf" for candidates without a location.
    return f"{distance!r}{_CURSOR_SEP}{user_id}"


def decode_cursor(cursor: str) -> SortKey:
    distance, sep, user_id = cursor.partition(_CURSOR_SEP)
    try:
        if not sep:
            raise ValueError(cursor)
        return float(distance), str(uuid.UUID(user_id))
    except ValueError:
        raise ValidationError("Invalid feed cursor") from None


class FeedService:

    def __init__(self, photos: PhotoService | None = None) -> None:
        self.photos = photos or PhotoService()
        self.settings = get_settings()

    async def feed(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        page: int = 1,
        limit: int | None = None,
        min_age: int | None = None,
        max_age: int | None = None,
        distance_km: float | None = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        """One page of swipe candidates for ``user_id``.

        ``distance_km`` of 0 disables the distance filter; ``None`` uses
        ``FEED_DEFAULT_DISTANCE_KM``.  With a ``cursor`` the page starts
        after the card it names and ``page`` is only echoed back.
        """
        page = max(1, page)
        limit = limit or self.settings.FEED_PAGE_SIZE
        if distance_km is None:
            distance_km = float(self.settings.FEED_DEFAULT_DISTANCE_KM)
        low, high = normalize_age_range(min_age, max_age)
        after = decode_cursor(cursor) if cursor else None

        log = logger.bind(user_id=str(user_id), page=page, limit=limit)
        log.info("feed_start", min_age=low, max_age=high, distance_km=distance_km, cursor=cursor)

        me = await load_user(db, user_id)
        if not me.has_location:
            raise ValidationError("location_required")

        swiped = select(Like.liked_id).where(Like.liker_id == user_id)
        earliest, latest = birthdate_bounds(low, high)

        stmt = select(User).where(
            User.id != user_id,
            User.is_active.is_(True),
            User.id.not_in(swiped),
            User.birthdate.is_not(None),
            User.birthdate >= earliest,
            User.birthdate <= latest,
        )
        candidates = (await db.execute(stmt)).scalars().all()

        ranked: list[tuple[SortKey, float | None, User]] = []
        for user in candidates:
            distance = None
            if user.has_location:
                distance = haversine_km(me.latitude, me.longitude, user.latitude, user.longitude)
            if distance_km > 0 and (distance is None or distance > distance_km):
                continue
            key = (math.inf if distance is None else distance, str(user.id))
            ranked.append((key, distance, user))

        ranked.sort(key=lambda item: item[0])

        total = len(ranked)
        if after is not None:
            remaining = [item for item in ranked if item[0] > after]
        else:
            remaining = ranked[(page - 1) * limit:]
        window = remaining[:limit]
        has_more = len(remaining) > limit

        users = [
            {
                "id": user.id,
                "name": user.full_name,
                "age": calculate_age(user.birthdate),
                "bio": user.bio,
                "gender": user.gender,
                "photos": self.photos.urls_for(user.photos),
                "distance": round(distance, 1) if distance is not None else None,
            }
            for _, distance, user in window
        ]

        log.info("feed_complete", returned=len(users), total=total, has_more=has_more)
        return {
            "users": users,
            "pagination": {
                "current_page": page,
                "has_more": has_more,
                "total_users": total,
                "next_cursor": encode_cursor(window[-1][0]) if window else cursor,
            },
        }
