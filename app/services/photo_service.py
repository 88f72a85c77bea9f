"""
Tweetheart — Profile photo management.

Photos are stored in GCS under ``photos/{user_id}/{uuid}.jpg`` after being
center-cropped to a square JPEG.  The ``users.photos`` column keeps only
``{key, order, uploaded_at}``; signed GET URLs are generated on every read
and expire after ``PHOTO_URL_EXPIRY_SECONDS``.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.user import User
from app.services.errors import NotFoundError, PayloadTooLargeError, ValidationError
from app.utils import storage as gcs_storage
from app.utils.images import InvalidImageError, square_jpeg

logger = structlog.get_logger("tweetheart.photo_service")


def ordered_photos(photos: list[dict] | None) -> list[dict]:
    return sorted(photos or [], key=lambda p: p.get("order", 0))


class PhotoService:
    """Upload, list and delete user photos.

    ``storage`` defaults to :mod:`app.utils.storage`; tests inject a mock
    exposing ``upload_file``, ``generate_signed_url`` and ``delete_file``.
    """

    def __init__(self, storage: Any | None = None) -> None:
        self.storage = storage or gcs_storage
        self.settings = get_settings()

    # ── Read helpers ──────────────────────────────────────────────────────

    def signed_url(self, key: str) -> str | None:
        try:
            return self.storage.generate_signed_url(
                key, self.settings.PHOTO_URL_EXPIRY_SECONDS
            )
        except Exception:
            logger.warning("signed_url_failed", key=key)
            return None

    def urls_for(self, photos: list[dict] | None) -> list[str]:
        """Signed URLs in display order; keys that fail to sign are skipped."""
        urls = (self.signed_url(p["key"]) for p in ordered_photos(photos) if p.get("key"))
        return [u for u in urls if u]

    def photo_items(self, photos: list[dict] | None) -> list[dict]:
        return [
            {"key": p["key"], "order": p.get("order", i + 1), "url": self.signed_url(p["key"])}
            for i, p in enumerate(ordered_photos(photos))
            if p.get("key")
        ]

    # ── Mutations ─────────────────────────────────────────────────────────

    async def upload(
        self,
        user: User,
        file_bytes: bytes,
        content_type: str | None,
        db: AsyncSession,
    ) -> dict:
        """Validate, resize and store one photo; append it to ``user.photos``."""
        log = logger.bind(user_id=str(user.id), size=len(file_bytes))
        log.info("photo_upload_start")

        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("Only image files are allowed")
        if len(file_bytes) > self.settings.MAX_PHOTO_BYTES:
            raise PayloadTooLargeError("Photo exceeds the maximum upload size")

        photos = ordered_photos(user.photos)
        if len(photos) >= self.settings.MAX_PHOTOS_PER_USER:
            raise ValidationError(
                f"Maximum {self.settings.MAX_PHOTOS_PER_USER} photos allowed. "
                "Please delete a photo first."
            )

        try:
            resized = await asyncio.to_thread(
                square_jpeg,
                file_bytes,
                self.settings.PHOTO_SIZE_PX,
                self.settings.PHOTO_JPEG_QUALITY,
            )
        except InvalidImageError as exc:
            raise ValidationError(str(exc)) from exc

        key = f"photos/{user.id}/{uuid.uuid4().hex}.jpg"
        await asyncio.to_thread(self.storage.upload_file, key, resized, "image/jpeg")

        entry = {
            "key": key,
            "order": len(photos) + 1,
            "uploaded_at": datetime.now(timezone.utc).isoformat(),
        }
        # Assign a new list so SQLAlchemy detects the JSON change.
        user.photos = photos + [entry]
        await db.flush()

        log.info("photo_upload_complete", key=key, total_photos=len(user.photos))
        return {
            "key": key,
            "order": entry["order"],
            "url": self.signed_url(key),
            "total_photos": len(user.photos),
        }

    async def upload_many(
        self,
        user: User,
        files: list[tuple[bytes, str | None]],
        db: AsyncSession,
    ) -> list[dict]:
        """Store several photos in one request, in the order given.

        Type, size and the per-user limit are checked for every file before
        the first one is stored.
        """
        if not files:
            raise ValidationError("No files provided")

        existing = len(ordered_photos(user.photos))
        limit = self.settings.MAX_PHOTOS_PER_USER
        if existing + len(files) > limit:
            raise ValidationError(
                f"Maximum {limit} photos allowed. "
                f"You can add {max(0, limit - existing)} more."
            )
        for file_bytes, content_type in files:
            if not content_type or not content_type.startswith("image/"):
                raise ValidationError("Only image files are allowed")
            if len(file_bytes) > self.settings.MAX_PHOTO_BYTES:
                raise PayloadTooLargeError("Photo exceeds the maximum upload size")

        uploaded = [
            await self.upload(user, file_bytes, content_type, db)
            for file_bytes, content_type in files
        ]
        logger.info("photo_upload_many_complete", user_id=str(user.id), count=len(uploaded))
        return uploaded

    async def delete(self, user: User, key: str, db: AsyncSession) -> int:
        """Remove ``key`` from the user's photos and renumber the rest."""
        log = logger.bind(user_id=str(user.id), key=key)
        photos = ordered_photos(user.photos)
        remaining = [dict(p) for p in photos if p.get("key") != key]

        if len(remaining) == len(photos):
            raise NotFoundError("Photo not found")

        for index, photo in enumerate(remaining, start=1):
            photo["order"] = index

        try:
            await asyncio.to_thread(self.storage.delete_file, key)
        except Exception:
            # The database is the source of truth; an orphaned blob is tolerable.
            log.warning("photo_blob_delete_failed")

        user.photos = remaining
        await db.flush()
        log.info("photo_deleted", remaining=len(remaining))
        return len(remaining)
