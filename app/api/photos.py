"""
Tweetheart — Photos API

Upload, list and delete profile photos stored in GCS.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.services import get_photo_service
from app.auth import get_current_user_id
from app.database import get_db
from app.schemas.user import PhotoItem
from app.services.user_service import load_user

logger = structlog.get_logger("tweetheart.api.photos")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /upload — Upload a single photo
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/upload", status_code=status.HTTP_201_CREATED, summary="Upload a photo")
async def upload_photo(
    photo: UploadFile = File(..., description="One image file"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Resize ``photo`` to a square JPEG and append it to the caller's photos."""
    user = await load_user(db, user_id)
    file_bytes = await photo.read()
    result = await get_photo_service().upload(user, file_bytes, photo.content_type, db)
    return {"success": True, **result}


# ──────────────────────────────────────────────────────────────────────────────
# POST /upload-multiple — Upload several photos at once
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/upload-multiple", status_code=status.HTTP_201_CREATED, summary="Upload several photos")
async def upload_photos(
    photos: list[UploadFile] = File(..., description="Up to the per-user photo limit"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    user = await load_user(db, user_id)
    files = [(await photo.read(), photo.content_type) for photo in photos]
    uploaded = await get_photo_service().upload_many(user, files, db)
    return {
        "success": True,
        "photos": uploaded,
        "total_photos": len(user.photos),
    }


@router.get("", response_model=list[PhotoItem], summary="List own photos")
async def list_own_photos(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    user = await load_user(db, user_id)
    return get_photo_service().photo_items(user.photos)


@router.delete("", summary="Delete a photo")
async def delete_photo(
    key: str = Query(..., min_length=1),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    user = await load_user(db, user_id)
    remaining = await get_photo_service().delete(user, key, db)
    return {"success": True, "remaining_photos": remaining}


@router.get("/{user_id}", response_model=list[str], summary="Another user's photo URLs")
async def list_user_photos(
    user_id: uuid.UUID,
    _caller: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[str]:
    user = await load_user(db, user_id)
    return get_photo_service().urls_for(user.photos)
