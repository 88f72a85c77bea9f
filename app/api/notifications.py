"""
Tweetheart — Notifications API
"""

from __future__ import annotations

import hmac
import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.services import get_notification_service
from app.auth import get_current_user_id
from app.config import get_settings
from app.database import get_db
from app.models.notification import Notification
from app.schemas.notification import NotificationCreate, NotificationOut, UnreadCount
from app.services.user_service import load_user

logger = structlog.get_logger("tweetheart.api.notifications")

router = APIRouter()


def _require_internal_key(x_internal_key: Optional[str] = Header(None)) -> None:
    expected = get_settings().INTERNAL_API_KEY
    if not expected or not x_internal_key or not hmac.compare_digest(x_internal_key, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Internal key required")


@router.get("", response_model=list[NotificationOut], summary="List notifications")
async def list_notifications(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[Notification]:
    return await get_notification_service().list_for_user(db, user_id)


@router.get("/unread-count", response_model=UnreadCount, summary="Unread notification count")
async def unread_count(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> UnreadCount:
    count = await get_notification_service().unread_count(db, user_id)
    return UnreadCount(unread_count=count)


@router.put("/read-all", summary="Mark all notifications read")
async def mark_all_read(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    updated = await get_notification_service().mark_all_read(db, user_id)
    return {"success": True, "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationOut, summary="Mark read")
async def mark_read(
    notification_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Notification:
    return await get_notification_service().mark_read(db, user_id, notification_id)


@router.put("/{notification_id}/dismiss", response_model=NotificationOut, summary="Dismiss")
async def dismiss(
    notification_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Notification:
    return await get_notification_service().dismiss(db, user_id, notification_id)


# ──────────────────────────────────────────────────────────────────────────────
# POST /create — Internal: system notifications from other services
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/create",
    response_model=NotificationOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_require_internal_key)],
    summary="Create a notification (internal)",
)
async def create_notification(
    payload: NotificationCreate,
    db: AsyncSession = Depends(get_db),
) -> Notification:
    service = get_notification_service()
    await load_user(db, payload.user_id)
    notification = await service.create(
        db, payload.user_id, payload.type, payload.title, payload.message, payload.data
    )
    await db.commit()
    await service.push(notification)
    return notification
