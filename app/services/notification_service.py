"""
Tweetheart — Notifications

Notifications are soft state: they are created by the like evaluator and
the chat workflow, flipped by read/dismiss actions, and never deleted.
Every creation is pushed to the owner's room as ``new_notification``.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import NOTIFICATION_TYPES, Notification
from app.realtime import NEW_NOTIFICATION, EventPublisher
from app.services.errors import NotFoundError, ValidationError
from app.utils.dates import as_utc

logger = structlog.get_logger("tweetheart.notification_service")

_LIST_LIMIT = 50


def serialize(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": str(notification.user_id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "is_read": notification.is_read,
        "is_dismissed": notification.is_dismissed,
        "created_at": as_utc(notification.created_at).isoformat(),
    }


class NotificationService:

    def __init__(self, events: EventPublisher | None = None) -> None:
        self.events = events or EventPublisher()

    async def create(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        type_: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Insert a notification row.  The caller commits and then calls
        :meth:`push` so the event never references uncommitted state."""
        if type_ not in NOTIFICATION_TYPES:
            raise ValidationError(f"Unknown notification type {type_!r}")

        notification = Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            data=data,
        )
        db.add(notification)
        await db.flush()
        logger.info(
            "notification_created",
            notification_id=notification.id,
            user_id=str(user_id),
            type=type_,
        )
        return notification

    async def push(self, notification: Notification) -> None:
        await self.events.to_user(
            notification.user_id, NEW_NOTIFICATION, serialize(notification)
        )

    async def list_for_user(self, db: AsyncSession, user_id: uuid.UUID) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id, Notification.is_dismissed.is_(False))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(_LIST_LIMIT)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def unread_count(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
            Notification.is_dismissed.is_(False),
        )
        return int((await db.execute(stmt)).scalar_one())

    async def _owned(self, db: AsyncSession, user_id: uuid.UUID, notification_id: int) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found.")
        return notification

    async def mark_read(self, db: AsyncSession, user_id: uuid.UUID, notification_id: int) -> Notification:
        notification = await self._owned(db, user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            await db.flush()
        return notification

    async def dismiss(self, db: AsyncSession, user_id: uuid.UUID, notification_id: int) -> Notification:
        notification = await self._owned(db, user_id, notification_id)
        if not notification.is_dismissed:
            notification.is_dismissed = True
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0
