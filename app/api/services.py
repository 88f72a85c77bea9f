"""
Tweetheart — Service singletons shared by the HTTP routers and the
Socket.IO handlers.

All services share one ``EventPublisher`` so every emit goes through the
same Socket.IO server.  ``configure`` swaps the publisher or the object
storage backend (used by the test-suite).
"""

from __future__ import annotations

from typing import Any

from app.realtime import EventPublisher
from app.services.chat_service import ChatService
from app.services.feed_service import FeedService
from app.services.like_service import LikeService
from app.services.notification_service import NotificationService
from app.services.photo_service import PhotoService

_events: EventPublisher | None = None
_storage: Any | None = None

_photo_service: PhotoService | None = None
_notification_service: NotificationService | None = None
_like_service: LikeService | None = None
_chat_service: ChatService | None = None
_feed_service: FeedService | None = None


def configure(events: EventPublisher | None = None, storage: Any | None = None) -> None:
    """Reset every singleton, optionally with a custom publisher/storage."""
    global _events, _storage
    global _photo_service, _notification_service, _like_service, _chat_service, _feed_service
    _events = events
    _storage = storage
    _photo_service = None
    _notification_service = None
    _like_service = None
    _chat_service = None
    _feed_service = None


def get_events() -> EventPublisher:
    global _events
    if _events is None:
        _events = EventPublisher()
    return _events


def get_photo_service() -> PhotoService:
    global _photo_service
    if _photo_service is None:
        _photo_service = PhotoService(storage=_storage)
    return _photo_service


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService(get_events())
    return _notification_service


def get_like_service() -> LikeService:
    global _like_service
    if _like_service is None:
        _like_service = LikeService(
            get_events(), get_notification_service(), get_photo_service()
        )
    return _like_service


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(
            get_events(), get_notification_service(), get_photo_service()
        )
    return _chat_service


def get_feed_service() -> FeedService:
    global _feed_service
    if _feed_service is None:
        _feed_service = FeedService(get_photo_service())
    return _feed_service
