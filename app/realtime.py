"""
Tweetheart — Real-time fan-out

A python-socketio ``AsyncServer`` mounted next to the FastAPI app.  Every
connected socket sits in its owner's ``user_<id>`` room; chat screens also
join ``chat_<id>``.  Delivery is at-most-once: a client that is offline
when an event fires reconciles on its next fetch.

When ``REDIS_URL`` is configured the server uses Redis as its message queue
so that emits from any worker reach sockets held by any other worker.
"""

from __future__ import annotations

import uuid
from typing import Any

import socketio
import structlog

from app.config import get_settings

logger = structlog.get_logger("tweetheart.realtime")

# Server -> client event names
NEW_CHAT_CREATED = "new_chat_created"
CHAT_ACTIVATED = "chat_activated"
MATCH_PROMOTED = "match_promoted"
NEW_NOTIFICATION = "new_notification"
MESSAGES_READ = "messages_read"
NEW_MESSAGE = "new_message"
CHAT_DELETED = "chat_deleted"


def user_room(user_id: uuid.UUID | str) -> str:
    return f"user_{user_id}"


def chat_room(chat_id: str) -> str:
    return f"chat_{chat_id}"


def _build_client_manager():
    settings = get_settings()
    if not settings.REDIS_URL:
        return None
    return socketio.AsyncRedisManager(settings.REDIS_URL)


def _build_server() -> socketio.AsyncServer:
    settings = get_settings()
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.allowed_origins_list,
        client_manager=_build_client_manager(),
    )


sio = _build_server()


class EventPublisher:
    """Best-effort emitter used by the service layer.

    Emit failures are logged and swallowed: the database write that
    triggered an event has already committed and must not be reported as
    failed because a socket push did not go out.
    """

    def __init__(self, server: socketio.AsyncServer | None = None) -> None:
        self._server = server or sio

    async def to_user(self, user_id: uuid.UUID | str, event: str, payload: dict[str, Any]) -> None:
        await self._emit(event, payload, user_room(user_id))

    async def to_chat(self, chat_id: str, event: str, payload: dict[str, Any]) -> None:
        await self._emit(event, payload, chat_room(chat_id))

    async def _emit(self, event: str, payload: dict[str, Any], room: str) -> None:
        try:
            await self._server.emit(event, payload, room=room)
        except Exception:
            logger.exception("emit_failed", emitted_event=event, room=room)
            return
        logger.debug("emitted", emitted_event=event, room=room)
