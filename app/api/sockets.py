"""
Tweetheart — Socket.IO handlers

Connections are authenticated with the same signed session token as the
HTTP API, taken from the ``Cookie`` header or the ``auth.token`` handshake
field.  The verified user id is kept in the socket session and every
handler acts as that user; ids sent by the client are never trusted.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from socketio.exceptions import ConnectionRefusedError

from app.api.services import get_chat_service
from app.auth import decode_token, token_from_cookie_header
from app.database import async_session_factory
from app.realtime import chat_room, sio, user_room
from app.services.errors import AuthenticationError, ServiceError

logger = structlog.get_logger("tweetheart.sockets")


def _token_from_handshake(environ: dict, auth: Optional[dict]) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        return str(auth["token"])
    cookie_header = environ.get("HTTP_COOKIE", "")
    return token_from_cookie_header(cookie_header) if cookie_header else None


async def _session_user(sid: str) -> uuid.UUID:
    session = await sio.get_session(sid)
    return uuid.UUID(session["user_id"])


@sio.event
async def connect(sid: str, environ: dict, auth: Optional[dict] = None) -> None:
    token = _token_from_handshake(environ, auth)
    if not token:
        logger.warning("socket_refused", sid=sid, reason="missing_token")
        raise ConnectionRefusedError("authentication required")
    try:
        user_id = decode_token(token)
    except AuthenticationError:
        logger.warning("socket_refused", sid=sid, reason="invalid_token")
        raise ConnectionRefusedError("invalid session") from None

    await sio.save_session(sid, {"user_id": str(user_id)})
    await sio.enter_room(sid, user_room(user_id))
    logger.info("socket_connected", sid=sid, user_id=str(user_id))


@sio.event
async def disconnect(sid: str, *args: Any) -> None:
    logger.info("socket_disconnected", sid=sid)


@sio.on("join_user_room")
async def join_user_room(sid: str, data: Any = None) -> dict:
    """Re-join the caller's own room (after a reconnect)."""
    user_id = await _session_user(sid)
    requested = data.get("userId") if isinstance(data, dict) else data
    if requested and str(requested) != str(user_id):
        logger.warning("join_user_room_rejected", sid=sid, requested=str(requested))
        return {"ok": False, "error": "Cannot join another user's room"}
    await sio.enter_room(sid, user_room(user_id))
    return {"ok": True, "room": user_room(user_id)}


@sio.on("join_chat")
async def join_chat(sid: str, data: Any) -> dict:
    user_id = await _session_user(sid)
    raw_ref = data.get("chatId") if isinstance(data, dict) else data
    try:
        async with async_session_factory() as db:
            chat_id = await get_chat_service().resolve_for_participant(db, user_id, str(raw_ref or ""))
    except ServiceError as exc:
        logger.warning("join_chat_rejected", sid=sid, ref=raw_ref, error=exc.detail)
        return {"ok": False, "error": exc.detail}

    await sio.enter_room(sid, chat_room(chat_id))
    logger.info("join_chat", sid=sid, chat_id=chat_id)
    return {"ok": True, "chat_id": chat_id}


@sio.on("leave_chat")
async def leave_chat(sid: str, data: Any) -> None:
    chat_id = data.get("chatId") if isinstance(data, dict) else data
    if chat_id:
        await sio.leave_room(sid, chat_room(str(chat_id)))


@sio.on("send_message")
async def send_message(sid: str, data: Any) -> Optional[dict]:
    """Same workflow as ``POST /api/chats/{ref}/messages``.

    Failures are reported to the sender as an ``error`` event.
    """
    user_id = await _session_user(sid)
    payload = data if isinstance(data, dict) else {}
    raw_ref = str(payload.get("chatId") or "")
    content = str(payload.get("message") or "")

    try:
        async with async_session_factory() as db:
            result = await get_chat_service().send_message(db, user_id, raw_ref, content)
    except ServiceError as exc:
        logger.warning("socket_send_message_failed", sid=sid, ref=raw_ref, error=exc.detail)
        await sio.emit("error", {"message": exc.detail, "chatId": raw_ref}, to=sid)
        return None

    if result["is_new_chat"]:
        await sio.enter_room(sid, chat_room(result["chat_id"]))
    return result
