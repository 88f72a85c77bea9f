"""
Tweetheart — Chats API

``{chat_ref}`` path segments accept both persisted chat ids
(``chat_<ms>_<hex>``) and preparation keys (``<uuid>_<uuid>``); see
``app.services.chat_refs``.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.services import get_chat_service
from app.auth import get_current_user_id
from app.database import get_db
from app.schemas.chat import (
    ChatCreate,
    ChatSummary,
    MarkReadResponse,
    MessageCreate,
    MessageOut,
    SendMessageResponse,
)

logger = structlog.get_logger("tweetheart.api.chats")

router = APIRouter()


@router.get("", response_model=list[ChatSummary], summary="List my chats")
async def list_chats(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_chat_service().list_chats(db, user_id)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Start a chat with a match")
async def create_chat(
    payload: ChatCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    chat, created = await get_chat_service().start_chat(db, user_id, payload.match_id)
    return {"chat_id": chat.id, "is_new_chat": created}


# ──────────────────────────────────────────────────────────────────────────────
# Messages
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{chat_ref}/messages", response_model=list[MessageOut], summary="List messages")
async def list_messages(
    chat_ref: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await get_chat_service().get_messages(db, user_id, chat_ref)


@router.post(
    "/{chat_ref}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    chat_ref: str,
    payload: MessageCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Send a message; a preparation key is promoted to a persisted chat on
    the first message."""
    return await get_chat_service().send_message(db, user_id, chat_ref, payload.message)


@router.put("/{chat_ref}/read", response_model=MarkReadResponse, summary="Mark messages read")
async def mark_read(
    chat_ref: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MarkReadResponse:
    chat_id, message_ids = await get_chat_service().mark_read(db, user_id, chat_ref)
    return MarkReadResponse(chat_id=chat_id or chat_ref, message_ids=message_ids)


@router.delete("/{chat_id}", summary="Delete a chat")
async def delete_chat(
    chat_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await get_chat_service().delete_chat(db, user_id, chat_id)
    return {"success": True}
