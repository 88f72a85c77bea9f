"""
Tweetheart — Chat promotion workflow

A matched pair starts in a *preparation* chat addressed by ``<uuid>_<uuid>``;
no row exists yet.  The first message sent to that reference promotes it:

  1. ``INSERT … ON CONFLICT DO NOTHING`` on the canonical pair.  The
     ``uq_chat_pair`` constraint guarantees exactly one row per pair even
     when both users send their first message at the same moment.
  2. Read back the row (ours or the concurrent winner's).
  3. Back-fill ``chat_id`` on both mutual like rows.
  4. Insert the message, commit, then fan out.

Fan-out events (all after commit):

  * ``new_chat_created`` to both users when this call created the row, with
    ``unread_count`` 0 for the sender and the receiver's real count.
  * ``match_promoted`` to both users: the match leaves the pending list.
  * ``chat_activated`` to both users when the chat already existed.
  * ``new_message`` to the chat room.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.models.chat import Chat, Message
from app.models.like import Like
from app.models.notification import Notification
from app.models.user import User
from app.realtime import (
    CHAT_ACTIVATED,
    CHAT_DELETED,
    MATCH_PROMOTED,
    MESSAGES_READ,
    NEW_CHAT_CREATED,
    NEW_MESSAGE,
    EventPublisher,
)
from app.services.chat_refs import (
    PreparationChatRef,
    canonical_pair,
    new_chat_id,
    parse_chat_ref,
)
from app.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.services.notification_service import NotificationService
from app.services.photo_service import PhotoService
from app.services.sql import insert_ignore
from app.services.user_service import load_users, snapshot
from app.utils.dates import as_utc

logger = structlog.get_logger("tweetheart.chat_service")

_PREVIEW_CHARS = 120


def serialize_message(message: Message, viewer_id: uuid.UUID | None = None) -> dict[str, Any]:
    data = {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": str(message.sender_id),
        "content": message.content,
        "is_read": message.is_read,
        "created_at": as_utc(message.created_at).isoformat(),
    }
    if viewer_id is not None:
        data["is_own"] = message.sender_id == viewer_id
    return data


class ChatService:
    """Chats, messages, read receipts and the preparation → persisted promotion."""

    def __init__(
        self,
        events: EventPublisher | None = None,
        notifications: NotificationService | None = None,
        photos: PhotoService | None = None,
    ) -> None:
        self.events = events or EventPublisher()
        self.notifications = notifications or NotificationService(self.events)
        self.photos = photos or PhotoService()

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _load_chat(self, db: AsyncSession, chat_id: str) -> Chat:
        chat = (
            await db.execute(select(Chat).where(Chat.id == chat_id))
        ).scalar_one_or_none()
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found.")
        return chat

    async def _load_participant_chat(self, db: AsyncSession, user_id: uuid.UUID, chat_id: str) -> Chat:
        chat = await self._load_chat(db, chat_id)
        if not chat.has_participant(user_id):
            raise ForbiddenError("Access denied to this chat")
        return chat

    async def _chat_for_pair(self, db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> Chat | None:
        user1_id, user2_id = canonical_pair(a, b)
        return (
            await db.execute(
                select(Chat)
                .where(Chat.user1_id == user1_id, Chat.user2_id == user2_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()

    async def _is_mutual(self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(Like.id).where(
                Like.liker_id == user_id,
                Like.liked_id == other_id,
                Like.is_mutual.is_(True),
            )
        )
        return result.scalar_one_or_none() is not None

    async def _unread_count(self, db: AsyncSession, chat_id: str, reader_id: uuid.UUID) -> int:
        stmt = select(func.count(Message.id)).where(
            Message.chat_id == chat_id,
            Message.sender_id != reader_id,
            Message.is_read.is_(False),
        )
        return int((await db.execute(stmt)).scalar_one())

    async def resolve_for_participant(self, db: AsyncSession, user_id: uuid.UUID, raw_ref: str) -> str:
        """Return the persisted chat id behind ``raw_ref`` if ``user_id`` may
        join it.  Used by the socket ``join_chat`` handler."""
        ref = parse_chat_ref(raw_ref)
        if isinstance(ref, PreparationChatRef):
            if not ref.involves(user_id):
                raise ForbiddenError("Access denied to this chat")
            chat = await self._chat_for_pair(db, ref.user_a, ref.user_b)
            if chat is None:
                raise NotFoundError("Chat has not been started yet")
            return chat.id
        chat = await self._load_participant_chat(db, user_id, ref.chat_id)
        return chat.id

    # ── Promotion ─────────────────────────────────────────────────────────

    async def _promote(
        self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID
    ) -> tuple[Chat, bool]:
        """Get or create the persisted chat for a matched pair.

        Returns the chat and whether this call created it.
        """
        if not await self._is_mutual(db, user_id, other_id):
            raise ForbiddenError("You can only chat with your matches")

        user1_id, user2_id = canonical_pair(user_id, other_id)
        created = await insert_ignore(
            db,
            Chat,
            {"id": new_chat_id(), "user1_id": user1_id, "user2_id": user2_id},
            ["user1_id", "user2_id"],
        )
        chat = await self._chat_for_pair(db, user_id, other_id)
        if chat is None:
            # The winning insert was rolled back between our insert and read.
            raise ConflictError("Chat could not be created, please retry")

        await db.execute(
            update(Like)
            .where(
                or_(
                    and_(Like.liker_id == user_id, Like.liked_id == other_id),
                    and_(Like.liker_id == other_id, Like.liked_id == user_id),
                ),
                Like.is_mutual.is_(True),
            )
            .values(chat_id=chat.id)
            .execution_options(synchronize_session=False)
        )

        logger.info(
            "chat_promoted" if created else "chat_reused",
            chat_id=chat.id,
            user_id=str(user_id),
            other_id=str(other_id),
        )
        return chat, created

    # ── Public API ────────────────────────────────────────────────────────

    async def start_chat(self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID) -> tuple[Chat, bool]:
        """Explicitly create (or fetch) the chat for a match without sending
        a message."""
        if user_id == other_id:
            raise ValidationError("Cannot start a chat with yourself")
        chat, created = await self._promote(db, user_id, other_id)
        await db.commit()
        if created:
            await self._announce_new_chat(db, chat, user_id, other_id, None)
        return chat, created

    async def send_message(
        self,
        db: AsyncSession,
        sender_id: uuid.UUID,
        raw_ref: str,
        content: str,
    ) -> dict[str, Any]:
        """Send ``content`` to a persisted or preparation chat reference."""
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message is required")

        ref = parse_chat_ref(raw_ref)
        log = logger.bind(sender_id=str(sender_id), ref=raw_ref)
        log.info("send_message_start", preparation=isinstance(ref, PreparationChatRef))

        if isinstance(ref, PreparationChatRef):
            if not ref.involves(sender_id):
                raise ForbiddenError("Access denied to this chat")
            other_id = ref.counterpart(sender_id)
            chat, is_new_chat = await self._promote(db, sender_id, other_id)
        else:
            chat = await self._load_participant_chat(db, sender_id, ref.chat_id)
            other_id = chat.other_participant(sender_id)
            if not await self._is_mutual(db, sender_id, other_id):
                raise ForbiddenError("You can only chat with your matches")
            is_new_chat = False

        message = Message(chat_id=chat.id, sender_id=sender_id, content=content)
        db.add(message)
        chat.updated_at = utcnow()
        await db.flush()

        pending: list[Notification] = []
        if is_new_chat:
            users = await load_users(db, {sender_id})
            sender_name = users[sender_id].first_name if sender_id in users else "Your match"
            pending.append(
                await self.notifications.create(
                    db,
                    other_id,
                    "message",
                    "New conversation",
                    f"{sender_name} sent you a message.",
                    {"chat_id": chat.id, "user_id": str(sender_id)},
                )
            )

        await db.commit()
        log.info("send_message_committed", chat_id=chat.id, message_id=message.id, is_new_chat=is_new_chat)

        for notification in pending:
            await self.notifications.push(notification)

        await self.events.to_chat(chat.id, NEW_MESSAGE, serialize_message(message))
        if is_new_chat:
            await self._announce_new_chat(db, chat, sender_id, other_id, message)
        else:
            await self._announce_activity(db, chat, sender_id, other_id, message)

        return {
            "chat_id": chat.id,
            "is_new_chat": is_new_chat,
            "message": serialize_message(message, viewer_id=sender_id),
        }

    def _chat_payload(
        self,
        chat: Chat,
        counterpart: User | None,
        message: Message | None,
        unread_count: int,
    ) -> dict[str, Any]:
        return {
            "chat_id": chat.id,
            "other_user": snapshot(counterpart, self.photos) if counterpart else None,
            "last_message": message.content[:_PREVIEW_CHARS] if message else None,
            "last_message_time": as_utc(message.created_at).isoformat() if message else None,
            "unread_count": unread_count,
            "created_at": as_utc(chat.created_at).isoformat(),
        }

    async def _announce_new_chat(
        self,
        db: AsyncSession,
        chat: Chat,
        creator_id: uuid.UUID,
        other_id: uuid.UUID,
        message: Message | None,
    ) -> None:
        users = await load_users(db, {creator_id, other_id})
        receiver_unread = await self._unread_count(db, chat.id, other_id)

        await self.events.to_user(
            creator_id,
            NEW_CHAT_CREATED,
            self._chat_payload(chat, users.get(other_id), message, 0),
        )
        await self.events.to_user(
            other_id,
            NEW_CHAT_CREATED,
            self._chat_payload(chat, users.get(creator_id), message, receiver_unread),
        )
        for owner, counterpart in ((creator_id, other_id), (other_id, creator_id)):
            await self.events.to_user(
                owner,
                MATCH_PROMOTED,
                {"user_id": str(counterpart), "chat_id": chat.id},
            )

    async def _announce_activity(
        self,
        db: AsyncSession,
        chat: Chat,
        sender_id: uuid.UUID,
        other_id: uuid.UUID,
        message: Message,
    ) -> None:
        users = await load_users(db, {sender_id, other_id})
        receiver_unread = await self._unread_count(db, chat.id, other_id)

        await self.events.to_user(
            sender_id,
            CHAT_ACTIVATED,
            self._chat_payload(chat, users.get(other_id), message, 0),
        )
        await self.events.to_user(
            other_id,
            CHAT_ACTIVATED,
            self._chat_payload(chat, users.get(sender_id), message, receiver_unread),
        )

    async def list_chats(self, db: AsyncSession, user_id: uuid.UUID) -> list[dict[str, Any]]:
        """All persisted chats of ``user_id`` with preview and unread count,
        most recently active first."""
        chats = (
            await db.execute(
                select(Chat).where(
                    or_(Chat.user1_id == user_id, Chat.user2_id == user_id),
                    Chat.is_active.is_(True),
                )
            )
        ).scalars().all()
        if not chats:
            return []

        chat_ids = [c.id for c in chats]

        latest_ids = (
            select(func.max(Message.id).label("message_id"))
            .where(Message.chat_id.in_(chat_ids))
            .group_by(Message.chat_id)
            .subquery()
        )
        latest = {
            m.chat_id: m
            for m in (
                await db.execute(select(Message).where(Message.id.in_(select(latest_ids.c.message_id))))
            ).scalars().all()
        }

        unread_rows = await db.execute(
            select(Message.chat_id, func.count(Message.id))
            .where(
                Message.chat_id.in_(chat_ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.chat_id)
        )
        unread = {chat_id: count for chat_id, count in unread_rows.all()}

        others = await load_users(db, {c.other_participant(user_id) for c in chats})

        items: list[dict[str, Any]] = []
        for chat in chats:
            other = others.get(chat.other_participant(user_id))
            if other is None:
                continue
            last = latest.get(chat.id)
            items.append({
                "id": chat.id,
                "other_user": snapshot(other, self.photos),
                "last_message": last.content[:_PREVIEW_CHARS] if last else None,
                "last_message_time": as_utc(last.created_at) if last else None,
                "unread_count": unread.get(chat.id, 0),
                "created_at": as_utc(chat.created_at),
            })

        items.sort(
            key=lambda item: item["last_message_time"] or item["created_at"],
            reverse=True,
        )
        return items

    async def get_messages(self, db: AsyncSession, user_id: uuid.UUID, raw_ref: str) -> list[dict[str, Any]]:
        ref = parse_chat_ref(raw_ref)
        if isinstance(ref, PreparationChatRef):
            if not ref.involves(user_id):
                raise ForbiddenError("Access denied to this chat")
            chat = await self._chat_for_pair(db, ref.user_a, ref.user_b)
            if chat is None:
                return []
        else:
            chat = await self._load_participant_chat(db, user_id, ref.chat_id)

        messages = (
            await db.execute(
                select(Message)
                .where(Message.chat_id == chat.id)
                .order_by(Message.created_at, Message.id)
            )
        ).scalars().all()
        return [serialize_message(m, viewer_id=user_id) for m in messages]

    async def mark_read(self, db: AsyncSession, reader_id: uuid.UUID, raw_ref: str) -> tuple[str | None, list[int]]:
        """Mark the counterpart's unread messages as read.

        A preparation reference resolves to the pair's chat once it has been
        promoted.  Idempotent: a second call finds nothing to flip and emits
        nothing.
        """
        ref = parse_chat_ref(raw_ref)
        if isinstance(ref, PreparationChatRef):
            if not ref.involves(reader_id):
                raise ForbiddenError("Access denied to this chat")
            chat = await self._chat_for_pair(db, ref.user_a, ref.user_b)
            if chat is None:
                return None, []
        else:
            chat = await self._load_participant_chat(db, reader_id, ref.chat_id)
        unread_ids = list(
            (
                await db.execute(
                    select(Message.id)
                    .where(
                        Message.chat_id == chat.id,
                        Message.sender_id != reader_id,
                        Message.is_read.is_(False),
                    )
                    .order_by(Message.id)
                )
            ).scalars().all()
        )
        if not unread_ids:
            return chat.id, []

        await db.execute(
            update(Message)
            .where(Message.id.in_(unread_ids))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        sender_id = chat.other_participant(reader_id)
        await self.events.to_user(
            sender_id,
            MESSAGES_READ,
            {"chat_id": chat.id, "message_ids": unread_ids, "reader_id": str(reader_id)},
        )
        logger.info("messages_marked_read", chat_id=chat.id, count=len(unread_ids))
        return chat.id, unread_ids

    async def delete_chat(self, db: AsyncSession, user_id: uuid.UUID, chat_id: str) -> None:
        chat = await self._load_participant_chat(db, user_id, chat_id)
        participants = chat.participants()

        await db.execute(
            update(Like)
            .where(Like.chat_id == chat.id)
            .values(chat_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(Message).where(Message.chat_id == chat.id))
        await db.execute(delete(Chat).where(Chat.id == chat.id))
        await db.commit()

        for participant in participants:
            await self.events.to_user(
                participant, CHAT_DELETED, {"chat_id": chat_id, "reason": "deleted"}
            )
        logger.info("chat_deleted", chat_id=chat_id, user_id=str(user_id))
