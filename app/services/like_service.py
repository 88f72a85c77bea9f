"""
Tweetheart — Like / Match evaluator

``record_interaction`` is the only place a swipe is written.  A mutual match
exists iff both directions carry ``like_type='like'``; the evaluator keeps
``is_mutual`` equal on both rows.  Mutuality is flipped with a conditional
``UPDATE … WHERE is_mutual = false`` so that only the request that actually
performs the flip creates the ``match`` notifications, and repeating a like
never yields a second pair of them.

Every swipe first takes ``lock_pair`` on the pair's preparation key.  Two
users liking each other at the same moment are therefore evaluated one
after the other: the second request waits for the first to commit and then
finds its like, so the pair is matched exactly once.

A pass on a current match dissolves it like an unmatch does: the pair's
chat and messages are deleted and both users get ``chat_deleted``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import Chat, Message
from app.models.like import LIKE, LIKE_TYPES, PASS, Like
from app.models.notification import Notification
from app.models.user import User
from app.realtime import CHAT_DELETED, EventPublisher
from app.services.chat_refs import canonical_pair, preparation_key
from app.services.errors import NotFoundError, ValidationError
from app.services.notification_service import NotificationService
from app.services.photo_service import PhotoService
from app.services.sql import insert_ignore, lock_pair
from app.services.user_service import load_user
from app.utils.dates import calculate_age

logger = structlog.get_logger("tweetheart.like_service")


@dataclass
class InteractionResult:
    is_match: bool
    is_new_match: bool = False


def _pair_clause(a: uuid.UUID, b: uuid.UUID):
    return or_(
        and_(Like.liker_id == a, Like.liked_id == b),
        and_(Like.liker_id == b, Like.liked_id == a),
    )


class LikeService:
    """Records swipes, detects reciprocal likes and manages the match list.

    Collaborators are injected so tests can substitute recorders for the
    real-time publisher and a mock for object storage.
    """

    def __init__(
        self,
        events: EventPublisher | None = None,
        notifications: NotificationService | None = None,
        photos: PhotoService | None = None,
    ) -> None:
        self.events = events or EventPublisher()
        self.notifications = notifications or NotificationService(self.events)
        self.photos = photos or PhotoService()

    # ── Evaluator ─────────────────────────────────────────────────────────

    async def record_interaction(
        self,
        db: AsyncSession,
        liker_id: uuid.UUID,
        liked_id: uuid.UUID,
        like_type: str,
    ) -> InteractionResult:
        """Record a like or pass from ``liker_id`` on ``liked_id``.

        Returns ``is_match`` whenever the pair is mutual after this call and
        ``is_new_match`` only for the call that made it so.
        """
        log = logger.bind(liker_id=str(liker_id), liked_id=str(liked_id), like_type=like_type)
        log.info("record_interaction_start")

        if liker_id == liked_id:
            raise ValidationError("Cannot like yourself")
        if like_type not in LIKE_TYPES:
            raise ValidationError(f"like_type must be one of {LIKE_TYPES}")

        liker = await load_user(db, liker_id)
        liked = await load_user(db, liked_id)

        await lock_pair(db, preparation_key(liker_id, liked_id))
        _, previous_type = await self._upsert_like(db, liker_id, liked_id, like_type)

        if like_type == PASS:
            dissolved = await db.execute(
                update(Like)
                .where(_pair_clause(liker_id, liked_id), Like.is_mutual.is_(True))
                .values(is_mutual=False, chat_id=None)
                .execution_options(synchronize_session=False)
            )
            chat_id = None
            if (dissolved.rowcount or 0) > 0:
                chat_id = await self._delete_pair_chat(db, liker_id, liked_id)
                log.info("match_dissolved_by_pass", chat_id=chat_id)
            await db.commit()
            if chat_id is not None:
                await self._announce_unmatched(chat_id, liker_id, liked_id)
            return InteractionResult(is_match=False)

        reverse = (
            await db.execute(
                select(Like.id).where(
                    Like.liker_id == liked_id,
                    Like.liked_id == liker_id,
                    Like.like_type == LIKE,
                )
            )
        ).scalar_one_or_none()

        pending: list[Notification] = []

        if reverse is None:
            if previous_type != LIKE:
                pending.append(
                    await self.notifications.create(
                        db,
                        liked_id,
                        "like",
                        "Someone likes you",
                        f"{liker.first_name} liked your profile.",
                        {"user_id": str(liker_id)},
                    )
                )
            await db.commit()
            for notification in pending:
                await self.notifications.push(notification)
            log.info("record_interaction_complete", is_match=False)
            return InteractionResult(is_match=False)

        flipped = await db.execute(
            update(Like)
            .where(_pair_clause(liker_id, liked_id), Like.is_mutual.is_(False))
            .values(is_mutual=True)
            .execution_options(synchronize_session=False)
        )
        is_new_match = (flipped.rowcount or 0) > 0

        if is_new_match:
            key = preparation_key(liker_id, liked_id)
            for owner, other in ((liker, liked), (liked, liker)):
                pending.append(
                    await self.notifications.create(
                        db,
                        owner.id,
                        "match",
                        "It's a match!",
                        f"You and {other.first_name} liked each other.",
                        {"user_id": str(other.id), "preparation_chat_id": key},
                    )
                )

        await db.commit()
        for notification in pending:
            await self.notifications.push(notification)

        log.info("record_interaction_complete", is_match=True, is_new_match=is_new_match)
        return InteractionResult(is_match=True, is_new_match=is_new_match)

    async def _upsert_like(
        self,
        db: AsyncSession,
        liker_id: uuid.UUID,
        liked_id: uuid.UUID,
        like_type: str,
    ) -> tuple[Like, str | None]:
        """Insert or update the (liker -> liked) row.

        Returns the row and the like_type it had before this call (``None``
        if the row did not exist).
        """
        created = await insert_ignore(
            db,
            Like,
            {"liker_id": liker_id, "liked_id": liked_id, "like_type": like_type},
            ["liker_id", "liked_id"],
        )
        like = (
            await db.execute(
                select(Like)
                .where(Like.liker_id == liker_id, Like.liked_id == liked_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        if created:
            return like, None

        previous_type = like.like_type
        if previous_type != like_type:
            like.like_type = like_type
            await db.flush()
        return like, previous_type

    # ── Queries ───────────────────────────────────────────────────────────

    async def is_match(self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID) -> bool:
        result = await db.execute(
            select(Like.is_mutual).where(
                Like.liker_id == user_id,
                Like.liked_id == other_id,
                Like.like_type == LIKE,
            )
        )
        return bool(result.scalar_one_or_none())

    async def list_matches(self, db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
        """Every mutual match of ``user_id``, newest first."""
        stmt = (
            select(User, Like)
            .join(Like, Like.liked_id == User.id)
            .where(
                Like.liker_id == user_id,
                Like.is_mutual.is_(True),
                User.is_active.is_(True),
            )
            .order_by(Like.created_at.desc())
            .execution_options(populate_existing=True)
        )
        rows = (await db.execute(stmt)).all()
        return [self._match_item(user_id, user, like) for user, like in rows]

    async def get_match(self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID) -> dict:
        stmt = (
            select(User, Like)
            .join(Like, Like.liked_id == User.id)
            .where(
                Like.liker_id == user_id,
                Like.liked_id == other_id,
                Like.is_mutual.is_(True),
            )
            .execution_options(populate_existing=True)
        )
        row = (await db.execute(stmt)).first()
        if row is None:
            raise NotFoundError("Match not found")
        user, like = row
        return self._match_item(user_id, user, like)

    def _match_item(self, user_id: uuid.UUID, user: User, like: Like) -> dict:
        return {
            "id": user.id,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "bio": user.bio,
            "age": calculate_age(user.birthdate),
            "gender": user.gender,
            "photos": self.photos.urls_for(user.photos),
            "matched_at": like.created_at,
            "chat_id": like.chat_id,
            "has_chat": like.chat_id is not None,
            "preparation_chat_id": preparation_key(user_id, user.id),
        }

    async def list_interactions(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        outgoing: bool = True,
        like_type: str | None = None,
    ) -> list[dict]:
        """Users the caller swiped on (``outgoing``) or who swiped on the caller."""
        own_col, other_col = (
            (Like.liker_id, Like.liked_id) if outgoing else (Like.liked_id, Like.liker_id)
        )
        stmt = (
            select(User, Like)
            .join(Like, other_col == User.id)
            .where(own_col == user_id)
            .order_by(Like.created_at.desc())
        )
        if like_type is not None:
            stmt = stmt.where(Like.like_type == like_type)
        rows = (await db.execute(stmt)).all()
        return [
            {
                "id": user.id,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "bio": user.bio,
                "like_type": like.like_type,
                "created_at": like.created_at,
            }
            for user, like in rows
        ]

    # ── Unmatch ───────────────────────────────────────────────────────────

    async def unmatch(self, db: AsyncSession, user_id: uuid.UUID, other_id: uuid.UUID) -> bool:
        """Drop both like rows and the pair's chat.  Returns whether a chat
        was deleted."""
        log = logger.bind(user_id=str(user_id), other_id=str(other_id))
        log.info("unmatch_start")

        mutual = await db.execute(
            select(Like.id).where(
                Like.liker_id == user_id,
                Like.liked_id == other_id,
                Like.is_mutual.is_(True),
            )
        )
        if mutual.scalar_one_or_none() is None:
            raise NotFoundError("Match not found")

        await db.execute(delete(Like).where(_pair_clause(user_id, other_id)))
        chat_id = await self._delete_pair_chat(db, user_id, other_id)
        await db.commit()

        if chat_id is not None:
            await self._announce_unmatched(chat_id, user_id, other_id)

        log.info("unmatch_complete", chat_deleted=chat_id is not None)
        return chat_id is not None

    async def _delete_pair_chat(self, db: AsyncSession, a: uuid.UUID, b: uuid.UUID) -> str | None:
        """Delete the pair's chat and its messages; returns the chat id."""
        user1_id, user2_id = canonical_pair(a, b)
        chat_id = (
            await db.execute(
                select(Chat.id).where(Chat.user1_id == user1_id, Chat.user2_id == user2_id)
            )
        ).scalar_one_or_none()
        if chat_id is None:
            return None

        await db.execute(
            update(Like)
            .where(Like.chat_id == chat_id)
            .values(chat_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(Message).where(Message.chat_id == chat_id))
        await db.execute(delete(Chat).where(Chat.id == chat_id))
        return chat_id

    async def _announce_unmatched(self, chat_id: str, a: uuid.UUID, b: uuid.UUID) -> None:
        payload = {"chat_id": chat_id, "reason": "unmatched"}
        await self.events.to_user(a, CHAT_DELETED, payload)
        await self.events.to_user(b, CHAT_DELETED, payload)
