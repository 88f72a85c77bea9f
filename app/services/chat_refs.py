"""
Tweetheart — Chat references.

Clients address a conversation by one path segment that takes two forms:

* ``chat_<epoch-ms>_<hex>`` — a persisted chat row.
* ``<uuid>_<uuid>`` — a *preparation* chat: a matched pair that has not
  exchanged a message yet and therefore has no row.

``parse_chat_ref`` turns the segment into an explicit tagged value so the
rest of the code never has to guess which form it is holding.
"""

from __future__ import annotations

import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Union

from app.services.errors import ValidationError

PERSISTED_PREFIX = "chat_"


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Order a pair the way ``chats.user1_id/user2_id`` store it."""
    return (a, b) if str(a) < str(b) else (b, a)


def preparation_key(a: uuid.UUID, b: uuid.UUID) -> str:
    first, second = canonical_pair(a, b)
    return f"{first}_{second}"


def new_chat_id() -> str:
    return f"{PERSISTED_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(4)}"


@dataclass(frozen=True)
class PreparationChatRef:
    user_a: uuid.UUID
    user_b: uuid.UUID

    @property
    def key(self) -> str:
        return preparation_key(self.user_a, self.user_b)

    def involves(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user_a, self.user_b)

    def counterpart(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_b if self.user_a == user_id else self.user_a


@dataclass(frozen=True)
class PersistedChatRef:
    chat_id: str


ChatRef = Union[PreparationChatRef, PersistedChatRef]


def parse_chat_ref(raw: str) -> ChatRef:
    raw = (raw or "").strip()
    if raw.startswith(PERSISTED_PREFIX) and len(raw) > len(PERSISTED_PREFIX):
        return PersistedChatRef(chat_id=raw)

    parts = raw.split("_")
    if len(parts) == 2:
        try:
            user_a, user_b = uuid.UUID(parts[0]), uuid.UUID(parts[1])
        except ValueError:
            pass
        else:
            if user_a != user_b:
                return PreparationChatRef(user_a=user_a, user_b=user_b)

    raise ValidationError(f"Malformed chat id {raw!r}")
