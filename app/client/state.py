"""
Tweetheart — Client-side list state.

Lists are fetched over HTTP and then patched by Socket.IO events.  Because
delivery is at-most-once and a fetch can race with an event, every list
keeps a seen-id set: an event for an id that is already present (or was
present before a refetch) is never inserted twice.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, Optional

import structlog

logger = structlog.get_logger("tweetheart.client.state")


class ListReconciler:
    """An ordered, id-keyed list cache (newest first)."""

    def __init__(self, key: str = "id") -> None:
        self.key = key
        self._items: list[dict[str, Any]] = []
        self._seen: set[Any] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._items)

    def __contains__(self, item_id: Any) -> bool:
        return self.get(item_id) is not None

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self._items)

    def ids(self) -> list[Any]:
        return [item[self.key] for item in self._items]

    def get(self, item_id: Any) -> Optional[dict[str, Any]]:
        for item in self._items:
            if item[self.key] == item_id:
                return item
        return None

    def replace(self, items: Iterable[dict[str, Any]]) -> None:
        """Reset to a freshly fetched list."""
        unique: list[dict[str, Any]] = []
        ids: set[Any] = set()
        for item in items:
            if item[self.key] in ids:
                continue
            ids.add(item[self.key])
            unique.append(dict(item))
        self._items = unique
        self._seen |= ids

    def apply_created(self, item: dict[str, Any]) -> bool:
        """Insert ``item`` at the top unless its id was already seen."""
        item_id = item[self.key]
        if item_id in self._seen or item_id in self:
            logger.debug("duplicate_ignored", item_id=item_id)
            return False
        self._seen.add(item_id)
        self._items.insert(0, dict(item))
        return True

    def apply_update(self, item_id: Any, *, move_to_top: bool = False, **changes: Any) -> bool:
        for index, item in enumerate(self._items):
            if item[self.key] == item_id:
                item.update(changes)
                if move_to_top and index:
                    self._items.insert(0, self._items.pop(index))
                return True
        return False

    def remove(self, item_id: Any) -> bool:
        before = len(self._items)
        self._items = [i for i in self._items if i[self.key] != item_id]
        return len(self._items) != before

    def remove_where(self, predicate: Callable[[dict[str, Any]], bool]) -> int:
        before = len(self._items)
        self._items = [i for i in self._items if not predicate(i)]
        return before - len(self._items)


class ChatListState:
    """The chat list screen: chats with preview and unread badge."""

    def __init__(self) -> None:
        self.chats = ListReconciler()
        self.open_chat_id: Optional[str] = None
        self.read_receipts: dict[str, set[int]] = {}

    def load(self, chats: Iterable[dict[str, Any]]) -> None:
        self.chats.replace(chats)

    def open(self, chat_id: str) -> None:
        self.open_chat_id = chat_id
        self.chats.apply_update(chat_id, unread_count=0)

    def close(self) -> None:
        self.open_chat_id = None

    def _unread_for(self, chat_id: str, unread_count: int) -> int:
        return 0 if chat_id == self.open_chat_id else unread_count

    def on_new_chat_created(self, payload: dict[str, Any]) -> bool:
        chat_id = payload["chat_id"]
        return self.chats.apply_created({
            "id": chat_id,
            "other_user": payload.get("other_user"),
            "last_message": payload.get("last_message"),
            "last_message_time": payload.get("last_message_time"),
            "unread_count": self._unread_for(chat_id, payload.get("unread_count", 0)),
            "created_at": payload.get("created_at"),
        })

    def on_chat_activated(self, payload: dict[str, Any]) -> None:
        chat_id = payload["chat_id"]
        updated = self.chats.apply_update(
            chat_id,
            move_to_top=True,
            last_message=payload.get("last_message"),
            last_message_time=payload.get("last_message_time"),
            unread_count=self._unread_for(chat_id, payload.get("unread_count", 0)),
        )
        if not updated:
            # Missed the creation event (or lost the promotion race).
            self.on_new_chat_created(payload)

    def on_messages_read(self, payload: dict[str, Any]) -> None:
        receipts = self.read_receipts.setdefault(payload["chat_id"], set())
        receipts.update(payload.get("message_ids", []))

    def on_chat_deleted(self, payload: dict[str, Any]) -> None:
        chat_id = payload["chat_id"]
        self.chats.remove(chat_id)
        self.read_receipts.pop(chat_id, None)
        if self.open_chat_id == chat_id:
            self.open_chat_id = None

    def handle(self, event: str, payload: dict[str, Any]) -> None:
        handler = _CHAT_HANDLERS.get(event)
        if handler is not None:
            handler(self, payload)

    @property
    def total_unread(self) -> int:
        return sum(c.get("unread_count") or 0 for c in self.chats)


_CHAT_HANDLERS: dict[str, Callable[[ChatListState, dict[str, Any]], Any]] = {
    "new_chat_created": ChatListState.on_new_chat_created,
    "chat_activated": ChatListState.on_chat_activated,
    "messages_read": ChatListState.on_messages_read,
    "chat_deleted": ChatListState.on_chat_deleted,
}


class MatchListState:
    """Mutual matches; ``pending`` are the ones without a conversation yet."""

    def __init__(self) -> None:
        self.matches = ListReconciler()
        self.stale = False

    def load(self, matches: Iterable[dict[str, Any]]) -> None:
        self.matches.replace({**m, "id": str(m["id"])} for m in matches)
        self.stale = False

    @property
    def pending(self) -> list[dict[str, Any]]:
        return [m for m in self.matches if not m.get("has_chat")]

    def on_match_promoted(self, payload: dict[str, Any]) -> None:
        self.matches.apply_update(
            str(payload["user_id"]), has_chat=True, chat_id=payload.get("chat_id")
        )

    def on_new_notification(self, payload: dict[str, Any]) -> None:
        # Match notifications carry only ids; the list is refetched.
        if payload.get("type") == "match":
            self.stale = True

    def on_chat_deleted(self, payload: dict[str, Any]) -> None:
        chat_id = payload["chat_id"]
        if payload.get("reason") == "unmatched":
            self.matches.remove_where(lambda m: m.get("chat_id") == chat_id)
            return
        for match in self.matches:
            if match.get("chat_id") == chat_id:
                match["chat_id"] = None
                match["has_chat"] = False

    def handle(self, event: str, payload: dict[str, Any]) -> None:
        handler = _MATCH_HANDLERS.get(event)
        if handler is not None:
            handler(self, payload)


_MATCH_HANDLERS: dict[str, Callable[[MatchListState, dict[str, Any]], Any]] = {
    "match_promoted": MatchListState.on_match_promoted,
    "new_notification": MatchListState.on_new_notification,
    "chat_deleted": MatchListState.on_chat_deleted,
}
