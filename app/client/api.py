"""
Tweetheart — Python client.

Wraps the HTTP API with ``httpx.AsyncClient`` and the real-time channel
with ``socketio.AsyncClient``; incoming events are fed into
``ChatListState`` and ``MatchListState``.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
import socketio
import structlog

from app.client.feed import FeedPager
from app.client.state import ChatListState, MatchListState

logger = structlog.get_logger("tweetheart.client")

SESSION_COOKIE = "accessToken"

SERVER_EVENTS = (
    "new_chat_created",
    "chat_activated",
    "match_promoted",
    "new_notification",
    "messages_read",
    "new_message",
    "chat_deleted",
)


class TweetheartClient:

    def __init__(
        self,
        base_url: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.socket: Optional[socketio.AsyncClient] = None
        self.chats = ChatListState()
        self.matches = MatchListState()
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.errors: list[dict[str, Any]] = []

    async def __aenter__(self) -> "TweetheartClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self.socket is not None and self.socket.connected:
            await self.socket.disconnect()
        await self.http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.http.request(method, f"/api{path}", **kwargs)
        response.raise_for_status()
        return response.json()

    # ── Session ───────────────────────────────────────────────────────────

    async def signup(self, email: str, password: str, first_name: str, **extra: Any) -> dict:
        body = {"email": email, "password": password, "first_name": first_name, **extra}
        return await self._request("POST", "/signup", json=body)

    async def login(self, email: str, password: str) -> dict:
        return await self._request("POST", "/login", json={"email": email, "password": password})

    async def logout(self) -> dict:
        return await self._request("POST", "/logout")

    async def refresh_session(self) -> dict:
        return await self._request("POST", "/refresh")

    @property
    def token(self) -> Optional[str]:
        return self.http.cookies.get(SESSION_COOKIE)

    # ── Feed & likes ──────────────────────────────────────────────────────

    async def update_location(self, latitude: float, longitude: float) -> dict:
        return await self._request(
            "PUT", "/users/location", json={"latitude": latitude, "longitude": longitude}
        )

    async def feed_page(self, page: int = 1, cursor: Optional[str] = None, **filters: Any) -> dict:
        params = {"page": page, **filters}
        if cursor:
            params["cursor"] = cursor
        return await self._request("GET", "/users/feed", params=params)

    async def swipe(self, user_id: str, like_type: str) -> dict:
        return await self._request(
            "POST", "/likes", json={"liked_id": user_id, "like_type": like_type}
        )

    def feed_pager(self, **filters: Any) -> FeedPager:
        async def fetch(page: int, cursor: Optional[str]) -> dict:
            return await self.feed_page(page, cursor, **filters)

        return FeedPager(fetch, self.swipe)

    async def refresh_matches(self) -> list[dict]:
        matches = await self._request("GET", "/likes/matches")
        self.matches.load(matches)
        return matches

    async def unmatch(self, user_id: str) -> dict:
        return await self._request("DELETE", f"/likes/unmatch/{user_id}")

    # ── Chats ─────────────────────────────────────────────────────────────

    async def refresh_chats(self) -> list[dict]:
        chats = await self._request("GET", "/chats")
        self.chats.load(chats)
        return chats

    async def get_messages(self, chat_ref: str) -> list[dict]:
        messages = await self._request("GET", f"/chats/{chat_ref}/messages")
        self.messages[chat_ref] = messages
        return messages

    async def send_message(self, chat_ref: str, message: str) -> dict:
        return await self._request("POST", f"/chats/{chat_ref}/messages", json={"message": message})

    async def mark_read(self, chat_id: str) -> dict:
        result = await self._request("PUT", f"/chats/{chat_id}/read")
        self.chats.open(chat_id)
        return result

    async def delete_chat(self, chat_id: str) -> dict:
        return await self._request("DELETE", f"/chats/{chat_id}")

    # ── Notifications ─────────────────────────────────────────────────────

    async def notifications(self) -> list[dict]:
        return await self._request("GET", "/notifications")

    async def unread_notifications(self) -> int:
        return (await self._request("GET", "/notifications/unread-count"))["unread_count"]

    # ── Real-time ─────────────────────────────────────────────────────────

    def dispatch(self, event: str, payload: dict[str, Any]) -> None:
        """Apply one server event to the local state."""
        self.chats.handle(event, payload)
        self.matches.handle(event, payload)
        if event == "new_message":
            self.messages.setdefault(payload["chat_id"], []).append(payload)

    async def connect_socket(self) -> socketio.AsyncClient:
        if self.token is None:
            raise RuntimeError("log in before connecting the socket")

        sio = socketio.AsyncClient(reconnection=True)

        for event in SERVER_EVENTS:
            sio.on(event, self._make_handler(event))

        @sio.on("error")
        async def on_error(data: dict[str, Any]) -> None:
            logger.warning("socket_error", data=data)
            self.errors.append(data)

        @sio.event
        async def connect() -> None:
            await sio.emit("join_user_room")

        await sio.connect(self.base_url, auth={"token": self.token}, transports=["websocket"])
        self.socket = sio
        return sio

    def _make_handler(self, event: str):
        async def handler(payload: dict[str, Any]) -> None:
            self.dispatch(event, payload)

        return handler

    async def join_chat(self, chat_ref: str) -> Any:
        if self.socket is None:
            raise RuntimeError("socket is not connected")
        return await self.socket.call("join_chat", {"chatId": chat_ref})
