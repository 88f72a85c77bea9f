"""
Tweetheart — Swipe deck.

``SwipeGesture`` decides whether a drag commits; ``FeedPager`` owns the
card stack, removes a card as soon as it is swiped (whatever the API says
afterwards) and prefetches the next page every few swipes.  Pages after the
first are requested with the previous page's ``next_cursor`` so swipes made
in between do not shift the window.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger("tweetheart.client.feed")

SWIPE_THRESHOLD_PX = 100
PAGE_SIZE = 10
PREFETCH_EVERY = 5

FetchPage = Callable[[int, Optional[str]], Awaitable[dict[str, Any]]]
SendSwipe = Callable[[str, str], Awaitable[Any]]


@dataclass(frozen=True)
class SwipeGesture:
    threshold: int = SWIPE_THRESHOLD_PX

    def resolve(self, dx: float) -> Optional[str]:
        """``like`` for a right drag past the threshold, ``pass`` for a left
        one, ``None`` when the card should snap back."""
        if dx >= self.threshold:
            return "like"
        if dx <= -self.threshold:
            return "pass"
        return None


class FeedPager:

    def __init__(
        self,
        fetch_page: FetchPage,
        send_swipe: SendSwipe,
        page_size: int = PAGE_SIZE,
        prefetch_every: int = PREFETCH_EVERY,
    ) -> None:
        self._fetch_page = fetch_page
        self._send_swipe = send_swipe
        self.page_size = page_size
        self.prefetch_every = prefetch_every
        self.cards: list[dict[str, Any]] = []
        self.page = 0
        self.cursor: Optional[str] = None
        self.has_more = True
        self.swiped_count = 0
        self._known_ids: set[str] = set()

    @property
    def current(self) -> Optional[dict[str, Any]]:
        return self.cards[0] if self.cards else None

    async def load_next_page(self) -> int:
        """Fetch the next page and append unseen cards; returns how many."""
        if not self.has_more:
            return 0
        data = await self._fetch_page(self.page + 1, self.cursor)
        pagination = data.get("pagination", {})
        self.page += 1
        self.has_more = bool(pagination.get("has_more"))
        self.cursor = pagination.get("next_cursor") or self.cursor

        added = 0
        for user in data.get("users", []):
            user_id = str(user["id"])
            if user_id in self._known_ids:
                continue
            self._known_ids.add(user_id)
            self.cards.append(user)
            added += 1
        logger.debug("feed_page_loaded", page=self.page, added=added, has_more=self.has_more)
        return added

    async def swipe(self, dx: float, gesture: SwipeGesture = SwipeGesture()) -> Optional[dict[str, Any]]:
        """Resolve a drag on the top card.

        Returns the swipe API result, or ``None`` if the drag did not commit
        or the call failed.
        """
        card = self.current
        action = gesture.resolve(dx)
        if card is None or action is None:
            return None

        self.cards.pop(0)
        self.swiped_count += 1

        result = None
        try:
            result = await self._send_swipe(str(card["id"]), action)
        except Exception:
            logger.exception("swipe_send_failed", user_id=str(card["id"]), action=action)

        if self.swiped_count % self.prefetch_every == 0 and self.has_more:
            await self.load_next_page()
        return result
