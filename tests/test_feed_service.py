"""Tests for the discovery feed and date helpers."""
import uuid
from datetime import date

import pytest

from app.client.feed import FeedPager
from app.services.errors import ValidationError
from app.services.feed_service import decode_cursor, encode_cursor, haversine_km, normalize_age_range
from app.utils.dates import birthdate_bounds, calculate_age


def _born(age: int) -> date:
    return date(date.today().year - age, 1, 1)


class TestHelpers:

    def test_haversine_new_york_to_los_angeles(self):
        assert abs(haversine_km(40.7128, -74.0060, 34.0522, -118.2437) - 3936) < 10

    def test_haversine_zero(self):
        assert haversine_km(10.0, 10.0, 10.0, 10.0) == 0

    def test_inverted_age_range_is_swapped(self):
        assert normalize_age_range(40, 25) == (25, 40)

    def test_age_range_clamped(self):
        assert normalize_age_range(10, 150) == (18, 99)
        assert normalize_age_range(None, None) == (18, 99)

    def test_calculate_age_is_birthday_aware(self):
        today = date(2024, 6, 15)
        assert calculate_age(date(2000, 6, 15), today) == 24
        assert calculate_age(date(2000, 6, 16), today) == 23
        assert calculate_age(None, today) is None

    def test_birthdate_bounds(self):
        today = date(2024, 6, 15)
        earliest, latest = birthdate_bounds(25, 30, today)
        assert latest == date(1999, 6, 15)
        assert earliest == date(1993, 6, 16)
        assert calculate_age(latest, today) == 25
        assert calculate_age(earliest, today) == 30

    def test_birthdate_bounds_leap_day(self):
        earliest, latest = birthdate_bounds(18, 18, date(2024, 2, 29))
        assert latest == date(2006, 2, 28)


class TestFeed:

    async def test_requires_location(self, db, make_user, feed_service):
        me = await make_user(latitude=None, longitude=None)
        with pytest.raises(ValidationError, match="location_required"):
            await feed_service.feed(db, me.id)

    async def test_excludes_self_swiped_and_far(self, db, make_user, feed_service, like_service):
        me = await make_user()
        near = await make_user(latitude=40.7589, longitude=-73.9851)
        liked = await make_user()
        passed = await make_user()
        far = await make_user(latitude=34.0522, longitude=-118.2437)
        no_location = await make_user(latitude=None, longitude=None)
        inactive = await make_user(is_active=False)
        await like_service.record_interaction(db, me.id, liked.id, "like")
        await like_service.record_interaction(db, me.id, passed.id, "pass")

        page = await feed_service.feed(db, me.id)

        ids = {u["id"] for u in page["users"]}
        assert ids == {near.id}
        for excluded in (me, liked, passed, far, no_location, inactive):
            assert excluded.id not in ids
        assert page["users"][0]["distance"] == pytest.approx(5.4, abs=0.5)

    async def test_distance_zero_disables_radius(self, db, make_user, feed_service):
        me = await make_user()
        far = await make_user(latitude=34.0522, longitude=-118.2437)
        no_location = await make_user(latitude=None, longitude=None)

        page = await feed_service.feed(db, me.id, distance_km=0)

        assert [u["id"] for u in page["users"]] == [far.id, no_location.id]

    async def test_age_filter_with_inverted_bounds(self, db, make_user, feed_service):
        me = await make_user()
        young = await make_user(birthdate=_born(22))
        mid = await make_user(birthdate=_born(30))
        old = await make_user(birthdate=_born(60))

        page = await feed_service.feed(db, me.id, min_age=35, max_age=25)

        ids = {u["id"] for u in page["users"]}
        assert ids == {mid.id}
        assert young.id not in ids and old.id not in ids

    async def test_pagination(self, db, make_user, feed_service):
        me = await make_user()
        for _ in range(12):
            await make_user()

        first = await feed_service.feed(db, me.id, page=1, limit=10)
        second = await feed_service.feed(db, me.id, page=2, limit=10)

        assert len(first["users"]) == 10
        pagination = first["pagination"]
        assert (pagination["current_page"], pagination["has_more"], pagination["total_users"]) == (1, True, 12)
        assert pagination["next_cursor"]
        assert len(second["users"]) == 2
        assert second["pagination"]["has_more"] is False
        assert not {u["id"] for u in first["users"]} & {u["id"] for u in second["users"]}

    async def test_cursor_survives_swipes_between_pages(self, db, make_user, feed_service, like_service):
        me = await make_user()
        for _ in range(15):
            await make_user()

        first = await feed_service.feed(db, me.id, limit=10)
        for card in first["users"][:5]:
            await like_service.record_interaction(db, me.id, card["id"], "pass")

        second = await feed_service.feed(
            db, me.id, page=2, limit=10, cursor=first["pagination"]["next_cursor"]
        )

        assert len(second["users"]) == 5
        assert second["pagination"]["has_more"] is False
        assert not {u["id"] for u in first["users"]} & {u["id"] for u in second["users"]}

    async def test_invalid_cursor_rejected(self, db, make_user, feed_service):
        me = await make_user()
        for bad in ("garbage", "1.5~not-a-uuid", "x~" + str(uuid.uuid4())):
            with pytest.raises(ValidationError, match="cursor"):
                await feed_service.feed(db, me.id, cursor=bad)

    def test_cursor_round_trip_keeps_unlocated_last(self):
        user_id = str(uuid.uuid4())
        assert decode_cursor(encode_cursor((float("inf"), user_id))) == (float("inf"), user_id)
        assert decode_cursor(encode_cursor((0.1 + 0.2, user_id)))[0] == 0.1 + 0.2


class TestFeedPagerOverService:

    async def test_swiping_left_reaches_every_candidate(self, db, make_user, feed_service, like_service):
        me = await make_user()
        others = [await make_user() for _ in range(25)]

        async def fetch(page, cursor):
            return await feed_service.feed(db, me.id, page=page, limit=10, cursor=cursor)

        async def send(user_id, action):
            return await like_service.record_interaction(db, me.id, uuid.UUID(user_id), action)

        pager = FeedPager(fetch, send)
        await pager.load_next_page()

        seen = []
        while pager.current is not None:
            seen.append(pager.current["id"])
            await pager.swipe(-200)

        assert len(seen) == 25
        assert set(seen) == {u.id for u in others}
        assert pager.has_more is False
