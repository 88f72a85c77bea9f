"""Tests for NotificationService."""
import pytest

from app.realtime import user_room
from app.services.errors import NotFoundError, ValidationError


@pytest.fixture
def create(db, notification_service):
    async def _create(user, type_="system", title="Hello", message="World", data=None):
        notification = await notification_service.create(db, user.id, type_, title, message, data)
        await db.commit()
        return notification

    return _create


class TestNotifications:

    async def test_create_and_push(self, db, make_user, notification_service, events):
        user = await make_user()
        notification = await notification_service.create(
            db, user.id, "system", "Welcome", "Glad you're here", {"k": "v"}
        )
        await db.commit()
        await notification_service.push(notification)

        pushed = events.to_room(user_room(user.id), "new_notification")
        assert len(pushed) == 1
        assert pushed[0]["title"] == "Welcome"
        assert pushed[0]["data"] == {"k": "v"}
        assert pushed[0]["is_read"] is False

    async def test_unknown_type_rejected(self, db, make_user, notification_service):
        user = await make_user()
        with pytest.raises(ValidationError):
            await notification_service.create(db, user.id, "poke", "t", "m")

    async def test_list_skips_dismissed(self, db, make_user, notification_service, create):
        user = await make_user()
        first = await create(user, title="first")
        second = await create(user, title="second")
        await notification_service.dismiss(db, user.id, first.id)

        listed = await notification_service.list_for_user(db, user.id)

        assert [n.id for n in listed] == [second.id]

    async def test_dismiss_twice_is_a_no_op(self, db, make_user, notification_service, create):
        user = await make_user()
        notification = await create(user)

        first = await notification_service.dismiss(db, user.id, notification.id)
        second = await notification_service.dismiss(db, user.id, notification.id)
        await db.commit()

        assert first.is_dismissed is True
        assert second.is_dismissed is True
        assert second.id == notification.id
        assert await notification_service.list_for_user(db, user.id) == []

    async def test_unread_count_and_mark_read(self, db, make_user, notification_service, create):
        user = await make_user()
        n1 = await create(user)
        await create(user)
        assert await notification_service.unread_count(db, user.id) == 2

        await notification_service.mark_read(db, user.id, n1.id)
        again = await notification_service.mark_read(db, user.id, n1.id)

        assert again.is_read is True
        assert await notification_service.unread_count(db, user.id) == 1

    async def test_mark_all_read(self, db, make_user, notification_service, create):
        user = await make_user()
        other = await make_user()
        await create(user)
        await create(user)
        await create(other)

        updated = await notification_service.mark_all_read(db, user.id)
        await db.commit()

        assert updated == 2
        assert await notification_service.unread_count(db, user.id) == 0
        assert await notification_service.unread_count(db, other.id) == 1

    async def test_scoped_to_owner(self, db, make_user, notification_service, create):
        owner = await make_user()
        intruder = await make_user()
        notification = await create(owner)

        with pytest.raises(NotFoundError):
            await notification_service.mark_read(db, intruder.id, notification.id)
        with pytest.raises(NotFoundError):
            await notification_service.dismiss(db, intruder.id, notification.id)
