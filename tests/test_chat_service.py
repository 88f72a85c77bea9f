"""Tests for ChatService — preparation chat promotion, fan-out and read receipts."""
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select, update

from app.models.chat import Chat, Message
from app.models.like import Like
from app.models.notification import Notification
from app.realtime import chat_room, user_room
from app.services.chat_refs import preparation_key
from app.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.services.sql import insert_ignore


async def _chat_count(db):
    return (await db.execute(select(func.count(Chat.id)))).scalar_one()


class TestPromotion:

    async def test_first_message_promotes_preparation_chat(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        key = preparation_key(a.id, b.id)

        result = await chat_service.send_message(db, a.id, key, "Hey Bob!")

        assert result["is_new_chat"] is True
        chat_id = result["chat_id"]
        assert chat_id.startswith("chat_")
        assert result["message"]["content"] == "Hey Bob!"
        assert result["message"]["is_own"] is True
        assert await _chat_count(db) == 1

        # Both like rows point at the new chat.
        likes = (
            await db.execute(select(Like).execution_options(populate_existing=True))
        ).scalars().all()
        assert {l.chat_id for l in likes} == {chat_id}

        sender_created = events.to_room(user_room(a.id), "new_chat_created")
        receiver_created = events.to_room(user_room(b.id), "new_chat_created")
        assert len(sender_created) == 1 and len(receiver_created) == 1
        assert sender_created[0]["unread_count"] == 0
        assert receiver_created[0]["unread_count"] == 1
        assert sender_created[0]["other_user"]["id"] == str(b.id)
        assert receiver_created[0]["other_user"]["id"] == str(a.id)
        assert receiver_created[0]["last_message"] == "Hey Bob!"

        assert events.to_room(user_room(a.id), "match_promoted") == [
            {"user_id": str(b.id), "chat_id": chat_id}
        ]
        assert events.to_room(user_room(b.id), "match_promoted") == [
            {"user_id": str(a.id), "chat_id": chat_id}
        ]
        assert len(events.to_room(chat_room(chat_id), "new_message")) == 1
        assert events.named("chat_activated") == []

        message_notes = (
            await db.execute(
                select(Notification).where(
                    Notification.user_id == b.id, Notification.type == "message"
                )
            )
        ).scalars().all()
        assert len(message_notes) == 1

    async def test_second_send_on_preparation_key_reuses_chat(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        key = preparation_key(a.id, b.id)

        first = await chat_service.send_message(db, a.id, key, "hi")
        second = await chat_service.send_message(db, b.id, key, "hello")

        assert second["is_new_chat"] is False
        assert second["chat_id"] == first["chat_id"]
        assert await _chat_count(db) == 1
        assert len(events.named("new_chat_created")) == 2
        assert len(events.named("match_promoted")) == 2

        activated_for_a = events.to_room(user_room(a.id), "chat_activated")
        activated_for_b = events.to_room(user_room(b.id), "chat_activated")
        assert activated_for_a[0]["unread_count"] == 1
        assert activated_for_b[0]["unread_count"] == 0

    async def test_race_loser_gets_existing_chat(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        # Another request already inserted the row for this pair.
        first, second = sorted((a.id, b.id), key=str)
        assert await insert_ignore(
            db, Chat, {"id": "chat_1_deadbeef", "user1_id": first, "user2_id": second},
            ["user1_id", "user2_id"],
        )
        await db.commit()

        result = await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "hi")

        assert result["chat_id"] == "chat_1_deadbeef"
        assert result["is_new_chat"] is False
        assert await _chat_count(db) == 1
        assert events.named("new_chat_created") == []
        assert len(events.named("chat_activated")) == 2

    async def test_rolled_back_winner_is_a_conflict(self, db, matched_pair, chat_service, monkeypatch):
        a, b = await matched_pair()
        # Our insert lost to a row that is gone by the time we read it back.
        monkeypatch.setattr("app.services.chat_service.insert_ignore", AsyncMock(return_value=False))

        with pytest.raises(ConflictError) as excinfo:
            await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "hi")

        assert excinfo.value.status_code == 409
        assert await _chat_count(db) == 0

    async def test_insert_ignore_is_idempotent(self, db, make_user):
        a = await make_user()
        b = await make_user()
        first, second = sorted((a.id, b.id), key=str)
        values = {"user1_id": first, "user2_id": second}

        assert await insert_ignore(db, Chat, {"id": "chat_1_aaaa", **values}, ["user1_id", "user2_id"])
        assert not await insert_ignore(db, Chat, {"id": "chat_2_bbbb", **values}, ["user1_id", "user2_id"])
        assert await _chat_count(db) == 1

    async def test_unmatched_pair_cannot_chat(self, db, make_user, like_service, chat_service):
        a = await make_user()
        b = await make_user()
        await like_service.record_interaction(db, a.id, b.id, "like")

        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "hi")
        assert await _chat_count(db) == 0

    async def test_outsider_cannot_use_preparation_key(self, db, matched_pair, make_user, chat_service):
        a, b = await matched_pair()
        outsider = await make_user()
        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, outsider.id, preparation_key(a.id, b.id), "hi")

    async def test_empty_message_rejected(self, db, matched_pair, chat_service):
        a, b = await matched_pair()
        with pytest.raises(ValidationError):
            await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "   ")

    async def test_start_chat_without_message(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()

        chat, created = await chat_service.start_chat(db, a.id, b.id)
        again, created_again = await chat_service.start_chat(db, b.id, a.id)

        assert created is True and created_again is False
        assert again.id == chat.id
        payloads = events.to_room(user_room(b.id), "new_chat_created")
        assert len(payloads) == 1
        assert payloads[0]["unread_count"] == 0
        assert payloads[0]["last_message"] is None


class TestPersistedChat:

    async def test_send_to_persisted_chat(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]

        result = await chat_service.send_message(db, a.id, chat_id, "two")

        assert result["is_new_chat"] is False
        receiver = events.to_room(user_room(b.id), "chat_activated")
        assert receiver[-1]["unread_count"] == 2
        assert receiver[-1]["last_message"] == "two"
        assert events.to_room(user_room(a.id), "chat_activated")[-1]["unread_count"] == 0
        assert len(events.to_room(chat_room(chat_id), "new_message")) == 2

    async def test_non_participant_rejected(self, db, matched_pair, make_user, chat_service):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]
        outsider = await make_user()

        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, outsider.id, chat_id, "let me in")
        with pytest.raises(ForbiddenError):
            await chat_service.get_messages(db, outsider.id, chat_id)

    async def test_chat_without_match_rejects_messages(self, db, matched_pair, chat_service):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]
        await db.execute(update(Like).values(is_mutual=False))
        await db.commit()

        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, b.id, chat_id, "two")

    async def test_unknown_chat(self, db, make_user, chat_service):
        a = await make_user()
        with pytest.raises(NotFoundError):
            await chat_service.send_message(db, a.id, "chat_1_missing", "hi")


class TestMessagesAndReads:

    async def test_get_messages_for_preparation_key_before_promotion(self, db, matched_pair, chat_service):
        a, b = await matched_pair()
        assert await chat_service.get_messages(db, a.id, preparation_key(a.id, b.id)) == []

    async def test_get_messages_marks_ownership(self, db, matched_pair, chat_service):
        a, b = await matched_pair()
        key = preparation_key(a.id, b.id)
        chat_id = (await chat_service.send_message(db, a.id, key, "from a"))["chat_id"]
        await chat_service.send_message(db, b.id, chat_id, "from b")

        messages = await chat_service.get_messages(db, b.id, chat_id)

        assert [m["content"] for m in messages] == ["from a", "from b"]
        assert [m["is_own"] for m in messages] == [False, True]
        # The preparation key resolves to the same history once promoted.
        assert await chat_service.get_messages(db, b.id, key) == messages

    async def test_mark_read_pushes_receipt_once(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]
        await chat_service.send_message(db, a.id, chat_id, "two")

        _, read_ids = await chat_service.mark_read(db, b.id, chat_id)
        _, again = await chat_service.mark_read(db, b.id, chat_id)

        assert len(read_ids) == 2
        assert again == []
        receipts = events.to_room(user_room(a.id), "messages_read")
        assert receipts == [{"chat_id": chat_id, "message_ids": read_ids, "reader_id": str(b.id)}]
        unread = await db.execute(
            select(func.count(Message.id)).where(Message.is_read.is_(False))
        )
        assert unread.scalar_one() == 0

    async def test_mark_read_via_preparation_key(self, db, matched_pair, make_user, chat_service, events):
        a, b = await matched_pair()
        key = preparation_key(a.id, b.id)
        assert await chat_service.mark_read(db, b.id, key) == (None, [])

        sent = await chat_service.send_message(db, a.id, key, "one")
        chat_id, read_ids = await chat_service.mark_read(db, b.id, key)

        assert chat_id == sent["chat_id"]
        assert read_ids == [sent["message"]["id"]]
        assert events.to_room(user_room(a.id), "messages_read") == [
            {"chat_id": chat_id, "message_ids": read_ids, "reader_id": str(b.id)}
        ]
        outsider = await make_user()
        with pytest.raises(ForbiddenError):
            await chat_service.mark_read(db, outsider.id, key)

    async def test_mark_read_ignores_own_messages(self, db, matched_pair, chat_service, events):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]

        _, read_ids = await chat_service.mark_read(db, a.id, chat_id)

        assert read_ids == []
        assert events.named("messages_read") == []

    async def test_list_chats(self, db, matched_pair, make_user, like_service, chat_service):
        a, b = await matched_pair()
        c = await make_user(first_name="Cara")
        await like_service.record_interaction(db, a.id, c.id, "like")
        await like_service.record_interaction(db, c.id, a.id, "like")

        with_b = (await chat_service.send_message(db, b.id, preparation_key(a.id, b.id), "b1"))["chat_id"]
        await chat_service.send_message(db, b.id, with_b, "b2")
        with_c = (await chat_service.send_message(db, c.id, preparation_key(a.id, c.id), "c1"))["chat_id"]

        chats = await chat_service.list_chats(db, a.id)

        assert [chat["id"] for chat in chats] == [with_c, with_b]
        by_id = {chat["id"]: chat for chat in chats}
        assert by_id[with_b]["unread_count"] == 2
        assert by_id[with_b]["last_message"] == "b2"
        assert by_id[with_c]["other_user"]["name"] == "Cara Test"

        assert [chat["id"] for chat in await chat_service.list_chats(db, b.id)] == [with_b]
        assert (await chat_service.list_chats(db, b.id))[0]["unread_count"] == 0


class TestDeleteChat:

    async def test_delete_chat(self, db, matched_pair, chat_service, like_service, events):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]

        await chat_service.delete_chat(db, b.id, chat_id)

        assert await _chat_count(db) == 0
        messages = await db.execute(select(func.count(Message.id)))
        assert messages.scalar_one() == 0
        match = await like_service.get_match(db, a.id, b.id)
        assert match["has_chat"] is False
        for user in (a, b):
            assert events.to_room(user_room(user.id), "chat_deleted") == [
                {"chat_id": chat_id, "reason": "deleted"}
            ]

    async def test_delete_requires_participant(self, db, matched_pair, make_user, chat_service):
        a, b = await matched_pair()
        chat_id = (await chat_service.send_message(db, a.id, preparation_key(a.id, b.id), "one"))["chat_id"]
        outsider = await make_user()
        with pytest.raises(ForbiddenError):
            await chat_service.delete_chat(db, outsider.id, chat_id)
        with pytest.raises(NotFoundError):
            await chat_service.delete_chat(db, a.id, f"chat_0_{uuid.uuid4().hex[:8]}")
