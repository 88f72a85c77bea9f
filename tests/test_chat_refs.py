"""Unit tests for chat reference parsing and canonical pair ordering."""
import uuid

import pytest

from app.services.chat_refs import (
    PersistedChatRef,
    PreparationChatRef,
    canonical_pair,
    new_chat_id,
    parse_chat_ref,
    preparation_key,
)
from app.services.errors import ValidationError


class TestParseChatRef:

    def test_persisted_id(self):
        ref = parse_chat_ref("chat_1700000000000_ab12cd34")
        assert ref == PersistedChatRef(chat_id="chat_1700000000000_ab12cd34")

    def test_generated_id_is_persisted(self):
        assert isinstance(parse_chat_ref(new_chat_id()), PersistedChatRef)

    def test_preparation_key(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        ref = parse_chat_ref(f"{a}_{b}")
        assert isinstance(ref, PreparationChatRef)
        assert ref.involves(a) and ref.involves(b)
        assert ref.counterpart(a) == b
        assert ref.counterpart(b) == a
        assert not ref.involves(uuid.uuid4())

    @pytest.mark.parametrize(
        "raw",
        ["", "chat_", "not-a-chat", "abc_def", f"{uuid.uuid4()}", "a_b_c"],
    )
    def test_malformed_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_chat_ref(raw)

    def test_same_user_twice_rejected(self):
        a = uuid.uuid4()
        with pytest.raises(ValidationError):
            parse_chat_ref(f"{a}_{a}")


class TestCanonicalPair:

    def test_order_independent(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert canonical_pair(a, b) == canonical_pair(b, a)
        first, second = canonical_pair(a, b)
        assert str(first) < str(second)

    def test_preparation_key_is_symmetric(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert preparation_key(a, b) == preparation_key(b, a)
        assert parse_chat_ref(preparation_key(a, b)).key == preparation_key(a, b)
