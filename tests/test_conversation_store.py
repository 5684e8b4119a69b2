"""Tests for conversation store backends."""
import asyncio
from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from nutriscope.actions import ActionProposal, ActionType
from nutriscope.conversation import Message, create_conversation_store
from nutriscope.conversation.models import derive_title


def _conversation(first_user: str = "I had oatmeal for breakfast") -> list[Message]:
    return [
        Message(id="1", role="assistant", content="Hi!"),
        Message(id="u1", role="user", content=first_user),
        Message(
            id="a1",
            role="assistant",
            content="Shall I log it?",
            action=ActionProposal(type=ActionType.LOG_MEAL, data={"calories": 300},
                                  requires_confirmation=True),
            requires_confirmation=True,
        ),
    ]


class TestDeriveTitle:
    """Tests for conversation titles."""

    def test_short_first_message(self):
        assert derive_title(None, _conversation("Lunch ideas?")) == "Lunch ideas?"

    def test_long_first_message_is_truncated(self):
        text = "x" * 60
        assert derive_title(None, _conversation(text)) == "x" * 50 + "..."

    def test_exactly_fifty_characters_has_no_ellipsis(self):
        text = "y" * 50
        assert derive_title(None, _conversation(text)) == text

    def test_placeholder_without_user_message(self):
        assert derive_title(None, [Message(role="assistant", content="Hi!")]) == "New Chat"

    def test_stored_title_wins(self):
        assert derive_title("Breakfast log", _conversation()) == "Breakfast log"

    @given(st.text(min_size=1, max_size=120))
    def test_title_length_bound(self, text: str):
        """Property test: titles never exceed 50 characters plus the ellipsis."""
        title = derive_title(None, _conversation(text))
        assert len(title) <= 53
        assert text.startswith(title.removesuffix("..."))


class StoreContract:
    """Shared behaviour every backend must satisfy."""

    @pytest.fixture
    def store(self):
        raise NotImplementedError

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        """Test that messages, actions and flags survive a save and load."""
        messages = _conversation()

        conversation_id = await store.upsert("user-1", messages)
        loaded = await store.get_conversation("user-1", conversation_id)

        assert loaded is not None
        assert loaded.id == conversation_id
        assert [m.id for m in loaded.messages] == ["1", "u1", "a1"]
        restored = loaded.messages[2]
        assert restored.action.type == ActionType.LOG_MEAL
        assert restored.action.data == {"calories": 300}
        assert restored.requires_confirmation is True
        assert restored.confirmed is None

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, store):
        conversation_id = await store.upsert("user-1", _conversation())
        await store.upsert("user-1", _conversation(), conversation_id)

        loaded = await store.get_conversation("user-1", conversation_id)
        summary = (await store.list_conversations("user-1"))[0]

        assert loaded.updated_at.utcoffset() == timedelta(0)
        assert loaded.messages[0].timestamp.utcoffset() == timedelta(0)
        assert summary.updated_at.utcoffset() == timedelta(0)

    @pytest.mark.asyncio
    async def test_upsert_replaces_messages(self, store):
        conversation_id = await store.upsert("user-1", _conversation()[:2])

        same_id = await store.upsert("user-1", _conversation(), conversation_id)

        assert same_id == conversation_id
        loaded = await store.get_conversation("user-1", conversation_id)
        assert len(loaded.messages) == 3

    @pytest.mark.asyncio
    async def test_list_is_most_recent_first(self, store):
        first = await store.upsert("user-1", _conversation("first chat"))
        await asyncio.sleep(0.01)
        second = await store.upsert("user-1", _conversation("second chat"))
        await asyncio.sleep(0.01)
        await store.upsert("user-1", _conversation("first chat again"), first)

        summaries = await store.list_conversations("user-1")

        assert [s.id for s in summaries] == [first, second]
        assert summaries[0].title == "first chat again"
        assert summaries[0].message_count == 3

    @pytest.mark.asyncio
    async def test_other_users_cannot_see_or_delete(self, store):
        conversation_id = await store.upsert("user-1", _conversation())

        assert await store.get_conversation("user-2", conversation_id) is None
        assert await store.list_conversations("user-2") == []
        assert await store.delete("user-2", conversation_id) is False
        assert await store.get_conversation("user-1", conversation_id) is not None

    @pytest.mark.asyncio
    async def test_foreign_id_does_not_overwrite(self, store):
        conversation_id = await store.upsert("user-1", _conversation())

        other_id = await store.upsert("user-2", _conversation("mine"), conversation_id)

        assert other_id != conversation_id
        original = await store.get_conversation("user-1", conversation_id)
        assert original.messages[1].content == "I had oatmeal for breakfast"

    @pytest.mark.asyncio
    async def test_delete(self, store):
        conversation_id = await store.upsert("user-1", _conversation())

        assert await store.delete("user-1", conversation_id) is True
        assert await store.get_conversation("user-1", conversation_id) is None
        assert await store.delete("user-1", conversation_id) is False


class TestInMemoryStore(StoreContract):
    """Tests for InMemoryConversationStore."""

    @pytest.fixture
    def store(self, memory_store):
        return memory_store

    def test_backend_type(self, memory_store):
        assert memory_store.backend_type == "memory"


class TestSQLiteStore(StoreContract):
    """Tests for SQLiteConversationStore."""

    @pytest.fixture
    def store(self, sqlite_store):
        return sqlite_store

    @pytest.mark.asyncio
    async def test_survives_reconnect(self, tmp_path):
        path = tmp_path / "history.db"
        store = create_conversation_store("sqlite", path=path)
        await store.connect()
        conversation_id = await store.upsert("user-1", _conversation())
        await store.disconnect()

        reopened = create_conversation_store("sqlite", path=path)
        await reopened.connect()
        try:
            loaded = await reopened.get_conversation("user-1", conversation_id)
        finally:
            await reopened.disconnect()

        assert loaded is not None
        assert loaded.display_title == "I had oatmeal for breakfast"


class TestFactory:
    """Tests for create_conversation_store."""

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_conversation_store("postgres")
