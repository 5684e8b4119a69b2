"""In-memory conversation store.

Simple dict-based storage for session-only history.
Data is lost when the application exits.
"""

from collections.abc import Sequence
from datetime import datetime, timezone

from .base import ConversationStore
from .models import Conversation, ConversationSummary, Message


class InMemoryConversationStore(ConversationStore):
    """In-memory conversation store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""
        pass

    def _owned(self, user_id: str, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.summary() for c in owned]

    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation | None:
        conversation = self._owned(user_id, conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def upsert(
        self,
        user_id: str,
        messages: Sequence[Message],
        conversation_id: str | None = None
    ) -> str:
        existing = self._owned(user_id, conversation_id) if conversation_id else None
        if existing is not None:
            existing.messages = list(messages)
            existing.updated_at = datetime.now(timezone.utc)
            return existing.id

        conversation = Conversation(user_id=user_id, messages=list(messages))
        if conversation_id and conversation_id not in self._conversations:
            conversation.id = conversation_id
        self._conversations[conversation.id] = conversation
        return conversation.id

    async def delete(self, user_id: str, conversation_id: str) -> bool:
        if self._owned(user_id, conversation_id) is None:
            return False
        del self._conversations[conversation_id]
        return True

    @property
    def backend_type(self) -> str:
        return "memory"
