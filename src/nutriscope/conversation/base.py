"""Abstract base class for conversation store backends.

This module defines the interface for conversation storage.
The abstraction hides:
- Storage format (JSON, SQLite, etc.)
- Persistence mechanism (file, database, in-memory)
- Connection management

Backends raise ``PersistenceError`` when a read or write fails.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .models import Conversation, ConversationSummary, Message


class ConversationStore(ABC):
    """Abstract conversation store.

    Every operation is scoped to a user; a conversation owned by another
    user behaves as if it did not exist.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the store backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store backend gracefully."""

    @abstractmethod
    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """List a user's conversations, most recently updated first."""

    @abstractmethod
    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation | None:
        """Load one conversation with its full message list."""

    @abstractmethod
    async def upsert(
        self,
        user_id: str,
        messages: Sequence[Message],
        conversation_id: str | None = None
    ) -> str:
        """Create a conversation (no id) or replace its messages; return the id."""

    @abstractmethod
    async def delete(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation. Returns False if it did not exist."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""
