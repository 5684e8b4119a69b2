"""Data models for conversations.

These models define the structure of chat messages and conversations,
independent of the storage backend used.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from functools import partial
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..actions.models import ActionProposal
from ..config import TITLE_ELLIPSIS, TITLE_MAX_LENGTH, TITLE_PLACEHOLDER


class Message(BaseModel):
    """A single chat message.

    Immutable after creation except for the ``confirmed`` and
    ``requires_confirmation`` flags, which change through ``with_flags``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: Literal["user", "assistant"]
    content: str = ""
    image_url: str | None = None
    timestamp: datetime = Field(default_factory=partial(datetime.now, timezone.utc))
    action: ActionProposal | None = None
    requires_confirmation: bool = False
    confirmed: bool | None = None

    def with_flags(self, *, confirmed: bool, requires_confirmation: bool) -> "Message":
        """Return a copy with updated confirmation flags."""
        return self.model_copy(update={
            "confirmed": confirmed,
            "requires_confirmation": requires_confirmation,
        })


def derive_title(title: str | None, messages: Sequence[Message]) -> str:
    """Human-readable title for a conversation.

    Uses the stored title if present, else the first user message truncated
    to ``TITLE_MAX_LENGTH`` characters (ellipsis only when truncated), else a
    placeholder.
    """
    if title:
        return title
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is not None:
        prefix = first_user.content[:TITLE_MAX_LENGTH]
        if len(prefix) < len(first_user.content):
            return prefix + TITLE_ELLIPSIS
        return prefix
    return TITLE_PLACEHOLDER


class Conversation(BaseModel):
    """A persisted conversation owned by one user."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    title: str | None = None
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))
    updated_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))

    @property
    def display_title(self) -> str:
        return derive_title(self.title, self.messages)

    def summary(self) -> "ConversationSummary":
        return ConversationSummary(
            id=self.id,
            title=self.display_title,
            message_count=len(self.messages),
            updated_at=self.updated_at,
        )


class ConversationSummary(BaseModel):
    """Lightweight listing entry for the history view."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    message_count: int
    updated_at: datetime
