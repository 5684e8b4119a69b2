"""Conversation store module.

Provides persistent chat history per user and conversation id.
"""

from .base import ConversationStore
from .factory import create_conversation_store
from .models import Conversation, ConversationSummary, Message, derive_title

__all__ = [
    "Conversation",
    "ConversationStore",
    "ConversationSummary",
    "Message",
    "create_conversation_store",
    "derive_title",
]
