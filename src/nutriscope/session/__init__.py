"""Chat session state, transitions and the async driver."""

from .chat import ChatSession
from .state import ConversationSession, fresh_session, seed_message, transition

__all__ = [
    "ChatSession",
    "ConversationSession",
    "fresh_session",
    "seed_message",
    "transition",
]
