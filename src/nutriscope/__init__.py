"""
NutriScope: conversational logging of meals, workouts and water intake.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .actions import (
    ActionExecutor,
    ActionProposal,
    ActionType,
    CacheKey,
    ExecutionResult,
    affected_keys_for,
)
from .conversation import Conversation, ConversationStore, Message, create_conversation_store
from .orchestrator import TurnOrchestrator, TurnReply
from .session import ChatSession, ConversationSession, transition

__all__ = [
    "ActionExecutor",
    "ActionProposal",
    "ActionType",
    "CacheKey",
    "ChatSession",
    "Conversation",
    "ConversationSession",
    "ConversationStore",
    "ExecutionResult",
    "Message",
    "TurnOrchestrator",
    "TurnReply",
    "affected_keys_for",
    "create_conversation_store",
    "transition",
]
