"""Action proposals, their confirmation lifecycle and execution."""

from .cache_keys import AFFECTED_KEYS, affected_keys_for
from .executor import ActionExecutor
from .models import (
    ActionProposal,
    ActionType,
    CacheKey,
    ExecutionResult,
    MealData,
    WaterData,
    WorkoutData,
)
from .state_machine import ProposalEvent, ProposalState, action_to_execute, advance, initial_state

__all__ = [
    "AFFECTED_KEYS",
    "ActionExecutor",
    "ActionProposal",
    "ActionType",
    "CacheKey",
    "ExecutionResult",
    "MealData",
    "ProposalEvent",
    "ProposalState",
    "WaterData",
    "WorkoutData",
    "action_to_execute",
    "advance",
    "affected_keys_for",
    "initial_state",
]
