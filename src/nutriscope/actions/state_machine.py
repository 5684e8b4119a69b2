"""Per-message proposal lifecycle.

    NONE
    PROPOSED_AUTO_EXEC ──────────────────────────┐
    PROPOSED_NEEDS_CONFIRM ─confirm─> CONFIRMED ─┼─succeeded─> EXECUTED
            └──────cancel──> CANCELLED           └─failed────> FAILED

Terminal states (EXECUTED, CANCELLED, FAILED) accept no further events,
and neither does CONFIRMED except for the execution outcome. A failed
execution is never moved back to PROPOSED_NEEDS_CONFIRM.
"""

from enum import Enum

from .models import ActionProposal, ActionType


class ProposalState(str, Enum):
    """Lifecycle state of the proposal attached to one message."""

    NONE = "none"
    PROPOSED_AUTO_EXEC = "proposed_auto_exec"
    PROPOSED_NEEDS_CONFIRM = "proposed_needs_confirm"
    CONFIRMED = "confirmed"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ProposalEvent(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: dict[tuple[ProposalState, ProposalEvent], ProposalState] = {
    (ProposalState.PROPOSED_NEEDS_CONFIRM, ProposalEvent.CONFIRM): ProposalState.CONFIRMED,
    (ProposalState.PROPOSED_NEEDS_CONFIRM, ProposalEvent.CANCEL): ProposalState.CANCELLED,
    (ProposalState.CONFIRMED, ProposalEvent.SUCCEEDED): ProposalState.EXECUTED,
    (ProposalState.CONFIRMED, ProposalEvent.FAILED): ProposalState.FAILED,
    (ProposalState.PROPOSED_AUTO_EXEC, ProposalEvent.SUCCEEDED): ProposalState.EXECUTED,
    (ProposalState.PROPOSED_AUTO_EXEC, ProposalEvent.FAILED): ProposalState.FAILED,
}

TERMINAL_STATES = frozenset({
    ProposalState.EXECUTED,
    ProposalState.CANCELLED,
    ProposalState.FAILED,
})


def initial_state(action: ActionProposal | None) -> ProposalState:
    """State of a freshly committed assistant message."""
    if action is None or not action.is_actionable:
        return ProposalState.NONE
    if action.requires_confirmation:
        return ProposalState.PROPOSED_NEEDS_CONFIRM
    return ProposalState.PROPOSED_AUTO_EXEC


def advance(state: ProposalState, event: ProposalEvent) -> ProposalState | None:
    """Next state, or None when the event does not apply (a no-op)."""
    return _TRANSITIONS.get((state, event))


def restored_state(
    action: ActionProposal | None,
    requires_confirmation: bool,
    confirmed: bool | None
) -> ProposalState:
    """Best-effort state for a message loaded from history.

    Persisted messages carry only the two flags; a proposal that was
    confirmed or auto-executed is restored as executed and never re-run.
    """
    if action is None or not action.is_actionable:
        return ProposalState.NONE
    if requires_confirmation:
        return ProposalState.PROPOSED_NEEDS_CONFIRM
    if confirmed is False:
        return ProposalState.CANCELLED
    return ProposalState.EXECUTED


def action_to_execute(action: ActionProposal) -> ActionProposal:
    """Action actually sent to the executor after confirmation.

    A confirmed ``generate_recipe`` is saved as ``save_recipe`` with the
    same recipe payload.
    """
    if action.type == ActionType.GENERATE_RECIPE:
        return action.as_save_recipe()
    return action
