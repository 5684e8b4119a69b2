"""Conversation session aggregate and its pure transition function.

All view-local state of a chat (messages, composition buffer, recording
and reveal flags, per-message proposal states) lives in one immutable
``ConversationSession``. ``transition(session, event)`` returns the next
session and a tuple of effects; the async driver interprets the effects
(execute an action, schedule a save, ...) and feeds the outcomes back as
new events. Identifiers and timestamps arrive inside events so the
function stays deterministic.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime

from ..actions import (
    ActionProposal,
    CacheKey,
    ExecutionResult,
    ProposalEvent,
    ProposalState,
    action_to_execute,
    advance,
    initial_state,
)
from ..actions.state_machine import restored_state
from ..capture import ImageAnalysis, compose_input_from_analysis
from ..config import AUTO_EXEC_FAILURE_TEXT, CANCEL_ACK_TEXT, SEED_MESSAGE_ID, SEED_MESSAGE_TEXT
from ..conversation import Conversation, Message

CONFIRM_FAILURE_TEMPLATE = "Failed to execute action: {reason}. Please try again."
CONFIRM_REJECTED_FALLBACK = "Failed to execute action. Please try again."


@dataclass(frozen=True)
class ConversationSession:
    """Snapshot of one chat session."""

    user_id: str | None = None
    messages: tuple[Message, ...] = ()
    proposal_states: Mapping[str, ProposalState] = field(default_factory=dict)
    input_text: str = ""
    selected_image: str | None = None
    is_loading: bool = False
    is_recording: bool = False
    is_transcribing: bool = False
    is_analyzing_image: bool = False
    is_streaming: bool = False
    streaming_text: str = ""
    executing: frozenset[str] = frozenset()
    conversation_id: str | None = None
    persistence_error: str | None = None

    @property
    def is_busy(self) -> bool:
        """True while a turn's generation, reveal or execution is in flight."""
        return self.is_loading or self.is_streaming or bool(self.executing)

    def state_of(self, message_id: str) -> ProposalState:
        return self.proposal_states.get(message_id, ProposalState.NONE)

    def find(self, message_id: str) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)


def seed_message(timestamp: datetime) -> Message:
    return Message(
        id=SEED_MESSAGE_ID,
        role="assistant",
        content=SEED_MESSAGE_TEXT,
        timestamp=timestamp,
    )


def fresh_session(user_id: str | None, timestamp: datetime) -> ConversationSession:
    """A new conversation holding only the seed message."""
    return ConversationSession(user_id=user_id, messages=(seed_message(timestamp),))


# Events

@dataclass(frozen=True)
class InputChanged:
    text: str


@dataclass(frozen=True)
class SendRequested:
    message_id: str
    timestamp: datetime
    text: str | None = None


@dataclass(frozen=True)
class RevealStarted:
    pass


@dataclass(frozen=True)
class RevealProgressed:
    text: str


@dataclass(frozen=True)
class ReplyCommitted:
    message_id: str
    content: str
    timestamp: datetime
    action: ActionProposal | None = None


@dataclass(frozen=True)
class ReplyFailed:
    message_id: str
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ConfirmRequested:
    message_id: str


@dataclass(frozen=True)
class CancelRequested:
    message_id: str
    ack_id: str
    timestamp: datetime


@dataclass(frozen=True)
class ExecutionSucceeded:
    message_id: str
    result: ExecutionResult
    notice_id: str
    timestamp: datetime


@dataclass(frozen=True)
class ExecutionFailed:
    """Execution was rejected (``raised=False``) or could not be attempted."""

    message_id: str
    reason: str
    raised: bool
    notice_id: str
    timestamp: datetime


@dataclass(frozen=True)
class RecordingStarted:
    pass


@dataclass(frozen=True)
class RecordingFailed:
    message_id: str
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class RecordingStopped:
    pass


@dataclass(frozen=True)
class TranscriptionSucceeded:
    text: str


@dataclass(frozen=True)
class TranscriptionFailed:
    message_id: str
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ImageAttached:
    image_url: str
    analyzing: bool = True


@dataclass(frozen=True)
class ImageAnalyzed:
    analysis: ImageAnalysis


@dataclass(frozen=True)
class ImageAnalysisFailed:
    pass


@dataclass(frozen=True)
class ImageCleared:
    pass


@dataclass(frozen=True)
class NewChatStarted:
    timestamp: datetime


@dataclass(frozen=True)
class ConversationLoaded:
    conversation: Conversation


@dataclass(frozen=True)
class ConversationDeleted:
    conversation_id: str
    timestamp: datetime


@dataclass(frozen=True)
class ConversationSaved:
    conversation_id: str


@dataclass(frozen=True)
class PersistenceFailed:
    reason: str


Event = (
    InputChanged | SendRequested | RevealStarted | RevealProgressed | ReplyCommitted
    | ReplyFailed | ConfirmRequested | CancelRequested | ExecutionSucceeded
    | ExecutionFailed | RecordingStarted | RecordingFailed | RecordingStopped
    | TranscriptionSucceeded | TranscriptionFailed | ImageAttached | ImageAnalyzed
    | ImageAnalysisFailed | ImageCleared | NewChatStarted | ConversationLoaded
    | ConversationDeleted | ConversationSaved | PersistenceFailed
)


# Effects

@dataclass(frozen=True)
class RequestReply:
    """Ask the orchestrator for a reply to the current history."""

    image_url: str | None = None


@dataclass(frozen=True)
class ExecuteAction:
    message_id: str
    action: ActionProposal


@dataclass(frozen=True)
class InvalidateCaches:
    keys: frozenset[CacheKey]


@dataclass(frozen=True)
class ScheduleSave:
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class ResetPersistence:
    """Drop pending saves and target the given conversation (None for new)."""

    conversation_id: str | None = None


Effect = RequestReply | ExecuteAction | InvalidateCaches | ScheduleSave | ResetPersistence

Transition = tuple[ConversationSession, tuple[Effect, ...]]


def _assistant(message_id: str, content: str, timestamp: datetime) -> Message:
    return Message(id=message_id, role="assistant", content=content, timestamp=timestamp)


def _append(session: ConversationSession, *messages: Message, **changes) -> Transition:
    """Append messages (and apply changes), scheduling a save."""
    updated = replace(session, messages=session.messages + messages, **changes)
    return updated, (ScheduleSave(updated.messages),)


def _set_state(
    states: Mapping[str, ProposalState],
    message_id: str,
    state: ProposalState
) -> dict[str, ProposalState]:
    new_states = dict(states)
    new_states[message_id] = state
    return new_states


def _replace_message(session: ConversationSession, message: Message) -> tuple[Message, ...]:
    return tuple(message if m.id == message.id else m for m in session.messages)


def transition(session: ConversationSession, event: Event) -> Transition:
    """Apply one event; return the next session and the effects to run.

    Events that do not apply in the current state (confirming an executed
    proposal, sending while busy, ...) return the session unchanged with
    no effects.
    """
    match event:
        case InputChanged(text=text):
            return replace(session, input_text=text), ()

        case SendRequested(message_id=message_id, timestamp=timestamp, text=text):
            content = session.input_text if text is None else text
            if session.is_busy or (not content.strip() and not session.selected_image):
                return session, ()
            user_message = Message(
                id=message_id,
                role="user",
                content=content,
                image_url=session.selected_image,
                timestamp=timestamp,
            )
            updated = replace(
                session,
                messages=session.messages + (user_message,),
                input_text="",
                selected_image=None,
                is_loading=True,
            )
            return updated, (
                ScheduleSave(updated.messages),
                RequestReply(image_url=session.selected_image),
            )

        case RevealStarted():
            return replace(session, is_streaming=True, streaming_text=""), ()

        case RevealProgressed(text=text):
            if not session.is_streaming:
                return session, ()
            return replace(session, streaming_text=text), ()

        case ReplyCommitted(message_id=message_id, content=content, timestamp=timestamp, action=action):
            state = initial_state(action)
            message = Message(
                id=message_id,
                role="assistant",
                content=content,
                timestamp=timestamp,
                action=action,
                requires_confirmation=state == ProposalState.PROPOSED_NEEDS_CONFIRM,
            )
            executing = session.executing
            if state == ProposalState.PROPOSED_AUTO_EXEC:
                executing = executing | {message_id}
            updated, effects = _append(
                session,
                message,
                is_loading=False,
                is_streaming=False,
                streaming_text="",
                executing=executing,
                proposal_states=_set_state(session.proposal_states, message_id, state),
            )
            if state == ProposalState.PROPOSED_AUTO_EXEC:
                effects += (ExecuteAction(message_id, action),)
            return updated, effects

        case ReplyFailed(message_id=message_id, content=content, timestamp=timestamp):
            return _append(
                session,
                _assistant(message_id, content, timestamp),
                is_loading=False,
                is_streaming=False,
                streaming_text="",
            )

        case ConfirmRequested(message_id=message_id):
            message = session.find(message_id)
            next_state = advance(session.state_of(message_id), ProposalEvent.CONFIRM)
            if message is None or message.action is None or next_state is None:
                return session, ()
            flagged = message.with_flags(confirmed=True, requires_confirmation=False)
            updated = replace(
                session,
                messages=_replace_message(session, flagged),
                proposal_states=_set_state(session.proposal_states, message_id, next_state),
                executing=session.executing | {message_id},
            )
            return updated, (
                ScheduleSave(updated.messages),
                ExecuteAction(message_id, action_to_execute(message.action)),
            )

        case CancelRequested(message_id=message_id, ack_id=ack_id, timestamp=timestamp):
            message = session.find(message_id)
            next_state = advance(session.state_of(message_id), ProposalEvent.CANCEL)
            if message is None or next_state is None:
                return session, ()
            flagged = message.with_flags(confirmed=False, requires_confirmation=False)
            cancelled = replace(
                session,
                messages=_replace_message(session, flagged),
                proposal_states=_set_state(session.proposal_states, message_id, next_state),
            )
            return _append(cancelled, _assistant(ack_id, CANCEL_ACK_TEXT, timestamp))

        case ExecutionSucceeded(message_id=message_id, result=result, notice_id=notice_id, timestamp=timestamp):
            previous = session.state_of(message_id)
            next_state = advance(previous, ProposalEvent.SUCCEEDED)
            done = replace(session, executing=session.executing - {message_id})

            # The mutation is committed even if the message is no longer shown
            effects: tuple[Effect, ...] = ()
            if result.affected_keys:
                effects += (InvalidateCaches(result.affected_keys | {CacheKey.STREAK}),)
            if next_state is None:
                return done, effects
            done = replace(
                done,
                proposal_states=_set_state(session.proposal_states, message_id, next_state),
            )

            # Auto-executed actions report their result; confirmed ones stay silent
            if previous == ProposalState.PROPOSED_AUTO_EXEC and result.message:
                done, save = _append(done, _assistant(notice_id, result.message, timestamp))
                effects += save
            return done, effects

        case ExecutionFailed(
            message_id=message_id, reason=reason, raised=raised,
            notice_id=notice_id, timestamp=timestamp
        ):
            previous = session.state_of(message_id)
            next_state = advance(previous, ProposalEvent.FAILED)
            done = replace(session, executing=session.executing - {message_id})
            if next_state is None:
                return done, ()
            done = replace(
                done,
                proposal_states=_set_state(session.proposal_states, message_id, next_state),
            )
            if previous == ProposalState.PROPOSED_AUTO_EXEC:
                text = AUTO_EXEC_FAILURE_TEXT
            elif raised:
                text = CONFIRM_FAILURE_TEMPLATE.format(reason=reason or "Unknown error")
            else:
                text = reason or CONFIRM_REJECTED_FALLBACK
            return _append(done, _assistant(notice_id, text, timestamp))

        case RecordingStarted():
            return replace(session, is_recording=True), ()

        case RecordingFailed(message_id=message_id, content=content, timestamp=timestamp):
            return _append(
                session,
                _assistant(message_id, content, timestamp),
                is_recording=False,
                is_transcribing=False,
            )

        case RecordingStopped():
            if not session.is_recording:
                return session, ()
            return replace(session, is_recording=False, is_transcribing=True), ()

        case TranscriptionSucceeded(text=text):
            return replace(session, is_transcribing=False, input_text=text), ()

        case TranscriptionFailed(message_id=message_id, content=content, timestamp=timestamp):
            return _append(
                session,
                _assistant(message_id, content, timestamp),
                is_recording=False,
                is_transcribing=False,
            )

        case ImageAttached(image_url=image_url, analyzing=analyzing):
            return replace(session, selected_image=image_url, is_analyzing_image=analyzing), ()

        case ImageAnalyzed(analysis=analysis):
            return replace(
                session,
                input_text=compose_input_from_analysis(session.input_text, analysis),
                is_analyzing_image=False,
            ), ()

        case ImageAnalysisFailed():
            return replace(session, is_analyzing_image=False), ()

        case ImageCleared():
            return replace(session, selected_image=None, is_analyzing_image=False), ()

        case NewChatStarted(timestamp=timestamp):
            return fresh_session(session.user_id, timestamp), (ResetPersistence(None),)

        case ConversationLoaded(conversation=conversation):
            states = {
                m.id: restored_state(m.action, m.requires_confirmation, m.confirmed)
                for m in conversation.messages
                if m.role == "assistant" and m.action is not None
            }
            loaded = ConversationSession(
                user_id=session.user_id,
                messages=tuple(conversation.messages),
                proposal_states=states,
                conversation_id=conversation.id,
            )
            return loaded, (ResetPersistence(conversation.id),)

        case ConversationDeleted(conversation_id=conversation_id, timestamp=timestamp):
            if conversation_id != session.conversation_id:
                return session, ()
            return fresh_session(session.user_id, timestamp), (ResetPersistence(None),)

        case ConversationSaved(conversation_id=conversation_id):
            return replace(session, conversation_id=conversation_id, persistence_error=None), ()

        case PersistenceFailed(reason=reason):
            return replace(session, persistence_error=reason), ()

    raise TypeError(f"Unknown session event: {event!r}")
