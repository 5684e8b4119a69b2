"""Async chat session driver.

Interprets the effects produced by ``transition`` against the real
collaborators: the turn orchestrator, the action executor, the typing
presenter, debounced persistence, capture adapters and the cache
invalidator.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from functools import partial
from uuid import uuid4

from ..actions import ActionExecutor, ActionProposal
from ..cache import CacheInvalidator
from ..capture import CaptureDevice, ImageAnalyzer, RecordingSession, Transcriber
from ..config import PERSIST_RETRY_DELAY, SAVE_QUIET_PERIOD
from ..conversation import ConversationStore, ConversationSummary
from ..domain import DailyContext, DomainStores, ProfileSnapshot
from ..errors import (
    CaptureError,
    ExecutionError,
    GenerationError,
    ImageAnalysisError,
    TranscriptionError,
)
from ..orchestrator import TurnOrchestrator
from ..persistence import DebouncedPersister
from ..presenter import TypingPresenter
from .state import (
    CancelRequested,
    ConfirmRequested,
    ConversationDeleted,
    ConversationLoaded,
    ConversationSaved,
    ConversationSession,
    Effect,
    Event,
    ExecuteAction,
    ExecutionFailed,
    ExecutionSucceeded,
    ImageAnalysisFailed,
    ImageAnalyzed,
    ImageAttached,
    ImageCleared,
    InputChanged,
    InvalidateCaches,
    NewChatStarted,
    PersistenceFailed,
    RecordingFailed,
    RecordingStarted,
    RecordingStopped,
    ReplyCommitted,
    ReplyFailed,
    RequestReply,
    ResetPersistence,
    RevealProgressed,
    RevealStarted,
    ScheduleSave,
    SendRequested,
    TranscriptionFailed,
    TranscriptionSucceeded,
    fresh_session,
    transition,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid4().hex


class ChatSession:
    """One user's interactive chat.

    Hidden design decisions:
    - Which effects run inline and which run as background tasks
    - How late outcomes from a previous conversation are discarded
    - How collaborator failures become conversation messages

    Auto-executed actions run as background tasks, independent of the
    reveal; ``wait_idle`` waits for them. A new turn is rejected while the
    previous turn's generation, reveal or executions are in flight.
    """

    def __init__(
        self,
        orchestrator: TurnOrchestrator,
        executor: ActionExecutor,
        store: ConversationStore,
        user_id: str,
        *,
        domain_stores: DomainStores | None = None,
        profile: ProfileSnapshot | None = None,
        presenter: TypingPresenter | None = None,
        invalidator: CacheInvalidator | None = None,
        capture_device: CaptureDevice | None = None,
        transcriber: Transcriber | None = None,
        image_analyzer: ImageAnalyzer | None = None,
        quiet_period: float = SAVE_QUIET_PERIOD,
        retry_delay: float = PERSIST_RETRY_DELAY,
        clock: Callable[[], datetime] = partial(datetime.now, timezone.utc),
        today: Callable[[], date] = date.today,
        on_change: Callable[[ConversationSession], None] | None = None
    ):
        self._orchestrator = orchestrator
        self._executor = executor
        self._store = store
        self._user_id = user_id
        self._domain_stores = domain_stores
        self.profile = profile
        self._presenter = presenter or TypingPresenter()
        self._invalidator = invalidator
        self._capture_device = capture_device
        self._transcriber = transcriber
        self._image_analyzer = image_analyzer
        self._clock = clock
        self._today = today
        self._on_change = on_change

        self._persister = DebouncedPersister(
            store,
            quiet_period=quiet_period,
            retry_delay=retry_delay,
            on_saved=lambda cid: self._dispatch(ConversationSaved(cid)),
            on_error=lambda e: self._dispatch(PersistenceFailed(str(e))),
        )
        self._recording: RecordingSession | None = None
        self._executions: dict[str, asyncio.Task] = {}
        self._state = fresh_session(user_id, clock())

        # Bumped whenever the active conversation changes
        self._epoch = 0

    @property
    def state(self) -> ConversationSession:
        return self._state

    @property
    def persister(self) -> DebouncedPersister:
        return self._persister

    def _dispatch(self, event: Event) -> tuple[Effect, ...]:
        self._state, effects = transition(self._state, event)
        if self._on_change is not None:
            self._on_change(self._state)
        for effect in effects:
            self._run(effect)
        return effects

    def _run(self, effect: Effect) -> None:
        match effect:
            case ScheduleSave(messages=messages):
                self._persister.schedule(self._user_id, messages)
            case ResetPersistence(conversation_id=conversation_id):
                self._persister.reset(conversation_id)
            case InvalidateCaches(keys=keys):
                if self._invalidator is not None:
                    self._invalidator.invalidate(keys)
            case ExecuteAction(message_id=message_id, action=action):
                task = asyncio.get_running_loop().create_task(
                    self._execute(message_id, action)
                )
                self._executions[message_id] = task
                task.add_done_callback(lambda _t, mid=message_id: self._executions.pop(mid, None))
            case RequestReply():
                # Driven by send()
                pass

    # Composition

    def set_input(self, text: str) -> None:
        self._dispatch(InputChanged(text))

    async def send(self, text: str | None = None) -> bool:
        """Send the composition buffer (or ``text``) as a user turn.

        Returns:
            False if the turn was rejected (busy, or nothing to send)
        """
        effects = self._dispatch(SendRequested(_new_id(), self._clock(), text))
        request = next((e for e in effects if isinstance(e, RequestReply)), None)
        if request is None:
            return False
        await self._run_turn(request.image_url, self._epoch)
        return True

    async def _load_daily(self) -> DailyContext | None:
        if self._domain_stores is None:
            return None
        try:
            return await self._domain_stores.get_daily_context(self._user_id, self._today())
        except Exception as e:
            logger.warning("Could not load daily context: %s", e)
            return None

    async def _run_turn(self, image_url: str | None, epoch: int) -> None:
        history = self._state.messages
        daily = await self._load_daily()

        try:
            reply = await self._orchestrator.reply(
                history, self.profile, daily, image_url=image_url, user_id=self._user_id
            )
        except GenerationError as e:
            logger.error("Turn failed: %s", e)
            if epoch == self._epoch:
                self._dispatch(ReplyFailed(_new_id(), e.user_message, self._clock()))
            return

        if epoch != self._epoch:
            logger.debug("Discarding reply for a conversation that is no longer active")
            return

        message_id = _new_id()
        self._dispatch(RevealStarted())

        def on_update(shown: str) -> None:
            if epoch == self._epoch:
                self._dispatch(RevealProgressed(shown))

        text = await self._presenter.reveal(reply.message, on_update)
        if epoch != self._epoch:
            return
        self._dispatch(ReplyCommitted(message_id, text, self._clock(), reply.action))

    # Proposals

    async def _execute(self, message_id: str, action: ActionProposal) -> None:
        try:
            result = await self._executor.execute(action, self._user_id, self._today())
        except ExecutionError as e:
            logger.error("Execution of %s failed: %s", action.type.value, e)
            self._dispatch(ExecutionFailed(
                message_id, e.user_message, True, _new_id(), self._clock()
            ))
            return

        if result.success:
            self._dispatch(ExecutionSucceeded(message_id, result, _new_id(), self._clock()))
        else:
            self._dispatch(ExecutionFailed(
                message_id, result.message, False, _new_id(), self._clock()
            ))

    async def confirm(self, message_id: str) -> bool:
        """Confirm a pending proposal and wait for its execution.

        Returns:
            False if the message has no pending proposal (a no-op)
        """
        effects = self._dispatch(ConfirmRequested(message_id))
        if not any(isinstance(e, ExecuteAction) for e in effects):
            return False
        task = self._executions.get(message_id)
        if task is not None:
            await task
        return True

    def cancel(self, message_id: str) -> bool:
        """Cancel a pending proposal. Returns False if nothing was pending."""
        before = self._state
        self._dispatch(CancelRequested(message_id, _new_id(), self._clock()))
        return self._state is not before

    # Capture

    async def start_recording(self, device: CaptureDevice | None = None) -> bool:
        """Acquire the microphone (or ``device``) and start recording.

        Returns:
            False if already recording or the device could not be acquired
        """
        device = device or self._capture_device
        if device is None or self._transcriber is None:
            raise ValueError("Recording requires a capture device and a transcriber")
        if self._recording is not None:
            return False

        recording = RecordingSession(device)
        try:
            await recording.start()
        except CaptureError as e:
            self._dispatch(RecordingFailed(_new_id(), e.user_message, self._clock()))
            return False

        self._recording = recording
        self._dispatch(RecordingStarted())
        return True

    async def stop_recording(self) -> bool:
        """Stop recording and transcribe into the composition buffer.

        Returns:
            True if the transcription replaced the composition buffer
        """
        recording = self._recording
        if recording is None:
            return False
        self._recording = None
        self._dispatch(RecordingStopped())

        try:
            audio = await recording.stop()
            text = await self._transcriber.transcribe(audio, self._user_id)
        except (CaptureError, TranscriptionError) as e:
            logger.error("Transcription error: %s", e)
            self._dispatch(TranscriptionFailed(_new_id(), e.user_message, self._clock()))
            return False
        finally:
            await recording.release()

        self._dispatch(TranscriptionSucceeded(text))
        return True

    async def attach_image(self, image_url: str) -> None:
        """Select an image and merge its description into the composition buffer.

        Analysis failures are logged and leave the buffer unchanged.
        """
        analyzing = self._image_analyzer is not None
        self._dispatch(ImageAttached(image_url, analyzing))
        if not analyzing:
            return

        try:
            analysis = await self._image_analyzer.analyze(image_url)
        except ImageAnalysisError as e:
            logger.error("Error analyzing image: %s", e)
            self._dispatch(ImageAnalysisFailed())
            return
        self._dispatch(ImageAnalyzed(analysis))

    def clear_image(self) -> None:
        self._dispatch(ImageCleared())

    # History

    async def new_chat(self) -> None:
        """Start a fresh conversation with only the seed message.

        A save pending for the current conversation is written first.
        """
        self._epoch += 1
        await self._persister.flush()
        self._dispatch(NewChatStarted(self._clock()))

    async def list_conversations(self) -> list[ConversationSummary]:
        return await self._store.list_conversations(self._user_id)

    async def load_conversation(self, conversation_id: str) -> bool:
        """Make a persisted conversation the active one.

        A save pending for the current conversation is written first.

        Returns:
            False if no such conversation exists for this user
        """
        if conversation_id == self._state.conversation_id:
            return True

        conversation = await self._store.get_conversation(self._user_id, conversation_id)
        if conversation is None:
            return False

        self._epoch += 1
        await self._persister.flush()
        self._dispatch(ConversationLoaded(conversation))
        return True

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation; deleting the active one starts a fresh chat.

        Raises:
            PersistenceError: If the store could not delete it
        """
        deleted = await self._store.delete(self._user_id, conversation_id)
        if conversation_id == self._state.conversation_id:
            self._epoch += 1
        self._dispatch(ConversationDeleted(conversation_id, self._clock()))
        return deleted

    # Lifecycle

    async def wait_idle(self) -> None:
        """Wait until no execution is in flight."""
        while self._executions:
            await asyncio.gather(*list(self._executions.values()))

    async def close(self) -> None:
        """Finish in-flight work, write any pending save and release capture."""
        await self.wait_idle()
        if self._recording is not None:
            await self._recording.abort()
            self._recording = None
        await self._persister.flush()
