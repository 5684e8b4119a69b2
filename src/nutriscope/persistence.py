"""Debounced conversation persistence.

Every mutation of the message list restarts a quiet-period timer; when it
expires the latest message list is upserted once. Failed writes are
retried with exponential backoff and then reported, never dropped
silently.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence

from .config import PERSIST_MAX_RETRIES, PERSIST_RETRY_DELAY, SAVE_QUIET_PERIOD
from .conversation import ConversationStore, Message
from .errors import PersistenceError

logger = logging.getLogger(__name__)


class DebouncedPersister:
    """Coalesces bursts of message-list mutations into one store write.

    Hidden design decisions:
    - Quiet period and timer restart on every mutation
    - Lazy creation: nothing is written until the list grows past the seed message
    - Retry policy for failed writes

    Saves are serialized, so the id returned by the first write is used by
    every later one. ``reset`` switches to another conversation and makes
    any save scheduled for the previous one a no-op.
    """

    def __init__(
        self,
        store: ConversationStore,
        quiet_period: float = SAVE_QUIET_PERIOD,
        max_retries: int = PERSIST_MAX_RETRIES,
        retry_delay: float = PERSIST_RETRY_DELAY,
        on_saved: Callable[[str], None] | None = None,
        on_error: Callable[[PersistenceError], None] | None = None
    ):
        self._store = store
        self._quiet_period = quiet_period
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._on_saved = on_saved
        self._on_error = on_error

        self._conversation_id: str | None = None
        self._generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._pending: tuple[str, tuple[Message, ...], int] | None = None
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

        self.last_error: PersistenceError | None = None
        self.write_count = 0

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def reset(self, conversation_id: str | None = None) -> None:
        """Drop pending work and target another conversation (or a new one)."""
        self.cancel()
        self._generation += 1
        self._conversation_id = conversation_id
        self.last_error = None

    def schedule(self, user_id: str | None, messages: Sequence[Message]) -> None:
        """Record a mutation and restart the quiet-period timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        if not user_id:
            self._pending = None
            return

        self._pending = (user_id, tuple(messages), self._generation)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._quiet_period, self._fire)

    def cancel(self) -> None:
        """Drop a scheduled save without writing it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None

    def _fire(self) -> asyncio.Task | None:
        self._handle = None
        pending = self._pending
        self._pending = None
        if pending is None:
            return None

        task = asyncio.get_running_loop().create_task(self._save(*pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def flush(self) -> None:
        """Write a scheduled save now and wait for all writes to finish."""
        if self._handle is not None:
            self._handle.cancel()
        self._fire()
        await self.wait()

    async def wait(self) -> None:
        """Wait for in-flight writes."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _save(self, user_id: str, messages: tuple[Message, ...], generation: int) -> None:
        if len(messages) <= 1:
            return

        async with self._lock:
            if generation != self._generation:
                logger.debug("Dropping save for a conversation that is no longer active")
                return

            attempt = 0
            while True:
                try:
                    conversation_id = await self._store.upsert(
                        user_id, messages, self._conversation_id
                    )
                    break
                except Exception as e:
                    error = e if isinstance(e, PersistenceError) else PersistenceError(str(e))
                    if not error.is_retryable() or attempt >= self._max_retries:
                        self._report(error, attempt)
                        return
                    delay = self._retry_delay * (2 ** attempt)
                    attempt += 1
                    logger.warning(
                        "Conversation save failed (attempt %d/%d), retrying in %.2fs: %s",
                        attempt, self._max_retries, delay, error
                    )
                    await asyncio.sleep(delay)

            self.write_count += 1
            self.last_error = None
            current = generation == self._generation
            if current:
                self._conversation_id = conversation_id
            logger.debug("Saved %d messages to conversation %s", len(messages), conversation_id)

        if current and self._on_saved is not None:
            self._on_saved(conversation_id)

    def _report(self, error: PersistenceError, attempts: int) -> None:
        logger.error("Conversation save failed after %d retries: %s", attempts, error)
        self.last_error = error
        if self._on_error is not None:
            self._on_error(error)
