"""Typing presenter.

Reveals an already complete string one character at a time through
chained ``loop.call_later`` callbacks. Only the final string is ever
committed to the conversation; partial states are for display.
"""

import asyncio
from collections.abc import Callable, Iterator

from .config import (
    TYPING_DELAY_DEFAULT,
    TYPING_DELAY_MID_PUNCTUATION,
    TYPING_DELAY_NEWLINE,
    TYPING_DELAY_SENTENCE_END,
    TYPING_DELAY_SPACE,
    TYPING_INITIAL_DELAY,
)

SENTENCE_END = frozenset(".!?")
MID_PUNCTUATION = frozenset(",;")


class TypingPresenter:
    """Variable-cadence reveal of a known-length string.

    Args:
        speed: Multiplier applied to every delay (0 reveals without waiting)
        initial_delay: Delay before the first character, in seconds
    """

    def __init__(self, speed: float = 1.0, initial_delay: float = TYPING_INITIAL_DELAY):
        if speed < 0:
            raise ValueError(f"speed must be non-negative, got {speed}")
        self.speed = speed
        self.initial_delay = initial_delay

    def delay_for(self, char: str) -> float:
        """Delay after revealing ``char``, before the next character."""
        if char == " ":
            base = TYPING_DELAY_SPACE
        elif char in SENTENCE_END:
            base = TYPING_DELAY_SENTENCE_END
        elif char in MID_PUNCTUATION:
            base = TYPING_DELAY_MID_PUNCTUATION
        elif char == "\n":
            base = TYPING_DELAY_NEWLINE
        else:
            base = TYPING_DELAY_DEFAULT
        return base * self.speed

    def frames(self, text: str) -> Iterator[tuple[str, float]]:
        """Yield ``(partial_text, delay_after)`` for each character.

        Exactly ``len(text)`` frames; the last one is ``text`` itself.
        """
        for i, char in enumerate(text):
            yield text[:i + 1], self.delay_for(char)

    async def reveal(self, text: str, on_update: Callable[[str], None] | None = None) -> str:
        """Reveal ``text`` and return it once fully shown.

        Args:
            text: Complete string to reveal
            on_update: Called with each partial string, in order

        Returns:
            The full text
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future[str] = loop.create_future()
        frames = iter(list(self.frames(text)))

        def step() -> None:
            if done.done():
                return
            try:
                partial, delay = next(frames)
            except StopIteration:
                done.set_result(text)
                return
            if on_update is not None:
                try:
                    on_update(partial)
                except Exception as e:
                    done.set_exception(e)
                    return
            loop.call_later(delay, step)

        loop.call_later(self.initial_delay * self.speed, step)
        return await done
