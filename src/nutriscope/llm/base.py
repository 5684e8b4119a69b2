from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, LLMResponse


class LLMProvider(ABC):
    """Generation collaborator behind the turn orchestrator and image analysis.

    Hidden design decisions:
    - SDK client construction and credentials
    - Translation of ``ChatMessage`` (system text, image references) into
      the vendor's wire format
    - How a JSON-only reply is requested

    Use as an async context manager to close the client when done.
    """

    # Whether the provider forwards a ``user`` identifier for abuse tracking
    accepts_user_id: bool = False

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs: Any
    ) -> LLMResponse:
        """Return one completion for the given conversation.

        Args:
            messages: System prompt followed by the conversation window
            model: Override for the provider's default model
            temperature: Sampling temperature
            max_tokens: Upper bound on generated tokens
            json_mode: Require the reply to be a single JSON object
            **kwargs: Passed through to the vendor SDK

        Raises:
            Exception: Whatever the vendor SDK raises; callers classify it
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP client."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Default model used when ``chat_completion`` gets no override."""

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        # httpx may raise "Event loop is closed" while tearing down at exit
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
