"""Anthropic Messages API provider."""

from typing import Any

from anthropic import AsyncAnthropic

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse

JSON_ONLY_INSTRUCTION = "Respond with a single JSON object and nothing else."

# The Messages API has no default for max_tokens
DEFAULT_MAX_TOKENS = 4096


def _to_anthropic_content(msg: ChatMessage) -> str | list[dict[str, Any]]:
    """Plain text, or an image block followed by a text block for a user image."""
    if msg.role != "user" or not msg.image_url:
        return msg.content
    return [
        {"type": "image", "source": {"type": "url", "url": msg.image_url}},
        {"type": "text", "text": msg.content or "Describe this image."},
    ]


def _split_system(messages: list[ChatMessage]) -> tuple[list[str], list[dict[str, Any]]]:
    """Separate system text (a top-level parameter here) from the turns."""
    system: list[str] = []
    turns: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "system":
            system.append(msg.content)
        else:
            turns.append({"role": msg.role, "content": _to_anthropic_content(msg)})
    return system, turns


class AnthropicProvider(LLMProvider):
    """Claude provider.

    Hidden design decisions:
    - System prompt moved out of the message list
    - JSON replies requested by instruction, there is no response format switch
    - Image references sent as URL source blocks
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncAnthropic(api_key=api_key, base_url=base_url, **client_kwargs)

    @property
    def model(self) -> str:
        return self._model

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs: Any
    ) -> LLMResponse:
        system, turns = _split_system(messages)
        if json_mode:
            system.append(JSON_ONLY_INSTRUCTION)

        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": turns,
            "temperature": temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            **kwargs
        }
        if system:
            params["system"] = "\n\n".join(system)

        response = await self._client.messages.create(**params)

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        text = "".join(block.text for block in response.content if hasattr(block, "text"))
        return LLMResponse(content=text, model=response.model, usage=usage)

    async def close(self) -> None:
        await self._client.close()
