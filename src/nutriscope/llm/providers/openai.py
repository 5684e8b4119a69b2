from typing import Any

from openai import AsyncOpenAI

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse


def _to_openai_message(msg: ChatMessage) -> dict[str, Any]:
    """Chat Completions message; a user image becomes a text part plus an image_url part."""
    if msg.role != "user" or not msg.image_url:
        return {"role": msg.role, "content": msg.content}
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": msg.content or ""},
            {"type": "image_url", "image_url": {"url": msg.image_url}},
        ],
    }


def _usage(completion: Any) -> dict[str, int] | None:
    if not completion.usage:
        return None
    return {
        "prompt_tokens": completion.usage.prompt_tokens,
        "completion_tokens": completion.usage.completion_tokens,
        "total_tokens": completion.usage.total_tokens,
    }


class OpenAIProvider(LLMProvider):
    """Chat Completions provider (also serves vision and, via ``client``, Whisper).

    Hidden design decisions:
    - Vision input as multi-part user content
    - JSON replies through ``response_format``
    - One shared ``AsyncOpenAI`` client per provider

    OpenAI-compatible endpoints (DeepSeek and similar) are reached with ``base_url``.
    """

    accepts_user_id = True

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> AsyncOpenAI:
        """SDK client, shared with the transcriber."""
        return self._client

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs: Any
    ) -> LLMResponse:
        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": [_to_openai_message(m) for m in messages],
            "temperature": temperature,
            **kwargs
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        completion = await self._client.chat.completions.create(**params)

        content = (completion.choices[0].message.content or "") if completion.choices else ""
        return LLMResponse(content=content, model=completion.model, usage=_usage(completion))

    async def close(self) -> None:
        await self._client.close()
