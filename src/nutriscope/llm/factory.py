from typing import Any

from .base import LLMProvider
from .providers import AnthropicProvider, OpenAIProvider

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
}


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Build the generation collaborator named by ``provider``.

    Args:
        provider: "openai", "anthropic" or its alias "claude" (case-insensitive)
        **config: Constructor arguments; ``api_key`` is required, ``model``
            and ``base_url`` are optional

    Raises:
        ValueError: If the provider name is unknown
        TypeError: If ``api_key`` is missing

    Example:
        >>> llm = create_llm_provider("openai", api_key="sk-...", model="gpt-4o-mini")
    """
    provider_class = _PROVIDERS.get(provider.lower())
    if provider_class is None:
        raise ValueError(
            f"Unsupported provider: {provider}. "
            f"Supported providers: 'openai', 'anthropic'"
        )
    if "api_key" not in config:
        raise TypeError(f"{provider_class.__name__} requires 'api_key' in config")
    return provider_class(**config)
