"""Provider factory functions for CLI.

Centralizes creation of the conversation store, LLM and capture
collaborators from environment settings. Hides configuration details from
command implementations.
"""

import typer
from rich.console import Console

from ..capture import LLMImageAnalyzer, OpenAITranscriber
from ..config import Settings
from ..conversation import ConversationStore, create_conversation_store
from ..llm import LLMProvider, OpenAIProvider, create_llm_provider

# Default console for output
_console = Console()


def get_settings() -> Settings:
    return Settings.from_env()


def get_store(settings: Settings | None = None) -> ConversationStore:
    """Create the conversation store from settings.

    Environment variables:
        NUTRISCOPE_STORE: Backend type (memory or sqlite; default: sqlite)
        NUTRISCOPE_DB_PATH: SQLite database file (default: ./nutriscope.db)
    """
    settings = settings or get_settings()
    if settings.store_backend == "sqlite":
        return create_conversation_store("sqlite", path=settings.db_path)
    return create_conversation_store(settings.store_backend)


def get_llm(console: Console | None = None, settings: Settings | None = None) -> LLMProvider | None:
    """Create LLM provider from settings.

    Args:
        console: Optional Rich console for output
        settings: Settings to use (read from the environment by default)

    Returns:
        LLM provider instance, or None if not configured

    Environment variables:
        LLM_PROVIDER: Provider type (openai, anthropic; default: openai)
        OPENAI_API_KEY: OpenAI API key (for openai provider)
        OPENAI_CHAT_MODEL: OpenAI model (default: gpt-4o-mini)
        ANTHROPIC_API_KEY: Anthropic API key (for anthropic provider)
        ANTHROPIC_MODEL: Anthropic model (default: claude-sonnet-4-20250514)
    """
    con = console or _console
    settings = settings or get_settings()
    llm_provider = settings.llm_provider

    if llm_provider == "openai":
        if not settings.openai_api_key:
            con.print("[yellow]Warning: OPENAI_API_KEY not set, chat disabled[/yellow]")
            return None
        return create_llm_provider(
            "openai", api_key=settings.openai_api_key, model=settings.openai_chat_model
        )

    elif llm_provider in ("anthropic", "claude"):
        if not settings.anthropic_api_key:
            con.print("[yellow]Warning: ANTHROPIC_API_KEY not set, chat disabled[/yellow]")
            return None
        return create_llm_provider(
            "anthropic", api_key=settings.anthropic_api_key, model=settings.anthropic_model
        )

    else:
        con.print(f"[red]Error: Unknown LLM provider: {llm_provider}[/red]")
        return None


def require_llm(console: Console | None = None, settings: Settings | None = None) -> LLMProvider:
    """Get LLM provider, raising error if not configured.

    Raises:
        typer.Exit: If LLM provider is not configured
    """
    con = console or _console
    llm = get_llm(con, settings)
    if not llm:
        con.print("[red]Error: LLM provider not configured[/red]")
        raise typer.Exit(code=1)
    return llm


def get_transcriber(llm: LLMProvider) -> OpenAITranscriber | None:
    """Whisper transcriber sharing the OpenAI client, if OpenAI is in use."""
    if isinstance(llm, OpenAIProvider):
        return OpenAITranscriber(llm.client)
    return None


def get_image_analyzer(llm: LLMProvider) -> LLMImageAnalyzer:
    return LLMImageAnalyzer(llm)
