"""Configuration constants and environment settings.

Centralizes magic numbers and configuration values for the assistant.
"""

import os

from pydantic import BaseModel, Field


# Seed message shown at the start of every fresh conversation
SEED_MESSAGE_ID = "1"
SEED_MESSAGE_TEXT = (
    "Hi! I'm your NutriScope AI assistant. I can help you log meals, track "
    "workouts, answer nutrition questions, and provide personalized insights. "
    "How can I help you today?"
)

# Canned assistant replies
CANCEL_ACK_TEXT = "No problem! Let me know if you need anything else."
AUTO_EXEC_FAILURE_TEXT = (
    "I understood what you wanted to log, but encountered an error. "
    "Please try logging it manually."
)

# Conversation titles
TITLE_MAX_LENGTH = 50
TITLE_ELLIPSIS = "..."
TITLE_PLACEHOLDER = "New Chat"

# Debounced persistence
SAVE_QUIET_PERIOD = 1.0  # Seconds of inactivity before a save
PERSIST_MAX_RETRIES = 3
PERSIST_RETRY_DELAY = 0.5  # Base delay, doubled per attempt

# Typing presenter delays (seconds)
TYPING_INITIAL_DELAY = 0.1
TYPING_DELAY_SPACE = 0.005
TYPING_DELAY_SENTENCE_END = 0.030
TYPING_DELAY_MID_PUNCTUATION = 0.020
TYPING_DELAY_NEWLINE = 0.015
TYPING_DELAY_DEFAULT = 0.010

# Generation
HISTORY_WINDOW = 20  # Messages sent to the generation collaborator
GENERATION_TEMPERATURE = 0.7
GENERATION_MAX_TOKENS = 1500

# Audio limits
MIN_AUDIO_BYTES = 1000
MAX_AUDIO_BYTES = 25 * 1024 * 1024

# Profile defaults used when a target is missing
DEFAULT_CALORIE_TARGET = 2000
DEFAULT_PROTEIN_TARGET = 150
DEFAULT_WATER_GOAL = 2000


class Settings(BaseModel):
    """Runtime settings resolved from environment variables."""

    llm_provider: str = Field(default="openai", description="openai or anthropic")
    openai_api_key: str | None = None
    openai_chat_model: str = "gpt-4o-mini"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    store_backend: str = Field(default="sqlite", description="memory or sqlite")
    db_path: str = "./nutriscope.db"
    user_id: str = "local-user"
    log_level: str = "warning"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Environment variables:
            LLM_PROVIDER, OPENAI_API_KEY, OPENAI_CHAT_MODEL,
            ANTHROPIC_API_KEY, ANTHROPIC_MODEL, NUTRISCOPE_STORE,
            NUTRISCOPE_DB_PATH, NUTRISCOPE_USER_ID, NUTRISCOPE_LOG_LEVEL
        """
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "openai").lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
            store_backend=os.getenv("NUTRISCOPE_STORE", "sqlite").lower(),
            db_path=os.getenv("NUTRISCOPE_DB_PATH", "./nutriscope.db"),
            user_id=os.getenv("NUTRISCOPE_USER_ID", "local-user"),
            log_level=os.getenv("NUTRISCOPE_LOG_LEVEL", "warning"),
        )
