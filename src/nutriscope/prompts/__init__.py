"""Prompt templates.

Templates ship as text files next to this module. A file of the same name
under ``./prompts/`` in the working directory takes precedence, so prompts
can be tuned without reinstalling.
"""

from functools import lru_cache
from pathlib import Path

_PACKAGE_DIR = Path(__file__).parent


def _candidates(filename: str) -> tuple[Path, Path]:
    return Path.cwd() / "prompts" / filename, _PACKAGE_DIR / filename


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Text of prompt ``name`` (without the .txt suffix).

    Raises:
        FileNotFoundError: If neither the override nor the packaged file exists
    """
    candidates = _candidates(f"{name}.txt")
    for path in candidates:
        if path.exists():
            return path.read_text(encoding="utf-8")

    searched = "\n".join(f"  - {path}" for path in candidates)
    raise FileNotFoundError(f"Prompt '{name}' not found. Searched:\n{searched}")


def get_assistant_prompt() -> str:
    """System prompt for conversational turns; contains a ``{context}`` slot."""
    return load_prompt("assistant")


def get_image_analysis_prompt() -> str:
    return load_prompt("image_analysis")


def clear_cache() -> None:
    """Forget loaded prompts so edited files are read again."""
    load_prompt.cache_clear()


__all__ = [
    "clear_cache",
    "get_assistant_prompt",
    "get_image_analysis_prompt",
    "load_prompt",
]
