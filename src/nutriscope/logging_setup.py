"""Logging configuration.

Modules log through ``logging.getLogger(__name__)``; the CLI installs a
Rich handler so log records share the console with chat output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def parse_level(name: str) -> int:
    """Numeric level for a name such as "info"; unknown names mean WARNING."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(level: str | int = "warning", console: Console | None = None) -> None:
    """Install a Rich log handler on the ``nutriscope`` logger.

    Args:
        level: Level name ("debug", "info", ...) or numeric level
        console: Optional Rich console to write to (stderr by default)
    """
    numeric = parse_level(level) if isinstance(level, str) else level

    logger = logging.getLogger("nutriscope")
    logger.setLevel(numeric)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(numeric)
    logger.addHandler(handler)
    logger.propagate = False
