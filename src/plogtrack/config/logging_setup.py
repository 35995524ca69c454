"""Logging setup: stdlib loggers rendered through Rich."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "plogtrack"


def configure_logging(level: str | int = "WARNING", console: Optional[Console] = None) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Safe to call more than once: the handler is installed once and only the
    level changes afterwards. Log output goes to stderr so JSON written to
    stdout stays parseable.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    return logger
