"""Logging configuration for ctltree: one named logger rendered through Rich."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ctltree"

_HANDLER: logging.Handler | None = None


def configure_logging(verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Send ``ctltree.*`` log records to stderr through Rich.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    global _HANDLER
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False

    if _HANDLER is not None:
        logger.removeHandler(_HANDLER)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    _HANDLER = handler
    return logger
