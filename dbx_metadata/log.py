"""Logging configuration for CLI runs."""

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "dbx_metadata"


def setup_logging(level: Union[int, str] = logging.WARNING, console: Console = None) -> logging.Logger:
    """Attach a rich handler to the package logger.

    Args:
        level: Logging level or level name
        console: Console to log to (default: stderr)

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Re-running setup replaces the handler instead of duplicating output
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger
