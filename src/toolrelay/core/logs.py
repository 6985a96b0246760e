"""Logging setup driven by :class:`~toolrelay.config.schema.LoggingConfig`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

    from toolrelay.config.schema import LoggingConfig

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    config: LoggingConfig,
    console: Console | None = None,
) -> logging.Logger:
    """Attach handlers to the ``toolrelay`` logger.

    Console output goes through :class:`rich.logging.RichHandler` unless
    ``config.rich`` is off. A file handler is added when ``config.file``
    is set. Calling this again replaces previously installed handlers.
    """
    logger = logging.getLogger("toolrelay")
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.rich:
        from rich.logging import RichHandler

        logger.addHandler(
            RichHandler(console=console, show_path=False, rich_tracebacks=True)
        )
    else:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(stream)

    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
