"""Logging configuration for docmirror.

Console output goes through rich; an optional plain-text file log keeps a
parseable record of scheduled runs.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "docmirror"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return LEVEL_MAP.get(str(level).upper(), logging.INFO)


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``docmirror`` logger.

    Args:
        level: Level name (DEBUG, INFO, ...) or logging constant.
        log_file: Optional file that receives a copy of every record.
        console: Rich console to log to; defaults to one on stderr.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    level_int = _parse_level(level)
    logger.setLevel(level_int)
    logger.propagate = False

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            level=level_int,
            show_path=level_int <= logging.DEBUG,
            markup=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
    )

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(level_int)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    return logger
