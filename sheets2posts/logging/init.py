from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

"""Logging initialization with labeled prefixes.

Every line written to stdout starts with one of the labels
INFO | WARN | ERROR | SUMMARY (DEBUG when --debug is on). The application
logger is named ``sheets2posts`` so module loggers created with
``logging.getLogger(__name__)`` inside the package share its handler.

While a sheet is being synced its id is carried in a context variable and
shown after the label, so row-level lines read ``WARN [news] row 3: ...``.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "setup_logging",
    "sheet_context",
]

LOGGER_NAME = "sheets2posts"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

# Global logger instance
_logger: logging.Logger | None = None

_current_sheet: ContextVar[str | None] = ContextVar("sheets2posts_sheet", default=None)


class LabeledFormatter(logging.Formatter):
    """Formatter producing ``LABEL message`` or ``LABEL [sheet] message`` lines."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        sheet_id = _current_sheet.get()
        if sheet_id is None or record.levelno == SUMMARY_LEVEL:
            return f"{level_label} {record.getMessage()}"
        return f"{level_label} [{sheet_id}] {record.getMessage()}"


@contextmanager
def sheet_context(sheet_id: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``sheet_id``."""
    token = _current_sheet.set(sheet_id)
    try:
        yield
    finally:
        _current_sheet.reset(token)


def setup_logging() -> logging.Logger:
    """Configure the application logger (idempotent).

    Output goes to stdout for consistency with the CLI contract; propagation to
    the root logger is disabled to avoid duplicate lines.

    Returns:
        Configured logger instance for the application
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured application logger, configuring it on first use."""
    if _logger is None:
        return setup_logging()
    return _logger


def set_debug(enabled: bool = True) -> None:
    """Switch the application logger and its handlers to DEBUG (or back to INFO)."""
    logger = get_logger()
    level = logging.DEBUG if enabled else logging.INFO
    for h in logger.handlers:
        h.setLevel(level)
    logger.setLevel(level)


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    _logger = None
