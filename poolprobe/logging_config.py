#!/usr/bin/env python3

"""
Logging configuration for the harness.

Sets up the ``poolprobe`` logger using Python's standard ``logging`` module:
- Configurable log level via argument or ``POOLPROBE_LOG_LEVEL``.
- Console (stderr) handler, plus a file handler when a log file is named.
- Custom formatter for aligned, level-colored multi-line messages.
- Backend library loggers held at WARNING.
- Re-running setup updates handler levels instead of adding handlers.

Test output itself goes through the session printer, never through logging.
"""

# === CORE INFRASTRUCTURE ===
import copy
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from poolprobe.markup import Colors, has_ansi_codes

LOG_FORMAT: str = "%(asctime)s %(levelname).3s [%(module)-10.10s %(lineno)-4d] %(message)s"
DATE_FORMAT: str = "%H:%M:%S"

ROOT_LOGGER_NAME = "poolprobe"
NOISY_LOGGERS: tuple[str, ...] = ("sqlalchemy", "diskcache", "asyncio")

logger: logging.Logger = logging.getLogger(ROOT_LOGGER_NAME)


def get_log_directory() -> Path:
    """Directory for log files: ``LOG_DIR`` or ``./Logs``, made absolute."""
    directory = Path(os.getenv("LOG_DIR", "Logs"))
    if not directory.is_absolute():
        directory = (Path.cwd() / directory).resolve()
    return directory


# --- Custom Logging Formatter ---
class AlignedMessageFormatter(logging.Formatter):
    """
    Formats log records to align multi-line messages below the initial log prefix.
    Leading whitespace from subsequent lines of the original message is removed.
    """

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, use_color: bool = True) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def _apply_level_color(self, message: str, level: int) -> str:
        """Apply color based on log level if not already colored."""
        if not self.use_color or has_ansi_codes(message):
            return message
        if level >= logging.ERROR:
            return Colors.red(message)
        if level >= logging.WARNING:
            return Colors.yellow(message)
        return message

    def _prefix(self, record: logging.LogRecord) -> str:
        """Everything the format string puts before the message."""
        record_copy = copy.copy(record)
        placeholder = "X"
        record_copy.msg = placeholder
        record_copy.args = ()
        record_copy.exc_info = None
        record_copy.exc_text = None
        formatted = super().format(record_copy)
        index = formatted.rfind(placeholder)
        if index == -1:
            heuristic_index = formatted.find("] ")
            index = heuristic_index + 2 if heuristic_index != -1 else 0
        return formatted[:index]

    def format(self, record: logging.LogRecord) -> str:
        """Formats the log record with alignment and level color."""
        message = self._apply_level_color(record.getMessage(), record.levelno)
        prefix = self._prefix(record)
        indent = " " * len(prefix)

        lines = message.split("\n")
        result = [f"{prefix}{lines[0].lstrip()}"]
        result.extend(f"{indent}{line.lstrip()}" for line in lines[1:])
        if record.exc_info:
            result.append(self.formatException(record.exc_info))
        return "\n".join(result)


# --- Initialization Flag ---
class _LoggingState:
    """Manages logging initialization state."""

    initialized: bool = False


def setup_logging(log_file: str = "", log_level: str = "", use_color: bool = True) -> logging.Logger:
    """
    Configures the ``poolprobe`` logger.

    If called again, updates existing handler levels instead of re-adding them.

    Args:
        log_file: Log file name placed in the log directory; no file handler when empty.
        log_level: Minimum level for the handlers; falls back to ``POOLPROBE_LOG_LEVEL``
                   then WARNING. Unknown names resolve to WARNING.

    Returns:
        The configured ``poolprobe`` logger.
    """
    load_dotenv()
    if not log_level:
        log_level = os.getenv("POOLPROBE_LOG_LEVEL", "WARNING")
    level = logging.getLevelName(log_level.upper())
    numeric_level = level if isinstance(level, int) else logging.WARNING

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if _LoggingState.initialized:
        for handler in logger.handlers:
            handler.setLevel(numeric_level)
        return logger

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(AlignedMessageFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT, use_color=use_color))
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = get_log_directory()
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / Path(log_file).name, mode="a", encoding="utf-8")
        file_handler.setFormatter(AlignedMessageFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT, use_color=False))
        file_handler.setLevel(numeric_level)
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _LoggingState.initialized = True
    return logger


def reset_logging() -> None:
    """Close and drop every handler so the next setup starts fresh."""
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    _LoggingState.initialized = False


__all__ = ["AlignedMessageFormatter", "NOISY_LOGGERS", "reset_logging", "setup_logging"]
