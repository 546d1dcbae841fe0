"""Logger set-up with logfmt-style output."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO

from qnify import consts
from qnify.errors import AppError

LOGGER_NAME = "qnify"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}
_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"

_initialised = False


def _quote(value: str) -> str:
    if value == "" or any(ch in value for ch in ' ="\n\t'):
        return json.dumps(value, ensure_ascii=False)
    return value


class _LogfmtFormatter(logging.Formatter):
    """Renders records as ``key=value`` pairs; extra fields come from ``extra={"fields": {...}}``."""

    def __init__(self, color: bool = False) -> None:
        super().__init__(datefmt=TIMESTAMP_FORMAT)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_NAMES.get(record.levelno, record.levelname.lower())
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"
        parts = [
            f"timestamp={_quote(self.formatTime(record, self.datefmt))}",
            f"level={level}",
            f"message={_quote(record.getMessage())}",
        ]
        fields = getattr(record, "fields", None) or {}
        parts.extend(f"{key}={_quote(str(value))}" for key, value in fields.items())
        if record.exc_info:
            parts.append(f"exception={_quote(self.formatException(record.exc_info))}")
        return " ".join(parts)


def _configure(stream: IO[str], level: int, color: bool) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_LogfmtFormatter(color))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def init_logger() -> logging.Logger:
    """Set up the application logger once; debug level only in development."""
    global _initialised
    if _initialised:
        raise AppError("logger is already initialised")
    level = logging.DEBUG if consts.DEV else logging.INFO
    color = consts.DEV and sys.stderr.isatty()
    logger = _configure(sys.stderr, level, color)
    _initialised = True
    return logger


def init_test_logger(stream: IO[str]) -> logging.Logger:
    """Point the application logger at ``stream``, logging every level."""
    return _configure(stream, logging.DEBUG, False)