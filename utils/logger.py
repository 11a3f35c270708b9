"""
utils/logger.py
---------------
Process-wide logging setup. Modules call `get_logger(__name__)`; the first call
attaches the handlers, with level and optional log file taken from config.
"""

import logging
import sys

from config import LOG_FILE, LOG_LEVEL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_initialized = False


def _build_handlers() -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))
    return handlers


def _init_logging() -> None:
    """Attach handlers to the root logger exactly once."""
    global _initialized
    if _initialized:
        return
    formatter = logging.Formatter(_LOG_FORMAT, _DATE_FORMAT)
    root = logging.getLogger()
    # unknown level names fall back to INFO
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    for handler in _build_handlers():
        handler.setFormatter(formatter)
        root.addHandler(handler)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``, setting up logging on first use."""
    _init_logging()
    return logging.getLogger(name)
