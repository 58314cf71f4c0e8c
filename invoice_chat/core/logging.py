"""
Logging for the SQL gateway and the conversation controller.

All module loggers hang off one ``invoice_chat`` logger that owns the
stdout handler, so the level set in ``LOG_LEVEL`` applies everywhere
and Streamlit reruns do not stack duplicate handlers.
"""
from __future__ import annotations

import logging
import sys

from invoice_chat.core.config import get_settings

ROOT_LOGGER = "invoice_chat"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Chatty third-party loggers; httpx logs every gateway request at INFO
_QUIET = ("httpx", "httpcore", "openai", "anthropic")


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        for name in _QUIET:
            logging.getLogger(name).setLevel(logging.WARNING)
    root.setLevel(getattr(logging, get_settings().log_level.upper(), logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, placed under the ``invoice_chat`` hierarchy."""
    root = _root()
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return root.getChild(name)
