"""Logging setup shared by the desktop client and the API server thread."""

from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"

# Per-tick request logs from polling browser clients drown out attempt events.
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "markdown_it")


def configure_logging(level: int = logging.INFO) -> Logger:
    """Install the root handler once and return the ``proctor_app`` logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return logging.getLogger("proctor_app")
