# teamhub/core/logging.py

import logging
import os
import sys


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-frame websocket and per-request HTTP logs drown out room events at INFO
NOISY_LOGGERS = ("uvicorn.access", "websockets", "websockets.server", "httpx")


def setup_logging() -> None:
    """
    Configure logging for the broker process.

    LOG_LEVEL picks the level for teamhub.* (default INFO). Connection,
    room and broadcast events are logged at INFO; per-event websocket
    input at DEBUG. Output goes to stdout, one line per record.
    """
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # uvicorn --log-config (or a test runner) may have installed handlers already
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> logging.Logger:
    """Module logger, e.g. get_logger(__name__) -> "teamhub.main"."""
    return logging.getLogger(name)
