# chatrooms/core/logging.py

import logging
import os
import sys
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "redis", "jose")


def setup_logging(level_name: Optional[str] = None) -> None:
    """
    Send chatrooms logs to stdout at LOG_LEVEL (INFO when unset).

    LOG_FORMAT overrides the line format. When a handler is already
    installed (uvicorn --log-config), only the level is applied.
    """
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(os.getenv("LOG_FORMAT", DEFAULT_FORMAT)))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.INFO)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
