from __future__ import annotations

import logging
from logging import Logger

from .config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging() -> Logger:
    """
    Configure root logger for the application.

    Uses a simple format suitable for both local development and production logs.
    """

    settings = get_settings()

    log_level = logging.DEBUG if settings.is_debug else logging.INFO

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    logger = logging.getLogger("gymstudio")
    logger.setLevel(log_level)
    return logger
