# core/logging_config.py
import logging

from core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME = "permits"

# supabase-py logs every request at INFO through httpx
QUIET_LIBRARIES = ("httpx", "httpcore", "apscheduler.executors.default")


def setup_logger() -> logging.Logger:
    app_logger = logging.getLogger(LOGGER_NAME)
    if app_logger.handlers:
        return app_logger

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    app_logger.setLevel(level if isinstance(level, int) else logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app_logger.addHandler(handler)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return app_logger


def get_logger(component: str) -> logging.Logger:
    """Child logger such as ``permits.scheduler``; records go through the app handler."""
    return logging.getLogger(LOGGER_NAME).getChild(component)


logger = setup_logger()
