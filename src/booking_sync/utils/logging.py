"""Logging configuration for Booking Sync application."""

import logging
import sys
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - "
    "%(filename)s:%(lineno)d - %(message)s"
)

# Loggers of the server stack that should end up in the same handlers
SERVICE_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "apscheduler")


def _build_handlers(level: int, log_file: Optional[Path]) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers: list[logging.Handler] = [console]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    return handlers


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure logging for the sync service.

    The ``booking_sync`` logger gets a console handler and, when ``log_file``
    is given, a DEBUG file handler that also records the thread name, since
    webhook and timer passes run on different threads.
    uvicorn and APScheduler loggers share the same handlers.

    Returns:
        The ``booking_sync`` logger
    """
    numeric_level = getattr(logging, level.upper())
    handlers = _build_handlers(numeric_level, log_file)

    logger = logging.getLogger("booking_sync")
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)

    for name in SERVICE_LOGGERS:
        service_logger = logging.getLogger(name)
        service_logger.handlers.clear()
        service_logger.propagate = False
        for handler in handlers:
            service_logger.addHandler(handler)
    # Job-level chatter every interval
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return logger
