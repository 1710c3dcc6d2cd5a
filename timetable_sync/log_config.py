"""Logging setup for the CLI and the long-running sync service."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger.

    Calling it twice does not duplicate handlers.
    """
    logger = logging.getLogger("timetable_sync")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # APScheduler reports job errors through its own logger.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    return logger
