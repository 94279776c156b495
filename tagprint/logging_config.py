"""
Logging configuration for the tag printer.

Every record carries the name of the thread that produced it, so log
lines from the QR worker pool can be told apart from the main thread.

Log Format:
    2026-10-18 10:15:30 [INFO    ] [MainThread] tagprint.session - Composing 5 tags
    2026-10-18 10:15:30 [WARNING ] [tagprint-matrix_0] tagprint.matrix - QR code unavailable ...

Usage:
    from tagprint.logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.DEBUG)
    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "tagprint"


class ThreadContextFilter(logging.Filter):
    """Adds ``thread_name`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        return True


def setup_logging(
    log_level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    enable_file_logging: bool = False,
) -> logging.Logger:
    """
    Configure the ``tagprint`` logger.

    Sets up a console handler and, when enabled, a rotating log file plus
    a separate rotating error log in ``log_dir``.

    Args:
        log_level: Minimum level, as a number or a name like "DEBUG"
        log_dir: Directory for log files (default: ./logs)
        enable_file_logging: Whether to also write log files

    Returns:
        The configured ``tagprint`` logger
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allow re-configuration
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = Path(log_dir) if log_dir else Path.cwd() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_dir / f"{ROOT_LOGGER_NAME}.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            filename=log_dir / f"{ROOT_LOGGER_NAME}_error.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {log_dir}")

    logger.debug(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``tagprint`` namespace.

    Module names from inside the package (``tagprint.sheet``) are used
    as-is; anything else is prefixed.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
