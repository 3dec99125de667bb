"""Logging for the daily vocabulary mailer: one log file per invocation plus stdout."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import config

LOGGER_NAME = "vocabmail"
BANNER_WIDTH = 60

# Libraries that log every HTTP request at INFO
NOISY_LIBRARIES = ("httpx", "httpcore")

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(
    level: int = logging.INFO,
    logs_dir: Path = config.LOGS_DIR,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Configure the mailer's logger.

    The file receives timestamped records; the console gets bare messages,
    which is what the scheduler's job log shows. HTTP client chatter is kept
    at WARNING unless running at DEBUG.

    Args:
        level: Logging level
        logs_dir: Directory for log files
        log_file: Log file name; defaults to dispatch_<timestamp>.log

    Returns:
        Configured logger instance
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / (log_file or f"dispatch_{datetime.now():%Y%m%d_%H%M%S}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        logger.addHandler(handler)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logger.info(f"Log file: {log_path}")
    return logger


def log_section(logger: logging.Logger, *lines: str) -> None:
    """Log lines framed by banner rules."""
    logger.info("=" * BANNER_WIDTH)
    for line in lines:
        logger.info(line)
    logger.info("=" * BANNER_WIDTH)


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
