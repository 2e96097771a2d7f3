"""
Logging setup for logiccap.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = "logiccap"


def setup_logging(*, verbose: bool = False, log_file: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """
    Configure the logiccap logger.

    Args:
        verbose: DEBUG level when True, INFO otherwise
        log_file: Optional file to log to as well
        console: Log to stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s",
                                  datefmt="%Y-%m-%d %H:%M:%S")

    # stdout carries the table preview, keep log lines off it
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the logiccap logger, or a child of it."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
