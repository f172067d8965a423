"""Logging configuration for the command-line entry point."""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | int = logging.WARNING) -> logging.Logger:
    """
    Attach a stderr handler to the package logger.

    Args:
        level: Level name (e.g. "INFO") or number.

    Returns:
        The configured ``clickcheck`` logger.
    """
    logger = logging.getLogger("clickcheck")
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    return logger
