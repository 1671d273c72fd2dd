"""Structured logging utilities."""

import logging

from ..config import AppSettings

_LOGGER: logging.Logger | None = None

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger() -> logging.Logger:
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    config = AppSettings()
    level = getattr(logging, config.LOG_LEVEL, logging.INFO)

    logger = logging.getLogger("blackjack_advisor")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    _LOGGER = logger
    return logger


def setup_logging(debug: bool = False, verbose: bool = False) -> logging.Logger:
    """Configure the package logger for CLI runs."""
    logger = get_logger()
    if debug:
        logger.setLevel(logging.DEBUG)
    elif verbose:
        logger.setLevel(logging.INFO)
    return logger
