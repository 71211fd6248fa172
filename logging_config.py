"""Logging configuration for the magnetic pendulum renderer."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import config

_HANDLER_TAG = "_magnetic_fractal_handler"


def setup_logging(
    level: str | None = None,
    log_file: str | Path | None = None,
    name: str | None = None,
) -> logging.Logger:
    """
    Set up console (and optionally rotating file) logging.

    Calling it again replaces the handlers installed by a previous call
    instead of stacking duplicates.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file
        name: Logger to configure (default: the root logger)

    Returns:
        Configured logger instance
    """
    if level is None:
        level = config.LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(config.LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    setattr(console_handler, _HANDLER_TAG, True)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_TAG, True)
        logger.addHandler(file_handler)

    return logger
