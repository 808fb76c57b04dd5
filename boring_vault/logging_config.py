#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Structured logging configuration for the Boring Vault client.

Usage:
    from boring_vault.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Composed transaction", extra={"encoding": "legacy"})
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_raw_level = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_LOG_LEVEL = _raw_level if _raw_level in VALID_LOG_LEVELS else "INFO"

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Root logger of the package; library modules log below it
PACKAGE_LOGGER = "boring_vault"

_loggers: dict[str, logging.Logger] = {}
_configured = False

# Silent until the application calls configure_logging
logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[Path] = None,
    console: bool = True,
    format_string: str = DEFAULT_LOG_FORMAT,
) -> None:
    """Attach handlers to the package logger.

    Applications call this once at start-up; the library itself never does.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file, defaults to ``LOG_PATH``
        console: Whether to log to stderr
        format_string: Log message format string
    """
    global _configured

    if _configured:
        return

    if log_file is None and os.getenv("LOG_PATH"):
        log_file = Path(os.environ["LOG_PATH"])

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    log_level = getattr(logging, level.upper(), logging.INFO)
    package_logger.setLevel(log_level)

    formatter = logging.Formatter(format_string, datefmt=TIMESTAMP_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Warning: Failed to create log file {log_file}: {e}", file=sys.stderr)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger with the given name.

    Handlers are only attached by :func:`configure_logging`.

    Examples:
        >>> logger = get_logger(__name__)
        >>> logger.debug("Derived address", extra={"bump": 254})
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    _loggers[name] = logger
    return logger


def set_log_level(level: str) -> None:
    """Change the log level of the package logger and its handlers."""
    log_level = getattr(logging, level.upper(), None)
    if not isinstance(log_level, int):
        print(f"Warning: Invalid log level '{level}'", file=sys.stderr)
        return
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    for handler in package_logger.handlers:
        handler.setLevel(log_level)
