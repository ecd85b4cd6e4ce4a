"""Centralized logging configuration for the file server.

Call ``configure_logging`` once at application startup; modules obtain
their loggers through ``get_logger(__name__)``.
"""

from __future__ import annotations

import logging
import sys
from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_third_party_log_levels() -> None:
    """Set explicit levels for noisy third-party loggers."""
    logging.getLogger("python_multipart").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("watchfiles").setLevel(logging.WARNING)


def configure_logging(
    *,
    level: LogLevel | str | None = None,
    format_string: str | None = None,
) -> None:
    """Configure process-wide logging.

    Args:
        level: Log level name; unknown names fall back to INFO.
        format_string: Custom log format (uses default if None).

    Examples:
        >>> configure_logging(level="DEBUG")
    """
    log_level = logging.INFO
    if level is not None:
        log_level = getattr(logging, str(level).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=format_string or DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configure_third_party_log_levels()

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(log_level)
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of calling module).

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
