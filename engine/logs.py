"""Structured logging setup for the rules engine.

Example:
    >>> from engine.logs import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("battle_started", session_id="s1", participants=3)
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog
from structlog.types import Processor

from config import LOG_JSON, LOG_LEVEL


def configure_logging(
    *,
    level: str = LOG_LEVEL,
    json_format: bool = LOG_JSON,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for console or JSON output.

    Args:
        level: The logging level name (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, render each entry as a JSON line.
        stream: Where log lines go; defaults to stderr.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Return a bound structlog logger, typically for ``__name__``."""
    return structlog.get_logger(name)
