"""Structured logging configuration.

Diagnostics go to stderr so they never interleave with the benchmark
harness's own report on stdout. Application code logs structured events
through structlog; adapters use the standard ``logging`` module, which is
routed to the same stream.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level_number(level: str) -> int:
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {LOG_LEVELS}")
    return getattr(logging, name)


def setup_logging(
    level: str = "INFO",
    log_format: str = "console",
) -> None:
    """
    Set up structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')

    Raises:
        ValueError: If level is not a known log level.
    """
    level_number = _level_number(level)

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=level_number,
    )
    logging.getLogger("docstore_adapter").setLevel(level_number)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # ConsoleRenderer formats exc_info itself
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_number),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger instance.

    Args:
        name: Logger name (module name typically)
        **initial_context: Initial context to bind to the logger

    Returns:
        A bound structlog logger
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_worker_context(**context: Any) -> None:
    """Attach context to every event logged from the calling thread.

    Each benchmark worker runs in its own thread, so this tags all of a
    worker's events (for example with its database URL).
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_worker_context() -> None:
    """Drop context bound by ``bind_worker_context`` in this thread."""
    structlog.contextvars.clear_contextvars()
