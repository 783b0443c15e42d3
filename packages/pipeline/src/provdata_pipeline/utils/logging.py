"""
utils/logging.py — structlog configuration for provdata processes.

Sets up structured logging with JSON or human-readable console output
controlled by settings.log_format. Call configure_logging() once at
process startup (the CLI and the API app both do).

Usage:
    from provdata_pipeline.utils.logging import configure_logging, get_logger

    configure_logging()
    log = get_logger("provdata_pipeline.cli", dataset="food-security")
    log.info("import_file_read", rows=34)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from provdata_shared.config import settings


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog for the current process.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = (log_level or settings.log_level).upper()
    fmt = log_format or settings.log_format
    numeric_level = getattr(logging, level, logging.INFO)

    # Route stdlib loggers (uvicorn, duckdb warnings) through the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        # stderr keeps CLI stdout clean for machine-readable output
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Looked up per logger so a swapped sys.stderr (click, pytest) is honoured
    return structlog.PrintLogger(file=sys.stderr)


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """Return a structlog logger bound with optional initial context values."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]
