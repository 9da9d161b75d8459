"""Structured logging with OpenTelemetry trace correlation.

Log events emitted inside an active span carry ``trace_id`` and ``span_id``
so that verification runs can be correlated with their traces.

Environment Variables:
    IMAGE_CONTRACT_LOG_LEVEL: Default log level (default: WARNING)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

LOG_LEVEL_ENV = "IMAGE_CONTRACT_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

# Type alias for structlog EventDict
EventDict = MutableMapping[str, Any]


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add trace context to a structlog event dictionary.

    Args:
        logger: The logger instance (unused, required by structlog processor API).
        method_name: The log method name (e.g., "info", "debug").
        event_dict: The event dictionary to enrich with trace context.

    Returns:
        The event dictionary with trace_id and span_id added if a span is active.
    """
    ctx = trace.get_current_span().get_span_context()

    if ctx.trace_id != INVALID_TRACE_ID and ctx.span_id != INVALID_SPAN_ID:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")

    return event_dict


def default_log_level() -> str:
    """Return the log level from IMAGE_CONTRACT_LOG_LEVEL, or WARNING."""
    return os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()


def configure_logging(
    log_level: str | None = None,
    json_output: bool = False,
) -> None:
    """Configure structlog with trace context injection.

    Logs go to stderr so that reports written to stdout stay parseable.

    Args:
        log_level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR,
            CRITICAL). Defaults to IMAGE_CONTRACT_LOG_LEVEL.
        json_output: If True, render JSON lines; otherwise console format.

    Raises:
        ValueError: If the log level is not a known level name.

    Examples:
        >>> configure_logging(log_level="DEBUG", json_output=True)
    """
    level_name = (log_level or default_log_level()).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_trace_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LOG_LEVEL_ENV",
    "add_trace_context",
    "configure_logging",
    "default_log_level",
]
