"""Structured logging setup with OpenTelemetry trace correlation.

Modules log through ``structlog.get_logger(__name__)`` with key/value
events. ``configure_logging`` installs the processor chain once per process;
records emitted inside an active span carry ``trace_id`` and ``span_id``.

Example:
    >>> configure_logging(log_level="DEBUG", json_output=False)
    >>> structlog.get_logger(__name__).debug("resolved connection", host="https://k8s:6443")
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

EventDict = MutableMapping[str, Any]

# Terraform-style levels map onto stdlib levels; TRACE is the most verbose.
_LEVEL_ALIASES = {"TRACE": "DEBUG", "WARN": "WARNING", "OFF": "CRITICAL"}


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor adding the active span's trace and span ids."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.trace_id != INVALID_TRACE_ID and ctx.span_id != INVALID_SPAN_ID:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def normalize_level(log_level: str) -> int:
    """Translate a level name (including TRACE/WARN/OFF) to a stdlib level.

    Raises:
        ValueError: If the level name is unknown.
    """
    name = log_level.strip().upper()
    name = _LEVEL_ALIASES.get(name, name)
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        msg = f"Unknown log level: {log_level!r}"
        raise ValueError(msg)
    return level


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog with trace context injection.

    Logs go to stderr; stdout stays free for command output.

    Args:
        log_level: Minimum level (TRACE, DEBUG, INFO, WARN, ERROR, OFF).
        json_output: Render JSON lines when True, console format otherwise.
    """
    level = normalize_level(log_level)
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_trace_context,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


__all__ = [
    "add_trace_context",
    "configure_logging",
    "normalize_level",
]
