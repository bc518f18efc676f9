"""Structured logging and tracing for envsync.

Provides a cached OpenTelemetry tracer and structlog configuration with
trace context injection. Logs emitted inside an active span carry
``trace_id`` and ``span_id`` for correlation.

Without an OpenTelemetry SDK installed the API hands out no-op tracers, so
spans cost nothing in plain CLI use.

Example:
    >>> configure_logging(log_level="DEBUG", json_output=False)
    >>> with get_tracer().start_as_current_span("envsync.readiness"):
    ...     structlog.get_logger().info("checking")
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

EventDict = MutableMapping[str, Any]

TRACER_NAME = "envsync"

_tracers: dict[str, Tracer] = {}
_lock = threading.Lock()


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    """Get or create a cached tracer.

    Falls back to a NoOpTracer if OpenTelemetry global state is unusable.

    Args:
        name: Instrumenting module name.

    Returns:
        OpenTelemetry Tracer instance.
    """
    if name in _tracers:
        return _tracers[name]

    with _lock:
        if name in _tracers:
            return _tracers[name]
        try:
            tracer = trace.get_tracer(name)
        except Exception:
            tracer = trace.NoOpTracer()
        _tracers[name] = tracer
        return tracer


def reset_tracer() -> None:
    """Clear cached tracers (for test isolation)."""
    with _lock:
        _tracers.clear()


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor adding trace_id/span_id of the active span.

    Args:
        logger: The logger instance (unused, required by structlog processor API).
        method_name: The log method name (unused).
        event_dict: The event dictionary to enrich.

    Returns:
        The event dictionary, with trace context added when a span is active.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.trace_id != INVALID_TRACE_ID and ctx.span_id != INVALID_SPAN_ID:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog for envsync.

    Logs go to stderr so command output on stdout stays machine-readable.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Emit JSON lines instead of console formatting.

    Raises:
        ValueError: If ``log_level`` is not a known level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

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
    "TRACER_NAME",
    "add_trace_context",
    "configure_logging",
    "get_tracer",
    "reset_tracer",
]
