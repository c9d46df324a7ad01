"""
OpenTelemetry integration for analytics sessions.

Wraps each event delivery in a span so slow or failing delivery handlers show
up in traces next to the request that produced the event.

This module gracefully degrades if OpenTelemetry is not installed,
allowing the library to work without OTEL as a required dependency.

Usage:
    from analytics_events.telemetry import delivery_span

    with delivery_span(event):
        await handler(event)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .events import AnalyticsEvent

logger = logging.getLogger(__name__)

# Try to import OpenTelemetry, but don't require it
try:
    from opentelemetry import trace
    from opentelemetry.trace import SpanKind, Status, StatusCode

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore
    Status = None  # type: ignore
    StatusCode = None  # type: ignore
    SpanKind = None  # type: ignore

TRACER_NAME = "analytics_events"


def is_otel_available() -> bool:
    """Check if OpenTelemetry is available."""
    return OTEL_AVAILABLE


def get_tracer(name: str = TRACER_NAME) -> Any:
    """
    Get an OpenTelemetry tracer.

    Returns:
        Tracer instance if OTEL available, None otherwise
    """
    if not OTEL_AVAILABLE:
        return None
    return trace.get_tracer(name)


def event_span_attributes(event: AnalyticsEvent) -> dict[str, str]:
    """Span attributes describing an event (ids only, never payloads)."""
    attributes = {
        "analytics.event_type": event.type,
        "analytics.message_id": event.message_id,
    }
    if event.event:
        attributes["analytics.event_name"] = event.event
    return attributes


@contextmanager
def delivery_span(event: AnalyticsEvent) -> Iterator[Any]:
    """
    Context manager tracing one event delivery.

    Exceptions raised inside the block are recorded on the span and re-raised
    unchanged. Without OpenTelemetry this yields None and does nothing.
    """
    if not OTEL_AVAILABLE:
        yield None
        return

    tracer = get_tracer()
    with tracer.start_as_current_span(
        f"analytics.{event.type}",
        kind=SpanKind.PRODUCER,
        attributes=event_span_attributes(event),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
        span.set_status(Status(StatusCode.OK))
