"""
Analytics Events - Segment-compatible event construction.

Turns tracking calls (track, page, screen, identify, group, alias) into
canonical analytics events, threads user and group identity across calls,
and infers page/campaign context from URLs. Delivery is left to a handler
supplied by the caller.

Features:
- Segment analytics.js call shapes with explicit argument classification
- Immutable events with Segment wire format (to_dict/to_json)
- Pluggable event templates (message id, sentAt, context, writeKey)
- Context inference from page.url and page.referrer (utm campaign fields)
- Session identity back-fill with call-order state updates
- Diagnostic sink with optional PII redaction
- Optional OpenTelemetry spans and metrics backends

Basic Usage:
    from analytics_events import AnalyticsSession

    async def deliver(event):
        await http.post(collector_url, json=event.to_dict())

    analytics = AnalyticsSession(deliver)
    await analytics.identify("user-1", {"plan": "pro"})
    await analytics.page("Docs", "Install", context={"page": {"url": url}})
    await analytics.track("Sign Up")

For Tests and Examples:
    from analytics_events import create_dummy_analytics

    analytics = create_dummy_analytics(log=True, silent=True)
    await analytics.track("Sign Up")
    assert analytics.log[0].event == "Sign Up"
"""

from .context import infer_context_fields, parse_campaign, parse_referring_domain, parse_url
from .events import (
    EVENT_TYPES,
    AnalyticsEvent,
    EventType,
    generate_message_id,
    utc_now_iso,
)
from .metrics import (
    CallbackMetrics,
    InMemoryMetrics,
    MetricsBackend,
    MetricsCollector,
    NoopMetrics,
    TimingContext,
)
from .redaction import Redactor
from .serializer import (
    ArgKind,
    EventSerializer,
    TemplateFactory,
    classify_argument,
    default_template,
)
from .session import AnalyticsSession, DeliveryHandler, ResetHandler, SessionState
from .sinks import DiagnosticSink, DummyAnalytics, create_dummy_analytics
from .telemetry import delivery_span, get_tracer, is_otel_available
from .validation import EventValidator, ValidationError, ValidationResult, is_valid_event_type

__version__ = "0.1.0"

__all__ = [
    # Events
    "AnalyticsEvent",
    "EventType",
    "EVENT_TYPES",
    "generate_message_id",
    "utc_now_iso",
    # Serializer
    "EventSerializer",
    "TemplateFactory",
    "ArgKind",
    "classify_argument",
    "default_template",
    # Session
    "AnalyticsSession",
    "SessionState",
    "DeliveryHandler",
    "ResetHandler",
    # Context inference
    "infer_context_fields",
    "parse_url",
    "parse_campaign",
    "parse_referring_domain",
    # Diagnostics
    "DiagnosticSink",
    "DummyAnalytics",
    "create_dummy_analytics",
    "Redactor",
    # Validation
    "EventValidator",
    "ValidationError",
    "ValidationResult",
    "is_valid_event_type",
    # Telemetry (OpenTelemetry integration)
    "is_otel_available",
    "get_tracer",
    "delivery_span",
    # Metrics
    "MetricsBackend",
    "MetricsCollector",
    "NoopMetrics",
    "CallbackMetrics",
    "InMemoryMetrics",
    "TimingContext",
]
