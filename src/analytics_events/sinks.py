"""
Diagnostic delivery handler for tests, examples and local debugging.

DiagnosticSink is a delivery handler that keeps delivered events in memory
and/or prints them. It never fails, so it is not a production transport.

Usage:
    from analytics_events import create_dummy_analytics

    analytics = create_dummy_analytics(log=True, silent=True)
    await analytics.track("Sign Up")
    analytics.sink.events[0].event  # "Sign Up"
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TextIO

from .events import AnalyticsEvent
from .redaction import Redactor
from .serializer import EventSerializer, TemplateFactory
from .session import AnalyticsSession

logger = logging.getLogger(__name__)


class DiagnosticSink:
    """
    Delivery handler that records and/or prints events.

    Attributes:
        events: Delivered events in call order (only filled when log=True)
    """

    def __init__(
        self,
        log: bool = False,
        silent: bool = False,
        stream: TextIO | None = None,
        redactor: Redactor | None = None,
    ):
        """
        Initialize the sink.

        Args:
            log: Keep every delivered event in ``events``
            silent: Do not print events
            stream: Where to print (default: sys.stdout at print time)
            redactor: Optional Redactor applied to printed events only
        """
        self.log = log
        self.silent = silent
        self.stream = stream
        self.redactor = redactor
        self.events: list[AnalyticsEvent] = []

    async def __call__(self, event: AnalyticsEvent) -> None:
        if self.log:
            self.events.append(event)
        if not self.silent:
            print(f"Analytics event {event.type}: {self.format(event)}", file=self.stream or sys.stdout)

    def format(self, event: AnalyticsEvent) -> str:
        """
        Human-readable JSON of an event, redacted if a redactor is set.

        Values JSON cannot encode natively (datetime, Decimal, UUID...) are
        printed through str().
        """
        if self.redactor is not None:
            data = self.redactor.redact_event(event)
        else:
            data = event.to_dict()
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)

    def of_type(self, event_type: str) -> list[AnalyticsEvent]:
        """Logged events of one type, in call order."""
        return [event for event in self.events if event.type == event_type]

    def clear(self) -> None:
        """Forget logged events."""
        self.events.clear()


class DummyAnalytics(AnalyticsSession):
    """AnalyticsSession delivering to a DiagnosticSink, exposed as ``sink``."""

    def __init__(self, sink: DiagnosticSink, serializer: EventSerializer):
        super().__init__(sink, on_reset=self._log_reset, serializer=serializer)
        self.sink = sink

    @property
    def log(self) -> list[AnalyticsEvent]:
        """Events recorded by the sink."""
        return self.sink.events

    @staticmethod
    def _log_reset() -> None:
        logger.debug("Dummy analytics reset")


def create_dummy_analytics(
    *,
    log: bool = False,
    silent: bool = False,
    template: TemplateFactory | None = None,
    redactor: Redactor | None = None,
    stream: TextIO | None = None,
) -> DummyAnalytics:
    """
    Build an analytics session that prints and/or records every event.

    Defaults to printing only, without keeping a log.

    Args:
        log: Keep delivered events in ``sink.events``
        silent: Do not print events
        template: Template factory for the serializer
        redactor: Redactor applied to printed output
        stream: Output stream for printing

    Returns:
        DummyAnalytics session
    """
    sink = DiagnosticSink(log=log, silent=silent, stream=stream, redactor=redactor)
    return DummyAnalytics(sink, EventSerializer(template=template))
