"""
Analytics Session - stateful tracking interface.

AnalyticsSession exposes the Segment-compatible tracking API (track, page,
screen, identify, group, alias, reset). It builds events with an
EventSerializer, threads identity across calls and hands every finished
event to a delivery handler supplied by the caller. The session itself does
no I/O.

Identity threading:
    - identify() stores the user id and traits
    - group() stores the group id and traits
    - alias() stores the new user id
    - track()/page()/screen() back-fill user id and group id when unset
    - reset() forgets everything and notifies on_reset

Ordering:
    Tracking methods build the event and update the session state as soon as
    they are called, then return an awaitable that performs delivery. A
    track() issued right after identify() therefore sees the new user id even
    if the identify delivery is still pending.

Usage:
    from analytics_events import AnalyticsSession

    async def send(event):
        await client.post("/v1/batch", json={"batch": [event.to_dict()]})

    analytics = AnalyticsSession(send)
    await analytics.identify("user-1", {"plan": "pro"})
    event = await analytics.track("Sign Up")
    assert event.user_id == "user-1"
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from dataclasses import dataclass
from typing import Any

from .events import AnalyticsEvent
from .metrics import MetricsCollector, TimingContext
from .serializer import EventSerializer, TemplateFactory
from .telemetry import delivery_span

logger = logging.getLogger(__name__)

# Delivery handler (sync or async); its return value is ignored
DeliveryHandler = Callable[[AnalyticsEvent], Any] | Callable[[AnalyticsEvent], Awaitable[Any]]

ResetHandler = Callable[[], None]


@dataclass
class SessionState:
    """
    Identity remembered by one AnalyticsSession.

    Attributes:
        user_id: Current user id (identify/alias)
        user_traits: Traits of the last identify call
        group_id: Current group id (group)
        group_traits: Traits of the last group call
    """

    user_id: str | None = None
    user_traits: dict[str, Any] | None = None
    group_id: str | None = None
    group_traits: dict[str, Any] | None = None

    def clear(self) -> None:
        """Forget all identity."""
        self.user_id = None
        self.user_traits = None
        self.group_id = None
        self.group_traits = None


class AnalyticsSession:
    """
    Stateful analytics interface forwarding events to a delivery handler.

    Every tracking method returns an awaitable resolving to the event that was
    handed to the delivery handler. Delivery errors propagate to the caller
    unchanged; there are no retries and state updates are not rolled back.

    A session is meant for a single logical owner. It takes no locks, so
    concurrent callers sharing one session must serialize their calls.
    """

    def __init__(
        self,
        handler: DeliveryHandler,
        on_reset: ResetHandler | None = None,
        *,
        serializer: EventSerializer | None = None,
        template: TemplateFactory | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the session.

        Args:
            handler: Called with every finished event; may be a coroutine function
            on_reset: Called synchronously by reset() after state is cleared
            serializer: EventSerializer to build events with
            template: Template factory for a default serializer
                (mutually exclusive with serializer)
            metrics: Optional MetricsCollector for observability

        Raises:
            ValueError: If both serializer and template are given
        """
        if serializer is not None and template is not None:
            raise ValueError("Pass either serializer or template, not both")

        self.serializer = serializer or EventSerializer(template=template)
        self._handler = handler
        self._on_reset = on_reset
        self._metrics = metrics
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        """Copy of the current identity state."""
        return copy.deepcopy(self._state)

    def track(
        self,
        event_name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Track a named action. See EventSerializer.track()."""
        event = self.serializer.track(event_name, properties, context=context)
        return self._dispatch(self._with_session_identity(event))

    def page(
        self,
        category: str | Mapping[str, Any] | None = None,
        name: str | Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Record a page view. See EventSerializer.page()."""
        event = self.serializer.page(category, name, properties, context=context)
        return self._dispatch(self._with_session_identity(event))

    def screen(
        self,
        category: str | Mapping[str, Any] | None = None,
        name: str | Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Record a screen view. See EventSerializer.screen()."""
        event = self.serializer.screen(category, name, properties, context=context)
        return self._dispatch(self._with_session_identity(event))

    def identify(
        self,
        id_or_traits: str | Mapping[str, Any] | None = None,
        traits: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Identify the current user and remember the id and traits."""
        event = self.serializer.identify(id_or_traits, traits, context=context)
        self._state.user_id = event.user_id
        self._state.user_traits = copy.deepcopy(event.traits)
        return self._dispatch(event)

    def group(
        self,
        id_or_traits: str | Mapping[str, Any] | None = None,
        traits: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Associate the current user with a group and remember it."""
        event = self.serializer.group(id_or_traits, traits, context=context)
        self._state.group_id = event.group_id
        self._state.group_traits = copy.deepcopy(event.traits)
        return self._dispatch(event)

    def alias(
        self,
        user_id_or_object: str | Mapping[str, Any] | None,
        previous_id: str | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Merge a previous id into a new user id and remember the new id."""
        event = self.serializer.alias(user_id_or_object, previous_id, context=context)
        self._state.user_id = event.user_id
        return self._dispatch(event)

    def reset(self) -> Coroutine[Any, Any, None]:
        """
        Forget the current identity and notify on_reset.

        Like the tracking methods, the state is cleared and on_reset is
        called as soon as reset() is called; the returned awaitable completes
        immediately. No event is delivered. If on_reset raises, the error
        propagates from the call and the state stays cleared.
        """
        self._state.clear()
        self.serializer.reset()
        if self._metrics:
            self._metrics.record_reset()
        logger.debug("Analytics session reset")
        if self._on_reset is not None:
            self._on_reset()
        return self._reset_done()

    async def _reset_done(self) -> None:
        """Awaitable returned by reset(); all work is already done."""

    def _with_session_identity(self, event: AnalyticsEvent) -> AnalyticsEvent:
        """Back-fill user id and group id from the session state."""
        user_id = event.user_id or self._state.user_id
        group_id = event.group_id or self._state.group_id
        if user_id == event.user_id and group_id == event.group_id:
            return event
        return event.with_identity(user_id=user_id, group_id=group_id)

    def _dispatch(self, event: AnalyticsEvent) -> Coroutine[Any, Any, AnalyticsEvent]:
        """Record the built event and return the pending delivery."""
        if self._metrics:
            self._metrics.record_event_built(event.type)
        return self._deliver(event)

    async def _deliver(self, event: AnalyticsEvent) -> AnalyticsEvent:
        """Hand the event to the delivery handler."""
        success = True
        timer = TimingContext()

        try:
            with timer, delivery_span(event):
                maybe_awaitable = self._handler(event)
                if asyncio.iscoroutine(maybe_awaitable) or isinstance(maybe_awaitable, Awaitable):
                    await maybe_awaitable
        except Exception as e:
            success = False
            logger.debug(f"Delivery of {event.type} event {event.message_id} failed: {e}")
            raise
        finally:
            if self._metrics:
                self._metrics.record_delivery(event.type, timer.elapsed_seconds, success)

        logger.debug(f"Delivered {event.type} event {event.message_id}")
        return event
