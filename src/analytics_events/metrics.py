"""
Metrics collection for analytics sessions.

Provides hooks for emitting metrics about event construction and delivery.
Supports multiple backends: callback-based, in-memory, Prometheus.

Usage:
    from analytics_events import AnalyticsSession
    from analytics_events.metrics import InMemoryMetrics, MetricsCollector

    backend = InMemoryMetrics()
    session = AnalyticsSession(handler, metrics=MetricsCollector(backend))

    # Or with Prometheus (if prometheus_client installed)
    from analytics_events.metrics import PrometheusMetrics
    session = AnalyticsSession(handler, metrics=MetricsCollector(PrometheusMetrics()))
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class MetricTags:
    """Common tags for metrics."""

    event_type: str | None = None
    status: str | None = None  # "success", "error"

    def to_dict(self) -> dict[str, str]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in vars(self).items() if v is not None}


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""

    @abstractmethod
    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing in milliseconds."""


class NoopMetrics(MetricsBackend):
    """No-op metrics backend (default when metrics disabled)."""

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        pass


class CallbackMetrics(MetricsBackend):
    """
    Callback-based metrics backend.

    Useful for integrating with custom metrics systems or testing.

    Usage:
        def my_callback(metric_type, name, value, tags):
            print(f"{metric_type}: {name}={value}")

        metrics = CallbackMetrics(callback=my_callback)
    """

    def __init__(
        self,
        callback: Callable[[str, str, float, dict[str, str] | None], None],
    ):
        """
        Initialize callback metrics.

        Args:
            callback: Function called for each metric.
                      Signature: (metric_type, name, value, tags) -> None
        """
        self.callback = callback

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.callback("counter", name, float(value), tags)

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        self.callback("timing", name, value_ms, tags)


@dataclass
class InMemoryMetrics(MetricsBackend):
    """
    In-memory metrics backend for testing and debugging.

    Stores all metrics in memory for later inspection.
    """

    counters: dict[str, int] = field(default_factory=dict)
    timings: dict[str, list[float]] = field(default_factory=dict)

    def _key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}{{{tag_str}}}"

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        key = self._key(name, tags)
        self.counters[key] = self.counters.get(key, 0) + value

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.setdefault(self._key(name, tags), []).append(value_ms)

    def reset(self) -> None:
        """Clear all stored metrics."""
        self.counters.clear()
        self.timings.clear()

    def get_counter(self, name: str, tags: dict[str, str] | None = None) -> int:
        """Get counter value."""
        return self.counters.get(self._key(name, tags), 0)

    def get_timing_values(self, name: str, tags: dict[str, str] | None = None) -> list[float]:
        """Get timing values."""
        return self.timings.get(self._key(name, tags), [])


class MetricsCollector:
    """
    Named metrics for analytics sessions.

    Wraps a backend and records event construction, delivery outcome and
    latency, and session resets.
    """

    # Metric names
    EVENTS_BUILT = "events_built_total"
    DELIVERIES = "deliveries_total"
    DELIVERY_ERRORS = "delivery_errors_total"
    DELIVERY_LATENCY = "delivery_latency_ms"
    RESETS = "session_resets_total"

    def __init__(
        self,
        backend: MetricsBackend | None = None,
        prefix: str = "analytics",
    ):
        """
        Initialize metrics collector.

        Args:
            backend: Metrics backend (defaults to NoopMetrics)
            prefix: Prefix for all metric names
        """
        self.backend = backend or NoopMetrics()
        self.prefix = prefix

    def _name(self, metric: str) -> str:
        """Get prefixed metric name."""
        return f"{self.prefix}_{metric}" if self.prefix else metric

    def record_event_built(self, event_type: str) -> None:
        """Record a successfully constructed event."""
        tags = MetricTags(event_type=event_type).to_dict()
        self.backend.increment(self._name(self.EVENTS_BUILT), tags=tags)

    def record_delivery(
        self,
        event_type: str,
        latency_seconds: float,
        success: bool = True,
    ) -> None:
        """Record one delivery handler invocation."""
        status = "success" if success else "error"
        tags = MetricTags(event_type=event_type, status=status).to_dict()

        self.backend.increment(self._name(self.DELIVERIES), tags=tags)
        self.backend.timing(self._name(self.DELIVERY_LATENCY), latency_seconds * 1000, tags=tags)

        if not success:
            self.backend.increment(self._name(self.DELIVERY_ERRORS), tags=tags)

    def record_reset(self) -> None:
        """Record a session reset."""
        self.backend.increment(self._name(self.RESETS))

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of current metrics.

        Works best with InMemoryMetrics backend.

        Returns:
            Dictionary with metrics summary
        """
        if not isinstance(self.backend, InMemoryMetrics):
            return {"backend": type(self.backend).__name__}

        built: dict[str, int] = {}
        delivered: dict[str, int] = {}
        failed: dict[str, int] = {}
        resets = 0

        built_prefix = self._name(self.EVENTS_BUILT)
        deliveries_prefix = self._name(self.DELIVERIES)
        resets_prefix = self._name(self.RESETS)

        for key, value in self.backend.counters.items():
            event_type = self._extract_tag(key, "event_type")
            if key.startswith(built_prefix) and event_type:
                built[event_type] = built.get(event_type, 0) + value
            elif key.startswith(deliveries_prefix) and event_type:
                if self._extract_tag(key, "status") == "error":
                    failed[event_type] = failed.get(event_type, 0) + value
                else:
                    delivered[event_type] = delivered.get(event_type, 0) + value
            elif key.startswith(resets_prefix):
                resets += value

        return {
            "events_built": built,
            "events_delivered": delivered,
            "events_failed": failed,
            "total_events_built": sum(built.values()),
            "total_events_delivered": sum(delivered.values()),
            "total_events_failed": sum(failed.values()),
            "resets": resets,
        }

    def _extract_tag(self, key: str, tag_name: str) -> str | None:
        """Extract a tag value from a metric key."""
        # Keys look like: prefix_metric{tag1=val1,tag2=val2}
        if "{" not in key:
            return None
        tag_part = key.split("{", 1)[1].rstrip("}")
        for pair in tag_part.split(","):
            if "=" in pair:
                name, value = pair.split("=", 1)
                if name == tag_name:
                    return value
        return None


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_seconds: float = 0

    def __enter__(self) -> TimingContext:
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_seconds = time.perf_counter() - self.start_time


# Optional Prometheus integration
try:
    from prometheus_client import Counter, Histogram

    class PrometheusMetrics(MetricsBackend):
        """
        Prometheus metrics backend.

        Requires prometheus_client to be installed.
        """

        def __init__(self, registry: Any = None):
            self.registry = registry
            self._counters: dict[str, Counter] = {}
            self._histograms: dict[str, Histogram] = {}

        def _registry_kwargs(self) -> dict[str, Any]:
            return {"registry": self.registry} if self.registry is not None else {}

        def _get_counter(self, name: str, labels: list[str]) -> Counter:
            if name not in self._counters:
                self._counters[name] = Counter(
                    name, f"{name} counter", labels, **self._registry_kwargs()
                )
            return self._counters[name]

        def _get_histogram(self, name: str, labels: list[str]) -> Histogram:
            if name not in self._histograms:
                self._histograms[name] = Histogram(
                    name, f"{name} histogram", labels, **self._registry_kwargs()
                )
            return self._histograms[name]

        def increment(
            self, name: str, value: int = 1, tags: dict[str, str] | None = None
        ) -> None:
            labels = sorted(tags) if tags else []
            counter = self._get_counter(name, labels)
            if tags:
                counter.labels(**tags).inc(value)
            else:
                counter.inc(value)

        def timing(
            self, name: str, value_ms: float, tags: dict[str, str] | None = None
        ) -> None:
            labels = sorted(tags) if tags else []
            hist = self._get_histogram(name, labels)
            # Prometheus convention is seconds
            if tags:
                hist.labels(**tags).observe(value_ms / 1000)
            else:
                hist.observe(value_ms / 1000)

    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    PrometheusMetrics = None  # type: ignore


def is_prometheus_available() -> bool:
    """Check if Prometheus client is available."""
    return PROMETHEUS_AVAILABLE
