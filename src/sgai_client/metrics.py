"""
Metrics collection for the SGAI client.

Pluggable collectors with a zero-overhead default. The poller, splicer and
dispatchers only talk to the MetricsCollector interface.

Example:
    >>> from sgai_client.metrics import NoOpMetrics, PrometheusMetrics, SgaiMetrics
    >>>
    >>> metrics = NoOpMetrics()
    >>> metrics.increment(SgaiMetrics.POLLS_TOTAL)  # No-op
    >>>
    >>> metrics = PrometheusMetrics()
    >>> metrics.increment(SgaiMetrics.TRACKING_SENT, labels={"sink": "ad"})
"""

from abc import ABC, abstractmethod
from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


class SgaiMetrics:
    """Metric name constants for SGAI client operations."""

    # Poller counters
    POLLS_TOTAL = "sgai.poll.total"
    POLLS_FAILED = "sgai.poll.failed"
    CUES_DETECTED = "sgai.cue.detected"

    # Break / asset counters
    BREAKS_STARTED = "sgai.break.started"
    BREAKS_ABANDONED = "sgai.break.abandoned"
    BREAKS_COMPLETED = "sgai.break.completed"
    ASSETS_SPLICED = "sgai.asset.spliced"
    ASSETS_SKIPPED = "sgai.asset.skipped"

    # Delivery counters
    TRACKING_SENT = "sgai.tracking.sent"
    TRACKING_FAILED = "sgai.tracking.failed"
    TRACKING_REQUEST_DURATION_MS = "sgai.tracking.request.duration"

    # Gauges
    AD_BREAK_ACTIVE = "sgai.break.active"


class MetricLabels:
    """Standard label names for metrics."""

    SINK = "sink"  # lifecycle, ad, adbreak, pixel
    EVENT_TYPE = "event_type"  # start, firstQuartile, heartbeat, ...
    ERROR_TYPE = "error_type"  # Exception class name
    REASON = "reason"  # fetch, decode, ad_manifest


class MetricsCollector(ABC):
    """
    Abstract base class for metrics collection.

    Defines the interface for recording metrics across different backends.
    """

    @abstractmethod
    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., 'sgai.poll.total')
            value: Amount to increment (default: 1)
            labels: Optional labels (e.g., {'sink': 'pixel'})
        """
        pass

    @abstractmethod
    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Record a histogram/timing metric."""
        pass

    @abstractmethod
    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Set a gauge metric to an absolute value."""
        pass

    def timing(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        """Record a duration in milliseconds (wrapper for histogram)."""
        self.histogram(metric, value, labels)


class NoOpMetrics(MetricsCollector):
    """No-operation metrics collector, used when metrics are disabled."""

    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        pass

    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        pass

    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        pass


class PrometheusMetrics(MetricsCollector):
    """
    Prometheus metrics collector.

    Lazily creates Counter, Histogram and Gauge instruments on first use.
    Label names are fixed by the first call for a given metric.

    Example:
        >>> from prometheus_client import CollectorRegistry
        >>> metrics = PrometheusMetrics(registry=CollectorRegistry())
        >>> metrics.increment(SgaiMetrics.BREAKS_STARTED)
    """

    def __init__(self, registry: Any | None = None) -> None:
        """
        Initialize Prometheus metrics collector.

        Args:
            registry: Optional CollectorRegistry; the default REGISTRY if None
        """
        self._registry = registry or REGISTRY
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._gauges: dict[str, Gauge] = {}

    @staticmethod
    def _sanitize_metric_name(metric: str) -> str:
        return metric.replace(".", "_").replace("-", "_")

    def _instrument(self, cache: dict, factory: type, kind: str, metric: str, labels: dict):
        metric_name = self._sanitize_metric_name(metric)
        if metric_name not in cache:
            cache[metric_name] = factory(
                metric_name,
                f"{kind} for {metric}",
                list(labels.keys()),
                registry=self._registry,
            )
        instrument = cache[metric_name]
        return instrument.labels(**labels) if labels else instrument

    def increment(
        self, metric: str, value: int = 1, labels: dict[str, str] | None = None
    ) -> None:
        self._instrument(self._counters, Counter, "Counter", metric, labels or {}).inc(value)

    def histogram(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        self._instrument(
            self._histograms, Histogram, "Histogram", metric, labels or {}
        ).observe(value)

    def gauge(
        self, metric: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        self._instrument(self._gauges, Gauge, "Gauge", metric, labels or {}).set(value)


__all__ = [
    "MetricsCollector",
    "NoOpMetrics",
    "PrometheusMetrics",
    "SgaiMetrics",
    "MetricLabels",
]
