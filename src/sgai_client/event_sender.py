"""Delivery of lifecycle and ad lifecycle events to the event sink."""

import uuid
from typing import TYPE_CHECKING

import httpx

from .log_config import get_context_logger
from .metrics import MetricsCollector, NoOpMetrics
from .mixins import BackgroundSenderMixin
from .types import LifecycleEventPayload

if TYPE_CHECKING:
    from .lifecycle import LifecycleEvent


class AnalyticsEventSender(BackgroundSenderMixin):
    """
    Posts events to the configured event sink, fire-and-forget.

    Every event carries the session identifier::

        {"event": "playing", "sessionId": "...", "timestamp": 1700000000000,
         "playhead": 1200, "duration": -1, "payload": {...}}

    Examples:
        >>> sender = AnalyticsEventSender("https://sink.example.com")
        >>> sender.send(LifecycleEvent.create("heartbeat", playhead=30000, duration=-1))
    """

    def __init__(
        self,
        event_sink_url: str,
        session_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize sender.

        Args:
            event_sink_url: Endpoint receiving the JSON events
            session_id: Session identifier (random if None)
            http_client: Client to use; the pooled tracking client if None
            metrics: Metrics collector
        """
        self.event_sink_url = event_sink_url
        self.session_id = session_id or str(uuid.uuid4())
        self.client = http_client
        self.metrics = metrics or NoOpMetrics()
        self.logger = get_context_logger("event_sender")

    def send(self, event: "LifecycleEvent") -> LifecycleEventPayload:
        """Schedule delivery of one event and return the body being posted."""
        body = event.to_payload(self.session_id)
        self.logger.debug("Sending event", lifecycle_event=event.event, playhead=event.playhead)
        self._spawn(
            self._deliver(
                "POST",
                self.event_sink_url,
                sink="lifecycle",
                event_type=event.event,
                json=body,
                headers={"Accept": "application/json"},
            )
        )
        return body


__all__ = ["AnalyticsEventSender"]
