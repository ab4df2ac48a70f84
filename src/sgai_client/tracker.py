"""
Ad-Tracking Dispatcher

Fire-and-forget delivery of ad and ad-break events to the tracking backend,
plus raw tracking pixels for the third-party URLs listed per asset.

Endpoints (relative to the tracking base URL):
    POST track/ad       {sessionId, eventType, adId, timestamp, playbackPosition, additionalData}
    POST track/adbreak  {sessionId, eventType, adBreakId, timestamp}
"""

import time
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from .log_config import get_context_logger
from .metrics import MetricsCollector, NoOpMetrics
from .mixins import BackgroundSenderMixin
from .types import AdBreakEventPayload, AdEventPayload

if TYPE_CHECKING:
    from .config import EngineConfig


class AdTrackingEventType(str, Enum):
    """Event types understood by the tracking backend."""

    BREAK_START = "breakStart"
    BREAK_COMPLETE = "breakComplete"
    IMPRESSION = "impression"
    START = "start"
    FIRST_QUARTILE = "firstQuartile"
    MIDPOINT = "midpoint"
    THIRD_QUARTILE = "thirdQuartile"
    COMPLETE = "complete"
    PAUSE = "pause"
    RESUME = "resume"
    ERROR = "error"


DEFAULT_PIXEL_USER_AGENT = "SGAI-Python-Player/1.0"
DEFAULT_PIXEL_TIMEOUT = 5.0


class AdTrackingDispatcher(BackgroundSenderMixin):
    """
    Sends ad-tracking events without ever blocking the caller.

    Each call schedules a detached task and returns the body (or None when the
    event was skipped). Delivery failures are logged and dropped.

    Examples:
        >>> dispatcher = AdTrackingDispatcher("https://tracking.example.com", session_id)
        >>> dispatcher.track_ad_break_event("breakStart", "br1")
        >>> dispatcher.track_ad_event("start", ad_id="a1b2", playback_position=0)
        >>> dispatcher.send_tracking_pixel("https://pixel.example.com/imp?id=1")
    """

    def __init__(
        self,
        tracking_base_url: str,
        session_id: str,
        http_client: httpx.AsyncClient | None = None,
        pixel_user_agent: str = DEFAULT_PIXEL_USER_AGENT,
        pixel_timeout: float = DEFAULT_PIXEL_TIMEOUT,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize dispatcher.

        Args:
            tracking_base_url: Base URL of the tracking backend
            session_id: Session identifier attached to every event
            http_client: Client to use; the pooled tracking client if None
            pixel_user_agent: User-Agent header for tracking pixels
            pixel_timeout: Timeout in seconds for tracking pixels
            metrics: Metrics collector
        """
        base = tracking_base_url.rstrip("/")
        self.ad_event_url = f"{base}/track/ad"
        self.ad_break_event_url = f"{base}/track/adbreak"
        self.session_id = session_id
        self.client = http_client
        self.pixel_user_agent = pixel_user_agent
        self.pixel_timeout = pixel_timeout
        self.metrics = metrics or NoOpMetrics()
        self.logger = get_context_logger("ad_tracking_dispatcher")

    @classmethod
    def from_config(
        cls,
        config: "EngineConfig",
        session_id: str,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "AdTrackingDispatcher":
        return cls(
            config.effective_tracking_base_url,
            session_id,
            http_client=http_client,
            pixel_user_agent=config.pixel_user_agent,
            metrics=metrics,
        )

    def track_ad_event(
        self,
        event_type: str,
        ad_id: str | None,
        playback_position: int,
        additional_data: dict[str, Any] | None = None,
    ) -> AdEventPayload | None:
        """Schedule a ``track/ad`` post. Skipped when there is no current ad."""
        if not ad_id:
            self.logger.warning("Cannot send ad tracking event without ad id", event_type=event_type)
            return None

        body: AdEventPayload = {
            "sessionId": self.session_id,
            "eventType": event_type,
            "adId": ad_id,
            "timestamp": int(time.time() * 1000),
            "playbackPosition": playback_position,
            "additionalData": additional_data or {},
        }
        self.logger.debug("Tracking ad event", event_type=event_type, ad_id=ad_id)
        self._spawn(
            self._deliver("POST", self.ad_event_url, sink="ad", event_type=event_type, json=body)
        )
        return body

    def track_ad_break_event(
        self, event_type: str, ad_break_id: str | None
    ) -> AdBreakEventPayload | None:
        """Schedule a ``track/adbreak`` post."""
        if not ad_break_id:
            return None

        body: AdBreakEventPayload = {
            "sessionId": self.session_id,
            "eventType": event_type,
            "adBreakId": ad_break_id,
            "timestamp": int(time.time() * 1000),
        }
        self.logger.debug("Tracking ad break event", event_type=event_type, ad_break_id=ad_break_id)
        self._spawn(
            self._deliver(
                "POST", self.ad_break_event_url, sink="adbreak", event_type=event_type, json=body
            )
        )
        return body

    def send_tracking_pixel(self, url: str, event_type: str = "pixel") -> None:
        """Schedule a tracking pixel GET; redirects are followed, the body is ignored."""
        self._spawn(
            self._deliver(
                "GET",
                url,
                sink="pixel",
                event_type=event_type,
                headers={"User-Agent": self.pixel_user_agent},
                timeout=self.pixel_timeout,
                follow_redirects=True,
            )
        )


__all__ = ["AdTrackingDispatcher", "AdTrackingEventType"]
