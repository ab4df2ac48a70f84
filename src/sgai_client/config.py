"""
SGAI Client Configuration Module

Provides the immutable runtime configuration of an engine instance. Values
are supplied at construction (directly or from Settings) and never change
for the lifetime of the engine.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urlparse

from .exceptions import ConfigValidationError
from .settings import Settings, get_settings


LIVE_MIME_TYPE = "application/x-mpegURL"
AD_MIME_TYPE = "video/mp4"


def _require_http_url(key: str, value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigValidationError(
            f"{key} must be an absolute http(s) URL",
            config_key=key,
            config_value=value,
        )


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for an SGAI engine instance.

    Attributes:
        stream_url: Root (usually multivariant) manifest of the live stream
        event_sink_url: Endpoint receiving lifecycle and ad lifecycle events
        tracking_base_url: Base URL of the ad-tracking backend
            (``track/ad`` and ``track/adbreak`` are appended); defaults to
            ``event_sink_url``
        manifest_poll_interval_ms: Delay between manifest polls
        heartbeat_interval_ms: Delay between heartbeat events
        quartile_poll_interval_ms: Playback position polling cadence during ads
        content_title: Title reported in the metadata event
        is_live: Live flag reported in the metadata event
        device_type: Device label reported in the metadata event
        host_rewrites: Host substitutions applied to resolved asset-list URLs,
            e.g. ``{"localhost": "10.0.2.2"}`` for an emulator
        pixel_user_agent: User-Agent sent with tracking pixels
        played_break_history: How many played break IDs to remember
        shutdown_grace_sec: Time in-flight sends get to finish on stop()

    Examples:
        >>> config = EngineConfig(
        ...     stream_url="https://live.example.com/loop/master.m3u8",
        ...     event_sink_url="https://sink.example.com",
        ...     content_title="SGAI Live Stream with Ads",
        ... )
    """

    stream_url: str
    event_sink_url: str
    tracking_base_url: str | None = None

    manifest_poll_interval_ms: int = 15_000
    heartbeat_interval_ms: int = 30_000
    quartile_poll_interval_ms: int = 250

    content_title: str | None = None
    is_live: bool = True
    device_type: str = "Python SGAI player"

    host_rewrites: Mapping[str, str] = field(default_factory=dict)
    pixel_user_agent: str = "SGAI-Python-Player/1.0"
    played_break_history: int = 64
    shutdown_grace_sec: float = 2.0

    def __post_init__(self) -> None:
        _require_http_url("stream_url", self.stream_url)
        _require_http_url("event_sink_url", self.event_sink_url)
        if self.tracking_base_url is not None:
            _require_http_url("tracking_base_url", self.tracking_base_url)

        for key in (
            "manifest_poll_interval_ms",
            "heartbeat_interval_ms",
            "quartile_poll_interval_ms",
        ):
            value = getattr(self, key)
            if value <= 0:
                raise ConfigValidationError(
                    f"{key} must be positive", config_key=key, config_value=value
                )

        if self.played_break_history < 0:
            raise ConfigValidationError(
                "played_break_history must not be negative",
                config_key="played_break_history",
                config_value=self.played_break_history,
            )

        # Freeze the mapping too, the dataclass alone only freezes the attribute
        object.__setattr__(self, "host_rewrites", MappingProxyType(dict(self.host_rewrites)))

    @property
    def effective_tracking_base_url(self) -> str:
        """Base URL the ad-tracking dispatcher posts to."""
        return self.tracking_base_url or self.event_sink_url

    @property
    def manifest_poll_interval_sec(self) -> float:
        return self.manifest_poll_interval_ms / 1000

    @property
    def heartbeat_interval_sec(self) -> float:
        return self.heartbeat_interval_ms / 1000

    @property
    def quartile_poll_interval_sec(self) -> float:
        return self.quartile_poll_interval_ms / 1000

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **overrides: Any
    ) -> "EngineConfig":
        """Build a configuration from Settings, with keyword overrides.

        Args:
            settings: Settings instance (global settings if None)
            **overrides: Field values taking precedence over settings

        Returns:
            EngineConfig instance
        """
        settings = settings or get_settings()
        values = settings.engine.model_dump()
        values.update(overrides)
        return cls(**values)


__all__ = [
    "EngineConfig",
    "LIVE_MIME_TYPE",
    "AD_MIME_TYPE",
]
