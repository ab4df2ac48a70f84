"""Ad break domain models."""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class PlayerMode(str, Enum):
    """What the shared player is currently showing."""

    MAIN_CONTENT = "main_content"
    AD_BREAK = "ad_break"


class SplicerState(str, Enum):
    """Ad splicer states."""

    IDLE = "idle"
    BREAK_STARTED = "break_started"
    PLAYING_ASSET = "playing_asset"
    BREAK_COMPLETE = "break_complete"


@dataclass(frozen=True)
class AdBreak:
    """An ad break signaled by one manifest cue."""

    id: str
    asset_list_url: str


def derive_ad_id(uri: str) -> str:
    """Stable short identifier for an ad, derived from its URI."""
    return hashlib.sha1(uri.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class AdAsset:
    """
    One ad of an ad break, as listed in the asset list.

    Attributes:
        uri: URI of the ad's own manifest
        duration_seconds: Playback window of the ad
        tracking_urls: Tracking pixel URL per event name (impression, start, ...)
        asset_id: Optional ID carried by the asset list
        resolved_id: Identifier derived from ``uri``, used as the ad id in events
    """

    uri: str
    duration_seconds: float
    tracking_urls: Mapping[str, str] = field(default_factory=dict)
    asset_id: str | None = None
    resolved_id: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tracking_urls", MappingProxyType(dict(self.tracking_urls)))
        object.__setattr__(self, "resolved_id", derive_ad_id(self.uri))

    @property
    def duration_ms(self) -> int:
        return int(self.duration_seconds * 1000)


@dataclass
class AdPlaybackState:
    """Mutable record of the asset currently playing.

    ``fired_events`` holds ad-tracking event names (start, firstQuartile, ...)
    already emitted for this asset.
    """

    asset: AdAsset
    started_at_epoch_ms: int
    fired_events: set[str] = field(default_factory=set)

    @property
    def ad_id(self) -> str:
        return self.asset.resolved_id

    def mark_fired(self, event_name: str) -> bool:
        """Record an event as fired.

        Returns:
            True if this is the first firing, False if it already fired
        """
        if event_name in self.fired_events:
            return False
        self.fired_events.add(event_name)
        return True


__all__ = [
    "PlayerMode",
    "SplicerState",
    "AdBreak",
    "AdAsset",
    "AdPlaybackState",
    "derive_ad_id",
]
