"""Type definitions for the SGAI client wire payloads."""

from typing import Any, TypedDict


class LifecycleEventPayload(TypedDict, total=False):
    """Body POSTed to the event sink for lifecycle and ad lifecycle events."""

    event: str
    sessionId: str
    timestamp: int
    playhead: int
    duration: int
    payload: dict[str, Any]


class AdEventPayload(TypedDict, total=False):
    """Body POSTed to ``track/ad``."""

    sessionId: str
    eventType: str
    adId: str
    timestamp: int
    playbackPosition: int
    additionalData: dict[str, Any]


class AdBreakEventPayload(TypedDict):
    """Body POSTed to ``track/adbreak``."""

    sessionId: str
    eventType: str
    adBreakId: str
    timestamp: int


__all__ = ["LifecycleEventPayload", "AdEventPayload", "AdBreakEventPayload"]
