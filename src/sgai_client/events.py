"""SGAI event name constants for structured logging."""

from enum import Enum


class SgaiEvents(str, Enum):
    """Event type constants for structured logging."""

    # Poller events
    POLL_STARTED = "sgai.poll.started"
    POLL_SKIPPED = "sgai.poll.skipped"
    POLL_UNCHANGED = "sgai.poll.unchanged"
    POLL_FAILED = "sgai.poll.failed"
    CUE_DETECTED = "sgai.cue.detected"

    # Asset list events
    ASSET_LIST_RESOLVED = "sgai.asset_list.resolved"
    ASSET_LIST_FAILED = "sgai.asset_list.failed"

    # Break events
    BREAK_STARTED = "sgai.break.started"
    BREAK_COMPLETED = "sgai.break.completed"
    BREAK_SKIPPED = "sgai.break.skipped"

    # Ad events
    AD_SPLICED = "sgai.ad.spliced"
    AD_SKIPPED = "sgai.ad.skipped"
    AD_COMPLETED = "sgai.ad.completed"
    QUARTILE_REACHED = "sgai.ad.quartile"

    # Tracking events
    TRACKING_REQUEST = "sgai.tracking.request"
    TRACKING_EVENT_SENT = "sgai.tracking.sent"
    TRACKING_FAILED = "sgai.tracking.failed"
    LIFECYCLE_EVENT_FAILED = "sgai.lifecycle.failed"

    # Engine events
    ENGINE_STARTED = "sgai.engine.started"
    ENGINE_STOPPED = "sgai.engine.stopped"

    def __str__(self) -> str:
        return self.value

    def __format__(self, format_spec: str) -> str:
        return format(self.value, format_spec)


__all__ = ["SgaiEvents"]
