"""
Lifecycle Event Tracker

Converts playback engine notifications into the canonical lifecycle event
taxonomy and forwards them to the event sink. Also carries the heartbeat
timer and the ad lifecycle events (ad_break_start, ad_start, ...) that share
the same sink.

The transition logic lives in a single function, ``handle()``, which returns
the events a notification produces; ``on_player_notification()`` is the
listener that sends them.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .event_sender import AnalyticsEventSender
from .events import SgaiEvents
from .log_config import get_context_logger
from .player import (
    DiscontinuityReason,
    FormatChanged,
    IsPlayingChanged,
    MediaPlayer,
    PlaybackState,
    PlayerError,
    PlayerNotification,
    PositionDiscontinuity,
    SeekProcessed,
    StateChanged,
)
from .time_provider import RealtimeTimeProvider, TimeProvider
from .types import LifecycleEventPayload

if TYPE_CHECKING:
    from .config import EngineConfig


class AnalyticsEventType(str, Enum):
    """Lifecycle event taxonomy."""

    INIT = "init"
    METADATA = "metadata"
    LOADING = "loading"
    LOADED = "loaded"
    HEARTBEAT = "heartbeat"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    BUFFERED = "buffered"
    SEEKING = "seeking"
    SEEKED = "seeked"
    BITRATE_CHANGED = "bitrate_changed"
    STOPPED = "stopped"
    ERROR = "error"


class AdEventType(str, Enum):
    """Ad lifecycle events sent through the lifecycle sink."""

    AD_BREAK_START = "ad_break_start"
    AD_BREAK_END = "ad_break_end"
    AD_START = "ad_start"
    AD_FIRST_QUARTILE = "ad_first_quartile"
    AD_MIDPOINT = "ad_midpoint"
    AD_THIRD_QUARTILE = "ad_third_quartile"
    AD_COMPLETE = "ad_complete"
    AD_PAUSE = "ad_pause"
    AD_RESUME = "ad_resume"
    AD_ERROR = "ad_error"


DEFAULT_STOP_REASON = "Stopped by user"
ENDED_STOP_REASON = "Playback ended"


@dataclass
class LifecycleTrackerState:
    """Flags owned by the tracker; never reset during its life."""

    loaded_event_sent: bool = False
    buffering_ongoing: bool = False
    seeking_ongoing: bool = False
    playing_reported: bool = False
    last_format: tuple[int, int, int] | None = None


@dataclass(frozen=True)
class LifecycleEvent:
    """One outbound event for the event sink."""

    event: str
    playhead: int
    duration: int
    timestamp: int
    payload: dict[str, Any] | None = None

    @classmethod
    def create(
        cls,
        event: str,
        playhead: int = 0,
        duration: int = 0,
        payload: dict[str, Any] | None = None,
    ) -> "LifecycleEvent":
        return cls(
            event=event,
            playhead=playhead,
            duration=duration,
            timestamp=int(time.time() * 1000),
            payload=payload,
        )

    def to_payload(self, session_id: str) -> LifecycleEventPayload:
        body: LifecycleEventPayload = {
            "event": self.event,
            "sessionId": session_id,
            "timestamp": self.timestamp,
            "playhead": self.playhead,
            "duration": self.duration,
        }
        if self.payload is not None:
            body["payload"] = self.payload
        return body


class LifecycleEventTracker:
    """
    Tracks one MediaPlayer and reports its lifecycle.

    Construction subscribes to the player and emits ``init``, ``metadata``
    and ``loading``. ``start_tracking()`` starts the heartbeat;
    ``stop_tracking()`` stops it and reports ``stopped``.

    Examples:
        >>> tracker = LifecycleEventTracker(
        ...     player, sender, content_title="Live", is_live=True
        ... )
        >>> tracker.start_tracking()
        >>> ...
        >>> tracker.stop_tracking()
    """

    def __init__(
        self,
        player: MediaPlayer,
        sender: AnalyticsEventSender,
        *,
        content_title: str | None = None,
        is_live: bool = False,
        device_type: str = "Python player",
        heartbeat_interval_ms: int = 30_000,
        time_provider: TimeProvider | None = None,
    ):
        self.player = player
        self.sender = sender
        self.content_title = content_title
        self.is_live = is_live
        self.device_type = device_type
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.time_provider = time_provider or RealtimeTimeProvider()

        self.state = LifecycleTrackerState()
        self._heartbeat_task: asyncio.Task | None = None
        self.logger = get_context_logger("lifecycle_tracker")

        self.player.add_listener(self.on_player_notification)
        self._initialize_tracking()

    @classmethod
    def from_config(
        cls,
        player: MediaPlayer,
        sender: AnalyticsEventSender,
        config: "EngineConfig",
        time_provider: TimeProvider | None = None,
    ) -> "LifecycleEventTracker":
        return cls(
            player,
            sender,
            content_title=config.content_title,
            is_live=config.is_live,
            device_type=config.device_type,
            heartbeat_interval_ms=config.heartbeat_interval_ms,
            time_provider=time_provider,
        )

    def _initialize_tracking(self) -> None:
        self.sender.send(LifecycleEvent.create(AnalyticsEventType.INIT.value, 0, -1))
        self.sender.send(
            LifecycleEvent.create(
                AnalyticsEventType.METADATA.value,
                payload={
                    "live": self.is_live,
                    "contentTitle": self.content_title,
                    "deviceType": self.device_type,
                },
            )
        )
        self.sender.send(LifecycleEvent.create(AnalyticsEventType.LOADING.value))

    def _event(
        self,
        event_type: "AnalyticsEventType | AdEventType",
        payload: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        return LifecycleEvent.create(
            event_type.value,
            playhead=self.player.current_position(),
            duration=self.player.duration(),
            payload=payload,
        )

    # ===== State transitions =====

    def handle(self, notification: PlayerNotification) -> list[LifecycleEvent]:
        """Apply one player notification and return the events it produces."""
        state = self.state
        events: list[LifecycleEvent] = []

        if isinstance(notification, StateChanged):
            if notification.playback_state == PlaybackState.BUFFERING:
                if not state.buffering_ongoing:
                    state.buffering_ongoing = True
                    events.append(self._event(AnalyticsEventType.BUFFERING))

            elif notification.playback_state == PlaybackState.READY:
                if state.buffering_ongoing:
                    state.buffering_ongoing = False
                    events.append(self._event(AnalyticsEventType.BUFFERED))
                if not state.loaded_event_sent:
                    state.loaded_event_sent = True
                    events.append(LifecycleEvent.create(AnalyticsEventType.LOADED.value))
                if notification.play_when_ready and not state.playing_reported:
                    state.playing_reported = True
                    events.append(self._event(AnalyticsEventType.PLAYING))

            elif notification.playback_state == PlaybackState.ENDED:
                state.playing_reported = False
                events.append(
                    self._event(AnalyticsEventType.STOPPED, {"reason": ENDED_STOP_REASON})
                )

        elif isinstance(notification, IsPlayingChanged):
            if notification.is_playing:
                if not state.playing_reported:
                    state.playing_reported = True
                    events.append(self._event(AnalyticsEventType.PLAYING))
            else:
                state.playing_reported = False
                if notification.playback_state not in (
                    PlaybackState.BUFFERING,
                    PlaybackState.ENDED,
                ):
                    events.append(self._event(AnalyticsEventType.PAUSED))

        elif isinstance(notification, PositionDiscontinuity):
            if notification.reason == DiscontinuityReason.SEEK:
                state.seeking_ongoing = True
                events.append(self._event(AnalyticsEventType.SEEKING))

        elif isinstance(notification, SeekProcessed):
            if state.seeking_ongoing:
                state.seeking_ongoing = False
                events.append(self._event(AnalyticsEventType.SEEKED))

        elif isinstance(notification, FormatChanged):
            video_format = (notification.bitrate // 1000, notification.width, notification.height)
            if video_format != state.last_format:
                state.last_format = video_format
                events.append(
                    self._event(
                        AnalyticsEventType.BITRATE_CHANGED,
                        {
                            "bitrate": video_format[0],
                            "width": notification.width,
                            "height": notification.height,
                        },
                    )
                )

        elif isinstance(notification, PlayerError):
            events.append(
                self._event(
                    AnalyticsEventType.ERROR,
                    {
                        "category": notification.category,
                        "code": notification.code,
                        "message": notification.message,
                    },
                )
            )

        return events

    def on_player_notification(self, notification: PlayerNotification) -> None:
        for event in self.handle(notification):
            self.sender.send(event)

    # ===== Heartbeat =====

    @property
    def is_tracking(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    def start_tracking(self) -> None:
        """Start the heartbeat timer (first heartbeat is sent right away)."""
        if self.is_tracking:
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        self.logger.info(
            "Lifecycle tracking started",
            heartbeat_interval_ms=self.heartbeat_interval_ms,
        )

    async def _heartbeat_loop(self) -> None:
        interval = self.heartbeat_interval_ms / 1000
        while True:
            self.sender.send(self._event(AnalyticsEventType.HEARTBEAT))
            await self.time_provider.sleep(interval)

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def stop_tracking(self, reason: str = DEFAULT_STOP_REASON) -> None:
        """Stop the heartbeat and report ``stopped`` with ``reason``."""
        self._cancel_heartbeat()
        self.sender.send(self._event(AnalyticsEventType.STOPPED, {"reason": reason}))
        self.logger.info("Lifecycle tracking stopped", reason=reason)

    def release(self) -> None:
        """Stop the heartbeat and detach from the player, without an event."""
        self._cancel_heartbeat()
        self.player.remove_listener(self.on_player_notification)

    # ===== Manual events =====

    def send_custom_event(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        playhead: int | None = None,
        duration: int | None = None,
    ) -> LifecycleEvent | None:
        """Send an event from the lifecycle taxonomy by name.

        Unknown names are logged and skipped.
        """
        try:
            analytics_type = AnalyticsEventType(event_type.lower())
        except ValueError:
            self.logger.warning(
                SgaiEvents.LIFECYCLE_EVENT_FAILED,
                reason="unknown_event_type",
                event_type=event_type,
            )
            return None

        event = LifecycleEvent.create(
            analytics_type.value,
            playhead=self.player.current_position() if playhead is None else playhead,
            duration=self.player.duration() if duration is None else duration,
            payload=payload,
        )
        self.sender.send(event)
        return event

    def send_ad_event(
        self, event_type: AdEventType | str, payload: dict[str, Any] | None = None
    ) -> LifecycleEvent | None:
        """Send an ad lifecycle event (ad_break_start, ad_start, ...) to the sink."""
        try:
            ad_type = AdEventType(event_type)
        except ValueError:
            self.logger.warning(
                SgaiEvents.LIFECYCLE_EVENT_FAILED,
                reason="unknown_ad_event_type",
                event_type=str(event_type),
            )
            return None

        event = self._event(ad_type, payload)
        self.sender.send(event)
        return event


__all__ = [
    "AnalyticsEventType",
    "AdEventType",
    "LifecycleTrackerState",
    "LifecycleEvent",
    "LifecycleEventTracker",
    "DEFAULT_STOP_REASON",
    "ENDED_STOP_REASON",
]
