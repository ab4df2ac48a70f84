"""Progress/quartile tracking for the ad asset currently playing."""

import asyncio
from typing import Callable

from .events import SgaiEvents
from .log_config import get_context_logger, update_playback_progress
from .models import AdPlaybackState
from .player import MediaPlayer
from .time_provider import RealtimeTimeProvider, TimeProvider


# Checked in this order; at most one fires per tick
QUARTILE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (25.0, "firstQuartile"),
    (50.0, "midpoint"),
    (75.0, "thirdQuartile"),
)


class QuartileTracker:
    """
    Polls the playback position of one ad asset and fires quartile events.

    Progress is ``position / (duration * 1000) * 100``. Each tick fires the
    first threshold reached that has not fired yet, so crossing two
    thresholds between polls reports the second one on the next tick.
    Ticks are no-ops while the player is not playing.

    Args:
        player: Player whose position is polled
        playback_state: State of the asset being played (holds fired events)
        fire: Callback that emits a tracking event by name (start, midpoint, ...)
        interval_sec: Polling cadence
        time_provider: Clock used for the polling delay
    """

    def __init__(
        self,
        player: MediaPlayer,
        playback_state: AdPlaybackState,
        fire: Callable[[str], bool],
        interval_sec: float = 0.25,
        time_provider: TimeProvider | None = None,
    ):
        self.player = player
        self.playback_state = playback_state
        self.fire = fire
        self.interval_sec = interval_sec
        self.time_provider = time_provider or RealtimeTimeProvider()
        self._task: asyncio.Task | None = None
        self.logger = get_context_logger("quartile_tracker")

    def progress_percent(self) -> float | None:
        """Current progress of the asset, None if its duration is zero."""
        duration_ms = self.playback_state.asset.duration_seconds * 1000
        if duration_ms <= 0:
            return None
        return self.player.current_position() / duration_ms * 100

    def tick(self) -> str | None:
        """Poll once.

        Returns:
            Name of the event fired, or None
        """
        if not self.player.is_playing:
            return None

        percent = self.progress_percent()
        if percent is None:
            return None

        update_playback_progress(progress_percent=round(percent, 1))
        for threshold, event_name in QUARTILE_THRESHOLDS:
            if percent >= threshold and event_name not in self.playback_state.fired_events:
                self.logger.info(
                    SgaiEvents.QUARTILE_REACHED,
                    quartile=event_name,
                    progress_percent=round(percent, 1),
                )
                self.fire(event_name)
                return event_name
        return None

    async def run(self) -> None:
        while True:
            self.tick()
            await self.time_provider.sleep(self.interval_sec)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()


__all__ = ["QuartileTracker", "QUARTILE_THRESHOLDS"]
