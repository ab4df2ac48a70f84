"""
Media Player Interface

The engine never decodes media itself. It drives a MediaPlayer (swap source,
prepare, play) and listens to the notifications the player emits. Any real
playback backend can be adapted to this interface; HeadlessMediaPlayer is a
simulated backend driven by a TimeProvider, used for dry runs and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from .log_config import get_context_logger
from .time_provider import RealtimeTimeProvider, TimeProvider


class PlaybackState(str, Enum):
    """Playback engine states."""

    IDLE = "idle"
    BUFFERING = "buffering"
    READY = "ready"
    ENDED = "ended"


class DiscontinuityReason(str, Enum):
    """Why the playback position jumped."""

    SEEK = "seek"
    AUTO_TRANSITION = "auto_transition"
    INTERNAL = "internal"


@dataclass(frozen=True)
class StateChanged:
    playback_state: PlaybackState
    play_when_ready: bool = False


@dataclass(frozen=True)
class IsPlayingChanged:
    is_playing: bool
    playback_state: PlaybackState


@dataclass(frozen=True)
class PositionDiscontinuity:
    reason: DiscontinuityReason
    old_position_ms: int = 0
    new_position_ms: int = 0


@dataclass(frozen=True)
class SeekProcessed:
    pass


@dataclass(frozen=True)
class PlayerError:
    code: str
    message: str | None = None
    category: str = "playback"


@dataclass(frozen=True)
class FormatChanged:
    """Decoded video format changed; ``bitrate`` is in bits per second."""

    bitrate: int
    width: int
    height: int


PlayerNotification = Union[
    StateChanged,
    IsPlayingChanged,
    PositionDiscontinuity,
    SeekProcessed,
    PlayerError,
    FormatChanged,
]
PlayerListener = Callable[[PlayerNotification], None]


class MediaPlayer(ABC):
    """
    Abstract playback engine.

    Implementations call ``_notify()`` for every state change; registered
    listeners are invoked synchronously, in registration order.
    """

    def __init__(self):
        self._listeners: list[PlayerListener] = []
        self.logger = get_context_logger("media_player")

    def add_listener(self, listener: PlayerListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PlayerListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, notification: PlayerNotification) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                self.logger.error(
                    "Player listener failed",
                    notification=type(notification).__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    @abstractmethod
    def set_source(self, uri: str, mime_hint: str) -> None:
        """Replace the current media source."""
        pass

    @abstractmethod
    def prepare(self) -> None:
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def current_position(self) -> int:
        """Current playback position in milliseconds."""
        pass

    @abstractmethod
    def duration(self) -> int:
        """Media duration in milliseconds, -1 if unknown (live)."""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        pass

    @property
    @abstractmethod
    def playback_state(self) -> PlaybackState:
        pass

    @property
    @abstractmethod
    def play_when_ready(self) -> bool:
        pass


class HeadlessMediaPlayer(MediaPlayer):
    """
    Simulated playback engine.

    Position advances with the time provider while playing. ``prepare()``
    goes through BUFFERING to READY immediately. Scripted events
    (seek, failure, end of media, format change) are injected with
    ``seek_to()``, ``fail()``, ``finish()`` and ``change_format()``.

    Examples:
        >>> clock = SimulatedTimeProvider()
        >>> player = HeadlessMediaPlayer(clock)
        >>> player.set_source("https://live.example.com/master.m3u8", LIVE_MIME_TYPE)
        >>> player.prepare()
        >>> player.play()
        >>> await clock.advance(2.6)
        >>> player.current_position()
        2600
    """

    def __init__(
        self,
        time_provider: TimeProvider | None = None,
        media_durations_ms: dict[str, int] | None = None,
        default_duration_ms: int = -1,
    ):
        """
        Initialize headless player.

        Args:
            time_provider: Clock driving the playback position
            media_durations_ms: Known durations per source URI
            default_duration_ms: Duration reported for other sources
        """
        super().__init__()
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.media_durations_ms = dict(media_durations_ms or {})
        self.default_duration_ms = default_duration_ms

        self.sources: list[tuple[str, str]] = []
        self._uri: str | None = None
        self._state = PlaybackState.IDLE
        self._play_when_ready = False
        self._is_playing = False
        self._position_ms = 0.0
        self._anchor: float | None = None

    @property
    def current_source(self) -> str | None:
        return self._uri

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def playback_state(self) -> PlaybackState:
        return self._state

    @property
    def play_when_ready(self) -> bool:
        return self._play_when_ready

    def duration(self) -> int:
        if self._uri is None:
            return -1
        return self.media_durations_ms.get(self._uri, self.default_duration_ms)

    def current_position(self) -> int:
        position = self._position_ms
        if self._anchor is not None:
            position += self.time_provider.elapsed_time(self._anchor) * 1000
        duration = self.duration()
        if duration >= 0:
            position = min(position, duration)
        return int(round(position))

    def set_source(self, uri: str, mime_hint: str) -> None:
        was_playing = self._is_playing
        self._freeze()
        self._uri = uri
        self.sources.append((uri, mime_hint))
        self._position_ms = 0.0
        self.logger.debug("Source set", uri=uri, mime_hint=mime_hint)

        self._set_state(PlaybackState.IDLE)
        if was_playing:
            self._set_is_playing(False)

    def prepare(self) -> None:
        if self._uri is None:
            self.logger.warning("prepare() called without a source")
            return
        self._set_state(PlaybackState.BUFFERING)
        self._set_state(PlaybackState.READY)
        self._sync_is_playing()

    def play(self) -> None:
        self._play_when_ready = True
        self._sync_is_playing()

    def pause(self) -> None:
        self._play_when_ready = False
        self._sync_is_playing()

    def seek_to(self, position_ms: int) -> None:
        old_position = self.current_position()
        self._freeze()
        self._position_ms = float(max(0, position_ms))
        if self._is_playing:
            self._anchor = self.time_provider.now()
        self._notify(
            PositionDiscontinuity(
                DiscontinuityReason.SEEK, old_position, self.current_position()
            )
        )
        self._notify(SeekProcessed())

    def fail(self, code: str, message: str | None = None) -> None:
        """Simulate a playback failure; the player drops back to IDLE."""
        self._freeze()
        self._notify(PlayerError(code=code, message=message))
        self._set_state(PlaybackState.IDLE)
        self._set_is_playing(False)

    def finish(self) -> None:
        """Simulate reaching the end of the media."""
        duration = self.duration()
        self._freeze()
        if duration >= 0:
            self._position_ms = float(duration)
        self._set_state(PlaybackState.ENDED)
        self._set_is_playing(False)

    def change_format(self, bitrate: int, width: int, height: int) -> None:
        self._notify(FormatChanged(bitrate=bitrate, width=width, height=height))

    def _freeze(self) -> None:
        if self._anchor is not None:
            self._position_ms = float(self.current_position())
            self._anchor = None

    def _set_state(self, state: PlaybackState) -> None:
        if state == self._state:
            return
        self._state = state
        self._notify(StateChanged(state, self._play_when_ready))

    def _set_is_playing(self, is_playing: bool) -> None:
        if is_playing == self._is_playing:
            return
        if is_playing:
            self._anchor = self.time_provider.now()
        else:
            self._freeze()
        self._is_playing = is_playing
        self._notify(IsPlayingChanged(is_playing, self._state))

    def _sync_is_playing(self) -> None:
        self._set_is_playing(
            self._play_when_ready and self._state == PlaybackState.READY
        )


__all__ = [
    "PlaybackState",
    "DiscontinuityReason",
    "StateChanged",
    "IsPlayingChanged",
    "PositionDiscontinuity",
    "SeekProcessed",
    "PlayerError",
    "FormatChanged",
    "PlayerNotification",
    "PlayerListener",
    "MediaPlayer",
    "HeadlessMediaPlayer",
]
