"""
Ad Splicer

Owns the player mode and walks one ad break at a time through

    IDLE -> BREAK_STARTED -> PLAYING_ASSET (per asset) -> BREAK_COMPLETE -> IDLE

For each asset the live source is swapped for the ad's media, ``start`` is
reported immediately, quartiles are polled while the ad plays and the asset
completes after exactly its listed duration of clock time. When the last
asset is done the live source is restored.

Every ad event goes through one guarded fan-out, ``_fire_ad_event()``,
which reports it to the lifecycle sink, the ad-tracking backend and the
asset's matching tracking pixel, at most once per asset.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Any, Iterable

from .config import AD_MIME_TYPE, LIVE_MIME_TYPE
from .cues import extract_media_uri
from .events import SgaiEvents
from .exceptions import AdManifestError, ManifestError, SpliceStateError
from .fetcher import ManifestFetcher
from .lifecycle import AdEventType, LifecycleEventTracker
from .log_config import (
    AdBreakContext,
    clear_playback_context,
    get_context_logger,
    set_playback_context,
)
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, SgaiMetrics
from .models import AdAsset, AdBreak, AdPlaybackState, PlayerMode, SplicerState
from .player import IsPlayingChanged, MediaPlayer, PlaybackState, PlayerError, PlayerNotification
from .quartile import QuartileTracker
from .time_provider import RealtimeTimeProvider, TimeProvider
from .tracker import AdTrackingDispatcher, AdTrackingEventType

if TYPE_CHECKING:
    from .config import EngineConfig


# Ad-tracking event name -> lifecycle sink event
AD_LIFECYCLE_EVENTS: dict[str, AdEventType] = {
    AdTrackingEventType.START.value: AdEventType.AD_START,
    AdTrackingEventType.FIRST_QUARTILE.value: AdEventType.AD_FIRST_QUARTILE,
    AdTrackingEventType.MIDPOINT.value: AdEventType.AD_MIDPOINT,
    AdTrackingEventType.THIRD_QUARTILE.value: AdEventType.AD_THIRD_QUARTILE,
    AdTrackingEventType.COMPLETE.value: AdEventType.AD_COMPLETE,
    AdTrackingEventType.PAUSE.value: AdEventType.AD_PAUSE,
    AdTrackingEventType.RESUME.value: AdEventType.AD_RESUME,
    AdTrackingEventType.ERROR.value: AdEventType.AD_ERROR,
}

# May fire several times per asset
REPEATABLE_AD_EVENTS = frozenset(
    {AdTrackingEventType.PAUSE.value, AdTrackingEventType.RESUME.value}
)

_AD_CONTEXT_KEYS = ("ad_id", "ad_index", "progress_percent")


class AdSplicer:
    """
    Sequential ad playback state machine.

    Examples:
        >>> splicer = AdSplicer(player, lifecycle, dispatcher, fetcher, live_url=stream_url)
        >>> task = splicer.begin_break(ad_break, assets)  # mode is AD_BREAK now
        >>> await task                                     # back to MAIN_CONTENT
    """

    def __init__(
        self,
        player: MediaPlayer,
        lifecycle: LifecycleEventTracker,
        dispatcher: AdTrackingDispatcher,
        fetcher: ManifestFetcher,
        *,
        live_url: str,
        quartile_interval_sec: float = 0.25,
        time_provider: TimeProvider | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.player = player
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher
        self.fetcher = fetcher
        self.live_url = live_url
        self.quartile_interval_sec = quartile_interval_sec
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()

        self.mode = PlayerMode.MAIN_CONTENT
        self.state = SplicerState.IDLE
        self.current: AdPlaybackState | None = None
        self.current_break: AdBreak | None = None

        self._break_task: asyncio.Task | None = None
        self._quartile_tracker: QuartileTracker | None = None
        self.logger = get_context_logger("ad_splicer")

        self.player.add_listener(self._on_player_notification)

    @classmethod
    def from_config(
        cls,
        config: "EngineConfig",
        player: MediaPlayer,
        lifecycle: LifecycleEventTracker,
        dispatcher: AdTrackingDispatcher,
        fetcher: ManifestFetcher,
        time_provider: TimeProvider | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "AdSplicer":
        return cls(
            player,
            lifecycle,
            dispatcher,
            fetcher,
            live_url=config.stream_url,
            quartile_interval_sec=config.quartile_poll_interval_sec,
            time_provider=time_provider,
            metrics=metrics,
        )

    @property
    def is_active(self) -> bool:
        return self.mode == PlayerMode.AD_BREAK

    # ===== Break lifecycle =====

    def begin_break(self, ad_break: AdBreak, assets: Iterable[AdAsset]) -> asyncio.Task:
        """Start an ad break.

        Break-start events fire and the mode switches to AD_BREAK before this
        returns; the assets are played by the returned task.

        Raises:
            SpliceStateError: If another break is in progress
        """
        if self.state != SplicerState.IDLE or self.mode == PlayerMode.AD_BREAK:
            raise SpliceStateError(
                "Ad break already in progress",
                context={
                    "active_break": self.current_break.id if self.current_break else None,
                    "requested_break": ad_break.id,
                },
            )

        assets = list(assets)
        self.current_break = ad_break
        self.state = SplicerState.BREAK_STARTED
        self.mode = PlayerMode.AD_BREAK

        self.logger.info(
            SgaiEvents.BREAK_STARTED,
            ad_break_id=ad_break.id,
            asset_count=len(assets),
        )
        self.metrics.increment(SgaiMetrics.BREAKS_STARTED)
        self.metrics.gauge(SgaiMetrics.AD_BREAK_ACTIVE, 1)

        self._send_break_event(AdEventType.AD_BREAK_START, ad_break)
        self.dispatcher.track_ad_break_event(AdTrackingEventType.BREAK_START.value, ad_break.id)

        self._break_task = asyncio.create_task(self._run_break(ad_break, assets))
        return self._break_task

    async def _run_break(self, ad_break: AdBreak, assets: list[AdAsset]) -> None:
        with AdBreakContext(ad_break_id=ad_break.id):
            try:
                for index, asset in enumerate(assets):
                    try:
                        await self._play_asset(asset, index, len(assets))
                    except ManifestError as e:
                        self._skip_asset(asset, e)
                    except Exception as e:
                        self.logger.exception(
                            "Ad asset playback failed",
                            ad_uri=asset.uri,
                            error=str(e),
                        )
                        self._skip_asset(asset, e)
                    finally:
                        self._finish_asset()
            except asyncio.CancelledError:
                self.logger.info("Ad break cancelled", ad_break_id=ad_break.id)
                raise

            self._complete_break(ad_break)

    def _skip_asset(self, asset: AdAsset, error: Exception) -> None:
        self.logger.warning(
            SgaiEvents.AD_SKIPPED,
            ad_uri=asset.uri,
            error=str(error),
            error_type=type(error).__name__,
        )
        self.metrics.increment(
            SgaiMetrics.ASSETS_SKIPPED,
            labels={MetricLabels.ERROR_TYPE: type(error).__name__},
        )

    async def resolve_media_uri(self, asset: AdAsset) -> str:
        """Fetch the asset's own manifest and return its playable media URI.

        Raises:
            ManifestFetchError: The ad manifest could not be fetched
            AdManifestError: The ad manifest has no https:// line
        """
        text = await self.fetcher.fetch_text(asset.uri)
        media_uri = extract_media_uri(text)
        if media_uri is None:
            raise AdManifestError("Ad manifest has no playable media URI", ad_uri=asset.uri)
        return media_uri

    async def _play_asset(self, asset: AdAsset, index: int, total: int) -> None:
        media_uri = await self.resolve_media_uri(asset)

        self.state = SplicerState.PLAYING_ASSET
        self.current = AdPlaybackState(
            asset=asset, started_at_epoch_ms=int(time.time() * 1000)
        )
        set_playback_context(ad_id=asset.resolved_id, ad_index=f"{index + 1}/{total}")

        self.player.set_source(media_uri, AD_MIME_TYPE)
        self.player.prepare()
        self.player.play()

        impression_url = asset.tracking_urls.get(AdTrackingEventType.IMPRESSION.value)
        if impression_url:
            self.dispatcher.send_tracking_pixel(
                impression_url, AdTrackingEventType.IMPRESSION.value
            )
        self._fire_ad_event(AdTrackingEventType.START.value)

        self.logger.info(
            SgaiEvents.AD_SPLICED,
            media_uri=media_uri,
            duration_seconds=asset.duration_seconds,
        )
        self.metrics.increment(SgaiMetrics.ASSETS_SPLICED)

        self._quartile_tracker = QuartileTracker(
            self.player,
            self.current,
            self._fire_ad_event,
            interval_sec=self.quartile_interval_sec,
            time_provider=self.time_provider,
        )
        self._quartile_tracker.start()

        await self.time_provider.sleep(asset.duration_seconds)

        self._stop_quartile_tracker()
        self._fire_ad_event(AdTrackingEventType.COMPLETE.value)
        self.logger.info(SgaiEvents.AD_COMPLETED, fired_events=sorted(self.current.fired_events))

    def _finish_asset(self) -> None:
        self._stop_quartile_tracker()
        self.current = None
        clear_playback_context(*_AD_CONTEXT_KEYS)

    def _stop_quartile_tracker(self) -> None:
        if self._quartile_tracker is not None:
            self._quartile_tracker.stop()
            self._quartile_tracker = None

    def _complete_break(self, ad_break: AdBreak) -> None:
        self.state = SplicerState.BREAK_COMPLETE
        self._send_break_event(AdEventType.AD_BREAK_END, ad_break)
        self.dispatcher.track_ad_break_event(
            AdTrackingEventType.BREAK_COMPLETE.value, ad_break.id
        )

        try:
            self.player.set_source(self.live_url, LIVE_MIME_TYPE)
            self.player.prepare()
            self.player.play()
        except Exception as e:
            self.logger.exception(
                "Failed to restore live source",
                live_url=self.live_url,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            # Cue detection stays blocked until the mode is back to main content
            self.mode = PlayerMode.MAIN_CONTENT
            self.state = SplicerState.IDLE
            self.current_break = None
            self._break_task = None
            self.metrics.gauge(SgaiMetrics.AD_BREAK_ACTIVE, 0)

        self.logger.info(SgaiEvents.BREAK_COMPLETED, ad_break_id=ad_break.id)
        self.metrics.increment(SgaiMetrics.BREAKS_COMPLETED)

    # ===== Event fan-out =====

    def _ad_payload(self, event_name: str, **extra: Any) -> dict[str, Any]:
        return {
            "event_type": event_name,
            "ad_id": self.current.ad_id if self.current else "unknown",
            "session_id": self.dispatcher.session_id,
            "timestamp": int(time.time() * 1000),
            "playback_position": self.player.current_position(),
            **extra,
        }

    def _send_break_event(self, event_type: AdEventType, ad_break: AdBreak) -> None:
        self.lifecycle.send_ad_event(
            event_type, self._ad_payload(event_type.value, ad_break_id=ad_break.id)
        )

    def _fire_ad_event(
        self, event_name: str, additional_data: dict[str, Any] | None = None
    ) -> bool:
        """Report an ad event for the current asset to every sink.

        Returns:
            True if the event was sent, False if there is no current asset or
            the event already fired for it
        """
        current = self.current
        if current is None:
            return False

        if event_name in REPEATABLE_AD_EVENTS:
            current.fired_events.add(event_name)
        elif not current.mark_fired(event_name):
            return False

        lifecycle_event = AD_LIFECYCLE_EVENTS[event_name]
        self.lifecycle.send_ad_event(lifecycle_event, self._ad_payload(lifecycle_event.value))
        self.dispatcher.track_ad_event(
            event_name,
            current.ad_id,
            self.player.current_position(),
            additional_data,
        )

        pixel_url = current.asset.tracking_urls.get(event_name)
        if pixel_url:
            self.dispatcher.send_tracking_pixel(pixel_url, event_name)
        return True

    def _on_player_notification(self, notification: PlayerNotification) -> None:
        current = self.current
        if current is None or self.state != SplicerState.PLAYING_ASSET:
            return

        if isinstance(notification, IsPlayingChanged):
            if notification.is_playing:
                if AdTrackingEventType.PAUSE.value in current.fired_events:
                    current.fired_events.discard(AdTrackingEventType.PAUSE.value)
                    self._fire_ad_event(AdTrackingEventType.RESUME.value)
            elif notification.playback_state == PlaybackState.READY:
                self._fire_ad_event(AdTrackingEventType.PAUSE.value)

        elif isinstance(notification, PlayerError):
            self._fire_ad_event(
                AdTrackingEventType.ERROR.value,
                {"code": notification.code, "message": notification.message},
            )

    # ===== Teardown =====

    async def aclose(self) -> None:
        """Cancel the running break, if any, and detach from the player."""
        self.player.remove_listener(self._on_player_notification)
        task = self._break_task
        self._break_task = None
        self._stop_quartile_tracker()
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.current = None


__all__ = ["AdSplicer", "AD_LIFECYCLE_EVENTS", "REPEATABLE_AD_EVENTS"]
