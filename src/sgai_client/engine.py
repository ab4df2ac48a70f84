"""
SGAI Engine

Root object of one playback session: creates the session identifier, wires
the fetcher, resolver, sinks, lifecycle tracker, splicer and poller around a
MediaPlayer, and tears all of them down on stop().
"""

import uuid

import httpx

from .asset_list import AssetListResolver
from .config import LIVE_MIME_TYPE, EngineConfig
from .event_sender import AnalyticsEventSender
from .events import SgaiEvents
from .fetcher import ManifestFetcher
from .http_client_manager import close_http_clients
from .lifecycle import DEFAULT_STOP_REASON, LifecycleEventTracker
from .log_config import clear_playback_context, get_context_logger, set_playback_context
from .metrics import MetricsCollector, NoOpMetrics
from .models import PlayerMode
from .player import MediaPlayer
from .poller import ManifestPoller
from .splicer import AdSplicer
from .time_provider import RealtimeTimeProvider, TimeProvider
from .tracker import AdTrackingDispatcher


class SgaiEngine:
    """
    Server-guided ad insertion engine for one player.

    Must be created inside a running event loop: the lifecycle tracker
    reports ``init``, ``metadata`` and ``loading`` on construction.

    Examples:
        >>> config = EngineConfig(
        ...     stream_url="https://live.example.com/loop/master.m3u8",
        ...     event_sink_url="https://sink.example.com",
        ... )
        >>> async with SgaiEngine(config, player) as engine:
        ...     await engine.run_forever()
    """

    def __init__(
        self,
        config: EngineConfig,
        player: MediaPlayer,
        *,
        time_provider: TimeProvider | None = None,
        metrics: MetricsCollector | None = None,
        main_http_client: httpx.AsyncClient | None = None,
        tracking_http_client: httpx.AsyncClient | None = None,
        session_id: str | None = None,
    ):
        """
        Initialize engine.

        Args:
            config: Immutable engine configuration
            player: Playback engine to drive
            time_provider: Clock for polling, heartbeat and ad durations
            metrics: Metrics collector (no-op if None)
            main_http_client: Client for manifests and asset lists (pooled if None)
            tracking_http_client: Client for sinks and pixels (pooled if None)
            session_id: Session identifier (random if None)
        """
        self.config = config
        self.player = player
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()
        self.session_id = session_id or str(uuid.uuid4())
        self._owns_http_clients = main_http_client is None or tracking_http_client is None

        self.logger = get_context_logger("sgai_engine")
        set_playback_context(session_id=self.session_id)

        self.fetcher = ManifestFetcher(main_http_client)
        self.resolver = AssetListResolver(main_http_client)
        self.sender = AnalyticsEventSender(
            config.event_sink_url,
            session_id=self.session_id,
            http_client=tracking_http_client,
            metrics=self.metrics,
        )
        self.dispatcher = AdTrackingDispatcher.from_config(
            config, self.session_id, http_client=tracking_http_client, metrics=self.metrics
        )
        self.lifecycle = LifecycleEventTracker.from_config(
            player, self.sender, config, time_provider=self.time_provider
        )
        self.splicer = AdSplicer.from_config(
            config,
            player,
            self.lifecycle,
            self.dispatcher,
            self.fetcher,
            time_provider=self.time_provider,
            metrics=self.metrics,
        )
        self.poller = ManifestPoller.from_config(
            config,
            self.fetcher,
            self.resolver,
            self.splicer,
            time_provider=self.time_provider,
            metrics=self.metrics,
        )

        self._live_source_prepared = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def mode(self) -> PlayerMode:
        return self.splicer.mode

    def start(self) -> None:
        """Start heartbeat, live playback and manifest polling."""
        if self._running:
            return
        self._running = True

        if not self._live_source_prepared:
            self.player.set_source(self.config.stream_url, LIVE_MIME_TYPE)
            self.player.prepare()
            self._live_source_prepared = True

        self.lifecycle.start_tracking()
        self.player.play()
        self.poller.start()

        self.logger.info(
            SgaiEvents.ENGINE_STARTED,
            stream_url=self.config.stream_url,
            event_sink_url=self.config.event_sink_url,
        )

    async def run_forever(self) -> None:
        """Start if needed and wait until the poller is cancelled."""
        self.start()
        task = self.poller.start()
        await task

    async def stop(self, reason: str = DEFAULT_STOP_REASON) -> None:
        """Stop polling and any ad break, report ``stopped`` and flush sends.

        In-flight sends get ``shutdown_grace_sec`` to finish before they are
        cancelled.
        """
        if not self._running:
            return
        self._running = False

        await self.poller.aclose()
        await self.splicer.aclose()

        self.player.pause()
        self.lifecycle.stop_tracking(reason)
        self.lifecycle.release()

        grace = self.config.shutdown_grace_sec
        cancelled = await self.sender.drain(grace)
        cancelled += await self.dispatcher.drain(grace)

        if self._owns_http_clients:
            await close_http_clients()

        self.logger.info(SgaiEvents.ENGINE_STOPPED, reason=reason, cancelled_sends=cancelled)
        clear_playback_context("session_id")

    async def __aenter__(self) -> "SgaiEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


__all__ = ["SgaiEngine"]
