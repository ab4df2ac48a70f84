"""
SGAI Client Package

A client-side server-guided ad insertion (SGAI) engine on top of a playback
lifecycle analytics tracker.

This package provides:
- SgaiEngine: Root object wiring polling, splicing and tracking around a player
- ManifestPoller: Live manifest polling and ad cue detection
- AdSplicer: Sequential ad playback state machine
- LifecycleEventTracker: Playback lifecycle events and heartbeat
- AdTrackingDispatcher: Ad / ad break events and tracking pixels
- HeadlessMediaPlayer: Simulated player for dry runs and tests

Usage:
    from sgai_client import EngineConfig, HeadlessMediaPlayer, SgaiEngine

    config = EngineConfig(
        stream_url="https://live.example.com/loop/master.m3u8",
        event_sink_url="https://sink.example.com",
    )
    async with SgaiEngine(config, HeadlessMediaPlayer()) as engine:
        await engine.run_forever()
"""

from .asset_list import AssetListResolver
from .config import AD_MIME_TYPE, LIVE_MIME_TYPE, EngineConfig
from .engine import SgaiEngine
from .event_sender import AnalyticsEventSender
from .fetcher import ManifestFetcher
from .lifecycle import (
    AdEventType,
    AnalyticsEventType,
    LifecycleEvent,
    LifecycleEventTracker,
    LifecycleTrackerState,
)
from .metrics import MetricsCollector, NoOpMetrics, PrometheusMetrics
from .models import AdAsset, AdBreak, AdPlaybackState, PlayerMode, SplicerState
from .player import (
    HeadlessMediaPlayer,
    MediaPlayer,
    PlaybackState,
    PlayerNotification,
)
from .poller import ManifestPoller
from .quartile import QuartileTracker
from .settings import Settings, get_settings
from .splicer import AdSplicer
from .time_provider import (
    RealtimeTimeProvider,
    SimulatedTimeProvider,
    TimeProvider,
    create_time_provider,
)
from .tracker import AdTrackingDispatcher, AdTrackingEventType

__version__ = "1.0.0"

__all__ = [
    # Main classes
    "SgaiEngine",
    "ManifestPoller",
    "ManifestFetcher",
    "AssetListResolver",
    "AdSplicer",
    "QuartileTracker",
    "LifecycleEventTracker",
    "AnalyticsEventSender",
    "AdTrackingDispatcher",
    # Models
    "AdBreak",
    "AdAsset",
    "AdPlaybackState",
    "PlayerMode",
    "SplicerState",
    "LifecycleEvent",
    "LifecycleTrackerState",
    "AnalyticsEventType",
    "AdEventType",
    "AdTrackingEventType",
    # Player
    "MediaPlayer",
    "HeadlessMediaPlayer",
    "PlaybackState",
    "PlayerNotification",
    # Configuration
    "EngineConfig",
    "Settings",
    "get_settings",
    "LIVE_MIME_TYPE",
    "AD_MIME_TYPE",
    # Metrics
    "MetricsCollector",
    "NoOpMetrics",
    "PrometheusMetrics",
    # Time providers
    "TimeProvider",
    "RealtimeTimeProvider",
    "SimulatedTimeProvider",
    "create_time_provider",
    # Package metadata
    "__version__",
]


def create_engine(config=None, player=None, **kwargs):
    """Create an SgaiEngine.

    Convenience function; call it from inside a running event loop.

    Args:
        config: EngineConfig (built from settings if None)
        player: MediaPlayer to drive (a HeadlessMediaPlayer if None)
        **kwargs: Passed to SgaiEngine

    Returns:
        SgaiEngine: Configured engine
    """
    config = config or EngineConfig.from_settings()
    if player is None:
        player = HeadlessMediaPlayer(kwargs.get("time_provider"))
    return SgaiEngine(config, player, **kwargs)
