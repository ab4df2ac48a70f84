"""Integration tests for end-to-end SGAI engine sessions."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import (
    EVENT_SINK_URL,
    RENDITION_URL,
    SESSION_ID,
    STREAM_URL,
    TRACKING_BASE_URL,
    ad_manifest,
    asset_list_json,
    fetched_pixels,
    posted_bodies,
    sink_event_names,
)
from sgai_client import SgaiEngine, create_engine
from sgai_client.config import AD_MIME_TYPE, LIVE_MIME_TYPE
from sgai_client.models import PlayerMode, derive_ad_id


ASSET_LIST_URL = "http://10.0.2.2:3333/list.json"
AD_URI = "https://ads.example.com/ad1/manifest.m3u8"
AD_MEDIA = "https://cdn.example.com/ad1.mp4"
IMPRESSION_URL = "https://pixel.example.com/imp?ad=1"


@pytest.fixture(autouse=True)
def live_stream(routes, multivariant_manifest, media_playlist_with_cue):
    routes[STREAM_URL] = multivariant_manifest
    routes[RENDITION_URL] = media_playlist_with_cue
    routes[ASSET_LIST_URL] = asset_list_json(
        {
            "URI": AD_URI,
            "DURATION": 15,
            "TRACKING_URLS": {"impression": IMPRESSION_URL},
        }
    )
    routes[AD_URI] = ad_manifest(AD_MEDIA)
    return routes


@pytest.fixture
def make_engine(engine_config, player, clock, main_http_client, tracking_http_client):
    """Build an engine on mocked clients; call from inside the test's loop."""

    def _make(**overrides) -> SgaiEngine:
        kwargs = {
            "time_provider": clock,
            "main_http_client": main_http_client,
            "tracking_http_client": tracking_http_client,
            "session_id": SESSION_ID,
        }
        kwargs.update(overrides)
        return SgaiEngine(engine_config, player, **kwargs)

    return _make


def ad_sink_events(client) -> list[str]:
    return [name for name in sink_event_names(client) if name.startswith("ad_")]


def other_tasks() -> list[asyncio.Task]:
    return [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]


class TestEngineSession:
    """End-to-end sessions against a looping live stream with one ad cue."""

    @pytest.mark.asyncio
    async def test_full_session(self, make_engine, player, clock, tracking_http_client):
        """Test live start, one ad break, return to live and teardown."""
        engine = make_engine()
        engine.start()
        assert engine.is_running

        await clock.advance(5.0)
        assert engine.mode == PlayerMode.AD_BREAK
        assert player.current_source == AD_MEDIA

        await clock.advance(15.0)
        assert engine.mode == PlayerMode.MAIN_CONTENT
        assert player.current_source == STREAM_URL
        assert player.sources == [
            (STREAM_URL, LIVE_MIME_TYPE),
            (AD_MEDIA, AD_MIME_TYPE),
            (STREAM_URL, LIVE_MIME_TYPE),
        ]

        await engine.stop()
        await clock.settle()

        names = sink_event_names(tracking_http_client)
        assert names[:7] == [
            "init",
            "metadata",
            "loading",
            "buffering",
            "buffered",
            "loaded",
            "playing",
        ]
        assert "heartbeat" in names
        assert names[-1] == "stopped"
        assert ad_sink_events(tracking_http_client) == [
            "ad_break_start",
            "ad_start",
            "ad_first_quartile",
            "ad_midpoint",
            "ad_third_quartile",
            "ad_complete",
            "ad_break_end",
        ]

        bodies = posted_bodies(tracking_http_client, EVENT_SINK_URL)
        assert all(body["sessionId"] == SESSION_ID for body in bodies)
        assert bodies[-1]["payload"] == {"reason": "Stopped by user"}
        assert bodies[1]["payload"]["contentTitle"] == "SGAI Live Stream with Ads"

        ad_bodies = posted_bodies(tracking_http_client, f"{TRACKING_BASE_URL}/track/ad")
        assert {body["adId"] for body in ad_bodies} == {derive_ad_id(AD_URI)}
        assert fetched_pixels(tracking_http_client) == [IMPRESSION_URL]

        assert not engine.is_running
        assert clock.pending_sleepers == 0
        assert other_tasks() == []

    @pytest.mark.asyncio
    async def test_cue_played_once(self, make_engine, player, clock, tracking_http_client):
        """Test a cue remaining in the live window does not replay."""
        engine = make_engine()
        engine.start()

        await clock.advance(60.0)
        await engine.stop()

        assert player.sources.count((AD_MEDIA, AD_MIME_TYPE)) == 1
        assert ad_sink_events(tracking_http_client).count("ad_break_start") == 1

    @pytest.mark.asyncio
    async def test_heartbeat_cadence(self, make_engine, clock, tracking_http_client):
        """Test heartbeats follow the configured interval."""
        engine = make_engine()
        engine.start()

        await clock.advance(65.0)
        await engine.stop()

        assert sink_event_names(tracking_http_client).count("heartbeat") == 3

    @pytest.mark.asyncio
    async def test_stop_during_ad_break(self, make_engine, player, clock, tracking_http_client):
        """Test stopping mid-break cancels the break and still reports stopped."""
        engine = make_engine()
        engine.start()
        await clock.advance(5.0)
        assert engine.mode == PlayerMode.AD_BREAK

        await engine.stop("Session expired")
        await clock.advance(30.0)

        names = sink_event_names(tracking_http_client)
        assert names[-1] == "stopped"
        assert "ad_complete" not in names
        assert "ad_break_end" not in names
        assert posted_bodies(tracking_http_client, EVENT_SINK_URL)[-1]["payload"] == {
            "reason": "Session expired"
        }
        assert player.current_source == AD_MEDIA
        assert not player.is_playing
        assert clock.pending_sleepers == 0
        assert other_tasks() == []

    @pytest.mark.asyncio
    async def test_asset_list_failure(self, make_engine, routes, clock, tracking_http_client):
        """Test a failing asset list leaves live playback untouched."""
        routes[ASSET_LIST_URL] = ("not found", 404)
        engine = make_engine()
        engine.start()

        await clock.advance(30.0)

        assert engine.mode == PlayerMode.MAIN_CONTENT
        await engine.stop()
        assert ad_sink_events(tracking_http_client) == []
        assert posted_bodies(tracking_http_client, f"{TRACKING_BASE_URL}/track/adbreak") == []

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, make_engine, tracking_http_client):
        """Test a second stop sends nothing."""
        engine = make_engine()
        engine.start()
        await engine.stop()
        sent = tracking_http_client.request.call_count

        await engine.stop()

        assert tracking_http_client.request.call_count == sent

    @pytest.mark.asyncio
    async def test_context_manager(self, make_engine, clock, tracking_http_client):
        """Test the engine starts and stops as an async context manager."""
        async with make_engine() as engine:
            assert engine.is_running
            await clock.advance(1.0)

        assert not engine.is_running
        assert sink_event_names(tracking_http_client)[-1] == "stopped"

    @pytest.mark.asyncio
    async def test_run_forever_ends_on_stop(self, make_engine, clock):
        """Test run_forever returns control once the engine is stopped."""
        engine = make_engine()
        runner = asyncio.create_task(engine.run_forever())
        await clock.advance(1.0)

        await engine.stop()
        await asyncio.gather(runner, return_exceptions=True)

        assert runner.done()


class TestPooledClients:
    """Test sessions running on the shared httpx client pools."""

    @pytest.mark.asyncio
    async def test_pooled_clients_closed_on_stop(
        self, engine_config, player, clock, main_http_client, tracking_http_client
    ):
        """Test engines without explicit clients use and close the pools."""
        close = AsyncMock()
        with patch("sgai_client.fetcher.get_main_http_client", return_value=main_http_client), \
                patch("sgai_client.asset_list.get_main_http_client", return_value=main_http_client), \
                patch("sgai_client.mixins.get_tracking_http_client", return_value=tracking_http_client), \
                patch("sgai_client.engine.close_http_clients", close):
            engine = create_engine(engine_config, player, time_provider=clock, session_id=SESSION_ID)
            engine.start()
            await clock.advance(20.0)
            await engine.stop()

        close.assert_awaited_once()
        assert "ad_break_end" in sink_event_names(tracking_http_client)
