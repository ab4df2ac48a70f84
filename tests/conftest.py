"""Pytest configuration and shared fixtures for SGAI client tests."""

import json
import sys
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest


sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sgai_client.config import EngineConfig
from sgai_client.event_sender import AnalyticsEventSender
from sgai_client.player import HeadlessMediaPlayer
from sgai_client.time_provider import SimulatedTimeProvider
from sgai_client.tracker import AdTrackingDispatcher


STREAM_URL = "https://live.example.com/loop/master.m3u8"
RENDITION_URL = "https://live.example.com/loop/720p.m3u8"
EVENT_SINK_URL = "https://sink.example.com/events"
TRACKING_BASE_URL = "https://tracking.example.com"
SESSION_ID = "test-session-0001"


# ==================== HTTP Helpers ====================


def make_response(text: str = "", status_code: int = 200) -> MagicMock:
    """Build a mock httpx response; 4xx/5xx raise on raise_for_status()."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.text = text
    response.raise_for_status = MagicMock()
    if status_code >= 400:
        request = httpx.Request("GET", "https://example.com")
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}",
            request=request,
            response=httpx.Response(status_code, request=request),
        )
    return response


def posted_bodies(client: AsyncMock, url: str) -> list[dict[str, Any]]:
    """JSON bodies POSTed to ``url`` through a mocked tracking client."""
    return [
        call.kwargs["json"]
        for call in client.request.call_args_list
        if call.args[0] == "POST" and call.args[1] == url
    ]


def sink_event_names(client: AsyncMock, url: str = EVENT_SINK_URL) -> list[str]:
    return [body["event"] for body in posted_bodies(client, url)]


def fetched_pixels(client: AsyncMock) -> list[str]:
    return [call.args[1] for call in client.request.call_args_list if call.args[0] == "GET"]


# ==================== Mock HTTP Client Fixtures ====================


@pytest.fixture
def routes() -> dict[str, Any]:
    """URL -> body text, (body, status) tuple or exception for the main client."""
    return {}


@pytest.fixture
def main_http_client(routes):
    """Mock main client answering GETs from ``routes``; unknown URLs fail to connect."""

    async def _get(url, **kwargs):
        target = routes.get(url)
        if target is None:
            raise httpx.ConnectError("no route", request=httpx.Request("GET", url))
        if isinstance(target, Exception):
            raise target
        if isinstance(target, tuple):
            return make_response(*target)
        return make_response(target)

    client = AsyncMock(spec=httpx.AsyncClient)
    client.get = AsyncMock(side_effect=_get)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def tracking_http_client():
    """Mock tracking client accepting every request with 204."""
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request = AsyncMock(return_value=make_response(status_code=204))
    client.aclose = AsyncMock()
    return client


# ==================== Component Fixtures ====================


@pytest.fixture
def clock() -> SimulatedTimeProvider:
    """Virtual clock driven with ``await clock.advance(seconds)``."""
    return SimulatedTimeProvider()


@pytest.fixture
def player(clock) -> HeadlessMediaPlayer:
    return HeadlessMediaPlayer(clock)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        stream_url=STREAM_URL,
        event_sink_url=EVENT_SINK_URL,
        tracking_base_url=TRACKING_BASE_URL,
        content_title="SGAI Live Stream with Ads",
        host_rewrites={"localhost": "10.0.2.2"},
        shutdown_grace_sec=0.5,
    )


@pytest.fixture
def sender(tracking_http_client) -> AnalyticsEventSender:
    return AnalyticsEventSender(
        EVENT_SINK_URL, session_id=SESSION_ID, http_client=tracking_http_client
    )


@pytest.fixture
def dispatcher(tracking_http_client) -> AdTrackingDispatcher:
    return AdTrackingDispatcher(
        TRACKING_BASE_URL, SESSION_ID, http_client=tracking_http_client
    )


# ==================== Manifest Fixtures ====================


@pytest.fixture
def multivariant_manifest() -> str:
    return """#EXTM3U
#EXT-X-VERSION:7
#EXT-X-STREAM-INF:BANDWIDTH=2500000,RESOLUTION=1280x720
720p.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
360p.m3u8
"""


@pytest.fixture
def media_playlist_with_cue() -> str:
    return """#EXTM3U
#EXT-X-VERSION:7
#EXT-X-TARGETDURATION:6
#EXT-X-MEDIA-SEQUENCE:1200
#EXT-X-PROGRAM-DATE-TIME:2024-05-01T10:00:00.000Z
#EXTINF:6.0,
segment_1200.ts
#EXT-X-DATERANGE,ID="br1",CLASS="com.apple.hls.interstitial",START-DATE="2024-05-01T10:00:06.000Z",DURATION=15.0,X-ASSET-LIST="http://localhost:3333/list.json"
#EXTINF:6.0,
segment_1201.ts
"""


@pytest.fixture
def media_playlist_without_cue() -> str:
    return """#EXTM3U
#EXT-X-TARGETDURATION:6
#EXT-X-MEDIA-SEQUENCE:1200
#EXTINF:6.0,
segment_1200.ts
#EXTINF:6.0,
segment_1201.ts
"""


def asset_list_json(*assets: dict[str, Any]) -> str:
    return json.dumps({"ASSETS": list(assets)})


def ad_manifest(media_uri: str) -> str:
    return f"#EXTM3U\n#EXT-X-TARGETDURATION:15\n#EXTINF:15.0,\n{media_uri}\n#EXT-X-ENDLIST\n"
