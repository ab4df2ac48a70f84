"""Unit tests for manifest fetching and asset-list resolution."""

import httpx
import pytest

from conftest import asset_list_json
from sgai_client.asset_list import AssetEntry, AssetListResolver
from sgai_client.exceptions import (
    AssetListDecodeError,
    AssetListError,
    AssetListFetchError,
    ManifestFetchError,
)
from sgai_client.fetcher import ManifestFetcher
from sgai_client.models import derive_ad_id


LIST_URL = "http://10.0.2.2:3333/list.json"
AD_URI = "https://ads.example.com/ad1/manifest.m3u8"


class TestManifestFetcher:
    """Test ManifestFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_text(self, main_http_client, routes, multivariant_manifest):
        """Test the body is returned as text."""
        routes["https://live.example.com/loop/master.m3u8"] = multivariant_manifest
        fetcher = ManifestFetcher(main_http_client)

        text = await fetcher.fetch_text("https://live.example.com/loop/master.m3u8")

        assert text == multivariant_manifest

    @pytest.mark.asyncio
    async def test_http_status_error(self, main_http_client, routes):
        """Test non-2xx responses raise ManifestFetchError with the status."""
        routes["https://live.example.com/down.m3u8"] = ("", 502)
        fetcher = ManifestFetcher(main_http_client)

        with pytest.raises(ManifestFetchError) as exc_info:
            await fetcher.fetch_text("https://live.example.com/down.m3u8")

        assert exc_info.value.http_status == 502
        assert exc_info.value.url == "https://live.example.com/down.m3u8"

    @pytest.mark.asyncio
    async def test_transport_error(self, main_http_client, routes):
        """Test transport failures raise ManifestFetchError."""
        url = "https://live.example.com/slow.m3u8"
        routes[url] = httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))
        fetcher = ManifestFetcher(main_http_client)

        with pytest.raises(ManifestFetchError) as exc_info:
            await fetcher.fetch_text(url)

        assert exc_info.value.http_status is None
        assert exc_info.value.context["error_type"] == "ReadTimeout"


class TestAssetEntry:
    """Test asset-list entry validation."""

    def test_to_asset(self):
        """Test conversion to the AdAsset model."""
        entry = AssetEntry.model_validate(
            {
                "URI": AD_URI,
                "DURATION": 15.5,
                "TRACKING_URLS": {"impression": "https://t.example.com/i"},
                "ID": "ad-1",
            }
        )

        asset = entry.to_asset()

        assert asset.uri == AD_URI
        assert asset.duration_seconds == 15.5
        assert asset.duration_ms == 15_500
        assert asset.tracking_urls == {"impression": "https://t.example.com/i"}
        assert asset.asset_id == "ad-1"
        assert asset.resolved_id == derive_ad_id(AD_URI)

    def test_numeric_id_is_coerced(self):
        """Test numeric IDs are accepted as strings."""
        entry = AssetEntry.model_validate({"URI": AD_URI, "DURATION": 10, "ID": 42})
        assert entry.id == "42"

    def test_optional_fields(self):
        """Test tracking URLs and ID may be omitted."""
        asset = AssetEntry.model_validate({"URI": AD_URI, "DURATION": 10}).to_asset()
        assert dict(asset.tracking_urls) == {}
        assert asset.asset_id is None


class TestAssetListResolver:
    """Test AssetListResolver."""

    @pytest.mark.asyncio
    async def test_resolve(self, main_http_client, routes):
        """Test assets are returned in list order."""
        routes[LIST_URL] = asset_list_json(
            {"URI": AD_URI, "DURATION": 15},
            {"URI": "https://ads.example.com/ad2/manifest.m3u8", "DURATION": 10, "ID": "ad-2"},
        )
        resolver = AssetListResolver(main_http_client)

        assets = await resolver.resolve(LIST_URL)

        assert [a.uri for a in assets] == [AD_URI, "https://ads.example.com/ad2/manifest.m3u8"]
        assert [a.duration_seconds for a in assets] == [15, 10]
        assert assets[1].asset_id == "ad-2"

    @pytest.mark.asyncio
    async def test_resolve_empty_list(self, main_http_client, routes):
        """Test an empty ASSETS array is valid."""
        routes[LIST_URL] = asset_list_json()
        assert await AssetListResolver(main_http_client).resolve(LIST_URL) == []

    @pytest.mark.asyncio
    async def test_extra_fields_ignored(self, main_http_client, routes):
        """Test unknown document and entry fields are ignored."""
        routes[LIST_URL] = (
            '{"ASSETS": [{"URI": "%s", "DURATION": 5, "X-CUSTOM": 1}], "VERSION": 2}' % AD_URI
        )
        assets = await AssetListResolver(main_http_client).resolve(LIST_URL)
        assert len(assets) == 1

    @pytest.mark.asyncio
    async def test_not_found(self, main_http_client, routes):
        """Test a 404 raises AssetListFetchError."""
        routes[LIST_URL] = ("not found", 404)

        with pytest.raises(AssetListFetchError) as exc_info:
            await AssetListResolver(main_http_client).resolve(LIST_URL)

        assert exc_info.value.asset_list_url == LIST_URL
        assert exc_info.value.context["http_status"] == 404

    @pytest.mark.asyncio
    async def test_unreachable(self, main_http_client):
        """Test transport failures raise AssetListFetchError."""
        with pytest.raises(AssetListFetchError):
            await AssetListResolver(main_http_client).resolve(LIST_URL)

    @pytest.mark.parametrize(
        "body",
        [
            "not json",
            "{}",
            '{"ASSETS": {}}',
            '{"ASSETS": [{"DURATION": 10}]}',
            '{"ASSETS": [{"URI": "", "DURATION": 10}]}',
            '{"ASSETS": [{"URI": "x", "DURATION": -1}]}',
            '{"ASSETS": [{"URI": "x", "DURATION": "long"}]}',
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_documents(self, main_http_client, routes, body):
        """Test malformed documents raise AssetListDecodeError."""
        routes[LIST_URL] = body

        with pytest.raises(AssetListDecodeError) as exc_info:
            await AssetListResolver(main_http_client).resolve(LIST_URL)

        assert isinstance(exc_info.value, AssetListError)
        assert exc_info.value.body_preview == body
