"""Unit tests for ad-cue extraction."""

from sgai_client.cues import (
    extract_ad_breaks,
    extract_asset_list_url,
    extract_break_id,
    extract_media_uri,
    extract_rendition_url,
    is_multivariant,
    resolve_url,
    rewrite_host,
    split_lines,
)
from sgai_client.models import AdBreak


BASE_URL = "https://live.example.com/loop/720p.m3u8"


class TestAttributeExtraction:
    """Test extraction of single attributes from tag lines."""

    def test_break_id_from_daterange(self):
        """Test the ID attribute is returned as-is."""
        line = '#EXT-X-DATERANGE,ID="br1",X-ASSET-LIST="http://x/list.json"'
        assert extract_break_id(line) == "br1"

    def test_break_id_with_colon_separator(self):
        """Test standard HLS tag syntax with a colon before the attribute list."""
        line = '#EXT-X-DATERANGE:ID="splice-42",CLASS="com.apple.hls.interstitial"'
        assert extract_break_id(line) == "splice-42"

    def test_missing_break_id_is_synthesized(self):
        """Test a missing ID yields a fresh non-empty identifier."""
        line = '#EXT-X-DATERANGE,X-ASSET-LIST="http://x/list.json"'

        first = extract_break_id(line)
        second = extract_break_id(line)

        assert first
        assert second
        assert first != second

    def test_empty_break_id_is_synthesized(self):
        """Test an empty ID attribute is treated as missing."""
        assert extract_break_id('#EXT-X-DATERANGE,ID="",X-ASSET-LIST="a.json"')

    def test_asset_id_attribute_is_not_the_break_id(self):
        """Test ID= does not match inside a longer attribute name."""
        line = '#EXT-X-DATERANGE,X-ASSET-ID="asset-7",X-ASSET-LIST="a.json"'
        break_id = extract_break_id(line)
        assert break_id != "asset-7"

    def test_asset_list_url(self):
        """Test X-ASSET-LIST extraction."""
        line = '#EXT-X-DATERANGE,ID="br1",X-ASSET-LIST="http://x/list.json"'
        assert extract_asset_list_url(line) == "http://x/list.json"

    def test_asset_list_url_absent(self):
        """Test lines without X-ASSET-LIST signal no ad."""
        line = '#EXT-X-DATERANGE,ID="chapter-1",START-DATE="2024-05-01T10:00:00Z"'
        assert extract_asset_list_url(line) is None


class TestUrlHelpers:
    """Test URL resolution and host rewriting."""

    def test_absolute_url_passes_through(self):
        """Test absolute references are unchanged."""
        assert resolve_url(BASE_URL, "http://x/list.json") == "http://x/list.json"

    def test_relative_url_replaces_last_segment(self):
        """Test relative references replace the manifest file name."""
        assert (
            resolve_url(BASE_URL, "ads/list.json")
            == "https://live.example.com/loop/ads/list.json"
        )

    def test_relative_url_keeps_own_query(self):
        """Test the reference's query string survives, the base's is dropped."""
        base = "https://live.example.com/loop/master.m3u8?token=abc"
        assert (
            resolve_url(base, "list.json?break=1")
            == "https://live.example.com/loop/list.json?break=1"
        )

    def test_root_relative_url(self):
        """Test references starting with / replace the whole path."""
        assert resolve_url(BASE_URL, "/other/list.json") == "https://live.example.com/other/list.json"

    def test_rewrite_host_keeps_port(self):
        """Test host substitution keeps the port."""
        rewritten = rewrite_host("http://localhost:3333/list.json", {"localhost": "10.0.2.2"})
        assert rewritten == "http://10.0.2.2:3333/list.json"

    def test_rewrite_host_without_match(self):
        """Test URLs with other hosts are unchanged."""
        url = "https://ads.example.com/list.json"
        assert rewrite_host(url, {"localhost": "10.0.2.2"}) == url

    def test_rewrite_host_without_rewrites(self):
        """Test no configured rewrites means no change."""
        url = "http://localhost:3333/list.json"
        assert rewrite_host(url, None) == url
        assert rewrite_host(url, {}) == url

    def test_rewrite_host_only_matches_hostname(self):
        """Test the path is never rewritten."""
        url = "http://ads.example.com/localhost/list.json"
        assert rewrite_host(url, {"localhost": "10.0.2.2"}) == url


class TestManifestParsing:
    """Test manifest-level extraction."""

    def test_split_lines_handles_crlf(self):
        """Test CRLF manifests split into clean lines."""
        assert split_lines("#EXTM3U\r\n#EXTINF:6.0,\r\nseg.ts\r\n") == [
            "#EXTM3U",
            "#EXTINF:6.0,",
            "seg.ts",
        ]

    def test_is_multivariant(self, multivariant_manifest, media_playlist_with_cue):
        """Test variant detection."""
        assert is_multivariant(multivariant_manifest)
        assert not is_multivariant(media_playlist_with_cue)

    def test_rendition_url(self, multivariant_manifest):
        """Test the first variant URI is resolved."""
        url = extract_rendition_url(
            multivariant_manifest, "https://live.example.com/loop/master.m3u8"
        )
        assert url == "https://live.example.com/loop/720p.m3u8"

    def test_rendition_url_skips_blank_and_comment_lines(self):
        """Test blank and tag lines between the variant tag and its URI are skipped."""
        manifest = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\n\n#EXT-X-FOO\nhi/index.m3u8\n"
        url = extract_rendition_url(manifest, "https://cdn.example.com/master.m3u8")
        assert url == "https://cdn.example.com/hi/index.m3u8"

    def test_rendition_url_absent(self, media_playlist_with_cue):
        """Test media playlists have no rendition URL."""
        assert extract_rendition_url(media_playlist_with_cue, BASE_URL) is None

    def test_scenario_daterange_cue(self):
        """Test a DATERANGE cue yields its ID and asset-list URL."""
        manifest = (
            "#EXTM3U\n"
            "#EXTINF:6.0,\n"
            "seg1.ts\n"
            '#EXT-X-DATERANGE,ID="br1",X-ASSET-LIST="http://x/list.json"\n'
            "#EXTINF:6.0,\n"
            "seg2.ts\n"
        )

        breaks = extract_ad_breaks(manifest, BASE_URL)

        assert breaks == [AdBreak(id="br1", asset_list_url="http://x/list.json")]

    def test_relative_asset_list_and_host_rewrite(self, media_playlist_with_cue):
        """Test asset-list URLs are resolved and host-rewritten."""
        manifest = media_playlist_with_cue.replace(
            "http://localhost:3333/list.json", "ads/list.json"
        )
        breaks = extract_ad_breaks(manifest, "http://localhost:8080/loop/720p.m3u8", {"localhost": "10.0.2.2"})

        assert breaks[0].asset_list_url == "http://10.0.2.2:8080/loop/ads/list.json"

    def test_manifest_without_markers(self, media_playlist_without_cue, multivariant_manifest):
        """Test manifests without ad markers yield nothing."""
        assert extract_ad_breaks(media_playlist_without_cue, BASE_URL) == []
        assert extract_ad_breaks(multivariant_manifest, BASE_URL) == []

    def test_markers_without_asset_list_are_ignored(self):
        """Test DATERANGE tags that are not ads yield nothing."""
        manifest = '#EXTM3U\n#EXT-X-DATERANGE,ID="chapter",START-DATE="2024-05-01T10:00:00Z"\n'
        assert extract_ad_breaks(manifest, BASE_URL) == []

    def test_duplicate_ids_yield_one_break(self):
        """Test the same break repeated in one manifest is reported once."""
        cue = '#EXT-X-DATERANGE,ID="br1",X-ASSET-LIST="http://x/list.json"\n'
        manifest = "#EXTM3U\n" + cue + "#EXTINF:6.0,\nseg.ts\n" + cue

        assert len(extract_ad_breaks(manifest, BASE_URL)) == 1

    def test_multiple_breaks_in_order(self):
        """Test distinct breaks come back in manifest order."""
        manifest = (
            '#EXT-X-DATERANGE,ID="a",X-ASSET-LIST="a.json"\n'
            '#EXT-X-DATERANGE,ID="b",X-ASSET-LIST="b.json"\n'
        )
        assert [b.id for b in extract_ad_breaks(manifest, BASE_URL)] == ["a", "b"]

    def test_stream_inf_line_with_asset_list(self):
        """Test variant tags carrying an asset list are treated as cues."""
        manifest = '#EXT-X-STREAM-INF:BANDWIDTH=1,ID="v1",X-ASSET-LIST="v.json"\nv.m3u8\n'
        breaks = extract_ad_breaks(manifest, BASE_URL)
        assert breaks[0].asset_list_url == "https://live.example.com/loop/v.json"


class TestMediaUri:
    """Test playable URI extraction from ad manifests."""

    def test_first_https_line(self):
        """Test the first https:// line wins."""
        manifest = (
            "#EXTM3U\n#EXTINF:10,\nhttps://cdn.example.com/ad/seg1.mp4\n"
            "https://cdn.example.com/ad/seg2.mp4\n"
        )
        assert extract_media_uri(manifest) == "https://cdn.example.com/ad/seg1.mp4"

    def test_http_lines_are_ignored(self):
        """Test only secure URLs qualify."""
        assert extract_media_uri("#EXTM3U\nhttp://cdn.example.com/ad.mp4\n") is None

    def test_relative_only(self):
        """Test manifests with relative segments yield nothing."""
        assert extract_media_uri("#EXTM3U\n#EXTINF:10,\nseg1.ts\n") is None
