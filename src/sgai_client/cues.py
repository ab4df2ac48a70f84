"""
Ad-cue extraction from HLS manifest text.

Pure functions, no I/O. Cues are signaled with interstitial-style tags::

    #EXT-X-DATERANGE:ID="br1",CLASS="com.apple.hls.interstitial",X-ASSET-LIST="list.json"

A tag line without an ``X-ASSET-LIST`` attribute signals no ad and is ignored.
"""

import re
import uuid
from typing import Mapping
from urllib.parse import urlsplit, urlunsplit

from .models import AdBreak


DATERANGE_TAG = "#EXT-X-DATERANGE"
STREAM_INF_TAG = "#EXT-X-STREAM-INF"
CUE_TAGS = (DATERANGE_TAG, STREAM_INF_TAG)

# Attribute names must start the line's attribute list or follow a separator,
# so ID= never matches inside e.g. X-ASSET-ID=
_ID_RE = re.compile(r'(?:^|[,:])\s*ID="([^"]*)"')
_ASSET_LIST_RE = re.compile(r'(?:^|[,:])\s*X-ASSET-LIST="([^"]*)"')


def split_lines(text: str) -> list[str]:
    """Split manifest text into stripped lines (LF or CRLF)."""
    return [line.strip() for line in text.splitlines()]


def is_multivariant(text: str) -> bool:
    """True if the manifest lists stream variants."""
    return STREAM_INF_TAG in text


def extract_break_id(line: str) -> str:
    """Return the ``ID`` attribute of a tag line, or a fresh random ID."""
    match = _ID_RE.search(line)
    if match and match.group(1):
        return match.group(1)
    return str(uuid.uuid4())


def extract_asset_list_url(line: str) -> str | None:
    """Return the ``X-ASSET-LIST`` attribute of a tag line, if any."""
    match = _ASSET_LIST_RE.search(line)
    if match and match.group(1):
        return match.group(1)
    return None


def resolve_url(base_url: str, ref: str) -> str:
    """
    Resolve a manifest reference against the URL the manifest came from.

    Absolute ``http(s)`` references are returned unchanged. Relative ones
    replace the last path segment of ``base_url``; query and fragment of the
    base are dropped.

    Examples:
        >>> resolve_url("https://cdn.example.com/loop/master.m3u8", "720p.m3u8")
        'https://cdn.example.com/loop/720p.m3u8'
    """
    if ref.startswith(("http://", "https://")):
        return ref

    base = urlsplit(base_url)
    ref_parts = urlsplit(ref)
    if ref_parts.path.startswith("/"):
        path = ref_parts.path
    else:
        base_dir = base.path.rsplit("/", 1)[0] if "/" in base.path else ""
        path = f"{base_dir}/{ref_parts.path}"
    return urlunsplit((base.scheme, base.netloc, path, ref_parts.query, ""))


def rewrite_host(url: str, rewrites: Mapping[str, str] | None) -> str:
    """
    Substitute the host of ``url`` according to ``rewrites``.

    Port and credentials are kept. Used for environments where a host
    (typically ``localhost``) is reachable under another address.

    Examples:
        >>> rewrite_host("http://localhost:3333/list.json", {"localhost": "10.0.2.2"})
        'http://10.0.2.2:3333/list.json'
    """
    if not rewrites:
        return url

    parts = urlsplit(url)
    host = parts.hostname
    if host is None or host not in rewrites:
        return url

    netloc = rewrites[host]
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    if parts.username is not None:
        credentials = parts.username
        if parts.password is not None:
            credentials = f"{credentials}:{parts.password}"
        netloc = f"{credentials}@{netloc}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def extract_rendition_url(text: str, base_url: str) -> str | None:
    """Return the resolved URI line following the first variant tag."""
    lines = split_lines(text)
    for index, line in enumerate(lines):
        if not line.startswith(STREAM_INF_TAG):
            continue
        for candidate in lines[index + 1:]:
            if candidate and not candidate.startswith("#"):
                return resolve_url(base_url, candidate)
        return None
    return None


def extract_ad_breaks(
    text: str,
    base_url: str,
    host_rewrites: Mapping[str, str] | None = None,
) -> list[AdBreak]:
    """
    Extract ad breaks from manifest text, in manifest order.

    Args:
        text: Manifest content
        base_url: URL the manifest was fetched from
        host_rewrites: Optional host substitutions for asset-list URLs

    Returns:
        One AdBreak per distinct break ID carrying an asset list
    """
    breaks: list[AdBreak] = []
    seen: set[str] = set()

    for line in split_lines(text):
        if not line.startswith(CUE_TAGS):
            continue

        asset_list_ref = extract_asset_list_url(line)
        if asset_list_ref is None:
            continue

        break_id = extract_break_id(line)
        if break_id in seen:
            continue
        seen.add(break_id)

        asset_list_url = rewrite_host(resolve_url(base_url, asset_list_ref), host_rewrites)
        breaks.append(AdBreak(id=break_id, asset_list_url=asset_list_url))

    return breaks


def extract_media_uri(ad_manifest_text: str) -> str | None:
    """Return the first ``https://`` line of an ad manifest."""
    for line in split_lines(ad_manifest_text):
        if line.startswith("https://"):
            return line
    return None


__all__ = [
    "split_lines",
    "is_multivariant",
    "extract_break_id",
    "extract_asset_list_url",
    "resolve_url",
    "rewrite_host",
    "extract_rendition_url",
    "extract_ad_breaks",
    "extract_media_uri",
]
