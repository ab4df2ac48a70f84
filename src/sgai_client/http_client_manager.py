"""HTTP client pooling for manifest fetches and tracking sends.

Two kinds of clients are kept:

- ``main``: manifests, rendition playlists, asset lists and ad manifests
- ``tracking``: lifecycle sink posts, ad-tracking posts and pixels
"""

from typing import Any

import httpx

from .settings import get_settings


# Global HTTP client instances (keyed by config tuple)
_main_http_clients: dict[tuple[Any, ...], httpx.AsyncClient] = {}
_tracking_http_clients: dict[tuple[Any, ...], httpx.AsyncClient] = {}


def _load_http_config(kind: str) -> dict[str, Any]:
    """Load HTTP client configuration for a given client kind ("main" or "tracking")."""

    settings = get_settings()
    http_cfg = getattr(settings, "http", {}) or {}

    # Allow nested config per kind, otherwise fall back to flat keys
    kind_cfg = http_cfg.get(kind, {}) if isinstance(http_cfg, dict) else {}

    def _get(key: str, default: Any) -> Any:
        if key in kind_cfg:
            return kind_cfg[key]
        if isinstance(http_cfg, dict) and key in http_cfg:
            return http_cfg[key]
        return default

    return {
        "timeout": _get("timeout", 15.0 if kind == "main" else 5.0),
        "max_connections": _get("max_connections", 20 if kind == "main" else 50),
        "max_keepalive_connections": _get(
            "max_keepalive_connections", 10 if kind == "main" else 20
        ),
        "keepalive_expiry": _get("keepalive_expiry", 5.0),
        "verify": _get("verify_ssl", True),
        "follow_redirects": _get("follow_redirects", True),
    }


def _client_cache_key(kind: str, cfg: dict[str, Any]) -> tuple[Any, ...]:
    """Build a cache key tuple from HTTP configuration."""

    return (
        kind,
        cfg.get("verify"),
        cfg.get("timeout"),
        cfg.get("max_connections"),
        cfg.get("max_keepalive_connections"),
        cfg.get("keepalive_expiry"),
        cfg.get("follow_redirects"),
    )


def _get_client(
    kind: str,
    cache: dict[tuple[Any, ...], httpx.AsyncClient],
    overrides: dict[str, Any],
) -> httpx.AsyncClient:
    cfg = _load_http_config(kind)
    cfg.update({k: v for k, v in overrides.items() if v is not None})

    key = _client_cache_key(kind, cfg)
    client = cache.get(key)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(
            timeout=cfg["timeout"],
            limits=httpx.Limits(
                max_keepalive_connections=cfg["max_keepalive_connections"],
                max_connections=cfg["max_connections"],
                keepalive_expiry=cfg["keepalive_expiry"],
            ),
            verify=cfg["verify"],
            follow_redirects=cfg["follow_redirects"],
        )
        cache[key] = client
    return client


def get_main_http_client(
    *,
    ssl_verify: bool | str | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """Get main HTTP client for manifest and asset-list requests."""

    return _get_client(
        "main", _main_http_clients, {"verify": ssl_verify, "timeout": timeout}
    )


def get_tracking_http_client(
    *,
    ssl_verify: bool | str | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """Get tracking HTTP client for event posts and tracking pixels."""

    return _get_client(
        "tracking", _tracking_http_clients, {"verify": ssl_verify, "timeout": timeout}
    )


async def close_http_clients() -> None:
    """Close and forget every pooled client."""
    for cache in (_main_http_clients, _tracking_http_clients):
        clients = list(cache.values())
        cache.clear()
        for client in clients:
            await client.aclose()


__all__ = [
    "get_main_http_client",
    "get_tracking_http_client",
    "close_http_clients",
]
