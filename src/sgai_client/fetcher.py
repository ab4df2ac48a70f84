"""Manifest fetching: fetch-and-decode of HLS playlists into text."""

import time

import httpx

from .exceptions import ManifestFetchError
from .http_client_manager import get_main_http_client
from .log_config import get_context_logger


class ManifestFetcher:
    """
    Fetches manifest resources (root playlists, renditions, ad manifests).

    Pure I/O: no parsing happens here. Every failure is raised as
    ManifestFetchError so callers have a single thing to catch.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        """
        Initialize fetcher.

        Args:
            http_client: Client to use; the pooled main client if None
        """
        self.client = http_client
        self.logger = get_context_logger("manifest_fetcher")

    def _get_client(self) -> httpx.AsyncClient:
        # Fresh pooled client each time, the pool may have been closed
        return self.client if self.client is not None else get_main_http_client()

    async def fetch_text(self, url: str) -> str:
        """Fetch a manifest and return its text.

        Args:
            url: Manifest URL

        Returns:
            Decoded manifest content (may be empty)

        Raises:
            ManifestFetchError: On transport or HTTP status errors
        """
        start_time = time.time()
        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ManifestFetchError(
                "Manifest request failed",
                url=url,
                http_status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ManifestFetchError(
                f"Manifest request failed: {e}",
                url=url,
                context={"error_type": type(e).__name__},
            ) from e

        text = response.text
        self.logger.debug(
            "Manifest fetched",
            url=url,
            status_code=response.status_code,
            content_length=len(text),
            response_time=round(time.time() - start_time, 3),
        )
        return text


__all__ = ["ManifestFetcher"]
