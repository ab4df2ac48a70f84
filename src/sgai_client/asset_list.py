"""
Asset-list resolution.

An ad cue points at a JSON asset list::

    {"ASSETS": [{"URI": "https://ads.example.com/ad1/manifest.m3u8",
                 "DURATION": 15,
                 "TRACKING_URLS": {"impression": "https://t.example.com/i"},
                 "ID": "ad1"}]}

The resolver fetches and validates it into an ordered list of AdAsset.
There is no retry; the next manifest poll will see the cue again.
"""

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .events import SgaiEvents
from .exceptions import AssetListDecodeError, AssetListFetchError
from .http_client_manager import get_main_http_client
from .log_config import get_context_logger
from .models import AdAsset


class AssetEntry(BaseModel):
    """One entry of the ``ASSETS`` array."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    uri: str = Field(alias="URI", min_length=1)
    duration: float = Field(alias="DURATION", ge=0)
    tracking_urls: dict[str, str] | None = Field(default=None, alias="TRACKING_URLS")
    id: str | None = Field(default=None, alias="ID")

    def to_asset(self) -> AdAsset:
        return AdAsset(
            uri=self.uri,
            duration_seconds=self.duration,
            tracking_urls=self.tracking_urls or {},
            asset_id=self.id,
        )


class AssetListDocument(BaseModel):
    """Asset-list document as served by the ad proxy."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assets: list[AssetEntry] = Field(alias="ASSETS")


class AssetListResolver:
    """Fetches and decodes asset lists."""

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self.client = http_client
        self.logger = get_context_logger("asset_list_resolver")

    async def resolve(self, url: str) -> list[AdAsset]:
        """Fetch the asset list at ``url``.

        Args:
            url: Absolute asset-list URL

        Returns:
            Assets in list order (possibly empty)

        Raises:
            AssetListFetchError: Transport or HTTP status failure
            AssetListDecodeError: Body is not a valid asset list
        """
        client = self.client if self.client is not None else get_main_http_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AssetListFetchError(
                "Asset list request failed",
                asset_list_url=url,
                context={"http_status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise AssetListFetchError(
                f"Asset list request failed: {e}",
                asset_list_url=url,
                context={"error_type": type(e).__name__},
            ) from e

        body = response.text
        try:
            document = AssetListDocument.model_validate_json(body)
        except ValidationError as e:
            raise AssetListDecodeError(
                f"Invalid asset list: {e.error_count()} validation error(s)",
                asset_list_url=url,
                body_preview=body,
            ) from e

        assets = [entry.to_asset() for entry in document.assets]
        self.logger.info(
            SgaiEvents.ASSET_LIST_RESOLVED,
            asset_list_url=url,
            asset_count=len(assets),
            total_duration=sum(asset.duration_seconds for asset in assets),
        )
        return assets


__all__ = ["AssetListResolver", "AssetListDocument", "AssetEntry"]
