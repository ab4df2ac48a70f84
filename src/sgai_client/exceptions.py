"""SGAI client custom exception hierarchy.

Provides specific exception types for the failure modes of manifest polling,
asset-list resolution, ad splicing and event delivery. None of these are fatal
to the engine: the poller, splicer and dispatchers catch them at their own
boundary, log them and carry on with the next cycle.

Exception Hierarchy:
    SgaiException (base)
    ├── ManifestError
    │   ├── ManifestFetchError
    │   └── AdManifestError
    ├── AssetListError
    │   ├── AssetListFetchError
    │   └── AssetListDecodeError
    ├── TrackingError
    │   └── TrackingDeliveryError
    ├── SpliceStateError
    └── ConfigError
        └── ConfigValidationError
"""

from typing import Optional


class SgaiException(Exception):
    """Base exception for all SGAI client errors.

    All SGAI-specific exceptions inherit from this class to allow
    catching all of them with a single except clause.
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        """Initialize SGAI exception.

        Args:
            message: Error message
            context: Optional context dictionary for debugging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation with context."""
        if self.context:
            context_str = "; ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


# Manifest Errors

class ManifestError(SgaiException):
    """Base exception for manifest retrieval errors."""

    pass


class ManifestFetchError(ManifestError):
    """Raised when a manifest cannot be fetched or decoded into text.

    Attributes:
        url: The manifest URL
        http_status: HTTP status code if the server answered
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if url:
            context["url"] = url[:100]
        if http_status:
            context["http_status"] = http_status
        super().__init__(message, context)
        self.url = url
        self.http_status = http_status


class AdManifestError(ManifestError):
    """Raised when an ad's own manifest yields no playable media URI.

    Attributes:
        ad_uri: URI of the ad manifest
    """

    def __init__(
        self,
        message: str,
        ad_uri: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if ad_uri:
            context["ad_uri"] = ad_uri[:100]
        super().__init__(message, context)
        self.ad_uri = ad_uri


# Asset List Errors

class AssetListError(SgaiException):
    """Base exception for asset-list resolution errors.

    Any AssetListError abandons the ad break it belongs to.
    """

    def __init__(
        self,
        message: str,
        asset_list_url: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if asset_list_url:
            context["asset_list_url"] = asset_list_url[:100]
        super().__init__(message, context)
        self.asset_list_url = asset_list_url


class AssetListFetchError(AssetListError):
    """Raised when the asset list cannot be fetched."""

    pass


class AssetListDecodeError(AssetListError):
    """Raised when the asset list is not valid JSON or misses required fields.

    Attributes:
        body_preview: First 200 characters of the offending document
    """

    def __init__(
        self,
        message: str,
        asset_list_url: Optional[str] = None,
        body_preview: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if body_preview:
            context["body_preview"] = body_preview[:200]
        super().__init__(message, asset_list_url, context)
        self.body_preview = body_preview


# Tracking Errors

class TrackingError(SgaiException):
    """Base exception for event and ad-tracking delivery errors."""

    pass


class TrackingDeliveryError(TrackingError):
    """Raised inside a background send when delivery fails.

    Never escapes the dispatcher: it is logged and dropped.

    Attributes:
        url: Destination URL
        http_status: HTTP status code if available
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if url:
            context["url"] = url[:100]
        if http_status:
            context["http_status"] = http_status
        super().__init__(message, context)
        self.url = url
        self.http_status = http_status


# Splicer Errors

class SpliceStateError(SgaiException):
    """Raised when an ad break is requested while another one is active."""

    pass


# Configuration Errors

class ConfigError(SgaiException):
    """Base exception for SGAI configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails.

    Attributes:
        config_key: Configuration key that failed validation
        config_value: The invalid configuration value
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = str(config_value)[:100]
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value


__all__ = [
    "SgaiException",
    "ManifestError",
    "ManifestFetchError",
    "AdManifestError",
    "AssetListError",
    "AssetListFetchError",
    "AssetListDecodeError",
    "TrackingError",
    "TrackingDeliveryError",
    "SpliceStateError",
    "ConfigError",
    "ConfigValidationError",
]
