"""Clockwork Connector - OAuth, storage and sync for cloud wearable providers."""

from .config import Settings, load_provider_configs
from .exceptions import (
    ConfigurationError,
    ConnectorError,
    InvalidStateError,
    NoRefreshTokenError,
    NotConnectedError,
    OAuthError,
    ProviderNotImplementedError,
    ProviderUnavailableError,
    RateLimitedError,
    ReconnectRequiredError,
    StoreError,
    SyncCancelledError,
    UnsupportedProviderError,
    VendorAPIError,
)
from .service import WearableService
from .sync import SyncPhase, SyncResult
from .vendor_types import (
    ConfiguredProvider,
    Connection,
    ManualEntry,
    OAuthState,
    OAuthTokens,
    SyncStatus,
    UnconfiguredProvider,
    VendorType,
    WearableRecord,
)

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_provider_configs",
    "WearableService",
    "ConnectorError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "InvalidStateError",
    "OAuthError",
    "NoRefreshTokenError",
    "NotConnectedError",
    "RateLimitedError",
    "ReconnectRequiredError",
    "ProviderUnavailableError",
    "VendorAPIError",
    "ProviderNotImplementedError",
    "SyncCancelledError",
    "StoreError",
    "SyncPhase",
    "SyncResult",
    "SyncStatus",
    "VendorType",
    "ConfiguredProvider",
    "UnconfiguredProvider",
    "OAuthTokens",
    "OAuthState",
    "Connection",
    "ManualEntry",
    "WearableRecord",
]
