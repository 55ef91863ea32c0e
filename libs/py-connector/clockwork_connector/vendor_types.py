"""Type definitions, enums, and Pydantic models for wearable connectors."""

import datetime as dt
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from clockwork_scores import DerivedMetrics, NormalizedMetrics, SleepBreakdown


class VendorType(str, Enum):
    """Supported wearable providers."""

    FITBIT = "fitbit"
    POLAR = "polar"
    GARMIN = "garmin"
    OURA = "oura"
    WHOOP = "whoop"
    MANUAL = "manual"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    VendorType.FITBIT: "Fitbit",
    VendorType.POLAR: "Polar",
    VendorType.GARMIN: "Garmin Connect",
    VendorType.OURA: "Oura Ring",
    VendorType.WHOOP: "WHOOP",
    VendorType.MANUAL: "Manual entry",
}


class SyncStatus(str, Enum):
    """Per-day outcome of a sync."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class RateLimitConfig(BaseModel):
    """Fixed-window quota per (provider, user)."""

    requests_per_window: int = Field(..., gt=0)
    window_seconds: int = Field(..., gt=0)


# ============================================================================
# Provider configuration: Configured | Unconfigured
# ============================================================================


class _ProviderBase(BaseModel):
    name: VendorType
    rate_limit: RateLimitConfig
    supports_oauth2: bool = True

    @property
    def display_name(self) -> str:
        return self.name.display_name


class ConfiguredProvider(_ProviderBase):
    """Provider with credentials; every field needed to run OAuth is present."""

    kind: Literal["configured"] = "configured"
    client_id: str
    client_secret: str
    redirect_uri: str
    auth_url: str
    token_url: str
    api_base: str
    scope: str
    uses_pkce: bool = False
    token_auth: Literal["basic", "body"] = "basic"
    revoke_url: str | None = None
    extra_auth_params: dict[str, str] = Field(default_factory=dict)
    sync_days: int = Field(2, ge=1)

    @property
    def configured(self) -> bool:
        return True


class UnconfiguredProvider(_ProviderBase):
    """Provider known to the catalogue but missing credentials."""

    kind: Literal["unconfigured"] = "unconfigured"
    missing: list[str] = Field(default_factory=list)

    @property
    def configured(self) -> bool:
        return False


ProviderConfig = Annotated[
    ConfiguredProvider | UnconfiguredProvider,
    Field(discriminator="kind"),
]


# ============================================================================
# OAuth
# ============================================================================


class OAuthTokens(BaseModel):
    """OAuth token set from a provider token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None  # seconds
    expires_at: dt.datetime | None = None
    token_type: str = "Bearer"
    scopes: list[str] = Field(default_factory=list)
    external_user_id: str | None = None


class OAuthState(BaseModel):
    """
    Pending authorization, keyed by the CSRF ``state`` value.

    The PKCE verifier is kept server-side only and never leaves this record.
    """

    state: str
    user_id: str
    provider: VendorType
    code_verifier: str | None = None
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))


class Connection(BaseModel):
    """Durable per-(user, provider) credential record."""

    user_id: str
    provider: VendorType
    connected: bool = True
    access_token: str
    refresh_token: str | None = None
    expires_at: dt.datetime | None = None
    external_user_id: str | None = None
    scopes: list[str] = Field(default_factory=list)
    last_sync: dt.datetime | None = None
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))

    def is_expired(self, now: dt.datetime | None = None) -> bool:
        """Check if the access token has expired. No expiry means never."""
        if not self.expires_at:
            return False
        now = now or dt.datetime.now(dt.UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=dt.UTC)
        return now >= expires_at

    def summary(self) -> dict[str, Any]:
        """Public view of the connection, without tokens."""
        return {
            "provider": self.provider.value,
            "providerName": self.provider.display_name,
            "connected": self.connected,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "scopes": self.scopes,
        }


# ============================================================================
# Records
# ============================================================================


class WearableRecord(BaseModel):
    """One (user, provider, day) of metrics plus derived scores."""

    user_id: str
    provider: VendorType
    date: dt.date
    metrics: NormalizedMetrics = Field(default_factory=NormalizedMetrics)
    derived: DerivedMetrics = Field(default_factory=DerivedMetrics)
    last_synced: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    sync_status: SyncStatus = SyncStatus.SUCCESS
    error: str | None = None

    @property
    def has_meaningful_data(self) -> bool:
        steps = self.metrics.steps or 0
        return steps > 100 or self.metrics.sleep_minutes > 0


class ManualEntry(BaseModel):
    """Metrics entered by hand for one day."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    day: dt.date | None = Field(None, alias="date")
    steps: int | None = Field(None, ge=0)
    distance: float | None = Field(None, ge=0)
    calories_burned: float | None = Field(None, ge=0)
    active_minutes: int | None = Field(None, ge=0)
    resting_heart_rate: float | None = Field(None, ge=0)
    hrv: float | None = Field(None, ge=0)
    sleep_minutes: int | None = Field(None, description="Time in bed, in minutes", ge=0)
    sleep_efficiency: float | None = Field(None, ge=0, le=100)
    breathing_rate: float | None = Field(None, ge=0)

    def to_metrics(self) -> NormalizedMetrics:
        sleep = None
        if self.sleep_minutes is not None:
            sleep = SleepBreakdown(total_minutes=self.sleep_minutes, efficiency=self.sleep_efficiency)
        return NormalizedMetrics(
            steps=self.steps,
            distance=self.distance,
            calories_burned=self.calories_burned,
            active_minutes=self.active_minutes,
            resting_heart_rate=self.resting_heart_rate,
            hrv=self.hrv,
            sleep=sleep,
            breathing_rate=self.breathing_rate,
        )
