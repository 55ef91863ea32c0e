"""
Runtime settings and the provider catalogue.

Settings are read from the process environment (the CLI loads ``.env`` files
with python-dotenv before calling ``Settings.from_env``). Provider credentials
come from ``{PROVIDER}_CLIENT_ID``, ``{PROVIDER}_CLIENT_SECRET`` and
``{PROVIDER}_REDIRECT_URI``; a provider missing any of them is reported as
unconfigured instead of failing startup.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from .vendor_types import (
    ConfiguredProvider,
    ProviderConfig,
    RateLimitConfig,
    UnconfiguredProvider,
    VendorType,
)

logger = logging.getLogger(__name__)

HOUR = 3600
DAY = 24 * HOUR

# Static endpoints, scopes and quotas per provider.
PROVIDER_CATALOGUE: dict[VendorType, dict[str, Any]] = {
    VendorType.FITBIT: {
        "auth_url": "https://www.fitbit.com/oauth2/authorize",
        "token_url": "https://api.fitbit.com/oauth2/token",
        "revoke_url": "https://api.fitbit.com/oauth2/revoke",
        "api_base": "https://api.fitbit.com",
        "scope": "activity heartrate sleep profile weight oxygen_saturation respiratory_rate cardio_fitness",
        "uses_pkce": True,
        "extra_auth_params": {"prompt": "login consent"},
        "rate_limit": RateLimitConfig(requests_per_window=150, window_seconds=HOUR),
    },
    VendorType.POLAR: {
        "auth_url": "https://flow.polar.com/oauth2/authorization",
        "token_url": "https://polarremote.com/v2/oauth2/token",
        "api_base": "https://www.polaraccesslink.com",
        "scope": "accesslink.read_all",
        "rate_limit": RateLimitConfig(requests_per_window=100, window_seconds=HOUR),
    },
    VendorType.GARMIN: {
        # OAuth 1.0a only
        "supports_oauth2": False,
        "auth_url": "https://connect.garmin.com/oauthConfirm",
        "token_url": "https://connectapi.garmin.com/oauth-service/oauth/access_token",
        "api_base": "https://apis.garmin.com/wellness-api/rest",
        "scope": "",
        "rate_limit": RateLimitConfig(requests_per_window=200, window_seconds=HOUR),
    },
    VendorType.OURA: {
        "auth_url": "https://cloud.ouraring.com/oauth/authorize",
        "token_url": "https://api.ouraring.com/oauth/token",
        "revoke_url": "https://api.ouraring.com/oauth/revoke",
        "api_base": "https://api.ouraring.com/v2",
        "scope": "daily heartrate workout session",
        "rate_limit": RateLimitConfig(requests_per_window=5000, window_seconds=DAY),
    },
    VendorType.WHOOP: {
        "auth_url": "https://api.prod.whoop.com/oauth/oauth2/auth",
        "token_url": "https://api.prod.whoop.com/oauth/oauth2/token",
        "api_base": "https://api.prod.whoop.com/developer/v1",
        "scope": "read:recovery read:cycles read:workout read:sleep read:profile read:body_measurement",
        "token_auth": "body",
        "rate_limit": RateLimitConfig(requests_per_window=100, window_seconds=HOUR),
    },
}

CREDENTIAL_FIELDS = ("client_id", "client_secret", "redirect_uri")


def _env_flag(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def load_provider_configs(
    env: Mapping[str, str] | None = None,
    default_sync_days: int = 2,
) -> dict[VendorType, ProviderConfig]:
    """
    Build the provider table from the catalogue and environment credentials.

    Args:
        env: Environment mapping (defaults to ``os.environ``)
        default_sync_days: Day window used when ``SYNC_DAYS_{PROVIDER}`` is unset

    Returns:
        Mapping of provider to ConfiguredProvider or UnconfiguredProvider.
        Never raises for missing credentials.
    """
    env = os.environ if env is None else env
    providers: dict[VendorType, ProviderConfig] = {}

    for vendor, entry in PROVIDER_CATALOGUE.items():
        prefix = vendor.value.upper()
        credentials = {field: env.get(f"{prefix}_{field.upper()}") or "" for field in CREDENTIAL_FIELDS}
        missing = [f"{prefix}_{field.upper()}" for field, value in credentials.items() if not value]
        supports_oauth2 = entry.get("supports_oauth2", True)

        if missing:
            providers[vendor] = UnconfiguredProvider(
                name=vendor,
                rate_limit=entry["rate_limit"],
                supports_oauth2=supports_oauth2,
                missing=missing,
            )
            continue

        providers[vendor] = ConfiguredProvider(
            name=vendor,
            supports_oauth2=supports_oauth2,
            sync_days=max(1, _env_int(env, f"SYNC_DAYS_{prefix}", default_sync_days)),
            **credentials,
            **{k: v for k, v in entry.items() if k != "supports_oauth2"},
        )

    return providers


class Settings(BaseModel):
    """Service-wide settings."""

    frontend_url: str = "https://clockwork.fit"
    aws_region: str = "us-east-1"
    connections_table: str = "clockwork_connections"
    records_table: str = "clockwork_wearable_records"
    cache_table: str = "clockwork_cache"
    kms_key_id: str | None = None
    local_mode: bool = False
    allow_memory_fallback: bool = False
    sync_days: int = Field(2, ge=1)
    token_cache_ttl: int = 3600
    oauth_state_ttl: int = 600
    http_timeout: float = 30.0
    http_max_retries: int = 3
    log_level: str = "INFO"
    providers: dict[VendorType, ProviderConfig] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Read settings and provider credentials from the environment."""
        env = os.environ if env is None else env
        sync_days = max(1, _env_int(env, "SYNC_DAYS", 2))
        return cls(
            frontend_url=env.get("FRONTEND_URL", "https://clockwork.fit"),
            aws_region=env.get("AWS_REGION", "us-east-1"),
            connections_table=env.get("CONNECTIONS_TABLE", "clockwork_connections"),
            records_table=env.get("RECORDS_TABLE", "clockwork_wearable_records"),
            cache_table=env.get("CACHE_TABLE", "clockwork_cache"),
            kms_key_id=env.get("KMS_KEY_ID") or None,
            local_mode=_env_flag(env.get("LOCAL_MODE")),
            allow_memory_fallback=_env_flag(env.get("ALLOW_MEMORY_FALLBACK")),
            sync_days=sync_days,
            token_cache_ttl=_env_int(env, "TOKEN_CACHE_TTL", 3600),
            oauth_state_ttl=_env_int(env, "OAUTH_STATE_TTL", 600),
            http_timeout=_env_float(env, "HTTP_TIMEOUT", 30.0),
            http_max_retries=_env_int(env, "HTTP_MAX_RETRIES", 3),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            providers=load_provider_configs(env, default_sync_days=sync_days),
        )

    def provider(self, name: VendorType | str) -> ProviderConfig | None:
        try:
            vendor = VendorType(name)
        except ValueError:
            return None
        return self.providers.get(vendor)
