"""Tests for settings and provider catalogue loading."""

from clockwork_connector.config import PROVIDER_CATALOGUE, Settings, load_provider_configs
from clockwork_connector.vendor_types import ConfiguredProvider, UnconfiguredProvider, VendorType

from conftest import PROVIDER_ENV


def test_configured_providers():
    providers = load_provider_configs(PROVIDER_ENV)

    fitbit = providers[VendorType.FITBIT]
    assert isinstance(fitbit, ConfiguredProvider)
    assert fitbit.client_id == "fitbit_client"
    assert fitbit.uses_pkce is True
    assert fitbit.revoke_url == "https://api.fitbit.com/oauth2/revoke"
    assert fitbit.sync_days == 2

    polar = providers[VendorType.POLAR]
    assert polar.uses_pkce is False
    assert polar.revoke_url is None


def test_missing_credentials_are_reported_not_raised():
    providers = load_provider_configs({"WHOOP_CLIENT_ID": "whoop_client"})

    whoop = providers[VendorType.WHOOP]
    assert isinstance(whoop, UnconfiguredProvider)
    assert whoop.configured is False
    assert whoop.missing == ["WHOOP_CLIENT_SECRET", "WHOOP_REDIRECT_URI"]
    assert set(providers) == set(PROVIDER_CATALOGUE)
    assert VendorType.MANUAL not in providers


def test_empty_value_counts_as_missing():
    env = {**PROVIDER_ENV, "FITBIT_CLIENT_SECRET": ""}

    assert load_provider_configs(env)[VendorType.FITBIT].missing == ["FITBIT_CLIENT_SECRET"]


def test_garmin_has_no_oauth2():
    env = {"GARMIN_CLIENT_ID": "g", "GARMIN_CLIENT_SECRET": "s", "GARMIN_REDIRECT_URI": "https://x/callback/garmin"}

    garmin = load_provider_configs(env)[VendorType.GARMIN]

    assert garmin.configured is True
    assert garmin.supports_oauth2 is False


def test_sync_days_override():
    env = {**PROVIDER_ENV, "SYNC_DAYS_POLAR": "7", "SYNC_DAYS_FITBIT": "zero"}

    providers = load_provider_configs(env, default_sync_days=3)

    assert providers[VendorType.POLAR].sync_days == 7
    assert providers[VendorType.FITBIT].sync_days == 3
    assert providers[VendorType.OURA].sync_days == 3


def test_settings_defaults():
    settings = Settings.from_env({})

    assert settings.local_mode is False
    assert settings.allow_memory_fallback is False
    assert settings.frontend_url == "https://clockwork.fit"
    assert settings.oauth_state_ttl == 600
    assert settings.kms_key_id is None
    assert not any(config.configured for config in settings.providers.values())


def test_settings_from_env():
    env = {
        **PROVIDER_ENV,
        "LOCAL_MODE": "true",
        "ALLOW_MEMORY_FALLBACK": "1",
        "FRONTEND_URL": "http://localhost:3000",
        "SYNC_DAYS": "4",
        "KMS_KEY_ID": "alias/clockwork",
    }

    settings = Settings.from_env(env)

    assert settings.local_mode is True
    assert settings.allow_memory_fallback is True
    assert settings.frontend_url == "http://localhost:3000"
    assert settings.kms_key_id == "alias/clockwork"
    assert settings.providers[VendorType.FITBIT].sync_days == 4
    assert settings.provider("fitbit").configured is True
    assert settings.provider("strava") is None


def test_http_timeout_accepts_fractions():
    assert Settings.from_env({"HTTP_TIMEOUT": "7.5"}).http_timeout == 7.5
    assert Settings.from_env({"HTTP_TIMEOUT": "10"}).http_timeout == 10.0


def test_bad_http_timeout_falls_back_to_default():
    assert Settings.from_env({"HTTP_TIMEOUT": "soon"}).http_timeout == 30.0
