"""Tests for the service facade: record reads, manual entries, insights and quotas."""

from datetime import date, timedelta

import pytest

from clockwork_connector.config import Settings
from clockwork_connector.connections import ConnectionStore
from clockwork_connector.exceptions import UnsupportedProviderError
from clockwork_connector.records import RecordStore
from clockwork_connector.service import WearableService
from clockwork_connector.vendor_types import (
    ManualEntry,
    RateLimitConfig,
    SyncStatus,
    VendorType,
    WearableRecord,
)
from clockwork_scores import NormalizedMetrics, SleepBreakdown, compute_derived

TODAY = date(2026, 3, 10)


@pytest.fixture
def service(providers, memory_store):
    settings = Settings(local_mode=True, providers=providers)
    return WearableService(
        settings,
        memory_store,
        ConnectionStore("unused", cache=memory_store, local_mode=True),
        RecordStore("unused", local_mode=True),
    )


def _store_days(service, count: int, provider=VendorType.FITBIT) -> None:
    for offset in range(count):
        service.records.upsert(
            WearableRecord(
                user_id="user123",
                provider=provider,
                date=TODAY - timedelta(days=offset),
                metrics=NormalizedMetrics(steps=1000 * (offset + 1)),
            )
        )


class TestGetRecords:
    def test_default_window_is_today_and_yesterday(self, service):
        _store_days(service, 5)

        records = service.get_records("user123", today=TODAY)

        assert [r.date for r in records] == [TODAY, TODAY - timedelta(days=1)]

    @pytest.mark.parametrize("days", [1, 3, 5])
    def test_days_counts_today(self, service, days):
        _store_days(service, 5)

        records = service.get_records("user123", days=days, today=TODAY)

        assert len(records) == days
        assert records[-1].date == TODAY - timedelta(days=days - 1)

    def test_explicit_range_ignores_days(self, service):
        _store_days(service, 5)
        start = TODAY - timedelta(days=4)

        records = service.get_records("user123", start_date=start, end_date=start + timedelta(days=1), days=1)

        assert [r.date for r in records] == [start + timedelta(days=1), start]

    def test_unknown_provider_filter(self, service):
        with pytest.raises(UnsupportedProviderError):
            service.get_records("user123", provider="strava")


class TestManualEntry:
    def test_stored_under_manual_with_scores(self, service):
        metrics = ManualEntry(steps=9000, sleep_minutes=450, sleep_efficiency=90, hrv=65, resting_heart_rate=55).to_metrics()

        record = service.manual_entry("user123", metrics, day=TODAY)

        assert record.provider == VendorType.MANUAL
        assert record.sync_status == SyncStatus.SUCCESS
        assert record.derived == compute_derived(metrics)
        assert record.derived.recovery_score > 0
        assert record.derived.sleep_score is not None
        assert service.records.get("user123", VendorType.MANUAL, TODAY) == record

    def test_same_day_replaces_entry(self, service):
        service.manual_entry("user123", NormalizedMetrics(steps=100), day=TODAY)
        service.manual_entry("user123", NormalizedMetrics(steps=200), day=TODAY)

        records = service.get_records("user123", provider="manual", today=TODAY)

        assert [r.metrics.steps for r in records] == [200]

    def test_kept_apart_from_synced_records(self, service):
        _store_days(service, 1)
        service.manual_entry("user123", NormalizedMetrics(steps=500), day=TODAY)

        providers = {r.provider for r in service.get_records("user123", days=1, today=TODAY)}

        assert providers == {VendorType.FITBIT, VendorType.MANUAL}

    def test_entry_maps_sleep(self):
        metrics = ManualEntry.model_validate({"date": "2026-03-01", "sleep_minutes": 420}).to_metrics()

        assert metrics.sleep == SleepBreakdown(total_minutes=420)
        assert metrics.sleep_minutes == 420

    def test_manual_is_not_a_sync_provider(self, service):
        assert VendorType.MANUAL not in service.providers
        assert "manual" not in {status["provider"] for status in service.provider_status()}


class TestInsights:
    def test_no_data(self, service):
        assert service.insights("user123", today=TODAY) is None

    def test_period_counts_today(self, service):
        _store_days(service, 10)

        summary = service.insights("user123", days=7, today=TODAY)

        assert summary["dataPoints"] == 7
        assert summary["period"] == 7
        # 1000..7000 steps, newest day has the fewest
        assert summary["averages"]["steps"] == 4000
        assert summary["trends"]["steps"] == "declining"

    def test_includes_manual_entries(self, service):
        service.manual_entry("user123", NormalizedMetrics(steps=3000), day=TODAY - timedelta(days=1))
        service.manual_entry("user123", NormalizedMetrics(steps=5000), day=TODAY)

        summary = service.insights("user123", days=7, today=TODAY)

        assert summary["dataPoints"] == 2
        assert summary["trends"]["steps"] == "improving"


class TestRateLimitStatus:
    def test_remaining_after_hits(self, service):
        service.rate_limiter.configure(VendorType.FITBIT, RateLimitConfig(requests_per_window=3, window_seconds=60))
        service.rate_limiter.check_limit(VendorType.FITBIT, "user123")

        status = service.rate_limit_status("user123", "fitbit")

        assert status["remaining"] == 2
        assert status["max"] == 3
        assert status["reset_at"] is not None

    def test_reset_restores_quota(self, service):
        service.rate_limiter.configure(VendorType.FITBIT, RateLimitConfig(requests_per_window=1, window_seconds=60))
        service.rate_limiter.check_limit(VendorType.FITBIT, "user123")

        service.reset_rate_limit("user123", "fitbit")

        assert service.rate_limit_status("user123", "fitbit")["remaining"] == 1
        service.rate_limiter.check_limit(VendorType.FITBIT, "user123")

    def test_manual_has_no_quota(self, service):
        assert service.rate_limit_status("user123", "manual") == {}
