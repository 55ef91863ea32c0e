"""Tests for wearable record storage."""

from datetime import UTC, date, datetime, timedelta

import pytest

from clockwork_connector.records import RecordStore
from clockwork_connector.vendor_types import SyncStatus, VendorType, WearableRecord
from clockwork_scores import DerivedMetrics, NormalizedMetrics, SleepBreakdown

TODAY = date(2026, 3, 10)


def _record(day=TODAY, provider=VendorType.FITBIT, steps=8000, **overrides) -> WearableRecord:
    fields = {
        "user_id": "user123",
        "provider": provider,
        "date": day,
        "metrics": NormalizedMetrics(steps=steps, hrv=55.0, categories_attempted=["activity", "hrv"]),
        "derived": DerivedMetrics(recovery_score=70, training_load=40),
        "last_synced": datetime(2026, 3, 10, 9, 0, tzinfo=UTC),
    }
    fields.update(overrides)
    return WearableRecord(**fields)


@pytest.fixture(params=["local", "dynamo"])
def records(request):
    if request.param == "local":
        return RecordStore("unused", local_mode=True)
    table = request.getfixturevalue("records_table")
    return RecordStore("test_records", table=table)


class TestRecordStore:
    def test_upsert_and_get(self, records):
        records.upsert(_record())

        loaded = records.get("user123", VendorType.FITBIT, TODAY)

        assert loaded.metrics.steps == 8000
        assert loaded.metrics.hrv == 55.0
        assert loaded.derived.recovery_score == 70
        assert loaded.sync_status == SyncStatus.SUCCESS

    def test_upsert_is_idempotent(self, records):
        records.upsert(_record(steps=1000))
        records.upsert(_record(steps=2000))

        stored = records.query("user123")

        assert len(stored) == 1
        assert stored[0].metrics.steps == 2000

    def test_providers_do_not_collide(self, records):
        records.upsert(_record(provider=VendorType.FITBIT))
        records.upsert(_record(provider=VendorType.POLAR, steps=500))

        assert len(records.query("user123")) == 2
        assert records.get("user123", VendorType.POLAR, TODAY).metrics.steps == 500

    def test_query_newest_first_with_range(self, records):
        for offset in range(5):
            records.upsert(_record(day=TODAY - timedelta(days=offset)))

        stored = records.query("user123", start=TODAY - timedelta(days=2), end=TODAY - timedelta(days=1))

        assert [r.date for r in stored] == [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

    def test_query_provider_filter_and_limit(self, records):
        for offset in range(4):
            records.upsert(_record(day=TODAY - timedelta(days=offset), provider=VendorType.FITBIT))
            records.upsert(_record(day=TODAY - timedelta(days=offset), provider=VendorType.POLAR))

        polar = records.query("user123", provider=VendorType.POLAR)
        limited = records.query("user123", limit=3)

        assert {r.provider for r in polar} == {VendorType.POLAR}
        assert len(polar) == 4
        assert len(limited) == 3
        assert limited[0].date == TODAY

    def test_query_other_user(self, records):
        records.upsert(_record())
        assert records.query("someone-else") == []

    def test_mark_failed_keeps_metrics(self, records):
        records.upsert(_record(steps=4321))

        failed = records.mark_failed("user123", VendorType.FITBIT, TODAY, error="All categories failed")

        loaded = records.get("user123", VendorType.FITBIT, TODAY)
        assert failed.sync_status == SyncStatus.FAILED
        assert loaded.sync_status == SyncStatus.FAILED
        assert loaded.error == "All categories failed"
        assert loaded.metrics.steps == 4321

    def test_mark_failed_without_existing_row(self, records):
        records.mark_failed("user123", VendorType.FITBIT, TODAY, error="boom")

        loaded = records.get("user123", VendorType.FITBIT, TODAY)
        assert loaded.sync_status == SyncStatus.FAILED
        assert loaded.metrics.steps is None


class TestLatestComplete:
    def test_today_with_meaningful_data(self, records):
        records.upsert(_record(day=TODAY, steps=5000))
        records.upsert(_record(day=TODAY - timedelta(days=1), steps=9000))

        latest = records.latest_complete("user123", VendorType.FITBIT, today=TODAY)

        assert latest.date == TODAY

    def test_sparse_today_falls_back_to_yesterday(self, records):
        records.upsert(_record(day=TODAY, steps=40))
        records.upsert(_record(day=TODAY - timedelta(days=1), steps=9000))

        latest = records.latest_complete("user123", VendorType.FITBIT, today=TODAY)

        assert latest.date == TODAY - timedelta(days=1)

    def test_sleep_counts_as_meaningful(self, records):
        metrics = NormalizedMetrics(steps=0, sleep=SleepBreakdown(total_minutes=400, efficiency=90))
        records.upsert(_record(day=TODAY, metrics=metrics))
        records.upsert(_record(day=TODAY - timedelta(days=1)))

        assert records.latest_complete("user123", VendorType.FITBIT, today=TODAY).date == TODAY

    def test_sparse_today_without_yesterday(self, records):
        records.upsert(_record(day=TODAY, steps=10))

        assert records.latest_complete("user123", VendorType.FITBIT, today=TODAY).date == TODAY

    def test_nothing_stored(self, records):
        assert records.latest_complete("user123", VendorType.FITBIT, today=TODAY) is None
