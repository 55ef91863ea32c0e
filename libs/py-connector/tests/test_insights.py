"""Tests for period insights."""

from datetime import date, timedelta

from clockwork_connector.insights import steps_trend, summarize
from clockwork_connector.vendor_types import SyncStatus, VendorType, WearableRecord
from clockwork_scores import DerivedMetrics, NormalizedMetrics, SleepBreakdown

START = date(2026, 3, 1)


def _record(offset: int, status=SyncStatus.SUCCESS, recovery: int = 0, **metrics) -> WearableRecord:
    return WearableRecord(
        user_id="user123",
        provider=VendorType.FITBIT,
        date=START + timedelta(days=offset),
        metrics=NormalizedMetrics(**metrics),
        derived=DerivedMetrics(recovery_score=recovery),
        sync_status=status,
    )


def test_empty_period():
    assert summarize([]) is None


def test_only_failed_days():
    assert summarize([_record(0, status=SyncStatus.FAILED, steps=5000)]) is None


def test_averages():
    records = [
        _record(0, steps=6000, active_minutes=30, resting_heart_rate=60, recovery=70, sleep=SleepBreakdown(total_minutes=400)),
        _record(1, steps=8000, active_minutes=41, recovery=0, sleep=SleepBreakdown(total_minutes=420)),
        _record(2, steps=10001, resting_heart_rate=57, recovery=81),
    ]

    summary = summarize(records, days=7)

    assert summary["averages"] == {
        "steps": 8000,  # 24001 / 3
        "sleep": 273,  # 820 / 3
        "activeMinutes": 24,  # 71 / 3, missing counts as 0
        "restingHR": 59,  # 58.5 over the two days that have one
        "recoveryScore": 76,  # 75.5, zero scores left out
    }
    assert summary["dataPoints"] == 3
    assert summary["period"] == 7


def test_missing_optional_averages_are_zero():
    summary = summarize([_record(0, steps=1000)])

    assert summary["averages"]["restingHR"] == 0
    assert summary["averages"]["recoveryScore"] == 0


def test_failed_days_are_left_out():
    records = [
        _record(0, steps=4000),
        _record(1, status=SyncStatus.FAILED),
        _record(2, status=SyncStatus.PARTIAL, steps=6000),
    ]

    summary = summarize(records)

    assert summary["dataPoints"] == 2
    assert summary["averages"]["steps"] == 5000


def test_trend_uses_first_and_last_day_in_date_order():
    newest_first = [_record(2, steps=9000), _record(1, steps=1000), _record(0, steps=5000)]

    assert summarize(newest_first)["trends"]["steps"] == "improving"


def test_trend():
    assert steps_trend([_record(0, steps=5000)]) == "stable"
    assert steps_trend([_record(0, steps=5000), _record(1, steps=5000)]) == "declining"
    assert steps_trend([_record(0), _record(1, steps=1)]) == "improving"
