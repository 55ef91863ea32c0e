"""
Period summaries over stored daily records.

Averages are plain arithmetic means over the records in the period:
    - steps, sleep (minutes in bed), activeMinutes: missing values count as 0
    - restingHR, recoveryScore: averaged over the days that have a value

The steps trend compares the first and last day of the period.
"""

import math
from collections.abc import Sequence
from typing import Any

from .vendor_types import SyncStatus, WearableRecord

DEFAULT_INSIGHT_DAYS = 7


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[float]) -> int:
    return _round(sum(values) / len(values)) if values else 0


def steps_trend(records: Sequence[WearableRecord]) -> str:
    """improving, declining, or stable when there is a single day."""
    if len(records) < 2:
        return "stable"
    first = records[0].metrics.steps or 0
    last = records[-1].metrics.steps or 0
    return "improving" if last > first else "declining"


def summarize(records: Sequence[WearableRecord], days: int = DEFAULT_INSIGHT_DAYS) -> dict[str, Any] | None:
    """
    Build the insights payload for a period.

    Args:
        records: Records of the period, any order
        days: Length of the period in days

    Returns:
        Insights dict, or None when no usable record exists. Failed days carry
        no fresh data and are left out.
    """
    usable = sorted(
        (r for r in records if r.sync_status is not SyncStatus.FAILED),
        key=lambda r: (r.date, r.provider.value),
    )
    if not usable:
        return None

    n = len(usable)
    resting = [r.metrics.resting_heart_rate for r in usable if r.metrics.resting_heart_rate]
    recovery = [r.derived.recovery_score for r in usable if r.derived.recovery_score]

    return {
        "averages": {
            "steps": _round(sum(r.metrics.steps or 0 for r in usable) / n),
            "sleep": _round(sum(r.metrics.sleep_minutes for r in usable) / n),
            "activeMinutes": _round(sum(r.metrics.active_minutes or 0 for r in usable) / n),
            "restingHR": _mean(resting),
            "recoveryScore": _mean(recovery),
        },
        "trends": {"steps": steps_trend(usable)},
        "dataPoints": n,
        "period": days,
    }
