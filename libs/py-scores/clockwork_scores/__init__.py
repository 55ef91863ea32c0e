"""
Clockwork Scores Library

Normalized daily wearable metrics and the Recovery Score / Training Load
calculators derived from them.
"""

from .schema import DerivedMetrics, HeartRateZone, NormalizedMetrics, SleepBreakdown, SpO2Reading
from .scores import (
    RECOVERY_WEIGHTS,
    TRAINING_LOAD_WEIGHTS,
    ComponentScore,
    ScoreBreakdown,
    compute_derived,
    recovery_breakdown,
    recovery_score,
    training_load,
    training_load_breakdown,
)

__version__ = "0.1.0"

__all__ = [
    "NormalizedMetrics",
    "SleepBreakdown",
    "HeartRateZone",
    "SpO2Reading",
    "DerivedMetrics",
    "RECOVERY_WEIGHTS",
    "TRAINING_LOAD_WEIGHTS",
    "ComponentScore",
    "ScoreBreakdown",
    "compute_derived",
    "recovery_breakdown",
    "recovery_score",
    "training_load",
    "training_load_breakdown",
]
