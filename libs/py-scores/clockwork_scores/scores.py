"""
Recovery Score and Training Load.

Both scores are weighted averages of 0-100 sub-scores. A signal that is not
available is dropped together with its weight, so the average is taken over
the weights actually present:

    score = sum(subscore * weight) / sum(weight present)

With no signal at all the score is 0 (unknown is reported as lowest
confidence, not as an error).

Recovery Score weights:
    - HRV                     0.35
    - Resting heart rate      0.25
    - Sleep quality composite 0.25
    - Breathing rate          0.15

Training Load weights:
    - Active zone minutes     0.30
    - Cardio load             0.25
    - Active minutes          0.20
    - Calories over 1500 kcal 0.15
    - Steps                   0.10
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from .schema import DerivedMetrics, NormalizedMetrics

RECOVERY_WEIGHTS: dict[str, float] = {
    "hrv": 0.35,
    "resting_hr": 0.25,
    "sleep": 0.25,
    "breathing_rate": 0.15,
}

TRAINING_LOAD_WEIGHTS: dict[str, float] = {
    "active_zone_minutes": 0.30,
    "cardio_load": 0.25,
    "active_minutes": 0.20,
    "calories": 0.15,
    "steps": 0.10,
}

HRV_REFERENCE_MS = 80.0
RESTING_HR_FLOOR = 40.0
RESTING_HR_SPAN = 40.0
SLEEP_TARGET_MINUTES = 480.0
BREATHING_NORMAL_RANGE = (12.0, 20.0)
BREATHING_CENTER = 16.0
ACTIVE_ZONE_MINUTES_TARGET = 60.0
CARDIO_LOAD_TARGET = 100.0
ACTIVE_MINUTES_TARGET = 60.0
CALORIES_BASELINE = 1500.0
STEPS_TARGET = 15000.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))


def _round_half_up(value: float) -> int:
    # Absorb float noise from weight division before rounding (87.4999... -> 87.5).
    return int(math.floor(round(value, 6) + 0.5))


# ---------------------------------------------------------------------------
# Sub-scores (each 0-100)
# ---------------------------------------------------------------------------


def hrv_subscore(hrv: float) -> float:
    """Higher HRV means better recovery; 80 ms and above scores 100."""
    return _clamp(hrv / HRV_REFERENCE_MS * 100)


def resting_hr_subscore(resting_hr: float) -> float:
    """Lower resting HR scores higher: 40 bpm -> 100, 80 bpm -> 0."""
    return _clamp(100 - (resting_hr - RESTING_HR_FLOOR) / RESTING_HR_SPAN * 100)


def sleep_quality(sleep_minutes: float) -> float:
    """Sleep quality on a 0-10 scale from time in bed."""
    return min(sleep_minutes / SLEEP_TARGET_MINUTES * 10, 10.0)


def sleep_subscore(sleep_minutes: float, sleep_efficiency: float) -> float:
    """Blend of duration (60%) and efficiency (40%)."""
    return _clamp(sleep_quality(sleep_minutes) * 10 * 0.6 + sleep_efficiency * 0.4)


def breathing_rate_subscore(rate: float) -> float:
    """Full marks inside 12-20 breaths/min, 10 points lost per breath away from 16."""
    low, high = BREATHING_NORMAL_RANGE
    if low <= rate <= high:
        return 100.0
    return max(0.0, 100 - abs(BREATHING_CENTER - rate) * 10)


def active_zone_minutes_subscore(minutes: float) -> float:
    return _clamp(minutes / ACTIVE_ZONE_MINUTES_TARGET * 100)


def cardio_load_subscore(load: float) -> float:
    return _clamp(load / CARDIO_LOAD_TARGET * 100)


def active_minutes_subscore(minutes: float) -> float:
    return _clamp(minutes / ACTIVE_MINUTES_TARGET * 100)


def calories_subscore(calories: float) -> float:
    """Only energy burned above a 1500 kcal baseline counts towards load."""
    return _clamp((calories - CALORIES_BASELINE) / CALORIES_BASELINE * 100)


def steps_subscore(steps: float) -> float:
    return _clamp(steps / STEPS_TARGET * 100)


# ---------------------------------------------------------------------------
# Weighted aggregation
# ---------------------------------------------------------------------------


@dataclass
class ComponentScore:
    """
    One signal's contribution to a score.

    Attributes:
        name:     Signal identifier (a key of the weight table).
        subscore: The signal mapped onto 0-100.
        weight:   Nominal weight from the weight table.
    """

    name: str
    subscore: float
    weight: float

    @property
    def weighted(self) -> float:
        return self.subscore * self.weight


@dataclass
class ScoreBreakdown:
    """A score together with the components that produced it."""

    score: int
    components: list[ComponentScore] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def weight_present(self) -> float:
        return sum(c.weight for c in self.components)

    def effective_weights(self) -> dict[str, float]:
        """Weights after renormalization over the signals present."""
        total = self.weight_present
        if total <= 0:
            return {}
        return {c.name: c.weight / total for c in self.components}


def weighted_score(components: Iterable[ComponentScore]) -> int:
    """Renormalized weighted average, rounded half-up and clamped to 0-100."""
    components = list(components)
    total_weight = sum(c.weight for c in components)
    if total_weight <= 0:
        return 0
    raw = sum(c.weighted for c in components) / total_weight
    return _round_half_up(_clamp(raw))


def _present(value: float | None) -> bool:
    return value is not None and value > 0


def recovery_breakdown(
    hrv: float | None = None,
    resting_hr: float | None = None,
    sleep_minutes: float | None = None,
    sleep_efficiency: float | None = None,
    breathing_rate: float | None = None,
) -> ScoreBreakdown:
    """
    Recovery Score with its components.

    Physiological readings of zero are treated as missing. Sleep needs both a
    duration and an efficiency to count.
    """
    components: list[ComponentScore] = []
    missing: list[str] = []

    def add(name: str, available: bool, subscore) -> None:
        if available:
            components.append(ComponentScore(name, subscore(), RECOVERY_WEIGHTS[name]))
        else:
            missing.append(name)

    add("hrv", _present(hrv), lambda: hrv_subscore(hrv))
    add("resting_hr", _present(resting_hr), lambda: resting_hr_subscore(resting_hr))
    add(
        "sleep",
        _present(sleep_minutes) and _present(sleep_efficiency),
        lambda: sleep_subscore(sleep_minutes, sleep_efficiency),
    )
    add(
        "breathing_rate",
        _present(breathing_rate),
        lambda: breathing_rate_subscore(breathing_rate),
    )

    return ScoreBreakdown(score=weighted_score(components), components=components, missing=missing)


def recovery_score(
    hrv: float | None = None,
    resting_hr: float | None = None,
    sleep_minutes: float | None = None,
    sleep_efficiency: float | None = None,
    breathing_rate: float | None = None,
) -> int:
    """Recovery Score in [0, 100]."""
    return recovery_breakdown(
        hrv=hrv,
        resting_hr=resting_hr,
        sleep_minutes=sleep_minutes,
        sleep_efficiency=sleep_efficiency,
        breathing_rate=breathing_rate,
    ).score


def training_load_breakdown(
    active_zone_minutes: float | None = None,
    cardio_load: float | None = None,
    active_minutes: float | None = None,
    calories: float | None = None,
    steps: float | None = None,
) -> ScoreBreakdown:
    """
    Training Load with its components.

    Unlike recovery signals, a reported zero here is a real reading (a rest
    day) and is scored; only None is missing.
    """
    signals = {
        "active_zone_minutes": (active_zone_minutes, active_zone_minutes_subscore),
        "cardio_load": (cardio_load, cardio_load_subscore),
        "active_minutes": (active_minutes, active_minutes_subscore),
        "calories": (calories, calories_subscore),
        "steps": (steps, steps_subscore),
    }

    components: list[ComponentScore] = []
    missing: list[str] = []
    for name, (value, scorer) in signals.items():
        if value is None:
            missing.append(name)
            continue
        components.append(ComponentScore(name, scorer(value), TRAINING_LOAD_WEIGHTS[name]))

    return ScoreBreakdown(score=weighted_score(components), components=components, missing=missing)


def training_load(
    active_zone_minutes: float | None = None,
    cardio_load: float | None = None,
    active_minutes: float | None = None,
    calories: float | None = None,
    steps: float | None = None,
) -> int:
    """Training Load in [0, 100]."""
    return training_load_breakdown(
        active_zone_minutes=active_zone_minutes,
        cardio_load=cardio_load,
        active_minutes=active_minutes,
        calories=calories,
        steps=steps,
    ).score


def compute_derived(metrics: NormalizedMetrics) -> DerivedMetrics:
    """Score one day of normalized metrics."""
    sleep_score = None
    if metrics.sleep is not None and metrics.sleep.total_minutes > 0:
        sleep_score = _round_half_up(metrics.sleep.quality * 10)

    return DerivedMetrics(
        recovery_score=recovery_score(
            hrv=metrics.hrv,
            resting_hr=metrics.resting_heart_rate,
            sleep_minutes=metrics.sleep_minutes,
            sleep_efficiency=metrics.sleep_efficiency,
            breathing_rate=metrics.breathing_rate,
        ),
        training_load=training_load(
            active_zone_minutes=metrics.active_zone_minutes,
            cardio_load=metrics.cardio_load,
            active_minutes=metrics.active_minutes,
            calories=metrics.calories_burned,
            steps=metrics.steps,
        ),
        sleep_score=sleep_score,
    )
