"""Normalized daily metrics shared by every provider adapter."""

from typing import Any

from pydantic import BaseModel, Field, computed_field


class HeartRateZone(BaseModel):
    """Minutes spent in one provider-defined heart-rate zone."""

    name: str
    min: int | None = None
    max: int | None = None
    minutes: int = 0


class SleepBreakdown(BaseModel):
    """Main sleep period for a day."""

    total_minutes: int = Field(0, description="Time in bed, in minutes", ge=0)
    minutes_asleep: int | None = Field(None, ge=0)
    deep_minutes: int = Field(0, ge=0)
    light_minutes: int = Field(0, ge=0)
    rem_minutes: int = Field(0, ge=0)
    awake_minutes: int = Field(0, ge=0)
    efficiency: float | None = Field(
        None,
        description="Sleep efficiency percentage (0-100)",
        ge=0,
        le=100,
    )
    start_time: str | None = None
    end_time: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quality(self) -> float:
        """Sleep quality on a 0-10 scale, 8h in bed scoring full marks."""
        if self.total_minutes <= 0:
            return 0.0
        return min(self.total_minutes / 480 * 10, 10.0)


class SpO2Reading(BaseModel):
    """Nightly blood oxygen saturation summary (percent)."""

    avg: float | None = None
    min: float | None = None
    max: float | None = None


class NormalizedMetrics(BaseModel):
    """
    One day of provider data in the common shape.

    Any field may be None: either the provider had no data for the day or the
    category that carries it failed. ``categories_failed`` tells the two apart.
    """

    # Activity
    steps: int | None = Field(None, ge=0)
    distance: float | None = Field(None, ge=0)
    calories_burned: float | None = Field(None, ge=0)
    active_minutes: int | None = Field(None, ge=0)
    active_zone_minutes: int | None = Field(None, ge=0)
    cardio_load: float | None = Field(None, ge=0)

    # Heart
    resting_heart_rate: float | None = Field(None, ge=0)
    heart_rate_zones: list[HeartRateZone] = Field(default_factory=list)
    hrv: float | None = Field(None, description="Daily RMSSD in ms", ge=0)

    # Sleep and respiration
    sleep: SleepBreakdown | None = None
    breathing_rate: float | None = Field(None, ge=0)
    spo2: SpO2Reading | None = None
    cardio_fitness: float | None = Field(None, description="Estimated VO2 max")

    # Fetch bookkeeping
    categories_attempted: list[str] = Field(default_factory=list)
    categories_failed: list[str] = Field(default_factory=list)
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def sleep_minutes(self) -> int:
        return self.sleep.total_minutes if self.sleep else 0

    @property
    def sleep_efficiency(self) -> float | None:
        return self.sleep.efficiency if self.sleep else None

    @property
    def categories_succeeded(self) -> list[str]:
        return [c for c in self.categories_attempted if c not in self.categories_failed]


class DerivedMetrics(BaseModel):
    """Scores computed from normalized metrics."""

    recovery_score: int = Field(0, ge=0, le=100)
    training_load: int = Field(0, ge=0, le=100)
    sleep_score: int | None = Field(None, ge=0, le=100)
