"""Fitbit Web API adapter."""

from datetime import date
from typing import Any

from clockwork_scores import HeartRateZone, SleepBreakdown, SpO2Reading

from ..vendor_types import VendorType
from .base import CategoryFetcher, ProviderAdapter

# Active zone minute credit per heart-rate zone minute
ZONE_MINUTE_WEIGHTS = {"Fat Burn": 1, "Cardio": 2, "Peak": 2}


def _first(items: Any) -> dict[str, Any] | None:
    if isinstance(items, list) and items:
        return items[0]
    return None


def _vo2_max(value: Any) -> float | None:
    """Fitbit reports VO2 max either as a number or as a range like "44-48"."""
    if value is None:
        return None
    if isinstance(value, int | float):
        return float(value)
    text = str(value)
    if "-" in text:
        low, high = text.split("-", 1)
        return (float(low) + float(high)) / 2
    return float(text)


def zone_minutes_to_azm(zones: list[HeartRateZone]) -> int:
    return sum(zone.minutes * ZONE_MINUTE_WEIGHTS.get(zone.name, 0) for zone in zones)


class FitbitAdapter(ProviderAdapter):
    """
    Fitbit daily metrics from seven endpoints.

    Endpoints (relative to https://api.fitbit.com):
        activity        /1/user/-/activities/date/{day}.json
        heart_rate      /1/user/-/activities/heart/date/{day}/1d.json
        sleep           /1.2/user/-/sleep/date/{day}.json
        hrv             /1/user/-/hrv/date/{day}.json
        breathing_rate  /1/user/-/br/date/{day}.json
        spo2            /1/user/-/spo2/date/{day}.json
        cardio_fitness  /1/user/-/cardioscore/date/{day}.json
    """

    @property
    def provider(self) -> VendorType:
        return VendorType.FITBIT

    def category_fetchers(self) -> dict[str, CategoryFetcher]:
        return {
            "activity": self.fetch_activity,
            "heart_rate": self.fetch_heart_rate,
            "sleep": self.fetch_sleep,
            "hrv": self.fetch_hrv,
            "breathing_rate": self.fetch_breathing_rate,
            "spo2": self.fetch_spo2,
            "cardio_fitness": self.fetch_cardio_fitness,
        }

    async def fetch_activity(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/activities/date/{day.isoformat()}.json", access_token)
        summary = data.get("summary") or {}

        distances = summary.get("distances") or []
        total = next((d for d in distances if d.get("activity") == "total"), _first(distances))

        active_minutes = None
        if "veryActiveMinutes" in summary or "fairlyActiveMinutes" in summary:
            active_minutes = (summary.get("veryActiveMinutes") or 0) + (summary.get("fairlyActiveMinutes") or 0)

        azm = summary.get("activeZoneMinutes")
        if isinstance(azm, dict):
            azm = azm.get("totalMinutes")

        return {
            "steps": summary.get("steps"),
            "distance": total.get("distance") if total else None,
            "calories_burned": summary.get("caloriesOut"),
            "active_minutes": active_minutes,
            "active_zone_minutes": azm,
            "raw": data,
        }

    async def fetch_heart_rate(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/activities/heart/date/{day.isoformat()}/1d.json", access_token)
        entry = _first(data.get("activities-heart")) or {}
        value = entry.get("value") or {}

        zones = [
            HeartRateZone(
                name=zone["name"],
                min=zone.get("min"),
                max=zone.get("max"),
                minutes=zone.get("minutes") or 0,
            )
            for zone in value.get("heartRateZones") or []
        ]
        return {
            "resting_heart_rate": value.get("restingHeartRate"),
            "heart_rate_zones": zones,
            "raw": data,
        }

    async def fetch_sleep(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1.2/user/-/sleep/date/{day.isoformat()}.json", access_token)
        sleeps = data.get("sleep") or []
        main = next((s for s in sleeps if s.get("isMainSleep")), _first(sleeps))
        if not main:
            return {"sleep": None, "raw": data}

        levels = (main.get("levels") or {}).get("summary") or {}

        def stage(name: str) -> int:
            return (levels.get(name) or {}).get("minutes") or 0

        return {
            "sleep": SleepBreakdown(
                total_minutes=main.get("timeInBed") or 0,
                minutes_asleep=main.get("minutesAsleep"),
                deep_minutes=stage("deep"),
                light_minutes=stage("light"),
                rem_minutes=stage("rem"),
                awake_minutes=stage("wake"),
                efficiency=main.get("efficiency"),
                start_time=main.get("startTime"),
                end_time=main.get("endTime"),
            ),
            "raw": data,
        }

    async def fetch_hrv(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/hrv/date/{day.isoformat()}.json", access_token)
        entry = _first(data.get("hrv")) or {}
        return {"hrv": (entry.get("value") or {}).get("dailyRmssd"), "raw": data}

    async def fetch_breathing_rate(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/br/date/{day.isoformat()}.json", access_token)
        entry = _first(data.get("br")) or {}
        return {"breathing_rate": (entry.get("value") or {}).get("breathingRate"), "raw": data}

    async def fetch_spo2(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/spo2/date/{day.isoformat()}.json", access_token)
        value = data.get("value") if isinstance(data, dict) else None
        if not value:
            return {"spo2": None, "raw": data}
        return {
            "spo2": SpO2Reading(avg=value.get("avg"), min=value.get("min"), max=value.get("max")),
            "raw": data,
        }

    async def fetch_cardio_fitness(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/1/user/-/cardioscore/date/{day.isoformat()}.json", access_token)
        entry = _first(data.get("cardioScore")) or {}
        return {"cardio_fitness": _vo2_max((entry.get("value") or {}).get("vo2Max")), "raw": data}

    def derive(self, fields: dict[str, Any]) -> dict[str, Any]:
        if fields.get("active_zone_minutes") is not None:
            return {}
        zones = fields.get("heart_rate_zones") or []
        if not zones:
            return {}
        return {"active_zone_minutes": zone_minutes_to_azm(zones)}
