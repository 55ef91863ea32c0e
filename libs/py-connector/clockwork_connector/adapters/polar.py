"""Polar AccessLink adapter."""

import logging
import re
from datetime import date
from typing import Any

from clockwork_scores import SleepBreakdown

from ..exceptions import VendorAPIError
from ..vendor_types import Connection, VendorType
from .base import CategoryFetcher, ProviderAdapter

logger = logging.getLogger(__name__)

_DURATION = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def iso_duration_minutes(value: str | None) -> int | None:
    """Minutes in an ISO 8601 duration such as ``PT2H30M15S``."""
    if not value:
        return None
    match = _DURATION.match(value)
    if not match:
        raise ValueError(f"Unrecognized duration: {value!r}")
    parts = {k: float(v) for k, v in match.groupdict().items() if v}
    seconds = (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )
    return int(seconds // 60)


def _seconds_to_minutes(value: Any) -> int:
    return int((value or 0) // 60)


class PolarAdapter(ProviderAdapter):
    """
    Polar daily metrics.

    Endpoints (relative to https://www.polaraccesslink.com):
        activity        /v3/users/activities/{day}
        sleep           /v3/users/sleep/{day}
        nightly_recharge /v3/users/nightly-recharge/{day}
        cardio_load     /v3/users/cardio-load/{day}
    """

    @property
    def provider(self) -> VendorType:
        return VendorType.POLAR

    def category_fetchers(self) -> dict[str, CategoryFetcher]:
        return {
            "activity": self.fetch_activity,
            "sleep": self.fetch_sleep,
            "nightly_recharge": self.fetch_nightly_recharge,
            "cardio_load": self.fetch_cardio_load,
        }

    async def fetch_activity(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/v3/users/activities/{day.isoformat()}", access_token)
        return {
            "steps": data.get("steps"),
            "distance": data.get("distance_from_steps"),
            "calories_burned": data.get("calories"),
            "active_minutes": iso_duration_minutes(data.get("active_duration")),
            "raw": data,
        }

    async def fetch_sleep(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/v3/users/sleep/{day.isoformat()}", access_token)
        if not data:
            return {"sleep": None, "raw": data}

        light = _seconds_to_minutes(data.get("light_sleep"))
        deep = _seconds_to_minutes(data.get("deep_sleep"))
        rem = _seconds_to_minutes(data.get("rem_sleep"))
        awake = _seconds_to_minutes(data.get("total_interruption_duration"))
        asleep = light + deep + rem
        in_bed = asleep + awake

        return {
            "sleep": SleepBreakdown(
                total_minutes=in_bed,
                minutes_asleep=asleep,
                deep_minutes=deep,
                light_minutes=light,
                rem_minutes=rem,
                awake_minutes=awake,
                efficiency=round(asleep / in_bed * 100, 1) if in_bed else None,
                start_time=data.get("sleep_start_time"),
                end_time=data.get("sleep_end_time"),
            ),
            "raw": data,
        }

    async def fetch_nightly_recharge(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/v3/users/nightly-recharge/{day.isoformat()}", access_token)
        return {
            "hrv": data.get("heart_rate_variability_avg"),
            "breathing_rate": data.get("breathing_rate_avg"),
            "resting_heart_rate": data.get("heart_rate_avg"),
            "raw": data,
        }

    async def fetch_cardio_load(self, access_token: str, day: date) -> dict[str, Any]:
        data = await self.get(f"/v3/users/cardio-load/{day.isoformat()}", access_token)
        entry = data[0] if isinstance(data, list) and data else data
        return {
            "cardio_load": (entry or {}).get("cardio_load"),
            "raw": data,
        }

    async def register_member(self, connection: Connection) -> None:
        """
        Register the user with AccessLink. Required once before any data call.

        A 409 means the member is already registered and counts as success.
        """
        try:
            await self.http.request(
                "POST",
                self.url("/v3/users"),
                headers={
                    "Authorization": f"Bearer {connection.access_token}",
                    "Accept": "application/json",
                },
                json={"member-id": connection.user_id},
            )
        except VendorAPIError as e:
            if e.status_code != 409:
                raise
            logger.debug("Polar member %s already registered", connection.user_id)
            return

        logger.info("Registered Polar member %s", connection.user_id)
