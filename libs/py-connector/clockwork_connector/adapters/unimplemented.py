"""Adapters for providers whose data fetch is not available yet."""

from datetime import date

from clockwork_scores import NormalizedMetrics

from ..exceptions import ProviderNotImplementedError
from ..vendor_types import VendorType


class UnimplementedAdapter:
    """Raises ProviderNotImplementedError instead of returning any data."""

    def __init__(self, provider: VendorType):
        self._provider = provider

    @property
    def provider(self) -> VendorType:
        return self._provider

    @property
    def categories(self) -> list[str]:
        return []

    async def fetch_daily_metrics(self, access_token: str, day: date) -> NormalizedMetrics:
        raise ProviderNotImplementedError(
            f"{self._provider.display_name} integration is not implemented yet",
            provider=self._provider.value,
        )
