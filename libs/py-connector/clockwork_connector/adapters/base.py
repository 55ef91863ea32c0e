"""Base class for provider adapters."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

from clockwork_scores import NormalizedMetrics

from ..exceptions import ConnectorError, ReconnectRequiredError, VendorAPIError
from ..http_client import RetryingHttpClient
from ..vendor_types import ConfiguredProvider, VendorType

logger = logging.getLogger(__name__)

CategoryFetcher = Callable[[str, date], Awaitable[dict[str, Any]]]


class ProviderAdapter(ABC):
    """
    Fetches one day of provider data and maps it onto NormalizedMetrics.

    Each data category (activity, sleep, HRV, ...) is fetched concurrently.
    A category that fails is recorded in ``categories_failed`` and its fields
    stay None; the remaining categories are still returned. Two failures are
    never absorbed:

    - ReconnectRequiredError: the token is no good for any category
    - Cancellation: the sync deadline expired or the caller gave up

    In both cases the sibling category requests are cancelled.
    """

    def __init__(self, config: ConfiguredProvider, http: RetryingHttpClient):
        self.config = config
        self.http = http

    # ============================================================================
    # Abstract Methods - MUST be implemented by provider adapters
    # ============================================================================

    @property
    @abstractmethod
    def provider(self) -> VendorType:
        """Return the provider type."""
        ...

    @abstractmethod
    def category_fetchers(self) -> dict[str, CategoryFetcher]:
        """
        Category name to coroutine function.

        Each fetcher takes (access_token, day) and returns the NormalizedMetrics
        fields it fills, plus an optional ``raw`` entry with the provider payload.
        """
        ...

    # ============================================================================
    # Shared behaviour
    # ============================================================================

    @property
    def categories(self) -> list[str]:
        return list(self.category_fetchers())

    def url(self, path: str) -> str:
        return f"{self.config.api_base.rstrip('/')}/{path.lstrip('/')}"

    async def get(self, path: str, access_token: str, params: dict[str, Any] | None = None) -> Any:
        """GET a provider resource. 404 means no data for that day and yields {}."""
        try:
            return await self.http.get_json(self.url(path), access_token, params=params)
        except VendorAPIError as e:
            if e.status_code == 404:
                return {}
            raise

    async def _guard(self, name: str, fetcher: CategoryFetcher, access_token: str, day: date) -> dict[str, Any] | None:
        try:
            return await fetcher(access_token, day)
        except ReconnectRequiredError:
            raise
        except ConnectorError as e:
            logger.warning("%s %s fetch failed for %s: %s", self.provider.value, name, day, e.message)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("%s %s payload for %s not understood: %r", self.provider.value, name, day, e)
        return None

    async def fetch_daily_metrics(self, access_token: str, day: date) -> NormalizedMetrics:
        """
        Fetch every category for one day in parallel.

        Args:
            access_token: Valid provider access token
            day: Calendar day to fetch

        Returns:
            NormalizedMetrics with ``categories_failed`` listing degraded categories

        Raises:
            ReconnectRequiredError: Provider rejected the token
        """
        fetchers = self.category_fetchers()
        tasks = {
            name: asyncio.create_task(self._guard(name, fetcher, access_token, day))
            for name, fetcher in fetchers.items()
        }

        try:
            results = await asyncio.gather(*tasks.values())
        except BaseException:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        fields: dict[str, Any] = {}
        raw: dict[str, Any] = {}
        failed: list[str] = []
        for name, result in zip(tasks, results):
            if result is None:
                failed.append(name)
                continue
            payload = dict(result)
            if "raw" in payload:
                raw[name] = payload.pop("raw")
            fields.update({k: v for k, v in payload.items() if v is not None})

        fields.update(self.derive(fields))

        return NormalizedMetrics(
            **fields,
            categories_attempted=list(tasks),
            categories_failed=failed,
            raw_data=raw,
        )

    def derive(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Hook for fields computed from several categories."""
        return {}
