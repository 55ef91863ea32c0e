"""HTTP client for provider APIs with bounded retry on 5xx and timeouts."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .exceptions import ProviderUnavailableError, ReconnectRequiredError, VendorAPIError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3

Sleep = Callable[[float], Awaitable[Any]]


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value and value.isdigit():
        return int(value)
    return None


class RetryingHttpClient:
    """
    Wraps provider calls.

    Retry policy:
    - Status >= 500 or a timeout: retried up to ``max_retries`` times, waiting
      ``backoff_base ** attempt`` seconds (1, 2, 4 ...) between tries
    - 401: ReconnectRequiredError, never retried
    - 429: ProviderUnavailableError carrying Retry-After, never retried
    - Other 4xx: VendorAPIError, never retried
    - Other network errors: ProviderUnavailableError, never retried
    """

    def __init__(
        self,
        provider: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = 2.0,
        sleep: Sleep | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep or asyncio.sleep

        self.http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _delay(self, attempt: int) -> float:
        return self.backoff_base**attempt

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Returns:
            The first response with status < 400

        Raises:
            ReconnectRequiredError: Provider answered 401
            ProviderUnavailableError: 5xx or timeout after all retries, provider 429, network error
            VendorAPIError: Any other 4xx
        """
        for attempt in range(self.max_retries + 1):
            last_try = attempt == self.max_retries

            try:
                response = await self.http_client.request(
                    method, url, headers=headers, params=params, json=json, data=data
                )
            except httpx.TimeoutException as e:
                if last_try:
                    raise ProviderUnavailableError(
                        f"Timed out calling {url} after {attempt + 1} attempts",
                        provider=self.provider,
                    ) from e
                delay = self._delay(attempt)
                logger.warning(
                    "Timeout calling %s (attempt %d/%d), retrying in %.0fs",
                    url,
                    attempt + 1,
                    self.max_retries + 1,
                    delay,
                )
                await self._sleep(delay)
                continue
            except httpx.RequestError as e:
                raise ProviderUnavailableError(
                    f"Network error calling {url}: {e}",
                    provider=self.provider,
                ) from e

            status = response.status_code

            if status >= 500:
                if last_try:
                    raise ProviderUnavailableError(
                        f"Provider returned {status} after {attempt + 1} attempts",
                        provider=self.provider,
                        status_code=status,
                    )
                delay = self._delay(attempt)
                logger.warning(
                    "Provider returned %d for %s (attempt %d/%d), retrying in %.0fs",
                    status,
                    url,
                    attempt + 1,
                    self.max_retries + 1,
                    delay,
                )
                await self._sleep(delay)
                continue

            if status == 401:
                raise ReconnectRequiredError(
                    "Provider rejected the access token. Please reconnect.",
                    provider=self.provider,
                )

            if status == 429:
                raise ProviderUnavailableError(
                    "Provider rate limit exceeded",
                    provider=self.provider,
                    status_code=429,
                    retry_after=_retry_after(response),
                )

            if status >= 400:
                raise VendorAPIError(
                    f"Provider returned {status}: {response.text[:200]}",
                    provider=self.provider,
                    status_code=status,
                )

            return response

        raise AssertionError("unreachable")

    async def get_json(
        self,
        url: str,
        access_token: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET with a bearer token and decode the JSON body."""
        response = await self.request(
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            params=params,
        )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    async def __aenter__(self) -> "RetryingHttpClient":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Context manager exit."""
        await self.close()
