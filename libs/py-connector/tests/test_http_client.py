"""Tests for the retrying provider HTTP client."""

import httpx
import pytest

from clockwork_connector.exceptions import ProviderUnavailableError, ReconnectRequiredError, VendorAPIError
from clockwork_connector.http_client import RetryingHttpClient


def _sequence(*responses):
    """Transport returning the given responses (or raising exceptions) in order."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        answer = responses[min(len(calls), len(responses)) - 1]
        if isinstance(answer, Exception):
            raise answer
        return answer

    return httpx.MockTransport(handler), calls


def _client(transport, sleep, max_retries=3):
    return RetryingHttpClient(provider="fitbit", max_retries=max_retries, sleep=sleep, transport=transport)


class TestRetryingHttpClient:
    @pytest.mark.asyncio
    async def test_success_returns_json(self, no_sleep):
        transport, calls = _sequence(httpx.Response(200, json={"steps": 100}))
        async with _client(transport, no_sleep) as client:
            data = await client.get_json("https://api.fitbit.com/x", "token", params={"a": "1"})

        assert data == {"steps": 100}
        assert calls[0].headers["Authorization"] == "Bearer token"
        assert calls[0].url.params["a"] == "1"
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_dict(self, no_sleep):
        transport, _ = _sequence(httpx.Response(204))
        async with _client(transport, no_sleep) as client:
            assert await client.get_json("https://api.fitbit.com/x", "token") == {}

    @pytest.mark.asyncio
    async def test_retries_5xx_with_exponential_backoff(self, no_sleep):
        transport, calls = _sequence(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(500),
            httpx.Response(200, json={"ok": True}),
        )
        async with _client(transport, no_sleep) as client:
            data = await client.get_json("https://api.fitbit.com/x", "token")

        assert data == {"ok": True}
        assert len(calls) == 4
        assert no_sleep.delays == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_5xx_exhausts_retries(self, no_sleep):
        transport, calls = _sequence(httpx.Response(500))
        async with _client(transport, no_sleep) as client:
            with pytest.raises(ProviderUnavailableError) as exc_info:
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 4
        assert exc_info.value.status_code == 500
        assert no_sleep.delays == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, no_sleep):
        transport, calls = _sequence(
            httpx.ReadTimeout("slow"),
            httpx.Response(200, json={"ok": True}),
        )
        async with _client(transport, no_sleep) as client:
            assert await client.get_json("https://api.fitbit.com/x", "token") == {"ok": True}

        assert len(calls) == 2
        assert no_sleep.delays == [1]

    @pytest.mark.asyncio
    async def test_timeout_exhausts_retries(self, no_sleep):
        transport, calls = _sequence(httpx.ConnectTimeout("slow"))
        async with _client(transport, no_sleep, max_retries=2) as client:
            with pytest.raises(ProviderUnavailableError):
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_401_requires_reconnect_without_retry(self, no_sleep):
        transport, calls = _sequence(httpx.Response(401))
        async with _client(transport, no_sleep) as client:
            with pytest.raises(ReconnectRequiredError):
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_429_carries_retry_after(self, no_sleep):
        transport, calls = _sequence(httpx.Response(429, headers={"Retry-After": "120"}))
        async with _client(transport, no_sleep) as client:
            with pytest.raises(ProviderUnavailableError) as exc_info:
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 1
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 120

    @pytest.mark.asyncio
    async def test_other_4xx_is_not_retried(self, no_sleep):
        transport, calls = _sequence(httpx.Response(403, text="forbidden"))
        async with _client(transport, no_sleep) as client:
            with pytest.raises(VendorAPIError) as exc_info:
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 1
        assert exc_info.value.status_code == 403
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_network_error_is_not_retried(self, no_sleep):
        transport, calls = _sequence(httpx.ConnectError("refused"))
        async with _client(transport, no_sleep) as client:
            with pytest.raises(ProviderUnavailableError):
                await client.get_json("https://api.fitbit.com/x", "token")

        assert len(calls) == 1
