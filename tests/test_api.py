"""Tests for the FastAPI server."""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import Response

from clockwork_connector import Connection, Settings, VendorType, WearableService
from clockwork_connector.connections import ConnectionStore
from clockwork_connector.kv import MemoryKeyValueStore
from clockwork_connector.records import RecordStore
from clockwork_connector.vendor_types import RateLimitConfig
from server.app import create_app

ENV = {
    "LOCAL_MODE": "true",
    "FRONTEND_URL": "https://app.clockwork.test",
    "FITBIT_CLIENT_ID": "fitbit_client",
    "FITBIT_CLIENT_SECRET": "fitbit_secret",
    "FITBIT_REDIRECT_URI": "https://api.clockwork.test/callback/fitbit",
    "POLAR_CLIENT_ID": "polar_client",
    "POLAR_CLIENT_SECRET": "polar_secret",
    "POLAR_REDIRECT_URI": "https://api.clockwork.test/callback/polar",
    "OURA_CLIENT_ID": "oura_client",
    "OURA_CLIENT_SECRET": "oura_secret",
    "OURA_REDIRECT_URI": "https://api.clockwork.test/callback/oura",
}

USER = {"X-User-Id": "user123"}


async def _no_sleep(delay: float) -> None:
    return None


def _fitbit_api(request: httpx.Request) -> httpx.Response:
    if "/activities/date/" in request.url.path:
        return httpx.Response(200, json={"summary": {"steps": 8000, "caloriesOut": 2100}})
    return httpx.Response(200, json={})


def _token_response(status_code: int, payload: dict) -> MagicMock:
    response = MagicMock(spec=Response)
    response.status_code = status_code
    response.text = str(payload)
    response.json.return_value = payload
    return response


@pytest.fixture
def service():
    cache = MemoryKeyValueStore()
    return WearableService(
        Settings.from_env(ENV),
        cache,
        ConnectionStore("unused", cache=cache, local_mode=True),
        RecordStore("unused", local_mode=True),
        transport=httpx.MockTransport(_fitbit_api),
        sleep=_no_sleep,
    )


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


@pytest.fixture
def connected(service):
    return service.connections.save(
        Connection(
            user_id="user123",
            provider=VendorType.FITBIT,
            access_token="access-1",
            refresh_token="refresh-1",
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )
    )


def _redirect_query(response) -> dict[str, list[str]]:
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://app.clockwork.test/?")
    return parse_qs(urlparse(location).query)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["local_mode"] is True
        assert body["providers"]["fitbit"] is True
        assert body["providers"]["whoop"] is False


class TestAuthorize:
    def test_authorize_returns_url(self, client):
        response = client.get("/authorize/fitbit", headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["provider"] == "fitbit"
        query = parse_qs(urlparse(body["authUrl"]).query)
        assert query["client_id"] == ["fitbit_client"]
        assert "code_verifier" not in query

    def test_requires_user_header(self, client):
        assert client.get("/authorize/fitbit").status_code == 422

    def test_unknown_provider(self, client):
        response = client.get("/authorize/strava", headers=USER)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Unsupported provider: strava",
            "code": "unsupportedprovider",
        }

    def test_unconfigured_provider(self, client):
        response = client.get("/authorize/whoop", headers=USER)

        assert response.status_code == 500
        assert response.json()["success"] is False


class TestCallback:
    def test_provider_error(self, client):
        response = client.get("/callback/fitbit", params={"error": "access_denied"}, follow_redirects=False)

        assert _redirect_query(response) == {"error": ["oauth_error"]}

    def test_missing_code(self, client):
        response = client.get("/callback/fitbit", params={"state": "abc"}, follow_redirects=False)

        assert _redirect_query(response) == {"error": ["invalid_state"]}

    def test_unknown_state(self, client, service):
        response = client.get(
            "/callback/fitbit", params={"code": "c", "state": "forged"}, follow_redirects=False
        )

        assert _redirect_query(response) == {"error": ["invalid_state"]}
        assert service.connections.get("user123", VendorType.FITBIT) is None

    def test_successful_callback(self, client, service):
        state = service.begin_authorization("user123", "fitbit").state
        handler = service.handlers.get("fitbit")
        tokens = _token_response(200, {"access_token": "a", "refresh_token": "r", "expires_in": 3600})

        with patch.object(handler.http_client, "post", return_value=tokens):
            response = client.get(
                "/callback/fitbit", params={"code": "c", "state": state}, follow_redirects=False
            )

        assert _redirect_query(response) == {"connected": ["fitbit"]}
        assert service.connections.get("user123", VendorType.FITBIT).access_token == "a"

    def test_failed_exchange(self, client, service):
        state = service.begin_authorization("user123", "fitbit").state
        handler = service.handlers.get("fitbit")

        with patch.object(handler.http_client, "post", return_value=_token_response(400, {"error": "invalid_grant"})):
            response = client.get(
                "/callback/fitbit", params={"code": "c", "state": state}, follow_redirects=False
            )

        assert _redirect_query(response) == {"error": ["auth_failed"]}
        assert service.connections.get("user123", VendorType.FITBIT) is None


class TestSync:
    def test_sync(self, client, connected):
        response = client.post("/sync/fitbit", headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["provider"] == "fitbit"
        assert body["daysStored"] == 2
        assert body["data"]["metrics"]["steps"] == 8000
        assert body["data"]["sync_status"] == "success"

    def test_unknown_provider(self, client):
        assert client.post("/sync/strava", headers=USER).status_code == 400

    def test_unconfigured_provider(self, client):
        response = client.post("/sync/whoop", headers=USER)

        assert response.status_code == 501
        assert response.json()["success"] is False

    def test_unimplemented_provider(self, client):
        response = client.post("/sync/oura", headers=USER)

        assert response.status_code == 501
        assert response.json()["code"] == "providernotimplemented"

    def test_not_connected(self, client):
        response = client.post("/sync/fitbit", headers=USER)

        assert response.status_code == 404
        assert response.json()["code"] == "notconnected"

    def test_rate_limited(self, client, service, connected):
        service.rate_limiter.configure(VendorType.FITBIT, RateLimitConfig(requests_per_window=1, window_seconds=60))
        assert client.post("/sync/fitbit", headers=USER).status_code == 200

        response = client.post("/sync/fitbit", headers=USER)

        assert response.status_code == 429
        assert response.json()["error"] == "Rate limit exceeded. Please try again later."
        assert int(response.headers["Retry-After"]) > 0

    def test_quota_headers(self, client, service, connected):
        service.rate_limiter.configure(VendorType.FITBIT, RateLimitConfig(requests_per_window=5, window_seconds=60))

        first = client.post("/sync/fitbit", headers=USER)
        second = client.post("/sync/fitbit", headers=USER)

        assert first.headers["X-RateLimit-Limit"] == "5"
        assert first.headers["X-RateLimit-Remaining"] == "4"
        assert second.headers["X-RateLimit-Remaining"] == "3"

    def test_expired_token_without_refresh(self, client, service):
        service.connections.save(
            Connection(
                user_id="user123",
                provider=VendorType.FITBIT,
                access_token="stale",
                expires_at=datetime.now(UTC) - timedelta(minutes=1),
            )
        )

        response = client.post("/sync/fitbit", headers=USER)

        assert response.status_code == 401
        assert response.json()["error"] == "Token expired. Please reconnect."


class TestData:
    def test_records_after_sync(self, client, connected):
        client.post("/sync/fitbit", headers=USER)

        response = client.get("/data/user123", params={"days": 7, "provider": "fitbit"})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        dates = [record["date"] for record in body["data"]]
        assert dates == sorted(dates, reverse=True)

    def test_empty(self, client):
        assert client.get("/data/nobody").json() == {"success": True, "count": 0, "data": []}

    def test_invalid_date(self, client):
        assert client.get("/data/user123", params={"startDate": "yesterday"}).status_code == 400

    def test_days_out_of_range(self, client):
        assert client.get("/data/user123", params={"days": 0}).status_code == 422

    def test_latest(self, client, connected):
        client.post("/sync/fitbit", headers=USER)

        body = client.get("/data/user123/latest").json()

        assert body["success"] is True
        assert body["data"]["date"] == datetime.now(UTC).date().isoformat()
        assert body["data"]["metrics"]["steps"] == 8000

    def test_latest_without_records(self, client):
        assert client.get("/data/user123/latest", params={"provider": "polar"}).json() == {
            "success": True,
            "data": None,
        }


class TestConnections:
    def test_list_hides_tokens(self, client, connected):
        response = client.get("/connections", headers=USER)

        body = response.json()
        assert body["count"] == 1
        assert body["connections"][0]["provider"] == "fitbit"
        assert "access-1" not in response.text
        assert "refresh-1" not in response.text

    def test_disconnect(self, client, service, connected):
        handler = service.handlers.get("fitbit")

        with patch.object(handler.http_client, "post", return_value=_token_response(200, {})):
            first = client.delete("/disconnect/fitbit", headers=USER)
        second = client.delete("/disconnect/fitbit", headers=USER)

        assert first.json() == {"success": True, "provider": "fitbit", "removed": True}
        assert second.json()["removed"] is False
        assert client.get("/connections", headers=USER).json()["count"] == 0


class TestManualEntry:
    def test_store_entry(self, client, service):
        response = client.post(
            "/user/user123/manual",
            json={"date": "2026-03-01", "steps": 9000, "sleep_minutes": 450, "sleep_efficiency": 90, "hrv": 65},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["provider"] == "manual"
        assert body["data"]["date"] == "2026-03-01"
        assert body["data"]["metrics"]["steps"] == 9000
        assert body["data"]["derived"]["recovery_score"] > 0
        assert service.records.get("user123", VendorType.MANUAL, date(2026, 3, 1)) is not None

    def test_defaults_to_today(self, client):
        body = client.post("/user/user123/manual", json={"steps": 1200}).json()

        assert body["data"]["date"] == datetime.now(UTC).date().isoformat()

    def test_rejects_negative_values(self, client):
        assert client.post("/user/user123/manual", json={"steps": -5}).status_code == 422

    def test_rejects_unknown_fields(self, client):
        assert client.post("/user/user123/manual", json={"mood": "great"}).status_code == 422

    def test_manual_cannot_be_synced(self, client):
        assert client.post("/sync/manual", headers=USER).status_code == 400


class TestInsights:
    def test_no_data(self, client):
        assert client.get("/insights/user123").json() == {
            "success": True,
            "insights": None,
            "message": "No data available",
        }

    def test_summary(self, client):
        today = datetime.now(UTC).date()
        for offset, steps in ((2, 6000), (1, 8000), (0, 10000)):
            day = (today - timedelta(days=offset)).isoformat()
            client.post("/user/user123/manual", json={"date": day, "steps": steps, "sleep_minutes": 420, "resting_heart_rate": 58})

        body = client.get("/insights/user123", params={"days": 7}).json()

        insights = body["insights"]
        assert body["success"] is True
        assert insights["averages"]["steps"] == 8000
        assert insights["averages"]["sleep"] == 420
        assert insights["averages"]["restingHR"] == 58
        assert insights["trends"]["steps"] == "improving"
        assert insights["dataPoints"] == 3
        assert insights["period"] == 7

    def test_older_days_outside_period(self, client):
        old = (datetime.now(UTC).date() - timedelta(days=10)).isoformat()
        client.post("/user/user123/manual", json={"date": old, "steps": 5000})

        assert client.get("/insights/user123", params={"days": 7}).json()["insights"] is None

    def test_days_out_of_range(self, client):
        assert client.get("/insights/user123", params={"days": 0}).status_code == 422
