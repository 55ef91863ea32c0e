"""Shared fixtures for connector tests."""

import inspect
import os

import boto3
import httpx
import pytest
from moto import mock_aws

from clockwork_connector.config import load_provider_configs
from clockwork_connector.kv import MemoryKeyValueStore

PROVIDER_ENV = {
    "FITBIT_CLIENT_ID": "fitbit_client",
    "FITBIT_CLIENT_SECRET": "fitbit_secret",
    "FITBIT_REDIRECT_URI": "https://api.clockwork.fit/callback/fitbit",
    "POLAR_CLIENT_ID": "polar_client",
    "POLAR_CLIENT_SECRET": "polar_secret",
    "POLAR_REDIRECT_URI": "https://api.clockwork.fit/callback/polar",
    "OURA_CLIENT_ID": "oura_client",
    "OURA_CLIENT_SECRET": "oura_secret",
    "OURA_REDIRECT_URI": "https://api.clockwork.fit/callback/oura",
}


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def memory_store(clock):
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def providers():
    return load_provider_configs(PROVIDER_ENV)


@pytest.fixture
def fitbit_config(providers):
    from clockwork_connector.vendor_types import VendorType

    return providers[VendorType.FITBIT]


@pytest.fixture
def polar_config(providers):
    from clockwork_connector.vendor_types import VendorType

    return providers[VendorType.POLAR]


def json_transport(routes: dict[str, object], default: object = None) -> httpx.MockTransport:
    """
    MockTransport answering by URL path.

    A route value may be a JSON payload, an httpx.Response, or a (sync or
    async) callable taking the request and returning either.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        answer = routes.get(request.url.path, default)
        if callable(answer):
            answer = answer(request)
            if inspect.isawaitable(answer):
                answer = await answer
        if isinstance(answer, httpx.Response):
            return answer
        if answer is None:
            return httpx.Response(404, json={"errors": ["not found"]})
        return httpx.Response(200, json=answer)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport():
    return json_transport


# ============================================================================
# AWS (moto)
# ============================================================================


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.pop("AWS_PROFILE", None)


@pytest.fixture
def aws(aws_credentials):
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


@pytest.fixture
def cache_table(aws):
    return aws.create_table(
        TableName="test_cache",
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def connections_table(aws):
    return aws.create_table(
        TableName="test_connections",
        KeySchema=[{"AttributeName": "connection_key", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "connection_key", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def records_table(aws):
    return aws.create_table(
        TableName="test_records",
        KeySchema=[
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
