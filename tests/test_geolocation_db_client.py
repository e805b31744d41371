from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx
import pytest

from geodb.clients.geolocation_db_client import GeolocationDbClient
from geodb.errors import RemoteDecodeError, RemoteUnavailableError
from geodb.models.record import GeoLocationRecord
from tests.common import SAMPLE_IP, SAMPLE_LEGACY_BODY, FailingAsyncClient, MockAsyncClient, MockResponse


def make_fake_async_client(response: MockResponse, created: list[MockAsyncClient]) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response; keeps every instance created."""

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        client = MockAsyncClient(response)
        created.append(client)
        return client

    return _fake_client


@pytest.mark.asyncio
async def test_lookup_ip_success_with_legacy_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    """The 5-field payload is decoded even when served as text/html."""
    created: list[MockAsyncClient] = []
    response = MockResponse(status_code=HTTPStatus.OK, content=SAMPLE_LEGACY_BODY)
    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, created))

    client = GeolocationDbClient(api_key="k1")
    result = await client.lookup_ip(SAMPLE_IP)

    assert isinstance(result, GeoLocationRecord)
    assert result.country_code == "US"
    assert result.country_name == "United States"
    assert result.latitude == pytest.approx(46.7546)
    assert result.longitude == pytest.approx(-92.5408)
    assert result.ip == SAMPLE_IP
    assert result.city is None
    assert created[0].requested_urls == [f"https://geolocation-db.com/json/k1/{SAMPLE_IP}"]


@pytest.mark.asyncio
async def test_lookup_ip_success_with_full_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    body = (
        b'{"country_code":"US","country_name":"United States","city":"Minneapolis","postal":"55455",'
        b'"latitude":44.9733,"longitude":-93.2323,"IPv4":"134.84.0.1","state":"Minnesota"}'
    )
    response = MockResponse(status_code=HTTPStatus.OK, content=body, headers={"content-type": "application/json"})
    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, []))

    result = await GeolocationDbClient(api_key="k1").lookup_ip("134.84.0.1")

    assert result.city == "Minneapolis"
    assert result.postal_code == "55455"
    assert result.state == "Minnesota"
    assert result.latitude == pytest.approx(44.9733)


@pytest.mark.asyncio
async def test_lookup_ip_uses_injected_http_client_without_closing_it() -> None:
    shared = MockAsyncClient(MockResponse(status_code=HTTPStatus.OK, content=SAMPLE_LEGACY_BODY))

    client = GeolocationDbClient(api_key="k1", base_url="https://geo.example/json/", http_client=shared)
    await client.lookup_ip(SAMPLE_IP)
    await client.lookup_ip(SAMPLE_IP)

    assert shared.requested_urls == [f"https://geo.example/json/k1/{SAMPLE_IP}"] * 2
    assert shared.closed is False


@pytest.mark.asyncio
async def test_lookup_ip_malformed_body_raises_remote_decode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    response = MockResponse(status_code=HTTPStatus.OK, content=b"<html>oops</html>")
    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, []))

    with pytest.raises(RemoteDecodeError):
        await GeolocationDbClient(api_key="k1").lookup_ip(SAMPLE_IP)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code",
    [
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.UNAUTHORIZED,
        HTTPStatus.FORBIDDEN,
        HTTPStatus.NOT_FOUND,
        HTTPStatus.TOO_MANY_REQUESTS,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        HTTPStatus.BAD_GATEWAY,
    ],
)
async def test_lookup_ip_http_error_statuses_raise_remote_unavailable_error(
    monkeypatch: pytest.MonkeyPatch,
    status_code: HTTPStatus,
) -> None:
    """Any non-2xx response is a failed lookup, even when the body is valid JSON."""
    response = MockResponse(status_code=status_code, content=SAMPLE_LEGACY_BODY)
    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, []))

    with pytest.raises(RemoteUnavailableError):
        await GeolocationDbClient(api_key="k1").lookup_ip(SAMPLE_IP)


@pytest.mark.asyncio
async def test_lookup_ip_network_failure_raises_remote_unavailable_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Network failures from httpx.AsyncClient are mapped to RemoteUnavailableError."""
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda *args, **kwargs: FailingAsyncClient("https://geolocation-db.com/json", *args, **kwargs),
    )

    with pytest.raises(RemoteUnavailableError):
        await GeolocationDbClient(api_key="k1").lookup_ip(SAMPLE_IP)
