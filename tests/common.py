import asyncio
from http import HTTPStatus
from typing import Any

import httpx

from geodb.cache.base import GeoCache
from geodb.clients.base import BaseGeoLocationClient
from geodb.errors import CacheUnavailableError
from geodb.models.record import GeoLocationRecord

SAMPLE_IP = "50.81.224.152"
SAMPLE_LEGACY_BODY = (
    b'{"country_code":"US","country_name":"United States",'
    b'"latitude":"46.7546","longitude":"-92.5408","IPv4":"50.81.224.152"}'
)


class MockResponse:
    def __init__(self, status_code: int, content: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {"content-type": "text/html; charset=utf-8"}
        self.text = content.decode("utf-8", errors="replace")


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient that records requested URLs."""

    def __init__(self, response: MockResponse) -> None:
        self._response = response
        self.requested_urls: list[str] = []
        self.closed = False

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True
        return None

    async def get(self, url: str, **kwargs: Any) -> MockResponse:
        self.requested_urls.append(url)
        return self._response


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure."""

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.ConnectError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, **kwargs: Any) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK)


class StubGeoClient(BaseGeoLocationClient):
    """Remote client double that counts lookups and returns a fixed record or raises."""

    def __init__(
        self,
        record: GeoLocationRecord | None = None,
        exc: Exception | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self._record = record
        self._exc = exc
        self._delay_seconds = delay_seconds
        self.calls: list[str] = []

    async def lookup_ip(self, ip: str) -> GeoLocationRecord:
        self.calls.append(ip)
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        if self._exc is not None:
            raise self._exc
        return self._record


class FakeCache(GeoCache):
    """In-memory GeoCache with a manual clock and switchable failures.

    Uses the default set-then-expire `store`, so it also covers the rollback
    path taken when EXPIRE fails.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._values: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self.fail_get = False
        self.fail_set = False
        self.fail_expire = False
        self.fail_delete = False
        # Per-operation latency, e.g. {"get": 1.0}, to exercise timeouts.
        self.delays: dict[str, float] = {}
        self.operations: list[tuple[str, str]] = []

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def put_raw(self, key: str, value: str) -> None:
        self._values[key] = value

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime, or None for a key stored without expiration."""
        if key not in self._expires_at:
            return None
        return self._expires_at[key] - self.now

    def __contains__(self, key: str) -> bool:
        self._evict(key)
        return key in self._values

    async def _delay(self, operation: str) -> None:
        seconds = self.delays.get(operation)
        if seconds:
            await asyncio.sleep(seconds)

    def _evict(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self.now:
            self._values.pop(key, None)
            self._expires_at.pop(key, None)

    async def get(self, key: str) -> str | None:
        self.operations.append(("get", key))
        await self._delay("get")
        if self.fail_get:
            raise CacheUnavailableError("get failed")
        self._evict(key)
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.operations.append(("set", key))
        await self._delay("set")
        if self.fail_set:
            raise CacheUnavailableError("set failed")
        self._values[key] = value
        self._expires_at.pop(key, None)

    async def expire(self, key: str, seconds: int) -> None:
        self.operations.append(("expire", key))
        await self._delay("expire")
        if self.fail_expire:
            raise CacheUnavailableError("expire failed")
        self._expires_at[key] = self.now + seconds

    async def delete(self, key: str) -> None:
        self.operations.append(("delete", key))
        await self._delay("delete")
        if self.fail_delete:
            raise CacheUnavailableError("delete failed")
        self._values.pop(key, None)
        self._expires_at.pop(key, None)
