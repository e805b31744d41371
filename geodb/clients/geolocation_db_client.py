from http import HTTPStatus

import httpx

from geodb.clients.base import BaseGeoLocationClient
from geodb.config import DEFAULT_BASE_URL
from geodb.errors import RemoteUnavailableError
from geodb.models.record import GeoLocationRecord


class GeolocationDbClient(BaseGeoLocationClient):
    """Client for the https://geolocation-db.com JSON API.

    Requests are made to `{base_url}/{api_key}/{ip}`. When a shared
    `httpx.AsyncClient` is injected it is reused for every call and never closed
    here; otherwise a short-lived client is opened per lookup.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._http_client = http_client

    def build_url(self, ip: str) -> str:
        return f"{self._base_url}/{self._api_key}/{ip}"

    async def lookup_ip(self, ip: str) -> GeoLocationRecord:
        """Look up geolocation information for an explicit IP address."""
        response = await self._get(self.build_url(ip))
        self._handle_http_errors(response)
        # geolocation-db.com does not always declare a JSON content type, so the
        # body is decoded as JSON unconditionally.
        return GeoLocationRecord.from_remote_payload(response.content)

    async def _get(self, url: str) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.get(url, timeout=self._timeout_seconds)
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.get(url)
        except httpx.RequestError as exc:
            raise RemoteUnavailableError(f"Request to geolocation-db.com failed: {exc!r}") from exc

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map non-success HTTP status codes to RemoteUnavailableError."""
        status_code = response.status_code

        if status_code == HTTPStatus.FORBIDDEN or status_code == HTTPStatus.UNAUTHORIZED:
            raise RemoteUnavailableError(f"geolocation-db.com rejected the API key (HTTP {status_code}).")
        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise RemoteUnavailableError("geolocation-db.com rate limit or quota exceeded (HTTP 429).")
        if not HTTPStatus.OK <= status_code < HTTPStatus.MULTIPLE_CHOICES:
            raise RemoteUnavailableError(f"geolocation-db.com returned HTTP {status_code}: {response.text}")
