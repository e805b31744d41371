import asyncio

from geodb.cache.base import GeoCache
from geodb.clients.base import BaseGeoLocationClient
from geodb.config import GeoLocationConfig
from geodb.errors import CacheUnavailableError, ConfigurationError, InvalidIpError, RemoteUnavailableError
from geodb.logger import get_logger
from geodb.models.record import GeoLocationRecord

logger = get_logger("resolver")


class GeoResolver:
    """Cache-aside resolution of an IP address to a GeoLocationRecord.

    With caching enabled, the cache is consulted first and a hit is returned
    without touching the network. On a miss the record is fetched from the
    remote service and written back with the configured TTL.

    Cache failures never fail a lookup: a broken read is treated as a miss and
    a broken write leaves the fetched record uncached. Remote failures
    (`RemoteUnavailableError`, `RemoteDecodeError`) propagate to the caller.

    The resolver holds no mutable state; the remote client and the cache are
    shared collaborators whose lifecycle belongs to the caller.
    """

    def __init__(
        self,
        config: GeoLocationConfig,
        client: BaseGeoLocationClient,
        cache: GeoCache | None = None,
    ) -> None:
        if config.cache_enabled and cache is None:
            raise ConfigurationError("Caching is enabled but no cache backend was provided.")
        self._config = config
        self._client = client
        self._cache = cache

    @property
    def config(self) -> GeoLocationConfig:
        return self._config

    @property
    def cache_enabled(self) -> bool:
        return self._config.cache_enabled

    async def resolve(self, ip: str) -> GeoLocationRecord:
        """Return the geolocation record for `ip`.

        The IP is not format-checked here; the remote service decides validity.
        """
        if not ip or not ip.strip():
            raise InvalidIpError("An IP address is required for a geolocation lookup.")

        if self.cache_enabled:
            cached = await self._read_cache(ip)
            if cached is not None:
                logger.debug(f"Cache hit ip={ip}")
                return cached
            logger.debug(f"Cache miss ip={ip}")

        record = self._bind_to_key(ip, await self._fetch(ip))

        if self.cache_enabled:
            await self._populate_cache(ip, record)

        return record

    @staticmethod
    def _bind_to_key(ip: str, record: GeoLocationRecord) -> GeoLocationRecord:
        """Return `record` with its `ip` set to the lookup key it is cached under."""
        if record.ip == ip:
            return record
        if record.ip is not None:
            logger.warning(f"Remote answered for a different address ip={ip} answered_ip={record.ip}")
        return record.model_copy(update={"ip": ip})

    async def _read_cache(self, ip: str) -> GeoLocationRecord | None:
        try:
            value = await asyncio.wait_for(self._cache.get(ip), timeout=self._config.cache_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Cache read timed out ip={ip} timeout={self._config.cache_timeout_seconds}")
            return None
        except CacheUnavailableError as exc:
            logger.warning(f"Cache read failed, falling back to remote lookup ip={ip} error={exc}")
            return None

        record = GeoLocationRecord.from_cache_value(value)
        if value is not None and record is None:
            logger.warning(f"Discarding undecodable cache entry ip={ip}")
        return record

    async def _fetch(self, ip: str) -> GeoLocationRecord:
        try:
            return await asyncio.wait_for(self._client.lookup_ip(ip), timeout=self._config.request_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise RemoteUnavailableError(
                f"geolocation-db.com did not answer within {self._config.request_timeout_seconds}s"
            ) from exc

    async def _populate_cache(self, ip: str, record: GeoLocationRecord) -> None:
        ttl_seconds = self._config.cache_expiration_seconds
        try:
            value = record.to_cache_value()
            await asyncio.wait_for(
                self._cache.store(ip, value, ttl_seconds),
                timeout=self._config.cache_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Cache write timed out, record not cached ip={ip}")
        except CacheUnavailableError as exc:
            logger.warning(f"Cache write failed, record not cached ip={ip} error={exc}")
