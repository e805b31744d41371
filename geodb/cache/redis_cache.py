from redis.asyncio import Redis
from redis.exceptions import RedisError

from geodb.cache.base import GeoCache
from geodb.errors import CacheUnavailableError
from geodb.logger import get_logger

logger = get_logger("cache")


class RedisGeoCache(GeoCache):
    """GeoCache backed by a shared `redis.asyncio.Redis` client.

    The Redis client is injected and owned by the application; this class never
    closes it. Keys are the raw IP strings, values the JSON-encoded records.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float = 2.0) -> "RedisGeoCache":
        """Build a cache around a new pooled Redis client for `url`."""
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            health_check_interval=30,
        )
        # Drop credentials from the logged URL.
        logger.info(f"Created Redis client url={url.rsplit('@', 1)[-1]}")
        return cls(client)

    @property
    def client(self) -> Redis:
        return self._client

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis GET failed for key={key}: {exc!r}") from exc
        except UnicodeDecodeError as exc:
            # Raised by the client itself when decode_responses=True meets non-UTF-8 bytes.
            raise CacheUnavailableError(f"Redis GET returned a non UTF-8 value for key={key}: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis SET failed for key={key}: {exc!r}") from exc

    async def expire(self, key: str, seconds: int) -> None:
        try:
            applied = await self._client.expire(key, seconds)
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis EXPIRE failed for key={key}: {exc!r}") from exc
        if not applied:
            raise CacheUnavailableError(f"Redis EXPIRE found no key={key}")

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis DEL failed for key={key}: {exc!r}") from exc

    async def store(self, key: str, value: str, ttl_seconds: int) -> None:
        """Atomic SET with EX, so the entry can never exist without a TTL."""
        if ttl_seconds <= 0:
            raise CacheUnavailableError(f"Refusing to cache key={key} with non-positive ttl={ttl_seconds}")
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis SET EX failed for key={key}: {exc!r}") from exc
        logger.debug(f"Cached geolocation record key={key} ttl_seconds={ttl_seconds}")

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise CacheUnavailableError(f"Redis PING failed: {exc!r}") from exc

    async def close(self) -> None:
        await self._client.aclose()
