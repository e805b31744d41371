import asyncio
from abc import ABC, abstractmethod

from geodb.errors import CacheUnavailableError
from geodb.logger import get_logger

logger = get_logger("cache")

HEALTH_CHECK_KEY = "geodb:health"


class GeoCache(ABC):
    """Abstract string-keyed key/value store used by the resolver.

    Implementations must raise `CacheUnavailableError` for every backend failure
    so callers can isolate cache outages from the lookup result.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store `value` under `key` without an expiration."""
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        """Set the time-to-live of an existing key."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the key if present."""
        raise NotImplementedError

    async def ping(self) -> bool:
        """Check that the backend answers; raises CacheUnavailableError otherwise."""
        await self.get(HEALTH_CHECK_KEY)
        return True

    async def store(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store `value` under `key` so that it expires after `ttl_seconds`.

        The default runs SET then EXPIRE. If EXPIRE fails the key is deleted,
        so an entry is never left behind with an unbounded lifetime.
        Backends with an atomic set-with-TTL should override this.
        """
        if ttl_seconds <= 0:
            raise CacheUnavailableError(f"Refusing to cache key={key} with non-positive ttl={ttl_seconds}")

        await self.set(key, value)
        try:
            await self.expire(key, ttl_seconds)
        except (CacheUnavailableError, asyncio.CancelledError):
            try:
                await self.delete(key)
            except CacheUnavailableError as exc:
                logger.error(f"Failed to remove cache entry without expiration key={key} error={exc}")
            raise
