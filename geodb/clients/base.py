from abc import ABC, abstractmethod

from geodb.models.record import GeoLocationRecord


class BaseGeoLocationClient(ABC):
    """Abstract base for remote IP geolocation clients.

    Concrete implementations fetch one IP from the remote service and map the
    response into a `GeoLocationRecord`, raising `RemoteUnavailableError` or
    `RemoteDecodeError` on failure.
    """

    @abstractmethod
    async def lookup_ip(self, ip: str) -> GeoLocationRecord:
        """Look up geolocation information for an explicit IP address."""
        raise NotImplementedError
