from pydantic import BaseModel

from geodb.models.record import GeoLocationRecord


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str
    cache: str


class IPLookupResponse(BaseModel):
    """Response model for IP geolocation lookup."""

    ip: str
    country_code: str | None = None
    country_name: str | None = None
    city: str | None = None
    postal_code: str | None = None
    state: str | None = None
    latitude: float | str | None = None
    longitude: float | str | None = None

    @classmethod
    def from_record(cls, ip: str, record: GeoLocationRecord) -> "IPLookupResponse":
        # The service echoes the address it resolved; fall back to the requested one.
        return cls(
            ip=record.ip or ip,
            country_code=record.country_code,
            country_name=record.country_name,
            city=record.city,
            postal_code=record.postal_code,
            state=record.state,
            latitude=record.latitude,
            longitude=record.longitude,
        )
