import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from geodb.errors import CacheUnavailableError, RemoteDecodeError

GEO_FIELDS = ("country_code", "country_name", "city", "postal_code", "state", "latitude", "longitude")


class GeoLocationRecord(BaseModel):
    """One geolocation answer for one IP, as returned by geolocation-db.com.

    The canonical shape is the 8-field schema:

        {
            "country_code": "US",
            "country_name": "United States",
            "city": "Minneapolis",
            "postal": "55455",
            "latitude": 44.9733,
            "longitude": -93.2323,
            "IPv4": "50.81.224.152",
            "state": "Minnesota"
        }

    The legacy 5-field schema (no city/postal/state, coordinates as strings) is
    the same model with the richer fields left as None. The same wire keys are
    used for the cache value, so a cached record decodes exactly like a remote one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    country_code: str | None = None
    country_name: str | None = None
    city: str | None = None
    postal_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("postal", "postal_code"),
        serialization_alias="postal",
    )
    state: str | None = None
    latitude: float | str | None = None
    longitude: float | str | None = None
    ip: str | None = Field(
        default=None,
        validation_alias=AliasChoices("IPv4", "IPv6", "ip"),
        serialization_alias="IPv4",
    )

    @field_validator("country_code", "country_name", "city", "postal_code", "state", "ip", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        # Postal codes occasionally come back as bare JSON numbers.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> Any:
        """Allow latitude/longitude to be provided as numbers, numeric strings, or null.

        Numeric values are normalized into floats. Anything else that is a string
        (e.g. the service's "Not found" placeholder) is preserved as-is, and other
        types are left for field validation to reject.
        """
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        if not math.isfinite(number):
            return str(value)
        # For general GPS and mapping, 5-6 decimal places (e.g., 34.052235)
        return round(number, 6)

    @property
    def is_empty(self) -> bool:
        """True when the payload was valid JSON but carried no geolocation attributes."""
        return all(getattr(self, name) is None for name in GEO_FIELDS)

    @classmethod
    def from_remote_payload(cls, body: bytes | str) -> "GeoLocationRecord":
        """Decode a geolocation-db.com response body.

        The body is always interpreted as JSON, whatever the declared content type.
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError as exc:
            raise RemoteDecodeError(f"Failed to decode geolocation response: {exc.errors()[0]['msg']}") from exc

    @classmethod
    def from_cache_value(cls, value: bytes | str | None) -> "GeoLocationRecord | None":
        """Decode a cached value; undecodable values are reported as a miss (None)."""
        if value is None:
            return None
        try:
            return cls.model_validate_json(value)
        except ValidationError:
            return None

    def to_cache_value(self) -> str:
        """Encode the record as the JSON string stored in the cache."""
        try:
            return self.model_dump_json(by_alias=True)
        except ValueError as exc:
            raise CacheUnavailableError(f"Failed to encode geolocation record for ip={self.ip}: {exc}") from exc
