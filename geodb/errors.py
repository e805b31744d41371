class AppError(Exception):
    """Base application error for the GeoLocation DB service."""


class ConfigurationError(AppError):
    """Raised when the service configuration is missing or invalid (e.g. no API key)."""


class GeoLocationError(AppError):
    """Base error for IP geolocation lookup failures."""


class InvalidIpError(GeoLocationError):
    """Raised when the supplied IP address is blank or syntactically invalid."""


class RemoteUnavailableError(GeoLocationError):
    """Raised on network failure or a non-success HTTP status from geolocation-db.com."""


class RemoteDecodeError(GeoLocationError):
    """Raised when the remote response body is not valid JSON or does not match the record shape."""


class CacheUnavailableError(GeoLocationError):
    """Raised when a cache get/set/expire/delete fails or a record cannot be encoded for the cache."""
