from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from geodb.errors import ConfigurationError

DEFAULT_BASE_URL = "https://geolocation-db.com/json"
# One day
DEFAULT_CACHE_EXPIRATION_SECONDS = 86400


class GeoLocationConfig(BaseModel):
    """Immutable configuration handed to a GeoResolver at construction time.

    A missing or out-of-range value raises `ConfigurationError` rather than a raw
    pydantic `ValidationError`, both from the constructor and from `model_validate`,
    so misconfiguration surfaces before any lookup.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(min_length=1)
    cache_enabled: bool = False
    cache_expiration_seconds: int = Field(default=DEFAULT_CACHE_EXPIRATION_SECONDS, ge=1)
    request_timeout_seconds: float = Field(default=5.0, gt=0)
    cache_timeout_seconds: float = Field(default=2.0, gt=0)

    @field_validator("api_key", mode="before")
    @classmethod
    def _strip_api_key(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    def __init__(self, **values: Any) -> None:
        try:
            super().__init__(**values)
        except ValidationError as exc:
            raise _configuration_error(exc) from exc

    @classmethod
    def model_validate(cls, obj: Any, **kwargs: Any) -> "GeoLocationConfig":
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as exc:
            raise _configuration_error(exc) from exc


def _configuration_error(exc: ValidationError) -> ConfigurationError:
    fields = ", ".join(str(error["loc"][-1]) for error in exc.errors() if error["loc"])
    return ConfigurationError(f"Invalid GeoLocation DB configuration ({fields}): {exc}")


class Settings(BaseSettings):
    """Application settings loaded from the environment (or a `.env` file).

    Every variable is prefixed with `GEODB_`, e.g. `GEODB_API_KEY`,
    `GEODB_CACHE_ENABLED`, `GEODB_REDIS_URL`.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEODB_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    API_KEY: str | None = None
    CACHE_ENABLED: bool = False
    CACHE_EXPIRATION_SECONDS: int = DEFAULT_CACHE_EXPIRATION_SECONDS
    REQUEST_TIMEOUT_SECONDS: float = 5.0
    CACHE_TIMEOUT_SECONDS: float = 2.0
    REDIS_URL: str = "redis://localhost:6379/0"
    BASE_URL: str = DEFAULT_BASE_URL

    def to_geolocation_config(self) -> GeoLocationConfig:
        """Build the resolver configuration, failing loudly if the API key is absent."""
        if not self.API_KEY or not self.API_KEY.strip():
            raise ConfigurationError("You must set GEODB_API_KEY to use the GeoLocation DB service.")
        return GeoLocationConfig(
            api_key=self.API_KEY,
            cache_enabled=self.CACHE_ENABLED,
            cache_expiration_seconds=self.CACHE_EXPIRATION_SECONDS,
            request_timeout_seconds=self.REQUEST_TIMEOUT_SECONDS,
            cache_timeout_seconds=self.CACHE_TIMEOUT_SECONDS,
        )


def get_settings() -> Settings:
    """Dependency to provide freshly loaded Settings."""
    return Settings()
