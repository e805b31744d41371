from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, status
from pydantic import ValidationError

from geodb.cache.base import GeoCache
from geodb.cache.redis_cache import RedisGeoCache
from geodb.clients.geolocation_db_client import GeolocationDbClient
from geodb.config import Settings, get_settings
from geodb.errors import (
    CacheUnavailableError,
    ConfigurationError,
    InvalidIpError,
    RemoteDecodeError,
    RemoteUnavailableError,
)
from geodb.exception_handlers import (
    configuration_exception_handler,
    pydantic_validation_exception_handler,
    unhandled_exception_handler,
)
from geodb.logger import logger
from geodb.models.record import GeoLocationRecord
from geodb.models.request_models import IPLookupRequest
from geodb.models.response_models import HealthResponse, IPLookupResponse
from geodb.resolver import GeoResolver


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared HTTP client, the optional Redis cache and the resolver.

    A missing API key raises ConfigurationError here, so the service refuses to
    start instead of failing on the first lookup.
    """
    settings: Settings = get_settings()
    config = settings.to_geolocation_config()

    http_client = httpx.AsyncClient(timeout=config.request_timeout_seconds)
    cache = RedisGeoCache.from_url(settings.REDIS_URL, config.cache_timeout_seconds) if config.cache_enabled else None
    client = GeolocationDbClient(
        api_key=config.api_key,
        base_url=settings.BASE_URL,
        timeout_seconds=config.request_timeout_seconds,
        http_client=http_client,
    )

    app.state.cache = cache
    app.state.resolver = GeoResolver(config, client, cache)
    logger.info(
        "Started GeoLocation DB Service "
        f"cache_enabled={config.cache_enabled} cache_expiration_seconds={config.cache_expiration_seconds}"
    )
    try:
        yield
    finally:
        await http_client.aclose()
        if cache is not None:
            await cache.close()
        logger.info("Stopped GeoLocation DB Service")


app = FastAPI(
    title="GeoLocation DB Service",
    version="0.1.0",
    description="IP geolocation lookups backed by geolocation-db.com with an optional Redis cache.",
    lifespan=lifespan,
)


def get_resolver(request: Request) -> GeoResolver:
    """Dependency to provide the GeoResolver built at startup."""
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise ConfigurationError("GeoResolver has not been initialised; was the application started?")
    return resolver


def get_cache(request: Request) -> GeoCache | None:
    """Dependency to provide the cache backend, or None when caching is disabled."""
    return getattr(request.app.state, "cache", None)


def _client_ip(request: Request) -> str | None:
    # Take the originating client from a proxy chain when present.
    x_forwarded_for = request.headers.get("x-forwarded-for")
    if x_forwarded_for:
        first = x_forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


# Register global exception handlers using the shared handlers module.
app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(ConfigurationError, configuration_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health(cache: Annotated[GeoCache | None, Depends(get_cache)]) -> HealthResponse:
    """Basic health check endpoint; reports whether the cache backend answers."""
    if cache is None:
        return HealthResponse(status="ok", cache="disabled")
    try:
        await cache.ping()
    except CacheUnavailableError as exc:
        logger.warning(f"Cache health check failed error={exc}")
        return HealthResponse(status="degraded", cache="unavailable")
    return HealthResponse(status="ok", cache="ok")


@app.get(
    "/v1/ip/lookup",
    response_model=IPLookupResponse,
    status_code=status.HTTP_200_OK,
    tags=["ip"],
    summary="Look up geolocation information for an IP address.",
)
async def ip_lookup(
    request: Request,
    query: Annotated[IPLookupRequest, Depends()],
    resolver: Annotated[GeoResolver, Depends(get_resolver)],
) -> IPLookupResponse:
    """Look up geolocation information for either a specific IP or the caller's IP.

    - If `query.ip` is provided, that IP is used.
    - Otherwise, the first `X-Forwarded-For` entry or the connection's peer address is used.
    """
    ip = query.ip or _client_ip(request)
    logger.info(
        "Performing IP lookup "
        f"path={request.url.path} method={request.method} ip={ip} explicit={query.ip is not None}"
    )

    try:
        if not ip:
            raise InvalidIpError("Unable to determine the client IP address.")
        record: GeoLocationRecord = await resolver.resolve(ip)
    except InvalidIpError as exc:
        logger.error(f"Invalid IP error during lookup path={request.url.path} method={request.method} ip={ip} error={exc}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_ip", "message": str(exc), "ip": ip},
        ) from exc
    except RemoteDecodeError as exc:
        logger.error(
            "Undecodable response from geolocation-db.com "
            f"path={request.url.path} method={request.method} ip={ip} error={exc}"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "upstream_decode_error", "message": str(exc), "ip": ip},
        ) from exc
    except RemoteUnavailableError as exc:
        logger.exception(
            "Upstream geolocation error during lookup "
            f"path={request.url.path} method={request.method} ip={ip} error={exc}"
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "upstream_error", "message": str(exc), "ip": ip},
        ) from exc

    if record.is_empty:
        logger.error(f"No geolocation information found for IP path={request.url.path} ip={ip}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "ip_not_found",
                "message": "No geolocation information found for this IP address.",
                "ip": ip,
            },
        )

    return IPLookupResponse.from_record(ip, record)
