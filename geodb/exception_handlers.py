from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from geodb.errors import ConfigurationError
from geodb.logger import logger


def _get_ip_from_request(request: Request) -> str | None:
    """Best-effort extraction of the looked-up IP from the incoming request.

    Currently this looks at the `ip` query parameter used by /v1/ip/lookup.
    For other endpoints this will typically be None.
    """
    return request.query_params.get("ip")


def _build_validation_error_payload(exc: ValidationError) -> dict:
    """Reduce validation errors to a stable `code` / `message` pair.

    Internal validation details are not exposed to clients.
    """
    invalid_ip = any(error["loc"] and error["loc"][-1] == "ip" for error in exc.errors())
    if invalid_ip:
        return {
            "code": "invalid_ip",
            "message": "The supplied IP address is not a valid IPv4 or IPv6 address.",
        }
    return {"code": "invalid_request", "message": "Invalid request parameters"}


async def pydantic_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors raised during dependency resolution."""
    ip = _get_ip_from_request(request)
    logger.info(
        "Pydantic validation error during request handling "
        f"path={request.url.path} method={request.method} ip={ip} errors={exc.errors()}"
    )
    payload = _build_validation_error_payload(exc)
    payload["ip"] = ip
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


async def configuration_exception_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """A misconfigured service cannot answer lookups; report it as unavailable."""
    logger.error(f"Service misconfigured path={request.url.path} method={request.method} error={exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "code": "configuration_error",
            "message": "The geolocation service is not configured.",
            "ip": _get_ip_from_request(request),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    ip = _get_ip_from_request(request)
    logger.exception(
        f"Unhandled exception while processing request: {repr(exc)} path={request.url.path} method={request.method} ip={ip}"
    )
    content: dict[str, Any] = {
        "code": "internal_error",
        "message": "An unexpected error occurred while processing the request.",
        "ip": ip,
    }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
