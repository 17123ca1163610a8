"""HTTP rendering of the service error taxonomy.

Every error leaves the API in one envelope::

    {"error": true, "error_code": "...", "message": "...",
     "details": {...}, "timestamp": "..."}
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Final

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.services.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    SafetyHubError,
    TransportError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES: Final[dict[type[SafetyHubError], int]] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    TransportError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

_HTTP_ERROR_CODES: Final[dict[int, str]] = {
    401: "UNAUTHENTICATED",
    403: "ACCESS_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def status_code_for(exc: SafetyHubError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _envelope(status_code: int, error_code: str, message: str, details: Any) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "error_code": error_code,
            "message": message,
            "details": details,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def safetyhub_error_handler(request: Request, exc: SafetyHubError) -> ORJSONResponse:
    status_code = status_code_for(exc)
    log = logger.bind(
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code,
        error_type=type(exc).__name__,
    )
    if status_code >= 500:
        log.error("api.service_error", error=exc.message)
    else:
        log.info("api.request_rejected", error=exc.message)
    return _envelope(status_code, exc.error_code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body") or "__root__",
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    logger.info("api.request_invalid", path=request.url.path, errors=errors)
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ValidationError.error_code,
        "Input validation failed",
        {"errors": errors},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    return _envelope(
        exc.status_code,
        _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        str(exc.detail),
        {},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SafetyHubError, safetyhub_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_error_handler)  # type: ignore[arg-type]
