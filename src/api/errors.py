"""
Maps the domain error taxonomy onto HTTP responses.

Each ``DomainError`` subclass has exactly one status code.  Bodies always
use the ``{success, message}`` envelope; store and unexpected failures
return a generic message and keep the detail in the logs.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.errors import (
    AuthError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[DomainError], int] = {
    ValidationError: 400,
    InsufficientFundsError: 400,
    AuthError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    StoreUnavailableError: 503,
}


def status_code_for(exc: DomainError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def envelope_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_code_for(exc)
    if isinstance(exc, StoreUnavailableError):
        response = envelope_response(status_code, "Service temporarily unavailable, please retry")
        response.headers["Retry-After"] = "1"
        return response
    if status_code >= 500:
        logger.error("Unmapped domain error on %s %s: %s", request.method, request.url.path, exc)
        return envelope_response(500, "Internal server error")
    return envelope_response(status_code, exc.message)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    missing = [
        ".".join(str(part) for part in err["loc"] if part != "body")
        for err in exc.errors()
        if err.get("type") == "missing"
    ]
    if missing:
        return envelope_response(400, "Required fields not provided", missing_fields=missing)
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return envelope_response(400, message)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return envelope_response(exc.status_code, str(exc.detail))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return envelope_response(429, f"Rate limit exceeded: {exc.detail}")


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return envelope_response(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
