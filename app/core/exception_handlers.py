"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to HTTP status codes via _STATUS_BY_ERROR
- RateLimitAppError additionally sets Retry-After / X-RateLimit-* headers
- Unexpected Exception becomes a generic 500 without implementation details
- Every body carries the request_id for tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    LLMAppError,
    LLMUnavailableAppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Most specific classes first
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (RateLimitAppError, 429),
    (AuthenticationAppError, 403),
    (NotFoundAppError, 404),
    (LLMUnavailableAppError, 503),
    (LLMAppError, 502),
    (ValidationAppError, 400),
)


def status_code_for(exc: AppError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _rate_limit_headers(exc: RateLimitAppError) -> dict[str, str]:
    if not settings.app.rate_limit_include_headers:
        return {}

    headers = {
        "Retry-After": str(exc.retry_after_seconds),
        "X-RateLimit-Remaining": str(exc.remaining),
        "X-RateLimit-Reset": str(exc.reset_time),
    }
    limit = (exc.details or {}).get("limit")
    if limit is not None:
        headers["X-RateLimit-Limit"] = str(limit)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as {"error": {code, message, request_id, details?}}.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitAppError) else None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; logs the detail, returns a generic body."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register the AppError handler and the generic fallback on app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
