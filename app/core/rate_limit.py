"""Rate limiting glue between the limiter adapters and the HTTP layer.

Design goals:
- Limiters are built once by the app factory and read from app.state, never
  from module globals.
- Identifiers default to the caller's X-User-ID header, then the client IP.
- A blocked decision becomes a RateLimitAppError; the exception handler turns
  it into HTTP 429 with Retry-After.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, Request

from app.adapters.rate_limit import (
    AbstractRateLimiter,
    RateLimitResult,
    format_retry_after,
    get_user_identifier,
)
from app.adapters.rate_limit.policies import API_POLICY, AUTH_POLICY, PASSWORD_RESET_POLICY
from app.core.config import settings
from app.core.dependencies import get_server_limiter
from app.core.errors import RateLimitAppError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)

_BLOCKED_SUBJECTS = {
    AUTH_POLICY: "sign-in attempts",
    PASSWORD_RESET_POLICY: "password reset attempts",
    API_POLICY: "requests",
}


def resolve_identifier(request: Request, x_user_id: str | None) -> str:
    """Pick the rate limit identifier for the current request."""

    client_host = request.client.host if request.client else None
    return get_user_identifier(x_user_id, client_host)


def ensure_allowed(result: RateLimitResult, *, policy: str, identifier: str) -> RateLimitResult:
    """Log the decision and raise if the request was blocked.

    Args:
        result: Decision returned by a limiter.
        policy: Policy name, used for the message and logs.
        identifier: Identifier the decision applies to (hashed before logging).

    Returns:
        The same result when allowed.

    Raises:
        RateLimitAppError: When result.allowed is False.
    """

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "policy": policy,
                "key_hash": hash_for_log(identifier),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return result

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.blocked",
        extra={
            "policy": policy,
            "key_hash": hash_for_log(identifier),
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )

    subject = _BLOCKED_SUBJECTS.get(policy, "attempts")
    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=f"Too many {subject}. Please try again in {format_retry_after(retry_after)}.",
        details={"policy": policy, "limit": result.limit, "retry_after": retry_after},
        reset_time=result.reset_time,
        remaining=result.remaining,
        retry_after_seconds=retry_after,
    )


async def enforce_api_rate_limit(
    request: Request,
    limiter: Annotated[AbstractRateLimiter, Depends(get_server_limiter)],
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> None:
    """FastAPI dependency gating a route with the in-process api policy.

    Raises:
        RateLimitAppError: 429 when the caller's budget is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return

    identifier = resolve_identifier(request, x_user_id)
    ensure_allowed(limiter.check_limit(identifier), policy=API_POLICY, identifier=identifier)
