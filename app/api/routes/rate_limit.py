from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Header, Query, Request, Response, status

from app.adapters.rate_limit import RateLimiterRegistry
from app.core.auth import verify_admin_key
from app.core.dependencies import get_rate_limiters
from app.core.rate_limit import ensure_allowed, resolve_identifier
from app.schemas.rate_limit import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    RateLimitStatusResponse,
)

router = APIRouter(tags=["Rate Limit"])

Limiters = Annotated[RateLimiterRegistry, Depends(get_rate_limiters)]
UserIdHeader = Annotated[str | None, Header(alias="X-User-ID")]


def _identifier(request: Request, explicit: str | None, x_user_id: str | None) -> str:
    return explicit or resolve_identifier(request, x_user_id)


@router.post("/rate-limit/{policy}/check", response_model=RateLimitCheckResponse)
def check_rate_limit(
    policy: str,
    request: Request,
    limiters: Limiters,
    body: Annotated[RateLimitCheckRequest | None, Body()] = None,
    x_user_id: UserIdHeader = None,
) -> RateLimitCheckResponse:
    """Consume one attempt of a policy before a sensitive operation.

    Called by the front end before sign-in, sign-up or password reset. Answers
    429 with Retry-After once the identifier's budget is exhausted; blocked
    attempts are not counted.

    Raises:
        NotFoundAppError: 404 for an unknown policy.
        RateLimitAppError: 429 when the budget is exhausted.
    """
    limiter = limiters.get(policy)
    identifier = _identifier(request, body.identifier if body else None, x_user_id)
    result = ensure_allowed(limiter.check_limit(identifier), policy=policy, identifier=identifier)
    return RateLimitCheckResponse(**asdict(result))


@router.get("/rate-limit/{policy}/status", response_model=RateLimitStatusResponse)
def rate_limit_status(
    policy: str,
    request: Request,
    limiters: Limiters,
    identifier: Annotated[str | None, Query(max_length=256)] = None,
    x_user_id: UserIdHeader = None,
) -> RateLimitStatusResponse:
    """Report the remaining budget without consuming any."""
    limiter = limiters.get(policy)
    resolved = _identifier(request, identifier, x_user_id)
    current = limiter.get_status(resolved)
    return RateLimitStatusResponse(
        policy=policy,
        identifier=resolved,
        remaining=current.remaining,
        reset_time=current.reset_time,
    )


@router.delete(
    "/rate-limit/{policy}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(verify_admin_key)],
)
def reset_rate_limit(
    policy: str,
    request: Request,
    limiters: Limiters,
    identifier: Annotated[str | None, Query(max_length=256)] = None,
    x_user_id: UserIdHeader = None,
) -> Response:
    """Restore the full quota, e.g. after a successful sign-in.

    Operator-only: requires X-Admin-Key, since a public reset would let a
    client clear its own throttling.

    Raises:
        AuthenticationAppError: 403 without a valid admin key.
    """
    limiters.get(policy).reset(_identifier(request, identifier, x_user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
