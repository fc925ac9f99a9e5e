"""Named rate limit policies and small helpers around them.

Policies are plain parameterizations of a limiter. They are built explicitly
and handed to callers through RateLimiterRegistry instead of living as module
globals.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig
from app.adapters.rate_limit.persisted import PersistedRateLimiter
from app.adapters.storage.base import AbstractKeyValueStore
from app.core.clock import Clock, now_ms
from app.core.errors import NotFoundAppError

AUTH_POLICY = "auth"
API_POLICY = "api"
PASSWORD_RESET_POLICY = "password_reset"

# Sign-in/sign-up: 5 attempts per 15 minutes
AUTH_LIMIT = RateLimitConfig(max_requests=5, window_ms=15 * 60 * 1000, key_prefix="auth_limit")

# Generic API calls: 60 requests per minute
API_LIMIT = RateLimitConfig(max_requests=60, window_ms=60 * 1000, key_prefix="api_limit")

# Password reset: 3 attempts per hour
PASSWORD_RESET_LIMIT = RateLimitConfig(
    max_requests=3, window_ms=60 * 60 * 1000, key_prefix="pwd_reset_limit"
)

DEFAULT_POLICIES: dict[str, RateLimitConfig] = {
    AUTH_POLICY: AUTH_LIMIT,
    API_POLICY: API_LIMIT,
    PASSWORD_RESET_POLICY: PASSWORD_RESET_LIMIT,
}


@dataclass
class RateLimiterRegistry:
    """Lookup of limiter instances by policy name."""

    limiters: dict[str, AbstractRateLimiter] = field(default_factory=dict)

    def __contains__(self, policy: object) -> bool:
        return policy in self.limiters

    def names(self) -> list[str]:
        return sorted(self.limiters)

    def register(self, policy: str, limiter: AbstractRateLimiter) -> None:
        self.limiters[policy] = limiter

    def get(self, policy: str) -> AbstractRateLimiter:
        """Return the limiter for policy.

        Raises:
            NotFoundAppError: If no limiter is registered under that name.
        """
        try:
            return self.limiters[policy]
        except KeyError:
            raise NotFoundAppError(
                code="rate_limit_policy_not_found",
                message=f"Unknown rate limit policy: '{policy}'",
                details={"policy": policy, "hint": f"Known policies: {', '.join(self.names())}"},
            ) from None


def build_persisted_registry(
    store: AbstractKeyValueStore,
    *,
    policies: dict[str, RateLimitConfig] | None = None,
    clock: Clock = now_ms,
    max_cas_attempts: int = 5,
) -> RateLimiterRegistry:
    """Build one store-backed limiter per policy, all sharing the same store."""

    registry = RateLimiterRegistry()
    for name, config in (policies or DEFAULT_POLICIES).items():
        registry.register(
            name,
            PersistedRateLimiter(config, store, clock=clock, max_cas_attempts=max_cas_attempts),
        )
    return registry


def get_user_identifier(user_id: str | None = None, ip_address: str | None = None) -> str:
    """Pick the identifier a policy applies to: user id, then IP, then anonymous."""

    return user_id or ip_address or "anonymous"


def format_retry_after(seconds: int) -> str:
    """Format a retry-after duration for end users.

    Examples:
        >>> format_retry_after(1)
        '1 second'
        >>> format_retry_after(60)
        '1 minute'
        >>> format_retry_after(90)
        '2 minutes'
    """

    if seconds < 60:
        return f"{seconds} second{'' if seconds == 1 else 's'}"
    minutes = math.ceil(seconds / 60)
    return f"{minutes} minute{'' if minutes == 1 else 's'}"
