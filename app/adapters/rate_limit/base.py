"""Rate limiter interfaces and shared window arithmetic.

Callers depend on AbstractRateLimiter so a policy can be backed either by the
persisted Local Store or by per-process memory without changing call sites.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed configuration of one limiter instance.

    Attributes:
        max_requests: Requests admitted per window.
        window_ms: Window length in milliseconds.
        key_prefix: Namespace so several policies can share one store.

    Raises:
        ValueError: If max_requests or window_ms are not positive.
    """

    max_requests: int
    window_ms: int
    key_prefix: str = "rate_limit"

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateLimitEntry:
    """Counter for one (key_prefix, identifier) pair."""

    count: int
    reset_time: int

    def is_expired(self, now: int) -> bool:
        return now >= self.reset_time


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a check_limit call.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_time: Epoch milliseconds when the current window ends.
        retry_after_seconds: Whole seconds until reset when blocked, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of an identifier's budget."""

    remaining: int
    reset_time: int


def evaluate_window(
    entry: RateLimitEntry | None,
    *,
    now: int,
    config: RateLimitConfig,
) -> tuple[RateLimitResult, RateLimitEntry | None]:
    """Decide whether one more request fits in the window.

    Args:
        entry: Stored entry, or None if absent/corrupt.
        now: Current epoch milliseconds.
        config: Limiter configuration.

    Returns:
        Tuple of (result, entry_to_store). entry_to_store is None when the
        request was blocked and nothing must be written.
    """

    if entry is None or entry.is_expired(now):
        entry = RateLimitEntry(count=0, reset_time=now + config.window_ms)

    if entry.count >= config.max_requests:
        retry_after = max(0, math.ceil((entry.reset_time - now) / 1000))
        blocked = RateLimitResult(
            allowed=False,
            limit=config.max_requests,
            remaining=0,
            reset_time=entry.reset_time,
            retry_after_seconds=retry_after,
        )
        return blocked, None

    updated = RateLimitEntry(count=entry.count + 1, reset_time=entry.reset_time)
    allowed = RateLimitResult(
        allowed=True,
        limit=config.max_requests,
        remaining=config.max_requests - updated.count,
        reset_time=updated.reset_time,
    )
    return allowed, updated


def status_of(entry: RateLimitEntry | None, *, now: int, config: RateLimitConfig) -> RateLimitStatus:
    """Compute the read-only status for an entry without consuming budget."""

    if entry is None or entry.is_expired(now):
        return RateLimitStatus(remaining=config.max_requests, reset_time=now + config.window_ms)
    return RateLimitStatus(
        remaining=max(0, config.max_requests - entry.count),
        reset_time=entry.reset_time,
    )


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    config: RateLimitConfig

    def build_key(self, identifier: str) -> str:
        """Namespace an identifier with this limiter's key prefix."""
        return f"{self.config.key_prefix}:{identifier}"

    @abstractmethod
    def check_limit(self, identifier: str) -> RateLimitResult:
        """Consume one unit of budget for identifier if any is left.

        Args:
            identifier: User id, IP address or literal operation name.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def get_status(self, identifier: str) -> RateLimitStatus:
        """Return the remaining budget without consuming any."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> None:
        """Forget identifier's counter, restoring the full quota."""
        raise NotImplementedError
