"""Rate limiting adapters.

Two variants share the same window arithmetic: a limiter persisted in the
Local Store (survives restarts when the store is file-backed) and a
per-process in-memory limiter with background eviction.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    RateLimitStatus,
)
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.adapters.rate_limit.persisted import PersistedRateLimiter
from app.adapters.rate_limit.policies import (
    RateLimiterRegistry,
    build_persisted_registry,
    format_retry_after,
    get_user_identifier,
)

__all__ = [
    "AbstractRateLimiter",
    "InMemoryRateLimiter",
    "PersistedRateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitStatus",
    "RateLimiterRegistry",
    "build_persisted_registry",
    "format_retry_after",
    "get_user_identifier",
]
