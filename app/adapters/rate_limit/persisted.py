"""Rate limiter persisted in the Local Store.

Entries are stored as JSON ``{"count": n, "resetTime": ms}`` under
``"<key_prefix>:<identifier>"``. A corrupt entry counts as absent.

Writers are serialized with the store's compare-and-set: a check that loses
the race re-reads and re-decides. After ``max_cas_attempts`` losses the
limiter falls back to a plain write (last write wins).
"""

from __future__ import annotations

import json
import logging

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStatus,
    evaluate_window,
    status_of,
)
from app.adapters.storage.base import AbstractKeyValueStore
from app.core.clock import Clock, now_ms

logger = logging.getLogger(__name__)


def decode_entry(raw: str | None) -> RateLimitEntry | None:
    """Parse a stored entry, returning None for missing or malformed data."""

    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None

    count = payload.get("count")
    reset_time = payload.get("resetTime")
    # bool is an int subclass; reject it explicitly
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        return None
    if not isinstance(reset_time, (int, float)) or isinstance(reset_time, bool):
        return None
    return RateLimitEntry(count=count, reset_time=int(reset_time))


def encode_entry(entry: RateLimitEntry) -> str:
    return json.dumps({"count": entry.count, "resetTime": entry.reset_time})


class PersistedRateLimiter(AbstractRateLimiter):
    """Sliding-window limiter whose counters live in a key-value store."""

    def __init__(
        self,
        config: RateLimitConfig,
        store: AbstractKeyValueStore,
        *,
        clock: Clock = now_ms,
        max_cas_attempts: int = 5,
    ) -> None:
        if max_cas_attempts < 1:
            raise ValueError("max_cas_attempts must be >= 1")

        self.config = config
        self._store = store
        self._clock = clock
        self._max_cas_attempts = max_cas_attempts

    def check_limit(self, identifier: str) -> RateLimitResult:
        key = self.build_key(identifier)

        for _ in range(self._max_cas_attempts):
            raw = self._store.get(key)
            result, updated = evaluate_window(decode_entry(raw), now=self._clock(), config=self.config)
            if updated is None:
                return result
            if self._store.compare_and_set(key, raw, encode_entry(updated)):
                return result

        logger.warning(
            "rate_limit.cas_exhausted",
            extra={"key_prefix": self.config.key_prefix, "attempts": self._max_cas_attempts},
        )
        result, updated = evaluate_window(
            decode_entry(self._store.get(key)), now=self._clock(), config=self.config
        )
        if updated is not None:
            self._store.set(key, encode_entry(updated))
        return result

    def get_status(self, identifier: str) -> RateLimitStatus:
        entry = decode_entry(self._store.get(self.build_key(identifier)))
        return status_of(entry, now=self._clock(), config=self.config)

    def reset(self, identifier: str) -> None:
        self._store.remove(self.build_key(identifier))
