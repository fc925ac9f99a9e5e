"""In-memory sliding-window rate limiter with background eviction.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and state is lost on restart.
- Thread-safe: uses a lock around shared state.
- Expired entries are dropped by a periodic sweep so memory stays bounded even
  for identifiers that never come back.
"""

from __future__ import annotations

import logging
import threading

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStatus,
    evaluate_window,
    status_of,
)
from app.core.clock import Clock, now_ms

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping counters in a process-local dictionary.

    Important:
        Call start_sweeper() to enable periodic eviction and stop_sweeper() on
        shutdown. Without the sweeper, expired entries are only replaced when
        their identifier is checked again.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Clock = now_ms,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            config: Window size, request budget and key prefix.
            clock: Time source returning epoch milliseconds.
            sweep_interval_seconds: Delay between eviction passes.

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self.config = config
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def check_limit(self, identifier: str) -> RateLimitResult:
        key = self.build_key(identifier)
        now = self._clock()

        with self._lock:
            result, updated = evaluate_window(self._entries.get(key), now=now, config=self.config)
            if updated is not None:
                self._entries[key] = updated
            return result

    def get_status(self, identifier: str) -> RateLimitStatus:
        key = self.build_key(identifier)
        now = self._clock()
        with self._lock:
            return status_of(self._entries.get(key), now=now, config=self.config)

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._entries.pop(self.build_key(identifier), None)

    def sweep_expired(self) -> int:
        """Delete every entry whose window has ended.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(
                "rate_limit.swept",
                extra={"key_prefix": self.config.key_prefix, "evicted": len(expired)},
            )
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the background eviction thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name=f"rate-limit-sweeper:{self.config.key_prefix}",
            daemon=True,
        )
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = 1.0) -> None:
        """Signal the eviction thread to exit and wait for it."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.sweep_expired()
            except Exception:  # noqa: BLE001 - the sweep must never kill the thread
                logger.exception("rate_limit.sweep_failed", extra={"key_prefix": self.config.key_prefix})
