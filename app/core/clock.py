"""Wall-clock helpers shared by the rate limiter and the memory service.

Every component takes a ``clock`` callable returning epoch milliseconds so
tests can substitute a deterministic time source.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current UNIX time in whole milliseconds."""

    return int(time.time() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string."""

    return (
        datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
