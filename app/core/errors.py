"""Application-level exception types.

Domain errors shared by services and adapters so the HTTP layer can map them
to consistent status codes and JSON bodies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    policy: str
    limit: int
    remaining: int
    reset_time: int
    retry_after: int
    provider: str
    model: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when a caller lacks the credentials an operation requires."""


class NotFoundAppError(AppError):
    """Raised when a named resource (e.g. a rate limit policy) does not exist."""


class LLMAppError(AppError):
    """Raised when LLM provider/client operations fail."""


class LLMUnavailableAppError(LLMAppError):
    """Raised when no LLM provider is configured."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a caller has exhausted a rate limit policy.

    Attributes:
        reset_time: Epoch milliseconds when the window resets.
        remaining: Remaining budget (always 0 when raised by the limiter).
        retry_after_seconds: Whole seconds until the window resets.
    """

    reset_time: int = 0
    remaining: int = 0
    retry_after_seconds: int = 0
