"""Pydantic schemas for the rate limit endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitCheckRequest(BaseModel):
    """Optional explicit identifier; otherwise the caller's user id or IP is used."""

    identifier: str | None = Field(
        None,
        description="Identifier the policy applies to (user id, email, IP or operation name).",
        max_length=256,
    )


class RateLimitCheckResponse(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset_time: int = Field(..., description="Epoch milliseconds when the window resets.")
    retry_after_seconds: int | None = None


class RateLimitStatusResponse(BaseModel):
    policy: str
    identifier: str
    remaining: int
    reset_time: int = Field(..., description="Epoch milliseconds when the window resets.")
