"""FastAPI dependency providers.

Services are constructed once in the app factory and stored on app.state;
routes receive them through these providers so tests can swap them with
app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Request

from app.adapters.rate_limit import AbstractRateLimiter, RateLimiterRegistry
from app.services.assistant_service import AssistantChatService
from app.services.memory_service import AssistantMemoryService


def get_rate_limiters(request: Request) -> RateLimiterRegistry:
    return request.app.state.rate_limiters


def get_server_limiter(request: Request) -> AbstractRateLimiter:
    return request.app.state.server_limiter


def get_memory_service(request: Request) -> AssistantMemoryService:
    return request.app.state.memory_service


def get_chat_service(request: Request) -> AssistantChatService:
    return request.app.state.chat_service
