"""Application factory for the FastAPI app.

Builds the Local Store, the rate limiters and the assistant services once and
hangs them on app.state, then wires middleware, handlers and routers. The
in-memory limiter's sweeper runs for the lifetime of the app.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.llm import AbstractLLMClient, create_llm_client
from app.adapters.rate_limit import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiterRegistry,
    build_persisted_registry,
)
from app.adapters.rate_limit.policies import API_POLICY, AUTH_POLICY, PASSWORD_RESET_POLICY
from app.adapters.storage import AbstractKeyValueStore, InMemoryKeyValueStore, JsonFileKeyValueStore
from app.api.routes import assistant_router, health_router, rate_limit_router
from app.core.clock import Clock, now_ms
from app.core.config import AppSettings, settings
from app.core.errors import LLMUnavailableAppError
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.assistant_service import AssistantChatService
from app.services.memory_service import AssistantMemoryService

logger = logging.getLogger(__name__)

_UNSET = object()


def build_store(app_settings: AppSettings) -> AbstractKeyValueStore:
    """Create the Local Store selected by APP_STORE_BACKEND."""

    if app_settings.store_backend.lower() == "file":
        return JsonFileKeyValueStore(app_settings.store_path)
    return InMemoryKeyValueStore()


def build_policies(app_settings: AppSettings) -> dict[str, RateLimitConfig]:
    """Policy configurations with limits taken from settings."""

    return {
        AUTH_POLICY: RateLimitConfig(
            max_requests=app_settings.auth_limit_requests,
            window_ms=app_settings.auth_limit_window_seconds * 1000,
            key_prefix="auth_limit",
        ),
        API_POLICY: RateLimitConfig(
            max_requests=app_settings.api_limit_requests,
            window_ms=app_settings.api_limit_window_seconds * 1000,
            key_prefix="api_limit",
        ),
        PASSWORD_RESET_POLICY: RateLimitConfig(
            max_requests=app_settings.password_reset_limit_requests,
            window_ms=app_settings.password_reset_limit_window_seconds * 1000,
            key_prefix="pwd_reset_limit",
        ),
    }


def _default_llm_client() -> AbstractLLMClient | None:
    try:
        return create_llm_client()
    except LLMUnavailableAppError:
        logger.info("llm.not_configured")
        return None


def create_app(
    *,
    store: AbstractKeyValueStore | None = None,
    clock: Clock = now_ms,
    llm_client: AbstractLLMClient | None | object = _UNSET,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Local Store override; defaults to the configured backend.
        clock: Time source (epoch ms) shared by limiters and memory.
        llm_client: LLM client override; None disables the chat endpoint.

    Returns:
        Configured FastAPI app.
    """
    configure_logging(settings.log)

    app_settings = settings.app
    store = store if store is not None else build_store(app_settings)
    policies = build_policies(app_settings)

    rate_limiters: RateLimiterRegistry = build_persisted_registry(
        store,
        policies=policies,
        clock=clock,
        max_cas_attempts=app_settings.rate_limit_cas_attempts,
    )
    server_limiter = InMemoryRateLimiter(
        RateLimitConfig(
            max_requests=policies[API_POLICY].max_requests,
            window_ms=policies[API_POLICY].window_ms,
            key_prefix="server_rate_limit",
        ),
        clock=clock,
        sweep_interval_seconds=app_settings.rate_limit_sweep_interval_seconds,
    )

    memory_service = AssistantMemoryService(store, clock=clock, namespace=app_settings.memory_namespace)
    llm = _default_llm_client() if llm_client is _UNSET else llm_client
    chat_service = AssistantChatService(memory_service, llm)  # type: ignore[arg-type]

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        server_limiter.start_sweeper()
        logger.info("app.started", extra={"store": type(store).__name__, "llm_enabled": llm is not None})
        try:
            yield
        finally:
            server_limiter.stop_sweeper()

    app = FastAPI(
        title="Docket Chief Assistant Core",
        description=(
            "Rate limiting for sensitive operations and per-user assistant memory "
            "(preference learning, redaction, memory-aware prompts)."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.rate_limiters = rate_limiters
    app.state.server_limiter = server_limiter
    app.state.memory_service = memory_service
    app.state.chat_service = chat_service

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(assistant_router, prefix="/v1")
    app.include_router(health_router)

    return app
