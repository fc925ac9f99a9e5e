"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LLMSettings(BaseSettings):
    """LLM provider configuration for the assistant chat endpoint.

    The provider is optional: without one the chat endpoint answers 503 while
    the memory and rate limit endpoints keep working.
    """

    provider: str | None = Field(
        None,
        description="LLM provider name (e.g., openai)",
    )
    model: str = Field(
        "gpt-4o-mini",
        description="Model name (e.g., gpt-4o, gpt-4o-mini)",
    )
    api_key: str | None = Field(
        None,
        description="API key for cloud providers (required for OpenAI)",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint for OpenAI-compatible servers",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds",
    )
    temperature: float = Field(
        0.2,
        description="Sampling temperature for assistant replies",
        ge=0.0,
        le=2.0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    store_backend: str = Field(
        "memory",
        description="Local store backend: memory or file",
    )
    store_path: str = Field(
        "data/local_store.json",
        description="JSON file used when store_backend=file",
    )

    memory_namespace: str = Field(
        "docketchief_assistant_memory",
        description="Storage key namespace for assistant memory profiles",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Gate the assistant endpoints with the api policy",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated keys accepted in X-Admin-Key for rate limit resets",
    )

    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    rate_limit_cas_attempts: int = Field(
        5,
        description="Compare-and-set attempts before falling back to last write wins",
        ge=1,
    )
    rate_limit_sweep_interval_seconds: float = Field(
        300.0,
        description="Interval of the in-memory limiter's expired-entry sweep",
        gt=0,
    )

    auth_limit_requests: int = Field(5, ge=1, description="Sign-in/sign-up attempts per window")
    auth_limit_window_seconds: int = Field(15 * 60, ge=1, description="Auth window size")
    api_limit_requests: int = Field(60, ge=1, description="API requests per window")
    api_limit_window_seconds: int = Field(60, ge=1, description="API window size")
    password_reset_limit_requests: int = Field(3, ge=1, description="Password reset attempts per window")
    password_reset_limit_window_seconds: int = Field(60 * 60, ge=1, description="Password reset window size")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=LLMSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
