"""Factory for creating the configured LLM client."""

from app.adapters.llm.base import AbstractLLMClient
from app.adapters.llm.openai_client import OpenAIClient
from app.core.config import LLMSettings, settings
from app.core.errors import LLMUnavailableAppError, ValidationAppError

SUPPORTED_PROVIDERS = ("openai",)


def create_llm_client(llm_settings: LLMSettings | None = None) -> AbstractLLMClient:
    """Instantiate the LLM client selected by settings.

    Args:
        llm_settings: Optional settings override; defaults to settings.llm.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        LLMUnavailableAppError: If no provider is configured.
        ValidationAppError: If provider-specific requirements are not met.
    """
    cfg = llm_settings or settings.llm

    if not cfg.provider:
        raise LLMUnavailableAppError(
            code="llm_not_configured",
            message="No assistant provider is configured",
            details={"hint": "Set LLM_PROVIDER and LLM_API_KEY to enable the chat endpoint"},
        )

    provider = cfg.provider.lower()

    if provider == "openai":
        if not cfg.api_key:
            raise ValidationAppError(
                code="llm_missing_api_key",
                message="OpenAI provider requires LLM_API_KEY environment variable",
            )
        return OpenAIClient(
            api_key=cfg.api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
            temperature=cfg.temperature,
        )

    raise ValidationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        ),
    )
