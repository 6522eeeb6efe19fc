"""Provider factory - builds a ModelProvider from a ModelConfig."""

from core.settings.modules.provider_settings import ProviderSettings

from .base import ModelConfig, ModelProvider
from .chat_completions import ChatCompletionsProvider

OPENROUTER_FREE_FALLBACKS = [
    "mistralai/mistral-7b-instruct:free",
    "mistralai/mistral-small-3.2-24b-instruct:free",
    "mistralai/mistral-small-3.1-24b-instruct:free",
]

SUPPORTED_PROVIDERS = ("openrouter", "openai")


def validate_model_config(config: ModelConfig) -> None:
    """Raise ValueError when ``config`` cannot produce a provider."""
    if not config.provider:
        raise ValueError("Model provider is required")
    if not config.model:
        raise ValueError("Model name is required")
    if config.provider == "callable":
        raise ValueError("Callable models have no factory; pass a CallableProvider to the agent")
    if config.provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported model provider: {config.provider}")


def create_provider(config: ModelConfig, settings: ProviderSettings | None = None) -> ModelProvider:
    """Create the provider for ``config``.

    API keys missing from the config are taken from provider settings.
    In-process models are built directly with CallableProvider.
    """
    validate_model_config(config)
    settings = settings or ProviderSettings()

    if config.provider == "openrouter":
        if not config.api_key:
            config.api_key = settings.openrouter_api_key
        return ChatCompletionsProvider(
            config,
            base_url=settings.openrouter_base_url,
            default_fallback_models=OPENROUTER_FREE_FALLBACKS,
            request_timeout_ms=settings.request_timeout_ms,
        )

    if not config.api_key:
        config.api_key = settings.openai_api_key
    return ChatCompletionsProvider(
        config,
        base_url=settings.openai_base_url,
        request_timeout_ms=settings.request_timeout_ms,
    )
