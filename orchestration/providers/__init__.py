"""Model providers - the model-invocation capability consumed by agents."""

from .base import (
    BaseModelProvider,
    Generation,
    GenerationOptions,
    ModelConfig,
    ModelProvider,
    ProviderError,
    ProviderHTTPError,
)
from .callable import CallableProvider
from .chat_completions import ChatCompletionsProvider, is_quota_error
from .factory import create_provider, validate_model_config

__all__ = [
    "BaseModelProvider",
    "CallableProvider",
    "ChatCompletionsProvider",
    "Generation",
    "GenerationOptions",
    "ModelConfig",
    "ModelProvider",
    "ProviderError",
    "ProviderHTTPError",
    "create_provider",
    "is_quota_error",
    "validate_model_config",
]
