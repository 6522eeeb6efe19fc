"""
Model provider interface.

The engine only depends on the ModelProvider protocol: text generation,
streamed generation and a token estimate. Usage is returned with each
generation; ``last_token_usage`` is a convenience for single callers and is
not safe to read while calls overlap.
"""
import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from orchestration.models import TokenUsage


class ProviderError(Exception):
    """Raised when a provider cannot produce a response."""
    pass


class ProviderHTTPError(ProviderError):
    """Non-2xx response from a provider endpoint."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}")


@dataclass
class GenerationOptions:
    """Sampling and transport options for a single generation call."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None
    timeout_ms: int | None = None


@dataclass
class Generation:
    """Text produced by one generation call, with the usage that call reported."""

    text: str
    tokens: TokenUsage | None = None


@dataclass
class ModelConfig:
    """Binds an agent to a provider kind and model identifier."""

    provider: str
    model: str
    api_key: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    fallback_models: list[str] = field(default_factory=list)


class ModelProvider(Protocol):
    """Black-box text generation capability consumed by agents."""

    async def generate_with_usage(self, prompt: str, options: GenerationOptions | None = None) -> Generation:
        ...

    async def generate_text(self, prompt: str, options: GenerationOptions | None = None) -> str:
        ...

    def generate_stream(self, prompt: str, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        ...

    def estimate_tokens(self, text: str) -> int:
        ...

    @property
    def last_token_usage(self) -> TokenUsage | None:
        ...


class BaseModelProvider(ABC):
    """Shared behaviour for concrete providers."""

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self._last_token_usage: TokenUsage | None = None

    @abstractmethod
    async def generate_with_usage(self, prompt: str, options: GenerationOptions | None = None) -> Generation:
        pass

    async def generate_text(self, prompt: str, options: GenerationOptions | None = None) -> str:
        generation = await self.generate_with_usage(prompt, options)
        if generation.tokens is not None:
            self._last_token_usage = generation.tokens
        return generation.text

    @abstractmethod
    def generate_stream(self, prompt: str, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        pass

    def estimate_tokens(self, text: str) -> int:
        # roughly four characters per token for English text
        return math.ceil(len(text) / 4)

    @property
    def last_token_usage(self) -> TokenUsage | None:
        return self._last_token_usage

    def _set_last_token_usage(self, usage: dict[str, Any] | None) -> None:
        parsed = parse_token_usage(usage)
        if parsed is not None:
            self._last_token_usage = parsed


def parse_token_usage(usage: dict[str, Any] | None) -> TokenUsage | None:
    """Normalize OpenAI-style and Anthropic-style usage payloads."""
    if not usage:
        return None

    prompt = usage.get("prompt_tokens") or usage.get("input_tokens") or 0
    completion = usage.get("completion_tokens") or usage.get("output_tokens") or 0
    total = usage.get("total_tokens") or prompt + completion
    return TokenUsage(prompt=prompt, completion=completion, total=total)
