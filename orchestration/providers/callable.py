"""In-process provider backed by caller-supplied coroutines."""

from collections.abc import AsyncIterator, Awaitable, Callable

from orchestration.models import TokenUsage

from .base import BaseModelProvider, Generation, GenerationOptions, ModelConfig

GenerateFn = Callable[[str, GenerationOptions], Awaitable[str]]
StreamFn = Callable[[str, GenerationOptions], AsyncIterator[str]]


class CallableProvider(BaseModelProvider):
    """Adapts plain async functions to the ModelProvider protocol.

    Without a stream function, streaming yields the full generated text
    as a single fragment.
    """

    def __init__(
        self,
        generate: GenerateFn,
        stream: StreamFn | None = None,
        config: ModelConfig | None = None,
        token_usage: Callable[[str, str], TokenUsage] | None = None,
    ) -> None:
        super().__init__(config or ModelConfig(provider="callable", model="callable"))
        self._generate = generate
        self._stream = stream
        self._token_usage = token_usage

    async def generate_with_usage(self, prompt: str, options: GenerationOptions | None = None) -> Generation:
        text = await self._generate(prompt, options or GenerationOptions())
        tokens = self._token_usage(prompt, text) if self._token_usage is not None else None
        return Generation(text=text, tokens=tokens)

    async def generate_stream(self, prompt: str, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        options = options or GenerationOptions()
        if self._stream is None:
            yield await self.generate_text(prompt, options)
            return

        async for fragment in self._stream(prompt, options):
            yield fragment
