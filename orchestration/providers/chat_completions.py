"""
OpenAI-compatible chat completions provider.

Serves both OpenRouter and OpenAI endpoints over aiohttp. Quota and credit
errors are absorbed by walking a candidate list: every candidate model is
tried with a descending list of max-token ceilings before moving on.
"""
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from relay_sdk.logging import get_logger

from .base import BaseModelProvider, Generation, GenerationOptions, ModelConfig, ProviderError, ProviderHTTPError, parse_token_usage

USER_AGENT = "relay-orchestrator/1.0.0"
TOKEN_CEILINGS = (1024, 512, 256)
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.7


def is_quota_error(error: BaseException) -> bool:
    """True for errors that a smaller request or another model may avoid."""
    message = str(error)
    return "HTTP 402" in message or "credits" in message.lower()


class ChatCompletionsProvider(BaseModelProvider):
    """Provider for ``POST <base_url>/chat/completions``."""

    def __init__(
        self,
        config: ModelConfig,
        base_url: str,
        default_fallback_models: list[str] | None = None,
        request_timeout_ms: int = 60_000,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(config)
        self.base_url = (config.base_url or base_url).rstrip("/")
        self.default_fallback_models = list(default_fallback_models or [])
        self.request_timeout_ms = request_timeout_ms
        self._session = session
        self._logger = get_logger("orchestration.providers.chat_completions")

    # ------------------------------------------------------------------
    # Candidate cascade
    # ------------------------------------------------------------------

    def candidate_models(self) -> list[str]:
        fallbacks = self.config.fallback_models or self.default_fallback_models
        return list(dict.fromkeys([self.config.model, *fallbacks]))

    @staticmethod
    def token_ceilings(requested: int | None) -> list[int]:
        requested = requested or DEFAULT_MAX_TOKENS
        return [n for n in dict.fromkeys([requested, *TOKEN_CEILINGS]) if n > 0]

    async def generate_with_usage(self, prompt: str, options: GenerationOptions | None = None) -> Generation:
        options = options or GenerationOptions()
        last_error: Exception | None = None

        for model in self.candidate_models():
            for max_tokens in self.token_ceilings(options.max_tokens):
                try:
                    return await self._complete(model, max_tokens, prompt, options)
                except ProviderError as exc:
                    last_error = exc
                    self._logger.warning("candidate_failed", model=model, max_tokens=max_tokens, error=str(exc))
                    if is_quota_error(exc):
                        continue
                    break

        raise last_error or ProviderError("All candidate models failed")

    async def generate_stream(self, prompt: str, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        options = options or GenerationOptions()
        last_error: Exception | None = None

        for model in self.candidate_models():
            for max_tokens in self.token_ceilings(options.max_tokens):
                produced = False
                try:
                    async for fragment in self._stream(model, max_tokens, prompt, options):
                        produced = True
                        yield fragment
                    return
                except ProviderError as exc:
                    # a partially delivered stream cannot be replayed on another candidate
                    if produced:
                        raise
                    last_error = exc
                    self._logger.warning("stream_candidate_failed", model=model, max_tokens=max_tokens, error=str(exc))
                    if is_quota_error(exc):
                        continue
                    break

        raise last_error or ProviderError("All candidate models failed (stream)")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        headers.update(self.config.headers)
        return headers

    def build_body(self, model: str, max_tokens: int, prompt: str, options: GenerationOptions, stream: bool = False) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": DEFAULT_TEMPERATURE if options.temperature is None else options.temperature,
            "max_tokens": max_tokens,
        }
        optional = {
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
            "stop": options.stop,
        }
        body.update({key: value for key, value in optional.items() if value is not None})
        if stream:
            body["stream"] = True
        return body

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Yield the injected session, or a short-lived one closed on exit."""
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    def _timeout(self, options: GenerationOptions) -> aiohttp.ClientTimeout:
        timeout_ms = options.timeout_ms or self.request_timeout_ms
        return aiohttp.ClientTimeout(total=timeout_ms / 1000)

    async def _complete(self, model: str, max_tokens: int, prompt: str, options: GenerationOptions) -> Generation:
        body = self.build_body(model, max_tokens, prompt, options)
        url = f"{self.base_url}/chat/completions"

        try:
            async with self._session_scope() as session:
                async with session.post(url, json=body, headers=self.build_headers(), timeout=self._timeout(options)) as response:
                    if response.status >= 400:
                        raise ProviderHTTPError(response.status, await response.text())
                    data = await response.json()
        except aiohttp.ClientError as exc:
            raise ProviderError(f"Request to {url} failed: {exc}") from exc

        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ProviderError(f"Provider API error: {message}")

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("No response from provider API")

        return Generation(text=choices[0]["message"]["content"], tokens=parse_token_usage(data.get("usage")))

    async def _stream(self, model: str, max_tokens: int, prompt: str, options: GenerationOptions) -> AsyncIterator[str]:
        body = self.build_body(model, max_tokens, prompt, options, stream=True)
        url = f"{self.base_url}/chat/completions"

        try:
            async with self._session_scope() as session:
                async with session.post(url, json=body, headers=self.build_headers(), timeout=self._timeout(options)) as response:
                    if response.status >= 400:
                        raise ProviderHTTPError(response.status, await response.text())

                    async for raw_line in response.content:
                        line = raw_line.decode("utf-8", errors="replace").strip()
                        if not line.startswith("data: "):
                            continue

                        payload = line[len("data: "):]
                        if payload == "[DONE]":
                            return

                        try:
                            parsed = json.loads(payload)
                        except json.JSONDecodeError:
                            continue

                        self._set_last_token_usage(parsed.get("usage"))
                        delta = (parsed.get("choices") or [{}])[0].get("delta", {}).get("content")
                        if delta:
                            yield delta
        except aiohttp.ClientError as exc:
            raise ProviderError(f"Stream from {url} failed: {exc}") from exc

