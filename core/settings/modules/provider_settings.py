from __future__ import annotations

from pydantic import Field

from core.settings.base import RelayBaseSettings


class ProviderSettings(RelayBaseSettings):
    """
    Credentials and endpoints for model providers.
    Loaded from .env with exact variable name matching.
    """

    openrouter_api_key: str | None = Field(None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field("https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")
    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field("https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    request_timeout_ms: int = Field(60_000, alias="PROVIDER_REQUEST_TIMEOUT_MS", gt=0)
