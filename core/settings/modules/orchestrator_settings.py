from __future__ import annotations

from pydantic import Field, field_validator

from core.settings.base import RelayBaseSettings
from relay_sdk.logging import resolve_level


class OrchestratorSettings(RelayBaseSettings):
    """
    Settings for the orchestrator runtime.
    Loaded from .env with exact variable name matching.
    """

    max_concurrent_executions: int = Field(10, alias="ORCHESTRATOR_MAX_CONCURRENT_EXECUTIONS", ge=1)
    default_timeout_ms: int = Field(300_000, alias="ORCHESTRATOR_DEFAULT_TIMEOUT_MS", gt=0)
    shutdown_grace_ms: int = Field(30_000, alias="ORCHESTRATOR_SHUTDOWN_GRACE_MS", ge=0)
    max_plugins: int = Field(50, alias="ORCHESTRATOR_MAX_PLUGINS", ge=1)
    log_level: str = Field("INFO", alias="ORCHESTRATOR_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept standard level names in any case."""
        resolve_level(v)
        return v.upper()
