from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.orchestrator_settings import OrchestratorSettings
from core.settings.modules.provider_settings import ProviderSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    orchestrator: OrchestratorSettings
    providers: ProviderSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        orchestrator=OrchestratorSettings(),
        providers=ProviderSettings(),
    )
