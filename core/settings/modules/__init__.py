# Settings modules
from .app_settings import AppSettings, get_app_settings
from .orchestrator_settings import OrchestratorSettings
from .provider_settings import ProviderSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "OrchestratorSettings",
    "ProviderSettings",
]
