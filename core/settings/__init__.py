# Settings package
from core.settings.modules import AppSettings, OrchestratorSettings, ProviderSettings, get_app_settings

__all__ = ["get_app_settings", "AppSettings", "OrchestratorSettings", "ProviderSettings"]
