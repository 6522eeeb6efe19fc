"""
Test settings loading from the environment.

Every settings field is bound to an exact environment variable name.
"""
from __future__ import annotations

import pytest

from core.settings import AppSettings, OrchestratorSettings, ProviderSettings, get_app_settings


def _collect_alias_map(model_cls) -> dict[str, str]:
    """
    Return map: ENV_ALIAS -> field_name for a Pydantic model class.
    """
    return {field.alias: name for name, field in model_cls.model_fields.items() if field.alias}


def test_defaults_without_environment(monkeypatch):
    for alias in _collect_alias_map(OrchestratorSettings):
        monkeypatch.delenv(alias, raising=False)

    settings = OrchestratorSettings(_env_file=None)

    assert settings.max_concurrent_executions == 10
    assert settings.default_timeout_ms == 300_000
    assert settings.shutdown_grace_ms == 30_000
    assert settings.max_plugins == 50
    assert settings.log_level == "INFO"


def test_environment_variables_override_defaults(monkeypatch):
    monkeypatch.setenv("ORCHESTRATOR_MAX_CONCURRENT_EXECUTIONS", "3")
    monkeypatch.setenv("ORCHESTRATOR_DEFAULT_TIMEOUT_MS", "1500")
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-secret")
    monkeypatch.setenv("PROVIDER_REQUEST_TIMEOUT_MS", "2500")

    orchestrator = OrchestratorSettings(_env_file=None)
    providers = ProviderSettings(_env_file=None)

    assert orchestrator.max_concurrent_executions == 3
    assert orchestrator.default_timeout_ms == 1500
    assert providers.openrouter_api_key == "or-secret"
    assert providers.request_timeout_ms == 2500


def test_invalid_values_are_rejected(monkeypatch):
    monkeypatch.setenv("ORCHESTRATOR_MAX_CONCURRENT_EXECUTIONS", "0")

    with pytest.raises(ValueError):
        OrchestratorSettings(_env_file=None)


def test_aliases_are_unique_across_modules():
    aliases = [*_collect_alias_map(OrchestratorSettings), *_collect_alias_map(ProviderSettings)]
    assert len(aliases) == len(set(aliases))


def test_app_settings_aggregator_is_cached():
    get_app_settings.cache_clear()
    try:
        settings = get_app_settings()
        assert isinstance(settings, AppSettings)
        assert get_app_settings() is settings
    finally:
        get_app_settings.cache_clear()


def test_log_level_is_normalized_and_validated(monkeypatch):
    monkeypatch.setenv("ORCHESTRATOR_LOG_LEVEL", "debug")
    assert OrchestratorSettings(_env_file=None).log_level == "DEBUG"

    monkeypatch.setenv("ORCHESTRATOR_LOG_LEVEL", "VERBOSE")
    with pytest.raises(ValueError, match="Unknown log level"):
        OrchestratorSettings(_env_file=None)
