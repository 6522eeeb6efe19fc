"""Tests for PluginManager and PluginRegistry."""

import pytest

from orchestration.exceptions import HookAbortError, PluginError
from orchestration.plugins import (
    BasePlugin,
    CachePlugin,
    MetricsPlugin,
    PluginConfig,
    PluginManager,
    PluginMetadata,
    PluginRegistry,
    RateLimiterPlugin,
    default_registry,
    load_plugin_class,
)


class AppendPlugin(BasePlugin):
    """Appends its name to the piped list in before_step."""

    def __init__(self, name: str, priority: int = 0, enabled: bool = True) -> None:
        super().__init__(
            metadata=PluginMetadata(name=name, version="1.0.0"),
            config=PluginConfig(priority=priority, enabled=enabled),
        )
        self.cleaned_up = False

    async def before_step(self, trail):
        return [*trail, self.name]

    async def cleanup(self) -> None:
        self.cleaned_up = True


class FailingPlugin(BasePlugin):
    metadata = PluginMetadata(name="failing", version="1.0.0")

    async def before_step(self, trail):
        raise RuntimeError("hook bug")

    async def on_error(self, error, context):
        raise RuntimeError("error hook bug")


class AbortingPlugin(BasePlugin):
    metadata = PluginMetadata(name="aborting", version="1.0.0")

    async def before_step(self, trail):
        raise HookAbortError("stop right there")


class InvalidPlugin(BasePlugin):
    metadata = PluginMetadata(name="invalid", version="")


@pytest.mark.asyncio
async def test_hooks_run_by_descending_priority_with_stable_ties():
    manager = PluginManager()
    await manager.register_plugin(AppendPlugin("low", priority=1))
    await manager.register_plugin(AppendPlugin("first-high", priority=5))
    await manager.register_plugin(AppendPlugin("second-high", priority=5))

    trail = await manager.execute_hook("before_step", [])

    assert trail == ["first-high", "second-high", "low"]


@pytest.mark.asyncio
async def test_hook_without_plugins_passes_first_argument_through():
    manager = PluginManager()
    marker = object()

    assert await manager.execute_hook("before_step", marker) is marker
    assert manager.has_hook("before_step") is False


@pytest.mark.asyncio
async def test_disabled_plugins_are_skipped():
    manager = PluginManager()
    await manager.register_plugin(AppendPlugin("on"))
    await manager.register_plugin(AppendPlugin("off", enabled=False))

    assert await manager.execute_hook("before_step", []) == ["on"]

    manager.enable_plugin("off")
    assert await manager.execute_hook("before_step", []) == ["on", "off"]

    manager.disable_plugin("on")
    assert [plugin.name for plugin in manager.get_enabled_plugins()] == ["off"]


@pytest.mark.asyncio
async def test_ordinary_hook_errors_are_swallowed():
    manager = PluginManager()
    await manager.register_plugin(FailingPlugin())
    await manager.register_plugin(AppendPlugin("after"))

    assert await manager.execute_hook("before_step", []) == ["after"]


@pytest.mark.asyncio
async def test_on_error_hook_errors_propagate():
    manager = PluginManager()
    await manager.register_plugin(FailingPlugin())

    with pytest.raises(RuntimeError, match="error hook bug"):
        await manager.execute_hook("on_error", ValueError("original"), None)


@pytest.mark.asyncio
async def test_hook_abort_errors_propagate_from_any_hook():
    manager = PluginManager()
    await manager.register_plugin(AbortingPlugin())

    with pytest.raises(HookAbortError):
        await manager.execute_hook("before_step", [])


@pytest.mark.asyncio
async def test_registration_rules():
    manager = PluginManager(max_plugins=2)
    await manager.register_plugin(AppendPlugin("a"))

    with pytest.raises(PluginError, match="already registered"):
        await manager.register_plugin(AppendPlugin("a"))

    with pytest.raises(PluginError, match="validation failed"):
        await manager.register_plugin(InvalidPlugin())

    await manager.register_plugin(AppendPlugin("b"))
    with pytest.raises(PluginError, match="Maximum number of plugins"):
        await manager.register_plugin(AppendPlugin("c"))


@pytest.mark.asyncio
async def test_unregister_cleans_up_and_removes_hooks():
    manager = PluginManager()
    plugin = AppendPlugin("temp")
    await manager.register_plugin(plugin)

    assert await manager.unregister_plugin("temp") is True
    assert plugin.cleaned_up is True
    assert manager.has_hook("before_step") is False
    assert await manager.unregister_plugin("temp") is False


@pytest.mark.asyncio
async def test_stats_and_shutdown():
    manager = PluginManager()
    first, second = AppendPlugin("a"), AppendPlugin("b", enabled=False)
    await manager.register_plugin(first)
    await manager.register_plugin(second)

    assert manager.get_stats() == {
        "total_plugins": 2,
        "enabled_plugins": 1,
        "registered_hooks": {"before_step": 2},
    }

    await manager.shutdown()

    assert first.cleaned_up and second.cleaned_up
    assert manager.list_plugins() == []


@pytest.mark.asyncio
async def test_unknown_hook_name_is_rejected():
    with pytest.raises(PluginError):
        await PluginManager().execute_hook("beforeStep", None)


def test_plugin_config_helpers():
    plugin = CachePlugin(PluginConfig(priority=3, options={"ttl_ms": 10}))

    assert str(plugin) == "cache@1.0.0"
    assert plugin.get_priority() == 3
    assert plugin.get_option("ttl_ms") == 10
    assert plugin.get_option("missing", "default") == "default"

    plugin.set_option("extra", True)
    snapshot = plugin.get_config()
    snapshot.options["extra"] = False
    assert plugin.get_option("extra") is True

    plugin.update_config(enabled=False)
    assert plugin.is_enabled() is False


def test_plugin_without_metadata_is_rejected():
    class Anonymous(BasePlugin):
        pass

    with pytest.raises(PluginError):
        Anonymous()


def test_default_registry_holds_builtins():
    registry = default_registry()

    assert registry.has("cache")
    assert registry.has("rate-limiter")
    assert registry.has("metrics")
    assert isinstance(registry.create("metrics"), MetricsPlugin)
    assert [entry["name"] for entry in registry.list()] == ["cache", "rate-limiter", "metrics"]


def test_registries_are_independent():
    registry = PluginRegistry()
    registry.register(RateLimiterPlugin)

    assert default_registry().has("rate-limiter")
    assert registry.unregister("rate-limiter") is True
    assert registry.get("rate-limiter") is None
    assert default_registry().has("rate-limiter")

    with pytest.raises(PluginError):
        registry.create("rate-limiter")


def test_load_plugin_class_by_path():
    assert load_plugin_class("orchestration.plugins.builtin.cache:CachePlugin") is CachePlugin

    with pytest.raises(PluginError):
        load_plugin_class("orchestration.plugins.builtin.cache")
    with pytest.raises(PluginError):
        load_plugin_class("orchestration.does_not_exist:Plugin")
    with pytest.raises(PluginError):
        load_plugin_class("orchestration.plugins.builtin.cache:default_cache_key")
