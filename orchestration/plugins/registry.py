"""Plugin registry - catalog of plugin classes by name."""

import importlib
from typing import Any

from orchestration.exceptions import PluginError

from .base import BasePlugin, PluginConfig
from .builtin import CachePlugin, MetricsPlugin, RateLimiterPlugin


class PluginRegistry:
    """Maps plugin names to plugin classes and instantiates them on demand."""

    def __init__(self) -> None:
        self._plugins: dict[str, type[BasePlugin]] = {}

    def register(self, plugin_class: type[BasePlugin]) -> None:
        metadata = plugin_class.metadata
        if metadata is None or not metadata.name:
            raise PluginError(f"{plugin_class.__name__} must declare metadata with a name")
        self._plugins[metadata.name] = plugin_class

    def unregister(self, name: str) -> bool:
        return self._plugins.pop(name, None) is not None

    def get(self, name: str) -> type[BasePlugin] | None:
        return self._plugins.get(name)

    def has(self, name: str) -> bool:
        return name in self._plugins

    def create(self, name: str, config: PluginConfig | None = None) -> BasePlugin:
        plugin_class = self._plugins.get(name)
        if plugin_class is None:
            raise PluginError(f"Plugin not found: {name}")
        return plugin_class(config=config)

    def list(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "version": plugin_class.metadata.version,
                "description": plugin_class.metadata.description,
            }
            for name, plugin_class in self._plugins.items()
        ]

    def clear(self) -> None:
        self._plugins.clear()


def load_plugin_class(path: str) -> type[BasePlugin]:
    """Import a plugin class from ``"package.module:ClassName"``.

    Raises:
        PluginError: If the path is malformed, cannot be imported or does not
            name a BasePlugin subclass
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise PluginError(f"Invalid plugin path '{path}', expected 'module:ClassName'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginError(f"Cannot import plugin module '{module_name}': {exc}") from exc

    plugin_class = getattr(module, attribute, None)
    if not isinstance(plugin_class, type) or not issubclass(plugin_class, BasePlugin):
        raise PluginError(f"'{path}' is not a plugin class")
    return plugin_class


def default_registry() -> PluginRegistry:
    """New registry holding the built-in plugins."""
    registry = PluginRegistry()
    for plugin_class in (CachePlugin, RateLimiterPlugin, MetricsPlugin):
        registry.register(plugin_class)
    return registry
