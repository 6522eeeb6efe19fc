"""Plugin system - hook pipeline, registry and built-in plugins."""

from .base import HOOK_NAMES, AgentInvocation, BasePlugin, PluginConfig, PluginMetadata
from .builtin import CachePlugin, MetricsPlugin, RateLimiterPlugin
from .manager import PluginManager
from .registry import PluginRegistry, default_registry, load_plugin_class

__all__ = [
    "AgentInvocation",
    "BasePlugin",
    "CachePlugin",
    "HOOK_NAMES",
    "MetricsPlugin",
    "PluginConfig",
    "PluginManager",
    "PluginMetadata",
    "PluginRegistry",
    "RateLimiterPlugin",
    "default_registry",
    "load_plugin_class",
]
