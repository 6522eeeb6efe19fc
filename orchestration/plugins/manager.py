"""Plugin manager - ordered hook pipeline over registered plugins."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from relay_sdk.logging import get_logger

from orchestration.exceptions import HookAbortError, PluginError

from .base import HOOK_NAMES, BasePlugin

if TYPE_CHECKING:
    from orchestration.orchestrator import Orchestrator

ERROR_HOOK_PREFIX = "on_error"


@dataclass(frozen=True)
class _HookEntry:
    plugin: BasePlugin
    priority: int


class PluginManager:
    """Registers plugins and runs their hooks in priority order.

    Hooks run sequentially, highest priority first; equal priorities keep
    registration order. Each hook receives the current value of the first
    argument and may replace it by returning something other than None.
    """

    def __init__(self, max_plugins: int = 50, enable_validation: bool = True) -> None:
        self.max_plugins = max_plugins
        self.enable_validation = enable_validation
        self._plugins: dict[str, BasePlugin] = {}
        self._hooks: dict[str, list[_HookEntry]] = {}
        self._orchestrator: "Orchestrator | None" = None
        self._logger = get_logger("orchestration.plugins")

    async def initialize(self, orchestrator: "Orchestrator") -> None:
        """Attach to an orchestrator; plugins registered from now on are initialized with it.

        Plugins registered before attachment are initialized here.
        """
        self._orchestrator = orchestrator
        for plugin in self._plugins.values():
            if plugin.orchestrator is None:
                await plugin.initialize(orchestrator)

        self._logger.info("plugin_manager_initialized", plugin_count=len(self._plugins))

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_plugin(self, plugin: BasePlugin) -> None:
        """Register a plugin and its hooks.

        Raises:
            PluginError: On capacity, duplicate name or failed validation
        """
        if len(self._plugins) >= self.max_plugins:
            raise PluginError(f"Maximum number of plugins reached: {self.max_plugins}")

        if plugin.name in self._plugins:
            raise PluginError(f"Plugin already registered: {plugin.name}")

        if self.enable_validation:
            errors = plugin.validate()
            if errors:
                raise PluginError(f"Plugin validation failed: {', '.join(errors)}")

        if self._orchestrator is not None:
            await plugin.initialize(self._orchestrator)

        self._plugins[plugin.name] = plugin
        for hook_name in plugin.hooks():
            entries = self._hooks.setdefault(hook_name, [])
            entries.append(_HookEntry(plugin=plugin, priority=plugin.get_priority()))
            entries.sort(key=lambda entry: entry.priority, reverse=True)

        self._logger.info("plugin_registered", plugin=str(plugin), hooks=",".join(plugin.hooks()))

    async def unregister_plugin(self, name: str) -> bool:
        plugin = self._plugins.pop(name, None)
        if plugin is None:
            return False

        await plugin.cleanup()

        for hook_name in list(self._hooks):
            remaining = [entry for entry in self._hooks[hook_name] if entry.plugin is not plugin]
            if remaining:
                self._hooks[hook_name] = remaining
            else:
                del self._hooks[hook_name]

        self._logger.info("plugin_unregistered", plugin=str(plugin))
        return True

    # ------------------------------------------------------------------
    # Hook execution
    # ------------------------------------------------------------------

    async def execute_hook(self, hook_name: str, *args: Any) -> Any:
        """Run ``hook_name`` on every enabled plugin that implements it.

        Args:
            hook_name: One of HOOK_NAMES
            *args: Hook arguments; the first one is piped between hooks

        Returns:
            The final value of the first argument (None without arguments)

        Raises:
            HookAbortError: Raised by any hook
            Exception: Raised by an ``on_error`` hook
        """
        if hook_name not in HOOK_NAMES:
            raise PluginError(f"Unknown hook: {hook_name}")

        current_args = list(args)
        result = current_args[0] if current_args else None

        for entry in list(self._hooks.get(hook_name, [])):
            plugin = entry.plugin
            if not plugin.is_enabled():
                continue

            try:
                value = await getattr(plugin, hook_name)(*current_args)
            except HookAbortError:
                raise
            except Exception as exc:
                self._logger.error("hook_failed", hook=hook_name, plugin=str(plugin), error=str(exc))
                if hook_name.startswith(ERROR_HOOK_PREFIX):
                    raise
                continue

            if value is not None:
                result = value
                if current_args:
                    current_args[0] = value

        return result

    def has_hook(self, hook_name: str) -> bool:
        return bool(self._hooks.get(hook_name))

    # ------------------------------------------------------------------
    # Queries and management
    # ------------------------------------------------------------------

    def get_plugin(self, name: str) -> BasePlugin | None:
        return self._plugins.get(name)

    def list_plugins(self) -> list[BasePlugin]:
        return list(self._plugins.values())

    def get_enabled_plugins(self) -> list[BasePlugin]:
        return [plugin for plugin in self._plugins.values() if plugin.is_enabled()]

    def enable_plugin(self, name: str) -> bool:
        return self._set_enabled(name, True)

    def disable_plugin(self, name: str) -> bool:
        return self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> bool:
        plugin = self._plugins.get(name)
        if plugin is None:
            return False
        plugin.update_config(enabled=enabled)
        self._logger.info("plugin_enabled" if enabled else "plugin_disabled", plugin=name)
        return True

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_plugins": len(self._plugins),
            "enabled_plugins": len(self.get_enabled_plugins()),
            "registered_hooks": {name: len(entries) for name, entries in self._hooks.items()},
        }

    async def shutdown(self) -> None:
        """Clean up every plugin, logging cleanup failures, and forget them all."""
        self._logger.info("plugin_manager_shutting_down", plugin_count=len(self._plugins))

        for plugin in self._plugins.values():
            try:
                await plugin.cleanup()
            except Exception as exc:
                self._logger.error("plugin_cleanup_failed", plugin=str(plugin), error=str(exc))

        self._plugins.clear()
        self._hooks.clear()
        self._orchestrator = None
