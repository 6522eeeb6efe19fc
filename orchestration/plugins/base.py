"""
Plugin base types.

A plugin is a BasePlugin subclass that defines any of the coroutine hooks
named in HOOK_NAMES. Hook signatures (the first argument is piped: a hook
that returns a non-None value replaces it for the following hooks):

    before_orchestrator(orchestrator)
    after_orchestrator(orchestrator)
    before_agent_registration(config: AgentConfig) -> AgentConfig | None
    after_agent_registration(config: AgentConfig)
    before_agent_execution(invocation: AgentInvocation) -> AgentInvocation | None
    after_agent_execution(result: AgentResult, invocation: AgentInvocation) -> AgentResult | None
    before_workflow_registration(config: WorkflowConfig) -> WorkflowConfig | None
    after_workflow_registration(config: WorkflowConfig)
    before_workflow_execution(context: ExecutionContext, workflow_id: str) -> ExecutionContext | None
    after_workflow_execution(result, context: ExecutionContext) -> Any
    before_step(context: ExecutionContext) -> ExecutionContext | None
    after_step(result, context: ExecutionContext) -> Any
    on_error(error: BaseException, context: ExecutionContext)
    on_agent_error(error: BaseException, invocation: AgentInvocation)
    on_workflow_error(error: BaseException, workflow_id: str, context: ExecutionContext)
    on_custom_event(event_name: str, data: Any)
"""
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, ClassVar

from orchestration.exceptions import PluginError
from orchestration.models import ExecutionContext

if TYPE_CHECKING:
    from orchestration.agent import AgentResult
    from orchestration.orchestrator import Orchestrator

HOOK_NAMES = (
    "before_orchestrator",
    "after_orchestrator",
    "before_agent_registration",
    "after_agent_registration",
    "before_agent_execution",
    "after_agent_execution",
    "before_workflow_registration",
    "after_workflow_registration",
    "before_workflow_execution",
    "after_workflow_execution",
    "before_step",
    "after_step",
    "on_error",
    "on_agent_error",
    "on_workflow_error",
    "on_custom_event",
)


@dataclass(frozen=True)
class PluginMetadata:
    """Identity of a plugin."""

    name: str
    version: str
    description: str | None = None
    author: str | None = None
    homepage: str | None = None
    keywords: tuple[str, ...] = ()


@dataclass
class PluginConfig:
    """Per-instance plugin configuration."""

    enabled: bool = True
    priority: int = 0
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentInvocation:
    """Agent call piped through the agent execution hooks.

    A ``before_agent_execution`` hook that sets ``cached_result`` makes the
    orchestrator return it without calling the agent. ``state`` is scratch
    space private to this call, unlike the context shared by parallel branches.
    """

    agent_id: str
    prompt: str
    context: ExecutionContext
    cached_result: "AgentResult | None" = None
    state: dict[str, Any] = field(default_factory=dict)


class BasePlugin:
    """Base class for plugins.

    Subclasses declare ``metadata`` as a class attribute or pass it to the
    constructor, and define whichever hooks they need.
    """

    metadata: ClassVar[PluginMetadata | None] = None

    def __init__(self, metadata: PluginMetadata | None = None, config: PluginConfig | None = None) -> None:
        metadata = metadata or type(self).metadata
        if metadata is None:
            raise PluginError(f"{type(self).__name__} does not declare plugin metadata")

        # instance attribute shadows the class-level declaration
        self.metadata = metadata
        self.config = replace(config) if config is not None else PluginConfig()
        self.config.options = dict(self.config.options)
        self.orchestrator: "Orchestrator | None" = None

    async def initialize(self, orchestrator: "Orchestrator") -> None:
        """Attach the plugin to an orchestrator."""
        self.orchestrator = orchestrator

    async def cleanup(self) -> None:
        """Release plugin state. Called on unregister and shutdown."""
        pass

    def validate(self) -> list[str]:
        """Return validation errors; an empty list means valid."""
        errors = []
        if not self.metadata.name:
            errors.append("Plugin name is required")
        if not self.metadata.version:
            errors.append("Plugin version is required")
        return errors

    @property
    def name(self) -> str:
        return self.metadata.name

    def is_enabled(self) -> bool:
        return self.config.enabled

    def get_priority(self) -> int:
        return self.config.priority

    def get_config(self) -> PluginConfig:
        return replace(self.config, options=dict(self.config.options))

    def update_config(self, **changes: Any) -> None:
        self.config = replace(self.config, **changes)

    def get_option(self, key: str, default: Any = None) -> Any:
        value = self.config.options.get(key)
        return default if value is None else value

    def set_option(self, key: str, value: Any) -> None:
        self.config.options[key] = value

    def hooks(self) -> list[str]:
        """Names of the hooks this plugin implements."""
        return [name for name in HOOK_NAMES if callable(getattr(self, name, None))]

    def __str__(self) -> str:
        return f"{self.metadata.name}@{self.metadata.version}"
