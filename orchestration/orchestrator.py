"""Orchestrator - registries, admission control, timeouts and the plugin hook pipeline."""

import asyncio
import dataclasses
import uuid
from collections.abc import Mapping
from typing import Any

from core.settings import OrchestratorSettings, get_app_settings
from relay_sdk.logging import get_logger, set_default_level
from relay_sdk.utils.datetime import elapsed_ms, utc_now

from .agent import Agent, AgentConfig, AgentResult
from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .exceptions import ExecutionTimeoutError, MaxConcurrentExecutionsError, WorkflowNotFoundError
from .models import ExecutionContext
from .plugins.base import AgentInvocation, BasePlugin, PluginConfig
from .plugins.manager import PluginManager
from .plugins.registry import PluginRegistry, default_registry
from .providers.base import ModelProvider
from .workflow import Workflow, WorkflowConfig


class Orchestrator:
    """Entry point for running workflows.

    Holds the agent and workflow registries, caps the number of in-flight
    executions, bounds each execution by a timeout and runs plugin hooks at
    the orchestrator, registration, workflow and agent boundaries.
    """

    def __init__(
        self,
        settings: OrchestratorSettings | None = None,
        plugin_manager: PluginManager | None = None,
        event_bus: EventBusProtocol | None = None,
        registry: PluginRegistry | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            settings: Runtime limits; loaded from the environment when omitted
            plugin_manager: Hook pipeline; a new one is created when omitted
            event_bus: Lifecycle event sink; in-memory when omitted
            registry: Plugin classes available to ``use_plugin``; the built-ins when omitted
        """
        self.settings = settings or get_app_settings().orchestrator
        set_default_level(self.settings.log_level)

        self.plugin_manager = plugin_manager or PluginManager(max_plugins=self.settings.max_plugins)
        self.event_bus = event_bus or InMemoryEventBus()
        self.plugin_registry = registry if registry is not None else default_registry()
        self._agents: dict[str, Agent] = {}
        self._workflows: dict[str, Workflow] = {}
        self._active: dict[str, ExecutionContext] = {}
        self._finished: dict[str, asyncio.Event] = {}
        self._initialized = False
        self._logger = get_logger("orchestration.orchestrator")

    async def initialize(self) -> None:
        """Attach the plugin manager and run the orchestrator lifecycle hooks. Idempotent."""
        if self._initialized:
            return

        await self.plugin_manager.initialize(self)
        await self.plugin_manager.execute_hook("before_orchestrator", self)
        self._initialized = True
        await self.plugin_manager.execute_hook("after_orchestrator", self)

        self._logger.info("orchestrator_initialized", plugins=len(self.plugin_manager.list_plugins()))

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    def register_agent(self, agent: Agent) -> None:
        """Add ``agent`` to the registry, replacing any agent with the same id."""
        self._agents[agent.id] = agent
        self._logger.info("agent_registered", agent_id=agent.id, name=agent.name)

    async def create_agent(self, config: AgentConfig, provider: ModelProvider | None = None) -> Agent:
        """Build and register an agent, running the agent registration hooks."""
        config = await self.plugin_manager.execute_hook("before_agent_registration", config)
        agent = Agent(config, provider=provider)
        self.register_agent(agent)
        await self.plugin_manager.execute_hook("after_agent_registration", config)
        await self._publish("agent.registered", {"agent_id": agent.id, "name": agent.name})
        return agent

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[Agent]:
        return list(self._agents.values())

    def register_workflow(self, workflow: Workflow) -> None:
        """Add ``workflow`` to the registry, replacing any workflow with the same id."""
        self._workflows[workflow.id] = workflow
        self._logger.info("workflow_registered", workflow_id=workflow.id, steps=len(workflow.steps))

    async def create_workflow(self, config: WorkflowConfig) -> Workflow:
        """Build and register a workflow, running the workflow registration hooks."""
        config = await self.plugin_manager.execute_hook("before_workflow_registration", config)
        workflow = Workflow(config)
        self.register_workflow(workflow)
        await self.plugin_manager.execute_hook("after_workflow_registration", config)
        await self._publish("workflow.registered", {"workflow_id": workflow.id, "name": workflow.name})
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    def list_workflows(self) -> list[Workflow]:
        return list(self._workflows.values())

    async def add_plugin(self, plugin: BasePlugin) -> None:
        """Register ``plugin`` in the hook pipeline, initializing it with this orchestrator.

        The first plugin added to an uninitialized orchestrator triggers
        ``initialize()``, so it also sees the orchestrator lifecycle hooks.
        """
        await self.plugin_manager.register_plugin(plugin)
        self._logger.info("plugin_added", plugin=plugin.name, version=plugin.metadata.version)

        if not self._initialized:
            await self.initialize()

        await self._publish("plugin.added", {"name": plugin.name, "version": plugin.metadata.version})

    async def use_plugin(self, name: str, config: PluginConfig | None = None) -> BasePlugin:
        """Instantiate a plugin from the registry by name and add it.

        Raises:
            PluginError: If no plugin class is registered under ``name``
        """
        plugin = self.plugin_registry.create(name, config)
        await self.add_plugin(plugin)
        return plugin

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        workflow_id: str,
        input: Any = None,
        *,
        timeout_ms: int | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> ExecutionContext:
        """Run a registered workflow.

        Args:
            workflow_id: Registered workflow id
            input: Workflow input; mapping keys are also exposed as variables
            timeout_ms: Execution budget; defaults to ``settings.default_timeout_ms``
            metadata: Initial context metadata (e.g. ``user_id``)

        Returns:
            The execution context with ``result`` set

        Raises:
            WorkflowNotFoundError: If the workflow is not registered
            ValueError: If ``timeout_ms`` is not positive
            MaxConcurrentExecutionsError: If the in-flight cap is reached
            ExecutionTimeoutError: If the budget is exceeded
            Exception: The workflow's error, after the error hooks ran. The
                context is attached to it as ``execution_context``.
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        limit = self.settings.max_concurrent_executions
        if len(self._active) >= limit:
            raise MaxConcurrentExecutionsError(limit)

        if timeout_ms is None:
            timeout_ms = self.settings.default_timeout_ms
        elif timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")
        execution_id = f"exec_{uuid.uuid4().hex}"
        variables: dict[str, Any] = {"input": input}
        if isinstance(input, Mapping):
            variables.update(input)

        context = ExecutionContext(
            workflow_id=workflow_id,
            variables=variables,
            metadata=dict(metadata or {}),
            execution_id=execution_id,
        )
        self._active[execution_id] = context
        finished = self._finished[execution_id] = asyncio.Event()
        started_at = utc_now()

        try:
            self._logger.info("execution_started", execution_id=execution_id, workflow_id=workflow_id)
            await self._publish("execution.started", {"workflow_id": workflow_id}, context)

            try:
                context = await asyncio.wait_for(self._run_workflow(workflow, context), timeout=timeout_ms / 1000)
            except asyncio.TimeoutError as exc:
                raise ExecutionTimeoutError(execution_id, timeout_ms) from exc

        except Exception as exc:
            self._logger.error(
                "execution_failed",
                execution_id=execution_id,
                workflow_id=workflow_id,
                error=str(exc),
                duration_ms=elapsed_ms(started_at),
            )
            context = self._attach_context(exc, context).execution_context
            try:
                await self.plugin_manager.execute_hook("on_workflow_error", exc, workflow_id, context)
                await self.plugin_manager.execute_hook("on_error", exc, context)
            finally:
                await self._publish(
                    "execution.failed",
                    {"workflow_id": workflow_id, "error": str(exc), "error_type": type(exc).__name__},
                    context,
                )
            raise

        finally:
            self._active.pop(execution_id, None)
            self._finished.pop(execution_id, None)
            finished.set()

        self._logger.info(
            "execution_completed",
            execution_id=execution_id,
            workflow_id=workflow_id,
            steps=len(context.history),
            duration_ms=elapsed_ms(started_at),
        )
        await self._publish("execution.completed", {"workflow_id": workflow_id, "steps": len(context.history)}, context)
        return context

    async def _run_workflow(self, workflow: Workflow, context: ExecutionContext) -> ExecutionContext:
        hooks = self.plugin_manager
        context = await hooks.execute_hook("before_workflow_execution", context, workflow.id)
        context = await hooks.execute_hook("before_step", context)
        self._active[context.execution_id] = context

        try:
            result = await workflow.execute(context, self)
        except Exception as exc:
            raise self._attach_context(exc, context)

        result = await hooks.execute_hook("after_step", result, context)
        context.result = await hooks.execute_hook("after_workflow_execution", result, context)
        return context

    @staticmethod
    def _attach_context(exc: Exception, context: ExecutionContext) -> Exception:
        if getattr(exc, "execution_context", None) is None:
            exc.execution_context = context
        return exc

    async def invoke_agent(self, agent: Agent, prompt: str, context: ExecutionContext) -> AgentResult:
        """Execute ``agent`` through the agent execution hooks.

        A ``before_agent_execution`` hook may serve a cached result, in which
        case the agent is not called and the result is marked ``cached``.
        """
        hooks = self.plugin_manager
        invocation = AgentInvocation(agent_id=agent.id, prompt=prompt, context=context)
        invocation = await hooks.execute_hook("before_agent_execution", invocation)

        if invocation.cached_result is not None:
            self._logger.debug("agent_result_cached", agent_id=agent.id)
            result = dataclasses.replace(invocation.cached_result, cached=True)
        else:
            try:
                result = await agent.execute(invocation.prompt, invocation.context)
            except Exception as exc:
                await hooks.execute_hook("on_agent_error", exc, invocation)
                raise

        return await hooks.execute_hook("after_agent_execution", result, invocation)

    async def emit_custom_event(self, event_name: str, data: Any = None) -> None:
        """Run the ``on_custom_event`` hooks."""
        await self.plugin_manager.execute_hook("on_custom_event", event_name, data)

    def get_active_executions(self) -> list[str]:
        return list(self._active)

    def get_execution_context(self, execution_id: str) -> ExecutionContext | None:
        return self._active.get(execution_id)

    async def shutdown(self) -> None:
        """Wait for in-flight executions up to the grace window, then release everything.

        Executions still running after the grace window are not cancelled;
        they are only dropped from the in-flight registry.
        """
        pending = list(self._finished.values())
        if pending:
            grace_ms = self.settings.shutdown_grace_ms
            self._logger.info("waiting_for_executions", count=len(pending), grace_ms=grace_ms)
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(event.wait() for event in pending)),
                    timeout=grace_ms / 1000,
                )
            except asyncio.TimeoutError:
                self._logger.warning("shutdown_grace_elapsed", still_running=len(self._active))

        self._active.clear()
        self._finished.clear()
        await self.plugin_manager.shutdown()
        self._initialized = False

        self._logger.info("orchestrator_shutdown")
        await self._publish("orchestrator.shutdown", {})

    async def _publish(self, name: str, payload: dict[str, object], context: ExecutionContext | None = None) -> None:
        metadata = EventMetadata(
            execution_id=context.execution_id if context else None,
            workflow_id=context.workflow_id if context else None,
        )
        await self.event_bus.publish(Event(name=name, payload=payload, metadata=metadata))
