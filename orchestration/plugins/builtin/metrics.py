"""Agent and workflow metrics via MetricsCollector."""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from orchestration.models import ExecutionContext
from orchestration.observability.metrics import MetricsCollector
from orchestration.plugins.base import AgentInvocation, BasePlugin, PluginConfig, PluginMetadata

if TYPE_CHECKING:
    from orchestration.agent import AgentResult

AGENT_START_KEY = "_metrics_agent_started"
WORKFLOW_START_KEY = "_metrics_workflow_started"


class MetricsPlugin(BasePlugin):
    """Counts executions and errors, times them and records token usage.

    Options:
        collect_agent_metrics, collect_workflow_metrics,
        collect_error_metrics, collect_performance_metrics: all default True
        clock: Monotonic clock in seconds
    """

    metadata = PluginMetadata(
        name="metrics",
        version="1.0.0",
        description="Collects detailed metrics for agents and workflows",
        keywords=("metrics", "observability"),
    )

    def __init__(self, config: PluginConfig | None = None, collector: MetricsCollector | None = None) -> None:
        super().__init__(config=config)
        self.collect_agent_metrics: bool = self.get_option("collect_agent_metrics", True)
        self.collect_workflow_metrics: bool = self.get_option("collect_workflow_metrics", True)
        self.collect_error_metrics: bool = self.get_option("collect_error_metrics", True)
        self.collect_performance_metrics: bool = self.get_option("collect_performance_metrics", True)
        self._clock: Callable[[], float] = self.get_option("clock", time.monotonic)
        self.metrics = collector or MetricsCollector(clock=self._clock)

    # Agents

    async def before_agent_execution(self, invocation: AgentInvocation) -> AgentInvocation:
        if self.collect_agent_metrics:
            self.metrics.increment_counter("agent_executions_started", tags={"agent_id": invocation.agent_id})
            invocation.state[AGENT_START_KEY] = self._clock()
        return invocation

    async def after_agent_execution(self, result: "AgentResult", invocation: AgentInvocation) -> "AgentResult":
        if not self.collect_agent_metrics:
            return result

        tags = {"agent_id": invocation.agent_id}
        self.metrics.increment_counter("agent_executions_completed", tags=tags)

        started = invocation.state.pop(AGENT_START_KEY, None)
        if self.collect_performance_metrics and started is not None:
            self.metrics.record_timer("agent_execution_duration", (self._clock() - started) * 1000, tags)

        if result.tokens is not None:
            self.metrics.record_histogram("agent_tokens_used", result.tokens.total, tags)
            self.metrics.record_histogram("agent_prompt_tokens", result.tokens.prompt, tags)
            self.metrics.record_histogram("agent_completion_tokens", result.tokens.completion, tags)

        return result

    # Workflows

    async def before_workflow_execution(self, context: ExecutionContext, workflow_id: str) -> ExecutionContext:
        if self.collect_workflow_metrics:
            self.metrics.increment_counter("workflow_executions_started", tags={"workflow_id": workflow_id})
            context.metadata[WORKFLOW_START_KEY] = self._clock()
        return context

    async def after_workflow_execution(self, result: Any, context: ExecutionContext) -> Any:
        if not self.collect_workflow_metrics:
            return result

        tags = {"workflow_id": context.workflow_id}
        self.metrics.increment_counter("workflow_executions_completed", tags=tags)

        started = context.metadata.pop(WORKFLOW_START_KEY, None)
        if self.collect_performance_metrics and started is not None:
            self.metrics.record_timer("workflow_execution_duration", (self._clock() - started) * 1000, tags)

        self.metrics.record_histogram("workflow_steps_executed", len(context.history), tags)
        return result

    # Errors

    async def on_agent_error(self, error: BaseException, invocation: AgentInvocation) -> None:
        invocation.state.pop(AGENT_START_KEY, None)
        if self.collect_error_metrics:
            self.metrics.increment_counter(
                "agent_errors", tags={"agent_id": invocation.agent_id, "error_type": type(error).__name__}
            )

    async def on_workflow_error(self, error: BaseException, workflow_id: str, context: ExecutionContext) -> None:
        if self.collect_error_metrics:
            self.metrics.increment_counter(
                "workflow_errors", tags={"workflow_id": workflow_id, "error_type": type(error).__name__}
            )

    async def on_error(self, error: BaseException, context: ExecutionContext) -> None:
        if self.collect_error_metrics:
            self.metrics.increment_counter("total_errors", tags={"error_type": type(error).__name__})

    def export_metrics(self) -> dict[str, Any]:
        return self.metrics.export()

    async def cleanup(self) -> None:
        self.metrics.clear()
