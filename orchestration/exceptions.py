"""
Orchestration exceptions.

Every error raised by the engine derives from OrchestrationError.
"""
from collections.abc import Mapping, Sequence


class OrchestrationError(Exception):
    """Base exception for the orchestration engine."""
    pass


class NotFoundError(OrchestrationError):
    """Raised when a referenced workflow, agent or tool is not registered."""
    pass


class WorkflowNotFoundError(NotFoundError):
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent not found: {agent_id}")


class ToolNotFoundError(NotFoundError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class StepValidationError(OrchestrationError):
    """Raised when a step is missing a field its type requires."""

    def __init__(self, step_id: str, message: str):
        self.step_id = step_id
        super().__init__(f"{message}: {step_id}")


class MaxConcurrentExecutionsError(OrchestrationError):
    """Raised by admission control when the in-flight cap is reached."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum concurrent executions reached ({limit})")


class OrchestrationTimeoutError(OrchestrationError):
    """Base for budget overruns."""

    def __init__(self, message: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(message)


class ExecutionTimeoutError(OrchestrationTimeoutError):
    def __init__(self, execution_id: str, timeout_ms: int):
        self.execution_id = execution_id
        super().__init__(f"Execution timeout after {timeout_ms}ms: {execution_id}", timeout_ms)


class AgentTimeoutError(OrchestrationTimeoutError):
    def __init__(self, agent_id: str, timeout_ms: int):
        self.agent_id = agent_id
        super().__init__(f"Agent execution timeout after {timeout_ms}ms: {agent_id}", timeout_ms)


class AggregateStepError(OrchestrationError):
    """One or more concurrently executed steps failed.

    Succeeded siblings are not rolled back; ``errors`` maps each failed
    step id to the exception it raised.
    """

    def __init__(self, failed_step_ids: Sequence[str], errors: Mapping[str, BaseException], scope: str = "steps"):
        self.failed_step_ids = list(failed_step_ids)
        self.errors = dict(errors)
        super().__init__(
            f"{len(self.failed_step_ids)} {scope} failed: {', '.join(self.failed_step_ids)}"
        )


class PluginError(OrchestrationError):
    """Raised for plugin registration and validation problems."""
    pass


class HookAbortError(OrchestrationError):
    """A hook error that aborts the hook pipeline whatever the hook name."""
    pass


class RateLimitExceededError(HookAbortError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Rate limit exceeded for {key}")
