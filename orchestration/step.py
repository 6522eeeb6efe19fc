"""Step - typed unit of work: agent, tool, condition, loop or parallel."""

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from relay_sdk.logging import get_logger

from .exceptions import AgentNotFoundError, AggregateStepError, StepValidationError, ToolNotFoundError
from .models import ExecutionContext, ExecutionStep
from .retry import RetryPolicy

if TYPE_CHECKING:
    from .agent import Agent, AgentResult

Condition = Callable[[ExecutionContext], bool | Awaitable[bool]]


class StepType(str, Enum):
    """Step kinds."""

    AGENT = "agent"
    TOOL = "tool"
    CONDITION = "condition"
    LOOP = "loop"
    PARALLEL = "parallel"


@dataclass
class StepConfig:
    """Declarative description of a step and its nested steps.

    ``on_success``/``on_failure`` name nested steps for condition steps and
    sibling recovery steps for the containing workflow. ``retry`` is carried
    as data only; retries happen inside agents.
    """

    id: str
    type: StepType | str
    name: str = ""
    agent_id: str | None = None
    tool_name: str | None = None
    condition: Condition | None = None
    iterations: int | None = None
    steps: list["StepConfig"] = field(default_factory=list)
    on_success: str | None = None
    on_failure: str | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class OrchestratorFacade(Protocol):
    """What steps need from the orchestrator."""

    def get_agent(self, agent_id: str) -> "Agent | None":
        ...

    def list_agents(self) -> list["Agent"]:
        ...

    async def invoke_agent(self, agent: "Agent", prompt: str, context: ExecutionContext) -> "AgentResult":
        ...


class Step:
    """Executable step built from a StepConfig."""

    def __init__(self, config: StepConfig) -> None:
        try:
            step_type = StepType(config.type)
        except ValueError:
            raise StepValidationError(config.id, f"Unknown step type '{config.type}'") from None

        self.id = config.id
        self.name = config.name or config.id
        self.type = step_type
        self.agent_id = config.agent_id
        self.tool_name = config.tool_name
        self.condition = config.condition
        self.iterations = config.iterations
        self.on_success = config.on_success
        self.on_failure = config.on_failure
        self.retry = config.retry
        self.steps = [Step(child) for child in config.steps]
        self._logger = get_logger("orchestration.step")

    def __repr__(self) -> str:
        return f"Step(id={self.id!r}, type={self.type.value!r})"

    def get_child(self, step_id: str | None) -> "Step | None":
        if step_id is None:
            return None
        return next((child for child in self.steps if child.id == step_id), None)

    async def execute(self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade) -> Any:
        """Run the step and record one ExecutionStep in ``context.history``.

        The record is appended before dispatch and finalized afterwards on
        both the success and the failure path.

        Args:
            input_: Step input
            context: Shared execution context
            orchestrator: Agent lookup and invocation

        Returns:
            The step result

        Raises:
            StepValidationError: If a required field for the type is missing
            NotFoundError: If the referenced agent or tool is not registered
            AggregateStepError: If nested parallel steps failed
        """
        record = ExecutionStep(step_id=self.id, input=input_, agent_id=self.agent_id)
        context.history.append(record)

        self._logger.debug("step_starting", step_id=self.id, type=self.type.value, input_type=type(input_).__name__)

        handlers = {
            StepType.AGENT: self._execute_agent,
            StepType.TOOL: self._execute_tool,
            StepType.CONDITION: self._execute_condition,
            StepType.LOOP: self._execute_loop,
            StepType.PARALLEL: self._execute_parallel,
        }

        try:
            result = await handlers[self.type](input_, context, orchestrator, record)
        except asyncio.CancelledError as exc:
            record.finalize(error=exc)
            raise
        except Exception as exc:
            record.finalize(error=exc)
            self._logger.error("step_failed", step_id=self.id, error=str(exc), duration_ms=record.duration_ms)
            raise

        record.finalize(output=result)
        self._logger.debug("step_completed", step_id=self.id, duration_ms=record.duration_ms)
        return result

    async def _execute_agent(
        self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade, record: ExecutionStep
    ) -> Any:
        if not self.agent_id:
            raise StepValidationError(self.id, "Agent ID required for agent step")

        agent = orchestrator.get_agent(self.agent_id)
        if agent is None:
            raise AgentNotFoundError(self.agent_id)

        prompt = input_ if isinstance(input_, str) else _stringify(input_)
        result = await orchestrator.invoke_agent(agent, prompt, context)

        record.tokens = result.tokens
        record.tool_calls = list(result.tool_calls)
        return result.response

    async def _execute_tool(
        self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade, record: ExecutionStep
    ) -> Any:
        if not self.tool_name:
            raise StepValidationError(self.id, "Tool name required for tool step")

        # first registered agent exposing the tool wins
        for agent in orchestrator.list_agents():
            tool = agent.get_tool(self.tool_name)
            if tool is not None:
                return await tool.invoke(input_, context)

        raise ToolNotFoundError(self.tool_name)

    async def _execute_condition(
        self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade, record: ExecutionStep
    ) -> Any:
        if self.condition is None:
            raise StepValidationError(self.id, "Condition function required for condition step")

        outcome = self.condition(context)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        outcome = bool(outcome)

        branch = self.get_child(self.on_success if outcome else self.on_failure)
        if branch is not None:
            return await branch.execute(input_, context, orchestrator)

        return outcome

    async def _execute_loop(
        self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade, record: ExecutionStep
    ) -> list[Any]:
        if not self.steps:
            raise StepValidationError(self.id, "Loop steps required for loop step")

        iterations = 1 if self.iterations is None else self.iterations
        results: list[Any] = []
        current = input_

        for iteration in range(iterations):
            self._logger.debug("loop_iteration", step_id=self.id, iteration=iteration + 1, iterations=iterations)
            for child in self.steps:
                current = await child.execute(current, context, orchestrator)
            results.append(current)

        return results

    async def _execute_parallel(
        self, input_: Any, context: ExecutionContext, orchestrator: OrchestratorFacade, record: ExecutionStep
    ) -> dict[str, Any]:
        if not self.steps:
            raise StepValidationError(self.id, "Parallel steps required for parallel step")

        outcomes = await asyncio.gather(
            *(child.execute(input_, context, orchestrator) for child in self.steps),
            return_exceptions=True,
        )

        errors = {
            child.id: outcome
            for child, outcome in zip(self.steps, outcomes)
            if isinstance(outcome, BaseException)
        }
        if errors:
            raise AggregateStepError(list(errors), errors, scope="parallel steps")

        return {child.id: outcome for child, outcome in zip(self.steps, outcomes)}


def _stringify(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)
