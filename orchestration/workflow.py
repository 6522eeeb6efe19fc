"""Workflow definitions - WorkflowConfig and Workflow."""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Any

from relay_sdk.logging import get_logger
from relay_sdk.utils.datetime import elapsed_ms, utc_now

from .exceptions import AggregateStepError
from .models import ExecutionContext
from .retry import RetryPolicy
from .step import OrchestratorFacade, Step, StepConfig


@dataclass
class WorkflowConfig:
    """Definition of a workflow.

    ``retry`` is declared for completeness; workflow execution does not
    consult it.
    """

    id: str
    name: str
    steps: list[StepConfig] = field(default_factory=list)
    description: str | None = None
    parallel: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class Workflow:
    """Ordered (sequential) or fan-out (parallel) collection of steps.

    Step management methods are meant for build time; they are not safe
    while the same workflow instance is executing.
    """

    def __init__(self, config: WorkflowConfig) -> None:
        self.id = config.id
        self.name = config.name
        self.description = config.description
        self.parallel = config.parallel
        self.retry = config.retry
        self.steps = [Step(step_config) for step_config in config.steps]
        self._logger = get_logger("orchestration.workflow")

    async def execute(self, context: ExecutionContext, orchestrator: OrchestratorFacade) -> Any:
        """Run the workflow against ``context``.

        Args:
            context: Execution context; ``variables["input"]`` seeds the run
            orchestrator: Agent lookup and invocation for steps

        Returns:
            Sequential mode: the last step's result.
            Parallel mode: mapping of step id to result.
        """
        started_at = utc_now()
        self._logger.info(
            "workflow_starting",
            workflow_id=self.id,
            step_count=len(self.steps),
            parallel=self.parallel,
        )

        try:
            if self.parallel:
                result = await self._execute_parallel(context, orchestrator)
            else:
                result = await self._execute_sequential(context, orchestrator)
        except Exception as exc:
            self._logger.error(
                "workflow_failed",
                workflow_id=self.id,
                error=str(exc),
                duration_ms=elapsed_ms(started_at),
                completed_steps=len(context.history),
            )
            raise

        self._logger.info(
            "workflow_finished",
            workflow_id=self.id,
            duration_ms=elapsed_ms(started_at),
            steps=len(context.history),
        )
        return result

    async def _execute_sequential(self, context: ExecutionContext, orchestrator: OrchestratorFacade) -> Any:
        last_result = context.variables.get("input")

        for step in self.steps:
            context.step_id = step.id
            try:
                last_result = await step.execute(last_result, context, orchestrator)
            except Exception as exc:
                recovery = self.get_step(step.on_failure) if step.on_failure else None
                if recovery is None:
                    raise

                self._logger.warning(
                    "step_recovering",
                    workflow_id=self.id,
                    step_id=step.id,
                    recovery_step_id=recovery.id,
                    error=str(exc),
                )
                # recovery step receives the error as its input
                context.step_id = recovery.id
                last_result = await recovery.execute(exc, context, orchestrator)
                context.variables[recovery.id] = last_result
                continue

            context.variables[step.id] = last_result

        return last_result

    async def _execute_parallel(self, context: ExecutionContext, orchestrator: OrchestratorFacade) -> dict[str, Any]:
        workflow_input = context.variables.get("input")

        async def run_branch(step: Step) -> Any:
            # branches share variables, history and metadata but track their own step id
            branch_context = dataclasses.replace(context, step_id=step.id)
            result = await step.execute(workflow_input, branch_context, orchestrator)
            context.variables[step.id] = result
            return result

        outcomes = await asyncio.gather(*(run_branch(step) for step in self.steps), return_exceptions=True)

        errors = {
            step.id: outcome
            for step, outcome in zip(self.steps, outcomes)
            if isinstance(outcome, BaseException)
        }
        if errors:
            raise AggregateStepError(list(errors), errors)

        return {step.id: outcome for step, outcome in zip(self.steps, outcomes)}

    # ------------------------------------------------------------------
    # Step management
    # ------------------------------------------------------------------

    def add_step(self, step_config: StepConfig, position: int | None = None) -> Step:
        step = Step(step_config)
        if position is not None and 0 <= position <= len(self.steps):
            self.steps.insert(position, step)
        else:
            self.steps.append(step)
            position = len(self.steps) - 1

        self._logger.info("step_added", workflow_id=self.id, step_id=step.id, position=position)
        return step

    def remove_step(self, step_id: str) -> bool:
        step = self.get_step(step_id)
        if step is None:
            return False
        self.steps.remove(step)
        self._logger.info("step_removed", workflow_id=self.id, step_id=step_id)
        return True

    def get_step(self, step_id: str | None) -> Step | None:
        return next((step for step in self.steps if step.id == step_id), None)

    def list_steps(self) -> list[str]:
        return [step.id for step in self.steps]
