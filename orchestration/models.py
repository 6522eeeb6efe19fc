"""Orchestration models - ExecutionContext, ExecutionStep, TokenUsage."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from relay_sdk.utils.datetime import elapsed_ms, utc_now


@dataclass
class TokenUsage:
    """Token accounting reported by a model provider."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class ExecutionStep:
    """History record of one step attempt.

    Created when a step starts and finalized exactly once when it
    completes, on both the success and the failure path.
    """

    step_id: str
    input: Any
    agent_id: str | None = None
    id: str = field(default_factory=lambda: f"step_{uuid.uuid4().hex}")
    output: Any = None
    error: BaseException | None = None
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    duration_ms: int | None = None
    tokens: TokenUsage | None = None
    tool_calls: list[Any] = field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.end_time is not None

    @property
    def succeeded(self) -> bool:
        return self.finalized and self.error is None

    def finalize(self, output: Any = None, error: BaseException | None = None) -> None:
        """Record the outcome and close the record."""
        if self.finalized:
            raise RuntimeError(f"Execution step already finalized: {self.id}")

        self.output = output
        self.error = error
        self.end_time = utc_now()
        self.duration_ms = elapsed_ms(self.start_time, self.end_time)


@dataclass
class ExecutionContext:
    """Per-run state shared by every step, agent and plugin of one execution.

    ``result`` holds the workflow result once the execution completed.
    """

    workflow_id: str
    step_id: str = ""
    variables: dict[str, Any] = field(default_factory=dict)
    history: list[ExecutionStep] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    execution_id: str | None = None
    result: Any = None

    @property
    def failed_steps(self) -> list[ExecutionStep]:
        return [record for record in self.history if record.error is not None]

    def duration_ms(self) -> int:
        """Span from the first recorded step start to the last recorded end."""
        if not self.history:
            return 0
        start = self.history[0].start_time
        end = self.history[-1].end_time
        return elapsed_ms(start, end) if end else 0
