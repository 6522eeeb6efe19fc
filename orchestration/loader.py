"""Definition loader - builds AgentConfig and WorkflowConfig from documents."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from relay_sdk.logging import get_logger

from .agent import AgentConfig, ToolConfig, ToolHandler
from .exceptions import StepValidationError
from .providers.base import ModelConfig
from .retry import RetryPolicy
from .schemas import AgentDefinition, RetryConfigSchema, StepDefinition, WorkflowDefinition
from .step import Condition, StepConfig
from .workflow import WorkflowConfig

logger = get_logger("orchestration.loader")


def _retry_policy(schema: RetryConfigSchema) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=schema.max_attempts,
        backoff_ms=schema.backoff_ms,
        backoff_multiplier=schema.backoff_multiplier,
        max_backoff_ms=schema.max_backoff_ms,
    )


def load_agent_config(data: Mapping[str, Any], tools: Mapping[str, ToolHandler] | None = None) -> AgentConfig:
    """Validate an agent document and bind its tools.

    Args:
        data: Agent document
        tools: Tool handlers by tool name

    Raises:
        pydantic.ValidationError: If the document is malformed
        StepValidationError: If a referenced tool has no handler
    """
    definition = AgentDefinition.model_validate(data)
    tools = tools or {}

    tool_configs = []
    for reference in definition.tools:
        handler = tools.get(reference.name)
        if handler is None:
            raise StepValidationError(definition.id, f"No handler for tool '{reference.name}'")
        tool_configs.append(
            ToolConfig(
                name=reference.name,
                handler=handler,
                description=reference.description,
                parameters=reference.parameters,
            )
        )

    model = None
    if definition.model is not None:
        model = ModelConfig(**definition.model.model_dump())

    return AgentConfig(
        id=definition.id,
        name=definition.name,
        model=model,
        description=definition.description,
        system_prompt=definition.system_prompt,
        temperature=definition.temperature,
        max_tokens=definition.max_tokens,
        tools=tool_configs,
        retry=_retry_policy(definition.retry_config),
        timeout_ms=definition.timeout_ms,
    )


def _step_config(definition: StepDefinition, conditions: Mapping[str, Condition]) -> StepConfig:
    condition = None
    if definition.condition is not None:
        condition = conditions.get(definition.condition)
        if condition is None:
            raise StepValidationError(definition.id, f"Unknown condition '{definition.condition}'")

    return StepConfig(
        id=definition.id,
        type=definition.type,
        name=definition.name,
        agent_id=definition.agent_id,
        tool_name=definition.tool_name,
        condition=condition,
        iterations=definition.iterations,
        steps=[_step_config(child, conditions) for child in definition.steps],
        on_success=definition.on_success,
        on_failure=definition.on_failure,
        retry=_retry_policy(definition.retry_config),
    )


def load_workflow_config(
    data: Mapping[str, Any], conditions: Mapping[str, Condition] | None = None
) -> WorkflowConfig:
    """Validate a workflow document and bind its named conditions.

    Raises:
        pydantic.ValidationError: If the document is malformed
        StepValidationError: If a referenced condition is not supplied
    """
    definition = WorkflowDefinition.model_validate(data)
    conditions = conditions or {}

    return WorkflowConfig(
        id=definition.id,
        name=definition.name,
        steps=[_step_config(step, conditions) for step in definition.steps],
        description=definition.description,
        parallel=definition.parallel,
        retry=_retry_policy(definition.retry_config),
    )


def _read_json(path: str | Path) -> Any:
    path = Path(path)
    logger.debug("loading_definition", path=str(path))
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def load_agent_file(path: str | Path, tools: Mapping[str, ToolHandler] | None = None) -> AgentConfig:
    return load_agent_config(_read_json(path), tools)


def load_workflow_file(path: str | Path, conditions: Mapping[str, Condition] | None = None) -> WorkflowConfig:
    return load_workflow_config(_read_json(path), conditions)
