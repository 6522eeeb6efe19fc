"""Orchestration layer - agents, workflows and plugins behind one orchestrator."""

from .agent import Agent, AgentConfig, AgentResult, ToolConfig
from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .exceptions import (
    AgentNotFoundError,
    AgentTimeoutError,
    AggregateStepError,
    ExecutionTimeoutError,
    HookAbortError,
    MaxConcurrentExecutionsError,
    NotFoundError,
    OrchestrationError,
    OrchestrationTimeoutError,
    PluginError,
    RateLimitExceededError,
    StepValidationError,
    ToolNotFoundError,
    WorkflowNotFoundError,
)
from .loader import load_agent_config, load_agent_file, load_workflow_config, load_workflow_file
from .models import ExecutionContext, ExecutionStep, TokenUsage
from .orchestrator import Orchestrator
from .retry import RetryPolicy, is_retryable_error, with_retry
from .step import Step, StepConfig, StepType
from .tool_calls import MarkupToolCallParser, ToolCallRecord
from .workflow import Workflow, WorkflowConfig

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentNotFoundError",
    "AgentResult",
    "AgentTimeoutError",
    "AggregateStepError",
    "Event",
    "EventBusProtocol",
    "EventMetadata",
    "ExecutionContext",
    "ExecutionStep",
    "ExecutionTimeoutError",
    "HookAbortError",
    "InMemoryEventBus",
    "MarkupToolCallParser",
    "MaxConcurrentExecutionsError",
    "NotFoundError",
    "OrchestrationError",
    "OrchestrationTimeoutError",
    "Orchestrator",
    "PluginError",
    "RateLimitExceededError",
    "RetryPolicy",
    "Step",
    "StepConfig",
    "StepType",
    "StepValidationError",
    "TokenUsage",
    "ToolCallRecord",
    "ToolConfig",
    "ToolNotFoundError",
    "Workflow",
    "WorkflowConfig",
    "WorkflowNotFoundError",
    "is_retryable_error",
    "load_agent_config",
    "load_agent_file",
    "load_workflow_config",
    "load_workflow_file",
    "with_retry",
]
