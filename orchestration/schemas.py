"""
Pydantic schemas for agent and workflow definition documents.

Documents may use camelCase keys (``systemPrompt``, ``retryConfig``) or the
snake_case field names. Tools and conditions are referenced by name; the
loader binds them to callables.
"""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DefinitionModel(BaseModel):
    """Base for definition schemas."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RetryConfigSchema(DefinitionModel):
    max_attempts: int = Field(3, alias="maxAttempts", ge=1)
    backoff_ms: int = Field(1000, alias="backoffMs", ge=0)
    backoff_multiplier: float = Field(2.0, alias="backoffMultiplier", gt=0)
    max_backoff_ms: int = Field(30_000, alias="maxBackoffMs", ge=0)


class ModelConfigSchema(DefinitionModel):
    provider: str = Field(..., description="Provider kind, e.g. openrouter or openai")
    model: str = Field(..., description="Model identifier")
    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")
    headers: dict[str, str] = Field(default_factory=dict)
    fallback_models: list[str] = Field(default_factory=list, alias="fallbackModels")


class ToolReference(DefinitionModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class AgentDefinition(DefinitionModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str | None = None
    model: ModelConfigSchema | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    temperature: float = Field(0.7, ge=0)
    max_tokens: int = Field(2048, alias="maxTokens", gt=0)
    tools: list[ToolReference] = Field(default_factory=list)
    retry_config: RetryConfigSchema = Field(default_factory=RetryConfigSchema, alias="retryConfig")
    timeout_ms: int = Field(60_000, alias="timeoutMs", gt=0)

    @field_validator("tools", mode="before")
    @classmethod
    def expand_tool_names(cls, v: Any) -> Any:
        """Allow tools to be listed by bare name."""
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v


class StepDefinition(DefinitionModel):
    id: str = Field(..., min_length=1)
    type: Literal["agent", "tool", "condition", "loop", "parallel"]
    name: str = ""
    agent_id: str | None = Field(default=None, alias="agentId")
    tool_name: str | None = Field(default=None, alias="toolName")
    condition: str | None = Field(default=None, description="Name of a registered condition")
    iterations: int | None = Field(default=None, ge=0)
    steps: list["StepDefinition"] = Field(default_factory=list)
    on_success: str | None = Field(default=None, alias="onSuccess")
    on_failure: str | None = Field(default=None, alias="onFailure")
    retry_config: RetryConfigSchema = Field(default_factory=RetryConfigSchema, alias="retryConfig")


class WorkflowDefinition(DefinitionModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str | None = None
    steps: list[StepDefinition] = Field(default_factory=list)
    parallel: bool = False
    retry_config: RetryConfigSchema = Field(default_factory=RetryConfigSchema, alias="retryConfig")
