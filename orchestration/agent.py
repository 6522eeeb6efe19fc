"""Agent - binds a model provider, a system prompt, a tool registry and a retry policy."""

import asyncio
import inspect
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from relay_sdk.logging import get_logger
from relay_sdk.utils.datetime import elapsed_ms, utc_now

from .exceptions import AgentTimeoutError
from .models import ExecutionContext, TokenUsage
from .providers.base import Generation, GenerationOptions, ModelConfig, ModelProvider
from .providers.factory import create_provider
from .retry import RetryPolicy, with_retry
from .tool_calls import MarkupToolCallParser, ToolCallParser, ToolCallRecord

ToolHandler = Callable[[Any, ExecutionContext], Any]

HISTORY_WINDOW = 3


@dataclass
class ToolConfig:
    """A named capability an agent can invoke from model output."""

    name: str
    handler: ToolHandler
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    async def invoke(self, params: Any, context: ExecutionContext) -> Any:
        result = self.handler(params, context)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass
class AgentConfig:
    """Construction parameters for an Agent."""

    id: str
    name: str
    model: ModelConfig | None = None
    description: str | None = None
    system_prompt: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    tools: list[ToolConfig] = field(default_factory=list)
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, backoff_ms=1000))
    timeout_ms: int = 60_000


@dataclass
class AgentResult:
    """Outcome of a single agent execution."""

    response: str
    tokens: TokenUsage | None = None
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    cached: bool = False


class Agent:
    """Produces model output for prompts with retry, timeout and tool-call handling.

    The tool registry is the only mutable part. It can change between
    executions; changing it while an execution is scanning tool calls is
    not guarded.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: ModelProvider | None = None,
        tool_call_parser: ToolCallParser | None = None,
    ) -> None:
        """Initialize agent.

        Args:
            config: Agent configuration
            provider: Model provider; built from ``config.model`` when omitted
            tool_call_parser: Extracts tool calls from responses

        Raises:
            ValueError: If neither a provider nor a model config is given
        """
        if provider is None:
            if config.model is None:
                raise ValueError(f"Agent {config.id} needs a provider or a model config")
            provider = create_provider(config.model)

        self.config = config
        self.provider = provider
        self.tool_call_parser = tool_call_parser or MarkupToolCallParser()
        self.tools: dict[str, ToolConfig] = {tool.name: tool for tool in config.tools}
        self._logger = get_logger("orchestration.agent")

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def retry(self) -> RetryPolicy:
        return self.config.retry

    @property
    def timeout_ms(self) -> int:
        return self.config.timeout_ms

    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout_ms=self.config.timeout_ms,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, prompt: str, context: ExecutionContext) -> AgentResult:
        """Generate a response for ``prompt`` and run any requested tools.

        Args:
            prompt: User prompt
            context: Execution context contributing variables and history

        Returns:
            AgentResult with the raw response and tool-call records

        Raises:
            AgentTimeoutError: If the final attempt exceeded ``timeout_ms``
            Exception: The provider error of the final attempt
        """
        started_at = utc_now()
        self._logger.debug("agent_executing", agent_id=self.id, prompt=prompt[:100])

        full_prompt = self.build_prompt(prompt, context)

        def on_retry(attempt: int, error: BaseException) -> None:
            self._logger.warning(
                "agent_attempt_failed",
                agent_id=self.id,
                attempt=attempt,
                max_attempts=self.retry.max_attempts,
                error=str(error),
            )

        try:
            generation = await with_retry(lambda: self._generate_once(full_prompt), self.retry, on_retry)
        except Exception as exc:
            self._logger.error("agent_failed", agent_id=self.id, error=str(exc), duration_ms=elapsed_ms(started_at))
            raise

        response = generation.text
        tokens = generation.tokens or self.estimate_usage(full_prompt, response)
        tool_calls = await self.process_tool_calls(response, context)

        self._logger.info(
            "agent_completed",
            agent_id=self.id,
            duration_ms=elapsed_ms(started_at),
            tool_calls=len(tool_calls),
        )
        return AgentResult(response=response, tokens=tokens, tool_calls=tool_calls)

    async def execute_stream(self, prompt: str, context: ExecutionContext) -> AsyncIterator[str]:
        """Yield response fragments as the provider produces them.

        No retry, timeout or tool-call processing is applied.
        """
        full_prompt = self.build_prompt(prompt, context)
        try:
            async for fragment in self.provider.generate_stream(full_prompt, self.generation_options()):
                yield fragment
        except Exception as exc:
            self._logger.error("agent_stream_failed", agent_id=self.id, error=str(exc))
            raise

    async def _generate_once(self, full_prompt: str) -> Generation:
        try:
            return await asyncio.wait_for(
                self.provider.generate_with_usage(full_prompt, self.generation_options()),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            raise AgentTimeoutError(self.id, self.timeout_ms) from exc

    def estimate_usage(self, full_prompt: str, response: str) -> TokenUsage:
        """Approximate usage for providers that report none."""
        prompt_tokens = self.provider.estimate_tokens(full_prompt)
        completion_tokens = self.provider.estimate_tokens(response)
        return TokenUsage(prompt=prompt_tokens, completion=completion_tokens, total=prompt_tokens + completion_tokens)

    def build_prompt(self, prompt: str, context: ExecutionContext) -> str:
        """Prefix the user prompt with system prompt, variables and recent history."""
        parts: list[str] = []

        if self.config.system_prompt:
            parts.append(f"System: {self.config.system_prompt}\n\n")

        if context.variables:
            parts.append(f"Context Variables:\n{_to_json(context.variables, indent=2)}\n\n")

        if context.history:
            parts.append("Recent History:\n")
            for index, record in enumerate(context.history[-HISTORY_WINDOW:], start=1):
                parts.append(f"{index}. {record.step_id}: {_to_json(record.output)}\n")
            parts.append("\n")

        parts.append(f"User: {prompt}")
        return "".join(parts)

    async def process_tool_calls(self, response: str, context: ExecutionContext) -> list[ToolCallRecord]:
        """Invoke every registered tool requested in ``response``.

        Unknown tool names are skipped. Malformed arguments and handler
        failures are recorded on the call and never fail the agent.
        """
        records: list[ToolCallRecord] = []

        for call in self.tool_call_parser.parse(response):
            tool = self.tools.get(call.name)
            if tool is None:
                continue

            try:
                args = json.loads(call.raw_args)
                result = await tool.invoke(args, context)
                records.append(ToolCallRecord(tool=call.name, args=args, result=result))
            except Exception as exc:
                self._logger.error("tool_failed", agent_id=self.id, tool=call.name, error=str(exc))
                records.append(ToolCallRecord(tool=call.name, error=str(exc)))

        return records

    # ------------------------------------------------------------------
    # Tool management
    # ------------------------------------------------------------------

    def add_tool(self, tool: ToolConfig) -> None:
        self.tools[tool.name] = tool
        self._logger.info("tool_added", agent_id=self.id, tool=tool.name)

    def remove_tool(self, tool_name: str) -> bool:
        removed = self.tools.pop(tool_name, None) is not None
        if removed:
            self._logger.info("tool_removed", agent_id=self.id, tool=tool_name)
        return removed

    def get_tool(self, tool_name: str) -> ToolConfig | None:
        return self.tools.get(tool_name)

    def list_tools(self) -> list[str]:
        return list(self.tools)


def _to_json(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, default=str, ensure_ascii=False)
