"""Tool-call extraction from free-text model output."""

import re
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class ParsedToolCall:
    """A tool invocation found in model output, arguments still unparsed."""

    name: str
    raw_args: str


@dataclass
class ToolCallRecord:
    """Outcome of one tool invocation requested by a model."""

    tool: str
    args: Any = None
    result: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ToolCallParser(Protocol):
    """Extracts tool invocations from a model response."""

    def parse(self, text: str) -> list[ParsedToolCall]:
        ...


class MarkupToolCallParser:
    """Parses ``[TOOL:<name>]<json-args>[/TOOL]`` markers.

    Bodies match non-greedily across newlines; nested markers and escaping
    are not supported.
    """

    PATTERN = re.compile(r"\[TOOL:(\w+)\](.*?)\[/TOOL\]", re.DOTALL)

    def parse(self, text: str) -> list[ParsedToolCall]:
        return [ParsedToolCall(name=m.group(1), raw_args=m.group(2)) for m in self.PATTERN.finditer(text)]
