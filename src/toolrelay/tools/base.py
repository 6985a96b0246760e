"""Tool protocol and data types.

Defines the ``Tool`` protocol that all tool implementations must
satisfy, plus data classes for tool calls, results, and definitions.

``ToolResult.content`` is always a serialized JSON document: the
conversation transport only accepts string payloads.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Literal, Protocol, runtime_checkable

ToolStatus = Literal["success", "error"]


def _reject_constant(name: str) -> Any:
    msg = f"Non-standard JSON constant: {name}"
    raise ValueError(msg)


def loads_strict(text: str | bytes) -> Any:
    """Decode standard JSON only. ``NaN`` and ``Infinity`` raise ``ValueError``."""
    return json.loads(text, parse_constant=_reject_constant)


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Schema definition for a tool, sent verbatim to the AI service."""

    name: str
    description: str
    parameters_schema: dict[str, Any]

    def to_session_tool(self) -> dict[str, Any]:
        """Render as an entry of the ``session.update`` ``tools`` list."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema,
        }


@dataclass(frozen=True, slots=True)
class ToolCall:
    """An in-flight function call issued by the AI.

    ``arguments`` is the raw JSON string as received on the wire.
    """

    call_id: str
    name: str
    arguments: str = ""


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result from executing a tool.

    The constructors raise ``ValueError`` for payloads holding ``NaN`` or
    infinities, which have no JSON spelling.
    """

    status: ToolStatus
    content: str

    @classmethod
    def success(cls, payload: Any) -> ToolResult:
        """Build a success result, serializing *payload* to JSON."""
        return cls(status="success", content=json.dumps(payload, allow_nan=False))

    @classmethod
    def error(cls, payload: Any) -> ToolResult:
        """Build an error result, serializing *payload* to JSON."""
        return cls(status="error", content=json.dumps(payload, allow_nan=False))

    @property
    def is_error(self) -> bool:
        return self.status == "error"


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's parameters."""
        ...

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        """Capability flags that must all be true for the tool to be offered."""
        ...

    def execute(self, **kwargs: Any) -> ToolResult | Awaitable[ToolResult]:
        """Execute the tool with the given arguments.

        May be a plain function or a coroutine function; the dispatch
        engine awaits both shapes uniformly.
        """
        ...


def definition_of(tool: Tool) -> ToolDefinition:
    """Return the :class:`ToolDefinition` describing *tool*."""
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters_schema=tool.parameters_schema,
    )
