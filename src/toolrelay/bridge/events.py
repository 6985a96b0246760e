"""Realtime conversation wire messages."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from toolrelay.tools.base import ToolCall

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolrelay.tools.base import ToolDefinition

SESSION_CREATED = "session.created"
SESSION_UPDATE = "session.update"
CONVERSATION_ITEM_CREATE = "conversation.item.create"
RESPONSE_CREATE = "response.create"
FUNCTION_CALL = "function_call"
FUNCTION_CALL_OUTPUT = "function_call_output"


def session_update(definitions: Iterable[ToolDefinition]) -> dict[str, Any]:
    """Session configuration offering *definitions* to the AI."""
    return {
        "type": SESSION_UPDATE,
        "session": {
            "tools": [d.to_session_tool() for d in definitions],
            "tool_choice": "auto",
        },
    }


def function_call_output(call_id: str, output: str) -> dict[str, Any]:
    """Record a function result in the conversation."""
    return {
        "type": CONVERSATION_ITEM_CREATE,
        "item": {
            "type": FUNCTION_CALL_OUTPUT,
            "call_id": call_id,
            "output": output,
        },
    }


def response_create() -> dict[str, Any]:
    """Ask the AI to continue generating after a function result."""
    return {"type": RESPONSE_CREATE}


def extract_function_call(event: dict[str, Any]) -> ToolCall | None:
    """Return the function call carried by a ``response`` event, if any."""
    response = event.get("response")
    if not isinstance(response, dict):
        return None
    output = response.get("output")
    if not isinstance(output, list):
        return None
    for item in output:
        if isinstance(item, dict) and item.get("type") == FUNCTION_CALL:
            arguments = item.get("arguments") or ""
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            return ToolCall(
                call_id=str(item.get("call_id") or ""),
                name=str(item.get("name") or ""),
                arguments=arguments,
            )
    return None
