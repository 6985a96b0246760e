"""Dispatch engine — binds AI function calls to registered tools.

Single active slot state machine::

    IDLE --(function call with a new call_id)--> DISPATCHING --(result sent)--> IDLE

A call whose ``call_id`` matches the current active call is a
redelivery and is ignored. Every dispatched call produces exactly one
``function_call_output`` + ``response.create`` pair, including when the
arguments fail to parse or the handler raises. Calls naming an unknown
tool are dropped (logged) unless ``reply_to_unknown_tools`` is set.
"""

from __future__ import annotations

import enum
import inspect
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from toolrelay.bridge.events import (
    SESSION_CREATED,
    extract_function_call,
    session_update,
)
from toolrelay.bridge.transport import ConversationBridge
from toolrelay.core.errors import ArgumentParseError, UnknownToolError
from toolrelay.tools.base import ToolResult, loads_strict

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Awaitable, Callable

    from toolrelay.bridge.transport import ConversationTransport
    from toolrelay.storage.history import ToolCallHistory
    from toolrelay.tools.base import Tool, ToolCall, ToolStatus
    from toolrelay.tools.capabilities import CapabilitySnapshot
    from toolrelay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class DispatchState(enum.Enum):
    """States of the single dispatch slot."""

    IDLE = "idle"
    DISPATCHING = "dispatching"


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """A settled tool call, handed to renderers and the history sink.

    ``data`` is the parsed result content, or the raw string when the
    content is not valid JSON.
    """

    call: ToolCall
    arguments: dict[str, Any]
    result: ToolResult
    data: Any
    status: ToolStatus


def parse_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode function call arguments; blank means no arguments.

    Raises:
        ArgumentParseError: Malformed JSON, ``NaN``/``Infinity``, or a
            non-object document.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or not raw.strip():
        return {}
    try:
        args = loads_strict(raw)
    except ValueError as e:
        raise ArgumentParseError(str(e)) from e
    if not isinstance(args, dict):
        msg = f"Arguments must be a JSON object, got {type(args).__name__}"
        raise ArgumentParseError(msg)
    return args


def parse_content(content: str) -> Any:
    """Parse result content for display, falling back to the raw string."""
    try:
        return json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return content


def classify_status(tool_name: str, result: ToolResult, data: Any) -> ToolStatus:
    """History status for a settled call."""
    if result.is_error:
        return "error"
    if isinstance(data, dict) and ("error" in data or data.get("status") == "error"):
        return "error"
    if isinstance(data, str):
        lowered = data.lower()
        if "error" in lowered or "fail" in lowered or "exception" in lowered:
            return "error"
    if tool_name == "webhook_call" and "error" in result.content.lower():
        return "error"
    return "success"


class DispatchEngine:
    """Watches inbound conversation events and dispatches function calls."""

    def __init__(
        self,
        registry: ToolRegistry,
        transport: ConversationTransport,
        *,
        history: ToolCallHistory | None = None,
        on_outcome: Callable[[ToolOutcome], Awaitable[None] | None] | None = None,
        reply_to_unknown_tools: bool = False,
    ) -> None:
        self._registry = registry
        self._bridge = ConversationBridge(transport)
        self._history = history
        self._on_outcome = on_outcome
        self._reply_to_unknown = reply_to_unknown_tools

        self._state = DispatchState.IDLE
        self._active: ToolCall | None = None
        self._session_configured = False
        self._tools_stale = False

        self._unsubscribe: Callable[[], None] | None = None
        if registry.capabilities is not None:
            self._unsubscribe = registry.capabilities.subscribe(
                self._on_capabilities_changed
            )

    # ── State ────────────────────────────────────────────────────

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def active_call(self) -> ToolCall | None:
        """The most recently accepted call, kept after completion."""
        return self._active

    def close(self) -> None:
        """Stop listening for capability changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── Session setup ────────────────────────────────────────────

    def session_update_event(self) -> dict[str, Any]:
        """The ``session.update`` message for the currently enabled tools."""
        return session_update(self._registry.list_enabled_definitions())

    async def configure_session(self) -> None:
        """Offer the enabled tools to the AI."""
        definitions = self._registry.list_enabled_definitions()
        logger.info(
            "Configuring session with tools: %s",
            ", ".join(d.name for d in definitions) or "(none)",
        )
        await self._bridge.send_session_update(definitions)
        self._session_configured = True
        self._tools_stale = False

    def _on_capabilities_changed(self, snapshot: CapabilitySnapshot) -> None:
        logger.debug("Capabilities changed: %s", dict(snapshot))
        self._tools_stale = True

    # ── Event handling ───────────────────────────────────────────

    async def run(self, events: AsyncIterable[dict[str, Any]]) -> None:
        """Consume inbound events until the stream ends.

        Events are handled one at a time, so a new call waits for the
        in-flight one to finish.
        """
        async for event in events:
            await self.handle_event(event)

    async def handle_event(self, event: dict[str, Any]) -> ToolOutcome | None:
        """Process one inbound event. Returns the outcome if a tool ran."""
        if self._tools_stale and self._session_configured:
            await self.configure_session()

        if event.get("type") == SESSION_CREATED:
            await self.configure_session()
            return None

        call = extract_function_call(event)
        if call is None:
            return None
        return await self.dispatch(call)

    async def dispatch(self, call: ToolCall) -> ToolOutcome | None:
        """Run *call* and send its result. Returns None if the call was skipped."""
        if not call.call_id:
            return None
        if self._active is not None and self._active.call_id == call.call_id:
            logger.debug("Ignoring duplicate function call %s", call.call_id)
            return None

        try:
            tool: Tool | None = self._registry.get(call.name)
        except UnknownToolError:
            logger.warning("Unknown function call received: %s", call.name)
            if not self._reply_to_unknown:
                return None
            tool = None

        logger.info("Processing function call: %s (%s)", call.name, call.call_id)
        self._active = call
        self._state = DispatchState.DISPATCHING
        try:
            arguments, result = await self._execute(tool, call)
            data = parse_content(result.content)
            outcome = ToolOutcome(
                call=call,
                arguments=arguments,
                result=result,
                data=data,
                status=classify_status(call.name, result, data),
            )
            await self._publish(outcome)
            try:
                await self._bridge.send_function_result(call.call_id, result.content)
            except Exception:
                logger.exception("Failed to send result for %s", call.call_id)
        finally:
            self._state = DispatchState.IDLE
        logger.info("Function call %s settled: %s", call.call_id, outcome.status)
        return outcome

    async def _execute(
        self, tool: Tool | None, call: ToolCall
    ) -> tuple[dict[str, Any], ToolResult]:
        """Run the handler, converting every failure into an error result."""
        try:
            arguments = parse_arguments(call.arguments)
        except ArgumentParseError as e:
            logger.warning("Failed to parse arguments for %s: %s", call.name, e)
            return {}, ToolResult.error({"message": f"Argument parsing error: {e}"})

        if tool is None:
            message = f"Unknown tool: {call.name}"
            return arguments, ToolResult.error({"message": message})

        try:
            result = tool.execute(**arguments)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, ToolResult):
                msg = f"Tool {call.name} returned {type(result).__name__}"
                raise TypeError(msg)
        except Exception as e:
            logger.warning("%s execution failed: %s", call.name, e, exc_info=True)
            message = str(e) or f"Tool {call.name} failed"
            return arguments, ToolResult.error({"message": message})
        return arguments, result

    async def _publish(self, outcome: ToolOutcome) -> None:
        """Hand the outcome to the history sink and renderer.

        Failures here are logged; they never block the result send.
        """
        if self._history is not None:
            try:
                await self._history.append(history_record(outcome))
            except Exception:
                logger.exception("Error saving tool call history")
        if self._on_outcome is not None:
            try:
                rendered = self._on_outcome(outcome)
                if inspect.isawaitable(rendered):
                    await rendered
            except Exception:
                logger.exception("Error rendering %s result", outcome.call.name)


def history_record(outcome: ToolOutcome) -> dict[str, Any]:
    """Build the history entry for *outcome*."""
    method = ""
    endpoint = ""
    if outcome.call.name == "webhook_call":
        method = str(outcome.arguments.get("method") or "GET")
        endpoint = str(outcome.arguments.get("endpoint_key") or "")
        if isinstance(outcome.data, dict) and outcome.data.get("endpoint"):
            endpoint = str(outcome.data["endpoint"])
    return {
        "id": uuid.uuid4().hex,
        "toolName": outcome.call.name,
        "status": outcome.status,
        "arguments": outcome.arguments,
        "result": outcome.data,
        "timestamp": datetime.now(UTC).isoformat(),
        "method": method,
        "endpoint": endpoint,
    }
