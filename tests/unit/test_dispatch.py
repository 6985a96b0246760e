"""Tests for the dispatch engine state machine."""

from __future__ import annotations

import json
from typing import Any

import pytest

from toolrelay.bridge.dispatch import (
    DispatchEngine,
    DispatchState,
    ToolOutcome,
    classify_status,
    history_record,
    parse_arguments,
)
from toolrelay.bridge.transport import RecordingTransport
from toolrelay.core.errors import ArgumentParseError
from toolrelay.storage.history import ToolCallHistory
from toolrelay.storage.kv import MemoryKeyValueStore
from toolrelay.tools.base import ToolCall, ToolResult, loads_strict
from toolrelay.tools.capabilities import StaticCapabilityProvider
from toolrelay.tools.registry import ToolRegistry

# ── Mock tools ──────────────────────────────────────────────────────


class _CountingTool:
    """Async tool that records every invocation."""

    def __init__(self, name: str = "counter", requires: tuple[str, ...] = ()) -> None:
        self._name = name
        self._requires = requires
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Counts calls"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return self._requires

    async def execute(self, **kwargs: Any) -> ToolResult:
        self.calls.append(kwargs)
        return ToolResult.success({"count": len(self.calls), **kwargs})


class _SyncTool(_CountingTool):
    def execute(self, **kwargs: Any) -> ToolResult:  # type: ignore[override]
        self.calls.append(kwargs)
        return ToolResult.success({"sync": True})


class _RaisingTool(_CountingTool):
    def __init__(self, exc: Exception) -> None:
        super().__init__("raiser")
        self._exc = exc

    async def execute(self, **kwargs: Any) -> ToolResult:
        raise self._exc


class _WrongReturnTool(_CountingTool):
    async def execute(self, **kwargs: Any) -> ToolResult:
        return "not a result"  # type: ignore[return-value]


class _NonFiniteTool(_CountingTool):
    async def execute(self, **kwargs: Any) -> ToolResult:
        return ToolResult.success({"rate": float("nan")})


class _FailingHistory(ToolCallHistory):
    async def append(self, record: dict[str, Any]) -> None:
        msg = "disk full"
        raise OSError(msg)


class _DroppingTransport(RecordingTransport):
    """Raises on the first ``failures`` sends, then records normally."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    async def send(self, event: dict[str, Any]) -> None:
        if self.failures:
            self.failures -= 1
            msg = "socket closed"
            raise ConnectionError(msg)
        await super().send(event)


def _engine(
    *tools: Any,
    transport: RecordingTransport | None = None,
    **kwargs: Any,
) -> tuple[DispatchEngine, RecordingTransport]:
    registry = ToolRegistry(capabilities=kwargs.pop("capabilities", None))
    for tool in tools:
        registry.register(tool)
    transport = transport or RecordingTransport()
    return DispatchEngine(registry, transport, **kwargs), transport


def _call_event(call_id: str, name: str, arguments: str = "{}") -> dict[str, Any]:
    return {
        "type": "response.done",
        "response": {
            "output": [
                {
                    "type": "function_call",
                    "call_id": call_id,
                    "name": name,
                    "arguments": arguments,
                }
            ]
        },
    }


# ── parse_arguments ─────────────────────────────────────────────────


class TestParseArguments:
    def test_object(self) -> None:
        assert parse_arguments('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_means_empty(self, raw: str | None) -> None:
        assert parse_arguments(raw) == {}

    def test_dict_passthrough(self) -> None:
        assert parse_arguments({"a": 1}) == {"a": 1}

    def test_malformed(self) -> None:
        with pytest.raises(ArgumentParseError):
            parse_arguments("{not json")

    @pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42", "null"])
    def test_non_object(self, raw: str) -> None:
        with pytest.raises(ArgumentParseError, match=r"JSON object"):
            parse_arguments(raw)

    @pytest.mark.parametrize(
        "raw", ['{"a": NaN}', '{"a": Infinity}', '{"a": [-Infinity]}']
    )
    def test_non_finite_constants(self, raw: str) -> None:
        with pytest.raises(ArgumentParseError, match=r"Non-standard JSON constant"):
            parse_arguments(raw)


# ── classify_status ─────────────────────────────────────────────────


class TestClassifyStatus:
    def test_error_result(self) -> None:
        result = ToolResult.error({"message": "x"})
        assert classify_status("t", result, {"message": "x"}) == "error"

    def test_error_key_in_success(self) -> None:
        result = ToolResult.success({"error": "x"})
        assert classify_status("t", result, {"error": "x"}) == "error"

    def test_status_error(self) -> None:
        result = ToolResult.success({"status": "error"})
        assert classify_status("t", result, {"status": "error"}) == "error"

    def test_plain_success(self) -> None:
        result = ToolResult.success({"ok": True})
        assert classify_status("t", result, {"ok": True}) == "success"

    def test_webhook_content_mentioning_error(self) -> None:
        result = ToolResult.success({"data": {"log": "Error: quota"}})
        assert classify_status("webhook_call", result, json.loads(result.content)) == (
            "error"
        )


# ── Dispatch ────────────────────────────────────────────────────────


class TestDispatch:
    async def test_success_sends_result_then_continuation(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        outcome = await engine.dispatch(ToolCall("call_1", "counter", '{"x": 1}'))

        assert outcome is not None
        assert outcome.status == "success"
        assert outcome.arguments == {"x": 1}
        assert outcome.data == {"count": 1, "x": 1}
        assert tool.calls == [{"x": 1}]
        assert transport.types() == ["conversation.item.create", "response.create"]
        item = transport.events[0]["item"]
        assert item["call_id"] == "call_1"
        assert json.loads(item["output"]) == {"count": 1, "x": 1}

    async def test_state_returns_to_idle(self) -> None:
        engine, _ = _engine(_CountingTool())
        assert engine.state is DispatchState.IDLE
        await engine.dispatch(ToolCall("call_1", "counter"))
        assert engine.state is DispatchState.IDLE
        assert engine.active_call is not None
        assert engine.active_call.call_id == "call_1"

    async def test_state_is_dispatching_during_call(self) -> None:
        seen: list[DispatchState] = []

        class _Probe(_CountingTool):
            async def execute(self, **kwargs: Any) -> ToolResult:
                seen.append(engine.state)
                return ToolResult.success({})

        engine, _ = _engine(_Probe())
        await engine.dispatch(ToolCall("call_1", "counter"))
        assert seen == [DispatchState.DISPATCHING]

    async def test_duplicate_call_id_ignored(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        await engine.dispatch(ToolCall("call_1", "counter"))
        assert await engine.dispatch(ToolCall("call_1", "counter")) is None
        assert len(tool.calls) == 1
        assert len(transport.events) == 2

    async def test_distinct_call_ids_both_run(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        await engine.dispatch(ToolCall("call_1", "counter"))
        await engine.dispatch(ToolCall("call_2", "counter"))
        assert len(tool.calls) == 2
        assert len(transport.events) == 4

    async def test_empty_call_id_ignored(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        assert await engine.dispatch(ToolCall("", "counter")) is None
        assert tool.calls == []
        assert transport.events == []

    async def test_sync_handler(self) -> None:
        tool = _SyncTool("sync")
        engine, transport = _engine(tool)
        outcome = await engine.dispatch(ToolCall("call_1", "sync"))
        assert outcome is not None
        assert outcome.data == {"sync": True}
        assert len(transport.events) == 2

    async def test_unknown_tool_dropped(self) -> None:
        engine, transport = _engine(_CountingTool())
        assert await engine.dispatch(ToolCall("call_1", "teleport")) is None
        assert transport.events == []
        assert engine.state is DispatchState.IDLE

    async def test_unknown_tool_replied_when_configured(self) -> None:
        engine, transport = _engine(_CountingTool(), reply_to_unknown_tools=True)
        outcome = await engine.dispatch(ToolCall("call_1", "teleport"))
        assert outcome is not None
        assert outcome.status == "error"
        assert transport.types() == ["conversation.item.create", "response.create"]
        output = json.loads(transport.events[0]["item"]["output"])
        assert output == {"message": "Unknown tool: teleport"}

    async def test_malformed_arguments(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        outcome = await engine.dispatch(ToolCall("call_1", "counter", "{oops"))
        assert outcome is not None
        assert outcome.status == "error"
        assert tool.calls == []
        output = json.loads(transport.events[0]["item"]["output"])
        assert output["message"].startswith("Argument parsing error:")
        assert transport.types()[-1] == "response.create"

    async def test_non_object_arguments(self) -> None:
        engine, transport = _engine(_CountingTool())
        await engine.dispatch(ToolCall("call_1", "counter", "[1, 2]"))
        output = json.loads(transport.events[0]["item"]["output"])
        assert "Argument parsing error" in output["message"]

    async def test_handler_exception(self) -> None:
        engine, transport = _engine(_RaisingTool(RuntimeError("kaboom")))
        outcome = await engine.dispatch(ToolCall("call_1", "raiser"))
        assert outcome is not None
        assert outcome.status == "error"
        assert json.loads(transport.events[0]["item"]["output"]) == {
            "message": "kaboom"
        }
        assert len(transport.events) == 2
        assert engine.state is DispatchState.IDLE

    async def test_handler_exception_without_message(self) -> None:
        engine, transport = _engine(_RaisingTool(RuntimeError()))
        await engine.dispatch(ToolCall("call_1", "raiser"))
        output = json.loads(transport.events[0]["item"]["output"])
        assert output == {"message": "Tool raiser failed"}

    async def test_handler_wrong_return_type(self) -> None:
        engine, transport = _engine(_WrongReturnTool("wrong"))
        outcome = await engine.dispatch(ToolCall("call_1", "wrong"))
        assert outcome is not None
        assert outcome.status == "error"
        assert len(transport.events) == 2

    async def test_every_output_is_json(self) -> None:
        engine, transport = _engine(
            _CountingTool(),
            _RaisingTool(ValueError("bad")),
            reply_to_unknown_tools=True,
        )
        await engine.dispatch(ToolCall("c1", "counter"))
        await engine.dispatch(ToolCall("c2", "raiser"))
        await engine.dispatch(ToolCall("c3", "counter", "{bad"))
        await engine.dispatch(ToolCall("c4", "nope"))
        outputs = [
            e["item"]["output"]
            for e in transport.events
            if e["type"] == "conversation.item.create"
        ]
        assert len(outputs) == 4
        for output in outputs:
            assert isinstance(output, str)
            json.loads(output)

    async def test_non_finite_arguments_answered_as_error(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        outcome = await engine.dispatch(
            ToolCall("call_1", "counter", '{"theme": "x", "colors": [NaN]}')
        )
        assert outcome is not None
        assert outcome.status == "error"
        assert tool.calls == []
        output = loads_strict(transport.events[0]["item"]["output"])
        assert output["message"].startswith("Argument parsing error:")

    async def test_non_finite_result_becomes_error(self) -> None:
        engine, transport = _engine(_NonFiniteTool("rates"))
        outcome = await engine.dispatch(ToolCall("call_1", "rates"))
        assert outcome is not None
        assert outcome.status == "error"
        output = loads_strict(transport.events[0]["item"]["output"])
        assert "not JSON compliant" in output["message"]
        assert transport.types() == ["conversation.item.create", "response.create"]

    async def test_send_failure_keeps_engine_usable(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool, transport=_DroppingTransport())
        outcome = await engine.dispatch(ToolCall("call_1", "counter"))
        assert outcome is not None
        assert outcome.status == "success"
        assert engine.state is DispatchState.IDLE

        await engine.dispatch(ToolCall("call_2", "counter"))
        assert len(tool.calls) == 2
        assert transport.types() == ["conversation.item.create", "response.create"]
        assert transport.events[0]["item"]["call_id"] == "call_2"


# ── Outcomes and history ────────────────────────────────────────────


class TestOutcomeSinks:
    async def test_history_recorded(self) -> None:
        history = ToolCallHistory(MemoryKeyValueStore())
        engine, _ = _engine(_CountingTool(), history=history)
        await engine.dispatch(ToolCall("call_1", "counter", '{"x": 1}'))
        records = await history.list()
        assert len(records) == 1
        record = records[0]
        assert record["toolName"] == "counter"
        assert record["status"] == "success"
        assert record["arguments"] == {"x": 1}
        assert record["result"] == {"count": 1, "x": 1}
        assert record["method"] == ""
        assert record["timestamp"]

    async def test_history_failure_does_not_block_result(self) -> None:
        history = _FailingHistory(MemoryKeyValueStore())
        engine, transport = _engine(_CountingTool(), history=history)
        await engine.dispatch(ToolCall("call_1", "counter"))
        assert transport.types() == ["conversation.item.create", "response.create"]

    async def test_sync_and_async_renderers(self) -> None:
        seen: list[ToolOutcome] = []

        async def render_async(outcome: ToolOutcome) -> None:
            seen.append(outcome)

        engine, _ = _engine(_CountingTool(), on_outcome=seen.append)
        await engine.dispatch(ToolCall("call_1", "counter"))
        engine2, _ = _engine(_CountingTool(), on_outcome=render_async)
        await engine2.dispatch(ToolCall("call_1", "counter"))
        assert [o.call.call_id for o in seen] == ["call_1", "call_1"]

    async def test_renderer_failure_does_not_block_result(self) -> None:
        def explode(outcome: ToolOutcome) -> None:
            msg = "render failed"
            raise RuntimeError(msg)

        engine, transport = _engine(_CountingTool(), on_outcome=explode)
        await engine.dispatch(ToolCall("call_1", "counter"))
        assert len(transport.events) == 2

    def test_webhook_history_record(self) -> None:
        call = ToolCall("c", "webhook_call")
        outcome = ToolOutcome(
            call=call,
            arguments={"endpoint_key": "n8n_search"},
            result=ToolResult.success({"endpoint": "n8n-search"}),
            data={"endpoint": "n8n-search"},
            status="success",
        )
        record = history_record(outcome)
        assert record["method"] == "GET"
        assert record["endpoint"] == "n8n-search"

    def test_webhook_history_record_on_error(self) -> None:
        outcome = ToolOutcome(
            call=ToolCall("c", "webhook_call"),
            arguments={"endpoint_key": "foo", "method": "POST"},
            result=ToolResult.error({"error": "x"}),
            data={"error": "x"},
            status="error",
        )
        record = history_record(outcome)
        assert record["method"] == "POST"
        assert record["endpoint"] == "foo"


# ── Session setup and event handling ────────────────────────────────


class TestHandleEvent:
    async def test_session_created_configures_tools(self) -> None:
        provider = StaticCapabilityProvider({"SEARXNG_URL": False})
        engine, transport = _engine(
            _CountingTool("a"),
            _CountingTool("web_search", ("SEARXNG_URL",)),
            capabilities=provider,
        )
        await engine.handle_event({"type": "session.created"})
        assert transport.types() == ["session.update"]
        session = transport.events[0]["session"]
        assert session["tool_choice"] == "auto"
        assert [t["name"] for t in session["tools"]] == ["a"]

    async def test_capability_change_resends_session_update(self) -> None:
        provider = StaticCapabilityProvider({"SEARXNG_URL": False})
        engine, transport = _engine(
            _CountingTool("a"),
            _CountingTool("web_search", ("SEARXNG_URL",)),
            capabilities=provider,
        )
        await engine.handle_event({"type": "session.created"})
        provider.update({"SEARXNG_URL": True})
        await engine.handle_event({"type": "response.created"})

        assert transport.types() == ["session.update", "session.update"]
        tools = transport.events[1]["session"]["tools"]
        assert [t["name"] for t in tools] == ["a", "web_search"]

    async def test_change_before_session_is_not_sent(self) -> None:
        provider = StaticCapabilityProvider({"SEARXNG_URL": False})
        engine, transport = _engine(_CountingTool("a"), capabilities=provider)
        provider.update({"SEARXNG_URL": True})
        await engine.handle_event({"type": "input_audio_buffer.committed"})
        assert transport.events == []

    async def test_close_stops_listening(self) -> None:
        provider = StaticCapabilityProvider({"SEARXNG_URL": False})
        engine, transport = _engine(_CountingTool("a"), capabilities=provider)
        await engine.handle_event({"type": "session.created"})
        engine.close()
        provider.update({"SEARXNG_URL": True})
        await engine.handle_event({"type": "response.created"})
        assert transport.types() == ["session.update"]

    async def test_function_call_event_dispatched(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)
        outcome = await engine.handle_event(_call_event("call_1", "counter"))
        assert outcome is not None
        assert len(tool.calls) == 1

    async def test_unrelated_event_ignored(self) -> None:
        engine, transport = _engine(_CountingTool())
        assert await engine.handle_event({"type": "response.audio.delta"}) is None
        assert transport.events == []

    async def test_session_update_event(self) -> None:
        engine, _ = _engine(_CountingTool("a"))
        event = engine.session_update_event()
        assert event["type"] == "session.update"
        assert event["session"]["tools"][0]["name"] == "a"

    async def test_run_consumes_stream_serially(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool)

        async def events() -> Any:
            yield {"type": "session.created"}
            yield _call_event("call_1", "counter")
            yield _call_event("call_1", "counter")
            yield _call_event("call_2", "counter")

        await engine.run(events())
        assert len(tool.calls) == 2
        assert transport.types() == [
            "session.update",
            "conversation.item.create",
            "response.create",
            "conversation.item.create",
            "response.create",
        ]

    async def test_run_survives_send_failure(self) -> None:
        tool = _CountingTool()
        engine, transport = _engine(tool, transport=_DroppingTransport())

        async def events() -> Any:
            yield _call_event("call_1", "counter")
            yield _call_event("call_2", "counter")

        await engine.run(events())
        assert len(tool.calls) == 2
        assert [e["item"]["call_id"] for e in transport.events[::2]] == ["call_2"]

