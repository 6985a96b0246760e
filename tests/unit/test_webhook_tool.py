"""Tests for the webhook_call tool."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx

from toolrelay.storage.kv import MemoryKeyValueStore
from toolrelay.tools.base import Tool
from toolrelay.tools.webhook import WebhookCallTool
from toolrelay.webhooks.store import KeyValueEndpointStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from tests.conftest import RequestLog
    from toolrelay.webhooks.invoker import WebhookInvoker

    MakeInvoker = Callable[..., tuple[WebhookInvoker, RequestLog]]

_ENDPOINTS = {
    "weather-api": {
        "url": "https://api.weather.example/v1",
        "method": "GET",
        "authMethod": "apiKey",
        "apiKey": "k",
        "description": "Current weather; pass city",
    },
    "create-task": {
        "url": "https://tasks.example/new",
        "method": "POST",
        "description": "Creates a task. Payload: {title}",
    },
    "n8n-brave-search": {
        "url": "https://n8n.example/webhook/brave",
        "description": "Brave search. Payload needs a query field.",
    },
    "plain-text": {"url": "https://text.example/hook"},
}


def _store() -> KeyValueEndpointStore:
    return KeyValueEndpointStore(MemoryKeyValueStore({"webhookEndpoints": _ENDPOINTS}))


def _responder(request: httpx.Request) -> httpx.Response:
    if request.url.host == "text.example":
        return httpx.Response(200, text="all good")
    return httpx.Response(200, json={"ok": True, "path": request.url.path})


class TestProtocol:
    def test_always_enabled(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker()
        tool = WebhookCallTool(_store(), invoker, ["weather-api"])
        assert isinstance(tool, Tool)
        assert tool.name == "webhook_call"
        assert tool.required_capabilities == ()

    def test_description_lists_keys(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker()
        tool = WebhookCallTool(_store(), invoker, ["weather-api", "create-task"])
        assert "weather-api, create-task" in tool.description
        schema = tool.parameters_schema
        assert schema["required"] == ["endpoint_key"]
        assert "weather-api" in schema["properties"]["endpoint_key"]["description"]
        assert schema["properties"]["method"]["enum"] == ["GET", "POST"]

    def test_no_keys(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker()
        tool = WebhookCallTool(_store(), invoker)
        assert "none configured" in tool.description


class TestExecute:
    async def test_weather_get(self, make_invoker: MakeInvoker) -> None:
        invoker, log = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        result = await tool.execute(
            endpoint_key="weather-api", method="GET", payload={"city": "Paris"}
        )

        assert not result.is_error
        data = json.loads(result.content)
        assert data["endpoint"] == "weather-api"
        assert data["data"]["ok"] is True
        assert data["endpoint_description"] == "Current weather; pass city"
        assert "verbatim" in data["note"]
        assert "format" not in data
        assert str(log.last.url) == "https://api.weather.example/v1?city=Paris"
        assert log.last.headers["X-API-Key"] == "k"

    async def test_normalized_key(self, make_invoker: MakeInvoker) -> None:
        invoker, log = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        result = await tool.execute(
            endpoint_key="n8n_brave_search", payload={"query": "rust"}
        )
        data = json.loads(result.content)
        assert data["endpoint"] == "n8n-brave-search"
        assert data["note"].startswith("IMPORTANT")
        assert log.last.method == "POST"
        assert json.loads(log.last.content) == {"query": "rust"}

    async def test_search_query_promoted(self, make_invoker: MakeInvoker) -> None:
        invoker, log = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        await tool.execute(
            endpoint_key="n8n-brave-search", method="POST", query="python"
        )
        assert json.loads(log.last.content) == {"query": "python"}

    async def test_unknown_endpoint(self, make_invoker: MakeInvoker) -> None:
        invoker, log = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        result = await tool.execute(endpoint_key="foo")
        assert result.is_error
        data = json.loads(result.content)
        assert data["error"].startswith('Endpoint "foo" not found')
        assert data["available_endpoints"] == list(_ENDPOINTS)
        assert log.requests == []

    async def test_post_without_payload(self, make_invoker: MakeInvoker) -> None:
        invoker, log = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        result = await tool.execute(endpoint_key="create-task", method="POST")
        assert result.is_error
        data = json.loads(result.content)
        assert data["endpoint_info"] == {
            "name": "create-task",
            "required_method": "POST",
            "description": "Creates a task. Payload: {title}",
        }
        assert log.requests == []

    async def test_missing_endpoint_key(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker()
        result = await WebhookCallTool(_store(), invoker).execute()
        assert result.is_error
        assert "endpoint_key" in json.loads(result.content)["error"]

    async def test_non_json_response(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker(_responder)
        tool = WebhookCallTool(_store(), invoker)
        data = json.loads((await tool.execute(endpoint_key="plain-text")).content)
        assert data["format"] == "text"
        assert data["data"] == {"text": "all good", "_non_json_response": True}
        assert data["endpoint_description"] == "No description available"

    async def test_network_error(self, make_invoker: MakeInvoker) -> None:
        invoker, _ = make_invoker(lambda r: httpx.Response(404, json={}))
        tool = WebhookCallTool(_store(), invoker)
        result = await tool.execute(endpoint_key="weather-api")
        assert result.is_error
        data = json.loads(result.content)
        assert data["error"] == "Webhook request failed with status: 404"
        assert "weather-api" in data["available_endpoints"]

    async def test_reads_store_at_call_time(self, make_invoker: MakeInvoker) -> None:
        kv = MemoryKeyValueStore()
        store = KeyValueEndpointStore(kv)
        invoker, _ = make_invoker(_responder)
        tool = WebhookCallTool(store, invoker)
        assert (await tool.execute(endpoint_key="late")).is_error

        await kv.set_json("webhookEndpoints", {"late": {"url": "https://late.example"}})
        assert not (await tool.execute(endpoint_key="late")).is_error
