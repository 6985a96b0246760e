"""Shared test fixtures for toolrelay."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from toolrelay.bridge.transport import RecordingTransport
from toolrelay.storage.db import create_db
from toolrelay.storage.kv import MemoryKeyValueStore, SqlKeyValueStore
from toolrelay.webhooks.invoker import WebhookInvoker
from toolrelay.webhooks.store import KeyValueEndpointStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
async def sql_kv() -> AsyncIterator[SqlKeyValueStore]:
    """Key-value store over an in-memory SQLite database."""
    factory, engine = await create_db("sqlite+aiosqlite://")
    yield SqlKeyValueStore(factory)
    await engine.dispose()


@pytest.fixture
def endpoint_store(kv: MemoryKeyValueStore) -> KeyValueEndpointStore:
    return KeyValueEndpointStore(kv)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


class RequestLog:
    """Records requests seen by a :class:`httpx.MockTransport`."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def make_invoker() -> Callable[..., tuple[WebhookInvoker, RequestLog]]:
    """Factory for a direct (unproxied) invoker over a mock transport.

    ``responder`` receives each request and returns the response; the
    default answers ``{"ok": true}``.
    """

    def _make(
        responder: Callable[[httpx.Request], httpx.Response] | None = None,
        **kwargs: Any,
    ) -> tuple[WebhookInvoker, RequestLog]:
        log = RequestLog()

        def handler(request: httpx.Request) -> httpx.Response:
            log.requests.append(request)
            if responder is not None:
                return responder(request)
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("use_proxy", False)
        return WebhookInvoker(client=client, **kwargs), log

    return _make
