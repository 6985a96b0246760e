"""Conversation transport boundary.

The realtime connection itself (WebRTC data channel, websocket) lives
outside this package; it only has to satisfy
:class:`ConversationTransport`. :class:`ConversationBridge` wraps a
transport and owns the two-step function result protocol: a
``function_call_output`` item followed by ``response.create``. Without
the second message the AI stalls mid-turn, so the pair is only ever
sent through :meth:`ConversationBridge.send_function_result`.
"""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING, Any, Protocol, TextIO, runtime_checkable

from toolrelay.bridge.events import (
    function_call_output,
    response_create,
    session_update,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolrelay.tools.base import ToolDefinition


@runtime_checkable
class ConversationTransport(Protocol):
    """Outbound side of the realtime conversation."""

    async def send(self, event: dict[str, Any]) -> None:
        """Deliver one client event to the AI service."""
        ...


class ConversationBridge:
    """Typed outbound operations over a :class:`ConversationTransport`."""

    def __init__(self, transport: ConversationTransport) -> None:
        self._transport = transport

    @property
    def transport(self) -> ConversationTransport:
        return self._transport

    async def send_session_update(self, definitions: Iterable[ToolDefinition]) -> None:
        await self._transport.send(session_update(definitions))

    async def send_function_result(self, call_id: str, output: str) -> None:
        """Send the result record, then the continuation trigger.

        Raises:
            TypeError: If *output* is not a string.
        """
        if not isinstance(output, str):
            msg = f"Function output must be a JSON string, got {type(output).__name__}"
            raise TypeError(msg)
        await self._transport.send(function_call_output(call_id, output))
        await self._transport.send(response_create())


class RecordingTransport:
    """Collects sent events in memory."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def send(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        """Event types in send order."""
        return [e.get("type", "") for e in self.events]


class JsonLinesTransport:
    """Writes each event as one JSON line, stamping an ``event_id``."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    async def send(self, event: dict[str, Any]) -> None:
        stamped = {**event, "event_id": event.get("event_id") or str(uuid.uuid4())}
        self._stream.write(json.dumps(stamped) + "\n")
        self._stream.flush()
