"""Realtime conversation bridge: wire messages, transports and dispatch."""

from toolrelay.bridge.dispatch import DispatchEngine, DispatchState, ToolOutcome
from toolrelay.bridge.transport import (
    ConversationBridge,
    ConversationTransport,
    JsonLinesTransport,
    RecordingTransport,
)

__all__ = [
    "ConversationBridge",
    "ConversationTransport",
    "DispatchEngine",
    "DispatchState",
    "JsonLinesTransport",
    "RecordingTransport",
    "ToolOutcome",
]
