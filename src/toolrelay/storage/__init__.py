"""Persistence: JSON key-value store and the typed views built on it."""

from toolrelay.storage.clipboard import ClipboardStore
from toolrelay.storage.db import create_db
from toolrelay.storage.history import ToolCallHistory
from toolrelay.storage.kv import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore

__all__ = [
    "ClipboardStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "ToolCallHistory",
    "create_db",
]
