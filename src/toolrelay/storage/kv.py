"""Key-value persistence for JSON blobs.

Each key holds one JSON document (a dict of endpoints, a list of
clipboard entries, ...). Readers parse the whole blob per access; the
typed stores built on top keep no cache of their own.
"""

from __future__ import annotations

import copy
import json
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError

from toolrelay.core.errors import StorageError
from toolrelay.storage.models import KeyValueEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


@runtime_checkable
class KeyValueStore(Protocol):
    """Async JSON key-value store."""

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for *key*, or *default* if absent."""
        ...

    async def set_json(self, key: str, value: Any) -> None:
        """Store *value* (JSON-serializable) under *key*."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key* if present."""
        ...


class MemoryKeyValueStore:
    """In-process store. Values round-trip through JSON like the SQL store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get_json(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return copy.deepcopy(default)
        return json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """Store backed by the ``kv_entries`` table.

    Each operation opens its own session and commits before returning.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def get_json(self, key: str, default: Any = None) -> Any:
        try:
            async with self._factory() as session:
                entry = await session.get(KeyValueEntry, key)
                raw = entry.value if entry is not None else None
        except SQLAlchemyError as e:
            msg = f"Failed to read '{key}': {e}"
            raise StorageError(msg) from e
        if raw is None:
            return copy.deepcopy(default)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            msg = f"Stored value for '{key}' is not valid JSON: {e}"
            raise StorageError(msg) from e

    async def set_json(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        try:
            async with self._factory() as session:
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=raw))
                else:
                    entry.value = raw
                await session.commit()
        except SQLAlchemyError as e:
            msg = f"Failed to write '{key}': {e}"
            raise StorageError(msg) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._factory() as session:
                entry = await session.get(KeyValueEntry, key)
                if entry is not None:
                    await session.delete(entry)
                    await session.commit()
        except SQLAlchemyError as e:
            msg = f"Failed to delete '{key}': {e}"
            raise StorageError(msg) from e

