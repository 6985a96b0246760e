"""Append-only tool call history.

Records are kept newest first and capped at ``limit`` entries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from toolrelay.storage.kv import KeyValueStore


class ToolCallHistory:
    """History sink for dispatched tool calls."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = "toolCallHistory",
        limit: int = 50,
    ) -> None:
        self._store = store
        self._key = key
        self._limit = limit

    async def append(self, record: dict[str, Any]) -> None:
        """Add *record* to the front of the history, dropping the oldest overflow."""
        history = await self.list()
        history.insert(0, record)
        await self._store.set_json(self._key, history[: self._limit])

    async def list(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return records newest first."""
        history = await self._store.get_json(self._key, [])
        if not isinstance(history, list):
            history = []
        if limit is not None:
            return history[:limit]
        return history

    async def clear(self) -> None:
        await self._store.set_json(self._key, [])
