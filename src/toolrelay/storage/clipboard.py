"""Clipboard entry store used by the ``clipboard`` tool."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from toolrelay.storage.kv import KeyValueStore


class ClipboardStore:
    """Clipboard entries ``{id, text, created}``, newest first."""

    def __init__(self, store: KeyValueStore, *, key: str = "clipboardHistory") -> None:
        self._store = store
        self._key = key

    async def entries(self) -> list[dict[str, Any]]:
        entries = await self._store.get_json(self._key, [])
        return entries if isinstance(entries, list) else []

    async def save(self, text: str) -> dict[str, Any]:
        """Store *text* as a new entry and return it."""
        entry = {
            "id": uuid.uuid4().hex,
            "text": text,
            "created": datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        }
        entries = await self.entries()
        entries.insert(0, entry)
        await self._store.set_json(self._key, entries)
        return entry

    async def get(self, entry_id: str) -> dict[str, Any] | None:
        for entry in await self.entries():
            if entry.get("id") == entry_id:
                return entry
        return None

    async def delete(self, entry_id: str) -> dict[str, Any] | None:
        """Remove an entry. Returns the removed entry, or None if absent."""
        entries = await self.entries()
        for i, entry in enumerate(entries):
            if entry.get("id") == entry_id:
                removed = entries.pop(i)
                await self._store.set_json(self._key, entries)
                return removed
        return None

    async def clear(self) -> int:
        """Remove every entry. Returns how many were removed."""
        count = len(await self.entries())
        await self._store.set_json(self._key, [])
        return count
