"""Clipboard tool: save and recall snippets across the conversation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from toolrelay.tools.base import ToolResult

if TYPE_CHECKING:
    from toolrelay.storage.clipboard import ClipboardStore

_ACTIONS = ("save", "list", "get", "delete", "clear")
_DEFAULT_LIST_LIMIT = 10


def _list_limit(value: Any) -> int | None:
    """Positive entry count for ``list``, or ``None`` when unusable."""
    if value is None:
        return _DEFAULT_LIST_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return None
    return limit if limit > 0 else None


class ClipboardTool:
    """Implements the :class:`Tool` protocol over a :class:`ClipboardStore`."""

    def __init__(self, store: ClipboardStore) -> None:
        self._store = store

    @property
    def name(self) -> str:
        return "clipboard"

    @property
    def description(self) -> str:
        return (
            "Save text snippets to the user's clipboard history, list them, "
            "retrieve one, delete one, or clear them all."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": list(_ACTIONS),
                    "description": "Clipboard operation to perform.",
                },
                "text": {
                    "type": "string",
                    "description": "Text to save (required for 'save').",
                },
                "id": {
                    "type": "string",
                    "description": "Entry id for 'get' or 'delete'.",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum entries to return for 'list'.",
                },
            },
            "required": ["action"],
        }

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return ()

    async def execute(self, **kwargs: Any) -> ToolResult:
        action = kwargs.get("action")
        if action == "save":
            text = kwargs.get("text")
            if not isinstance(text, str) or not text:
                return ToolResult.error({"error": "Parameter 'text' is required."})
            entry = await self._store.save(text)
            return ToolResult.success(
                {"success": True, "message": "Saved to clipboard", "entry": entry}
            )

        if action == "list":
            limit = _list_limit(kwargs.get("limit"))
            if limit is None:
                return ToolResult.error(
                    {"error": "Parameter 'limit' must be a positive integer."}
                )
            entries = await self._store.entries()
            return ToolResult.success(
                {"entries": entries[:limit], "total": len(entries)}
            )

        if action == "get":
            entry_id = kwargs.get("id")
            if entry_id:
                entry = await self._store.get(str(entry_id))
            else:
                entries = await self._store.entries()
                entry = entries[0] if entries else None
            if entry is None:
                return ToolResult.error({"error": "Clipboard entry not found"})
            return ToolResult.success({"entry": entry})

        if action == "delete":
            entry_id = kwargs.get("id")
            if not entry_id:
                return ToolResult.error({"error": "Parameter 'id' is required."})
            removed = await self._store.delete(str(entry_id))
            if removed is None:
                return ToolResult.error({"error": "Clipboard entry not found"})
            return ToolResult.success(
                {"success": True, "message": "Entry deleted", "entry": removed}
            )

        if action == "clear":
            count = await self._store.clear()
            return ToolResult.success(
                {"success": True, "message": f"Cleared {count} entries"}
            )

        return ToolResult.error(
            {"error": f"Unknown clipboard action: {action}", "actions": list(_ACTIONS)}
        )
