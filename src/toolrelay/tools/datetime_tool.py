"""Current date/time tool."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from toolrelay.tools.base import ToolResult

_FORMATS = ("iso", "locale", "unix")


def _system_now() -> datetime:
    return datetime.now(UTC)


class DateTimeTool:
    """Reports the current time in a requested timezone and format."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _system_now

    @property
    def name(self) -> str:
        return "get_current_datetime"

    @property
    def description(self) -> str:
        return (
            "Call this function to get the current date and time, optionally "
            "in a specific timezone and format."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "description": "Output format for the current time.",
                    "enum": list(_FORMATS),
                },
                "timezone": {
                    "type": "string",
                    "description": (
                        "'local', 'utc', or an IANA timezone name such as "
                        "'Europe/Paris'."
                    ),
                },
            },
        }

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return ()

    def execute(self, **kwargs: Any) -> ToolResult:
        fmt = str(kwargs.get("format") or "iso").lower()
        timezone = str(kwargs.get("timezone") or "local")
        if fmt not in _FORMATS:
            return ToolResult.error(
                {"error": f"Unsupported format: {fmt}", "supported": list(_FORMATS)}
            )

        now = self._clock()
        if timezone.lower() == "local":
            current = now.astimezone()
        elif timezone.lower() == "utc":
            current = now.astimezone(UTC)
        else:
            try:
                current = now.astimezone(ZoneInfo(timezone))
            except (ZoneInfoNotFoundError, ValueError):
                return ToolResult.error({"error": f"Unknown timezone: {timezone}"})

        timestamp = int(current.timestamp())
        if fmt == "iso":
            rendered = current.isoformat()
        elif fmt == "locale":
            rendered = current.strftime("%c")
        else:
            rendered = str(timestamp)

        return ToolResult.success(
            {
                "current": rendered,
                "timestamp": timestamp,
                "timezone": timezone,
                "format": fmt,
            }
        )
