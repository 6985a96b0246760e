"""Rich display for tool outcomes.

Renders settled tool calls the way the conversation UI shows them: a
swatch row for palettes, a result list for searches, and a status panel
for webhooks. Also renders tool definitions, stored endpoints and the
call history for the CLI listing commands.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from toolrelay.bridge.dispatch import ToolOutcome
    from toolrelay.tools.base import ToolDefinition
    from toolrelay.webhooks.models import EndpointConfig

_TRUNCATE_LEN = 500


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def _pretty(data: Any) -> str:
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2)


def _error_message(data: Any) -> str:
    if isinstance(data, dict):
        for key in ("message", "error"):
            if data.get(key):
                return str(data[key])
    return _pretty(data)


class ToolDisplay:
    """Rich display for tool activity.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    # ── Outcomes ──────────────────────────────────────────────

    def show_outcome(self, outcome: ToolOutcome) -> None:
        """Render one settled tool call."""
        name = outcome.call.name
        if outcome.status == "error":
            self._show_error(name, outcome.data)
        elif name == "display_color_palette":
            self._show_palette(outcome.data)
        elif name == "web_search":
            self._show_search(outcome.arguments.get("query", ""), outcome.data)
        elif name == "webhook_call":
            self._show_webhook(outcome.data)
        elif name == "get_current_datetime":
            self._show_datetime(outcome.data)
        elif name == "clipboard":
            self._show_clipboard(outcome.arguments.get("action", ""), outcome.data)
        else:
            self._show_generic(name, outcome.data)

    def _show_error(self, name: str, data: Any) -> None:
        self._console.print(
            Panel(
                Text(_truncate(_error_message(data))),
                title=f"[bold red]ERROR[/bold red] ({name})",
                border_style="red",
            )
        )

    def _show_palette(self, data: Any) -> None:
        if not isinstance(data, dict):
            self._show_generic("display_color_palette", data)
            return
        theme = escape(str(data.get("theme", "")))
        row = Text()
        for color in data.get("colors") or []:
            row.append("  ")
            row.append("    ", style=f"on {color}")
            row.append(f" {color}")
        self._console.print(
            Panel(
                row,
                title=f"[bold magenta]PALETTE[/bold magenta] ({theme})",
                border_style="magenta",
            )
        )

    def _show_search(self, query: str, data: Any) -> None:
        if not isinstance(data, list):
            self._show_generic("web_search", data)
            return
        parts: list[Text] = []
        for i, item in enumerate(data):
            if i > 0:
                parts.append(Text())  # blank line separator
            parts.append(Text(str(item.get("title", "")), style="bold"))
            parts.append(Text(str(item.get("url", "")), style="cyan"))
            parts.append(Text(str(item.get("content", ""))))
        body = Text("\n").join(parts) if parts else Text("No results.", style="dim")
        self._console.print(
            Panel(
                body,
                title=f"[bold green]SEARCH[/bold green] ({escape(str(query))})",
                border_style="green",
            )
        )

    def _show_webhook(self, data: Any) -> None:
        if not isinstance(data, dict):
            self._show_generic("webhook_call", data)
            return
        check = "[bold green]✓[/bold green]"
        endpoint = escape(str(data.get("endpoint", "")))
        self._console.print(f"{check} WEBHOOK  {endpoint}")
        description = data.get("endpoint_description")
        if description:
            self._console.print(Text(str(description), style="dim"))
        self._console.print(
            Panel(
                Text(_truncate(_pretty(data.get("data")))),
                title="[bold cyan]RESPONSE[/bold cyan]",
                border_style="cyan",
            )
        )

    def _show_datetime(self, data: Any) -> None:
        if not isinstance(data, dict):
            self._show_generic("get_current_datetime", data)
            return
        self._console.print(
            f"[bold]{escape(str(data.get('current', '')))}[/bold]  "
            f"({data.get('timezone', '')}, {data.get('format', '')})"
        )

    def _show_clipboard(self, action: str, data: Any) -> None:
        if not isinstance(data, dict):
            self._show_generic("clipboard", data)
            return
        if "entries" in data:
            lines = [
                f"  {e.get('id', '')[:8]}  {e.get('created', '')}  "
                f"{_truncate(str(e.get('text', '')), 60)}"
                for e in data["entries"]
            ]
            body = "\n".join(lines) or "Clipboard is empty."
            title = f"[bold blue]CLIPBOARD[/bold blue] ({data.get('total', 0)} entries)"
        elif "entry" in data and action == "get":
            body = str(data["entry"].get("text", ""))
            title = "[bold blue]CLIPBOARD[/bold blue]"
        else:
            body = str(data.get("message", ""))
            title = f"[bold blue]CLIPBOARD[/bold blue] ({action})"
        self._console.print(
            Panel(Text(_truncate(body)), title=title, border_style="blue")
        )

    def _show_generic(self, name: str, data: Any) -> None:
        self._console.print(
            Panel(
                Text(_truncate(_pretty(data))),
                title=f"[bold]{name}[/bold]",
                border_style="white",
            )
        )

    # ── Listings ──────────────────────────────────────────────

    def show_definitions(self, definitions: Sequence[ToolDefinition]) -> None:
        """List tool definitions offered to the AI."""
        if not definitions:
            self._console.print("No tools enabled.")
            return
        for definition in definitions:
            params = definition.parameters_schema.get("properties", {})
            required = set(definition.parameters_schema.get("required", []))
            names = [f"{p}*" if p in required else p for p in params]
            self._console.print(
                f"[bold cyan]{definition.name}[/bold cyan]({', '.join(names)})"
            )
            first_line = definition.description.strip().splitlines()[0]
            self._console.print(Text(f"  {_truncate(first_line, 100)}", style="dim"))

    def show_endpoints(self, endpoints: Mapping[str, EndpointConfig]) -> None:
        """One line per stored endpoint."""
        if not endpoints:
            self._console.print("No endpoints configured.")
            return
        for key, config in sorted(endpoints.items()):
            self._console.print(
                f"  [bold]{escape(key)}[/bold]  \\[{config.method}]  "
                f"{escape(config.url)}  auth:{config.auth_method}"
            )

    def show_endpoint(self, key: str, config: EndpointConfig) -> None:
        """Full details for one endpoint, with secrets masked."""
        lines = [
            f"URL:     {config.url}",
            f"Method:  {config.method}",
            f"Auth:    {config.auth_method}",
        ]
        if config.auth_method == "apiKey":
            lines.append(f"Header:  {config.api_key_header_name}")
        elif config.auth_method == "customHeader" and config.custom_header_name:
            lines.append(f"Header:  {config.custom_header_name}")
        if config.description:
            lines.append("")
            lines.append(config.description)
        self._console.print(
            Panel(
                Text("\n".join(lines)),
                title=f"[bold cyan]{escape(key)}[/bold cyan]",
                border_style="cyan",
            )
        )

    def show_history(self, records: Sequence[dict[str, Any]]) -> None:
        """Recent tool calls, newest first."""
        if not records:
            self._console.print("No tool calls recorded.")
            return
        for record in records:
            status = record.get("status", "")
            style = "red" if status == "error" else "green"
            line = (
                f"  {str(record.get('timestamp', ''))[:19]}  "
                f"[{style}]{status:<7}[/{style}]  {record.get('toolName', '')}"
            )
            if record.get("endpoint"):
                line += f"  {record.get('method', '')} {record['endpoint']}"
            self._console.print(line)
