"""Color palette tool — echoes a themed palette back for display."""

from __future__ import annotations

from typing import Any

from toolrelay.tools.base import ToolResult


class ColorPaletteTool:
    """Synchronous tool; the palette itself is produced by the AI."""

    @property
    def name(self) -> str:
        return "display_color_palette"

    @property
    def description(self) -> str:
        return "Call this function when a user asks for a color palette."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "strict": True,
            "properties": {
                "theme": {
                    "type": "string",
                    "description": "Description of the theme for the color scheme.",
                },
                "colors": {
                    "type": "array",
                    "description": "Array of five hex color codes based on the theme.",
                    "items": {"type": "string", "description": "Hex color code"},
                },
            },
            "required": ["theme", "colors"],
        }

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return ()

    def execute(self, **kwargs: Any) -> ToolResult:
        return ToolResult.success(kwargs)
