"""Tool registry and enablement gate.

Maps tool names (insertion ordered) to tools and filters the catalog
down to the tools whose required capabilities are satisfied by the
current capability snapshot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from toolrelay.core.errors import UnknownToolError
from toolrelay.tools.base import ToolDefinition, definition_of

if TYPE_CHECKING:
    from toolrelay.tools.base import Tool
    from toolrelay.tools.capabilities import (
        CapabilitySnapshot,
        CapabilitySnapshotProvider,
    )

logger = logging.getLogger(__name__)


def is_enabled(tool: Tool, snapshot: CapabilitySnapshot) -> bool:
    """True when every required capability is present and true in *snapshot*."""
    return all(snapshot.get(flag) is True for flag in tool.required_capabilities)


class ToolRegistry:
    """Registry for managing available tools.

    Supports registration, lookup by name, and listing definitions
    (all, or only the enabled ones) for the session configuration.
    """

    def __init__(self, capabilities: CapabilitySnapshotProvider | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._capabilities = capabilities

    @property
    def capabilities(self) -> CapabilitySnapshotProvider | None:
        return self._capabilities

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Resolve a tool by name.

        Raises:
            UnknownToolError: If the tool is not registered.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def list_definitions(self) -> list[ToolDefinition]:
        """Return definitions for every registered tool, enabled or not."""
        return [definition_of(t) for t in self._tools.values()]

    def enabled_tools(self) -> list[Tool]:
        """Return the tools whose required capabilities are all satisfied.

        Fails open: if the snapshot cannot be read, every tool is
        treated as enabled rather than offering an empty toolset.
        """
        if self._capabilities is None:
            return list(self._tools.values())
        try:
            snapshot = self._capabilities.snapshot()
            enabled = [t for t in self._tools.values() if is_enabled(t, snapshot)]
        except Exception:
            logger.warning(
                "Capability snapshot unavailable; enabling all tools", exc_info=True
            )
            return list(self._tools.values())
        for tool in self._tools.values():
            if tool not in enabled:
                logger.debug(
                    "%s disabled; requires %s",
                    tool.name,
                    ", ".join(tool.required_capabilities),
                )
        return enabled

    def list_enabled_definitions(self) -> list[ToolDefinition]:
        """Definitions of the enabled tools, in registration order."""
        definitions = [definition_of(t) for t in self.enabled_tools()]
        logger.debug("Enabled tools: %s", ", ".join(d.name for d in definitions))
        return definitions

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())
