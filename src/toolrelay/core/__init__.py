"""Core errors and shared utilities."""

from toolrelay.core.errors import (
    ArgumentParseError,
    ConfigError,
    EndpointNotFoundError,
    PayloadRequiredError,
    SearchError,
    StorageError,
    ToolError,
    ToolRelayError,
    UnknownToolError,
    WebhookError,
    WebhookNetworkError,
)
from toolrelay.core.logs import configure_logging

__all__ = [
    "ArgumentParseError",
    "ConfigError",
    "EndpointNotFoundError",
    "PayloadRequiredError",
    "SearchError",
    "StorageError",
    "ToolError",
    "ToolRelayError",
    "UnknownToolError",
    "WebhookError",
    "WebhookNetworkError",
    "configure_logging",
]
