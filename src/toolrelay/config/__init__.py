"""Configuration loading and validation."""

from toolrelay.config.loader import load_config
from toolrelay.config.schema import (
    CapabilitiesConfig,
    ClipboardConfig,
    DatabaseConfig,
    DispatchConfig,
    GeneralConfig,
    HistoryConfig,
    LoggingConfig,
    ToolRelayConfig,
    ToolsConfig,
    WebhookConfig,
    WebSearchConfig,
)

__all__ = [
    "CapabilitiesConfig",
    "ClipboardConfig",
    "DatabaseConfig",
    "DispatchConfig",
    "GeneralConfig",
    "HistoryConfig",
    "LoggingConfig",
    "ToolRelayConfig",
    "ToolsConfig",
    "WebSearchConfig",
    "WebhookConfig",
    "load_config",
]
