"""Pydantic models for toolrelay configuration."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class GeneralConfig(BaseModel):
    """Origin and proxy routing for outbound webhook requests."""

    app_origin: str = "http://localhost:3000"
    proxy_path: str = "/api/proxy"
    use_proxy: bool = True

    @field_validator("app_origin")
    @classmethod
    def validate_app_origin(cls, v: str) -> str:
        """Proxied requests are joined onto this origin."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            msg = f"app_origin must be an http(s) origin, got {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("proxy_path")
    @classmethod
    def validate_proxy_path(cls, v: str) -> str:
        if not v.startswith("/"):
            msg = f"proxy_path must start with '/', got {v!r}"
            raise ValueError(msg)
        return v


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/toolrelay/toolrelay.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    rich: bool = True


class CapabilitiesConfig(BaseModel):
    """Capability flags that gate optional tools.

    Each name in ``flags`` is an environment variable; the flag is true
    when the variable is set to a non-empty value. ``overrides`` wins.
    """

    flags: list[str] = Field(default_factory=lambda: ["SEARXNG_URL"])
    overrides: dict[str, bool] = Field(default_factory=dict)


class WebSearchConfig(BaseModel):
    """Web search tool configuration (SearXNG backend)."""

    searxng_url: str | None = None
    searxng_url_env: str = "SEARXNG_URL"
    max_results: int = 3
    timeout: float = 15.0


class WebhookConfig(BaseModel):
    """Webhook tool configuration."""

    timeout: float = 30.0
    storage_key: str = "webhookEndpoints"


class ClipboardConfig(BaseModel):
    """Clipboard tool configuration."""

    storage_key: str = "clipboardHistory"


class HistoryConfig(BaseModel):
    """Tool call history sink."""

    storage_key: str = "toolCallHistory"
    limit: int = 50


class ToolsConfig(BaseModel):
    """Tool framework configuration."""

    web_search: WebSearchConfig = Field(default_factory=WebSearchConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    clipboard: ClipboardConfig = Field(default_factory=ClipboardConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)


class DispatchConfig(BaseModel):
    """Dispatch engine behaviour."""

    reply_to_unknown_tools: bool = False


class ToolRelayConfig(BaseModel):
    """Top-level configuration for toolrelay."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    capabilities: CapabilitiesConfig = Field(default_factory=CapabilitiesConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
