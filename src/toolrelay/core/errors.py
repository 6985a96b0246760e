"""Exception hierarchy for toolrelay.

Every module imports from here. The hierarchy is:

    ToolRelayError
    ├── ToolError
    │   ├── UnknownToolError(tool_name)
    │   └── ArgumentParseError
    ├── WebhookError
    │   ├── EndpointNotFoundError(endpoint_key, available_keys)
    │   ├── PayloadRequiredError(endpoint_key, required_method, description)
    │   └── WebhookNetworkError(status_code)
    ├── SearchError
    ├── ConfigError
    └── StorageError
"""

from __future__ import annotations


class ToolRelayError(Exception):
    """Base exception for all toolrelay errors."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(ToolRelayError):
    """Base for tool lookup and invocation errors."""


class UnknownToolError(ToolError):
    """Function call names a tool absent from the registry."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ArgumentParseError(ToolError):
    """Function call arguments are not a JSON object."""


# ─── Webhook Errors ───────────────────────────────────────────


class WebhookError(ToolRelayError):
    """Base for webhook resolution and invocation errors."""


class EndpointNotFoundError(WebhookError):
    """No configured endpoint matches the requested key.

    Carries every configured key so the caller can self-correct.
    """

    def __init__(self, endpoint_key: str, available_keys: list[str]) -> None:
        self.endpoint_key = endpoint_key
        self.available_keys = list(available_keys)
        available = ", ".join(self.available_keys) or "None"
        super().__init__(
            f'Endpoint "{endpoint_key}" not found. Available endpoints: {available}'
        )


class PayloadRequiredError(WebhookError):
    """POST endpoint called without a payload."""

    def __init__(
        self,
        endpoint_key: str,
        required_method: str,
        description: str | None = None,
    ) -> None:
        self.endpoint_key = endpoint_key
        self.required_method = required_method
        self.description = description
        super().__init__(
            f'POST request to "{endpoint_key}" requires a payload. {description or ""}'
        )


class WebhookNetworkError(WebhookError):
    """Non-2xx status or transport failure. ``status_code`` is None for the latter."""

    def __init__(self, status_code: int | None, message: str | None = None) -> None:
        self.status_code = status_code
        if message is None:
            message = f"Webhook request failed with status: {status_code}"
        super().__init__(message)


# ─── Search Errors ────────────────────────────────────────────


class SearchError(ToolRelayError):
    """Search backend unavailable or returned an error."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(ToolRelayError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(ToolRelayError):
    """Key-value persistence failure."""
