"""Endpoint configuration records.

Records are persisted with camelCase keys (``authMethod``,
``apiKeyHeaderName``, ...). Legacy records may be a bare URL string.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

HttpMethod = Literal["GET", "POST", "ANY"]
AuthMethod = Literal["none", "apiKey", "basicAuth", "bearerToken", "customHeader"]

AUTH_METHODS: tuple[str, ...] = (
    "none",
    "apiKey",
    "basicAuth",
    "bearerToken",
    "customHeader",
)
DEFAULT_API_KEY_HEADER = "X-API-Key"


class EndpointConfig(BaseModel):
    """A user-configured webhook target."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    method: HttpMethod = "ANY"
    auth_method: AuthMethod = Field(default="none", alias="authMethod")
    api_key_header_name: str = Field(
        default=DEFAULT_API_KEY_HEADER, alias="apiKeyHeaderName"
    )
    api_key: str | None = Field(default=None, alias="apiKey")
    username: str | None = None
    password: str | None = None
    bearer_token: str | None = Field(default=None, alias="bearerToken")
    custom_header_name: str | None = Field(default=None, alias="customHeaderName")
    custom_header_value: str | None = Field(default=None, alias="customHeaderValue")
    description: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if not value:
            return "ANY"
        return str(value).upper()

    @field_validator("auth_method", mode="before")
    @classmethod
    def _normalize_auth_method(cls, value: Any) -> Any:
        # Unknown schemes send no credentials.
        if value not in AUTH_METHODS:
            return "none"
        return value

    @field_validator("api_key_header_name", mode="before")
    @classmethod
    def _default_header_name(cls, value: Any) -> Any:
        return value or DEFAULT_API_KEY_HEADER

    @classmethod
    def from_stored(cls, value: Any) -> EndpointConfig:
        """Build from a persisted record (dict, or legacy bare URL string)."""
        if isinstance(value, str):
            return cls(url=value)
        if isinstance(value, dict):
            return cls.model_validate(value)
        msg = f"Unsupported endpoint record: {value!r}"
        raise ValueError(msg)

    def to_stored(self) -> dict[str, Any]:
        """Serialize with the persisted camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True)
