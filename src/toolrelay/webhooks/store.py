"""Endpoint store: persisted mapping of endpoint key to configuration.

The dispatch side only reads (``get`` / ``get_all``). ``save`` and
``remove`` exist for the configuration front end (the ``endpoints``
CLI commands), which validates and normalizes keys before writing.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from pydantic import ValidationError

from toolrelay.core.errors import ConfigError
from toolrelay.webhooks.models import EndpointConfig

if TYPE_CHECKING:
    from toolrelay.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


@runtime_checkable
class EndpointStore(Protocol):
    """Read-only view of configured endpoints."""

    async def get(self, key: str) -> EndpointConfig | None:
        """Return the config stored under exactly *key*, or None."""
        ...

    async def get_all(self) -> dict[str, EndpointConfig]:
        """Return every configured endpoint, in stored order."""
        ...


def format_endpoint_key(key: str) -> str:
    """Trim, collapse whitespace to hyphens, and lowercase."""
    return re.sub(r"\s+", "-", key.strip()).lower()


def validate_endpoint(key: str, config: EndpointConfig) -> dict[str, str]:
    """Return field -> message for every problem with a new endpoint."""
    errors: dict[str, str] = {}

    if not key.strip():
        errors["key"] = "Endpoint key is required"
    elif "_" in key:
        errors["key"] = "Please use hyphens (-) instead of underscores (_)"

    parsed = urlparse(config.url.strip())
    if not config.url.strip():
        errors["url"] = "URL is required"
    elif parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors["url"] = "Please enter a valid URL"

    description = (config.description or "").strip()
    if config.method == "POST" and len(description) < 10:
        errors["description"] = (
            "Please provide a detailed description for POST endpoints, "
            "including required payload fields"
        )
    if "search" in key.lower() and "query" not in description.lower():
        errors["description"] = (
            "For search endpoints, please specify that a 'query' field "
            "is required in the payload"
        )
    return errors


class KeyValueEndpointStore:
    """Endpoint store persisted as one JSON object in a key-value store."""

    def __init__(self, store: KeyValueStore, *, key: str = "webhookEndpoints") -> None:
        self._store = store
        self._key = key

    async def _raw(self) -> dict[str, Any]:
        raw = await self._store.get_json(self._key, {})
        return raw if isinstance(raw, dict) else {}

    async def get(self, key: str) -> EndpointConfig | None:
        raw = await self._raw()
        if key not in raw:
            return None
        return EndpointConfig.from_stored(raw[key])

    async def get_all(self) -> dict[str, EndpointConfig]:
        endpoints: dict[str, EndpointConfig] = {}
        for key, value in (await self._raw()).items():
            try:
                endpoints[key] = EndpointConfig.from_stored(value)
            except (ValidationError, ValueError):
                logger.warning("Skipping malformed endpoint record %r", key)
        return endpoints

    async def keys(self) -> list[str]:
        """Return the stored keys, malformed records included."""
        return list((await self._raw()).keys())

    async def save(self, key: str, config: EndpointConfig) -> str:
        """Validate, normalize the key, and store. Returns the stored key.

        Raises:
            ConfigError: If the key or config fails validation.
        """
        errors = validate_endpoint(key, config)
        if errors:
            details = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
            msg = f"Invalid endpoint: {details}"
            raise ConfigError(msg)
        formatted = format_endpoint_key(key)
        raw = await self._raw()
        raw[formatted] = config.to_stored()
        await self._store.set_json(self._key, raw)
        logger.info("Webhook endpoint %r saved", formatted)
        return formatted

    async def remove(self, key: str) -> bool:
        """Delete *key*. Returns False if it was not configured."""
        raw = await self._raw()
        if key not in raw:
            return False
        del raw[key]
        await self._store.set_json(self._key, raw)
        logger.info("Webhook endpoint %r removed", key)
        return True
