"""Endpoint resolution with key normalization."""

from __future__ import annotations

from typing import TYPE_CHECKING

from toolrelay.core.errors import EndpointNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from toolrelay.webhooks.models import EndpointConfig
    from toolrelay.webhooks.store import EndpointStore


def normalize_endpoint_key(key: str) -> str:
    """Underscores become hyphens; case is folded."""
    return key.replace("_", "-").lower()


def resolve_endpoint(
    raw_key: str,
    endpoints: Mapping[str, EndpointConfig],
) -> tuple[str, EndpointConfig]:
    """Find the endpoint for *raw_key*. First match wins:

    1. exact key;
    2. normalized key;
    3. case-insensitive scan comparing raw and normalized forms.

    Returns:
        ``(matched_key, config)``.

    Raises:
        EndpointNotFoundError: Carrying every configured key.
    """
    if raw_key in endpoints:
        return raw_key, endpoints[raw_key]

    normalized = normalize_endpoint_key(raw_key)
    if normalized in endpoints:
        return normalized, endpoints[normalized]

    lowered = raw_key.lower()
    for key, config in endpoints.items():
        folded = key.lower()
        if folded in (normalized, lowered) or normalize_endpoint_key(key) == normalized:
            return key, config

    raise EndpointNotFoundError(raw_key, list(endpoints.keys()))


async def resolve(raw_key: str, store: EndpointStore) -> tuple[str, EndpointConfig]:
    """Resolve *raw_key* against the current contents of *store*."""
    return resolve_endpoint(raw_key, await store.get_all())
