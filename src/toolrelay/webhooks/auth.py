"""Outbound authentication headers for webhook endpoints.

Missing credential fields omit the header; rejecting unauthenticated
requests is the remote service's job.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolrelay.webhooks.models import EndpointConfig

logger = logging.getLogger(__name__)

BASE_HEADERS: dict[str, str] = {"Content-Type": "application/json"}


def build_headers(config: EndpointConfig) -> dict[str, str]:
    """Return request headers for *config*, including ``Content-Type``."""
    headers = dict(BASE_HEADERS)
    method = config.auth_method

    if method == "apiKey":
        if config.api_key:
            headers[config.api_key_header_name] = config.api_key
            logger.debug(
                "Using API Key authentication with header: %s",
                config.api_key_header_name,
            )
    elif method == "basicAuth":
        if config.username:
            raw = f"{config.username}:{config.password or ''}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(raw).decode('ascii')}"
            logger.debug("Using Basic Authentication")
    elif method == "bearerToken":
        if config.bearer_token:
            headers["Authorization"] = f"Bearer {config.bearer_token}"
            logger.debug("Using Bearer Token authentication")
    elif method == "customHeader":
        if config.custom_header_name and config.custom_header_value:
            headers[config.custom_header_name] = config.custom_header_value
            logger.debug(
                "Using Custom Header authentication: %s", config.custom_header_name
            )
    else:
        logger.debug("No authentication used")

    return headers
