"""Universal webhook tool — calls a user-configured endpoint by key.

Always enabled: its dependencies are endpoints configured at runtime,
not startup secrets.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolrelay.core.errors import (
    EndpointNotFoundError,
    PayloadRequiredError,
    ToolRelayError,
)
from toolrelay.tools.base import ToolResult
from toolrelay.webhooks.invoker import plan_request
from toolrelay.webhooks.resolver import resolve_endpoint

if TYPE_CHECKING:
    from toolrelay.webhooks.invoker import WebhookInvoker
    from toolrelay.webhooks.store import EndpointStore

logger = logging.getLogger(__name__)

_DEFAULT_NOTE = "Process this data intelligently instead of repeating it verbatim."
_SEARCH_NOTE = (
    "IMPORTANT: Don't repeat these search results verbatim. Summarize key "
    "information and respond in a natural way. If the query yielded no useful "
    "results, acknowledge this and offer to try a different search."
)


class WebhookCallTool:
    """Invokes stored webhook endpoints.

    ``endpoint_keys`` are the keys configured when the tool is built;
    they are listed in the description so the AI can pick one. Lookups
    at call time always read the store afresh.

    Implements the :class:`Tool` protocol.
    """

    def __init__(
        self,
        store: EndpointStore,
        invoker: WebhookInvoker,
        endpoint_keys: list[str] | None = None,
    ) -> None:
        self._store = store
        self._invoker = invoker
        keys = ", ".join(endpoint_keys) if endpoint_keys else "none configured"
        self._keys_text = keys

    @property
    def name(self) -> str:
        return "webhook_call"

    @property
    def description(self) -> str:
        return (
            "Make a call to a user-configured webhook endpoint to trigger actions "
            "or retrieve information from external services. IMPORTANT: For POST "
            "requests, you MUST include a payload object with all required fields "
            "described in the endpoint's description. The following endpoints are "
            f"available: {self._keys_text}\n\nImportant Note: Search endpoints "
            "require a payload with a 'query' field containing the search term."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "strict": True,
            "properties": {
                "method": {
                    "type": "string",
                    "description": (
                        "HTTP method to use for the request. Note: Some endpoints "
                        "require specific methods regardless of what you specify here."
                    ),
                    "enum": ["GET", "POST"],
                },
                "payload": {
                    "type": "object",
                    "description": (
                        "JSON payload to send with the request (REQUIRED for POST "
                        "requests). For search endpoints, this MUST include a "
                        "'query' field with the specific search term."
                    ),
                },
                "endpoint_key": {
                    "type": "string",
                    "description": (
                        "Key name of the saved endpoint to use. Must match one of "
                        f"the available endpoints exactly: {self._keys_text}"
                    ),
                },
            },
            "required": ["endpoint_key"],
        }

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return ()

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Resolve the endpoint, plan the request, call it, and wrap the data."""
        endpoints = await self._store.get_all()
        endpoint_key = kwargs.get("endpoint_key")
        if not endpoint_key or not isinstance(endpoint_key, str):
            return ToolResult.error(
                {
                    "error": "Parameter 'endpoint_key' is required.",
                    "available_endpoints": list(endpoints),
                }
            )

        try:
            key, config = resolve_endpoint(endpoint_key, endpoints)
            plan = plan_request(
                key,
                config,
                method=kwargs.get("method"),
                payload=kwargs.get("payload"),
                query=kwargs.get("query"),
            )
            logger.info("Calling webhook %s with %s method", key, plan.method)
            data = await self._invoker.execute(plan)
        except EndpointNotFoundError as e:
            logger.error("%s", e)
            return ToolResult.error(
                {"error": str(e), "available_endpoints": e.available_keys}
            )
        except PayloadRequiredError as e:
            logger.error("%s", e)
            return ToolResult.error(
                {
                    "error": str(e),
                    "endpoint_info": {
                        "name": e.endpoint_key,
                        "required_method": e.required_method,
                        "description": e.description,
                    },
                }
            )
        except ToolRelayError as e:
            logger.error("Webhook tool failed: %s", e)
            return ToolResult.error(
                {"error": str(e), "available_endpoints": list(endpoints)}
            )

        content: dict[str, Any] = {"endpoint": key, "data": data}
        if isinstance(data, dict) and data.get("_non_json_response"):
            content["format"] = "text"
        content["endpoint_description"] = (
            config.description or "No description available"
        )
        content["note"] = _SEARCH_NOTE if plan.is_search else _DEFAULT_NOTE
        return ToolResult.success(content)
