"""Webhook invoker: method enforcement, payload placement, proxying.

Request planning (:func:`plan_request`) decides the HTTP method and
payload from the endpoint config and the AI's arguments; the
:class:`WebhookInvoker` then issues the request and normalizes the
response.

Search heuristics:

- *search-like* endpoints have ``search`` in their key or description;
  the AI often omits the payload wrapper for them, so a bare ``query``
  argument is promoted to ``{"query": ...}``.
- *search-engine* (SearXNG) endpoints are recognised by URL, key or
  description markers. Some GET parameters break their query parsing
  and are stripped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode, urljoin, urlparse

import httpx

from toolrelay.core.errors import (
    ArgumentParseError,
    PayloadRequiredError,
    WebhookNetworkError,
)
from toolrelay.tools.base import loads_strict
from toolrelay.webhooks.auth import build_headers

if TYPE_CHECKING:
    from collections.abc import Mapping

    from toolrelay.webhooks.models import EndpointConfig

logger = logging.getLogger(__name__)

_SEARXNG_STRIPPED_PARAMS = frozenset({"category_general", "categories_general"})


# ── Heuristics ───────────────────────────────────────────────────


def is_search_endpoint(key: str, description: str | None = None) -> bool:
    """True for endpoints whose key or description mentions ``search``."""
    return "search" in key.lower() or "search" in (description or "").lower()


def is_searxng_endpoint(
    url: str = "",
    key: str = "",
    description: str | None = None,
) -> bool:
    """True for SearXNG-style search engine endpoints."""
    return (
        "searx" in url
        or ":8080/search" in url
        or "searx" in key.lower()
        or "searx" in (description or "").lower()
    )


def encode_query_params(payload: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Flatten a payload into query parameters; non-strings are JSON encoded."""
    return [
        (key, value if isinstance(value, str) else json.dumps(value))
        for key, value in payload.items()
    ]


def clean_searxng_params(params: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop parameters known to break SearXNG searches."""
    return [(k, v) for k, v in params if k not in _SEARXNG_STRIPPED_PARAMS]


def normalize_response(response: httpx.Response) -> Any:
    """Parse JSON bodies; wrap anything else as ``{text, _non_json_response}``.

    A JSON body carrying ``NaN`` or ``Infinity`` is not standard JSON and
    is wrapped like any other text.
    """
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return loads_strict(response.text)
        except ValueError:
            logger.warning("Failed to parse JSON response")
    return {"text": response.text or "Empty response", "_non_json_response": True}


# ── Request planning ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RequestPlan:
    """The request a webhook call resolves to, before any network IO."""

    endpoint_key: str
    config: EndpointConfig
    method: str
    payload: dict[str, Any] | None
    is_search: bool
    is_search_engine: bool


def _coerce_payload(payload: Any) -> dict[str, Any] | None:
    if payload is None or (isinstance(payload, str) and not payload.strip()):
        return None
    if isinstance(payload, str):
        try:
            payload = loads_strict(payload)
        except ValueError:
            msg = "Parameter 'payload' must be a JSON object."
            raise ArgumentParseError(msg) from None
    if not isinstance(payload, dict):
        msg = "Parameter 'payload' must be a JSON object."
        raise ArgumentParseError(msg)
    return payload


def plan_request(
    endpoint_key: str,
    config: EndpointConfig,
    *,
    method: str | None = None,
    payload: Any = None,
    query: Any = None,
) -> RequestPlan:
    """Decide method and payload for a call to *config*.

    The endpoint's declared method (GET/POST) always wins over the
    caller's. Search endpoints get a ``{"query": ...}`` payload
    synthesized from a bare *query*, and switch from GET to POST when
    the endpoint accepts either.

    Raises:
        PayloadRequiredError: POST-only endpoint with nothing to send.
        ArgumentParseError: Payload that is not a JSON object.
    """
    required = config.method
    actual = required if required != "ANY" else (method or "GET").upper()
    description = config.description
    is_search = is_search_endpoint(endpoint_key, description)
    is_engine = is_searxng_endpoint(config.url, endpoint_key, description)

    body = _coerce_payload(payload)
    if actual == "POST" and body is None:
        if is_search and query:
            logger.info("Auto-creating search payload with query: %s", query)
            body = {"query": query}
        elif required == "POST":
            raise PayloadRequiredError(endpoint_key, required, description)

    # Some search backends silently ignore GET-encoded queries.
    if (
        (is_search or is_engine)
        and required == "ANY"
        and actual == "GET"
        and body is not None
        and body.get("query")
    ):
        logger.info("Switching search endpoint %s from GET to POST", endpoint_key)
        actual = "POST"

    return RequestPlan(
        endpoint_key=endpoint_key,
        config=config,
        method=actual,
        payload=body,
        is_search=is_search,
        is_search_engine=is_engine,
    )


# ── Invoker ──────────────────────────────────────────────────────


class WebhookInvoker:
    """Issues webhook requests over a shared :class:`httpx.AsyncClient`.

    URLs outside ``app_origin`` are rewritten to
    ``<app_origin><proxy_path>?url=<encoded target>`` when ``use_proxy``
    is on; same-origin and relative URLs are fetched directly.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        app_origin: str = "http://localhost:3000",
        proxy_path: str = "/api/proxy",
        use_proxy: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._app_origin = app_origin.rstrip("/")
        self._app_host = urlparse(self._app_origin).netloc
        self._proxy_prefix = self._app_origin + proxy_path
        self._use_proxy = use_proxy

    async def __aenter__(self) -> WebhookInvoker:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def is_external(self, url: str) -> bool:
        return url.startswith("http") and self._app_host not in url

    def target_url(self, url: str) -> str:
        """Return the URL to fetch for *url*, proxied if external."""
        if self.is_external(url):
            if self._use_proxy:
                logger.debug("Routing external URL through proxy: %s", url)
                return f"{self._proxy_prefix}?url={quote(url, safe='')}"
            return url
        return urljoin(self._app_origin + "/", url)

    async def invoke(
        self,
        method: str,
        config: EndpointConfig,
        payload: Mapping[str, Any] | None = None,
        *,
        endpoint_key: str = "",
    ) -> Any:
        """Send the request and return the normalized response body.

        Raises:
            WebhookNetworkError: On non-2xx status or transport failure.
        """
        required = config.method if config.method != "ANY" else method.upper()
        headers = build_headers(config)
        target = self.target_url(config.url)
        logger.info("Making %s request to webhook endpoint: %s", required, config.url)

        try:
            if required == "GET":
                final_url = target
                if payload:
                    params = encode_query_params(payload)
                    if is_searxng_endpoint(
                        config.url, endpoint_key, config.description
                    ):
                        params = clean_searxng_params(params)
                    if params:
                        sep = "&" if "?" in target else "?"
                        final_url = f"{target}{sep}{urlencode(params)}"
                response = await self._client.get(final_url, headers=headers)
            else:
                body = json.dumps(dict(payload) if payload is not None else {})
                response = await self._client.post(
                    target, headers=headers, content=body
                )
        except httpx.HTTPError as e:
            msg = f"Webhook request failed: {e}"
            raise WebhookNetworkError(None, msg) from e

        if not response.is_success:
            raise WebhookNetworkError(response.status_code)

        return normalize_response(response)

    async def execute(self, plan: RequestPlan) -> Any:
        """Invoke a planned request."""
        return await self.invoke(
            plan.method,
            plan.config,
            plan.payload,
            endpoint_key=plan.endpoint_key,
        )
