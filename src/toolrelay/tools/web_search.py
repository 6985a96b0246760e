"""Web search tool — searches the web via a SearXNG instance.

Only offered when the ``SEARXNG_URL`` capability is satisfied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from toolrelay.core.errors import SearchError
from toolrelay.tools.base import ToolResult

if TYPE_CHECKING:
    from toolrelay.config.schema import WebSearchConfig

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


class WebSearchTool:
    """Web search tool using a SearXNG JSON backend.

    Implements the :class:`Tool` protocol.
    """

    def __init__(
        self,
        config: WebSearchConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        from toolrelay.config.schema import WebSearchConfig as WSConfig

        self._config = config or WSConfig()
        self._client = client

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return "Call this function to search the web for information."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "strict": True,
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query to use.",
                },
            },
            "required": ["query"],
        }

    @property
    def required_capabilities(self) -> tuple[str, ...]:
        return ("SEARXNG_URL",)

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute a web search.

        Returns:
            Success with the JSON list of ``{title, url, content}`` results,
            or an error result ``{"error": "Search failed", "message": ...}``.
        """
        query = kwargs.get("query", "")
        try:
            if not isinstance(query, str) or not query.strip():
                msg = "Search query cannot be empty"
                raise ValueError(msg)
            results = await self._search(query)
        except (ValueError, SearchError) as e:
            logger.error("Search failed: %s", e)
            return ToolResult.error({"error": "Search failed", "message": str(e)})
        logger.info("Found %d results from SearXNG for %r", len(results), query)
        return ToolResult.success(results)

    async def _search(self, query: str) -> list[dict[str, str]]:
        """Query SearXNG and simplify its results."""
        base_url = self._config.searxng_url
        if not base_url:
            msg = "Search service is not configured."
            raise SearchError(msg)

        params = {"q": query, "format": "json", "category_general": "1"}
        headers = {"Accept": "application/json", "User-Agent": _USER_AGENT}
        url = f"{base_url.rstrip('/')}/search"

        client = self._client or httpx.AsyncClient(timeout=self._config.timeout)
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            msg = f"SearXNG request failed: {e}"
            raise SearchError(msg) from e
        finally:
            if self._client is None:
                await client.aclose()

        if not response.is_success:
            msg = f"SearXNG request failed with status {response.status_code}"
            raise SearchError(msg)

        try:
            data = response.json()
        except ValueError as e:
            msg = "SearXNG returned a non-JSON response"
            raise SearchError(msg) from e

        results = data.get("results") if isinstance(data, dict) else None
        return self._format_results(results or [])

    def _format_results(self, results: list[dict[str, Any]]) -> list[dict[str, str]]:
        """Keep the first ``max_results`` hits, truncating each field."""
        return [
            {
                "title": str(r["title"])[:100] if r.get("title") else "No title",
                "url": str(r["url"])[:500] if r.get("url") else "#",
                "content": (
                    str(r["content"])[:150]
                    if r.get("content")
                    else "No content available."
                ),
            }
            for r in results[: self._config.max_results]
        ]
