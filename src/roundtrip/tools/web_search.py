"""Web search tool: DuckDuckGo by default, Tavily when configured."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx
from duckduckgo_search import DDGS

if TYPE_CHECKING:
    from roundtrip.config.schema import WebSearchConfig
    from roundtrip.tools.base import ToolContext

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"


class WebSearchTool:
    """Web search tool using DuckDuckGo (default) or Tavily backend.

    Implements the :class:`Tool` protocol.
    """

    def __init__(
        self,
        config: WebSearchConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        from roundtrip.config.schema import WebSearchConfig as _WebSearchConfig

        self._config = config or _WebSearchConfig()
        self._http = http_client

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return "Search the web for current information on a topic."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query.",
                },
            },
            "required": ["query"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        """Run a search and format the hits.

        Raises:
            ValueError: If 'query' is missing or empty.
            RuntimeError: If the Tavily backend has no API key.
        """
        query = args.get("query", "")
        if not query or not isinstance(query, str):
            msg = "Parameter 'query' is required and must be a non-empty string."
            raise ValueError(msg)

        if self._config.backend == "tavily":
            results = await self._search_tavily(query)
        else:
            results = await self._search_duckduckgo(query)

        logger.debug("web_search %r: %d results", query, len(results))
        if not results:
            return f"No results found for: {query}"
        return format_results(results)

    async def _search_duckduckgo(self, query: str) -> list[dict[str, str]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._ddg_search, query)

    def _ddg_search(self, query: str) -> list[dict[str, str]]:
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=self._config.max_results))

    async def _search_tavily(self, query: str) -> list[dict[str, str]]:
        if not self._config.api_key:
            msg = "Tavily API key is required. Set tools.web_search.api_key in config."
            raise RuntimeError(msg)

        payload = {
            "api_key": self._config.api_key,
            "query": query,
            "max_results": self._config.max_results,
        }
        if self._http is not None:
            response = await self._http.post(TAVILY_URL, json=payload)
        else:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.post(TAVILY_URL, json=payload)
        response.raise_for_status()
        data = response.json()

        return [
            {
                "title": r.get("title", ""),
                "href": r.get("url", ""),
                "body": r.get("content", ""),
            }
            for r in data.get("results", [])
        ]


def format_results(results: list[dict[str, str]]) -> str:
    """Numbered title / URL / snippet listing."""
    lines: list[str] = []
    for i, r in enumerate(results, 1):
        lines.append(f"{i}. {r.get('title') or 'No title'}")
        if r.get("href"):
            lines.append(f"   URL: {r['href']}")
        lines.append(f"   {r.get('body') or 'No description'}")
        lines.append("")
    return "\n".join(lines).strip()
