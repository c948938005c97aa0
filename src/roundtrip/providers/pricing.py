"""Per-model token pricing, fetched once and cached for the process.

The catalog reads the OpenRouter ``/models`` listing the first time a price
is requested and keeps the parsed table for the lifetime of the catalog
object. A failed fetch is logged and not cached, so a later call can try
again; a successful fetch is never refreshed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from roundtrip.providers.base import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_PRICING_URL = "https://openrouter.ai/api/v1/models"


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """USD price per token for one model."""

    model_id: str
    name: str
    prompt: float
    completion: float

    @property
    def prompt_per_mtok(self) -> float:
        return self.prompt * 1_000_000

    @property
    def completion_per_mtok(self) -> float:
        return self.completion * 1_000_000

    def cost(self, usage: TokenUsage) -> float:
        """Cost in USD of the given token counts."""
        return (
            usage.prompt_tokens * self.prompt
            + usage.completion_tokens * self.completion
        )


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_pricing_table(payload: dict[str, Any]) -> dict[str, ModelPricing]:
    """Parse an OpenRouter ``/models`` payload into ``{model_id: pricing}``."""
    table: dict[str, ModelPricing] = {}
    for entry in payload.get("data") or []:
        model_id = entry.get("id")
        if not model_id:
            continue
        pricing = entry.get("pricing") or {}
        table[model_id] = ModelPricing(
            model_id=model_id,
            name=entry.get("name") or model_id,
            prompt=_to_float(pricing.get("prompt")),
            completion=_to_float(pricing.get("completion")),
        )
    return table


class PricingCatalog:
    """Lazy, memoized pricing lookup.

    Accepts an optional :class:`httpx.AsyncClient` for dependency injection
    in tests; otherwise a short-lived client is opened for the single fetch.
    """

    def __init__(
        self,
        url: str = DEFAULT_PRICING_URL,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._url = url
        self._http_client = http_client
        self._timeout = timeout
        self._table: dict[str, ModelPricing] | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._table is not None

    async def table(self) -> dict[str, ModelPricing] | None:
        """Return the full pricing table, fetching it on first use."""
        if self._table is not None:
            return self._table
        async with self._lock:
            if self._table is None:
                self._table = await self._fetch()
        return self._table

    async def get(self, model_id: str) -> ModelPricing | None:
        """Pricing for *model_id*, or None if unknown or unavailable."""
        table = await self.table()
        if table is None:
            return None
        return table.get(model_id)

    async def _fetch(self) -> dict[str, ModelPricing] | None:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(self._url)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch model pricing from %s: %s", self._url, e)
            return None
        table = parse_pricing_table(payload)
        logger.debug("Loaded pricing for %d models", len(table))
        return table
