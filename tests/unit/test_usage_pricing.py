"""Tests for usage accumulation and model pricing."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from roundtrip.engine.usage import UsageAccumulator
from roundtrip.providers.base import TokenUsage
from roundtrip.providers.pricing import (
    ModelPricing,
    PricingCatalog,
    parse_pricing_table,
)

MODELS_PAYLOAD: dict[str, Any] = {
    "data": [
        {
            "id": "anthropic/claude-opus-4.5",
            "name": "Claude Opus 4.5",
            "pricing": {"prompt": "0.000005", "completion": "0.000025"},
        },
        {"id": "free/model", "pricing": {"prompt": "0", "completion": "0"}},
        {"name": "no id, skipped"},
        {"id": "odd/model", "pricing": {"prompt": "n/a"}},
    ]
}


def _catalog(handler: Any) -> PricingCatalog:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PricingCatalog("https://pricing.test/models", http_client=client)


# ── Usage ───────────────────────────────────────────────────────────


class TestUsageAccumulator:
    def test_starts_at_zero(self) -> None:
        acc = UsageAccumulator()
        assert acc.total == TokenUsage()

    def test_sums_rounds(self, make_usage: Any) -> None:
        acc = UsageAccumulator()
        acc.add(make_usage())
        acc.add(make_usage(prompt_tokens=10, completion_tokens=1))
        assert acc.total == TokenUsage(110, 51)
        assert acc.total.total_tokens == 161

    def test_missing_usage_counts_as_zero(self, make_usage: Any) -> None:
        acc = UsageAccumulator()
        acc.add(None)
        acc.add(make_usage())
        assert acc.total == TokenUsage(100, 50)

    def test_model_pricing_cost(self) -> None:
        pricing = ModelPricing("m", "M", prompt=0.000003, completion=0.000015)
        assert pricing.cost(TokenUsage(1_000_000, 100_000)) == pytest.approx(3.0 + 1.5)
        assert pricing.cost(TokenUsage()) == 0.0


# ── Pricing table ───────────────────────────────────────────────────


class TestParsePricingTable:
    def test_parses_entries(self) -> None:
        table = parse_pricing_table(MODELS_PAYLOAD)
        opus = table["anthropic/claude-opus-4.5"]
        assert opus.name == "Claude Opus 4.5"
        assert opus.prompt_per_mtok == pytest.approx(5.0)
        assert opus.completion_per_mtok == pytest.approx(25.0)

    def test_skips_entries_without_id(self) -> None:
        assert set(parse_pricing_table(MODELS_PAYLOAD)) == {
            "anthropic/claude-opus-4.5",
            "free/model",
            "odd/model",
        }

    def test_name_defaults_to_id(self) -> None:
        assert parse_pricing_table(MODELS_PAYLOAD)["free/model"].name == "free/model"

    def test_unparseable_prices_are_zero(self) -> None:
        odd = parse_pricing_table(MODELS_PAYLOAD)["odd/model"]
        assert odd.prompt == 0.0
        assert odd.completion == 0.0

    def test_empty_payload(self) -> None:
        assert parse_pricing_table({}) == {}


# ── Catalog ─────────────────────────────────────────────────────────


class TestPricingCatalog:
    async def test_get_known_model(self) -> None:
        catalog = _catalog(lambda request: httpx.Response(200, json=MODELS_PAYLOAD))
        pricing = await catalog.get("anthropic/claude-opus-4.5")
        assert pricing is not None
        assert pricing.prompt == pytest.approx(0.000005)

    async def test_unknown_model(self) -> None:
        catalog = _catalog(lambda request: httpx.Response(200, json=MODELS_PAYLOAD))
        assert await catalog.get("nobody/model") is None

    async def test_fetched_once(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=MODELS_PAYLOAD)

        catalog = _catalog(handler)
        await catalog.get("free/model")
        await catalog.get("odd/model")

        assert len(requests) == 1
        assert catalog.loaded is True

    async def test_failure_not_cached(self, caplog: pytest.LogCaptureFixture) -> None:
        responses = iter(
            [httpx.Response(503, text="down"), httpx.Response(200, json=MODELS_PAYLOAD)]
        )
        catalog = _catalog(lambda request: next(responses))

        assert await catalog.get("free/model") is None
        assert catalog.loaded is False
        assert "Failed to fetch model pricing" in caplog.text

        assert await catalog.get("free/model") is not None
        assert catalog.loaded is True

    async def test_invalid_json_is_a_failure(self) -> None:
        catalog = _catalog(lambda request: httpx.Response(200, text="not json"))
        assert await catalog.table() is None

    async def test_transport_error_is_a_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        assert await _catalog(handler).get("free/model") is None
