"""Tests for candidate pair price resolution."""

from __future__ import annotations

import asyncio

import pytest

from cardarr.core.matching.interfaces import NullPriceOracle, PricingOracle
from cardarr.core.matching.models import CardListing
from cardarr.core.matching.pricing import (
    LivePriceCache,
    lookup_live_price,
    resolve_prices,
    stored_price,
)


class StaticPriceOracle(PricingOracle):
    """Returns fixed prices by card id."""

    def __init__(self, prices: dict[str, object]):
        self.prices = prices
        self.calls: list[str] = []

    async def get_live_price(self, card: CardListing) -> float | None:
        self.calls.append(card.id)
        return self.prices.get(card.id)  # type: ignore[return-value]


class FailingPriceOracle(PricingOracle):
    async def get_live_price(self, card: CardListing) -> float | None:
        raise RuntimeError("pricing backend exploded")


class SlowPriceOracle(PricingOracle):
    async def get_live_price(self, card: CardListing) -> float | None:
        await asyncio.sleep(10)
        return 99.0


@pytest.fixture
def pikachu() -> CardListing:
    return CardListing(id="pika", owner_id="a", name="Pikachu", list_type="trade", market_price=20.0)


@pytest.fixture
def charizard() -> CardListing:
    return CardListing(id="zard", owner_id="b", name="Charizard", list_type="trade", market_price=25.0)


@pytest.mark.asyncio
async def test_live_prices_used_when_both_available(pikachu: CardListing, charizard: CardListing) -> None:
    oracle = StaticPriceOracle({"pika": 22.5, "zard": 30})

    pricing = await resolve_prices(pikachu, charizard, oracle, timeout=1.0)

    assert pricing.source == "live"
    assert pricing.price_a == 22.5
    assert pricing.price_b == 30.0
    assert sorted(oracle.calls) == ["pika", "zard"]


@pytest.mark.asyncio
async def test_one_live_price_missing_falls_back_to_stored(
    pikachu: CardListing, charizard: CardListing
) -> None:
    oracle = StaticPriceOracle({"pika": 22.5})

    pricing = await resolve_prices(pikachu, charizard, oracle, timeout=1.0)

    assert pricing.source == "estimated"
    assert (pricing.price_a, pricing.price_b) == (20.0, 25.0)


@pytest.mark.asyncio
async def test_non_positive_live_price_is_a_miss(pikachu: CardListing, charizard: CardListing) -> None:
    oracle = StaticPriceOracle({"pika": 0, "zard": -3})

    pricing = await resolve_prices(pikachu, charizard, oracle, timeout=1.0)

    assert pricing.source == "estimated"


@pytest.mark.asyncio
async def test_malformed_live_price_is_a_miss(pikachu: CardListing) -> None:
    assert await lookup_live_price(pikachu, StaticPriceOracle({"pika": "12.00"}), 1.0) is None
    assert await lookup_live_price(pikachu, StaticPriceOracle({"pika": True}), 1.0) is None


@pytest.mark.asyncio
async def test_oracle_error_does_not_propagate(pikachu: CardListing, charizard: CardListing) -> None:
    pricing = await resolve_prices(pikachu, charizard, FailingPriceOracle(), timeout=1.0)

    assert pricing.source == "estimated"
    assert (pricing.price_a, pricing.price_b) == (20.0, 25.0)


@pytest.mark.asyncio
async def test_oracle_timeout_falls_back_to_stored(pikachu: CardListing, charizard: CardListing) -> None:
    pricing = await resolve_prices(pikachu, charizard, SlowPriceOracle(), timeout=0.05)

    assert pricing.source == "estimated"
    assert pricing.price_a == 20.0


@pytest.mark.asyncio
async def test_semaphore_bounds_lookups(pikachu: CardListing, charizard: CardListing) -> None:
    semaphore = asyncio.Semaphore(1)
    oracle = StaticPriceOracle({"pika": 1.0, "zard": 2.0})

    pricing = await resolve_prices(pikachu, charizard, oracle, timeout=1.0, semaphore=semaphore)

    assert pricing.source == "live"
    assert not semaphore.locked()


@pytest.mark.asyncio
async def test_null_oracle_always_estimates(pikachu: CardListing, charizard: CardListing) -> None:
    pricing = await resolve_prices(pikachu, charizard, NullPriceOracle(), timeout=1.0)
    assert pricing.source == "estimated"


def test_stored_price_sanitizes_bad_values() -> None:
    card = CardListing(id="x", owner_id="a", name="Mew", list_type="trade")
    assert stored_price(card) == 0.0

    card.market_price = -5
    assert stored_price(card) == 0.0

    card.market_price = float("nan")
    assert stored_price(card) == 0.0

    card.market_price = 12.5
    assert stored_price(card) == 12.5


class TestLivePriceCache:
    """One oracle call per card id within a run."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_lookup(
        self, pikachu: CardListing, charizard: CardListing
    ) -> None:
        oracle = StaticPriceOracle({"pika": 22.5, "zard": 30})
        cache = LivePriceCache(oracle, timeout=1.0)

        results = await asyncio.gather(
            cache.get(pikachu), cache.get(pikachu), cache.get(charizard), cache.get(pikachu)
        )

        assert results == [22.5, 22.5, 30.0, 22.5]
        assert sorted(oracle.calls) == ["pika", "zard"]
        assert len(cache) == 2
        assert cache.reused == 2

    @pytest.mark.asyncio
    async def test_misses_are_cached_too(self, pikachu: CardListing) -> None:
        oracle = StaticPriceOracle({})
        cache = LivePriceCache(oracle, timeout=1.0)

        assert await cache.get(pikachu) is None
        assert await cache.get(pikachu) is None
        assert oracle.calls == ["pika"]

    @pytest.mark.asyncio
    async def test_resolve_prices_through_cache(
        self, pikachu: CardListing, charizard: CardListing
    ) -> None:
        oracle = StaticPriceOracle({"pika": 22.5, "zard": 30})
        cache = LivePriceCache(oracle, timeout=1.0)

        first = await resolve_prices(pikachu, charizard, oracle, timeout=1.0, cache=cache)
        second = await resolve_prices(pikachu, charizard, oracle, timeout=1.0, cache=cache)

        assert first == second
        assert first.source == "live"
        assert len(oracle.calls) == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_keeps_shared_lookup(self, pikachu: CardListing) -> None:
        class GatedOracle(PricingOracle):
            def __init__(self) -> None:
                self.release = asyncio.Event()

            async def get_live_price(self, card: CardListing) -> float | None:
                await self.release.wait()
                return 12.0

        oracle = GatedOracle()
        cache = LivePriceCache(oracle, timeout=1.0)
        first = asyncio.create_task(cache.get(pikachu))
        second = asyncio.create_task(cache.get(pikachu))
        await asyncio.sleep(0)

        first.cancel()
        oracle.release.set()

        assert await second == 12.0
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_close_cancels_outstanding_lookups(self, pikachu: CardListing) -> None:
        cache = LivePriceCache(SlowPriceOracle(), timeout=30.0)
        waiter = asyncio.create_task(cache.get(pikachu))
        await asyncio.sleep(0)

        await cache.close()

        with pytest.raises(asyncio.CancelledError):
            await waiter
