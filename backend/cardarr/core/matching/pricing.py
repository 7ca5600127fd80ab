"""Price resolution for a candidate pair.

Stored listing prices are the fallback; live prices are used only when both
cards get a positive live quote. Oracle failures never leave this module.
"""

from __future__ import annotations

import asyncio
import contextlib
import math

import structlog

from cardarr.core.metrics import pricing_lookups_total

from .interfaces import PricingOracle
from .models import CardListing, ResolvedPricing

logger = structlog.get_logger("cardarr.matching.pricing")


def stored_price(card: CardListing) -> float:
    """Listing price as a non-negative float (0 means unknown)."""
    try:
        price = float(card.market_price or 0)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(price) or price < 0:
        return 0.0
    return price


async def lookup_live_price(
    card: CardListing,
    oracle: PricingOracle,
    timeout: float,
    semaphore: asyncio.Semaphore | None = None,
) -> float | None:
    """Ask the oracle for one card's price, bounded by timeout.

    Returns:
        A positive price, or None on miss, timeout, error or nonsense value.
    """
    limiter = semaphore if semaphore is not None else contextlib.nullcontext()
    try:
        async with limiter:
            price = await asyncio.wait_for(oracle.get_live_price(card), timeout=timeout)
    except TimeoutError:
        pricing_lookups_total.labels(result="timeout").inc()
        logger.warning("Live price lookup timed out", card_id=card.id, card_name=card.name, timeout=timeout)
        return None
    except Exception as exc:
        pricing_lookups_total.labels(result="error").inc()
        logger.warning(
            "Live price lookup failed",
            card_id=card.id,
            card_name=card.name,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return None

    if isinstance(price, bool) or not isinstance(price, int | float) or not price > 0:
        pricing_lookups_total.labels(result="miss").inc()
        return None

    pricing_lookups_total.labels(result="hit").inc()
    return float(price)


async def resolve_prices(
    card_a: CardListing,
    card_b: CardListing,
    oracle: PricingOracle,
    timeout: float,
    semaphore: asyncio.Semaphore | None = None,
    cache: LivePriceCache | None = None,
) -> ResolvedPricing:
    """Best available prices for both cards.

    Args:
        card_a: Initiating user's trade card
        card_b: Counterparty's trade card
        oracle: Live price source
        timeout: Per-lookup timeout in seconds
        semaphore: Optional limiter shared across the discovery run
        cache: Optional per-run cache; when given, lookups go through it

    Returns:
        ResolvedPricing with source "live" when both live lookups returned a
        positive price, otherwise the stored prices with source "estimated".
    """
    if cache is not None:
        live_a, live_b = await asyncio.gather(cache.get(card_a), cache.get(card_b))
    else:
        live_a, live_b = await asyncio.gather(
            lookup_live_price(card_a, oracle, timeout, semaphore),
            lookup_live_price(card_b, oracle, timeout, semaphore),
        )

    if live_a is not None and live_b is not None:
        logger.debug(
            "Using live pricing",
            card_a=card_a.name,
            price_a=live_a,
            card_b=card_b.name,
            price_b=live_b,
        )
        return ResolvedPricing(price_a=live_a, price_b=live_b, source="live")

    return ResolvedPricing(
        price_a=stored_price(card_a),
        price_b=stored_price(card_b),
        source="estimated",
    )


class LivePriceCache:
    """Live prices for one discovery run, looked up at most once per card id.

    A card shared by many candidate pairs (typically one of the initiator's
    trade cards) costs a single oracle call. Concurrent requests for the same
    card wait on the first lookup.
    """

    def __init__(
        self,
        oracle: PricingOracle,
        timeout: float,
        semaphore: asyncio.Semaphore | None = None,
    ):
        self.oracle = oracle
        self.timeout = timeout
        self.semaphore = semaphore
        self._lookups: dict[str, asyncio.Task[float | None]] = {}
        self.reused = 0

    def __len__(self) -> int:
        return len(self._lookups)

    async def get(self, card: CardListing) -> float | None:
        task = self._lookups.get(card.id)
        if task is None:
            task = asyncio.create_task(
                lookup_live_price(card, self.oracle, self.timeout, self.semaphore)
            )
            self._lookups[card.id] = task
        else:
            self.reused += 1
        # A cancelled waiter must not cancel the lookup other pairs share
        return await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel lookups nobody is waiting for any more."""
        pending = [task for task in self._lookups.values() if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
