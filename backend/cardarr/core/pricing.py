"""Live card pricing from the Pokémon TCG API."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any

import httpx
import structlog

from cardarr.core.config import Settings
from cardarr.core.matching.interfaces import NullPriceOracle, PricingOracle
from cardarr.core.matching.models import CardListing

logger = structlog.get_logger("cardarr.core.pricing")

# Price fields in the order they are trusted
TCGPLAYER_VARIANTS = ("holofoil", "normal", "reverseHolofoil")
CARDMARKET_FIELDS = ("averageSellPrice", "trendPrice", "suggestedPrice")


def _positive(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value) if value > 0 else None


def _field(data: Any, key: str) -> Any:
    """data[key] when data is a JSON object, else None."""
    return data.get(key) if isinstance(data, dict) else None


def extract_price(card_data: dict[str, Any]) -> float | None:
    """Best market price for one API card record.

    TCGPlayer market prices come first (holofoil, normal, reverse holofoil),
    then TCGPlayer mid prices in the same order, then Cardmarket.

    Returns:
        Positive price, or None if the record carries none
    """
    tcg_prices = _field(_field(card_data, "tcgplayer"), "prices")
    for field in ("market", "mid"):
        for variant in TCGPLAYER_VARIANTS:
            price = _positive(_field(_field(tcg_prices, variant), field))
            if price is not None:
                return price

    cardmarket_prices = _field(_field(card_data, "cardmarket"), "prices")
    for field in CARDMARKET_FIELDS:
        price = _positive(_field(cardmarket_prices, field))
        if price is not None:
            return price

    return None


def build_search_query(card: CardListing) -> str:
    query = f'name:"{card.name.strip()}"'
    if card.set_name.strip():
        query += f' set.name:"{card.set_name.strip()}"'
    return query


def select_price(card: CardListing, results: list[dict[str, Any]]) -> float | None:
    """Price of the exact name (and set) match, else of the first priced result.

    Records that are not JSON objects are ignored.
    """
    name = card.name.strip().lower()
    set_name = card.set_name.strip().lower()
    records = [result for result in results if isinstance(result, dict)]

    for result in records:
        result_name = _field(result, "name")
        result_set = _field(_field(result, "set"), "name")
        if not isinstance(result_name, str) or result_name.lower() != name:
            continue
        if set_name and (not isinstance(result_set, str) or result_set.lower() != set_name):
            continue
        price = extract_price(result)
        if price is not None:
            return price

    for result in records:
        price = extract_price(result)
        if price is not None:
            return price

    return None


def parse_search_response(payload: Any) -> list[dict[str, Any]]:
    """Card records from a /cards response body.

    Raises:
        ValueError: The body is not an object with a "data" list
    """
    data = _field(payload, "data")
    if data is None and isinstance(payload, dict):
        return []
    if not isinstance(data, list):
        raise ValueError(f"Unexpected pricing API response: {type(payload).__name__}")
    return [item for item in data if isinstance(item, dict)]


class PokemonTcgPriceOracle(PricingOracle):
    """Pokémon TCG API price lookups with rate limiting and retries.

    Server errors (5xx) and network errors are retried with exponential
    backoff. Every failure ends as None; nothing is raised to the matcher.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.pokemontcg.io/v2",
        timeout: float = 5.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        rate_limit: int = 30,  # requests per period
        rate_limit_period: float = 60.0,  # seconds
        page_size: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.rate_limit = rate_limit
        self.rate_limit_period = rate_limit_period
        self.page_size = page_size
        self._transport = transport

        self._request_times: deque[float] = deque()
        self._rate_limit_lock = asyncio.Lock()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "Cardarr/0.1"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def _wait_for_rate_limit(self) -> None:
        """Sleep until another request fits in the rate limit window."""
        async with self._rate_limit_lock:
            now = time.monotonic()
            while self._request_times and self._request_times[0] < now - self.rate_limit_period:
                self._request_times.popleft()

            if len(self._request_times) >= self.rate_limit:
                wait_time = self._request_times[0] + self.rate_limit_period - now
                if wait_time > 0:
                    logger.debug(
                        "Rate limit reached, waiting",
                        wait_seconds=round(wait_time, 3),
                        current_count=len(self._request_times),
                    )
                    await asyncio.sleep(wait_time)
                    now = time.monotonic()
                    while (
                        self._request_times
                        and self._request_times[0] < now - self.rate_limit_period
                    ):
                        self._request_times.popleft()

            self._request_times.append(now)

    async def search_cards(self, card: CardListing) -> list[dict[str, Any]]:
        """Raw card records matching the listing's name and set.

        Raises:
            httpx.HTTPStatusError: For non-retryable HTTP errors or 5xx after retries
            httpx.RequestError: For network errors after retries
        """
        params = {"q": build_search_query(card), "pageSize": str(min(self.page_size, 250))}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        ) as client:
            for attempt in range(self.max_retries + 1):
                await self._wait_for_rate_limit()
                try:
                    response = await client.get("/cards", params=params)
                    response.raise_for_status()
                    return parse_search_response(response.json())
                except httpx.HTTPStatusError as e:
                    if e.response.status_code >= 500 and attempt < self.max_retries:
                        wait_time = self.retry_delay * 2**attempt
                        logger.warning(
                            "Pricing API server error, retrying",
                            status_code=e.response.status_code,
                            attempt=attempt + 1,
                            wait_seconds=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    raise
                except httpx.RequestError as e:
                    if attempt < self.max_retries:
                        wait_time = self.retry_delay * 2**attempt
                        logger.warning(
                            "Network error, retrying",
                            error=str(e),
                            attempt=attempt + 1,
                            wait_seconds=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    raise

        raise RuntimeError("Unexpected error in pricing client")

    async def get_live_price(self, card: CardListing) -> float | None:
        if not card.name.strip():
            return None

        try:
            results = await self.search_cards(card)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Pricing API request failed",
                card_name=card.name,
                status_code=e.response.status_code,
            )
            return None
        except (httpx.RequestError, ValueError, TypeError, AttributeError) as e:
            logger.warning(
                "Pricing API unavailable",
                card_name=card.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        price = select_price(card, results)
        logger.debug(
            "Pricing API lookup",
            card_name=card.name,
            results=len(results),
            price=price,
        )
        return price


def create_pricing_oracle(settings: Settings) -> PricingOracle:
    """Oracle for the configured pricing backend."""
    if not settings.pricing_enabled:
        logger.info("Live pricing disabled, using stored prices")
        return NullPriceOracle()

    return PokemonTcgPriceOracle(
        api_key=settings.pricing_api_key,
        base_url=settings.pricing_api_base_url,
        timeout=settings.pricing_timeout_seconds,
        max_retries=settings.pricing_max_retries,
    )
