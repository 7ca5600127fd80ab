"""Match discovery engine.

Finds two-party trades where each user's trade card is on the other user's
want list, scores them and keeps the best ones.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from cardarr.core.metrics import (
    discovery_counterparty_failures_total,
    discovery_duration_seconds,
    discovery_matches_returned,
    discovery_runs_total,
    discovery_timeouts_total,
)

from .config import MatchingConfig, get_matching_config
from .evaluator import evaluate_trade_pair
from .exceptions import InventoryUnavailableError, MatchPersistenceError
from .interfaces import InventoryProvider, MatchStore, NullPriceOracle, PricingOracle
from .models import CardListing, CounterpartyInventory, Match, MatchOptions, UserProfile
from .persistence import replace_pending_matches
from .pricing import LivePriceCache, resolve_prices
from .results import build_match, rank_matches
from .similarity import names_match

logger = structlog.get_logger("cardarr.matching.engine")


@dataclass
class _RunSettings:
    """MatchOptions with config defaults filled in."""

    min_match_score: float
    value_tolerance: float
    max_value_difference: float | None
    exclude_user_ids: frozenset[str]
    preferred_conditions: frozenset[str]


@dataclass
class _Initiator:
    profile: UserProfile
    trade_cards: list[CardListing]
    want_cards: list[CardListing]


class MatchDiscoveryEngine:
    """Discovers, ranks and stores trade matches for one user at a time.

    Collaborators are injected so the engine runs without network or database
    access in tests.
    """

    def __init__(
        self,
        inventory: InventoryProvider,
        match_store: MatchStore,
        pricing_oracle: PricingOracle | None = None,
        config: MatchingConfig | None = None,
    ):
        self.inventory = inventory
        self.match_store = match_store
        self.pricing_oracle = pricing_oracle or NullPriceOracle()
        self._config = config
        self._user_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}  # runs holding or waiting on each lock

    @property
    def config(self) -> MatchingConfig:
        return self._config if self._config is not None else get_matching_config()

    @asynccontextmanager
    async def _serialized(self, user_id: str) -> AsyncIterator[None]:
        """Hold the user's lock; the lock is dropped once no run needs it."""
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._user_locks[user_id]

    def _resolve_options(self, options: MatchOptions | None) -> _RunSettings:
        options = options or MatchOptions()
        config = self.config
        return _RunSettings(
            min_match_score=(
                options.min_match_score
                if options.min_match_score is not None
                else config.default_min_match_score
            ),
            value_tolerance=(
                options.value_tolerance
                if options.value_tolerance is not None
                else config.default_value_tolerance
            ),
            max_value_difference=(
                options.max_value_difference
                if options.max_value_difference is not None
                else config.default_max_value_difference
            ),
            exclude_user_ids=frozenset(options.exclude_user_ids),
            preferred_conditions=frozenset(c.strip().lower() for c in options.preferred_conditions),
        )

    async def generate_matches(
        self,
        user_id: str,
        options: MatchOptions | None = None,
    ) -> list[Match]:
        """Discover matches for user_id and replace their stored pending matches.

        Runs for the same user are serialized.

        Args:
            user_id: Initiating user
            options: Per-run tuning (defaults from MatchingConfig)

        Returns:
            Ranked matches; empty when there is nothing to trade

        Raises:
            InventoryUnavailableError: Inventory could not be read; the store
                was not touched
            MatchPersistenceError: Storing failed; the matches are attached
        """
        async with self._serialized(user_id):
            matches = await self.discover(user_id, options)

            try:
                await replace_pending_matches(user_id, matches, self.match_store)
            except Exception as exc:
                discovery_runs_total.labels(outcome="persistence_failed").inc()
                logger.error(
                    "Failed to persist matches",
                    user_id=user_id,
                    match_count=len(matches),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise MatchPersistenceError(user_id, matches, str(exc)) from exc

        return matches

    async def discover(
        self,
        user_id: str,
        options: MatchOptions | None = None,
    ) -> list[Match]:
        """Find and rank candidate trades for user_id without storing them.

        Args:
            user_id: Initiating user
            options: Per-run tuning (defaults from MatchingConfig)

        Returns:
            Up to config.max_results matches, best first

        Raises:
            InventoryUnavailableError: The inventory provider failed
        """
        settings = self._resolve_options(options)
        config = self.config
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(
            discovery_run_id=uuid.uuid4().hex, user_id=user_id
        ):
            logger.info(
                "Starting match discovery",
                min_match_score=settings.min_match_score,
                value_tolerance=settings.value_tolerance,
                max_value_difference=settings.max_value_difference,
            )

            try:
                initiator = await self._load_initiator(user_id)
                counterparties = (
                    await self.inventory.get_all_other_users_with_cards(user_id)
                    if initiator is not None
                    else []
                )
            except Exception as exc:
                discovery_runs_total.labels(outcome="failed").inc()
                logger.error(
                    "Inventory unavailable, aborting discovery",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise InventoryUnavailableError(user_id, str(exc)) from exc

            if initiator is None:
                discovery_runs_total.labels(outcome="no_matches").inc()
                return []

            logger.debug("Loaded counterparties", counterparty_count=len(counterparties))

            candidates = await self._score_counterparties(initiator, counterparties, settings)
            matches = rank_matches(candidates, config.max_results)

            duration = time.monotonic() - started
            discovery_duration_seconds.observe(duration)
            discovery_matches_returned.observe(len(matches))
            discovery_runs_total.labels(outcome="matches" if matches else "no_matches").inc()

            logger.info(
                "Match discovery finished",
                candidates=len(candidates),
                returned=len(matches),
                duration_seconds=round(duration, 3),
            )
            return matches

    async def _load_initiator(self, user_id: str) -> _Initiator | None:
        """Initiating user's profile and lists, or None if they cannot trade."""
        profile = await self.inventory.get_user_profile(user_id)
        if profile is None:
            logger.info("Initiating user not found")
            return None

        cards = [c for c in await self.inventory.get_user_cards(user_id) if c.owner_id == user_id]
        trade_cards = [c for c in cards if c.list_type == "trade"]
        want_cards = [c for c in cards if c.list_type == "want"]

        if not trade_cards or not want_cards:
            logger.info(
                "Initiating user needs both trade and want cards",
                trade_cards=len(trade_cards),
                want_cards=len(want_cards),
            )
            return None

        return _Initiator(profile=profile, trade_cards=trade_cards, want_cards=want_cards)

    async def _score_counterparties(
        self,
        initiator: _Initiator,
        counterparties: list[CounterpartyInventory],
        settings: _RunSettings,
    ) -> list[Match]:
        """Score every counterparty concurrently, keeping what finishes before the timeout."""
        config = self.config
        prices = LivePriceCache(
            self.pricing_oracle,
            config.pricing_timeout_seconds,
            asyncio.Semaphore(config.pricing_concurrency),
        )

        tasks = [
            asyncio.create_task(self._process_counterparty(initiator, other, settings, prices))
            for other in counterparties
            if other.profile.id != initiator.profile.id
            and other.profile.id not in settings.exclude_user_ids
        ]
        if not tasks:
            return []

        try:
            done, pending = await asyncio.wait(tasks, timeout=config.discovery_timeout_seconds)
            if pending:
                discovery_timeouts_total.inc()
                logger.warning(
                    "Discovery timed out, returning partial results",
                    timeout_seconds=config.discovery_timeout_seconds,
                    completed=len(done),
                    abandoned=len(pending),
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            await prices.close()
        logger.debug("Live price lookups", cards=len(prices), reused=prices.reused)

        matches: list[Match] = []
        for task in tasks:
            if task in done:
                matches.extend(task.result())
        return matches

    async def _process_counterparty(
        self,
        initiator: _Initiator,
        other: CounterpartyInventory,
        settings: _RunSettings,
        prices: LivePriceCache,
    ) -> list[Match]:
        """Matches with one counterparty. Errors are logged and yield no matches."""
        try:
            pairs = self._find_mutual_pairs(initiator, other, settings)
            if not pairs:
                return []

            scored = await asyncio.gather(
                *(
                    self._score_pair(initiator, other.profile, mine, theirs, settings, prices)
                    for mine, theirs in pairs
                )
            )
            return [match for match in scored if match is not None]
        except Exception as exc:
            discovery_counterparty_failures_total.inc()
            logger.error(
                "Failed to process counterparty, skipping",
                counterparty_id=getattr(other.profile, "id", None),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return []

    def _find_mutual_pairs(
        self,
        initiator: _Initiator,
        other: CounterpartyInventory,
        settings: _RunSettings,
    ) -> list[tuple[CardListing, CardListing]]:
        """(my trade card, their trade card) pairs that each side wants."""
        config = self.config
        their_id = other.profile.id
        their_trade = [c for c in other.trade_cards if c.owner_id == their_id]
        their_want = [c for c in other.want_cards if c.owner_id == their_id]

        if not their_trade or not their_want:
            logger.debug(
                "Counterparty missing trade or want cards",
                counterparty_id=their_id,
                trade_cards=len(their_trade),
                want_cards=len(their_want),
            )
            return []

        if settings.preferred_conditions:
            their_trade = [
                c
                for c in their_trade
                if (c.condition or "").strip().lower() in settings.preferred_conditions
            ]

        # Cards of mine they want, cards of theirs I want
        wanted_by_them = [
            mine
            for mine in initiator.trade_cards
            if any(names_match(want.name, mine.name, config) for want in their_want)
        ]
        if not wanted_by_them:
            return []

        wanted_by_me = [
            theirs
            for theirs in their_trade
            if any(names_match(want.name, theirs.name, config) for want in initiator.want_cards)
        ]

        return [(mine, theirs) for mine in wanted_by_them for theirs in wanted_by_me]

    async def _score_pair(
        self,
        initiator: _Initiator,
        counterparty: UserProfile,
        mine: CardListing,
        theirs: CardListing,
        settings: _RunSettings,
        prices: LivePriceCache,
    ) -> Match | None:
        """Price and score one pair; None if it fails the run's filters."""
        config = self.config
        pricing = await resolve_prices(
            mine,
            theirs,
            self.pricing_oracle,
            config.pricing_timeout_seconds,
            cache=prices,
        )

        trade_score = evaluate_trade_pair(
            mine,
            theirs,
            pricing,
            counterparty,
            value_tolerance=settings.value_tolerance,
            my_tolerance=_personal_tolerance(initiator.profile, settings.value_tolerance),
            their_tolerance=_personal_tolerance(counterparty, settings.value_tolerance),
            config=config,
        )

        match = build_match(initiator.profile.id, mine, theirs, trade_score, pricing, config)

        if match.match_score < settings.min_match_score:
            logger.debug(
                "Pair below minimum score",
                my_card=mine.name,
                their_card=theirs.name,
                score=match.match_score,
            )
            return None

        if (
            settings.max_value_difference is not None
            and match.value_difference > settings.max_value_difference
        ):
            logger.debug(
                "Pair exceeds maximum value difference",
                my_card=mine.name,
                their_card=theirs.name,
                value_difference=match.value_difference,
            )
            return None

        logger.debug(
            "Match found",
            my_card=mine.name,
            their_card=theirs.name,
            counterparty_id=counterparty.id,
            score=match.match_score,
            mutual_benefit=match.mutual_benefit_score,
            price_source=pricing.source,
        )
        return match


def _personal_tolerance(profile: UserProfile, fallback: float) -> float:
    """User's own minimum value percentage, or the run's tolerance when unset."""
    if profile.trade_percentage_min is None or profile.trade_percentage_min <= 0:
        return fallback
    return profile.trade_percentage_min
