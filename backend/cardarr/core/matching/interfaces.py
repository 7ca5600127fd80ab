"""Abstract collaborators of the match discovery engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from cardarr.core.matching.models import CardListing, CounterpartyInventory, Match, UserProfile


class InventoryProvider(ABC):
    """Source of user profiles and card listings.

    Any exception raised here aborts the discovery run.
    """

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Return the profile, or None when the user does not exist."""

    @abstractmethod
    async def get_user_cards(self, user_id: str) -> list[CardListing]:
        """Return all of the user's listings, trade and want."""

    @abstractmethod
    async def get_all_other_users_with_cards(
        self, excluding_user_id: str
    ) -> list[CounterpartyInventory]:
        """Return every other user with their listings."""


class PricingOracle(ABC):
    """Live market price source.

    Implementations should return None on a miss, rate limit or malformed
    response. The pricing resolver still guards against exceptions.
    """

    @abstractmethod
    async def get_live_price(self, card: CardListing) -> float | None:
        """Current market price for the card, or None if unknown."""


class NullPriceOracle(PricingOracle):
    """Oracle used when live pricing is disabled: every lookup misses."""

    async def get_live_price(self, card: CardListing) -> float | None:
        return None


class MatchStore(ABC):
    """Persistence for discovered matches."""

    @abstractmethod
    async def delete_pending_matches_for_user(self, user_id: str) -> int:
        """Delete pending matches where user_id is user1. Returns the count removed."""

    @abstractmethod
    async def insert_matches(self, matches: list[Match]) -> None:
        """Insert new match rows."""

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Scope in which delete + insert commit together.

        The default does nothing, so a store that does not override it has a
        window between delete and insert where readers see no pending matches.
        """
        yield
