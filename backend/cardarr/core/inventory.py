"""SQL-backed inventory provider and match store."""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from cardarr.core.database import retry_db_operation
from cardarr.core.matching.exceptions import InvalidStatusTransitionError, MatchNotFoundError
from cardarr.core.matching.interfaces import InventoryProvider, MatchStore
from cardarr.core.matching.models import (
    STATUS_TRANSITIONS,
    CardListing,
    CounterpartyInventory,
    Match,
    MatchStatus,
    ResolvedPricing,
    UserProfile,
)
from cardarr.core.matching.results import pricing_to_dict, trade_score_from_dict
from cardarr.db.models import Card, TradeMatch, User

logger = structlog.get_logger("cardarr.inventory")

SessionFactory = async_sessionmaker[SQLModelAsyncSession]


def profile_from_row(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        total_trades=user.total_trades or 0,
        match_success_rate=user.match_success_rate or 0.0,
        reputation_score=user.reputation_score or 0.0,
        trade_percentage_min=user.trade_percentage_min,
    )


def card_from_row(card: Card) -> CardListing:
    return CardListing(
        id=card.id,
        owner_id=card.user_id,
        name=card.name,
        list_type="want" if card.list_type == "want" else "trade",
        set_name=card.set_name or "",
        card_number=card.card_number,
        rarity=card.rarity,
        condition=card.condition or "Near Mint",
        quantity=card.quantity,
        market_price=card.market_price or 0.0,
    )


def match_to_row(match: Match) -> TradeMatch:
    return TradeMatch(
        id=match.id,
        user1_id=match.user1_id,
        user2_id=match.user2_id,
        user1_card_id=match.user1_card_id,
        user2_card_id=match.user2_card_id,
        match_score=match.match_score,
        value_difference=match.value_difference,
        mutual_benefit_score=match.mutual_benefit_score,
        confidence=match.confidence,
        status=str(match.status),
        trade_score=match.trade_score.to_dict(),
        pricing=pricing_to_dict(match.pricing),
        created_at=match.created_at,
        updated_at=match.created_at,
    )


def match_from_row(row: TradeMatch) -> Match:
    pricing: dict[str, Any] = row.pricing or {}
    return Match(
        id=row.id,
        user1_id=row.user1_id,
        user2_id=row.user2_id,
        user1_card_id=row.user1_card_id,
        user2_card_id=row.user2_card_id,
        match_score=row.match_score,
        value_difference=row.value_difference,
        mutual_benefit_score=row.mutual_benefit_score or 0.0,
        confidence=row.confidence or "low",  # type: ignore[arg-type]
        trade_score=trade_score_from_dict(
            row.trade_score
            or {
                "value_score": 0.0,
                "condition_score": 0.0,
                "rarity_score": 0.0,
                "reputation_score": 0.0,
                "mutual_benefit_score": row.mutual_benefit_score or 0.0,
                "overall_score": row.match_score,
            }
        ),
        pricing=ResolvedPricing(
            price_a=pricing.get("user1_card_price", 0.0),
            price_b=pricing.get("user2_card_price", 0.0),
            source=pricing.get("price_source", "estimated"),
        ),
        status=MatchStatus(row.status),
        created_at=row.created_at,
    )


class SqlInventoryProvider(InventoryProvider):
    """Reads users and cards from the database."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        async with self.session_factory() as session:
            user = await retry_db_operation(
                lambda: session.get(User, user_id), session=session, operation_type="query"
            )
        return profile_from_row(user) if user else None

    async def get_user_cards(self, user_id: str) -> list[CardListing]:
        async with self.session_factory() as session:
            result = await retry_db_operation(
                lambda: session.exec(
                    select(Card)
                    .where(Card.user_id == user_id)
                    .order_by(col(Card.created_at), col(Card.id))
                ),
                session=session,
                operation_type="query",
            )
            return [card_from_row(card) for card in result.all()]

    async def get_all_other_users_with_cards(
        self, excluding_user_id: str
    ) -> list[CounterpartyInventory]:
        async with self.session_factory() as session:
            users_result = await retry_db_operation(
                lambda: session.exec(
                    select(User).where(User.id != excluding_user_id).order_by(col(User.id))
                ),
                session=session,
                operation_type="query",
            )
            users = users_result.all()
            if not users:
                return []

            cards_result = await retry_db_operation(
                lambda: session.exec(
                    select(Card)
                    .where(col(Card.user_id).in_([u.id for u in users]))
                    .order_by(col(Card.created_at), col(Card.id))
                ),
                session=session,
                operation_type="query",
            )
            cards_by_user: dict[str, list[CardListing]] = defaultdict(list)
            for card in cards_result.all():
                cards_by_user[card.user_id].append(card_from_row(card))

        return [
            CounterpartyInventory(profile=profile_from_row(user), cards=cards_by_user[user.id])
            for user in users
        ]


class SqlMatchStore(MatchStore):
    """Stores matches in the matches table.

    Inside transaction(), delete and insert share one session and commit once,
    so readers never see the user's pending matches half replaced.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        self._active_session: ContextVar[SQLModelAsyncSession | None] = ContextVar(
            f"match_store_session_{id(self)}", default=None
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """One session for everything inside the block, committed once.

        Commit errors propagate and roll back the whole block.
        """
        async with self.session_factory() as session:
            token = self._active_session.set(session)
            try:
                yield
                await session.commit()
            except BaseException:
                await session.rollback()
                raise
            finally:
                self._active_session.reset(token)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[SQLModelAsyncSession]:
        """The transaction's session, or a transaction of its own."""
        active = self._active_session.get()
        if active is not None:
            yield active
            return

        async with self.transaction():
            yield self._active_session.get()  # type: ignore[misc]

    async def delete_pending_matches_for_user(self, user_id: str) -> int:
        async with self._session() as session:
            result = await session.exec(
                select(TradeMatch).where(
                    TradeMatch.user1_id == user_id,
                    TradeMatch.status == MatchStatus.PENDING.value,
                )
            )
            rows = result.all()
            for row in rows:
                await session.delete(row)
            await session.flush()
        return len(rows)

    async def insert_matches(self, matches: list[Match]) -> None:
        async with self._session() as session:
            session.add_all([match_to_row(match) for match in matches])
            await session.flush()

    async def list_matches(
        self,
        user_id: str,
        status: MatchStatus | None = None,
    ) -> list[Match]:
        """Matches where the user is either party, best first."""
        async with self.session_factory() as session:
            query = select(TradeMatch).where(
                or_(TradeMatch.user1_id == user_id, TradeMatch.user2_id == user_id)
            )
            if status is not None:
                query = query.where(TradeMatch.status == status.value)
            query = query.order_by(
                col(TradeMatch.match_score).desc(),
                col(TradeMatch.mutual_benefit_score).desc(),
                col(TradeMatch.created_at).desc(),
            )
            result = await retry_db_operation(
                lambda: session.exec(query), session=session, operation_type="query"
            )
            return [match_from_row(row) for row in result.all()]

    async def get_match(self, match_id: str) -> Match:
        async with self.session_factory() as session:
            row = await session.get(TradeMatch, match_id)
            if row is None:
                raise MatchNotFoundError(match_id)
            return match_from_row(row)

    async def update_match_status(self, match_id: str, new_status: MatchStatus) -> Match:
        """Move a match along its lifecycle.

        Lock errors retry the whole read-check-write in a fresh session.

        Raises:
            MatchNotFoundError: Unknown match id
            InvalidStatusTransitionError: The lifecycle does not allow the move
        """

        async def apply() -> tuple[Match, MatchStatus]:
            async with self.session_factory() as session:
                row = await session.get(TradeMatch, match_id)
                if row is None:
                    raise MatchNotFoundError(match_id)

                current = MatchStatus(row.status)
                if new_status not in STATUS_TRANSITIONS[current]:
                    raise InvalidStatusTransitionError(match_id, current.value, new_status.value)

                row.status = new_status.value
                row.updated_at = int(time.time())
                session.add(row)
                await session.commit()
                return match_from_row(row), current

        match, previous = await retry_db_operation(apply, operation_type="update_status")
        logger.info(
            "Match status updated",
            match_id=match_id,
            from_status=previous.value,
            to_status=new_status.value,
        )
        return match
