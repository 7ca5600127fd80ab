"""Domain records exchanged between the matcher and its collaborators."""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Literal

ListType = Literal["trade", "want"]
Confidence = Literal["high", "medium", "low"]
PriceSource = Literal["live", "estimated"]


class CardCondition(StrEnum):
    """Card condition, best first."""

    MINT = "Mint"
    NEAR_MINT = "Near Mint"
    LIGHTLY_PLAYED = "Lightly Played"
    MODERATELY_PLAYED = "Moderately Played"
    HEAVILY_PLAYED = "Heavily Played"
    DAMAGED = "Damaged"

    @property
    def rank(self) -> int:
        """6 for Mint down to 1 for Damaged."""
        return CONDITION_RANKS[self]


CONDITION_RANKS: dict[CardCondition, int] = {
    CardCondition.MINT: 6,
    CardCondition.NEAR_MINT: 5,
    CardCondition.LIGHTLY_PLAYED: 4,
    CardCondition.MODERATELY_PLAYED: 3,
    CardCondition.HEAVILY_PLAYED: 2,
    CardCondition.DAMAGED: 1,
}


class MatchStatus(StrEnum):
    """Lifecycle of a persisted match."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


# Allowed status moves; anything else is rejected by the match store
STATUS_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.PENDING: frozenset({MatchStatus.ACCEPTED, MatchStatus.DECLINED}),
    MatchStatus.ACCEPTED: frozenset({MatchStatus.COMPLETED, MatchStatus.DECLINED}),
    MatchStatus.DECLINED: frozenset(),
    MatchStatus.COMPLETED: frozenset(),
}


@dataclass
class CardListing:
    """One physical card on a trade or want list."""

    id: str
    owner_id: str
    name: str
    list_type: ListType
    set_name: str = ""
    card_number: str | None = None
    rarity: str | None = None
    condition: str | None = CardCondition.NEAR_MINT
    quantity: int = 1
    market_price: float = 0.0


@dataclass
class UserProfile:
    """The slice of a user's profile the matcher reads."""

    id: str
    username: str = ""
    total_trades: int = 0
    match_success_rate: float = 0.0  # percent
    reputation_score: float = 0.0  # 0-5
    trade_percentage_min: float | None = None  # personal value tolerance, percent


@dataclass
class CounterpartyInventory:
    """Another user together with all of their listings."""

    profile: UserProfile
    cards: list[CardListing]

    @property
    def trade_cards(self) -> list[CardListing]:
        return [c for c in self.cards if c.list_type == "trade"]

    @property
    def want_cards(self) -> list[CardListing]:
        return [c for c in self.cards if c.list_type == "want"]


@dataclass
class MatchOptions:
    """Per-run tuning. None means "use the MatchingConfig default"."""

    max_value_difference: float | None = None
    min_match_score: float | None = None
    value_tolerance: float | None = None
    exclude_user_ids: list[str] = field(default_factory=list)
    # When set, counterparty trade cards in other conditions are skipped
    preferred_conditions: list[str] = field(default_factory=list)


@dataclass
class ResolvedPricing:
    """Prices used for scoring a pair and where they came from."""

    price_a: float
    price_b: float
    source: PriceSource


@dataclass
class TradeScore:
    """Factor scores for one candidate pair."""

    value_score: float
    condition_score: float
    rarity_score: float
    reputation_score: float
    mutual_benefit_score: float
    overall_score: int
    details: list[str] = field(default_factory=list)

    @property
    def demand_score(self) -> float:
        """Demand is folded into rarity."""
        return self.rarity_score

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["demand_score"] = self.demand_score
        return data


@dataclass
class Match:
    """A ranked trade suggestion between the initiating user and a counterparty."""

    user1_id: str
    user2_id: str
    user1_card_id: str
    user2_card_id: str
    match_score: int
    value_difference: float
    mutual_benefit_score: float
    confidence: Confidence
    trade_score: TradeScore
    pricing: ResolvedPricing
    status: MatchStatus = MatchStatus.PENDING
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: int = field(default_factory=lambda: int(time.time()))

    def sort_key(self) -> tuple[float, float, str, str, str]:
        """Overall score desc, then mutual benefit desc, then ids for a total order."""
        return (
            -self.match_score,
            -self.mutual_benefit_score,
            self.user2_id,
            self.user1_card_id,
            self.user2_card_id,
        )
