"""Database models for Cardarr.

All SQLModel models should be defined here and imported in db/__init__.py.

Models follow these patterns:
- Use singular nouns: User, Card, TradeMatch
- Table names use plural, snake_case: users, cards, matches
- Use uuid.uuid4().hex for IDs (32 character hex strings)
- Timestamps are integer epoch seconds
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

# All models with table=True will be registered here automatically
metadata = SQLModel.metadata


class User(SQLModel, table=True):
    """Marketplace member. Only the fields the matcher reads are modelled."""

    __tablename__ = "users"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    username: str
    total_trades: int | None = Field(default=None)
    match_success_rate: float | None = Field(default=None)  # percent, 0-100
    reputation_score: float | None = Field(default=None)  # 0-5
    trade_percentage_min: float | None = Field(default=None)  # value tolerance, percent
    created_at: int = Field(default_factory=lambda: int(time.time()))


class Card(SQLModel, table=True):
    """A card listing on a user's trade or want list."""

    __tablename__ = "cards"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    user_id: str = Field(index=True)  # Foreign key to users
    name: str
    set_name: str | None = Field(default=None)
    card_number: str | None = Field(default=None)
    rarity: str | None = Field(default=None)
    condition: str | None = Field(default=None)  # Mint ... Damaged
    quantity: int = Field(default=1)
    market_price: float | None = Field(default=None)
    list_type: str = Field(index=True)  # trade, want
    created_at: int = Field(default_factory=lambda: int(time.time()))

    __table_args__ = (Index("idx_cards_user_list_type", "user_id", "list_type"),)


class TradeMatch(SQLModel, table=True):
    """A persisted two-party trade suggestion."""

    __tablename__ = "matches"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    user1_id: str = Field(index=True)  # Initiating user
    user2_id: str = Field(index=True)  # Counterparty
    user1_card_id: str  # user1's trade card
    user2_card_id: str  # user2's trade card
    match_score: int = Field(default=0)
    value_difference: float = Field(default=0.0)
    mutual_benefit_score: float | None = Field(default=None)
    confidence: str | None = Field(default=None)  # high, medium, low
    status: str = Field(default="pending", index=True)  # pending, accepted, declined, completed

    # Score breakdown and pricing metadata, see TradeScore / ResolvedPricing
    trade_score: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    pricing: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: int = Field(default_factory=lambda: int(time.time()))
    updated_at: int = Field(default_factory=lambda: int(time.time()))

    __table_args__ = (
        Index("idx_matches_user1_status", "user1_id", "status"),
        Index("idx_matches_user2", "user2_id"),
    )
