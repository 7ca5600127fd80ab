"""Result builders for the matching system.

Functions to build match records, rank them and format them for callers.
"""

from __future__ import annotations

from typing import Any

from .config import MatchingConfig, get_matching_config
from .criteria import classify_confidence
from .models import CardListing, Match, MatchStatus, ResolvedPricing, TradeScore


def build_match(
    user_id: str,
    my_card: CardListing,
    their_card: CardListing,
    trade_score: TradeScore,
    pricing: ResolvedPricing,
    config: MatchingConfig | None = None,
) -> Match:
    """Build a pending match for a scored pair.

    Args:
        user_id: Initiating user (user1)
        my_card: Initiating user's trade card
        their_card: Counterparty's trade card (its owner becomes user2)
        trade_score: Scores from evaluate_trade_pair
        pricing: Prices the scores were computed from
        config: Matching configuration (if None, loads from settings file)

    Returns:
        Match with status pending and a fresh id
    """
    if config is None:
        config = get_matching_config()

    return Match(
        user1_id=user_id,
        user2_id=their_card.owner_id,
        user1_card_id=my_card.id,
        user2_card_id=their_card.id,
        match_score=trade_score.overall_score,
        value_difference=round(abs(pricing.price_a - pricing.price_b), 2),
        mutual_benefit_score=trade_score.mutual_benefit_score,
        confidence=classify_confidence(
            trade_score.overall_score, trade_score.mutual_benefit_score, config
        ),
        trade_score=trade_score,
        pricing=pricing,
        status=MatchStatus.PENDING,
    )


def rank_matches(matches: list[Match], limit: int | None = None) -> list[Match]:
    """Sort by overall score, then mutual benefit (both descending), and truncate."""
    ranked = sorted(matches, key=Match.sort_key)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def pricing_to_dict(pricing: ResolvedPricing) -> dict[str, Any]:
    """Pricing metadata in the shape stored alongside a match."""
    return {
        "user1_card_price": pricing.price_a,
        "user2_card_price": pricing.price_b,
        "price_source": pricing.source,
    }


def match_to_dict(match: Match, rank: int | None = None) -> dict[str, Any]:
    """Format a match for API responses.

    Args:
        match: Match to format
        rank: Optional 1-based position in the ranked list

    Returns:
        Plain dict with the match fields, score breakdown and pricing
    """
    result = {
        "id": match.id,
        "user1_id": match.user1_id,
        "user2_id": match.user2_id,
        "user1_card_id": match.user1_card_id,
        "user2_card_id": match.user2_card_id,
        "match_score": match.match_score,
        "value_difference": match.value_difference,
        "mutual_benefit_score": match.mutual_benefit_score,
        "confidence": match.confidence,
        "status": str(match.status),
        "created_at": match.created_at,
        "trade_score": match.trade_score.to_dict(),
        "pricing": pricing_to_dict(match.pricing),
    }
    if rank is not None:
        result["rank"] = rank
    return result


def trade_score_from_dict(data: dict[str, Any]) -> TradeScore:
    """Rebuild a TradeScore stored as JSON (extra keys such as demand_score are ignored)."""
    fields = {k: v for k, v in data.items() if k in TradeScore.__dataclass_fields__}
    fields.setdefault("details", [])
    return TradeScore(**fields)
