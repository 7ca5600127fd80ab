"""Trade evaluator - orchestrates all criteria.

Combines the individual criteria into a TradeScore for one candidate pair.
"""

from __future__ import annotations

from .config import MatchingConfig, get_matching_config
from .criteria import (
    calculate_overall_score,
    score_condition,
    score_mutual_benefit,
    score_rarity,
    score_reputation,
    score_value,
)
from .models import CardListing, ResolvedPricing, TradeScore, UserProfile


def evaluate_trade_pair(
    my_card: CardListing,
    their_card: CardListing,
    pricing: ResolvedPricing,
    counterparty: UserProfile | None,
    value_tolerance: float,
    my_tolerance: float,
    their_tolerance: float,
    config: MatchingConfig | None = None,
    *,
    i_want_theirs: bool = True,
    they_want_mine: bool = True,
) -> TradeScore:
    """Score a candidate trade of my_card for their_card.

    Args:
        my_card: Initiating user's trade card
        their_card: Counterparty's trade card
        pricing: Resolved prices for (my_card, their_card)
        counterparty: Counterparty profile for the reputation factor
        value_tolerance: Run-level tolerance used for value parity
        my_tolerance: Initiating user's personal tolerance (mutual benefit)
        their_tolerance: Counterparty's personal tolerance (mutual benefit)
        config: Matching configuration (if None, loads from settings file)
        i_want_theirs: Whether my want list matched their_card
        they_want_mine: Whether their want list matched my_card

    Returns:
        TradeScore with every factor, the weighted overall score and the
        per-factor reasons in details
    """
    if config is None:
        config = get_matching_config()

    details: list[str] = []

    value, value_reason = score_value(pricing.price_a, pricing.price_b, value_tolerance, config)
    details.append(value_reason)

    mutual, mutual_reason = score_mutual_benefit(
        i_want_theirs,
        they_want_mine,
        pricing.price_a,
        pricing.price_b,
        my_tolerance,
        their_tolerance,
        config,
    )
    details.append(mutual_reason)

    condition, condition_reason = score_condition(my_card.condition, their_card.condition, config)
    details.append(condition_reason)

    rarity, rarity_reason = score_rarity(
        my_card, pricing.price_a, their_card, pricing.price_b, config
    )
    details.append(rarity_reason)

    reputation, reputation_reason = score_reputation(counterparty, config)
    details.append(reputation_reason)

    overall = calculate_overall_score(value, mutual, condition, rarity, reputation, config)

    return TradeScore(
        value_score=value,
        condition_score=condition,
        rarity_score=rarity,
        reputation_score=reputation,
        mutual_benefit_score=mutual,
        overall_score=overall,
        details=details,
    )
