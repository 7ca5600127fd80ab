"""Individual trade scoring criteria.

Each function scores a single aspect of a candidate trade (value parity,
condition, rarity, counterparty reputation, mutual benefit) and returns a
score in [0, 100] and a reason. This modular approach makes it easy to:
- Test each criterion independently
- Adjust scoring weights
- Add new criteria
"""

from __future__ import annotations

import math
import re

from .config import MatchingConfig, get_matching_config
from .models import CONDITION_RANKS, CardCondition, CardListing, Confidence, UserProfile

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (round() would use banker's rounding)."""
    return math.floor(value + 0.5)


def _tier_bonus(value: float, tiers: list[tuple[float, float]]) -> float:
    """Bonus for the first (threshold, bonus) tier with value strictly above threshold."""
    for threshold, bonus in tiers:
        if value > threshold:
            return bonus
    return 0.0


def condition_rank(condition: str | None, config: MatchingConfig | None = None) -> int:
    """Rank 6 (Mint) to 1 (Damaged); unknown conditions get config.unknown_condition_rank."""
    if config is None:
        config = get_matching_config()

    if condition:
        key = condition.strip().lower()
        for level in CardCondition:
            if level.value.lower() == key:
                return CONDITION_RANKS[level]
    return config.unknown_condition_rank


def score_value(
    price_a: float,
    price_b: float,
    value_tolerance: float,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Evaluate value parity between the two cards.

    Args:
        price_a: Price of the initiating user's card
        price_b: Price of the counterparty's card
        value_tolerance: Percentage at or above which the trade counts as fair
        config: Matching configuration (if None, loads from settings file)

    Returns:
        Tuple of (score, reason). 100 when the cheaper card is worth at least
        value_tolerance percent of the dearer one, 70-100 inside the band below
        that, then scaled down to a floor of 30. Unknown (zero) prices score 50.
    """
    if config is None:
        config = get_matching_config()

    if price_a <= 0 or price_b <= 0:
        return (
            config.unknown_price_value_score,
            f"Price unknown: {price_a} vs {price_b} ({config.unknown_price_value_score})",
        )

    ratio = min(price_a, price_b) / max(price_a, price_b) * 100
    band_floor = value_tolerance - config.value_band_width

    if ratio >= value_tolerance:
        return 100.0, f"Value ratio {ratio:.1f}% within tolerance {value_tolerance}% (100)"

    if ratio >= band_floor:
        span = 100.0 - config.value_band_floor_score
        score = config.value_band_floor_score + (ratio - band_floor) / config.value_band_width * span
        return _clamp(score), f"Value ratio {ratio:.1f}% near tolerance {value_tolerance}% ({score:.1f})"

    score = max(
        config.value_score_floor,
        ratio / band_floor * config.value_band_floor_score,
    )
    return _clamp(score), f"Value ratio {ratio:.1f}% below tolerance {value_tolerance}% ({score:.1f})"


def score_condition(
    condition_a: str | None,
    condition_b: str | None,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Evaluate how close the two cards' conditions are.

    Returns:
        Tuple of (score, reason): 100/85/70 for a rank gap of 0/1/2, then 15
        less per extra step with a floor of 50.
    """
    if config is None:
        config = get_matching_config()

    difference = abs(condition_rank(condition_a, config) - condition_rank(condition_b, config))

    if difference == 0:
        score = 100.0
    elif difference == 1:
        score = 85.0
    elif difference == 2:
        score = 70.0
    else:
        score = max(50.0, 70.0 - (difference - 2) * 15.0)

    return score, f"Condition gap {difference}: '{condition_a}' vs '{condition_b}' ({score:g})"


def score_card_rarity(
    name: str | None,
    set_name: str | None,
    price: float,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Evaluate rarity/demand of one card from its name, set and price.

    Returns:
        Tuple of (score, reason), capped at 100.
    """
    if config is None:
        config = get_matching_config()

    name_lower = (name or "").lower()
    set_lower = (set_name or "").lower()
    tokens = set(_TOKEN_RE.findall(name_lower))

    score = config.rarity_base_score
    reasons: list[str] = []

    if any(keyword in name_lower for keyword in config.high_demand_names):
        score += config.high_demand_name_bonus
        reasons.append("high-demand name")

    if set_lower and any(valuable in set_lower for valuable in config.valuable_sets):
        score += config.valuable_set_bonus
        reasons.append("valuable set")

    if tokens.intersection(config.variant_tokens):
        score += config.variant_token_bonus
        reasons.append("special variant")

    if tokens.intersection(config.finish_tokens):
        score += config.finish_token_bonus
        reasons.append("premium finish")

    price_bonus = _tier_bonus(price, config.price_tier_bonuses)
    if price_bonus:
        score += price_bonus
        reasons.append(f"price tier +{price_bonus:g}")

    score = min(100.0, score)
    detail = ", ".join(reasons) if reasons else "no rarity markers"
    return score, f"Rarity '{name}': {detail} ({score:g})"


def score_rarity(
    card_a: CardListing,
    price_a: float,
    card_b: CardListing,
    price_b: float,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Average rarity/demand of both sides of the trade."""
    if config is None:
        config = get_matching_config()

    score_a, _ = score_card_rarity(card_a.name, card_a.set_name, price_a, config)
    score_b, _ = score_card_rarity(card_b.name, card_b.set_name, price_b, config)
    score = (score_a + score_b) / 2
    return score, f"Rarity: '{card_a.name}' {score_a:g}, '{card_b.name}' {score_b:g} ({score:g})"


def score_reputation(
    profile: UserProfile | None,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Evaluate the counterparty's trading history.

    Returns:
        Tuple of (score, reason). Missing profile scores the base 70.
    """
    if config is None:
        config = get_matching_config()

    if profile is None:
        return config.reputation_base_score, f"No counterparty profile ({config.reputation_base_score:g})"

    score = config.reputation_base_score
    score += _tier_bonus(profile.total_trades or 0, config.trade_count_bonuses)
    score += _tier_bonus(profile.match_success_rate or 0, config.success_rate_bonuses)
    score += _tier_bonus(profile.reputation_score or 0, config.reputation_score_bonuses)
    score = min(100.0, score)

    return (
        score,
        f"Reputation: {profile.total_trades} trades, {profile.match_success_rate}% success, "
        f"{profile.reputation_score}/5 ({score:g})",
    )


def score_mutual_benefit(
    a_wants_b: bool,
    b_wants_a: bool,
    price_a: float,
    price_b: float,
    tolerance_a: float,
    tolerance_b: float,
    config: MatchingConfig | None = None,
) -> tuple[float, str]:
    """Evaluate how well the trade satisfies both parties.

    Args:
        a_wants_b: Initiating user wants the counterparty's card
        b_wants_a: Counterparty wants the initiating user's card
        price_a: Price of the initiating user's card
        price_b: Price of the counterparty's card
        tolerance_a: Initiating user's minimum acceptable value percentage
        tolerance_b: Counterparty's minimum acceptable value percentage
        config: Matching configuration (if None, loads from settings file)

    Returns:
        Tuple of (score, reason). With an unknown price neither party's
        tolerance counts as satisfied.
    """
    if config is None:
        config = get_matching_config()

    if not (a_wants_b or b_wants_a):
        return 0.0, "No interest on either side (0)"

    if not (a_wants_b and b_wants_a):
        return config.one_sided_interest_score, f"One-sided interest ({config.one_sided_interest_score:g})"

    score = config.mutual_interest_score
    a_satisfied = b_satisfied = False
    if price_a > 0 and price_b > 0:
        # Each side compares what they receive to what they give
        a_satisfied = price_b / price_a * 100 >= tolerance_a
        b_satisfied = price_a / price_b * 100 >= tolerance_b

    if a_satisfied and b_satisfied:
        score += config.both_tolerances_bonus
    elif a_satisfied or b_satisfied:
        score += config.one_tolerance_bonus

    score = min(100.0, score)
    return (
        score,
        f"Mutual interest, tolerance satisfied: initiator={a_satisfied}, "
        f"counterparty={b_satisfied} ({score:g})",
    )


def calculate_overall_score(
    value_score: float,
    mutual_benefit_score: float,
    condition_score: float,
    rarity_score: float,
    reputation_score: float,
    config: MatchingConfig | None = None,
) -> int:
    """Weighted sum of the factor scores, rounded half up and kept in [0, 100]."""
    if config is None:
        config = get_matching_config()

    weighted = (
        value_score * config.value_weight
        + mutual_benefit_score * config.mutual_benefit_weight
        + condition_score * config.condition_weight
        + rarity_score * config.rarity_weight
        + reputation_score * config.reputation_weight
    )
    return int(_clamp(round_half_up(weighted)))


def classify_confidence(
    overall_score: float,
    mutual_benefit_score: float,
    config: MatchingConfig | None = None,
) -> Confidence:
    """Bucket a match into high / medium / low confidence."""
    if config is None:
        config = get_matching_config()

    if (
        overall_score >= config.high_confidence_min_score
        and mutual_benefit_score >= config.high_confidence_min_mutual_benefit
    ):
        return "high"
    if (
        overall_score >= config.medium_confidence_min_score
        and mutual_benefit_score >= config.medium_confidence_min_mutual_benefit
    ):
        return "medium"
    return "low"
