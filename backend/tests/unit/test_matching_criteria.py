"""Tests for trade scoring criteria."""

from __future__ import annotations

import itertools
import json
from pathlib import Path

import pytest

from cardarr.core.matching.config import DEFAULT_CONFIG, MatchingConfig, reload_matching_config
from cardarr.core.matching.criteria import (
    calculate_overall_score,
    classify_confidence,
    condition_rank,
    round_half_up,
    score_card_rarity,
    score_condition,
    score_mutual_benefit,
    score_rarity,
    score_reputation,
    score_value,
)
from cardarr.core.matching.evaluator import evaluate_trade_pair
from cardarr.core.matching.models import CardCondition, CardListing, ResolvedPricing, UserProfile


def _card(name: str, set_name: str = "", condition: str = "Near Mint") -> CardListing:
    return CardListing(
        id=name.lower(), owner_id="u", name=name, list_type="trade", set_name=set_name, condition=condition
    )


class TestScoreValue:
    """Value parity scoring."""

    def test_ratio_at_tolerance_scores_full(self) -> None:
        score, reason = score_value(20, 25, 80, DEFAULT_CONFIG)
        assert score == 100
        assert "within tolerance" in reason

    def test_bottom_of_band_scores_70(self) -> None:
        score, _ = score_value(50, 100, 80, DEFAULT_CONFIG)
        assert score == pytest.approx(70)

    def test_inside_band_interpolates(self) -> None:
        score, _ = score_value(65, 100, 80, DEFAULT_CONFIG)
        assert score == pytest.approx(85)

    def test_below_band_scales_down(self) -> None:
        score, _ = score_value(25, 100, 80, DEFAULT_CONFIG)
        assert score == pytest.approx(35)

    def test_below_band_never_under_floor(self) -> None:
        score, _ = score_value(1, 1000, 80, DEFAULT_CONFIG)
        assert score == 30

    def test_unknown_price_is_neutral(self) -> None:
        assert score_value(0, 25, 80, DEFAULT_CONFIG)[0] == 50
        assert score_value(20, 0, 80, DEFAULT_CONFIG)[0] == 50
        assert score_value(0, 0, 80, DEFAULT_CONFIG)[0] == 50

    @pytest.mark.parametrize(
        ("price_a", "price_b"),
        [(20, 25), (1, 1000), (65, 100), (0, 10), (99.99, 100), (3.5, 7)],
    )
    def test_symmetric(self, price_a: float, price_b: float) -> None:
        assert score_value(price_a, price_b, 80, DEFAULT_CONFIG)[0] == score_value(
            price_b, price_a, 80, DEFAULT_CONFIG
        )[0]


class TestScoreCondition:
    """Condition compatibility scoring."""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("Mint", "Mint", 100),
            ("Near Mint", "Lightly Played", 85),
            ("Mint", "Lightly Played", 70),
            ("Mint", "Moderately Played", 55),
            ("Mint", "Heavily Played", 50),
            ("Mint", "Damaged", 50),
        ],
    )
    def test_rank_gap(self, a: str, b: str, expected: float) -> None:
        assert score_condition(a, b, DEFAULT_CONFIG)[0] == expected

    def test_symmetric_for_all_conditions(self) -> None:
        for a, b in itertools.product(list(CardCondition), repeat=2):
            assert score_condition(a, b, DEFAULT_CONFIG)[0] == score_condition(b, a, DEFAULT_CONFIG)[0]

    def test_unknown_condition_ranks_as_moderately_played(self) -> None:
        assert condition_rank("Poor", DEFAULT_CONFIG) == 3
        assert condition_rank(None, DEFAULT_CONFIG) == 3
        assert score_condition("Poor", "Moderately Played", DEFAULT_CONFIG)[0] == 100

    def test_condition_names_are_case_insensitive(self) -> None:
        assert condition_rank("near mint", DEFAULT_CONFIG) == 5
        assert CardCondition.MINT.rank == 6
        assert CardCondition.DAMAGED.rank == 1


class TestScoreRarity:
    """Rarity and demand scoring."""

    def test_plain_card_scores_base(self) -> None:
        assert score_card_rarity("Snorlax", "", 0, DEFAULT_CONFIG)[0] == 60

    def test_high_demand_name(self) -> None:
        assert score_card_rarity("Charizard", "", 0, DEFAULT_CONFIG)[0] == 85

    def test_finish_token(self) -> None:
        assert score_card_rarity("Eevee Holo", "", 0, DEFAULT_CONFIG)[0] == 70

    def test_variant_token_must_be_whole_word(self) -> None:
        assert score_card_rarity("Snorlax V", "", 0, DEFAULT_CONFIG)[0] == 80
        assert score_card_rarity("Vaporeon", "", 0, DEFAULT_CONFIG)[0] == 60
        assert score_card_rarity("Exeggutor", "", 0, DEFAULT_CONFIG)[0] == 60

    def test_valuable_set(self) -> None:
        assert score_card_rarity("Snorlax", "Jungle", 0, DEFAULT_CONFIG)[0] == 75

    @pytest.mark.parametrize(
        ("price", "expected"),
        [(50, 60), (50.01, 65), (100, 65), (100.5, 70), (200, 70), (201, 75)],
    )
    def test_price_tiers(self, price: float, expected: float) -> None:
        assert score_card_rarity("Snorlax", "", price, DEFAULT_CONFIG)[0] == expected

    def test_capped_at_100(self) -> None:
        score, _ = score_card_rarity("Charizard VMAX Rainbow", "Base Set", 500, DEFAULT_CONFIG)
        assert score == 100

    def test_pair_averages_both_sides(self) -> None:
        score, _ = score_rarity(_card("Charizard"), 0, _card("Snorlax"), 0, DEFAULT_CONFIG)
        assert score == pytest.approx(72.5)


class TestScoreReputation:
    """Counterparty reputation scoring."""

    def test_missing_profile(self) -> None:
        assert score_reputation(None, DEFAULT_CONFIG)[0] == 70

    def test_new_user_scores_base(self) -> None:
        assert score_reputation(UserProfile(id="x"), DEFAULT_CONFIG)[0] == 70

    def test_thresholds_are_strict(self) -> None:
        profile = UserProfile(id="x", total_trades=50, match_success_rate=90, reputation_score=4.5)
        # 50 trades -> >20 tier, 90% -> >80 tier, 4.5 -> >4.0 tier
        assert score_reputation(profile, DEFAULT_CONFIG)[0] == 70 + 15 + 8 + 5

    def test_lowest_tiers(self) -> None:
        profile = UserProfile(id="x", total_trades=6, match_success_rate=71, reputation_score=4.1)
        assert score_reputation(profile, DEFAULT_CONFIG)[0] == 85

    def test_capped_at_100(self) -> None:
        profile = UserProfile(id="x", total_trades=51, match_success_rate=96, reputation_score=4.9)
        assert score_reputation(profile, DEFAULT_CONFIG)[0] == 100


class TestScoreMutualBenefit:
    """Mutual benefit scoring."""

    def test_both_tolerances_met(self) -> None:
        assert score_mutual_benefit(True, True, 20, 25, 80, 80, DEFAULT_CONFIG)[0] == 100

    def test_one_tolerance_met(self) -> None:
        # Initiator receives 500% of what they give, counterparty only 20%
        assert score_mutual_benefit(True, True, 20, 100, 80, 80, DEFAULT_CONFIG)[0] == 90

    def test_unknown_price_gets_no_tolerance_bonus(self) -> None:
        assert score_mutual_benefit(True, True, 0, 0, 80, 80, DEFAULT_CONFIG)[0] == 80

    def test_one_sided_interest(self) -> None:
        assert score_mutual_benefit(True, False, 20, 25, 80, 80, DEFAULT_CONFIG)[0] == 40
        assert score_mutual_benefit(False, True, 20, 25, 80, 80, DEFAULT_CONFIG)[0] == 40

    def test_no_interest(self) -> None:
        assert score_mutual_benefit(False, False, 20, 25, 80, 80, DEFAULT_CONFIG)[0] == 0


class TestOverallScore:
    """Weighted overall score and confidence tiers."""

    def test_weighted_sum(self) -> None:
        assert calculate_overall_score(100, 100, 100, 85, 70, DEFAULT_CONFIG) == 93

    def test_rounds_half_up(self) -> None:
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert calculate_overall_score(2, 0, 0, 0, 0, DEFAULT_CONFIG) == 1

    @pytest.mark.parametrize("value", [0, 30, 50, 100])
    def test_within_bounds(self, value: float) -> None:
        for scores in itertools.product([0, value, 100], repeat=5):
            overall = calculate_overall_score(*scores, DEFAULT_CONFIG)
            assert 0 <= overall <= 100

    def test_clamped_for_out_of_range_weights(self) -> None:
        config = MatchingConfig(value_weight=2.0)
        assert calculate_overall_score(100, 100, 100, 100, 100, config) == 100

    @pytest.mark.parametrize(
        ("overall", "mutual", "expected"),
        [
            (70, 60, "high"),
            (100, 100, "high"),
            (69, 100, "medium"),
            (70, 59, "medium"),
            (50, 40, "medium"),
            (49, 100, "low"),
            (50, 39, "low"),
            (0, 0, "low"),
        ],
    )
    def test_confidence_boundaries(self, overall: float, mutual: float, expected: str) -> None:
        assert classify_confidence(overall, mutual, DEFAULT_CONFIG) == expected


def test_evaluate_exact_mutual_pair() -> None:
    """Pikachu ($20) for Charizard ($25) between users with no trade history."""
    trade_score = evaluate_trade_pair(
        _card("Pikachu"),
        _card("Charizard"),
        ResolvedPricing(price_a=20, price_b=25, source="estimated"),
        UserProfile(id="b"),
        value_tolerance=80,
        my_tolerance=80,
        their_tolerance=80,
        config=DEFAULT_CONFIG,
    )

    assert trade_score.value_score == 100
    assert trade_score.mutual_benefit_score == 100
    assert trade_score.condition_score == 100
    assert trade_score.rarity_score == 85
    assert trade_score.reputation_score == 70
    assert trade_score.overall_score == 93
    assert trade_score.demand_score == trade_score.rarity_score
    assert len(trade_score.details) == 5


def test_uses_matching_section_of_settings_file(isolated_data_dir: Path) -> None:
    """Without an explicit config, the matching section of settings.json applies."""
    settings_file = isolated_data_dir / "config" / "settings.json"
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    settings_file.write_text(json.dumps({"matching": {"reputation_base_score": 50}}))
    reload_matching_config()

    assert score_reputation(None)[0] == 50
