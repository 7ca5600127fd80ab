"""Matching configuration - scoring weights, thresholds and watch-lists."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import structlog

from cardarr.core.config import get_settings_file_path

logger = structlog.get_logger("cardarr.matching.config")


@dataclass
class MatchingConfig:
    """Configuration for trade matching.

    This class centralizes all scoring weights and thresholds,
    making it easy to adjust matching behavior.
    """

    # Card name equivalence: similarity must be strictly greater than this
    similarity_threshold: float = 0.70

    # Overall score weights (sum to 1.0)
    value_weight: float = 0.25
    mutual_benefit_weight: float = 0.30
    condition_weight: float = 0.15
    rarity_weight: float = 0.15
    reputation_weight: float = 0.15

    # Confidence tiers
    high_confidence_min_score: float = 70
    high_confidence_min_mutual_benefit: float = 60
    medium_confidence_min_score: float = 50
    medium_confidence_min_mutual_benefit: float = 40

    # Value parity
    unknown_price_value_score: float = 50  # Either price is zero
    value_band_width: float = 30  # Interpolation band below the tolerance
    value_band_floor_score: float = 70  # Score at the bottom of the band
    value_score_floor: float = 30

    # Condition compatibility
    unknown_condition_rank: int = 3  # Moderately Played

    # Rarity / demand
    rarity_base_score: float = 60
    high_demand_name_bonus: float = 25
    valuable_set_bonus: float = 15
    variant_token_bonus: float = 20
    finish_token_bonus: float = 10
    # (price strictly above, bonus), checked in order
    price_tier_bonuses: list[tuple[float, float]] = field(
        default_factory=lambda: [(200.0, 15.0), (100.0, 10.0), (50.0, 5.0)]
    )
    high_demand_names: list[str] = field(
        default_factory=lambda: [
            "charizard",
            "pikachu",
            "mewtwo",
            "mew",
            "lugia",
            "ho-oh",
            "rayquaza",
            "dialga",
            "palkia",
            "arceus",
            "reshiram",
            "zekrom",
            "blastoise",
            "venusaur",
            "alakazam",
            "machamp",
            "gyarados",
        ]
    )
    valuable_sets: list[str] = field(
        default_factory=lambda: [
            "base set",
            "jungle",
            "fossil",
            "team rocket",
            "gym heroes",
            "neo genesis",
            "neo discovery",
            "expedition",
            "aquapolis",
            "skyridge",
            "ex ruby",
            "ex sapphire",
        ]
    )
    variant_tokens: list[str] = field(default_factory=lambda: ["ex", "gx", "v", "vmax"])
    finish_tokens: list[str] = field(
        default_factory=lambda: ["holo", "shiny", "secret", "rainbow"]
    )

    # Counterparty reputation: (value strictly above, bonus), checked in order
    reputation_base_score: float = 70
    trade_count_bonuses: list[tuple[float, float]] = field(
        default_factory=lambda: [(50, 20), (20, 15), (10, 10), (5, 5)]
    )
    success_rate_bonuses: list[tuple[float, float]] = field(
        default_factory=lambda: [(95, 15), (90, 12), (80, 8), (70, 5)]
    )
    reputation_score_bonuses: list[tuple[float, float]] = field(
        default_factory=lambda: [(4.8, 10), (4.5, 8), (4.0, 5)]
    )

    # Mutual benefit
    mutual_interest_score: float = 80
    one_sided_interest_score: float = 40
    both_tolerances_bonus: float = 20
    one_tolerance_bonus: float = 10

    # Discovery defaults (overridable per run through MatchOptions)
    default_min_match_score: float = 40
    default_value_tolerance: float = 80
    default_max_value_difference: float | None = None
    max_results: int = 50

    # Concurrency and timeouts
    pricing_concurrency: int = 8
    pricing_timeout_seconds: float = 5.0
    discovery_timeout_seconds: float = 60.0


# Default config instance
DEFAULT_CONFIG = MatchingConfig()

# Cached config instance (loaded from settings file)
_cached_config: MatchingConfig | None = None


def get_matching_config() -> MatchingConfig:
    """Get the current matching configuration.

    Loads the "matching" section of settings.json if available, otherwise
    returns defaults. Caches the result.

    Returns:
        MatchingConfig instance with current settings
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    settings_file = get_settings_file_path()
    if settings_file.exists():
        try:
            with settings_file.open("r") as f:
                matching_settings = json.load(f).get("matching")
            if matching_settings:
                _cached_config = MatchingConfig(**matching_settings)
                return _cached_config
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning(
                "Invalid matching settings, using defaults",
                settings_file=str(settings_file),
                error=str(exc),
            )

    _cached_config = DEFAULT_CONFIG
    return _cached_config


def reload_matching_config() -> MatchingConfig:
    """Reload matching configuration from settings file.

    Call this after updating settings to ensure new values are used.
    """
    global _cached_config
    _cached_config = None
    return get_matching_config()
