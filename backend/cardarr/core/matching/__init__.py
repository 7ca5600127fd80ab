"""Trade matching engine.

Discovers mutually beneficial two-party card trades, scores them with
configurable weights and criteria, and keeps each user's pending matches
up to date.
"""

from .config import DEFAULT_CONFIG, MatchingConfig, get_matching_config, reload_matching_config
from .criteria import (
    calculate_overall_score,
    classify_confidence,
    score_card_rarity,
    score_condition,
    score_mutual_benefit,
    score_rarity,
    score_reputation,
    score_value,
)
from .engine import MatchDiscoveryEngine
from .evaluator import evaluate_trade_pair
from .exceptions import (
    InvalidStatusTransitionError,
    InventoryUnavailableError,
    MatchingError,
    MatchNotFoundError,
    MatchPersistenceError,
)
from .interfaces import InventoryProvider, MatchStore, NullPriceOracle, PricingOracle
from .models import (
    CardCondition,
    CardListing,
    CounterpartyInventory,
    Match,
    MatchOptions,
    MatchStatus,
    ResolvedPricing,
    TradeScore,
    UserProfile,
)
from .persistence import replace_pending_matches
from .pricing import resolve_prices
from .results import build_match, match_to_dict, rank_matches
from .similarity import names_match, string_similarity

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "get_matching_config",
    "reload_matching_config",
    "names_match",
    "string_similarity",
    "resolve_prices",
    "score_value",
    "score_condition",
    "score_card_rarity",
    "score_rarity",
    "score_reputation",
    "score_mutual_benefit",
    "calculate_overall_score",
    "classify_confidence",
    "evaluate_trade_pair",
    "build_match",
    "rank_matches",
    "match_to_dict",
    "replace_pending_matches",
    "MatchDiscoveryEngine",
    "InventoryProvider",
    "PricingOracle",
    "NullPriceOracle",
    "MatchStore",
    "CardCondition",
    "CardListing",
    "CounterpartyInventory",
    "Match",
    "MatchOptions",
    "MatchStatus",
    "ResolvedPricing",
    "TradeScore",
    "UserProfile",
    "MatchingError",
    "InventoryUnavailableError",
    "MatchPersistenceError",
    "MatchNotFoundError",
    "InvalidStatusTransitionError",
]
