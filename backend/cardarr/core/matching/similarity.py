"""Card name equivalence.

Names are compared case-insensitively after trimming. Anything that is not an
exact match falls back to normalized Levenshtein similarity, which tolerates
typos and small suffixes ("Charizard" vs "Charizard EX") at the cost of some
false positives between short, similar names.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

from .config import MatchingConfig, get_matching_config


def normalize_card_name(name: str | None) -> str:
    """Lowercase and trim a card name."""
    if not name:
        return ""
    return name.strip().lower()


def levenshtein_distance(a: str, b: str) -> int:
    """Single-character insert/delete/substitute edit distance."""
    return Levenshtein.distance(a, b)


def string_similarity(a: str, b: str) -> float:
    """(max_len - distance) / max_len, in [0, 1]. Two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(a, b)) / longest


def names_match(
    name_a: str | None,
    name_b: str | None,
    config: MatchingConfig | None = None,
) -> bool:
    """Whether two listings name the same card.

    Args:
        name_a: First card name
        name_b: Second card name
        config: Matching configuration (if None, loads from settings file)

    Returns:
        True on exact (normalized) match, or when similarity is strictly above
        config.similarity_threshold. Always False if either name is empty.
    """
    if config is None:
        config = get_matching_config()

    key_a = normalize_card_name(name_a)
    key_b = normalize_card_name(name_b)
    if not key_a or not key_b:
        return False

    if key_a == key_b:
        return True

    return string_similarity(key_a, key_b) > config.similarity_threshold
