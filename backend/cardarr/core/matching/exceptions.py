"""Matching exceptions.

"No matches" is never an exception: discovery returns an empty list. These
types mark runs that failed, so callers can tell the two apart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cardarr.core.matching.models import Match


class MatchingError(Exception):
    """Base class for matching failures."""


class InventoryUnavailableError(MatchingError):
    """The inventory provider could not be read.

    Raised before the match store is touched, so stored matches are unchanged.
    """

    def __init__(self, user_id: str, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Inventory unavailable for discovery of user {user_id}: {reason}")


class MatchPersistenceError(MatchingError):
    """Replacing the stored pending matches failed.

    The freshly discovered matches are kept on the exception so the caller can
    show them or retry persistence without recomputing.
    """

    def __init__(self, user_id: str, matches: list[Match], reason: str):
        self.user_id = user_id
        self.matches = matches
        self.reason = reason
        super().__init__(f"Failed to persist {len(matches)} matches for user {user_id}: {reason}")


class MatchNotFoundError(MatchingError):
    """No stored match has the given id."""

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match not found: {match_id}")


class InvalidStatusTransitionError(MatchingError):
    """A match status change that the lifecycle does not allow."""

    def __init__(self, match_id: str, current: str, requested: str):
        self.match_id = match_id
        self.current = current
        self.requested = requested
        super().__init__(f"Match {match_id} cannot move from {current} to {requested}")
