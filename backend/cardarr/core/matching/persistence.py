"""Match persistence gateway.

Replaces a user's pending matches with a freshly discovered set.
"""

from __future__ import annotations

import structlog

from .interfaces import MatchStore
from .models import Match

logger = structlog.get_logger("cardarr.matching.persistence")


async def replace_pending_matches(
    user_id: str,
    matches: list[Match],
    store: MatchStore,
) -> None:
    """Swap the user's pending matches for matches.

    Only pending rows where user_id is user1 are deleted; matches the user
    received from other users' runs, and matches already accepted, declined or
    completed, are left alone. Deletion runs even for an empty set so stale
    suggestions disappear. Both steps run inside store.transaction().

    Args:
        user_id: Initiating user
        matches: New matches, all with user1_id == user_id
        store: Match store

    Raises:
        ValueError: If a match belongs to another initiating user
        Exception: Whatever the store raises; nothing is swallowed here
    """
    foreign = [m.id for m in matches if m.user1_id != user_id]
    if foreign:
        raise ValueError(f"Matches {foreign} do not belong to initiating user {user_id}")

    async with store.transaction():
        deleted = await store.delete_pending_matches_for_user(user_id)
        if matches:
            await store.insert_matches(matches)

    logger.info(
        "Replaced pending matches",
        user_id=user_id,
        deleted=deleted,
        inserted=len(matches),
    )
