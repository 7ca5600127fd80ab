"""Database models and utilities.

This module exports all database models.
"""

from __future__ import annotations

from cardarr.db.models import Card, TradeMatch, User, metadata

__all__ = [
    "metadata",
    "User",
    "Card",
    "TradeMatch",
]
