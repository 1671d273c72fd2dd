"""State management module for blackjack advisor."""

from .model import (
    Action,
    Card,
    GameSnapshot,
    Metric,
    PLAYABLE_ACTIONS,
    Provider,
    ProviderSummary,
    Rank,
    Recommendation,
    Suit,
)

__all__ = [
    "Action",
    "Card",
    "GameSnapshot",
    "Metric",
    "PLAYABLE_ACTIONS",
    "Provider",
    "ProviderSummary",
    "Rank",
    "Recommendation",
    "Suit",
]
