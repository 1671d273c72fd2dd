"""Types and schemas for blackjack advisor I/O."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Suit(str, Enum):
    """Card suits."""
    SPADES = "s"
    HEARTS = "h"
    DIAMONDS = "d"
    CLUBS = "c"


class Rank(str, Enum):
    """Card ranks."""
    ACE = "A"
    KING = "K"
    QUEEN = "Q"
    JACK = "J"
    TEN = "T"
    NINE = "9"
    EIGHT = "8"
    SEVEN = "7"
    SIX = "6"
    FIVE = "5"
    FOUR = "4"
    THREE = "3"
    TWO = "2"


class Action(str, Enum):
    """Blackjack actions. UNKNOWN means no confident extraction."""
    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"
    SPLIT = "split"
    UNKNOWN = "unknown"


PLAYABLE_ACTIONS = frozenset({Action.HIT, Action.STAND, Action.DOUBLE, Action.SPLIT})


class Provider(str, Enum):
    """Inference providers, one metrics bucket each."""
    LS = "ls"
    OLLAMA = "ollama"
    VLLM = "vllm"


@dataclass(frozen=True)
class Card:
    """Immutable card representation. The suit may be unknown (rank-only token)."""
    rank: Rank
    suit: Optional[Suit] = None

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.value if self.suit is not None else ''}"

    @classmethod
    def from_string(cls, card_str: str) -> Card:
        """Parse card from string like 'As', 'Th' or a bare rank 'T' ('10h' is accepted too)."""
        card_str = card_str.strip()
        if card_str[:2] == "10":
            card_str = "T" + card_str[2:]
        if len(card_str) not in (1, 2):
            raise ValueError(f"Invalid card format: {card_str}")
        rank_str, suit_str = card_str[0], card_str[1:]

        try:
            rank = Rank(rank_str.upper())
            suit = Suit(suit_str.lower()) if suit_str else None
        except ValueError as e:
            raise ValueError(f"Invalid card: {card_str}") from e

        return cls(rank=rank, suit=suit)


def _coerce_card(value: Any) -> Any:
    if isinstance(value, str):
        return Card.from_string(value)
    return value


class GameSnapshot(BaseModel):
    """Point-in-time, read-only view of the game supplied by the engine."""
    model_config = ConfigDict(frozen=True)

    cards: Tuple[Card, ...] = Field(default=(), description="Active hand cards")
    total: int = Field(default=0, description="Active hand total")
    dealer_up_card: Optional[Card] = Field(default=None, description="Dealer visible card")
    can_double: bool = False
    can_split: bool = False
    bet: float = Field(default=0, ge=0)
    bank: float = Field(default=0)

    @field_validator("cards", mode="before")
    @classmethod
    def _parse_cards(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split()
        return tuple(_coerce_card(c) for c in v)

    @field_validator("dealer_up_card", mode="before")
    @classmethod
    def _parse_dealer(cls, v: Any) -> Any:
        if v in (None, ""):
            return None
        return _coerce_card(v)

    @classmethod
    def empty(cls) -> GameSnapshot:
        return cls()


class Recommendation(BaseModel):
    """Outcome of one recommendation cycle."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    provider: Provider
    model_id: str
    action: Action
    rationale: Optional[str] = None
    latency_ms: float = Field(..., ge=0)
    ttft_ms: Optional[float] = Field(default=None, ge=0)


class Metric(BaseModel):
    """Timing sample appended after every recommendation."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    timestamp: float = Field(..., description="Epoch milliseconds")
    provider: Provider
    model_id: Optional[str] = None
    latency_ms: float = Field(..., ge=0)
    ttft_ms: Optional[float] = Field(default=None, ge=0)


class ProviderSummary(BaseModel):
    """Rolling averages for one provider bucket."""
    count: int = 0
    avg_latency_ms: int = 0
    avg_ttft_ms: Optional[int] = None
