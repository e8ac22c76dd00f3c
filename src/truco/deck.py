"""
Spanish 40-card deck used by Truco: 4 suits × ranks 1-7 and 10-12 (no 8s/9s).

Cards are immutable values; a compact code (suit letter + rank, e.g. ``"E1"``
for the ancho de espadas) is used for logs, round history and profile export.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence


class Suit(str, Enum):
    """Espadas, Bastos, Oros, Copas. Values are the names used in saved profiles."""
    ESPADAS = "espadas"
    BASTOS = "bastos"
    OROS = "oros"
    COPAS = "copas"

    @property
    def letter(self) -> str:
        return _SUIT_LETTERS[self]


RANKS: tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7, 10, 11, 12)
FIGURES: tuple[int, ...] = (10, 11, 12)

_SUIT_LETTERS = {
    Suit.ESPADAS: "E",
    Suit.BASTOS: "B",
    Suit.OROS: "O",
    Suit.COPAS: "C",
}
_LETTER_SUITS = {v: k for k, v in _SUIT_LETTERS.items()}

_RANK_NAMES = {1: "Ancho", 10: "Sota", 11: "Caballo", 12: "Rey"}


@dataclass(frozen=True)
class Card:
    """A single Truco card: rank in RANKS plus a suit."""

    rank: int
    suit: Suit

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid Truco rank: {self.rank}")
        if not isinstance(self.suit, Suit):
            raise ValueError(f"Invalid suit: {self.suit!r}")

    @property
    def code(self) -> str:
        return f"{self.suit.letter}{self.rank}"

    def is_figure(self) -> bool:
        """Sota, caballo and rey count as 0 for envido."""
        return self.rank in FIGURES

    def envido_face_value(self) -> int:
        return 0 if self.is_figure() else self.rank

    def name(self) -> str:
        rank = _RANK_NAMES.get(self.rank, str(self.rank))
        return f"{rank} de {self.suit.value}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Card({self.code})"


def make_card(rank: int, suit: Suit | str) -> Card:
    return Card(rank=rank, suit=Suit(suit))


def make_deck_40() -> list[Card]:
    """Build a full 40-card deck in suit-major order."""
    return [Card(rank=r, suit=s) for s in Suit for r in RANKS]


def card_from_code(code: str) -> Card:
    """Decode ``"E1"``, ``"c12"`` and similar into a Card; raises ValueError on junk."""
    if not code or len(code) < 2:
        raise ValueError(f"Invalid card code: {code!r}")
    letter = code[0].upper()
    if letter not in _LETTER_SUITS:
        raise ValueError(f"Invalid suit letter in card code: {code!r}")
    try:
        rank = int(code[1:])
    except ValueError:
        raise ValueError(f"Invalid rank in card code: {code!r}") from None
    return Card(rank=rank, suit=_LETTER_SUITS[letter])


def cards_from_codes(codes: Iterable[str]) -> list[Card]:
    return [card_from_code(c) for c in codes]


def encode_hand(cards: Sequence[Card]) -> list[str]:
    return [c.code for c in cards]


def hand_to_str(cards: Sequence[Card]) -> str:
    return " ".join(c.code for c in cards) if cards else "-"


__all__ = [
    "Suit",
    "Card",
    "RANKS",
    "FIGURES",
    "make_card",
    "make_deck_40",
    "card_from_code",
    "cards_from_codes",
    "encode_hand",
    "hand_to_str",
]
