"""
Card and hand evaluation: trick hierarchy, envido, flor and heuristic strength.

Everything here is pure. Malformed hands (too many cards, duplicates, a flor
request on mixed suits) are caller contract violations and raise ValueError.
"""
from __future__ import annotations

from typing import Sequence

from .deck import Card, Suit

# Trick hierarchy: 14 = ancho de espadas (highest) .. 1 = any 4 (lowest).
_SPECIAL_RANKS = {
    (1, Suit.ESPADAS): 14,
    (1, Suit.BASTOS): 13,
    (7, Suit.ESPADAS): 12,
    (7, Suit.OROS): 11,
}
_PLAIN_RANKS = {3: 10, 2: 9, 1: 8, 12: 7, 11: 6, 10: 5, 7: 4, 6: 3, 5: 2, 4: 1}

MAX_CARD_RANK = 14

# Strength (sum of trick ranks over a 3-card hand) needed to reach each percentile.
PERCENTILE_THRESHOLDS: tuple[tuple[int, int], ...] = (
    (90, 20),
    (75, 16),
    (50, 11),
    (25, 7),
    (10, 3),
)

CARD_CATEGORIES: tuple[str, ...] = (
    "ancho_espada",
    "ancho_basto",
    "siete_espada",
    "siete_oro",
    "tres",
    "dos",
    "anchos_falsos",
    "doces",
    "onces",
    "dieces",
    "sietes_falsos",
    "seis",
    "cincos",
    "cuatros",
)


def _check_hand(cards: Sequence[Card], min_size: int, max_size: int) -> None:
    if not (min_size <= len(cards) <= max_size):
        raise ValueError(
            f"Hand must hold {min_size}..{max_size} cards, got {len(cards)}"
        )
    if len(set(cards)) != len(cards):
        raise ValueError(f"Hand contains duplicate cards: {list(cards)}")


def card_rank(card: Card) -> int:
    """Trick-taking ordinal (1..14). Equal ordinals tie (parda)."""
    special = _SPECIAL_RANKS.get((card.rank, card.suit))
    if special is not None:
        return special
    return _PLAIN_RANKS[card.rank]


def compare_cards(a: Card, b: Card) -> int:
    """Return 1 if ``a`` beats ``b``, -1 if it loses, 0 for parda."""
    ra, rb = card_rank(a), card_rank(b)
    return (ra > rb) - (ra < rb)


def envido_value(cards: Sequence[Card]) -> int:
    """
    Envido points for 1-3 cards.

    Two or more cards of a suit: 20 + the two best face values of that suit
    (figures count 0). Otherwise the best single face value. Range 0..33.
    """
    _check_hand(cards, 1, 3)
    by_suit: dict[Suit, list[int]] = {}
    for c in cards:
        by_suit.setdefault(c.suit, []).append(c.envido_face_value())

    best = max(c.envido_face_value() for c in cards)
    for values in by_suit.values():
        if len(values) >= 2:
            top = sorted(values, reverse=True)[:2]
            best = max(best, 20 + sum(top))
    return best


def envido_suit(cards: Sequence[Card]) -> Suit | None:
    """Suit that forms the envido pair, or None when every card is a different suit."""
    counts: dict[Suit, int] = {}
    for c in cards:
        counts[c.suit] = counts.get(c.suit, 0) + 1
    for suit in Suit:
        if counts.get(suit, 0) >= 2:
            return suit
    return None


def has_flor(cards: Sequence[Card]) -> bool:
    return len(cards) == 3 and len({c.suit for c in cards}) == 1


def flor_value(cards: Sequence[Card]) -> int:
    """20 + sum of face values for three same-suit cards."""
    _check_hand(cards, 3, 3)
    if not has_flor(cards):
        raise ValueError(f"Flor needs three cards of one suit: {list(cards)}")
    return 20 + sum(c.envido_face_value() for c in cards)


def hand_strength(cards: Sequence[Card]) -> int:
    """Sum of trick ranks; monotonic in card rank. Empty hand is 0."""
    _check_hand(cards, 0, 3)
    return sum(card_rank(c) for c in cards)


def hand_percentile(cards: Sequence[Card]) -> int:
    """Rough percentile of a hand's strength among all deals (0, 10, 25, 50, 75, 90)."""
    strength = hand_strength(cards)
    for percentile, threshold in PERCENTILE_THRESHOLDS:
        if strength >= threshold:
            return percentile
    return 0


def strength_bucket(cards: Sequence[Card]) -> int:
    """Map a hand onto 0..4 by percentile; used as a case-memory feature."""
    percentile = hand_percentile(cards)
    if percentile >= 75:
        return 4
    if percentile >= 50:
        return 3
    if percentile >= 25:
        return 2
    if percentile >= 10:
        return 1
    return 0


def card_category(card: Card) -> str:
    """Statistics bucket for a card (see CARD_CATEGORIES)."""
    key = (card.rank, card.suit)
    if key == (1, Suit.ESPADAS):
        return "ancho_espada"
    if key == (1, Suit.BASTOS):
        return "ancho_basto"
    if key == (7, Suit.ESPADAS):
        return "siete_espada"
    if key == (7, Suit.OROS):
        return "siete_oro"
    return {
        3: "tres",
        2: "dos",
        1: "anchos_falsos",
        12: "doces",
        11: "onces",
        10: "dieces",
        7: "sietes_falsos",
        6: "seis",
        5: "cincos",
        4: "cuatros",
    }[card.rank]


def highest_card(cards: Sequence[Card]) -> Card:
    return max(cards, key=card_rank)


def lowest_card(cards: Sequence[Card]) -> Card:
    return min(cards, key=card_rank)


__all__ = [
    "MAX_CARD_RANK",
    "PERCENTILE_THRESHOLDS",
    "CARD_CATEGORIES",
    "card_rank",
    "compare_cards",
    "envido_value",
    "envido_suit",
    "has_flor",
    "flor_value",
    "hand_strength",
    "hand_percentile",
    "strength_bucket",
    "card_category",
    "highest_card",
    "lowest_card",
]
