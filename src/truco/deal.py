"""
Dealing for a two-handed round: three cards each, alternating, starting with mano.
The 34 remaining cards stay in the deck (undealt).
"""
from __future__ import annotations

import random
from typing import NamedTuple

from .deck import Card, make_deck_40
from .play import Side

HAND_SIZE = 3


class Deal(NamedTuple):
    """Result of a deal. Hands are lists (mutated as cards are played)."""
    player_hand: list[Card]
    ai_hand: list[Card]
    deck: list[Card]
    mano: Side


def deal_round(
    mano: Side,
    deck: list[Card] | None = None,
    rng: random.Random | None = None,
) -> Deal:
    """Shuffle and deal 3+3, one card at a time, mano first."""
    if deck is None:
        deck = make_deck_40()
    if rng is None:
        rng = random.Random()
    deck = list(deck)
    rng.shuffle(deck)

    hands: dict[Side, list[Card]] = {Side.PLAYER: [], Side.AI: []}
    order = (mano, mano.other)
    for i in range(HAND_SIZE * 2):
        hands[order[i % 2]].append(deck[i])
    return Deal(
        player_hand=hands[Side.PLAYER],
        ai_hand=hands[Side.AI],
        deck=deck[HAND_SIZE * 2:],
        mano=mano,
    )


def next_mano(mano: Side) -> Side:
    return mano.other


__all__ = ["HAND_SIZE", "Deal", "deal_round", "next_mano"]
