"""
Trick and round resolution.

A trick is won by the higher trick rank; equal ranks are a parda ("tie").
A round ends once a side has two tricks, or the tie chain makes the result
determinate:
  - trick 1 parda: trick 2 decides; if that is parda too, trick 3; all parda, mano.
  - trick 2 or 3 parda after a decided trick: the earlier decided trick wins.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence, Union

from .deck import Card
from .evaluation import card_rank


class Side(str, Enum):
    PLAYER = "player"
    AI = "ai"

    @property
    def other(self) -> "Side":
        return Side.AI if self is Side.PLAYER else Side.PLAYER


TIE = "tie"

TrickResult = Union[Side, str]


def trick_winner(player_card: Card, ai_card: Card) -> TrickResult:
    """Winner of a single trick: Side.PLAYER, Side.AI or TIE."""
    rp, ra = card_rank(player_card), card_rank(ai_card)
    if rp > ra:
        return Side.PLAYER
    if ra > rp:
        return Side.AI
    return TIE


def round_winner(
    trick_winners: Sequence[Optional[TrickResult]],
    mano: Side,
) -> Side | None:
    """
    Resolve the round from up to three trick results (None = not played yet).

    Returns None while the outcome is still open.
    """
    tricks = list(trick_winners) + [None] * (3 - len(trick_winners))
    t1, t2, t3 = tricks[:3]

    player_wins = sum(1 for t in tricks if t == Side.PLAYER)
    ai_wins = sum(1 for t in tricks if t == Side.AI)
    if player_wins >= 2:
        return Side.PLAYER
    if ai_wins >= 2:
        return Side.AI

    if t1 is None or t2 is None:
        return None

    if t1 == TIE:
        if t2 != TIE:
            return Side(t2)
        if t3 is None:
            return None
        return mano if t3 == TIE else Side(t3)

    if t2 == TIE:
        return Side(t1)

    # One trick each: trick 3 decides, parda there goes to trick 1's winner.
    if t3 is None:
        return None
    if t3 == TIE:
        return Side(t1)
    return Side(t3)


def next_leader(result: TrickResult, mano: Side) -> Side:
    """The trick winner leads next; after a parda, mano leads."""
    return mano if result == TIE else Side(result)


__all__ = ["Side", "TIE", "TrickResult", "trick_winner", "round_winner", "next_leader"]
