"""
Point values for truco, envido and flor bets.

Truco stakes by level: 0 (no call) = 1, truco = 2, retruco = 3, vale cuatro = 4.
Declining a truco-family call pays the caller the value of the level below the
call (1 / 2 / 3). Envido: envido +2, real envido +3, falta envido pays what the
leader needs to reach the target. Flor: 3, contraflor 6 (4 when declined).
"""
from __future__ import annotations

from .play import Side

MATCH_TARGET = 15

TRUCO_POINTS: tuple[int, ...] = (1, 2, 3, 4)
MAX_TRUCO_LEVEL = 3

ENVIDO_POINTS = 2
REAL_ENVIDO_POINTS = 3

# Envido escalation tiers; monotonic within a round.
ENVIDO_TIER_NONE = 0
ENVIDO_TIER_ENVIDO = 1
ENVIDO_TIER_REAL = 2
ENVIDO_TIER_FALTA = 3

FLOR_POINTS = 3
CONTRAFLOR_POINTS = 6
CONTRAFLOR_DECLINE_POINTS = 4


def truco_points(level: int) -> int:
    """Points the round winner collects at a given truco level."""
    if not (0 <= level <= MAX_TRUCO_LEVEL):
        raise ValueError(f"Invalid truco level: {level}")
    return TRUCO_POINTS[level]


def truco_decline_points(level: int) -> int:
    """Points the caller collects when a call at ``level`` (1..3) is refused."""
    if not (1 <= level <= MAX_TRUCO_LEVEL):
        raise ValueError(f"No truco call at level {level}")
    return TRUCO_POINTS[level - 1]


def falta_envido_points(player_score: int, ai_score: int, target: int = MATCH_TARGET) -> int:
    return max(1, target - max(player_score, ai_score))


def envido_decline_points(previous_offer: int) -> int:
    """A refused envido pays what was already agreed, or 1 for a bare call."""
    return previous_offer if previous_offer > 0 else 1


def envido_showdown(player_value: int, ai_value: int, mano: Side) -> Side:
    """Higher envido wins; mano wins ties."""
    if player_value > ai_value:
        return Side.PLAYER
    if ai_value > player_value:
        return Side.AI
    return mano


__all__ = [
    "MATCH_TARGET",
    "TRUCO_POINTS",
    "MAX_TRUCO_LEVEL",
    "ENVIDO_POINTS",
    "REAL_ENVIDO_POINTS",
    "ENVIDO_TIER_NONE",
    "ENVIDO_TIER_ENVIDO",
    "ENVIDO_TIER_REAL",
    "ENVIDO_TIER_FALTA",
    "FLOR_POINTS",
    "CONTRAFLOR_POINTS",
    "CONTRAFLOR_DECLINE_POINTS",
    "truco_points",
    "truco_decline_points",
    "falta_envido_points",
    "envido_decline_points",
    "envido_showdown",
]
