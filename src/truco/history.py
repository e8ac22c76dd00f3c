"""
Round history and per-player observation logs.

RoundSummary is created when a round is dealt, gains calls and tricks while
the round is played, and is closed (points, winner) when the round ends; it is
never changed afterwards. The player logs (envido decisions, play order, truco
calls, card-category statistics) feed the opponent model and are exported
with the learning profile.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .deck import Card
from .evaluation import CARD_CATEGORIES, card_category
from .play import Side

ENVIDO_ACTIONS = (
    "called",
    "did_not_call",
    "folded",
    "accepted",
    "escalated_envido",
    "escalated_real",
    "escalated_falta",
)

PLAYER_ACTION_HISTORY_LIMIT = 200
# Envido, play-order and truco-call logs keep only their most recent entries.
PLAYER_LOG_LIMIT = 200


def append_capped(log: list, entry, limit: int) -> None:
    """Append ``entry`` and drop the oldest entries beyond ``limit``."""
    log.append(entry)
    if len(log) > limit:
        del log[: len(log) - limit]


@dataclass
class PointsBreakdown:
    truco: int = 0
    envido: int = 0
    flor: int = 0

    @property
    def total(self) -> int:
        return self.truco + self.envido + self.flor


@dataclass
class TrickRecord:
    player: Optional[str] = None
    ai: Optional[str] = None
    winner: Optional[str] = None


@dataclass(frozen=True)
class TrucoCallMeta:
    hand_strength: int
    is_bluff: bool


@dataclass
class RoundSummary:
    round: int
    mano: Side
    player_hand: List[str]
    ai_hand: List[str]
    player_envido: int = 0
    ai_envido: int = 0
    calls: List[str] = field(default_factory=list)
    tricks: List[TrickRecord] = field(default_factory=lambda: [TrickRecord() for _ in range(3)])
    player_truco_call: Optional[TrucoCallMeta] = None
    ai_truco_call: Optional[TrucoCallMeta] = None
    player_points: PointsBreakdown = field(default_factory=PointsBreakdown)
    ai_points: PointsBreakdown = field(default_factory=PointsBreakdown)
    round_winner: Optional[Side] = None
    closed: bool = False

    def points_for(self, side: Side) -> PointsBreakdown:
        return self.player_points if side is Side.PLAYER else self.ai_points


@dataclass(frozen=True)
class EnvidoHistoryEntry:
    round: int
    envido: int
    action: str
    was_mano: bool

    def __post_init__(self) -> None:
        if self.action not in ENVIDO_ACTIONS:
            raise ValueError(f"Unknown envido action: {self.action!r}")


@dataclass(frozen=True)
class PlayOrderEntry:
    round: int
    trick: int
    card: str
    was_lead: bool
    was_highest: bool
    hand_strength: int


@dataclass(frozen=True)
class TrucoCallEntry:
    round: int
    strength: int
    is_mano: bool
    is_bluff: bool


@dataclass
class CategoryStats:
    plays: int = 0
    wins: int = 0
    by_trick: List[int] = field(default_factory=lambda: [0, 0, 0])
    as_lead: int = 0
    as_response: int = 0


def empty_card_play_stats() -> Dict[str, CategoryStats]:
    return {name: CategoryStats() for name in CARD_CATEGORIES}


def record_card_play(
    stats: Dict[str, CategoryStats],
    card: Card,
    trick: int,
    as_lead: bool,
) -> None:
    entry = stats.setdefault(card_category(card), CategoryStats())
    entry.plays += 1
    entry.by_trick[trick] += 1
    if as_lead:
        entry.as_lead += 1
    else:
        entry.as_response += 1


def record_card_win(stats: Dict[str, CategoryStats], card: Card) -> None:
    stats.setdefault(card_category(card), CategoryStats()).wins += 1


__all__ = [
    "ENVIDO_ACTIONS",
    "PLAYER_ACTION_HISTORY_LIMIT",
    "PLAYER_LOG_LIMIT",
    "append_capped",
    "PointsBreakdown",
    "TrickRecord",
    "TrucoCallMeta",
    "RoundSummary",
    "EnvidoHistoryEntry",
    "PlayOrderEntry",
    "TrucoCallEntry",
    "CategoryStats",
    "empty_card_play_stats",
    "record_card_play",
    "record_card_win",
]
