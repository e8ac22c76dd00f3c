"""
Game state for a Truco match against the AI.

GameState is the single aggregate the state machine reduces over: hands and
tricks for the current round, scores, betting bookkeeping, logs, and the
LearningProfile (opponent model, case memory, histories) that carries across
rounds and matches.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .actions import DecisionContext
from .deck import Card
from .history import (
    CategoryStats,
    EnvidoHistoryEntry,
    PlayOrderEntry,
    RoundSummary,
    TrucoCallEntry,
    empty_card_play_stats,
)
from .memory import DEFAULT_CAPACITY, CaseMemory
from .opponent_model import DEFAULT_ALPHA, OpponentModel
from .play import Side, TrickResult
from .reasoning import ReasoningEntry
from .scoring import MATCH_TARGET

ROUND_HISTORY_LIMIT = 200


class GamePhase(str, Enum):
    INITIAL = "initial"
    TRICK_1 = "trick_1"
    TRICK_2 = "trick_2"
    TRICK_3 = "trick_3"
    ENVIDO_CALLED = "envido_called"
    TRUCO_CALLED = "truco_called"
    RETRUCO_CALLED = "retruco_called"
    VALE_CUATRO_CALLED = "vale_cuatro_called"
    FLOR_CALLED = "flor_called"
    CONTRAFLOR_CALLED = "contraflor_called"
    ROUND_END = "round_end"
    GAME_OVER = "game_over"


TRICK_PHASES = (GamePhase.TRICK_1, GamePhase.TRICK_2, GamePhase.TRICK_3)
TRUCO_PHASES = (
    GamePhase.TRUCO_CALLED,
    GamePhase.RETRUCO_CALLED,
    GamePhase.VALE_CUATRO_CALLED,
)
FLOR_PHASES = (GamePhase.FLOR_CALLED, GamePhase.CONTRAFLOR_CALLED)
CALL_PHASES = (GamePhase.ENVIDO_CALLED,) + TRUCO_PHASES + FLOR_PHASES

# Phase entered when truco reaches a level.
TRUCO_LEVEL_PHASE = {
    1: GamePhase.TRUCO_CALLED,
    2: GamePhase.RETRUCO_CALLED,
    3: GamePhase.VALE_CUATRO_CALLED,
}


def trick_phase(trick: int) -> GamePhase:
    return TRICK_PHASES[trick]


@dataclass
class LearningProfile:
    """Everything the AI has learned about the player; persisted between sessions."""

    opponent_model: OpponentModel = field(default_factory=OpponentModel)
    case_memory: CaseMemory = field(default_factory=CaseMemory)
    envido_history: List[EnvidoHistoryEntry] = field(default_factory=list)
    play_order_history: List[PlayOrderEntry] = field(default_factory=list)
    truco_call_history: List[TrucoCallEntry] = field(default_factory=list)
    card_play_stats: Dict[str, CategoryStats] = field(default_factory=empty_card_play_stats)
    round_history: List[RoundSummary] = field(default_factory=list)
    player_action_history: List[str] = field(default_factory=list)


def new_profile(memory_capacity: int = DEFAULT_CAPACITY, seed: int | None = None) -> LearningProfile:
    return LearningProfile(case_memory=CaseMemory(capacity=memory_capacity, seed=seed))


@dataclass
class PendingDecision:
    """An AI call or response waiting for the round to end to learn its outcome."""

    kind: str
    source: str  # "truco" | "envido" | "flor"
    context: DecisionContext


@dataclass
class GameState:
    target_score: int = MATCH_TARGET
    flor_enabled: bool = True
    learning_rate: float = DEFAULT_ALPHA
    debug_mode: bool = False

    deck: List[Card] = field(default_factory=list)
    player_hand: List[Card] = field(default_factory=list)
    ai_hand: List[Card] = field(default_factory=list)
    initial_player_hand: List[Card] = field(default_factory=list)
    initial_ai_hand: List[Card] = field(default_factory=list)
    player_tricks: List[Optional[Card]] = field(default_factory=lambda: [None, None, None])
    ai_tricks: List[Optional[Card]] = field(default_factory=lambda: [None, None, None])
    trick_winners: List[Optional[TrickResult]] = field(default_factory=lambda: [None, None, None])
    played_cards: List[Card] = field(default_factory=list)
    current_trick: int = 0

    player_score: int = 0
    ai_score: int = 0
    round: int = 0
    mano: Side = Side.PLAYER
    current_turn: Optional[Side] = None
    phase: GamePhase = GamePhase.INITIAL

    truco_level: int = 0
    last_caller: Optional[Side] = None
    last_truco_caller: Optional[Side] = None
    pending_truco_caller: Optional[Side] = None
    turn_before_interrupt: Optional[Side] = None

    envido_points_on_offer: int = 0
    previous_envido_points: int = 0
    envido_tier: int = 0
    envido_envido_called: bool = False
    envido_closed: bool = False
    player_envido_value: Optional[int] = None
    player_called_high_envido: bool = False

    flor_called: bool = False
    flor_caller: Optional[Side] = None
    flor_points_on_offer: int = 0
    player_has_flor: bool = False
    ai_has_flor: bool = False
    player_flor_revealed: bool = False

    winner: Optional[Side] = None
    message_log: List[str] = field(default_factory=list)
    ai_reasoning_log: List[ReasoningEntry] = field(default_factory=list)

    pending_decisions: List[PendingDecision] = field(default_factory=list)
    ai_bluff_open: bool = False
    envido_primero_open: bool = False

    profile: LearningProfile = field(default_factory=LearningProfile)

    def hand(self, side: Side) -> List[Card]:
        return self.player_hand if side is Side.PLAYER else self.ai_hand

    def initial_hand(self, side: Side) -> List[Card]:
        return self.initial_player_hand if side is Side.PLAYER else self.initial_ai_hand

    def tricks(self, side: Side) -> List[Optional[Card]]:
        return self.player_tricks if side is Side.PLAYER else self.ai_tricks

    def score(self, side: Side) -> int:
        return self.player_score if side is Side.PLAYER else self.ai_score

    def has_flor(self, side: Side) -> bool:
        return self.player_has_flor if side is Side.PLAYER else self.ai_has_flor

    def add_score(self, side: Side, points: int) -> None:
        if points < 0:
            raise ValueError("Scores never decrease")
        if side is Side.PLAYER:
            self.player_score += points
        else:
            self.ai_score += points

    @property
    def summary(self) -> Optional[RoundSummary]:
        history = self.profile.round_history
        if history and history[-1].round == self.round and not history[-1].closed:
            return history[-1]
        return None

    def in_trick_phase(self) -> bool:
        return self.phase in TRICK_PHASES

    def is_over(self) -> bool:
        return self.phase is GamePhase.GAME_OVER


__all__ = [
    "ROUND_HISTORY_LIMIT",
    "GamePhase",
    "TRICK_PHASES",
    "TRUCO_PHASES",
    "FLOR_PHASES",
    "CALL_PHASES",
    "TRUCO_LEVEL_PHASE",
    "trick_phase",
    "LearningProfile",
    "new_profile",
    "PendingDecision",
    "GameState",
]
