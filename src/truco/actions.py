"""
The closed action surface shared by the UI, the CLI and the AI.

An Action is a tagged variant: ``kind`` selects the transition and the rest is
the minimal payload (actor, card index). AI-issued actions may additionally
carry a DecisionContext (for case memory and bluff bookkeeping) and the
reasoning trace that produced them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .memory import CaseFeatures
from .play import Side
from .reasoning import ReasoningItem


class ActionKind(str, Enum):
    START_ROUND = "start_round"
    RESTART_MATCH = "restart_match"
    PLAY_CARD = "play_card"
    CALL_ENVIDO = "call_envido"
    CALL_REAL_ENVIDO = "call_real_envido"
    CALL_FALTA_ENVIDO = "call_falta_envido"
    CALL_TRUCO = "call_truco"
    CALL_RETRUCO = "call_retruco"
    CALL_VALE_CUATRO = "call_vale_cuatro"
    CALL_FALTA_TRUCO = "call_falta_truco"
    DECLARE_FLOR = "declare_flor"
    ACKNOWLEDGE_FLOR = "acknowledge_flor"
    CALL_CONTRAFLOR = "call_contraflor"
    ACCEPT_CONTRAFLOR = "accept_contraflor"
    DECLINE_CONTRAFLOR = "decline_contraflor"
    ACCEPT = "accept"
    DECLINE = "decline"


ENVIDO_CALLS = frozenset(
    {ActionKind.CALL_ENVIDO, ActionKind.CALL_REAL_ENVIDO, ActionKind.CALL_FALTA_ENVIDO}
)
TRUCO_CALLS = frozenset(
    {
        ActionKind.CALL_TRUCO,
        ActionKind.CALL_RETRUCO,
        ActionKind.CALL_VALE_CUATRO,
        ActionKind.CALL_FALTA_TRUCO,
    }
)
# Actions that do not belong to either side.
TABLE_ACTIONS = frozenset({ActionKind.START_ROUND, ActionKind.RESTART_MATCH})

# Truco level each call moves to. Falta truco is scored as vale cuatro.
TRUCO_CALL_LEVEL = {
    ActionKind.CALL_TRUCO: 1,
    ActionKind.CALL_RETRUCO: 2,
    ActionKind.CALL_VALE_CUATRO: 3,
    ActionKind.CALL_FALTA_TRUCO: 3,
}


@dataclass(frozen=True)
class DecisionContext:
    """What the AI knew when it made a call; resolved into a Case at round end."""

    features: CaseFeatures
    reason_key: str
    strength: float
    is_bluff: bool
    opponent_fold_rate: float


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    actor: Optional[Side] = None
    card_index: Optional[int] = None
    context: Optional[DecisionContext] = None
    reasoning: Tuple[ReasoningItem, ...] = ()

    def describe(self) -> str:
        name = self.kind.value.replace("_", " ")
        if self.kind is ActionKind.PLAY_CARD:
            return f"{name} #{self.card_index}"
        return name


@dataclass
class Candidate:
    """
    A move the AI is weighing.

    ``base_ev`` is the heuristic expected value in points. Calls that can be
    made before playing a card carry the value of the card play they precede
    plus their own expected gain, so they compete with that play directly;
    ``carried_ev`` holds that card-play part.
    """

    kind: ActionKind
    reason_key: str
    base_ev: float
    card_index: Optional[int] = None
    reasoning: List[ReasoningItem] = field(default_factory=list)
    is_bluff: bool = False
    strength: float = 0.0
    carried_ev: float = 0.0

    @property
    def own_ev(self) -> float:
        """Value of the move itself, without the card play it is carried on."""
        return self.base_ev - self.carried_ev


def truco_call_for_level(level: int) -> ActionKind:
    """The call that raises from ``level`` to ``level + 1``."""
    return {
        0: ActionKind.CALL_TRUCO,
        1: ActionKind.CALL_RETRUCO,
        2: ActionKind.CALL_VALE_CUATRO,
    }[level]


__all__ = [
    "ActionKind",
    "ENVIDO_CALLS",
    "TRUCO_CALLS",
    "TABLE_ACTIONS",
    "TRUCO_CALL_LEVEL",
    "DecisionContext",
    "Action",
    "Candidate",
    "truco_call_for_level",
]
