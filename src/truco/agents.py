"""
Agents that can sit in the AI's or the player's chair.

The small ``Agent`` protocol is the contract used by the match runner:
``act(state, side) -> Action``. ``RandomAgent`` is the randomizer opponent
used for simulations; ``AiAgent`` adapts TrucoAI to the protocol.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Protocol

from .actions import Action, ActionKind
from .ai import TrucoAI
from .game import legal_actions
from .play import Side
from .state import GameState


class Agent(Protocol):
    """Decision policy for one side of the table."""

    def act(self, state: GameState, side: Side) -> Action:
        """
        Choose an action for ``side`` in ``state``.

        Implementations must only return actions that are legal for ``side``.
        """


@dataclass
class RandomAgent:
    """
    Baseline agent that samples uniformly among legal actions.

    Answers to calls are drawn like any other action, so it folds about as
    often as it accepts. ``call_weight`` scales how likely betting calls are
    compared to playing a card.

    Usage:
        agent = RandomAgent(seed=42)
        action = agent.act(state, Side.PLAYER)
    """

    seed: int | None = None
    call_weight: float = 0.25

    def __post_init__(self) -> None:
        if self.call_weight < 0:
            raise ValueError("call_weight must be >= 0")
        self._rng = random.Random(self.seed)

    def act(self, state: GameState, side: Side) -> Action:
        legal: List[Action] = legal_actions(state, side)
        if not legal:
            raise ValueError(f"No legal actions for {side.value} during {state.phase.value}")
        cards = [a for a in legal if a.kind is ActionKind.PLAY_CARD]
        others = [a for a in legal if a.kind is not ActionKind.PLAY_CARD]
        if cards and others and self._rng.random() >= self.call_weight:
            return self._rng.choice(cards)
        return self._rng.choice(others or cards)


@dataclass
class AiAgent:
    """Adapter exposing TrucoAI through the Agent protocol (AI chair only)."""

    ai: TrucoAI = field(default_factory=TrucoAI)
    degraded_decisions: int = 0

    def act(self, state: GameState, side: Side) -> Action:
        if side is not Side.AI:
            raise ValueError("AiAgent only plays the AI side")
        decision = self.ai.decide(state)
        if decision.degraded:
            self.degraded_decisions += 1
        return decision.action


__all__ = ["Agent", "RandomAgent", "AiAgent"]
