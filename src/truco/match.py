"""
Headless match runner.

``run_match`` drives a full match between two agents through the state
machine; ``run_matches`` plays a series and aggregates the results. The
learning profile is carried from one match to the next, so the AI keeps
learning about its opponent over a simulation.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional

from .actions import Action, ActionKind
from .agents import Agent
from .game import apply_action, new_match
from .play import Side
from .scoring import MATCH_TARGET
from .state import GamePhase, GameState, LearningProfile

MAX_STEPS = 5000


class MatchResult(NamedTuple):
    winner: Side
    player_score: int
    ai_score: int
    rounds: int
    steps: int
    state: GameState


@dataclass
class MatchStats:
    """Aggregate over a series of matches."""

    matches: int = 0
    ai_wins: int = 0
    player_wins: int = 0
    total_ai_score: int = 0
    total_player_score: int = 0
    total_rounds: int = 0
    results: List[MatchResult] = field(default_factory=list)

    def add(self, result: MatchResult) -> None:
        self.matches += 1
        if result.winner is Side.AI:
            self.ai_wins += 1
        else:
            self.player_wins += 1
        self.total_ai_score += result.ai_score
        self.total_player_score += result.player_score
        self.total_rounds += result.rounds
        self.results.append(result)

    @property
    def ai_win_rate(self) -> float:
        return self.ai_wins / self.matches if self.matches else 0.0

    @property
    def avg_ai_score(self) -> float:
        return self.total_ai_score / self.matches if self.matches else 0.0

    @property
    def avg_player_score(self) -> float:
        return self.total_player_score / self.matches if self.matches else 0.0


def _step(state: GameState, action: Action, rng: random.Random) -> GameState:
    result = apply_action(state, action, rng)
    if not result.accepted:
        who = action.actor.value if action.actor is not None else "table"
        raise RuntimeError(f"{who} chose an illegal {action.kind.value}: {result.error}")
    return result.state


def run_match(
    player_agent: Agent,
    ai_agent: Agent,
    target_score: int = MATCH_TARGET,
    flor_enabled: bool = True,
    seed: int | None = None,
    profile: Optional[LearningProfile] = None,
    mano: Side = Side.PLAYER,
    max_steps: int = MAX_STEPS,
) -> MatchResult:
    """
    Play one match to ``target_score``.

    Raises RuntimeError when an agent returns an illegal action or the match
    does not finish within ``max_steps`` actions.
    """
    rng = random.Random(seed)
    state = new_match(target_score=target_score, flor_enabled=flor_enabled, mano=mano, profile=profile)
    state = _step(state, Action(ActionKind.START_ROUND), rng)

    steps = 0
    while state.phase is not GamePhase.GAME_OVER:
        if steps >= max_steps:
            raise RuntimeError(f"Match did not finish within {max_steps} actions")
        if state.phase is GamePhase.ROUND_END:
            action = Action(ActionKind.START_ROUND)
        else:
            side = state.current_turn
            agent = ai_agent if side is Side.AI else player_agent
            action = agent.act(state, side)
        state = _step(state, action, rng)
        steps += 1

    return MatchResult(
        winner=state.winner,
        player_score=state.player_score,
        ai_score=state.ai_score,
        rounds=state.round,
        steps=steps,
        state=state,
    )


def run_matches(
    num_matches: int,
    player_agent: Agent,
    ai_agent: Agent,
    target_score: int = MATCH_TARGET,
    flor_enabled: bool = True,
    seed: int | None = None,
    profile: Optional[LearningProfile] = None,
) -> MatchStats:
    """Play ``num_matches`` matches, alternating who is mano in the first round."""
    if num_matches < 1:
        raise ValueError("num_matches must be >= 1")
    rng = random.Random(seed)
    stats = MatchStats()
    for i in range(num_matches):
        mano = Side.PLAYER if i % 2 == 0 else Side.AI
        result = run_match(
            player_agent,
            ai_agent,
            target_score=target_score,
            flor_enabled=flor_enabled,
            seed=rng.randrange(2**31),
            profile=profile,
            mano=mano,
        )
        profile = result.state.profile
        stats.add(result)
    return stats


__all__ = ["MatchResult", "MatchStats", "run_match", "run_matches"]
