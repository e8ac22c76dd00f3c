"""
Predefined positions for checking how the AI reasons.

Each scenario builds a mid-round GameState on the AI's turn. They are used by
``truco scenario`` and by the tests to pin down characteristic decisions:

- parda_y_gano: first trick tied, AI holds the 7 of espadas to lead;
- do_or_die: weak hand facing a truco at 13-14;
- lopsided_bait: 33 envido with almost no trick power, AI is mano;
- envido_primero: 33 envido facing a first-trick truco;
- flor_vs_envido: AI holds flor and the player sings envido.
"""
from __future__ import annotations

from typing import Callable, Dict, List, NamedTuple, Sequence

from .ai import AiDecision, TrucoAI
from .deck import Card, cards_from_codes
from .evaluation import has_flor
from .play import TIE, Side
from .scoring import ENVIDO_POINTS, ENVIDO_TIER_ENVIDO
from .state import GamePhase, GameState, LearningProfile


class Scenario(NamedTuple):
    name: str
    description: str
    build: Callable[[], GameState]


def _state(
    ai_hand: Sequence[str],
    player_hand: Sequence[str],
    mano: Side,
    ai_score: int,
    player_score: int,
    played_ai: Sequence[str] = (),
    played_player: Sequence[str] = (),
) -> GameState:
    ai_cards = cards_from_codes(ai_hand)
    player_cards = cards_from_codes(player_hand)
    ai_played: List[Card] = cards_from_codes(played_ai)
    player_played: List[Card] = cards_from_codes(played_player)
    state = GameState(profile=LearningProfile())
    state.round = 1
    state.mano = mano
    state.ai_hand = list(ai_cards)
    state.player_hand = list(player_cards)
    state.initial_ai_hand = ai_played + ai_cards
    state.initial_player_hand = player_played + player_cards
    state.ai_has_flor = has_flor(state.initial_ai_hand)
    state.player_has_flor = has_flor(state.initial_player_hand)
    state.ai_score = ai_score
    state.player_score = player_score
    for i, (a, p) in enumerate(zip(ai_played, player_played)):
        state.ai_tricks[i] = a
        state.player_tricks[i] = p
        state.played_cards.extend([p, a])
    state.current_trick = len(ai_played)
    state.phase = GamePhase.TRICK_1
    state.current_turn = Side.AI
    return state


def parda_y_gano() -> GameState:
    state = _state(["E7", "B6"], ["O7", "C4"], Side.AI, 5, 5, played_ai=["B3"], played_player=["O3"])
    state.trick_winners[0] = TIE
    state.envido_closed = True
    state.phase = GamePhase.TRICK_2
    return state


def do_or_die() -> GameState:
    state = _state(["B4", "C5", "O6"], ["E3", "O2", "C1"], Side.PLAYER, 13, 14)
    _player_truco(state)
    return state


def lopsided_bait() -> GameState:
    return _state(["O7", "O6", "C4"], ["E3", "B2", "C1"], Side.AI, 8, 8)


def envido_primero() -> GameState:
    state = _state(["E7", "E6", "B4"], ["B7", "B2", "O1"], Side.PLAYER, 10, 10)
    _player_truco(state)
    return state


def flor_vs_envido() -> GameState:
    state = _state(["O7", "O6", "O5"], ["E7", "E6", "B2"], Side.PLAYER, 2, 2)
    state.phase = GamePhase.ENVIDO_CALLED
    state.envido_points_on_offer = ENVIDO_POINTS
    state.envido_tier = ENVIDO_TIER_ENVIDO
    state.last_caller = Side.PLAYER
    state.turn_before_interrupt = Side.PLAYER
    return state


def _player_truco(state: GameState) -> None:
    """The player (mano) opens with truco before any card is down."""
    state.truco_level = 1
    state.phase = GamePhase.TRUCO_CALLED
    state.last_caller = Side.PLAYER
    state.last_truco_caller = Side.PLAYER
    state.turn_before_interrupt = Side.PLAYER
    state.pending_truco_caller = Side.PLAYER


SCENARIOS: Dict[str, Scenario] = {
    s.name: s
    for s in (
        Scenario("parda_y_gano", "First trick tied; AI leads with the 7 of espadas.", parda_y_gano),
        Scenario("do_or_die", "Weak hand facing truco at 13-14.", do_or_die),
        Scenario("lopsided_bait", "33 envido, almost no trick power, AI is mano.", lopsided_bait),
        Scenario("envido_primero", "33 envido facing a first-trick truco.", envido_primero),
        Scenario("flor_vs_envido", "AI holds flor when the player sings envido.", flor_vs_envido),
    )
}


def run_scenario(name: str, ai: TrucoAI | None = None) -> AiDecision:
    """Build scenario ``name`` and ask the AI for its move."""
    try:
        scenario = SCENARIOS[name]
    except KeyError:
        raise ValueError(f"Unknown scenario: {name!r}") from None
    if ai is None:
        ai = TrucoAI(seed=0)
    return ai.decide(scenario.build())


__all__ = ["Scenario", "SCENARIOS", "run_scenario"]
