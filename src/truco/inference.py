"""
What the AI can know about the player's hand, and how strong its own hand is.

``ai_view`` projects a GameState onto the information the AI may use: its own
cards, everything on the table, the player's revealed envido and flor, the
betting state and the learned profile. The player's hand is never copied
into the view, so nothing downstream can peek at it.

Opponent hands are sampled under the known constraints, in order of strength:
  1. a revealed flor (every card the same suit, matching a revealed envido);
  2. a revealed envido value;
  3. behaviour: a first-trick truco from the player is matched against the
     strength of the hands they called truco with before.
Without constraints, the remaining cards are drawn uniformly. Constrained
samples are weighted by strength, more so against an aggressive player.
"""
from __future__ import annotations

import itertools
import math
import random
from dataclasses import dataclass, field, replace
from typing import List, NamedTuple, Optional, Sequence

from .actions import ActionKind
from .deck import Card, Suit, make_deck_40
from .evaluation import card_rank, envido_value, hand_strength
from .history import TrucoCallEntry
from .opponent_model import OpponentModel
from .play import Side, TrickResult, next_leader, round_winner, trick_winner
from .reasoning import ReasoningItem, record
from .state import GamePhase, GameState, new_profile

HAND_CARDS = 3

# First-trick truco without history: assume at least a median hand.
EARLY_TRUCO_MIN_STRENGTH = 11

AGGRESSIVE_ACTIONS = frozenset(
    {
        ActionKind.CALL_TRUCO.value,
        ActionKind.CALL_RETRUCO.value,
        ActionKind.CALL_VALE_CUATRO.value,
        ActionKind.CALL_REAL_ENVIDO.value,
        ActionKind.CALL_FALTA_ENVIDO.value,
    }
)

# Raw trick power used by the quick heuristic; the four bravas dominate.
BRAVAS = {
    (1, Suit.ESPADAS): 4.0,
    (1, Suit.BASTOS): 3.0,
    (7, Suit.ESPADAS): 2.0,
    (7, Suit.OROS): 1.0,
}
LOW_RANKS = {3: 0.5, 2: 0.4, 1: 0.3, 12: 0.1, 11: 0.1, 10: 0.1, 7: 0.2, 6: 0.1, 5: 0.1, 4: 0.05}

HEURISTIC_WEIGHT = 0.2
MANO_BONUS = 0.05


@dataclass
class AiView:
    """Everything the AI is allowed to see when deciding."""

    ai_hand: List[Card]
    initial_ai_hand: List[Card]
    player_tricks: List[Optional[Card]]
    ai_tricks: List[Optional[Card]]
    trick_winners: List[Optional[TrickResult]]
    played_cards: List[Card]
    current_trick: int
    mano: Side
    phase: GamePhase
    truco_level: int
    last_caller: Optional[Side]
    last_truco_caller: Optional[Side]
    envido_points_on_offer: int
    previous_envido_points: int
    envido_tier: int
    envido_closed: bool
    player_envido_value: Optional[int]
    player_called_high_envido: bool
    flor_enabled: bool
    flor_called: bool
    ai_has_flor: bool
    player_flor_revealed: bool
    player_score: int
    ai_score: int
    target_score: int
    round: int
    model: OpponentModel
    truco_call_history: List[TrucoCallEntry] = field(default_factory=list)
    player_action_history: List[str] = field(default_factory=list)

    @property
    def player_cards_played(self) -> List[Card]:
        return [c for c in self.player_tricks if c is not None]

    @property
    def player_cards_left(self) -> int:
        return HAND_CARDS - len(self.player_cards_played)

    @property
    def score_diff(self) -> int:
        return self.ai_score - self.player_score

    @property
    def ai_is_mano(self) -> bool:
        return self.mano is Side.AI

    @property
    def ai_leads(self) -> bool:
        return self.player_tricks[self.current_trick] is None

    @property
    def player_role(self) -> str:
        return "mano" if self.mano is Side.PLAYER else "pie"


def ai_view(state: GameState) -> AiView:
    profile = state.profile
    return AiView(
        ai_hand=list(state.ai_hand),
        initial_ai_hand=list(state.initial_ai_hand),
        player_tricks=list(state.player_tricks),
        ai_tricks=list(state.ai_tricks),
        trick_winners=list(state.trick_winners),
        played_cards=list(state.played_cards),
        current_trick=state.current_trick,
        mano=state.mano,
        phase=state.phase,
        truco_level=state.truco_level,
        last_caller=state.last_caller,
        last_truco_caller=state.last_truco_caller,
        envido_points_on_offer=state.envido_points_on_offer,
        previous_envido_points=state.previous_envido_points,
        envido_tier=state.envido_tier,
        envido_closed=state.envido_closed,
        player_envido_value=state.player_envido_value,
        player_called_high_envido=state.player_called_high_envido,
        flor_enabled=state.flor_enabled,
        flor_called=state.flor_called,
        ai_has_flor=state.ai_has_flor,
        player_flor_revealed=state.player_flor_revealed,
        player_score=state.player_score,
        ai_score=state.ai_score,
        target_score=state.target_score,
        round=state.round,
        model=profile.opponent_model,
        truco_call_history=list(profile.truco_call_history),
        player_action_history=list(profile.player_action_history),
    )



def _swap(side: Optional[Side]) -> Optional[Side]:
    return side.other if side is not None else None


def mirror_state(state: GameState) -> GameState:
    """
    The same position with the seats swapped, so the AI can play the player's side.

    The learned profile describes the player, not the AI, so the mirror gets a
    fresh one. The AI's own envido and flor count as revealed exactly when
    the player's would.
    """
    ai_flor_revealed = state.flor_caller is Side.AI or (
        state.flor_called and state.ai_has_flor and state.player_has_flor
    )
    return replace(
        state,
        player_hand=list(state.ai_hand),
        ai_hand=list(state.player_hand),
        initial_player_hand=list(state.initial_ai_hand),
        initial_ai_hand=list(state.initial_player_hand),
        player_tricks=list(state.ai_tricks),
        ai_tricks=list(state.player_tricks),
        trick_winners=[w.other if isinstance(w, Side) else w for w in state.trick_winners],
        played_cards=list(state.played_cards),
        player_score=state.ai_score,
        ai_score=state.player_score,
        mano=state.mano.other,
        current_turn=_swap(state.current_turn),
        last_caller=_swap(state.last_caller),
        last_truco_caller=_swap(state.last_truco_caller),
        pending_truco_caller=_swap(state.pending_truco_caller),
        turn_before_interrupt=_swap(state.turn_before_interrupt),
        player_envido_value=(
            envido_value(state.initial_ai_hand) if state.player_envido_value is not None else None
        ),
        player_called_high_envido=False,
        flor_caller=_swap(state.flor_caller),
        player_has_flor=state.ai_has_flor,
        ai_has_flor=state.player_has_flor,
        player_flor_revealed=ai_flor_revealed,
        winner=_swap(state.winner),
        message_log=list(state.message_log),
        ai_reasoning_log=[],
        pending_decisions=[],
        ai_bluff_open=False,
        envido_primero_open=False,
        profile=new_profile(),
    )

class HandSamples(NamedTuple):
    """Sampled opponent hands split into strength strata (each a list of hands)."""
    strong: List[List[Card]]
    medium: List[List[Card]]
    weak: List[List[Card]]

    def all_hands(self) -> List[List[Card]]:
        return self.strong + self.medium + self.weak


EMPTY_SAMPLES = HandSamples([], [], [])


def unseen_cards(view: AiView) -> List[Card]:
    """Cards the player could still be holding."""
    known = set(view.ai_hand) | set(view.played_cards)
    return [c for c in make_deck_40() if c not in known]


def aggression_score(view: AiView) -> float:
    history = view.player_action_history
    if not history:
        return 0.0
    return sum(1 for a in history if a in AGGRESSIVE_ACTIONS) / len(history)


def _flor_hands(view: AiView, pool: Sequence[Card], k: int) -> List[List[Card]]:
    played = view.player_cards_played
    if len({c.suit for c in played}) > 1:
        return []
    suits = [played[0].suit] if played else list(Suit)
    hands: List[List[Card]] = []
    for suit in suits:
        of_suit = [c for c in pool if c.suit is suit]
        for rest in itertools.combinations(of_suit, k):
            full = played + list(rest)
            if view.player_envido_value is None or envido_value(full) == view.player_envido_value:
                hands.append(list(rest))
    return hands


def _envido_hands(view: AiView, pool: Sequence[Card], k: int) -> List[List[Card]]:
    played = view.player_cards_played
    return [
        list(rest)
        for rest in itertools.combinations(pool, k)
        if envido_value(played + list(rest)) == view.player_envido_value
    ]


def _truco_profile_hands(
    view: AiView,
    pool: Sequence[Card],
    k: int,
    reasoning: List[ReasoningItem],
) -> List[List[Card]]:
    played = view.player_cards_played
    history = view.truco_call_history
    if len(history) > 1:
        strengths = [e.strength for e in history]
        mean = sum(strengths) / len(strengths)
        std = math.sqrt(sum((s - mean) ** 2 for s in strengths) / len(strengths))
        low, high = max(0.0, mean - 1.5 * std), mean + 1.5 * std
        reasoning.append(record("ai_logic.truco_profile_range", mean=round(mean, 1), std=round(std, 1)))
    else:
        low, high = float(EARLY_TRUCO_MIN_STRENGTH), math.inf
        reasoning.append(record("ai_logic.early_truco_assumption", min_strength=EARLY_TRUCO_MIN_STRENGTH))
    return [
        list(rest)
        for rest in itertools.combinations(pool, k)
        if low <= hand_strength(played + list(rest)) <= high
    ]


def sample_opponent_hands(
    view: AiView,
    rng: random.Random,
    num_samples: int = 6,
    reasoning: List[ReasoningItem] | None = None,
) -> HandSamples:
    """
    Draw ``num_samples`` plausible remaining player hands and split them into
    strong/medium/weak thirds (sorted by strength).
    """
    if reasoning is None:
        reasoning = []
    k = view.player_cards_left
    if k <= 0 or num_samples <= 0:
        return EMPTY_SAMPLES
    pool = unseen_cards(view)
    if len(pool) < k:
        reasoning.append(record("ai_logic.not_enough_unseen_cards"))
        return EMPTY_SAMPLES

    valid: List[List[Card]] = []
    if view.player_flor_revealed:
        valid = _flor_hands(view, pool, k)
        if valid:
            reasoning.append(record("ai_logic.flor_inference", hands=len(valid)))
    if not valid and view.player_envido_value is not None:
        valid = _envido_hands(view, pool, k)
        if valid:
            reasoning.append(
                record("ai_logic.envido_inference", envido=view.player_envido_value, hands=len(valid))
            )
    responding_to_truco = (
        view.phase is GamePhase.TRUCO_CALLED
        and view.last_caller is Side.PLAYER
        and view.current_trick == 0
    )
    if not valid and responding_to_truco:
        valid = _truco_profile_hands(view, pool, k, reasoning)
        if valid:
            reasoning.append(record("ai_logic.truco_inference", hands=len(valid)))

    samples: List[List[Card]] = []
    if valid:
        aggression = aggression_score(view)
        if aggression > 0.1:
            reasoning.append(record("ai_logic.aggressive_player", score=round(aggression, 2)))
        if len(valid) < num_samples:
            by_strength = sorted(valid, key=hand_strength)
            median = by_strength[len(by_strength) // 2]
            samples = list(valid) + [median] * (num_samples - len(valid))
        else:
            scale = 1.0 + aggression
            weights = [(hand_strength(h) + 1) ** scale for h in valid]
            samples = rng.choices(valid, weights=weights, k=num_samples)
    else:
        reasoning.append(record("ai_logic.general_inference", unseen=len(pool)))
        samples = [rng.sample(pool, k) for _ in range(num_samples)]

    samples.sort(key=hand_strength, reverse=True)
    third = max(1, len(samples) // 3)
    strong = samples[:third]
    medium = samples[third: 2 * third] or strong
    weak = samples[2 * third:] or medium
    return HandSamples(strong, medium, weak)


def _lowest_winner(cards: List[Card], target: Card) -> Optional[Card]:
    winners = [c for c in cards if card_rank(c) > card_rank(target)]
    if not winners:
        return None
    return min(winners, key=card_rank)


def simulate_round_win(
    view: AiView,
    my_hand: Sequence[Card],
    opp_hand: Sequence[Card],
    rng: random.Random,
    iterations: int = 60,
) -> float:
    """
    Fraction of simulated playouts of the rest of the round the AI wins.

    The leader plays its highest card; the responder plays its lowest winning
    card or throws its lowest. A player leading the first trick follows their
    learned lead-with-highest rate.
    """
    if iterations <= 0:
        return 0.0
    lead_high_rate = view.model.play_style.lead_with_highest_rate
    wins = 0
    for _ in range(iterations):
        winners: List[Optional[TrickResult]] = list(view.trick_winners)
        mine = sorted(my_hand, key=card_rank, reverse=True)
        theirs = sorted(opp_hand, key=card_rank, reverse=True)
        ai_leads = view.ai_leads
        pending_player_card = view.player_tricks[view.current_trick]

        for trick in range(view.current_trick, 3):
            if not mine:
                break
            if trick == view.current_trick and pending_player_card is not None:
                opp_card = pending_player_card
                my_card = _lowest_winner(mine, opp_card) or mine[-1]
                mine.remove(my_card)
            else:
                if not theirs:
                    break
                if ai_leads:
                    my_card = mine.pop(0)
                    opp_card = _lowest_winner(theirs, my_card) or theirs[-1]
                    theirs.remove(opp_card)
                else:
                    if trick == 0 and view.mano is Side.PLAYER and rng.random() >= lead_high_rate:
                        opp_card = theirs.pop()
                    else:
                        opp_card = theirs.pop(0)
                    my_card = _lowest_winner(mine, opp_card) or mine[-1]
                    mine.remove(my_card)

            result = trick_winner(opp_card, my_card)
            winners[trick] = result
            ai_leads = next_leader(result, view.mano) is Side.AI
            if round_winner(winners, view.mano) is not None:
                break

        if round_winner(winners, view.mano) is Side.AI:
            wins += 1
    return wins / iterations


def heuristic_strength(cards: Sequence[Card]) -> float:
    """Quick 0..1-ish score of raw trick power."""
    total = 0.0
    for card in cards:
        total += BRAVAS.get((card.rank, card.suit), LOW_RANKS.get(card.rank, 0.0) * 0.1)
    return total / 4.0


@dataclass
class StrengthResult:
    strength: float
    win_probability: float
    reasoning: List[ReasoningItem]


def truco_strength(
    view: AiView,
    rng: random.Random,
    iterations: int = 60,
    num_samples: int = 6,
) -> StrengthResult:
    """
    Blend the bravas heuristic with the simulated win rate against sampled
    opponent hands. The heuristic counts less as fewer tricks remain.
    """
    if not view.ai_hand:
        return StrengthResult(0.0, 0.0, [record("ai_logic.no_cards_left")])

    reasoning: List[ReasoningItem] = []
    heuristic = heuristic_strength(view.ai_hand)
    reasoning.append(record("ai_logic.heuristic_strength", strength=round(heuristic, 2)))

    samples = sample_opponent_hands(view, rng, num_samples, reasoning)
    strata = [s for s in (samples.strong, samples.medium, samples.weak) if s]
    if strata:
        rates = [
            sum(simulate_round_win(view, view.ai_hand, hand, rng, iterations) for hand in stratum)
            / len(stratum)
            for stratum in strata
        ]
        sim = sum(rates) / len(rates)
        reasoning.append(record("ai_logic.win_prob_strata", rates=[round(r, 2) for r in rates]))
    elif view.player_cards_left == 0 and view.player_tricks[view.current_trick] is not None:
        sim = simulate_round_win(view, view.ai_hand, [], rng, 1)
    else:
        sim = heuristic

    tricks_left = 3 - view.current_trick
    weight = HEURISTIC_WEIGHT * tricks_left / 3
    blended = weight * heuristic + (1.0 - weight) * sim
    if view.ai_is_mano and view.current_trick == 0:
        blended += MANO_BONUS
    strength = max(0.0, min(1.0, blended))
    reasoning.append(record("ai_logic.blended_strength", strength=round(strength, 2)))
    return StrengthResult(strength=strength, win_probability=sim, reasoning=reasoning)


def best_possible_card(view: AiView) -> Optional[Card]:
    """Highest card the player could still hold."""
    if view.player_cards_left <= 0:
        return None
    pool = unseen_cards(view)
    return max(pool, key=card_rank) if pool else None


__all__ = [
    "AiView",
    "ai_view",
    "mirror_state",
    "HandSamples",
    "unseen_cards",
    "aggression_score",
    "sample_opponent_hands",
    "simulate_round_win",
    "heuristic_strength",
    "StrengthResult",
    "truco_strength",
    "best_possible_card",
]
