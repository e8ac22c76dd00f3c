"""Tests for the AI's view of the table and its hand-strength estimate."""
import random

from truco.actions import Action, ActionKind
from truco.deck import card_from_code, cards_from_codes
from truco.evaluation import envido_value, has_flor
from truco.game import apply_action, new_match
from truco.inference import (
    ai_view,
    best_possible_card,
    mirror_state,
    sample_opponent_hands,
    simulate_round_win,
    truco_strength,
    unseen_cards,
)
from truco.play import Side


def _dealt(player, ai, mano=Side.AI):
    state = new_match(mano=mano)
    state = apply_action(state, Action(ActionKind.START_ROUND), random.Random(0)).state
    state.player_hand = cards_from_codes(player)
    state.ai_hand = cards_from_codes(ai)
    state.initial_player_hand = list(state.player_hand)
    state.initial_ai_hand = list(state.ai_hand)
    state.player_has_flor = has_flor(state.player_hand)
    state.ai_has_flor = has_flor(state.ai_hand)
    return state


def test_view_never_holds_the_player_hand():
    state = _dealt(["E1", "B1", "E7"], ["C4", "O5", "B6"])
    view = ai_view(state)
    assert not hasattr(view, "player_hand")
    assert view.ai_hand == state.ai_hand
    assert view.ai_hand is not state.ai_hand
    assert view.player_cards_left == 3
    assert view.ai_is_mano


def test_mirror_swaps_the_seats():
    state = _dealt(["E1", "B1", "E7"], ["C4", "O5", "B6"])
    state = apply_action(state, Action(ActionKind.PLAY_CARD, Side.AI, card_index=0), random.Random(0)).state
    state.player_score, state.ai_score = 4, 9
    mirrored = mirror_state(state)
    assert mirrored.ai_hand == cards_from_codes(["E1", "B1", "E7"])
    assert mirrored.player_hand == cards_from_codes(["O5", "B6"])
    assert mirrored.player_tricks[0] == card_from_code("C4")
    assert mirrored.ai_tricks[0] is None
    assert mirrored.mano is Side.PLAYER
    assert mirrored.current_turn is Side.AI
    assert (mirrored.player_score, mirrored.ai_score) == (9, 4)
    assert mirrored.profile is not state.profile
    assert len(mirrored.profile.case_memory) == 0
    assert state.ai_hand == cards_from_codes(["O5", "B6"])
    assert state.current_turn is Side.PLAYER


def test_unseen_cards_exclude_own_and_played():
    state = _dealt(["E1", "B1", "E7"], ["C4", "O5", "B6"])
    view = ai_view(state)
    unseen = unseen_cards(view)
    assert len(unseen) == 37
    assert card_from_code("C4") not in unseen
    # The player's cards are unknown, so they count as unseen.
    assert card_from_code("E1") in unseen


def test_best_possible_card():
    state = _dealt(["C4", "O4", "B5"], ["C3", "O5", "B6"])
    assert best_possible_card(ai_view(state)) == card_from_code("E1")
    state = _dealt(["C4", "O4", "B5"], ["E1", "O5", "B6"])
    assert best_possible_card(ai_view(state)) == card_from_code("B1")


def test_revealed_envido_constrains_samples():
    state = _dealt(["O7", "O6", "C4"], ["C5", "E5", "B6"])
    state.player_envido_value = 33
    samples = sample_opponent_hands(ai_view(state), random.Random(1), num_samples=6)
    hands = samples.all_hands()
    assert hands
    assert all(envido_value(h) == 33 for h in hands)


def test_revealed_flor_constrains_samples():
    state = _dealt(["E4", "E5", "E6"], ["C5", "O5", "B6"])
    state.player_flor_revealed = True
    reasoning = []
    samples = sample_opponent_hands(ai_view(state), random.Random(2), num_samples=6, reasoning=reasoning)
    assert all(len({c.suit for c in h}) == 1 for h in samples.all_hands())
    assert any(getattr(r, "key", None) == "ai_logic.flor_inference" for r in reasoning)


def test_samples_are_split_into_strata():
    state = _dealt(["E1", "B1", "E7"], ["C4", "O5", "B6"])
    samples = sample_opponent_hands(ai_view(state), random.Random(3), num_samples=9)
    assert len(samples.strong) == len(samples.medium) == len(samples.weak) == 3
    again = sample_opponent_hands(ai_view(state), random.Random(3), num_samples=9)
    assert samples == again


def test_simulation_extremes():
    strong = _dealt(["C4", "O4", "B5"], ["E1", "B1", "E7"])
    view = ai_view(strong)
    assert simulate_round_win(view, view.ai_hand, strong.player_hand, random.Random(4), 20) == 1.0

    weak = _dealt(["E1", "B1", "E7"], ["C4", "O4", "B5"])
    view = ai_view(weak)
    assert simulate_round_win(view, view.ai_hand, weak.player_hand, random.Random(4), 20) == 0.0


def test_truco_strength_bounds():
    strong = _dealt(["C4", "O4", "B5"], ["E1", "B1", "E7"])
    weak = _dealt(["E1", "B1", "E7"], ["C4", "O4", "B5"])
    high = truco_strength(ai_view(strong), random.Random(5), iterations=20, num_samples=6)
    low = truco_strength(ai_view(weak), random.Random(5), iterations=20, num_samples=6)
    assert 0.0 <= low.strength < high.strength <= 1.0
    assert high.reasoning

    strong.ai_hand = []
    empty = truco_strength(ai_view(strong), random.Random(5))
    assert empty.strength == 0.0
