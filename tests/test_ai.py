"""Tests for the AI decision pipeline."""
import random

import pytest

from truco.actions import Action, ActionKind, Candidate
from truco.agents import RandomAgent
from truco.ai import ARCHETYPES, AiDecision, TrucoAI, game_pressure, phase_context, scale_ev, suggest_move
from truco.deck import cards_from_codes
from truco.evaluation import has_flor, strength_bucket
from truco.game import apply_action, legal_actions, new_match, validate_action
from truco.inference import ai_view
from truco.memory import Case, CaseFeatures
from truco.play import Side
from truco.state import GamePhase


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


def _fast_ai(archetype="Balanced", seed=0, **kwargs):
    return TrucoAI(archetype=archetype, seed=seed, simulation_iterations=8, opponent_samples=3, **kwargs)


def test_game_pressure():
    assert game_pressure(0, 0) == 0.0
    assert game_pressure(3, 6) == pytest.approx(0.2)
    assert game_pressure(12, 12) == 1.0
    assert game_pressure(14, 3) == -1.0
    assert game_pressure(0, 14) == 1.0
    assert -1.0 <= game_pressure(5, 12) <= 1.0


def test_scale_ev_keeps_direction():
    assert scale_ev(2.0, 1.5) == pytest.approx(3.0)
    assert scale_ev(-2.0, 1.5) == pytest.approx(-1.0)
    assert scale_ev(-2.0, 0.5) == pytest.approx(-3.0)
    assert scale_ev(2.0, 1.0) == pytest.approx(2.0)


def test_phase_context():
    assert phase_context(ActionKind.CALL_REAL_ENVIDO, GamePhase.TRICK_1) == "envido"
    assert phase_context(ActionKind.ACCEPT, GamePhase.ENVIDO_CALLED) == "envido"
    assert phase_context(ActionKind.ACCEPT, GamePhase.RETRUCO_CALLED) == "truco"
    assert phase_context(ActionKind.DECLARE_FLOR, GamePhase.TRICK_1) == "flor"
    assert phase_context(ActionKind.CALL_TRUCO, GamePhase.TRICK_2) == "truco"
    assert phase_context(ActionKind.PLAY_CARD, GamePhase.TRICK_2) == "trick"


def test_invalid_settings_raise():
    with pytest.raises(ValueError):
        TrucoAI(archetype="Reckless")
    with pytest.raises(ValueError):
        TrucoAI(simulation_iterations=0)


def test_no_legal_action_raises():
    state = new_match()
    with pytest.raises(ValueError):
        _fast_ai().decide(state)


@pytest.mark.parametrize("archetype", ARCHETYPES)
def test_decisions_are_always_legal(archetype):
    ai = _fast_ai(archetype, seed=11)
    player = RandomAgent(seed=12)
    rng = random.Random(13)
    state = apply_action(new_match(target_score=9), Action(ActionKind.START_ROUND), rng).state
    decisions = 0
    for _ in range(800):
        if state.phase is GamePhase.GAME_OVER:
            break
        if state.phase is GamePhase.ROUND_END:
            action = Action(ActionKind.START_ROUND)
        elif state.current_turn is Side.AI:
            decision = ai.decide(state)
            assert not decision.degraded
            assert validate_action(state, decision.action) is None
            assert decision.action.actor is Side.AI
            if decision.action.kind is not ActionKind.PLAY_CARD:
                assert decision.action.context is not None
            assert decision.reasoning
            decisions += 1
            action = decision.action
        else:
            action = player.act(state, Side.PLAYER)
        result = apply_action(state, action, rng)
        assert result.accepted, result.error
        state = result.state
    assert decisions > 0
    assert state.ai_reasoning_log


def test_suggestions_are_legal_player_moves():
    ai = _fast_ai(seed=21)
    advisor = _fast_ai(seed=22)
    rng = random.Random(23)
    state = apply_action(new_match(target_score=9), Action(ActionKind.START_ROUND), rng).state
    suggestions = 0
    for _ in range(800):
        if state.phase is GamePhase.GAME_OVER:
            break
        if state.phase is GamePhase.ROUND_END:
            action = Action(ActionKind.START_ROUND)
        elif state.current_turn is Side.AI:
            action = ai.decide(state).action
        else:
            log_before = list(state.ai_reasoning_log)
            decision = suggest_move(state, advisor)
            action = decision.action
            assert action.actor is Side.PLAYER
            assert action.context is None
            assert validate_action(state, action) is None
            assert state.ai_reasoning_log == log_before
            suggestions += 1
        result = apply_action(state, action, rng)
        assert result.accepted, result.error
        state = result.state
    assert suggestions > 0


def test_pipeline_failure_degrades_to_fallback(monkeypatch):
    def broken(self, state, legal):
        raise RuntimeError("boom")

    monkeypatch.setattr(TrucoAI, "_decide", broken)
    state = _dealt(["C4", "O4", "B5"], ["E1", "B1", "E7"])
    decision = _fast_ai().decide(state)
    assert decision.degraded
    assert decision.reasoning[0].key == "ai_logic.fallback"
    assert validate_action(state, decision.action) is None
    assert decision.action.kind in {a.kind for a in legal_actions(state, Side.AI)}


def test_illegal_choice_degrades_to_fallback(monkeypatch):
    def illegal(self, state, legal):
        return AiDecision(action=Action(ActionKind.PLAY_CARD, actor=Side.AI, card_index=9), reasoning=[])

    monkeypatch.setattr(TrucoAI, "_decide", illegal)
    state = _dealt(["C4", "O4", "B5"], ["E1", "B1", "E7"])
    decision = _fast_ai().decide(state)
    assert decision.degraded
    assert validate_action(state, decision.action) is None


def test_fallback_sings_flor(monkeypatch):
    monkeypatch.setattr(TrucoAI, "_decide", lambda self, state, legal: 1 / 0)
    state = _dealt(["C4", "O4", "B5"], ["E4", "E5", "E6"])
    decision = _fast_ai().decide(state)
    assert decision.action.kind is ActionKind.DECLARE_FLOR


def test_fallback_answers_truco_by_hand_strength(monkeypatch):
    monkeypatch.setattr(TrucoAI, "_decide", lambda self, state, legal: 1 / 0)
    weak = _dealt(["E1", "B1", "E7"], ["C4", "O4", "B5"], mano=Side.PLAYER)
    weak = apply_action(weak, Action(ActionKind.CALL_TRUCO, actor=Side.PLAYER)).state
    assert _fast_ai().decide(weak).action.kind is ActionKind.DECLINE

    strong = _dealt(["C4", "O4", "B5"], ["E1", "B1", "E7"], mano=Side.PLAYER)
    strong = apply_action(strong, Action(ActionKind.CALL_TRUCO, actor=Side.PLAYER)).state
    assert _fast_ai().decide(strong).action.kind is ActionKind.ACCEPT


def _features_for(state, kind):
    view = ai_view(state)
    return CaseFeatures(
        strength_bucket=strength_bucket(view.initial_ai_hand),
        score_diff=view.score_diff,
        trick=view.current_trick,
        phase=phase_context(kind, view.phase),
        is_mano=view.ai_is_mano,
    )


def test_case_memory_adjusts_expected_value():
    state = _dealt(["C4", "O4", "B5"], ["C3", "O2", "B6"])
    features = _features_for(state, ActionKind.CALL_TRUCO)
    for _ in range(5):
        state.profile.case_memory.add(
            Case(
                features=features,
                action_kind=ActionKind.CALL_TRUCO.value,
                reason_key="call_truco_strong",
                is_bluff=False,
                strength=0.6,
                opponent_fold_rate=0.3,
                outcome="loss",
                points_swung=-2,
            )
        )
    candidate = Candidate(kind=ActionKind.CALL_TRUCO, reason_key="call_truco_strong", base_ev=1.0)
    move = _fast_ai()._evaluate(state, ai_view(state), candidate)
    assert move.memory_adjustment == pytest.approx(0.5 * -2 * 5 / 10)
    assert move.final_ev == pytest.approx(0.5)

    candidate = Candidate(kind=ActionKind.CALL_TRUCO, reason_key="call_truco_strong", base_ev=1.0)
    unweighted = _fast_ai(memory_weight=0.0)._evaluate(state, ai_view(state), candidate)
    assert unweighted.memory_adjustment == 0.0
    assert unweighted.final_ev == pytest.approx(1.0)


def test_deciding_leaves_the_case_memory_rng_alone():
    state = _dealt(["C4", "O4", "B5"], ["C3", "O2", "B6"])
    features = _features_for(state, ActionKind.CALL_TRUCO)
    for points in (-2, 2, -2, -2):
        state.profile.case_memory.add(
            Case(
                features=features,
                action_kind=ActionKind.CALL_TRUCO.value,
                reason_key="call_truco_strong",
                is_bluff=False,
                strength=0.6,
                opponent_fold_rate=0.3,
                outcome="win" if points > 0 else "loss",
                points_swung=points,
            )
        )
    before = state.profile.case_memory.rng.getstate()
    ai = _fast_ai()
    candidate = Candidate(kind=ActionKind.CALL_TRUCO, reason_key="call_truco_strong", base_ev=1.0)
    move = ai._evaluate(state, ai_view(state), candidate)
    assert move.memory_adjustment != 0.0
    ai.decide(state)
    assert state.profile.case_memory.rng.getstate() == before


def test_archetype_modifiers_and_positive_decline():
    state = _dealt(["C4", "O4", "B5"], ["C3", "O2", "B6"])
    view = ai_view(state)
    cautious = _fast_ai("Cautious")
    positive = cautious._evaluate(state, view, Candidate(ActionKind.DECLINE, "decline", base_ev=0.5))
    assert positive.modifier == 1.0
    negative = cautious._evaluate(state, view, Candidate(ActionKind.DECLINE, "decline", base_ev=-1.0))
    assert negative.modifier == pytest.approx(1.6)
    assert negative.final_ev == pytest.approx(-0.4)

    carried = Candidate(ActionKind.CALL_ENVIDO, "call_envido", base_ev=3.0, carried_ev=2.0)
    move = _fast_ai("Balanced")._evaluate(state, view, carried)
    assert move.final_ev == pytest.approx(2.0 + 1.8)
