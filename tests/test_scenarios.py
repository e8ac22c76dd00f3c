"""Characteristic AI decisions in fixed positions."""
import pytest

from truco.actions import ENVIDO_CALLS, ActionKind
from truco.ai import TrucoAI
from truco.game import validate_action
from truco.scenarios import SCENARIOS, run_scenario


def _ai(archetype="Balanced"):
    return TrucoAI(archetype=archetype, seed=0, simulation_iterations=20, opponent_samples=6)


@pytest.mark.parametrize("name", sorted(SCENARIOS))
def test_every_scenario_gets_a_legal_move(name):
    state = SCENARIOS[name].build()
    decision = _ai().decide(state)
    assert not decision.degraded
    assert validate_action(state, decision.action) is None


def test_flor_is_sung_over_envido():
    decision = run_scenario("flor_vs_envido", _ai())
    assert decision.action.kind is ActionKind.DECLARE_FLOR


def test_lopsided_hand_goes_for_envido():
    decision = run_scenario("lopsided_bait", _ai())
    assert decision.action.kind in ENVIDO_CALLS


def test_envido_primero_against_truco():
    decision = run_scenario("envido_primero", _ai())
    assert decision.action.kind in ENVIDO_CALLS


def test_unknown_scenario():
    with pytest.raises(ValueError):
        run_scenario("no_such_position")
