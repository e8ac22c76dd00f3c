"""Tests for the player trait analysis."""
import random

from truco.history import RoundSummary, TrucoCallEntry, TrucoCallMeta
from truco.play import Side
from truco.profile_analysis import MAX_OBSERVATIONS, analyze_profile
from truco.state import new_profile


def _rounds(profile, n, bluff_rounds=0, player_wins_bluffs=False):
    for i in range(n):
        summary = RoundSummary(round=i + 1, mano=Side.PLAYER, player_hand=[], ai_hand=[], closed=True)
        if i < bluff_rounds:
            summary.player_truco_call = TrucoCallMeta(hand_strength=5, is_bluff=True)
            summary.round_winner = Side.PLAYER if player_wins_bluffs else Side.AI
        profile.round_history.append(summary)


def _titles(observations):
    return [o.title_key for o in observations]


def test_not_enough_data():
    profile = new_profile()
    _rounds(profile, 2)
    observations = analyze_profile(profile)
    assert len(observations) == 1
    assert observations[0].title_key == "traits.not_enough_data.title"
    assert observations[0].confidence == 1.0


def test_default_profile_reads_as_neither_extreme():
    profile = new_profile()
    _rounds(profile, 3)
    observations = analyze_profile(profile)
    # Default call threshold 27 scores 0.6, which is not above the medium cut.
    assert "traits.envido_aggressor.title" not in _titles(observations)
    assert "traits.truco_bluffer.title" not in _titles(observations)


def test_aggressive_envido_caller():
    profile = new_profile()
    _rounds(profile, 4)
    for behavior in profile.opponent_model.envido_behavior.values():
        behavior.call_threshold = 24.0
    observations = analyze_profile(profile)
    found = [o for o in observations if o.title_key == "traits.envido_aggressor.title"]
    assert found
    assert found[0].description_key == "traits.envido_aggressor.high"


def test_bluffer_success_levels():
    effective = new_profile()
    _rounds(effective, 6, bluff_rounds=4, player_wins_bluffs=True)
    assert "traits.truco_effective_bluffer.title" in _titles(analyze_profile(effective))

    readable = new_profile()
    _rounds(readable, 6, bluff_rounds=4, player_wins_bluffs=False)
    assert "traits.truco_readable_bluffer.title" in _titles(analyze_profile(readable))


def test_truco_caller_strength():
    conservative = new_profile()
    _rounds(conservative, 3)
    conservative.truco_call_history = [
        TrucoCallEntry(round=i, strength=20, is_mano=True, is_bluff=False) for i in range(3)
    ]
    assert "traits.truco_conservative.title" in _titles(analyze_profile(conservative))

    aggressive = new_profile()
    _rounds(aggressive, 3)
    aggressive.truco_call_history = [
        TrucoCallEntry(round=i, strength=8, is_mano=True, is_bluff=True) for i in range(3)
    ]
    assert "traits.truco_aggressive.title" in _titles(analyze_profile(aggressive))


def test_observations_are_capped_and_sorted():
    profile = new_profile()
    _rounds(profile, 6, bluff_rounds=4, player_wins_bluffs=True)
    model = profile.opponent_model
    for behavior in model.envido_behavior.values():
        behavior.call_threshold = 24.0
        behavior.fold_rate = 0.9
    style = model.play_style
    style.lead_with_highest_rate = 0.95
    style.envido_primero_rate = 0.8
    style.counter_tendency = 0.7
    style.chain_bluff_rate = 0.5
    observations = analyze_profile(profile)
    assert len(observations) == MAX_OBSERVATIONS
    confidences = [o.confidence for o in observations]
    assert confidences == sorted(confidences, reverse=True)

    shuffled = analyze_profile(profile, rng=random.Random(3))
    assert len(shuffled) == MAX_OBSERVATIONS
    assert set(_titles(shuffled)) <= {
        "traits.envido_aggressor.title",
        "traits.envido_cautious.title",
        "traits.truco_effective_bluffer.title",
        "traits.playstyle_predictable.title",
        "traits.envido_primero_specialist.title",
        "traits.counter_puncher.title",
        "traits.chain_bluffer.title",
    }
