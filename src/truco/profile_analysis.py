"""
Readable trait observations about the player, derived from the learning profile.

Each trait scores the profile on [0, 1] and maps the score to an observation
(a title and description key for display) or to nothing. ``analyze_profile``
keeps the most confident observations.
"""
from __future__ import annotations

import random
from typing import Callable, List, NamedTuple, Optional, Tuple

from .play import Side
from .state import LearningProfile

MIN_ROUNDS = 3
MAX_OBSERVATIONS = 5
SHUFFLE_POOL = 7

Observation = Optional[Tuple[str, str]]


class TraitObservation(NamedTuple):
    title_key: str
    description_key: str
    confidence: float


class Trait(NamedTuple):
    id: str
    scorer: Callable[[LearningProfile], float]
    observer: Callable[[float, LearningProfile], Observation]


def _trait(name: str, level: str = "high") -> Tuple[str, str]:
    return f"traits.{name}.title", f"traits.{name}.{level}"


def _envido_aggression(profile: LearningProfile) -> float:
    # A call threshold of 25 reads as aggressive, 30 as conservative.
    behaviors = profile.opponent_model.envido_behavior.values()
    scores = [max(0.0, (30.0 - b.call_threshold) / 5.0) for b in behaviors]
    return sum(scores) / len(scores)


def _observe_envido_aggression(score: float, profile: LearningProfile) -> Observation:
    if score > 0.8:
        return _trait("envido_aggressor")
    if score > 0.6:
        return _trait("envido_aggressor", "medium")
    if score < 0.2:
        return _trait("envido_conservative")
    return None


def _envido_cautiousness(profile: LearningProfile) -> float:
    behaviors = profile.opponent_model.envido_behavior.values()
    rates = [b.fold_rate for b in behaviors]
    return sum(rates) / len(rates)


def _observe_envido_cautiousness(score: float, profile: LearningProfile) -> Observation:
    if score > 0.6:
        return _trait("envido_cautious")
    if score < 0.2:
        return _trait("envido_bold")
    return None


def _player_bluff_rounds(profile: LearningProfile):
    return [
        r for r in profile.round_history
        if r.player_truco_call is not None and r.player_truco_call.is_bluff
    ]


def _truco_bluffer(profile: LearningProfile) -> float:
    rounds = len(profile.round_history)
    if rounds < 5:
        return 0.0
    return min(1.0, len(_player_bluff_rounds(profile)) / (rounds / 2))


def _observe_truco_bluffer(score: float, profile: LearningProfile) -> Observation:
    if score <= 0.5:
        return None
    bluffs = _player_bluff_rounds(profile)
    won = sum(1 for r in bluffs if r.round_winner is Side.PLAYER)
    success = won / len(bluffs) if len(bluffs) > 2 else 0.0
    if success > 0.6:
        return _trait("truco_effective_bluffer")
    if success < 0.3:
        return _trait("truco_readable_bluffer")
    return _trait("truco_frequent_bluffer")


def _truco_conservative(profile: LearningProfile) -> float:
    calls = profile.truco_call_history
    if len(calls) < 3:
        return 0.0
    avg = sum(c.strength for c in calls) / len(calls)
    # Hand strength 11 is the median hand, 20 the top decile.
    return min(1.0, max(0.0, (avg - 11.0) / 9.0))


def _observe_truco_conservative(score: float, profile: LearningProfile) -> Observation:
    if score > 0.8:
        return _trait("truco_conservative")
    if score < 0.3:
        return _trait("truco_aggressive")
    return None


def _observe_predictable_lead(score: float, profile: LearningProfile) -> Observation:
    if score > 0.9:
        return _trait("playstyle_predictable")
    if score < 0.4:
        return _trait("playstyle_unpredictable")
    return None


def _above(threshold: float, name: str) -> Callable[[float, LearningProfile], Observation]:
    def observe(score: float, profile: LearningProfile) -> Observation:
        return _trait(name) if score > threshold else None

    return observe


TRAITS: Tuple[Trait, ...] = (
    Trait("envido_aggression", _envido_aggression, _observe_envido_aggression),
    Trait("envido_cautiousness", _envido_cautiousness, _observe_envido_cautiousness),
    Trait("truco_bluffer", _truco_bluffer, _observe_truco_bluffer),
    Trait("truco_conservative", _truco_conservative, _observe_truco_conservative),
    Trait(
        "playstyle_predictable_lead",
        lambda p: p.opponent_model.play_style.lead_with_highest_rate,
        _observe_predictable_lead,
    ),
    Trait(
        "envido_primero_specialist",
        lambda p: p.opponent_model.play_style.envido_primero_rate,
        _above(0.6, "envido_primero_specialist"),
    ),
    Trait(
        "counter_puncher",
        lambda p: p.opponent_model.play_style.counter_tendency,
        _above(0.6, "counter_puncher"),
    ),
    Trait(
        "chain_bluffer",
        lambda p: p.opponent_model.play_style.chain_bluff_rate,
        _above(0.4, "chain_bluffer"),
    ),
)


def analyze_profile(profile: LearningProfile, rng: random.Random | None = None) -> List[TraitObservation]:
    """
    Up to MAX_OBSERVATIONS trait observations, most confident first.

    With fewer than MIN_ROUNDS rounds on record a single "not enough data"
    observation is returned. Passing ``rng`` shuffles the most confident
    candidates before the cut, for variety between displays.
    """
    if len(profile.round_history) < MIN_ROUNDS:
        return [TraitObservation("traits.not_enough_data.title", "traits.not_enough_data.description", 1.0)]

    observations: List[TraitObservation] = []
    for trait in TRAITS:
        score = trait.scorer(profile)
        found = trait.observer(score, profile)
        if found is not None:
            observations.append(TraitObservation(found[0], found[1], score))

    observations.sort(key=lambda o: o.confidence, reverse=True)
    if rng is not None:
        pool = observations[:SHUFFLE_POOL]
        rng.shuffle(pool)
        observations = pool
    return observations[:MAX_OBSERVATIONS]


__all__ = ["TraitObservation", "Trait", "TRAITS", "analyze_profile"]
