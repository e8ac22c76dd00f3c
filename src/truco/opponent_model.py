"""
Statistical model of the human player's tendencies.

Two update paths keep it current:
  - incremental: each resolved player decision nudges the relevant rate with
    an exponential moving average, ``v += alpha * (observed - v)``;
  - batch: at round start the envido and lead statistics are recomputed from
    the stored history with decay weighting (recent rounds count more) and
    blended into the incremental values.

Envido behaviour is tracked separately for the player as mano and as pie.
The model is only ever reset by an explicit profile reset or import.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Sequence

from .history import EnvidoHistoryEntry, PlayOrderEntry
from .play import Side

ROLES = ("mano", "pie")

DEFAULT_ALPHA = 0.05
HISTORY_DECAY = 0.95
BLUFF_DECAY = 0.9
MIN_HISTORY = 3


@dataclass
class EnvidoBehavior:
    call_threshold: float = 27.0
    fold_rate: float = 0.4
    escalation_rate: float = 0.2


@dataclass
class PlayStyle:
    lead_with_highest_rate: float = 0.75
    bait_rate: float = 0.1
    envido_primero_rate: float = 0.0
    counter_tendency: float = 0.2
    chain_bluff_rate: float = 0.1


@dataclass
class BluffStats:
    """AI truco bluffs against the player in one role: tries and how many got a fold."""

    attempts: int = 0
    successes: int = 0

    @property
    def rate(self) -> float:
        if self.attempts > 2:
            return self.successes / self.attempts
        return 0.5


def _default_roles_envido() -> Dict[str, EnvidoBehavior]:
    return {role: EnvidoBehavior() for role in ROLES}


def _default_roles_bluffs() -> Dict[str, BluffStats]:
    return {role: BluffStats() for role in ROLES}


@dataclass
class OpponentModel:
    envido_behavior: Dict[str, EnvidoBehavior] = field(default_factory=_default_roles_envido)
    play_style: PlayStyle = field(default_factory=PlayStyle)
    truco_fold_rate: float = 0.3
    bluff_success_rate: float = 0.5
    truco_bluffs: Dict[str, BluffStats] = field(default_factory=_default_roles_bluffs)
    observations: int = 0

    def envido(self, role: str) -> EnvidoBehavior:
        return self.envido_behavior[role]


def player_role(mano: Side) -> str:
    """The player's role this round: "mano" or "pie"."""
    return "mano" if mano is Side.PLAYER else "pie"


def ema(old: float, observed: float, alpha: float = DEFAULT_ALPHA) -> float:
    return old + alpha * (observed - old)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def observe_envido_call(model: OpponentModel, role: str, envido: int, alpha: float = DEFAULT_ALPHA) -> None:
    behavior = model.envido(role)
    behavior.call_threshold = ema(behavior.call_threshold, float(envido), alpha)
    model.observations += 1


def observe_envido_response(model: OpponentModel, role: str, folded: bool, alpha: float = DEFAULT_ALPHA) -> None:
    behavior = model.envido(role)
    behavior.fold_rate = _clamp01(ema(behavior.fold_rate, 1.0 if folded else 0.0, alpha))
    model.observations += 1


def observe_envido_escalation(model: OpponentModel, role: str, escalated: bool, alpha: float = DEFAULT_ALPHA) -> None:
    behavior = model.envido(role)
    behavior.escalation_rate = _clamp01(ema(behavior.escalation_rate, 1.0 if escalated else 0.0, alpha))


def observe_truco_response(model: OpponentModel, folded: bool, alpha: float = DEFAULT_ALPHA) -> None:
    model.truco_fold_rate = _clamp01(ema(model.truco_fold_rate, 1.0 if folded else 0.0, alpha))
    model.observations += 1


def observe_truco_counter(model: OpponentModel, countered: bool, alpha: float = DEFAULT_ALPHA) -> None:
    style = model.play_style
    style.counter_tendency = _clamp01(ema(style.counter_tendency, 1.0 if countered else 0.0, alpha))


def observe_truco_call(model: OpponentModel, is_bluff: bool, alpha: float = DEFAULT_ALPHA) -> None:
    style = model.play_style
    style.chain_bluff_rate = _clamp01(ema(style.chain_bluff_rate, 1.0 if is_bluff else 0.0, alpha))
    model.observations += 1


def observe_lead(model: OpponentModel, led_highest: bool, alpha: float = DEFAULT_ALPHA) -> None:
    style = model.play_style
    style.lead_with_highest_rate = _clamp01(
        ema(style.lead_with_highest_rate, 1.0 if led_highest else 0.0, alpha)
    )
    model.observations += 1


def observe_bait(model: OpponentModel, baited: bool, alpha: float = DEFAULT_ALPHA) -> None:
    style = model.play_style
    style.bait_rate = _clamp01(ema(style.bait_rate, 1.0 if baited else 0.0, alpha))


def observe_envido_primero(model: OpponentModel, took_it: bool, alpha: float = DEFAULT_ALPHA) -> None:
    style = model.play_style
    style.envido_primero_rate = _clamp01(
        ema(style.envido_primero_rate, 1.0 if took_it else 0.0, alpha)
    )


def record_ai_bluff(model: OpponentModel, role: str, success: bool) -> None:
    """Track how an AI truco bluff fared against the player in ``role``."""
    stats = model.truco_bluffs[role]
    stats.attempts += 1
    if success:
        stats.successes += 1
    model.bluff_success_rate = _clamp01(
        ema(model.bluff_success_rate, 1.0 if success else 0.0, 1.0 - BLUFF_DECAY)
    )


def _decayed_mean(values: Sequence[float], decay: float = HISTORY_DECAY) -> float:
    """Mean with the newest value weighted 1, the previous ``decay``, then ``decay**2``..."""
    total = 0.0
    weight_sum = 0.0
    w = 1.0
    for v in reversed(values):
        total += w * v
        weight_sum += w
        w *= decay
    return total / weight_sum


def refresh_from_history(
    model: OpponentModel,
    envido_history: Sequence[EnvidoHistoryEntry],
    play_order_history: Sequence[PlayOrderEntry],
    blend: float = 0.5,
) -> None:
    """
    Recompute envido and lead statistics from history and blend them in.

    Only fields with at least MIN_HISTORY observations are touched, so a
    fresh profile keeps its defaults.
    """
    for role in ROLES:
        entries = [e for e in envido_history if e.was_mano == (role == "mano")]
        behavior = model.envido(role)

        called = [float(e.envido) for e in entries if e.action == "called"]
        if len(called) >= MIN_HISTORY:
            target = _decayed_mean(called)
            behavior.call_threshold += blend * (target - behavior.call_threshold)

        responses = [
            1.0 if e.action == "folded" else 0.0
            for e in entries
            if e.action not in ("called", "did_not_call")
        ]
        if len(responses) >= MIN_HISTORY:
            target = _decayed_mean(responses)
            behavior.fold_rate += blend * (target - behavior.fold_rate)

        escalations = [
            1.0 if e.action.startswith("escalated") else 0.0
            for e in entries
            if e.action not in ("called", "did_not_call")
        ]
        if len(escalations) >= MIN_HISTORY:
            target = _decayed_mean(escalations)
            behavior.escalation_rate += blend * (target - behavior.escalation_rate)

    leads = [1.0 if e.was_highest else 0.0 for e in play_order_history if e.was_lead and e.trick == 0]
    if len(leads) >= MIN_HISTORY:
        style = model.play_style
        target = _decayed_mean(leads)
        style.lead_with_highest_rate += blend * (target - style.lead_with_highest_rate)


__all__ = [
    "ROLES",
    "DEFAULT_ALPHA",
    "EnvidoBehavior",
    "PlayStyle",
    "BluffStats",
    "OpponentModel",
    "player_role",
    "ema",
    "observe_envido_call",
    "observe_envido_response",
    "observe_envido_escalation",
    "observe_truco_response",
    "observe_truco_counter",
    "observe_truco_call",
    "observe_lead",
    "observe_bait",
    "observe_envido_primero",
    "record_ai_bluff",
    "refresh_from_history",
]
