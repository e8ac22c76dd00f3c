"""
Envido and flor decisions for the AI.

Expected values are in match points:
  - calling: the opponent folds at their modelled fold rate (we collect the
    decline payout) or accepts (we win the stake with an estimated probability);
    raising stakes with a weak trick hand is penalised, since a lost envido
    often comes with a lost truco;
  - answering: accept is a showdown against the player's estimated envido,
    decline costs what was already agreed.
"""
from __future__ import annotations

import random
from typing import List, Set

from .actions import ActionKind, Candidate
from .evaluation import envido_value, flor_value, hand_strength
from .inference import AiView
from .play import Side
from .reasoning import ReasoningItem, record
from .scoring import (
    CONTRAFLOR_DECLINE_POINTS,
    CONTRAFLOR_POINTS,
    ENVIDO_POINTS,
    FLOR_POINTS,
    REAL_ENVIDO_POINTS,
    envido_decline_points,
    falta_envido_points,
)

# Below this envido an opening call is a bluff.
BLUFF_ENVIDO = 23
FALTA_SAFE_ENVIDO = 32
EARLY_GAME_SCORE = 10
TRUCO_RISK_STRENGTH = 12
TRUCO_RISK_FACTOR = 1.8
TABLE_IMAGE_BONUS = 0.6
MANO_TIE_EDGE = 0.5
BASE_BLUFF_CHANCE = 0.08
MAX_BLUFF_CHANCE = 0.4
BLUFF_BONUS = 1.0

_CALL_KEYS = {
    ActionKind.CALL_ENVIDO: "call_envido",
    ActionKind.CALL_REAL_ENVIDO: "call_real_envido",
    ActionKind.CALL_FALTA_ENVIDO: "call_falta_envido",
}


def my_envido(view: AiView) -> float:
    value = float(envido_value(view.initial_ai_hand))
    if view.ai_is_mano:
        value += MANO_TIE_EDGE
    return value


def estimated_player_envido(view: AiView) -> float:
    """The player's learned call threshold, raised when they are betting big."""
    estimate = view.model.envido(view.player_role).call_threshold
    offer = view.envido_points_on_offer
    if view.last_caller is Side.PLAYER:
        if offer >= 5:
            estimate = max(estimate, 29.0)
        elif offer >= 3:
            estimate = max(estimate, 28.0)
    return estimate


def _stake_if_accepted(view: AiView, kind: ActionKind) -> int:
    offer = view.envido_points_on_offer
    if kind is ActionKind.CALL_REAL_ENVIDO:
        return offer + REAL_ENVIDO_POINTS
    if kind is ActionKind.CALL_FALTA_ENVIDO:
        return falta_envido_points(view.player_score, view.ai_score, view.target_score)
    return offer + ENVIDO_POINTS


def envido_call_ev(
    view: AiView,
    kind: ActionKind,
    bluff: bool,
    reasoning: List[ReasoningItem],
    risk_scale: float = 1.0,
    table_image: bool = False,
    p_win: float | None = None,
) -> float:
    """
    Expected points of making (or raising to) ``kind``.

    ``p_win`` overrides the coarse showdown estimate (beat the player's usual
    calling hand or not) when a finer one is available.
    """
    mine = envido_value(view.initial_ai_hand)
    behaviour = view.model.envido(view.player_role)
    accept_chance = 1.0 - behaviour.fold_rate
    on_decline = envido_decline_points(view.envido_points_on_offer)
    stake = _stake_if_accepted(view, kind)

    penalty_multiplier = 0.0
    if kind is ActionKind.CALL_REAL_ENVIDO:
        penalty_multiplier = 1.0
    elif kind is ActionKind.CALL_FALTA_ENVIDO:
        penalty_multiplier = 2.0
        early = view.ai_score < EARLY_GAME_SCORE and view.player_score < EARLY_GAME_SCORE
        player_threatens = view.player_score + stake >= view.target_score
        if (early or not player_threatens) and mine < FALTA_SAFE_ENVIDO:
            reasoning.append(record("ai_logic.falta_suicide_prevention", points=mine))
            return -10.0

    if bluff:
        if_accepted = -float(stake)
    else:
        if p_win is None:
            p_win = 0.8 if my_envido(view) > behaviour.call_threshold else 0.3
        if_accepted = (2 * p_win - 1) * stake

    risk = 0.0
    strength = hand_strength(view.initial_ai_hand)
    if strength < TRUCO_RISK_STRENGTH and penalty_multiplier > 0:
        risk = TRUCO_RISK_FACTOR * (TRUCO_RISK_STRENGTH - strength) / 10 * penalty_multiplier * risk_scale
        if risk > 0:
            reasoning.append(record("ai_logic.truco_risk_penalty", penalty=round(risk, 2)))

    ev = accept_chance * if_accepted + (1.0 - accept_chance) * on_decline
    if table_image and view.round == 1 and kind is ActionKind.CALL_ENVIDO:
        ev += TABLE_IMAGE_BONUS
        reasoning.append(record("ai_logic.table_image_bonus", bonus=TABLE_IMAGE_BONUS))
    return ev - risk


def envido_bluff_chance(view: AiView) -> float:
    fold_rate = view.model.envido(view.player_role).fold_rate
    return min(MAX_BLUFF_CHANCE, BASE_BLUFF_CHANCE + fold_rate * 0.3)


def envido_call_candidates(
    view: AiView,
    legal: Set[ActionKind],
    card_ev: float,
    rng: random.Random,
    risk_scale: float = 1.0,
    table_image: bool = False,
) -> List[Candidate]:
    """
    Opening envido calls, valued on top of the card play they precede.

    A weak-hand envido is a bluff: it is only offered when the bluff roll
    (more likely against a player who folds a lot) comes up.
    """
    mine = envido_value(view.initial_ai_hand)
    behaviour = view.model.envido(view.player_role)
    bluff_roll = rng.random() < envido_bluff_chance(view)
    header: List[ReasoningItem] = [
        record("ai_logic.envido_call_logic", envido=mine),
        record(
            "ai_logic.player_envido_profile",
            fold_rate=round(behaviour.fold_rate, 2),
            threshold=round(behaviour.call_threshold, 1),
        ),
    ]
    out: List[Candidate] = []
    for kind, key in _CALL_KEYS.items():
        if kind not in legal:
            continue
        bluff = kind is ActionKind.CALL_ENVIDO and mine < BLUFF_ENVIDO
        if bluff and not bluff_roll:
            continue
        reason_key = "call_envido_bluff" if bluff else key
        reasoning = list(header)
        ev = envido_call_ev(view, kind, bluff, reasoning, risk_scale, table_image)
        if bluff:
            ev += BLUFF_BONUS
            reasoning.append(record("ai_logic.envido_bluff", chance=round(envido_bluff_chance(view), 2)))
        out.append(
            Candidate(
                kind=kind,
                reason_key=reason_key,
                base_ev=card_ev + ev,
                carried_ev=card_ev,
                reasoning=reasoning,
                is_bluff=bluff,
                strength=mine / 33.0,
            )
        )
    return out


def envido_accept_probability(view: AiView) -> float:
    mine = envido_value(view.initial_ai_hand)
    estimate = estimated_player_envido(view)
    if my_envido(view) > estimate:
        return 0.7 + min(0.25, (mine - estimate) * 0.05)
    if mine < 20:
        return 0.05
    if mine < 24:
        return 0.15
    return max(0.1, 0.4 - (estimate - mine) * 0.05)


def envido_response_candidates(
    view: AiView,
    legal: Set[ActionKind],
    risk_scale: float = 1.0,
) -> List[Candidate]:
    """Answers to a player's envido: accept, decline, or raise."""
    mine = envido_value(view.initial_ai_hand)
    estimate = estimated_player_envido(view)
    p_win = envido_accept_probability(view)
    offer = view.envido_points_on_offer
    header: List[ReasoningItem] = [
        record("ai_logic.envido_response_logic", envido=mine, offer=offer),
        record("ai_logic.player_envido_estimate", estimate=round(estimate, 1)),
    ]
    out = [
        Candidate(
            kind=ActionKind.ACCEPT,
            reason_key="accept_envido",
            base_ev=(2 * p_win - 1) * offer,
            reasoning=header + [record("ai_logic.envido_win_probability", probability=round(p_win, 2))],
            strength=p_win,
        ),
        Candidate(
            kind=ActionKind.DECLINE,
            reason_key="decline_envido",
            base_ev=-float(envido_decline_points(view.previous_envido_points)),
            reasoning=list(header),
        ),
    ]
    escalation_rate = view.model.envido(view.player_role).escalation_rate
    for kind, key in _CALL_KEYS.items():
        if kind not in legal:
            continue
        reasoning = list(header)
        ev = envido_call_ev(view, kind, False, reasoning, risk_scale, p_win=p_win)
        # A player who re-raises often makes our raise riskier.
        ev -= escalation_rate * abs(ev)
        out.append(
            Candidate(kind=kind, reason_key=key, base_ev=ev, reasoning=reasoning, strength=p_win)
        )
    return out


def _flor_win_probability(value: int, floor: int) -> float:
    return max(0.05, min(0.95, (value - floor) / 12.0))


def flor_candidates(view: AiView, legal: Set[ActionKind], card_ev: float = 0.0) -> List[Candidate]:
    """Declare flor, or answer the player's flor / contraflor."""
    out: List[Candidate] = []
    if ActionKind.DECLARE_FLOR in legal:
        value = flor_value(view.initial_ai_hand)
        out.append(
            Candidate(
                kind=ActionKind.DECLARE_FLOR,
                reason_key="call_flor",
                base_ev=card_ev + FLOR_POINTS,
                carried_ev=card_ev,
                reasoning=[record("ai_logic.flor_call", flor=value)],
                strength=1.0,
            )
        )
    if ActionKind.ACKNOWLEDGE_FLOR in legal:
        value = flor_value(view.initial_ai_hand)
        p_win = _flor_win_probability(value, 26)
        reasoning: List[ReasoningItem] = [record("ai_logic.flor_response", flor=value)]
        out.append(
            Candidate(
                kind=ActionKind.ACKNOWLEDGE_FLOR,
                reason_key="acknowledge_flor",
                base_ev=-float(FLOR_POINTS),
                reasoning=list(reasoning),
            )
        )
        if ActionKind.CALL_CONTRAFLOR in legal:
            out.append(
                Candidate(
                    kind=ActionKind.CALL_CONTRAFLOR,
                    reason_key="call_contraflor",
                    base_ev=(2 * p_win - 1) * CONTRAFLOR_POINTS,
                    reasoning=reasoning + [record("ai_logic.flor_win_probability", probability=round(p_win, 2))],
                    strength=p_win,
                )
            )
    if ActionKind.ACCEPT_CONTRAFLOR in legal:
        value = flor_value(view.initial_ai_hand)
        # Whoever sings contraflor usually holds a big flor.
        p_win = _flor_win_probability(value, 29)
        reasoning = [record("ai_logic.contraflor_response", flor=value)]
        out.append(
            Candidate(
                kind=ActionKind.ACCEPT_CONTRAFLOR,
                reason_key="accept_contraflor",
                base_ev=(2 * p_win - 1) * CONTRAFLOR_POINTS,
                reasoning=reasoning + [record("ai_logic.flor_win_probability", probability=round(p_win, 2))],
                strength=p_win,
            )
        )
        out.append(
            Candidate(
                kind=ActionKind.DECLINE_CONTRAFLOR,
                reason_key="decline_contraflor",
                base_ev=-float(CONTRAFLOR_DECLINE_POINTS),
                reasoning=list(reasoning),
            )
        )
    return out


__all__ = [
    "my_envido",
    "estimated_player_envido",
    "envido_call_ev",
    "envido_bluff_chance",
    "envido_call_candidates",
    "envido_accept_probability",
    "envido_response_candidates",
    "flor_candidates",
]
