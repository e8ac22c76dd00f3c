"""
Truco decisions for the AI: answering a truco-family call, and deciding
whether to call (or raise) before playing a card.

Answers are valued from an *effective strength*: the blended truco strength
shifted by an equity adjustment (envido leak, trick lead, how often our
bluffs against this player work, game pressure). Calls carry the value of the
card play they precede plus the expected gain of raising the stake.
"""
from __future__ import annotations

import random
from typing import List, Optional, Set

from .actions import ActionKind, Candidate, truco_call_for_level
from .evaluation import card_rank, hand_percentile
from .inference import AiView, StrengthResult, sample_opponent_hands
from .play import TIE, Side
from .reasoning import ReasoningItem, record
from .scoring import MAX_TRUCO_LEVEL, truco_decline_points, truco_points

CERTAIN_LOSS = 0.05
TRAP_STRENGTH = 0.85
TRAP_EV = 3.0
ESCALATE_EQUITY = 0.25
ENVIDO_LEAK_RESPONSE = 0.2
ENVIDO_LEAK_CALL = 0.15
POSITIONAL_BONUS = 0.2
PRESSURE_WEIGHT = 0.15
DESPERATION_EDGE = 0.5
BLUFF_BONUS = 0.5
WEAK_ESCALATE_CHANCE = 0.15
PARDA_BLUFF_CHANCE = 0.2
WON_TRICK_STRENGTH = 0.6
MAX_CALL_BLUFF_CHANCE = 0.55

# Chance to raise on a last card nothing unseen can beat, by trick rank.
DOMINANT_CARD_CHANCE = {14: 1.0, 13: 0.95, 12: 0.9, 11: 0.85}

CERTAIN_CALL_KEYS = {
    "play_card_parda_y_gano": "call_truco_parda_y_gano",
    "play_card_certain_win": "call_truco_certain_win",
}


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def raise_value(strength: float, fold_rate: float, level: int) -> float:
    """
    Expected points of raising from ``level`` to ``level + 1``: the player folds
    (we collect the current stake) or accepts and the round is played out.
    """
    on_fold = truco_decline_points(level + 1)
    on_accept = (2 * strength - 1) * truco_points(level + 1)
    return fold_rate * on_fold + (1.0 - fold_rate) * on_accept


def call_gain(strength: float, fold_rate: float, level: int) -> float:
    """What a raise adds over simply playing on at the current stake."""
    return raise_value(strength, fold_rate, level) - (2 * strength - 1) * truco_points(level)


def response_equity(
    view: AiView,
    strength: float,
    pressure: float,
    reasoning: List[ReasoningItem],
) -> float:
    model = view.model
    leak = ENVIDO_LEAK_RESPONSE if view.player_called_high_envido else 0.0
    ai_tricks = sum(1 for w in view.trick_winners if w is Side.AI)
    player_tricks = sum(1 for w in view.trick_winners if w is Side.PLAYER)
    positional = POSITIONAL_BONUS if view.current_trick > 0 and ai_tricks > player_tricks else 0.0
    bluff_rate = model.truco_bluffs[view.player_role].rate
    bluff_adjust = (bluff_rate - 0.4) * 0.4
    equity = strength - 0.5 - leak + positional + bluff_adjust + pressure * PRESSURE_WEIGHT

    reasoning.append(record("ai_logic.decision_factors"))
    if leak:
        reasoning.append(record("ai_logic.envido_penalty", penalty=leak))
    if positional:
        reasoning.append(record("ai_logic.positional_bonus", bonus=positional))
    reasoning.append(
        record(
            "ai_logic.bluff_inference",
            context=view.player_role,
            rate=round(bluff_rate, 2),
            adjust=round(bluff_adjust, 2),
        )
    )
    reasoning.append(record("ai_logic.final_equity", equity=round(equity, 2)))
    return equity


def _dominant_last_card(view: AiView, rng: random.Random) -> Optional[int]:
    """Trick rank of our last card when no sampled player card beats it."""
    if len(view.ai_hand) != 1 or view.player_cards_left != 1:
        return None
    mine = card_rank(view.ai_hand[0])
    if mine not in DOMINANT_CARD_CHANCE:
        return None
    samples = sample_opponent_hands(view, rng, num_samples=3)
    if samples.strong and samples.strong[0]:
        if max(card_rank(c) for c in samples.strong[0]) > mine:
            return None
    return mine


def truco_response_candidates(
    view: AiView,
    legal: Set[ActionKind],
    result: StrengthResult,
    pressure: float,
    rng: random.Random,
) -> List[Candidate]:
    """Accept, decline or raise the player's truco-family call."""
    level = view.truco_level
    strength = result.strength
    fold_rate = view.model.truco_fold_rate
    header: List[ReasoningItem] = [record("ai_logic.strength_evaluation")] + list(result.reasoning)
    decline = Candidate(
        kind=ActionKind.DECLINE,
        reason_key="decline_truco",
        base_ev=-float(truco_decline_points(level)),
        reasoning=list(header),
        strength=strength,
    )
    raise_kind = truco_call_for_level(level) if level < MAX_TRUCO_LEVEL else None
    can_raise = raise_kind is not None and raise_kind in legal

    if strength < CERTAIN_LOSS:
        reasoning = header + [record("ai_logic.defeat_analysis", win_prob=round(strength, 2))]
        chance = 0.10 + fold_rate * 0.2 + (pressure * 0.3 if pressure > 0.5 else 0.0)
        reasoning.append(record("ai_logic.desperation_bluff_chance", chance=round(chance, 2)))
        out = [decline]
        if can_raise and rng.random() < chance:
            out.append(
                Candidate(
                    kind=raise_kind,
                    reason_key="escalate_truco_bluff",
                    base_ev=decline.base_ev + DESPERATION_EDGE,
                    reasoning=reasoning + [record("ai_logic.decision_desperation_bluff")],
                    is_bluff=True,
                    strength=strength,
                )
            )
        return out

    reasoning = list(header)
    if view.current_trick == 0 and view.ai_tricks[0] is None:
        reasoning.append(record("ai_logic.my_hand_percentile", percentile=hand_percentile(view.initial_ai_hand)))
    equity = response_equity(view, strength, pressure, reasoning)
    effective = _clamp01(0.5 + equity)
    out = [
        decline,
        Candidate(
            kind=ActionKind.ACCEPT,
            reason_key="accept_truco",
            base_ev=(2 * effective - 1) * truco_points(level),
            reasoning=list(reasoning),
            strength=strength,
        ),
    ]
    if strength >= TRAP_STRENGTH and len(view.ai_hand) >= 2:
        out.append(
            Candidate(
                kind=ActionKind.ACCEPT,
                reason_key="accept_truco_trap",
                base_ev=TRAP_EV,
                reasoning=reasoning + [record("ai_logic.decision_trap")],
                strength=strength,
            )
        )
    if not can_raise:
        return out

    dominant = _dominant_last_card(view, rng)
    if dominant is not None and rng.random() < DOMINANT_CARD_CHANCE[dominant]:
        out.append(
            Candidate(
                kind=raise_kind,
                reason_key="escalate_truco_dominant_card",
                base_ev=raise_value(max(effective, 0.95), fold_rate, level),
                reasoning=reasoning + [record("ai_logic.final_escalation_logic", card=view.ai_hand[0].name())],
                strength=strength,
            )
        )
    if equity > ESCALATE_EQUITY:
        out.append(
            Candidate(
                kind=raise_kind,
                reason_key="escalate_truco",
                base_ev=raise_value(effective, fold_rate, level),
                reasoning=reasoning + [record("ai_logic.decision_escalate_high_equity", equity=round(equity, 2))],
                strength=strength,
            )
        )
    elif effective < 0.45 and rng.random() < WEAK_ESCALATE_CHANCE:
        out.append(
            Candidate(
                kind=raise_kind,
                reason_key="escalate_truco_bluff",
                base_ev=raise_value(effective, fold_rate, level) + BLUFF_BONUS,
                reasoning=reasoning + [record("ai_logic.decision_escalate_bluff_weak_hand")],
                is_bluff=True,
                strength=strength,
            )
        )
    return out


def call_bluff_chance(view: AiView, pressure: float) -> float:
    model = view.model
    style = model.play_style
    primero_bonus = style.envido_primero_rate * 0.3 if style.envido_primero_rate > 0.4 else 0.0
    chance = (
        0.10
        + model.truco_fold_rate * 0.4
        - model.bluff_success_rate * 0.2
        + style.bait_rate * 0.5
        + primero_bonus
        + (pressure * 0.1 if pressure > 0 else 0.0)
    )
    return max(0.0, min(MAX_CALL_BLUFF_CHANCE, chance))


def truco_call_candidates(
    view: AiView,
    legal: Set[ActionKind],
    card: Candidate,
    result: StrengthResult | None,
    pressure: float,
    rng: random.Random,
) -> List[Candidate]:
    """
    Truco (or a raise of our own) before playing ``card``.

    A card play that wins the round for sure makes any raise free money; apart
    from that, only a fresh truco is considered: after winning the first trick
    with a decent hand, as a bluff, or for value.
    """
    level = view.truco_level
    if level >= MAX_TRUCO_LEVEL or view.last_truco_caller is Side.AI:
        return []
    kind = truco_call_for_level(level)
    if kind not in legal:
        return []
    fold_rate = view.model.truco_fold_rate

    certain_key = CERTAIN_CALL_KEYS.get(card.reason_key)
    if certain_key is not None:
        gain = call_gain(1.0, fold_rate, level)
        return [
            Candidate(
                kind=kind,
                reason_key=certain_key,
                base_ev=card.base_ev + gain,
                carried_ev=card.base_ev,
                reasoning=card.reasoning + [record(f"ai_logic.decision_{certain_key}", gain=round(gain, 2))],
                strength=1.0,
            )
        ]
    if level > 0 or result is None:
        return []

    strength = result.strength
    leak = ENVIDO_LEAK_CALL if view.player_called_high_envido else 0.0
    chance = call_bluff_chance(view, pressure)
    header: List[ReasoningItem] = [
        record("ai_logic.truco_call_logic"),
        record("ai_logic.adjusted_bluff_chance_truco", chance=round(chance, 2)),
        record("ai_logic.strength_evaluation"),
    ] + list(result.reasoning)
    if leak:
        header.append(record("ai_logic.envido_penalty", penalty=leak))

    def make(reason_key: str, s: float, bluff: bool, bonus: float = 0.0) -> Candidate:
        gain = call_gain(s, fold_rate, level) + bonus
        return Candidate(
            kind=kind,
            reason_key=reason_key,
            base_ev=card.base_ev + gain,
            carried_ev=card.base_ev,
            reasoning=header + [record(f"ai_logic.decision_{reason_key}", strength=round(s, 2))],
            is_bluff=bluff,
            strength=strength,
        )

    first = view.trick_winners[0]
    if view.current_trick == 1 and first is Side.AI and strength >= WON_TRICK_STRENGTH:
        return [make("call_truco_won_trick", strength, False)]

    if view.current_trick == 1 and first == TIE and strength < 0.5 and rng.random() < PARDA_BLUFF_CHANCE:
        if raise_value(strength, fold_rate, level) > 0:
            return [make("call_truco_bluff_parda", strength, True, BLUFF_BONUS)]

    threshold = 0.65 - leak - pressure * PRESSURE_WEIGHT
    if strength < 0.45 - leak and rng.random() < chance:
        return [make("call_truco_bluff", strength, True, BLUFF_BONUS)]
    if strength >= threshold:
        return [make("call_truco_value", strength, False)]
    return []


__all__ = [
    "raise_value",
    "call_gain",
    "response_equity",
    "truco_response_candidates",
    "call_bluff_chance",
    "truco_call_candidates",
]
