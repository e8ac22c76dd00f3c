"""
The AI opponent.

``TrucoAI.decide(state)`` runs the decision pipeline on the AI's turn:

1. list the legal actions for the AI (same rules as the state machine);
2. generate candidate moves from the card, envido/flor and truco strategies,
   each with a reason key and a base expected value in points;
3. scale each candidate by the archetype's modifier for its reason key and
   nudge it by what case memory remembers about similar situations;
4. pick the best candidate and attach the reasoning trace.

Any exception on the way is logged and answered with the heuristic-only
fallback, which is also used when the chosen action fails validation. The AI
always returns a legal action.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Dict, List, NamedTuple, Optional, Sequence, Set

from .actions import (
    ENVIDO_CALLS,
    TRUCO_CALLS,
    Action,
    ActionKind,
    Candidate,
    DecisionContext,
    truco_call_for_level,
)
from .card_strategy import card_candidates, fallback_card
from .envido_strategy import envido_call_candidates, envido_response_candidates, flor_candidates
from .evaluation import hand_percentile, strength_bucket
from .game import legal_actions, validate_action
from .inference import AiView, StrengthResult, ai_view, mirror_state, truco_strength
from .memory import CaseFeatures
from .play import Side
from .reasoning import ReasoningItem, record
from .scoring import MAX_TRUCO_LEVEL
from .state import FLOR_PHASES, TRUCO_PHASES, GamePhase, GameState
from .truco_strategy import truco_call_candidates, truco_response_candidates

logger = logging.getLogger(__name__)

ARCHETYPES = ("Balanced", "Aggressive", "Cautious", "Deceptive")

# Looked up by reason key first, then by action kind.
ARCHETYPE_MODIFIERS: Dict[str, Dict[str, float]] = {
    "Aggressive": {
        "call_envido": 1.4,
        "call_real_envido": 4.0,
        "call_falta_envido": 1.2,
        "call_truco_parda_y_gano": 2.0,
        "call_truco_certain_win": 2.0,
        "call_retruco": 1.7,
        "call_vale_cuatro": 2.0,
        "escalate_truco_bluff": 1.5,
        "call_truco_bluff": 1.4,
        "decline": 0.6,
        "discard_low": 0.8,
    },
    "Cautious": {
        "call_envido": 2.0,
        "play_card_parda_y_gano": 1.5,
        "play_card_certain_win": 1.5,
        "decline": 1.6,
        "call_real_envido": 0.4,
        "call_falta_envido": 0.1,
        "call_truco_parda_y_gano": 0.4,
        "call_truco_certain_win": 0.4,
        "call_retruco": 0.5,
        "call_truco_bluff": 0.1,
    },
    "Deceptive": {
        "call_envido_bluff": 2.2,
        "call_truco_bluff": 2.0,
        "play_card_parda_y_gano": 1.8,
        "play_card_certain_win": 1.8,
        "call_truco_parda_y_gano": 0.6,
        "call_truco_certain_win": 0.6,
        "bait_lopsided_hand": 2.5,
        "parda_y_canto": 1.8,
        "probe_low_value": 1.5,
        "secure_hand": 0.8,
        "accept_truco_trap": 5.0,
        "escalate_truco_dominant_card": 0.2,
    },
    "Balanced": {
        "call_envido": 1.8,
        "call_real_envido": 1.2,
    },
}

ENDGAME_SCORE = 12
MEMORY_SHRINK = 5
AGGRESSIVE_RISK_SCALE = 0.1

FLOR_KINDS = frozenset(
    {
        ActionKind.DECLARE_FLOR,
        ActionKind.ACKNOWLEDGE_FLOR,
        ActionKind.CALL_CONTRAFLOR,
        ActionKind.ACCEPT_CONTRAFLOR,
        ActionKind.DECLINE_CONTRAFLOR,
    }
)


def game_pressure(ai_score: int, player_score: int) -> float:
    """
    How much the score pushes the AI to take risks, in [-1, 1].

    Positive when behind, negative when ahead; a tied endgame is maximal.
    """
    diff = ai_score - player_score
    if max(ai_score, player_score) >= ENDGAME_SCORE:
        pressure = 1.0 if diff == 0 else -diff / 3.0
    else:
        pressure = -diff / 15.0
    return max(-1.0, min(1.0, pressure))


def scale_ev(value: float, modifier: float) -> float:
    """
    Apply an archetype modifier to an expected value.

    Scaling by ``abs(value)`` keeps the direction the same for negative
    values: a modifier above 1 always makes the move more attractive.
    """
    return value + (modifier - 1.0) * abs(value)


def phase_context(kind: ActionKind, phase: GamePhase) -> str:
    """Case-memory phase label of a decision."""
    if kind in ENVIDO_CALLS:
        return "envido"
    if kind in FLOR_KINDS or phase in FLOR_PHASES:
        return "flor"
    if kind in TRUCO_CALLS or phase in TRUCO_PHASES:
        return "truco"
    if phase is GamePhase.ENVIDO_CALLED:
        return "envido"
    return "trick"


class EvaluatedMove(NamedTuple):
    candidate: Candidate
    modifier: float
    memory_adjustment: float
    final_ev: float


class AiDecision(NamedTuple):
    action: Action
    reasoning: List[ReasoningItem]
    degraded: bool = False
    evaluated: Sequence[EvaluatedMove] = ()


@dataclass
class TrucoAI:
    """
    Expected-value AI with a personality.

    Usage:
        ai = TrucoAI(archetype="Deceptive", seed=7)
        decision = ai.decide(state)
        result = apply_action(state, decision.action)
    """

    archetype: str = "Balanced"
    seed: int | None = None
    simulation_iterations: int = 60
    opponent_samples: int = 6
    memory_weight: float = 0.5
    memory_min_cases: int = 3

    def __post_init__(self) -> None:
        if self.archetype not in ARCHETYPE_MODIFIERS:
            raise ValueError(f"Unknown AI archetype: {self.archetype!r}")
        if self.simulation_iterations < 1:
            raise ValueError("simulation_iterations must be >= 1")
        if self.opponent_samples < 0:
            raise ValueError("opponent_samples must be >= 0")
        if self.memory_min_cases < 1:
            raise ValueError("memory_min_cases must be >= 1")
        self._rng = random.Random(self.seed)

    @property
    def modifiers(self) -> Dict[str, float]:
        return ARCHETYPE_MODIFIERS[self.archetype]

    # ------------------------------------------------------------------ API

    def decide(self, state: GameState) -> AiDecision:
        legal = legal_actions(state, Side.AI)
        if not legal:
            raise ValueError(f"The AI has no legal action during {state.phase.value}")
        try:
            decision = self._decide(state, legal)
        except Exception as exc:
            logger.exception("AI decision failed during %s; using fallback", state.phase.value)
            return self._fallback(state, legal, type(exc).__name__)
        error = validate_action(state, decision.action)
        if error is not None:
            logger.warning("AI chose an illegal %s (%s); using fallback", decision.action.kind.value, error)
            return self._fallback(state, legal, error)
        return decision

    # ------------------------------------------------------------- pipeline

    def _decide(self, state: GameState, legal: List[Action]) -> AiDecision:
        view = ai_view(state)
        kinds = {a.kind for a in legal}
        pressure = game_pressure(view.ai_score, view.player_score)
        status = "desperate" if pressure > 0.5 else "cautious" if pressure < -0.5 else "neutral"
        reasoning: List[ReasoningItem] = [
            record("ai_logic.strategic_analysis"),
            record("ai_logic.game_pressure", pressure=round(pressure, 2), status=status),
        ]

        candidates = self._candidates(view, kinds, pressure, reasoning)
        candidates = [c for c in candidates if c.kind in kinds]
        if not candidates:
            raise RuntimeError(f"no candidate moves during {view.phase.value}")

        evaluated = [self._evaluate(state, view, c) for c in candidates]
        evaluated.sort(key=lambda m: m.final_ev, reverse=True)
        best = evaluated[0].candidate

        trace = reasoning + list(best.reasoning)
        trace.append(record("ai_logic.archetype_selection", archetype=self.archetype))
        trace.append(record("ai_logic.considering_options", count=len(evaluated)))
        for move in evaluated:
            trace.append(
                record(
                    "ai_logic.option_ev_detailed",
                    move=move.candidate.reason_key,
                    base_ev=round(move.candidate.base_ev, 2),
                    modifier=round(move.modifier, 2),
                    memory=round(move.memory_adjustment, 2),
                    final_ev=round(move.final_ev, 2),
                )
            )
        trace.append(record("ai_logic.final_decision", move=best.reason_key))

        action = Action(
            kind=best.kind,
            actor=Side.AI,
            card_index=best.card_index,
            context=self._context(view, best),
            reasoning=tuple(trace),
        )
        return AiDecision(action=action, reasoning=trace, evaluated=evaluated)

    def _strength(self, view: AiView) -> StrengthResult:
        return truco_strength(view, self._rng, self.simulation_iterations, self.opponent_samples)

    def _candidates(
        self,
        view: AiView,
        kinds: Set[ActionKind],
        pressure: float,
        reasoning: List[ReasoningItem],
    ) -> List[Candidate]:
        phase = view.phase
        risk_scale = AGGRESSIVE_RISK_SCALE if self.archetype == "Aggressive" else 1.0
        table_image = self.archetype in ("Aggressive", "Deceptive")

        if phase in FLOR_PHASES:
            reasoning.append(record("ai_logic.response_logic", call=phase.value))
            return flor_candidates(view, kinds)

        if phase is GamePhase.ENVIDO_CALLED:
            reasoning.append(record("ai_logic.response_logic", call=phase.value))
            if ActionKind.DECLARE_FLOR in kinds:
                reasoning.append(record("ai_logic.flor_priority_on_envido"))
                return flor_candidates(view, kinds)
            return envido_response_candidates(view, kinds, risk_scale)

        if phase in TRUCO_PHASES:
            reasoning.append(record("ai_logic.response_logic", call=phase.value))
            if ActionKind.DECLARE_FLOR in kinds:
                reasoning.append(record("ai_logic.flor_priority_on_truco"))
                return flor_candidates(view, kinds)
            out = truco_response_candidates(view, kinds, self._strength(view), pressure, self._rng)
            if kinds & ENVIDO_CALLS:
                # Envido primero: the truco still has to be answered afterwards.
                settle = max(c.base_ev for c in out)
                out.extend(
                    envido_call_candidates(view, kinds, settle, self._rng, risk_scale, table_image)
                )
            return out

        cards = card_candidates(view, self._rng)
        if not cards:
            return []
        primary = cards[0]
        out = list(cards)
        if ActionKind.DECLARE_FLOR in kinds:
            out.extend(flor_candidates(view, kinds, card_ev=primary.base_ev))
        elif kinds & ENVIDO_CALLS:
            out.extend(envido_call_candidates(view, kinds, primary.base_ev, self._rng, risk_scale, table_image))
        if view.truco_level < MAX_TRUCO_LEVEL and truco_call_for_level(view.truco_level) in kinds:
            result = self._strength(view) if view.truco_level == 0 else None
            out.extend(truco_call_candidates(view, kinds, primary, result, pressure, self._rng))
        return out

    def _features(self, view: AiView, kind: ActionKind) -> CaseFeatures:
        return CaseFeatures(
            strength_bucket=strength_bucket(view.initial_ai_hand),
            score_diff=view.score_diff,
            trick=view.current_trick,
            phase=phase_context(kind, view.phase),
            is_mano=view.ai_is_mano,
        )

    def _evaluate(self, state: GameState, view: AiView, candidate: Candidate) -> EvaluatedMove:
        modifiers = self.modifiers
        modifier = modifiers.get(candidate.reason_key, modifiers.get(candidate.kind.value, 1.0))
        if candidate.kind is ActionKind.DECLINE and candidate.base_ev >= 0:
            modifier = 1.0
        final = candidate.carried_ev + scale_ev(candidate.own_ev, modifier)

        adjustment = 0.0
        if candidate.kind is not ActionKind.PLAY_CARD and self.memory_weight:
            advice = state.profile.case_memory.advise(
                self._features(view, candidate.kind),
                candidate.kind.value,
                min_cases=self.memory_min_cases,
                rng=self._rng,
            )
            if advice is not None:
                n = advice.count
                adjustment = self.memory_weight * advice.mean_swing * n / (n + MEMORY_SHRINK)
                candidate.reasoning.append(
                    record(
                        "ai_logic.memory_advice",
                        cases=n,
                        win_rate=round(advice.win_rate, 2),
                        adjust=round(adjustment, 2),
                    )
                )
        return EvaluatedMove(candidate, modifier, adjustment, final + adjustment)

    def _context(self, view: AiView, best: Candidate) -> Optional[DecisionContext]:
        if best.kind is ActionKind.PLAY_CARD:
            return None
        features = self._features(view, best.kind)
        if features.phase == "envido":
            fold_rate = view.model.envido(view.player_role).fold_rate
        else:
            fold_rate = view.model.truco_fold_rate
        return DecisionContext(
            features=features,
            reason_key=best.reason_key,
            strength=best.strength,
            is_bluff=best.is_bluff,
            opponent_fold_rate=fold_rate,
        )

    # ------------------------------------------------------------- fallback

    def _fallback(self, state: GameState, legal: List[Action], note: str) -> AiDecision:
        """Hand-strength-only move; used when the pipeline fails."""
        reasoning: List[ReasoningItem] = [record("ai_logic.fallback", error=note)]
        try:
            action = self._heuristic_action(state, legal)
        except Exception:
            logger.exception("AI fallback heuristic failed; taking the first legal action")
            action = legal[0]
        action = Action(
            kind=action.kind,
            actor=Side.AI,
            card_index=action.card_index,
            reasoning=tuple(reasoning),
        )
        return AiDecision(action=action, reasoning=reasoning, degraded=True)

    def _heuristic_action(self, state: GameState, legal: List[Action]) -> Action:
        by_kind = {a.kind: a for a in legal if a.kind is not ActionKind.PLAY_CARD}
        strong = hand_percentile(state.initial_ai_hand) >= 50
        if ActionKind.DECLARE_FLOR in by_kind:
            return by_kind[ActionKind.DECLARE_FLOR]
        if ActionKind.ACKNOWLEDGE_FLOR in by_kind:
            return by_kind[ActionKind.ACKNOWLEDGE_FLOR]
        if ActionKind.ACCEPT_CONTRAFLOR in by_kind:
            return by_kind[ActionKind.ACCEPT_CONTRAFLOR if strong else ActionKind.DECLINE_CONTRAFLOR]
        if ActionKind.ACCEPT in by_kind:
            return by_kind[ActionKind.ACCEPT if strong else ActionKind.DECLINE]
        index = fallback_card(ai_view(state))
        if index is not None:
            for action in legal:
                if action.kind is ActionKind.PLAY_CARD and action.card_index == index:
                    return action
        return legal[0]


def suggest_move(state: GameState, ai: TrucoAI | None = None) -> AiDecision:
    """
    The move ``ai`` would make in the player's seat, as a player action.

    Raises ValueError when the player has nothing to do.
    """
    advisor = ai or TrucoAI()
    decision = advisor.decide(mirror_state(state))
    action = replace(decision.action, actor=Side.PLAYER, context=None)
    return decision._replace(action=action)


__all__ = [
    "ARCHETYPES",
    "ARCHETYPE_MODIFIERS",
    "game_pressure",
    "scale_ev",
    "phase_context",
    "EvaluatedMove",
    "AiDecision",
    "TrucoAI",
    "suggest_move",
]
