"""
The Truco state machine: validate an action against the current phase and
reduce ``(state, action) -> state``.

``apply_action`` never mutates its input. A legal action is applied to a deep
copy; an illegal one is rejected with the very same state object and an error
string (it is never reinterpreted as some other action). While reducing, the
machine also records what the player did (envido/play-order/truco histories,
card statistics, opponent-model updates) and, at round end, turns the AI's
pending decisions into case-memory entries.

Phases:
    trick_1 -> trick_2 -> trick_3 -> round_end -> (trick_1 | game_over)
with the interrupts envido_called, truco_called -> retruco_called ->
vale_cuatro_called, and flor_called -> contraflor_called.
"""
from __future__ import annotations

import copy
import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .actions import TABLE_ACTIONS, TRUCO_CALL_LEVEL, Action, ActionKind
from .deal import deal_round
from .deck import Card, encode_hand
from .evaluation import (
    card_rank,
    envido_value,
    flor_value,
    hand_percentile,
    hand_strength,
    has_flor,
)
from .history import (
    PLAYER_ACTION_HISTORY_LIMIT,
    PLAYER_LOG_LIMIT,
    EnvidoHistoryEntry,
    PlayOrderEntry,
    RoundSummary,
    TrucoCallEntry,
    TrucoCallMeta,
    append_capped,
    record_card_play,
    record_card_win,
)
from .memory import Case
from .opponent_model import (
    observe_bait,
    observe_envido_call,
    observe_envido_escalation,
    observe_envido_primero,
    observe_envido_response,
    observe_lead,
    observe_truco_call,
    observe_truco_counter,
    observe_truco_response,
    player_role,
    record_ai_bluff,
    refresh_from_history,
)
from .play import TIE, Side, next_leader, round_winner, trick_winner
from .reasoning import ReasoningEntry
from .scoring import (
    CONTRAFLOR_DECLINE_POINTS,
    CONTRAFLOR_POINTS,
    ENVIDO_POINTS,
    ENVIDO_TIER_ENVIDO,
    ENVIDO_TIER_FALTA,
    ENVIDO_TIER_NONE,
    ENVIDO_TIER_REAL,
    FLOR_POINTS,
    MATCH_TARGET,
    REAL_ENVIDO_POINTS,
    envido_decline_points,
    envido_showdown,
    falta_envido_points,
    truco_decline_points,
    truco_points,
)
from .state import (
    ROUND_HISTORY_LIMIT,
    TRUCO_LEVEL_PHASE,
    TRUCO_PHASES,
    GamePhase,
    GameState,
    LearningProfile,
    PendingDecision,
    trick_phase,
)

logger = logging.getLogger(__name__)

# Percentile needed for a lead-low to count as bait rather than a weak hand.
BAIT_PERCENTILE = 75
HIGH_ENVIDO = 27

_SIDE_LABEL = {Side.PLAYER: "Player", Side.AI: "AI"}

_CALL_LABEL = {
    ActionKind.CALL_ENVIDO: "Envido",
    ActionKind.CALL_REAL_ENVIDO: "Real Envido",
    ActionKind.CALL_FALTA_ENVIDO: "Falta Envido",
    ActionKind.CALL_TRUCO: "Truco",
    ActionKind.CALL_RETRUCO: "Quiero Retruco",
    ActionKind.CALL_VALE_CUATRO: "Quiero Vale Cuatro",
    ActionKind.CALL_FALTA_TRUCO: "Falta Truco",
    ActionKind.DECLARE_FLOR: "Flor",
    ActionKind.CALL_CONTRAFLOR: "Contraflor",
}


@dataclass
class StepResult:
    state: GameState
    accepted: bool
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def new_match(
    target_score: int = MATCH_TARGET,
    flor_enabled: bool = True,
    mano: Side = Side.PLAYER,
    profile: LearningProfile | None = None,
    learning_rate: float | None = None,
    debug_mode: bool = False,
) -> GameState:
    """Fresh match in the ``initial`` phase; dispatch START_ROUND to deal."""
    if target_score < 1:
        raise ValueError("target_score must be >= 1")
    state = GameState(
        target_score=target_score,
        flor_enabled=flor_enabled,
        mano=mano,
        debug_mode=debug_mode,
        profile=profile if profile is not None else LearningProfile(),
    )
    if learning_rate is not None:
        state.learning_rate = learning_rate
    return state


# ---------------------------------------------------------------------------
# Legality
# ---------------------------------------------------------------------------


def _envido_window_open(state: GameState, side: Side) -> bool:
    return (
        state.current_trick == 0
        and not state.envido_closed
        and not state.flor_called
        and state.tricks(side)[0] is None
    )


def can_sing_envido(state: GameState, side: Side) -> bool:
    """Side may open envido (fresh call) given trick/flor constraints."""
    if state.flor_enabled and state.has_flor(side):
        return False
    return _envido_window_open(state, side) and state.envido_tier == ENVIDO_TIER_NONE


def can_declare_flor(state: GameState, side: Side) -> bool:
    return (
        state.flor_enabled
        and state.has_flor(side)
        and not state.flor_called
        and state.current_trick == 0
        and state.tricks(side)[0] is None
    )


def _check_play_card(state: GameState, actor: Side, action: Action) -> Optional[str]:
    if not state.in_trick_phase():
        return f"cannot play a card during {state.phase.value}"
    hand = state.hand(actor)
    if action.card_index is None or not (0 <= action.card_index < len(hand)):
        return f"invalid card index {action.card_index!r}"
    if state.tricks(actor)[state.current_trick] is not None:
        return "already played in this trick"
    return None


def _check_envido(state: GameState, actor: Side, action: Action) -> Optional[str]:
    kind = action.kind
    if state.flor_enabled and state.has_flor(actor):
        return "a hand with flor must sing flor"
    if state.phase is GamePhase.ENVIDO_CALLED:
        if kind is ActionKind.CALL_ENVIDO:
            if state.envido_tier != ENVIDO_TIER_ENVIDO or state.envido_envido_called:
                return "envido can only be repeated once, right after envido"
            return None
        if kind is ActionKind.CALL_REAL_ENVIDO:
            if state.envido_tier >= ENVIDO_TIER_REAL:
                return "real envido already called"
            return None
        if state.envido_tier >= ENVIDO_TIER_FALTA:
            return "falta envido already called"
        return None

    if state.phase is GamePhase.TRUCO_CALLED:
        if state.pending_truco_caller is None or state.pending_truco_caller is actor:
            return "envido is no longer available against this truco"
    elif not state.in_trick_phase():
        return f"cannot call envido during {state.phase.value}"

    if not can_sing_envido(state, actor):
        return "envido is only available in the first trick before playing a card"
    return None


def _check_truco(state: GameState, actor: Side, action: Action) -> Optional[str]:
    level = TRUCO_CALL_LEVEL[action.kind]
    if level != state.truco_level + 1:
        return f"{action.kind.value} does not raise truco level {state.truco_level}"
    if state.last_truco_caller is actor:
        return "cannot raise your own truco call"
    if state.phase in TRUCO_PHASES or state.in_trick_phase():
        return None
    return f"cannot call truco during {state.phase.value}"


def _check_declare_flor(state: GameState, actor: Side, action: Action) -> Optional[str]:
    if not can_declare_flor(state, actor):
        return "flor is not available"
    if state.phase is GamePhase.TRUCO_CALLED and state.truco_level != 1:
        return "flor can only answer a first truco"
    if state.phase in (GamePhase.TRICK_1, GamePhase.ENVIDO_CALLED, GamePhase.TRUCO_CALLED):
        return None
    return f"cannot declare flor during {state.phase.value}"


def _check_flor_response(state: GameState, actor: Side, action: Action) -> Optional[str]:
    if state.phase is not GamePhase.FLOR_CALLED:
        return "no flor to answer"
    return None


def _check_contraflor_response(state: GameState, actor: Side, action: Action) -> Optional[str]:
    if state.phase is not GamePhase.CONTRAFLOR_CALLED:
        return "no contraflor to answer"
    return None


def _check_response(state: GameState, actor: Side, action: Action) -> Optional[str]:
    if state.phase in (GamePhase.ENVIDO_CALLED, GamePhase.CONTRAFLOR_CALLED) or state.phase in TRUCO_PHASES:
        return None
    return f"nothing to answer during {state.phase.value}"


_CHECKS: Dict[ActionKind, Callable[[GameState, Side, Action], Optional[str]]] = {
    ActionKind.PLAY_CARD: _check_play_card,
    ActionKind.CALL_ENVIDO: _check_envido,
    ActionKind.CALL_REAL_ENVIDO: _check_envido,
    ActionKind.CALL_FALTA_ENVIDO: _check_envido,
    ActionKind.CALL_TRUCO: _check_truco,
    ActionKind.CALL_RETRUCO: _check_truco,
    ActionKind.CALL_VALE_CUATRO: _check_truco,
    ActionKind.CALL_FALTA_TRUCO: _check_truco,
    ActionKind.DECLARE_FLOR: _check_declare_flor,
    ActionKind.ACKNOWLEDGE_FLOR: _check_flor_response,
    ActionKind.CALL_CONTRAFLOR: _check_flor_response,
    ActionKind.ACCEPT_CONTRAFLOR: _check_contraflor_response,
    ActionKind.DECLINE_CONTRAFLOR: _check_contraflor_response,
    ActionKind.ACCEPT: _check_response,
    ActionKind.DECLINE: _check_response,
}


def validate_action(state: GameState, action: Action) -> Optional[str]:
    """Return None when ``action`` is legal, else a short reason."""
    kind = action.kind
    if kind is ActionKind.RESTART_MATCH:
        return None
    if kind is ActionKind.START_ROUND:
        if state.phase is GamePhase.GAME_OVER:
            return "the match is over"
        if state.phase not in (GamePhase.INITIAL, GamePhase.ROUND_END):
            return "a round is in progress"
        return None
    if state.phase in (GamePhase.INITIAL, GamePhase.ROUND_END, GamePhase.GAME_OVER):
        return "no round in progress"
    if action.actor is None:
        return "action needs an actor"
    if action.actor is not state.current_turn:
        return "not your turn"
    return _CHECKS[kind](state, action.actor, action)


def legal_actions(state: GameState, actor: Side | None) -> List[Action]:
    """Every legal action for ``actor`` (None = table actions such as START_ROUND)."""
    if actor is None:
        candidates = [Action(kind) for kind in (ActionKind.START_ROUND, ActionKind.RESTART_MATCH)]
    else:
        candidates = [
            Action(ActionKind.PLAY_CARD, actor=actor, card_index=i)
            for i in range(len(state.hand(actor)))
        ]
        candidates.extend(
            Action(kind, actor=actor)
            for kind in ActionKind
            if kind is not ActionKind.PLAY_CARD and kind not in TABLE_ACTIONS
        )
    return [a for a in candidates if validate_action(state, a) is None]


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _say(state: GameState, text: str) -> None:
    state.message_log.append(text)


def _note_call(state: GameState, actor: Side, text: str) -> None:
    summary = state.summary
    if summary is not None:
        summary.calls.append(f"{actor.value}: {text}")


def _remember_player_action(state: GameState, kind: ActionKind) -> None:
    append_capped(state.profile.player_action_history, kind.value, PLAYER_ACTION_HISTORY_LIMIT)


def _track_ai_decision(state: GameState, action: Action, source: str) -> None:
    if action.actor is Side.AI and action.context is not None:
        state.pending_decisions.append(
            PendingDecision(kind=action.kind.value, source=source, context=action.context)
        )


def _close_envido_primero(state: GameState, took_it: bool) -> None:
    if state.envido_primero_open:
        observe_envido_primero(state.profile.opponent_model, took_it, state.learning_rate)
        state.envido_primero_open = False


def _close_round(state: GameState, winner: Side) -> None:
    """Round bookkeeping: close the summary, resolve AI decisions into cases."""
    summary = state.summary
    if summary is None:
        return
    summary.round_winner = winner
    model = state.profile.opponent_model

    if state.ai_bluff_open:
        record_ai_bluff(model, player_role(state.mano), success=False)
        state.ai_bluff_open = False

    for pending in state.pending_decisions:
        ai_pts = getattr(summary.ai_points, pending.source)
        player_pts = getattr(summary.player_points, pending.source)
        swing = ai_pts - player_pts
        if swing > 0:
            outcome = "win"
        elif swing < 0:
            outcome = "loss"
        else:
            outcome = "win" if winner is Side.AI else "loss"
        ctx = pending.context
        state.profile.case_memory.add(
            Case(
                features=ctx.features,
                action_kind=pending.kind,
                reason_key=ctx.reason_key,
                is_bluff=ctx.is_bluff,
                strength=ctx.strength,
                opponent_fold_rate=ctx.opponent_fold_rate,
                outcome=outcome,
                points_swung=swing,
                round=summary.round,
            )
        )
    state.pending_decisions.clear()
    summary.closed = True


def _award(state: GameState, side: Side, points: int, source: str) -> bool:
    """Add points; ends the match (and returns True) once ``side`` reaches the target."""
    if points <= 0:
        return False
    state.add_score(side, points)
    summary = state.summary
    if summary is not None:
        breakdown = summary.points_for(side)
        setattr(breakdown, source, getattr(breakdown, source) + points)
    _say(state, f"{_SIDE_LABEL[side]} scores {points} ({source}).")
    if state.score(side) >= state.target_score:
        state.winner = side
        _close_round(state, side)
        state.phase = GamePhase.GAME_OVER
        state.current_turn = None
        _say(state, f"{_SIDE_LABEL[side]} wins the match {state.player_score}-{state.ai_score}.")
        return True
    return False


def _end_round(state: GameState, winner: Side, points: int) -> None:
    if _award(state, winner, points, "truco"):
        return
    _close_round(state, winner)
    state.phase = GamePhase.ROUND_END
    state.current_turn = None
    _say(state, f"{_SIDE_LABEL[winner]} wins round {state.round}.")


def _resume_after_side_bet(state: GameState) -> None:
    """After envido/flor resolves: back to a pending truco, or to the trick."""
    caller = state.pending_truco_caller
    if caller is not None:
        state.phase = TRUCO_LEVEL_PHASE[state.truco_level]
        state.last_caller = caller
        state.current_turn = caller.other
        state.pending_truco_caller = None
        return
    state.phase = trick_phase(state.current_trick)
    state.current_turn = state.turn_before_interrupt or state.mano
    state.turn_before_interrupt = None


# ---------------------------------------------------------------------------
# Round start / restart
# ---------------------------------------------------------------------------


def _deal(state: GameState, rng: random.Random) -> None:
    deal = deal_round(state.mano, rng=rng)
    state.round += 1
    state.deck = deal.deck
    state.player_hand = list(deal.player_hand)
    state.ai_hand = list(deal.ai_hand)
    state.initial_player_hand = list(deal.player_hand)
    state.initial_ai_hand = list(deal.ai_hand)
    state.player_tricks = [None, None, None]
    state.ai_tricks = [None, None, None]
    state.trick_winners = [None, None, None]
    state.played_cards = []
    state.current_trick = 0
    state.truco_level = 0
    state.last_caller = None
    state.last_truco_caller = None
    state.pending_truco_caller = None
    state.turn_before_interrupt = None
    state.envido_points_on_offer = 0
    state.previous_envido_points = 0
    state.envido_tier = ENVIDO_TIER_NONE
    state.envido_envido_called = False
    state.envido_closed = False
    state.player_envido_value = None
    state.player_called_high_envido = False
    state.flor_called = False
    state.flor_caller = None
    state.flor_points_on_offer = 0
    state.player_has_flor = has_flor(state.player_hand)
    state.ai_has_flor = has_flor(state.ai_hand)
    state.player_flor_revealed = False
    state.pending_decisions = []
    state.ai_bluff_open = False
    state.envido_primero_open = False

    history = state.profile.round_history
    history.append(
        RoundSummary(
            round=state.round,
            mano=state.mano,
            player_hand=encode_hand(state.player_hand),
            ai_hand=encode_hand(state.ai_hand),
            player_envido=envido_value(state.player_hand),
            ai_envido=envido_value(state.ai_hand),
        )
    )
    if len(history) > ROUND_HISTORY_LIMIT:
        del history[: len(history) - ROUND_HISTORY_LIMIT]

    state.phase = GamePhase.TRICK_1
    state.current_turn = state.mano
    _say(state, f"Round {state.round}: {_SIDE_LABEL[state.mano]} is mano.")


def _start_round(state: GameState, action: Action, rng: random.Random) -> None:
    if state.round > 0:
        state.mano = state.mano.other
    profile = state.profile
    refresh_from_history(profile.opponent_model, profile.envido_history, profile.play_order_history)
    _deal(state, rng)


def _restart_match(state: GameState, action: Action, rng: random.Random) -> None:
    summary = state.summary
    if summary is not None:
        # Abandoned round: nothing was won, nothing to learn from.
        state.pending_decisions.clear()
        summary.closed = True
    state.player_score = 0
    state.ai_score = 0
    state.winner = None
    state.message_log = ["New match."]
    if state.round > 0:
        state.mano = state.mano.other
    state.round = 0
    _deal(state, rng)


# ---------------------------------------------------------------------------
# Card play
# ---------------------------------------------------------------------------


def _observe_player_card(state: GameState, card: Card, hand_before: List[Card], is_lead: bool) -> None:
    trick = state.current_trick
    profile = state.profile
    model = profile.opponent_model
    alpha = state.learning_rate
    was_highest = card_rank(card) == max(card_rank(c) for c in hand_before)

    append_capped(
        profile.play_order_history,
        PlayOrderEntry(
            round=state.round,
            trick=trick,
            card=card.code,
            was_lead=is_lead,
            was_highest=was_highest,
            hand_strength=hand_strength(hand_before),
        ),
        PLAYER_LOG_LIMIT,
    )
    record_card_play(profile.card_play_stats, card, trick, as_lead=is_lead)
    _remember_player_action(state, ActionKind.PLAY_CARD)

    if trick == 0 and is_lead:
        if state.mano is Side.PLAYER:
            observe_lead(model, was_highest, alpha)
        if hand_percentile(state.initial_player_hand) >= BAIT_PERCENTILE:
            observe_bait(model, not was_highest, alpha)

    if trick == 0 and state.envido_tier == ENVIDO_TIER_NONE and not state.envido_closed and not state.flor_called:
        append_capped(
            profile.envido_history,
            EnvidoHistoryEntry(
                round=state.round,
                envido=envido_value(state.initial_player_hand),
                action="did_not_call",
                was_mano=state.mano is Side.PLAYER,
            ),
            PLAYER_LOG_LIMIT,
        )


def _play_card(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    hand = state.hand(actor)
    hand_before = list(hand)
    card = hand.pop(action.card_index)
    trick = state.current_trick
    is_lead = state.tricks(actor.other)[trick] is None

    if actor is Side.PLAYER:
        _observe_player_card(state, card, hand_before, is_lead)

    state.tricks(actor)[trick] = card
    state.played_cards.append(card)
    summary = state.summary
    if summary is not None:
        setattr(summary.tricks[trick], actor.value, card.code)
    _say(state, f"{_SIDE_LABEL[actor]} plays {card.name()}.")

    if is_lead:
        state.current_turn = actor.other
        return

    player_card = state.player_tricks[trick]
    ai_card = state.ai_tricks[trick]
    result = trick_winner(player_card, ai_card)
    state.trick_winners[trick] = result
    if summary is not None:
        summary.tricks[trick].winner = result.value if isinstance(result, Side) else TIE
    if result is Side.PLAYER:
        record_card_win(state.profile.card_play_stats, player_card)
    if result == TIE:
        _say(state, f"Trick {trick + 1} is parda.")
    else:
        _say(state, f"{_SIDE_LABEL[Side(result)]} wins trick {trick + 1}.")

    if trick == 0:
        state.envido_closed = True
        _close_envido_primero(state, took_it=False)

    winner = round_winner(state.trick_winners, state.mano)
    if winner is not None:
        _end_round(state, winner, truco_points(state.truco_level))
        return
    state.current_trick += 1
    state.phase = trick_phase(state.current_trick)
    state.current_turn = next_leader(result, state.mano)


# ---------------------------------------------------------------------------
# Envido
# ---------------------------------------------------------------------------


def _call_envido(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    kind = action.kind
    escalating = state.phase is GamePhase.ENVIDO_CALLED
    envido_primero = state.phase is GamePhase.TRUCO_CALLED

    if not escalating and not envido_primero:
        state.turn_before_interrupt = actor
    previous = state.envido_points_on_offer if escalating else 0
    state.previous_envido_points = previous

    if kind is ActionKind.CALL_ENVIDO:
        if state.envido_tier == ENVIDO_TIER_ENVIDO:
            state.envido_envido_called = True
        state.envido_points_on_offer = previous + ENVIDO_POINTS
        state.envido_tier = max(state.envido_tier, ENVIDO_TIER_ENVIDO)
    elif kind is ActionKind.CALL_REAL_ENVIDO:
        state.envido_points_on_offer = previous + REAL_ENVIDO_POINTS
        state.envido_tier = ENVIDO_TIER_REAL
    else:
        state.envido_points_on_offer = falta_envido_points(
            state.player_score, state.ai_score, state.target_score
        )
        state.envido_tier = ENVIDO_TIER_FALTA

    state.phase = GamePhase.ENVIDO_CALLED
    state.last_caller = actor
    state.current_turn = actor.other
    label = _CALL_LABEL[kind]
    _note_call(state, actor, label)
    _say(state, f"{_SIDE_LABEL[actor]}: {label}! ({state.envido_points_on_offer} on offer)")

    if actor is Side.PLAYER:
        profile = state.profile
        model = profile.opponent_model
        role = player_role(state.mano)
        points = envido_value(state.initial_player_hand)
        if escalating:
            entry_action = {
                ActionKind.CALL_ENVIDO: "escalated_envido",
                ActionKind.CALL_REAL_ENVIDO: "escalated_real",
                ActionKind.CALL_FALTA_ENVIDO: "escalated_falta",
            }[kind]
            observe_envido_escalation(model, role, True, state.learning_rate)
            observe_envido_response(model, role, False, state.learning_rate)
        else:
            entry_action = "called"
            observe_envido_call(model, role, points, state.learning_rate)
            _close_envido_primero(state, took_it=envido_primero)
        append_capped(
            profile.envido_history,
            EnvidoHistoryEntry(
                round=state.round,
                envido=points,
                action=entry_action,
                was_mano=state.mano is Side.PLAYER,
            ),
            PLAYER_LOG_LIMIT,
        )
        _remember_player_action(state, kind)
    _track_ai_decision(state, action, "envido")


def _player_envido_response(state: GameState, folded: bool) -> None:
    profile = state.profile
    role = player_role(state.mano)
    observe_envido_response(profile.opponent_model, role, folded, state.learning_rate)
    if not folded:
        observe_envido_escalation(profile.opponent_model, role, False, state.learning_rate)
    append_capped(
        profile.envido_history,
        EnvidoHistoryEntry(
            round=state.round,
            envido=envido_value(state.initial_player_hand),
            action="folded" if folded else "accepted",
            was_mano=state.mano is Side.PLAYER,
        ),
        PLAYER_LOG_LIMIT,
    )


def _clear_envido_offer(state: GameState) -> None:
    state.envido_points_on_offer = 0
    state.previous_envido_points = 0
    state.envido_closed = True


def _accept_envido(state: GameState, action: Action) -> None:
    actor = action.actor
    caller = state.last_caller
    if actor is Side.PLAYER:
        _player_envido_response(state, folded=False)
        _remember_player_action(state, ActionKind.ACCEPT)
    _track_ai_decision(state, action, "envido")

    player_points = envido_value(state.initial_player_hand)
    ai_points = envido_value(state.initial_ai_hand)
    winner = envido_showdown(player_points, ai_points, state.mano)
    state.player_envido_value = player_points
    if caller is Side.PLAYER and player_points >= HIGH_ENVIDO:
        state.player_called_high_envido = True

    stake = state.envido_points_on_offer
    _note_call(state, actor, "Quiero (envido)")
    _say(state, f"{_SIDE_LABEL[actor]}: Quiero!")
    _say(state, f"Envido: Player {player_points}, AI {ai_points}.")
    _clear_envido_offer(state)
    if _award(state, winner, stake, "envido"):
        return
    _resume_after_side_bet(state)


def _decline_envido(state: GameState, action: Action) -> None:
    actor = action.actor
    caller = state.last_caller
    if actor is Side.PLAYER:
        _player_envido_response(state, folded=True)
        _remember_player_action(state, ActionKind.DECLINE)
    _track_ai_decision(state, action, "envido")

    points = envido_decline_points(state.previous_envido_points)
    _note_call(state, actor, "No quiero (envido)")
    _say(state, f"{_SIDE_LABEL[actor]}: No quiero.")
    _clear_envido_offer(state)
    if _award(state, caller, points, "envido"):
        return
    _resume_after_side_bet(state)


# ---------------------------------------------------------------------------
# Truco
# ---------------------------------------------------------------------------


def _call_truco(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    kind = action.kind
    level = TRUCO_CALL_LEVEL[kind]
    facing_call = state.phase in TRUCO_PHASES
    model = state.profile.opponent_model

    if facing_call:
        # Raising accepts the call being answered.
        if actor is Side.PLAYER:
            observe_truco_response(model, False, state.learning_rate)
            observe_truco_counter(model, True, state.learning_rate)
            _close_envido_primero(state, took_it=False)
        state.envido_closed = True
    else:
        state.turn_before_interrupt = actor

    state.truco_level = level
    state.last_caller = actor
    state.last_truco_caller = actor
    state.phase = TRUCO_LEVEL_PHASE[level]
    responder = actor.other
    state.current_turn = responder

    state.pending_truco_caller = None
    if level == 1 and (can_sing_envido(state, responder) or can_declare_flor(state, responder)):
        state.pending_truco_caller = actor
        if responder is Side.PLAYER and can_sing_envido(state, responder):
            state.envido_primero_open = True

    label = _CALL_LABEL[kind]
    _note_call(state, actor, label)
    _say(state, f"{_SIDE_LABEL[actor]}: {label}!")

    summary = state.summary
    if actor is Side.PLAYER:
        strength = hand_strength(state.initial_player_hand)
        is_bluff = hand_percentile(state.initial_player_hand) < 50
        append_capped(
            state.profile.truco_call_history,
            TrucoCallEntry(
                round=state.round,
                strength=strength,
                is_mano=state.mano is Side.PLAYER,
                is_bluff=is_bluff,
            ),
            PLAYER_LOG_LIMIT,
        )
        observe_truco_call(model, is_bluff, state.learning_rate)
        if summary is not None and summary.player_truco_call is None:
            summary.player_truco_call = TrucoCallMeta(hand_strength=strength, is_bluff=is_bluff)
        _remember_player_action(state, kind)
    elif action.context is not None:
        if action.context.is_bluff:
            state.ai_bluff_open = True
        if summary is not None and summary.ai_truco_call is None:
            summary.ai_truco_call = TrucoCallMeta(
                hand_strength=hand_strength(state.initial_ai_hand),
                is_bluff=action.context.is_bluff,
            )
    _track_ai_decision(state, action, "truco")


def _accept_truco(state: GameState, action: Action) -> None:
    actor = action.actor
    if actor is Side.PLAYER:
        model = state.profile.opponent_model
        observe_truco_response(model, False, state.learning_rate)
        observe_truco_counter(model, False, state.learning_rate)
        _close_envido_primero(state, took_it=False)
        _remember_player_action(state, ActionKind.ACCEPT)
    _track_ai_decision(state, action, "truco")

    state.envido_closed = True
    state.pending_truco_caller = None
    state.phase = trick_phase(state.current_trick)
    state.current_turn = state.turn_before_interrupt or state.mano
    state.turn_before_interrupt = None
    _note_call(state, actor, "Quiero (truco)")
    _say(state, f"{_SIDE_LABEL[actor]}: Quiero! Playing for {truco_points(state.truco_level)}.")


def _decline_truco(state: GameState, action: Action) -> None:
    actor = action.actor
    caller = state.last_truco_caller
    if actor is Side.PLAYER:
        observe_truco_response(state.profile.opponent_model, True, state.learning_rate)
        _close_envido_primero(state, took_it=False)
        _remember_player_action(state, ActionKind.DECLINE)
    if caller is Side.AI and state.ai_bluff_open:
        record_ai_bluff(state.profile.opponent_model, player_role(state.mano), success=True)
        state.ai_bluff_open = False
    _track_ai_decision(state, action, "truco")

    _note_call(state, actor, "No quiero (truco)")
    _say(state, f"{_SIDE_LABEL[actor]}: No quiero.")
    state.pending_truco_caller = None
    state.turn_before_interrupt = None
    _end_round(state, caller, truco_decline_points(state.truco_level))


# ---------------------------------------------------------------------------
# Flor
# ---------------------------------------------------------------------------


def _declare_flor(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    if state.phase is GamePhase.ENVIDO_CALLED:
        _say(state, "Flor cancels the envido.")
        state.envido_points_on_offer = 0
        state.previous_envido_points = 0
    elif state.phase is GamePhase.TRUCO_CALLED:
        state.pending_truco_caller = state.last_truco_caller
    else:
        state.turn_before_interrupt = actor

    state.flor_called = True
    state.flor_caller = actor
    state.envido_closed = True
    _note_call(state, actor, "Flor")
    _say(state, f"{_SIDE_LABEL[actor]}: Flor!")
    if actor is Side.PLAYER:
        state.player_flor_revealed = True
        _remember_player_action(state, ActionKind.DECLARE_FLOR)
    _track_ai_decision(state, action, "flor")

    opponent = actor.other
    if not (state.flor_enabled and state.has_flor(opponent)):
        if _award(state, actor, FLOR_POINTS, "flor"):
            return
        _resume_after_side_bet(state)
        return
    state.flor_points_on_offer = FLOR_POINTS
    state.player_flor_revealed = True
    state.phase = GamePhase.FLOR_CALLED
    state.last_caller = actor
    state.current_turn = opponent


def _acknowledge_flor(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    caller = state.flor_caller
    points = state.flor_points_on_offer or FLOR_POINTS
    _note_call(state, actor, "Son buenas")
    _say(state, f"{_SIDE_LABEL[actor]}: Son buenas.")
    _track_ai_decision(state, action, "flor")
    state.flor_points_on_offer = 0
    if _award(state, caller, points, "flor"):
        return
    _resume_after_side_bet(state)


def _call_contraflor(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    state.flor_points_on_offer = CONTRAFLOR_POINTS
    state.phase = GamePhase.CONTRAFLOR_CALLED
    state.last_caller = actor
    state.current_turn = actor.other
    _note_call(state, actor, "Contraflor")
    _say(state, f"{_SIDE_LABEL[actor]}: Contraflor!")
    if actor is Side.PLAYER:
        _remember_player_action(state, ActionKind.CALL_CONTRAFLOR)
    _track_ai_decision(state, action, "flor")


def _accept_contraflor(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    player_points = flor_value(state.initial_player_hand)
    ai_points = flor_value(state.initial_ai_hand)
    winner = envido_showdown(player_points, ai_points, state.mano)
    _note_call(state, actor, "Con flor quiero")
    _say(state, f"{_SIDE_LABEL[actor]}: Con flor quiero!")
    _say(state, f"Flor: Player {player_points}, AI {ai_points}.")
    _track_ai_decision(state, action, "flor")
    state.flor_points_on_offer = 0
    if _award(state, winner, CONTRAFLOR_POINTS, "flor"):
        return
    _resume_after_side_bet(state)


def _decline_contraflor(state: GameState, action: Action, rng: random.Random) -> None:
    actor = action.actor
    caller = state.last_caller
    _note_call(state, actor, "Con flor me achico")
    _say(state, f"{_SIDE_LABEL[actor]}: Con flor me achico.")
    _track_ai_decision(state, action, "flor")
    state.flor_points_on_offer = 0
    if _award(state, caller, CONTRAFLOR_DECLINE_POINTS, "flor"):
        return
    _resume_after_side_bet(state)


# ---------------------------------------------------------------------------
# Generic responses
# ---------------------------------------------------------------------------


def _accept(state: GameState, action: Action, rng: random.Random) -> None:
    if state.phase is GamePhase.ENVIDO_CALLED:
        _accept_envido(state, action)
    elif state.phase is GamePhase.CONTRAFLOR_CALLED:
        _accept_contraflor(state, action, rng)
    else:
        _accept_truco(state, action)


def _decline(state: GameState, action: Action, rng: random.Random) -> None:
    if state.phase is GamePhase.ENVIDO_CALLED:
        _decline_envido(state, action)
    elif state.phase is GamePhase.CONTRAFLOR_CALLED:
        _decline_contraflor(state, action, rng)
    else:
        _decline_truco(state, action)


_HANDLERS: Dict[ActionKind, Callable[[GameState, Action, random.Random], None]] = {
    ActionKind.START_ROUND: _start_round,
    ActionKind.RESTART_MATCH: _restart_match,
    ActionKind.PLAY_CARD: _play_card,
    ActionKind.CALL_ENVIDO: _call_envido,
    ActionKind.CALL_REAL_ENVIDO: _call_envido,
    ActionKind.CALL_FALTA_ENVIDO: _call_envido,
    ActionKind.CALL_TRUCO: _call_truco,
    ActionKind.CALL_RETRUCO: _call_truco,
    ActionKind.CALL_VALE_CUATRO: _call_truco,
    ActionKind.CALL_FALTA_TRUCO: _call_truco,
    ActionKind.DECLARE_FLOR: _declare_flor,
    ActionKind.ACKNOWLEDGE_FLOR: _acknowledge_flor,
    ActionKind.CALL_CONTRAFLOR: _call_contraflor,
    ActionKind.ACCEPT_CONTRAFLOR: _accept_contraflor,
    ActionKind.DECLINE_CONTRAFLOR: _decline_contraflor,
    ActionKind.ACCEPT: _accept,
    ActionKind.DECLINE: _decline,
}


def apply_action(
    state: GameState,
    action: Action,
    rng: random.Random | None = None,
) -> StepResult:
    """
    Apply ``action`` to ``state``.

    Returns a StepResult holding a new state when the action is legal; an
    illegal action returns the input state untouched with ``accepted=False``.
    """
    error = validate_action(state, action)
    if error is not None:
        logger.debug("Rejected %s by %s: %s", action.kind.value, action.actor, error)
        return StepResult(state=state, accepted=False, error=error)

    if rng is None:
        rng = random.Random()
    new_state = copy.deepcopy(state)
    _HANDLERS[action.kind](new_state, action, rng)
    if action.actor is Side.AI and action.reasoning:
        new_state.ai_reasoning_log.append(
            ReasoningEntry(round=new_state.round, items=list(action.reasoning))
        )
    return StepResult(state=new_state, accepted=True)


def is_turn_of(state: GameState, side: Side) -> bool:
    return state.current_turn is side and state.phase not in (
        GamePhase.INITIAL,
        GamePhase.ROUND_END,
        GamePhase.GAME_OVER,
    )


__all__ = [
    "StepResult",
    "new_match",
    "can_sing_envido",
    "can_declare_flor",
    "validate_action",
    "legal_actions",
    "apply_action",
    "is_turn_of",
]
