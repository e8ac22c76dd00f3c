"""
Which card the AI plays.

``card_candidates`` returns the recommended play (plus a bait alternative on
lopsided hands), each tagged with a reason key whose base value comes from
CARD_PLAY_EV. The reason keys ``play_card_parda_y_gano`` and
``play_card_certain_win`` also tell the AI that a truco raise is free money.
"""
from __future__ import annotations

import random
from typing import List, Optional

from .actions import ActionKind, Candidate
from .deck import Card
from .evaluation import card_rank, envido_suit, envido_value, hand_strength
from .inference import AiView, best_possible_card
from .play import TIE, Side, round_winner, trick_winner
from .reasoning import ReasoningItem, record

CARD_PLAY_EV = {
    "play_card_parda_y_gano": 2.5,
    "play_card_certain_win": 2.5,
    "win_round_cheap": 1.5,
    "secure_hand": 1.2,
    "parda_y_canto": 0.8,
    "bait_lopsided_hand": 0.4,
    "probe_low_value": 0.2,
    "probe_mid_value": 0.3,
    "probe_sacrificial": 0.5,
    "discard_low": -1.0,
    "play_last_card": 0.1,
}

# Lopsided hand: big envido, little trick power. Leading low invites a truco.
LOPSIDED_ENVIDO = 30
LOPSIDED_MAX_STRENGTH = 12
STRATEGIC_BAIT_BONUS = 1.5
BAIT_KEYS = frozenset({"probe_low_value", "probe_mid_value", "bait_lopsided_hand"})

DECEPTIVE_LEAD_CHANCE = 0.6
MISDIRECTION_CHANCE = 0.75


def _index_of(hand: List[Card], card: Card) -> int:
    return hand.index(card)


def _highest(hand: List[Card]) -> Card:
    return max(hand, key=card_rank)


def _lowest(hand: List[Card]) -> Card:
    return min(hand, key=card_rank)


def _middle(hand: List[Card]) -> Card:
    ordered = sorted(hand, key=card_rank)
    return ordered[len(ordered) // 2]


def _candidate(
    view: AiView,
    card: Card,
    reason_key: str,
    reasoning: List[ReasoningItem],
    bonus: float = 0.0,
) -> Candidate:
    reasoning = reasoning + [record(f"ai_logic.card.{reason_key}", card=card.name())]
    return Candidate(
        kind=ActionKind.PLAY_CARD,
        reason_key=reason_key,
        base_ev=CARD_PLAY_EV[reason_key] + bonus,
        card_index=_index_of(view.ai_hand, card),
        reasoning=reasoning,
    )


def is_lopsided(view: AiView) -> bool:
    hand = view.initial_ai_hand
    return envido_value(hand) >= LOPSIDED_ENVIDO and hand_strength(hand) < LOPSIDED_MAX_STRENGTH


def _wins_round_with(view: AiView, result: str | Side) -> bool:
    winners = list(view.trick_winners)
    winners[view.current_trick] = result
    return round_winner(winners, view.mano) is Side.AI


def _respond(view: AiView, reasoning: List[ReasoningItem]) -> Candidate:
    hand = view.ai_hand
    target = view.player_tricks[view.current_trick]
    assert target is not None
    reasoning.append(record("ai_logic.responding_to", card=target.name(), rank=card_rank(target)))

    beating = [c for c in hand if card_rank(c) > card_rank(target)]
    if beating:
        cheapest = min(beating, key=card_rank)
        if view.current_trick == 1 and view.trick_winners[0] == TIE:
            return _candidate(view, cheapest, "play_card_parda_y_gano", reasoning)
        if _wins_round_with(view, Side.AI):
            key = "win_round_cheap" if len(beating) < len(hand) else "play_card_certain_win"
            return _candidate(view, cheapest, key, reasoning)
        return _candidate(view, cheapest, "secure_hand", reasoning)

    tying = [c for c in hand if card_rank(c) == card_rank(target)]
    if tying and _wins_round_with(view, TIE):
        return _candidate(view, tying[0], "play_card_certain_win", reasoning)
    if len(hand) == 1:
        return _candidate(view, hand[0], "play_last_card", reasoning)
    if tying and view.current_trick == 0:
        # A first-trick parda hands the round to whoever takes the next trick.
        return _candidate(view, tying[0], "parda_y_canto", reasoning)
    return _candidate(view, _lowest(hand), "discard_low", reasoning)


def _lead(view: AiView, rng: random.Random, reasoning: List[ReasoningItem]) -> Candidate:
    hand = view.ai_hand
    trick = view.current_trick
    reasoning.append(record("ai_logic.leading_trick", trick=trick + 1))
    best = _highest(hand)
    threat = best_possible_card(view)
    unbeatable = threat is None or card_rank(best) > card_rank(threat)

    if len(hand) == 1:
        if unbeatable:
            return _candidate(view, best, "play_card_certain_win", reasoning)
        return _candidate(view, best, "play_last_card", reasoning)

    if trick == 0:
        my_envido = envido_value(view.initial_ai_hand)
        known = view.player_envido_value
        if (
            view.ai_is_mano
            and known is not None
            and my_envido > known
            and my_envido >= 28
            and rng.random() < DECEPTIVE_LEAD_CHANCE
        ):
            reasoning.append(record("ai_logic.deceptive_lead_after_envido"))
            return _candidate(view, _lowest(hand), "probe_low_value", reasoning)
        if hand_strength(view.initial_ai_hand) >= 11:
            return _candidate(view, best, "secure_hand", reasoning)
        return _candidate(view, _middle(hand), "probe_mid_value", reasoning)

    first = view.trick_winners[0]
    if first == TIE:
        if unbeatable:
            return _candidate(view, best, "play_card_parda_y_gano", reasoning)
        return _candidate(view, best, "parda_y_canto", reasoning)

    if first is Side.AI:
        suit = envido_suit(view.initial_ai_hand)
        if suit is not None and envido_value(view.initial_ai_hand) >= 27 and view.envido_tier > 0:
            same_suit = [c for c in hand if c.suit is suit]
            if same_suit and rng.random() < MISDIRECTION_CHANCE:
                reasoning.append(record("ai_logic.suit_misdirection", suit=suit.value))
                return _candidate(view, same_suit[0], "probe_mid_value", reasoning)
        if unbeatable:
            return _candidate(view, best, "play_card_certain_win", reasoning)
        return _candidate(view, _lowest(hand), "probe_sacrificial", reasoning)

    return _candidate(view, best, "secure_hand", reasoning)


def card_candidates(view: AiView, rng: random.Random) -> List[Candidate]:
    """The recommended card play, plus a bait lead when the hand is lopsided."""
    if not view.ai_hand:
        return []
    reasoning: List[ReasoningItem] = [
        record("ai_logic.my_hand", hand=", ".join(c.name() for c in view.ai_hand))
    ]
    if view.ai_leads:
        primary = _lead(view, rng, reasoning)
    else:
        primary = _respond(view, reasoning)

    candidates = [primary]
    bait_window = is_lopsided(view) and view.ai_is_mano and view.current_trick == 0 and view.ai_leads
    if bait_window:
        low = _lowest(view.ai_hand)
        if primary.card_index != _index_of(view.ai_hand, low):
            candidates.append(_candidate(view, low, "bait_lopsided_hand", list(reasoning[:1])))
        for cand in candidates:
            if cand.reason_key in BAIT_KEYS:
                cand.base_ev += STRATEGIC_BAIT_BONUS
                cand.reasoning.append(
                    record("ai_logic.strategic_bait_bonus", bonus=STRATEGIC_BAIT_BONUS)
                )
    return candidates


def fallback_card(view: AiView) -> Optional[int]:
    """Heuristic-only play: cheapest winning card, else the lowest."""
    hand = view.ai_hand
    if not hand:
        return None
    target = view.player_tricks[view.current_trick]
    if target is not None:
        beating = [c for c in hand if trick_winner(target, c) is Side.AI]
        if beating:
            return _index_of(hand, _lowest(beating))
        return _index_of(hand, _lowest(hand))
    return _index_of(hand, _highest(hand))


__all__ = [
    "CARD_PLAY_EV",
    "is_lopsided",
    "card_candidates",
    "fallback_card",
]
