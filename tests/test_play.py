"""Tests for trick/round resolution and stake arithmetic."""
import itertools
import random

import pytest

from truco.deal import deal_round
from truco.deck import card_from_code
from truco.play import TIE, Side, next_leader, round_winner, trick_winner
from truco.scoring import (
    envido_decline_points,
    envido_showdown,
    falta_envido_points,
    truco_decline_points,
    truco_points,
)

P, A = Side.PLAYER, Side.AI


def test_trick_winner():
    assert trick_winner(card_from_code("E1"), card_from_code("B1")) is P
    assert trick_winner(card_from_code("C4"), card_from_code("O7")) is A
    assert trick_winner(card_from_code("O3"), card_from_code("C3")) == TIE


@pytest.mark.parametrize(
    "tricks, mano, expected",
    [
        ([P, P, None], A, P),
        ([A, P, A], P, A),
        ([TIE, P, A], A, P),
        ([TIE, A, None], P, A),
        ([TIE, TIE, P], A, P),
        ([TIE, TIE, TIE], A, A),
        ([A, TIE, None], P, A),
        ([P, A, TIE], A, P),
        ([P, None, None], P, None),
        ([P, A, None], P, None),
        ([TIE, TIE, None], P, None),
    ],
)
def test_round_winner_tie_chain(tricks, mano, expected):
    assert round_winner(tricks, mano) == expected


def test_round_winner_after_tied_first_trick_ignores_third():
    """tricks = [tie, player, *] => player, whatever trick 3 would be."""
    for third in (P, A, TIE, None):
        assert round_winner([TIE, P, third], A) is P


def test_every_complete_sequence_has_a_winner():
    for seq in itertools.product([P, A, TIE], repeat=3):
        for mano in (P, A):
            assert round_winner(list(seq), mano) in (P, A)


def test_next_leader():
    assert next_leader(P, A) is P
    assert next_leader(TIE, A) is A


def test_truco_stakes():
    assert [truco_points(level) for level in range(4)] == [1, 2, 3, 4]
    assert [truco_decline_points(level) for level in (1, 2, 3)] == [1, 2, 3]
    with pytest.raises(ValueError):
        truco_points(4)
    with pytest.raises(ValueError):
        truco_decline_points(0)


def test_envido_arithmetic():
    assert falta_envido_points(0, 9, 15) == 6
    assert falta_envido_points(14, 3, 15) == 1
    assert envido_decline_points(0) == 1
    assert envido_decline_points(5) == 5
    assert envido_showdown(30, 30, A) is A
    assert envido_showdown(31, 30, A) is P


def test_deal_round_deals_three_each():
    deal = deal_round(P, rng=random.Random(42))
    assert len(deal.player_hand) == 3
    assert len(deal.ai_hand) == 3
    assert len(deal.deck) == 34
    cards = deal.player_hand + deal.ai_hand + deal.deck
    assert len(set(cards)) == 40


def test_deal_round_is_reproducible():
    a = deal_round(A, rng=random.Random(7))
    b = deal_round(A, rng=random.Random(7))
    assert a.player_hand == b.player_hand
    assert a.ai_hand == b.ai_hand
