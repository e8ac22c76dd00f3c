"""Tests for the bounded case memory."""
import pytest

from truco.memory import Case, CaseFeatures, CaseMemory, score_bucket


def _case(score_diff=0, kind="call_truco", outcome="win", bucket=2, trick=0, phase="truco", swing=2):
    return Case(
        features=CaseFeatures(
            strength_bucket=bucket, score_diff=score_diff, trick=trick, phase=phase, is_mano=True
        ),
        action_kind=kind,
        reason_key="call_truco_strong",
        is_bluff=False,
        strength=0.6,
        opponent_fold_rate=0.3,
        outcome=outcome,
        points_swung=swing if outcome == "win" else -swing,
    )


def test_features_are_validated():
    with pytest.raises(ValueError):
        CaseFeatures(strength_bucket=5, score_diff=0, trick=0, phase="truco", is_mano=True)
    with pytest.raises(ValueError):
        CaseFeatures(strength_bucket=1, score_diff=0, trick=0, phase="showdown", is_mano=True)
    with pytest.raises(ValueError):
        CaseMemory(capacity=0)


def test_score_bucket_width_four():
    assert score_bucket(0) == score_bucket(3) == 0
    assert score_bucket(4) == 1
    assert score_bucket(-1) == -1


def test_nearest_only_matches_same_action_kind():
    memory = CaseMemory(seed=1)
    memory.add(_case(kind="call_truco"))
    memory.add(_case(kind="accept"))
    matches = memory.nearest(_case().features, "accept")
    assert len(matches) == 1
    case, similarity = matches[0]
    assert case.action_kind == "accept"
    assert similarity == pytest.approx(1.0)
    assert memory.nearest(_case().features, "decline") == []


def test_nearest_orders_by_similarity():
    memory = CaseMemory(seed=2)
    far = _case(bucket=4, score_diff=-12, trick=2, phase="trick")
    near = _case(bucket=2, score_diff=1)
    memory.add(far)
    memory.add(near)
    matches = memory.nearest(_case().features, "call_truco", k=2)
    assert matches[0][0] is near
    assert 0.0 < matches[1][1] < matches[0][1] <= 1.0


def test_advise_needs_min_cases():
    memory = CaseMemory(seed=3)
    memory.add(_case(outcome="win"))
    memory.add(_case(outcome="loss"))
    assert memory.advise(_case().features, "call_truco", min_cases=3) is None
    memory.add(_case(outcome="win"))
    advice = memory.advise(_case().features, "call_truco", min_cases=3)
    assert advice is not None
    assert advice.count == 3
    assert advice.win_rate == pytest.approx(2 / 3)
    assert advice.mean_swing == pytest.approx(2 / 3)
    assert advice.mean_similarity == pytest.approx(1.0)


def test_eviction_keeps_rare_score_situations():
    memory = CaseMemory(capacity=4, seed=4)
    rare = _case(score_diff=12)
    memory.add(rare)
    evicted = [memory.add(_case(score_diff=0)) for _ in range(6)]
    assert len(memory) == 4
    assert rare in memory.cases
    assert evicted[:3] == [None, None, None]
    assert all(e is not None and score_bucket(e.features.score_diff) == 0 for e in evicted[3:])


def test_seeded_memories_agree():
    def build(seed):
        memory = CaseMemory(capacity=5, seed=seed)
        for diff in (0, 1, 2, 3, 5, 6, 0, 1):
            memory.add(_case(score_diff=diff))
        return memory

    a, b = build(9), build(9)
    assert a.cases == b.cases
    assert a.nearest(_case().features, "call_truco") == b.nearest(_case().features, "call_truco")


def test_clear():
    memory = CaseMemory(cases=[_case(), _case()])
    assert len(memory) == 2
    memory.clear()
    assert len(memory) == 0
