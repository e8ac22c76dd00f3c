"""Tests for learning-profile serialization and the profile stores."""
import json
from pathlib import Path

import pytest

from truco.agents import AiAgent, RandomAgent
from truco.ai import TrucoAI
from truco.history import PLAYER_LOG_LIMIT
from truco.match import run_match
from truco.persistence import (
    SCHEMA_VERSION,
    JsonFileProfileStore,
    MemoryProfileStore,
    ProfileValidationError,
    profile_from_dict,
    profile_from_json,
    profile_to_dict,
    profile_to_json,
    reasoning_log_from_dict,
    storage_key,
)
from truco.state import new_profile


def _played():
    """A profile and reasoning log after one short match against the AI."""
    ai = AiAgent(TrucoAI(seed=0, simulation_iterations=8, opponent_samples=3))
    result = run_match(RandomAgent(seed=1), ai, target_score=9, seed=2)
    return result.state.profile, result.state.ai_reasoning_log


def _comparable(d):
    d = json.loads(json.dumps(d))
    d.pop("exported_at")
    return d


def test_round_trip_dict():
    profile, log = _played()
    d = profile_to_dict(profile, reasoning_log=log, metadata={"game_mode": "playing"})
    assert d["schema_version"] == SCHEMA_VERSION
    assert d["metadata"] == {"game_mode": "playing"}
    assert d["exported_at"]
    assert d["round_history"]

    restored = profile_from_dict(json.loads(json.dumps(d)))
    again = profile_to_dict(restored, reasoning_log=reasoning_log_from_dict(d), metadata={"game_mode": "playing"})
    assert _comparable(again) == _comparable(d)
    assert len(restored.case_memory) == len(profile.case_memory)
    assert restored.round_history[-1].round_winner is profile.round_history[-1].round_winner


def test_round_trip_json():
    profile, log = _played()
    s = profile_to_json(profile, reasoning_log=log)
    restored = profile_from_json(s)
    assert restored.opponent_model == profile.opponent_model
    assert restored.truco_call_history == profile.truco_call_history
    assert restored.card_play_stats == profile.card_play_stats
    entries = reasoning_log_from_dict(json.loads(s))
    assert len(entries) == len(log)


def test_capacity_override():
    d = profile_to_dict(new_profile(memory_capacity=50))
    assert d["case_memory"]["capacity"] == 50
    assert profile_from_dict(d).case_memory.capacity == 50
    assert profile_from_dict(d, memory_capacity=10).case_memory.capacity == 10


def test_oversized_player_logs_keep_the_newest_entries():
    d = profile_to_dict(new_profile())
    d["truco_call_history"] = [
        {"round": i, "strength": 20, "is_mano": True, "is_bluff": False} for i in range(PLAYER_LOG_LIMIT + 50)
    ]
    restored = profile_from_dict(d)
    assert len(restored.truco_call_history) == PLAYER_LOG_LIMIT
    assert restored.truco_call_history[0].round == 50
    assert restored.truco_call_history[-1].round == PLAYER_LOG_LIMIT + 49


def test_missing_required_keys():
    d = profile_to_dict(new_profile())
    for key in ("opponent_model", "card_play_stats"):
        broken = dict(d)
        del broken[key]
        with pytest.raises(ProfileValidationError):
            profile_from_dict(broken)
    with pytest.raises(ProfileValidationError):
        profile_from_dict([1, 2, 3])
    with pytest.raises(ProfileValidationError):
        profile_from_dict({"opponent_model": "yes", "card_play_stats": {}})


def test_malformed_values():
    d = profile_to_dict(new_profile())
    d["opponent_model"]["envido_behavior"]["dealer"] = {}
    with pytest.raises(ProfileValidationError):
        profile_from_dict(d)

    d = profile_to_dict(new_profile())
    d["card_play_stats"]["brava"] = {"by_trick": [1, 2]}
    with pytest.raises(ProfileValidationError):
        profile_from_dict(d)

    d = profile_to_dict(new_profile())
    d["envido_history"] = [{"round": 1}]
    with pytest.raises(ProfileValidationError):
        profile_from_dict(d)

    d = profile_to_dict(new_profile())
    d["case_memory"]["cases"] = [
        {
            "features": {"strength_bucket": 1, "score_diff": 0, "trick": 0, "phase": "truco", "is_mano": True},
            "action_kind": "call_truco",
            "outcome": "draw",
        }
    ]
    with pytest.raises(ProfileValidationError):
        profile_from_dict(d)


def test_invalid_json():
    with pytest.raises(ProfileValidationError):
        profile_from_json("{not json")
    assert issubclass(ProfileValidationError, ValueError)


def test_memory_store():
    store = MemoryProfileStore()
    key = storage_key("playing")
    assert key == "truco_profile_playing"
    assert store.load(key) is None
    store.save(key, {"a": 1})
    assert key in store
    assert store.load(key) == {"a": 1}
    store.clear(key)
    assert store.load(key) is None
    store.clear(key)


def test_json_file_store(tmp_path: Path):
    store = JsonFileProfileStore(tmp_path / "profiles")
    key = storage_key("playing-with-help")
    assert store.load(key) is None

    data = profile_to_dict(new_profile())
    store.save(key, data)
    path = store.path_for(key)
    assert path == tmp_path / "profiles" / "truco_profile_playing-with-help.json"
    assert path.exists()
    assert list(path.parent.iterdir()) == [path]
    assert store.load(key) == json.loads(json.dumps(data))

    store.clear(key)
    assert not path.exists()
    store.clear(key)


def test_json_file_store_corrupt_file(tmp_path: Path):
    store = JsonFileProfileStore(tmp_path)
    store.path_for("k").write_text("{oops", encoding="utf-8")
    with pytest.raises(ValueError):
        store.load("k")
