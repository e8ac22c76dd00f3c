"""Tests for session configuration."""
import json
from pathlib import Path

import pytest

from truco.config import TrucoConfig, config_from_dict, config_to_dict, load_config


def test_defaults():
    cfg = TrucoConfig()
    assert cfg.target_score == 15
    assert cfg.flor_enabled
    assert cfg.archetype == "Balanced"
    assert cfg.game_mode == "playing"
    assert cfg.storage_key == "truco_profile_playing"
    assert TrucoConfig(game_mode="playing-with-help").storage_key == "truco_profile_playing-with-help"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"target_score": 0},
        {"archetype": "Reckless"},
        {"game_mode": "spectating"},
        {"ai_delay": -0.5},
        {"learning_rate": 0.0},
        {"learning_rate": 1.5},
        {"memory_capacity": 0},
        {"memory_min_cases": 0},
        {"memory_weight": -1.0},
        {"simulation_iterations": 0},
        {"opponent_samples": 0},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TrucoConfig(**kwargs)


def test_dict_round_trip_ignores_unknown_keys():
    cfg = TrucoConfig(archetype="Cautious", target_score=30, seed=4)
    d = config_to_dict(cfg)
    d["unused"] = True
    assert config_from_dict(d) == cfg


def test_load_config(tmp_path: Path):
    path = tmp_path / "truco.json"
    path.write_text(json.dumps({"archetype": "Deceptive", "ai_delay": 0.25}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg.archetype == "Deceptive"
    assert cfg.ai_delay == 0.25

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
