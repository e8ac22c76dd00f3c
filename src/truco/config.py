"""
Runtime configuration for a Truco session.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .ai import ARCHETYPES
from .persistence import storage_key

GAME_MODES = ("playing", "playing-with-help")


@dataclass
class TrucoConfig:
    """Match rules, AI tuning and persistence settings."""

    target_score: int = 15
    flor_enabled: bool = True
    archetype: str = "Balanced"
    ai_delay: float = 1.0  # seconds before the AI's move is applied
    learning_rate: float = 0.05
    memory_capacity: int = 200
    memory_min_cases: int = 3
    memory_weight: float = 0.5
    simulation_iterations: int = 60
    opponent_samples: int = 6
    game_mode: str = "playing"  # "playing" | "playing-with-help"
    profile_dir: str = ".truco"
    async_persistence: bool = True
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        validate_config(self)

    @property
    def storage_key(self) -> str:
        return storage_key(self.game_mode)


def validate_config(cfg: TrucoConfig) -> None:
    if cfg.target_score < 1:
        raise ValueError("target_score must be >= 1")
    if cfg.archetype not in ARCHETYPES:
        raise ValueError(f"Unknown archetype {cfg.archetype!r}; expected one of {', '.join(ARCHETYPES)}")
    if cfg.game_mode not in GAME_MODES:
        raise ValueError(f"Unknown game mode {cfg.game_mode!r}; expected one of {', '.join(GAME_MODES)}")
    if cfg.ai_delay < 0:
        raise ValueError("ai_delay must be >= 0")
    if not (0.0 < cfg.learning_rate <= 1.0):
        raise ValueError("learning_rate must be in (0, 1]")
    if cfg.memory_capacity < 1:
        raise ValueError("memory_capacity must be >= 1")
    if cfg.memory_min_cases < 1:
        raise ValueError("memory_min_cases must be >= 1")
    if cfg.memory_weight < 0:
        raise ValueError("memory_weight must be >= 0")
    if cfg.simulation_iterations < 1 or cfg.opponent_samples < 1:
        raise ValueError("simulation_iterations and opponent_samples must be >= 1")


def config_to_dict(cfg: TrucoConfig) -> Dict[str, Any]:
    return asdict(cfg)


def config_from_dict(d: Dict[str, Any]) -> TrucoConfig:
    """Build a TrucoConfig from a dict; unknown keys are ignored."""
    known = {f.name for f in fields(TrucoConfig)}
    return TrucoConfig(**{k: v for k, v in d.items() if k in known})


def load_config(path: str | Path) -> TrucoConfig:
    with Path(path).open("r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ValueError(f"Config file {path} must hold a JSON object")
    return config_from_dict(payload)


__all__ = [
    "GAME_MODES",
    "TrucoConfig",
    "validate_config",
    "config_to_dict",
    "config_from_dict",
    "load_config",
]
