"""
Learning-profile serialization and profile stores.

A profile is exported as one flat, human-diffable JSON object: the opponent
model, case memory, the player histories, card-play statistics, the round
history and (optionally) the AI reasoning log. Import validates that at least
the opponent model and card-play statistics are present; anything malformed
raises ProfileValidationError and nothing is half-applied.

Stores are the persistence boundary used by the session: they hold the
exported dict under a key (one key per game mode) and know nothing about its
contents.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .history import (
    PLAYER_LOG_LIMIT,
    CategoryStats,
    EnvidoHistoryEntry,
    PlayOrderEntry,
    PointsBreakdown,
    RoundSummary,
    TrickRecord,
    TrucoCallEntry,
    TrucoCallMeta,
    empty_card_play_stats,
)
from .memory import DEFAULT_CAPACITY, Case, CaseFeatures, CaseMemory
from .opponent_model import BluffStats, EnvidoBehavior, OpponentModel, PlayStyle
from .play import Side
from .reasoning import ReasoningEntry, entries_from_json, entries_to_json
from .state import LearningProfile

SCHEMA_VERSION = 1
REQUIRED_KEYS = ("opponent_model", "card_play_stats")


class ProfileValidationError(ValueError):
    """Imported profile data is missing required keys or is malformed."""


def storage_key(game_mode: str) -> str:
    return f"truco_profile_{game_mode}"


# --- opponent model ---------------------------------------------------------


def _model_to_dict(model: OpponentModel) -> Dict[str, Any]:
    style = model.play_style
    return {
        "envido_behavior": {
            role: {
                "call_threshold": b.call_threshold,
                "fold_rate": b.fold_rate,
                "escalation_rate": b.escalation_rate,
            }
            for role, b in model.envido_behavior.items()
        },
        "play_style": {
            "lead_with_highest_rate": style.lead_with_highest_rate,
            "bait_rate": style.bait_rate,
            "envido_primero_rate": style.envido_primero_rate,
            "counter_tendency": style.counter_tendency,
            "chain_bluff_rate": style.chain_bluff_rate,
        },
        "truco_fold_rate": model.truco_fold_rate,
        "bluff_success_rate": model.bluff_success_rate,
        "truco_bluffs": {
            role: {"attempts": s.attempts, "successes": s.successes}
            for role, s in model.truco_bluffs.items()
        },
        "observations": model.observations,
    }


def _model_from_dict(d: Dict[str, Any]) -> OpponentModel:
    model = OpponentModel()
    for role, b in d.get("envido_behavior", {}).items():
        if role not in model.envido_behavior:
            raise ProfileValidationError(f"Unknown envido role: {role!r}")
        model.envido_behavior[role] = EnvidoBehavior(
            call_threshold=float(b.get("call_threshold", 27.0)),
            fold_rate=float(b.get("fold_rate", 0.4)),
            escalation_rate=float(b.get("escalation_rate", 0.2)),
        )
    style = d.get("play_style", {})
    model.play_style = PlayStyle(
        lead_with_highest_rate=float(style.get("lead_with_highest_rate", 0.75)),
        bait_rate=float(style.get("bait_rate", 0.1)),
        envido_primero_rate=float(style.get("envido_primero_rate", 0.0)),
        counter_tendency=float(style.get("counter_tendency", 0.2)),
        chain_bluff_rate=float(style.get("chain_bluff_rate", 0.1)),
    )
    model.truco_fold_rate = float(d.get("truco_fold_rate", 0.3))
    model.bluff_success_rate = float(d.get("bluff_success_rate", 0.5))
    for role, s in d.get("truco_bluffs", {}).items():
        if role not in model.truco_bluffs:
            raise ProfileValidationError(f"Unknown bluff role: {role!r}")
        model.truco_bluffs[role] = BluffStats(
            attempts=int(s.get("attempts", 0)),
            successes=int(s.get("successes", 0)),
        )
    model.observations = int(d.get("observations", 0))
    return model


# --- case memory ------------------------------------------------------------


def _case_to_dict(case: Case) -> Dict[str, Any]:
    f = case.features
    return {
        "features": {
            "strength_bucket": f.strength_bucket,
            "score_diff": f.score_diff,
            "trick": f.trick,
            "phase": f.phase,
            "is_mano": f.is_mano,
        },
        "action_kind": case.action_kind,
        "reason_key": case.reason_key,
        "is_bluff": case.is_bluff,
        "strength": case.strength,
        "opponent_fold_rate": case.opponent_fold_rate,
        "outcome": case.outcome,
        "points_swung": case.points_swung,
        "round": case.round,
    }


def _case_from_dict(d: Dict[str, Any]) -> Case:
    f = d["features"]
    outcome = str(d["outcome"])
    if outcome not in ("win", "loss"):
        raise ProfileValidationError(f"Unknown case outcome: {outcome!r}")
    return Case(
        features=CaseFeatures(
            strength_bucket=int(f["strength_bucket"]),
            score_diff=int(f["score_diff"]),
            trick=int(f["trick"]),
            phase=str(f["phase"]),
            is_mano=bool(f["is_mano"]),
        ),
        action_kind=str(d["action_kind"]),
        reason_key=str(d.get("reason_key", "")),
        is_bluff=bool(d.get("is_bluff", False)),
        strength=float(d.get("strength", 0.0)),
        opponent_fold_rate=float(d.get("opponent_fold_rate", 0.0)),
        outcome=outcome,
        points_swung=int(d.get("points_swung", 0)),
        round=int(d.get("round", 0)),
    )


# --- histories --------------------------------------------------------------


def _stats_to_dict(stats: Dict[str, CategoryStats]) -> Dict[str, Any]:
    return {
        name: {
            "plays": s.plays,
            "wins": s.wins,
            "by_trick": list(s.by_trick),
            "as_lead": s.as_lead,
            "as_response": s.as_response,
        }
        for name, s in stats.items()
    }


def _stats_from_dict(d: Dict[str, Any]) -> Dict[str, CategoryStats]:
    stats = empty_card_play_stats()
    for name, s in d.items():
        by_trick = [int(n) for n in s.get("by_trick", [0, 0, 0])]
        if len(by_trick) != 3:
            raise ProfileValidationError(f"by_trick for {name!r} must have 3 entries")
        stats[name] = CategoryStats(
            plays=int(s.get("plays", 0)),
            wins=int(s.get("wins", 0)),
            by_trick=by_trick,
            as_lead=int(s.get("as_lead", 0)),
            as_response=int(s.get("as_response", 0)),
        )
    return stats


def _points_to_dict(p: PointsBreakdown) -> Dict[str, int]:
    return {"truco": p.truco, "envido": p.envido, "flor": p.flor}


def _points_from_dict(d: Dict[str, Any]) -> PointsBreakdown:
    return PointsBreakdown(
        truco=int(d.get("truco", 0)),
        envido=int(d.get("envido", 0)),
        flor=int(d.get("flor", 0)),
    )


def _call_meta_to_dict(meta: Optional[TrucoCallMeta]) -> Optional[Dict[str, Any]]:
    if meta is None:
        return None
    return {"hand_strength": meta.hand_strength, "is_bluff": meta.is_bluff}


def _call_meta_from_dict(d: Optional[Dict[str, Any]]) -> Optional[TrucoCallMeta]:
    if d is None:
        return None
    return TrucoCallMeta(hand_strength=int(d["hand_strength"]), is_bluff=bool(d["is_bluff"]))


def _round_to_dict(r: RoundSummary) -> Dict[str, Any]:
    return {
        "round": r.round,
        "mano": r.mano.value,
        "player_hand": list(r.player_hand),
        "ai_hand": list(r.ai_hand),
        "player_envido": r.player_envido,
        "ai_envido": r.ai_envido,
        "calls": list(r.calls),
        "tricks": [{"player": t.player, "ai": t.ai, "winner": t.winner} for t in r.tricks],
        "player_truco_call": _call_meta_to_dict(r.player_truco_call),
        "ai_truco_call": _call_meta_to_dict(r.ai_truco_call),
        "player_points": _points_to_dict(r.player_points),
        "ai_points": _points_to_dict(r.ai_points),
        "round_winner": r.round_winner.value if r.round_winner is not None else None,
        "closed": r.closed,
    }


def _round_from_dict(d: Dict[str, Any]) -> RoundSummary:
    winner = d.get("round_winner")
    return RoundSummary(
        round=int(d["round"]),
        mano=Side(d["mano"]),
        player_hand=list(d.get("player_hand", [])),
        ai_hand=list(d.get("ai_hand", [])),
        player_envido=int(d.get("player_envido", 0)),
        ai_envido=int(d.get("ai_envido", 0)),
        calls=list(d.get("calls", [])),
        tricks=[
            TrickRecord(player=t.get("player"), ai=t.get("ai"), winner=t.get("winner"))
            for t in d.get("tricks", [{}, {}, {}])
        ],
        player_truco_call=_call_meta_from_dict(d.get("player_truco_call")),
        ai_truco_call=_call_meta_from_dict(d.get("ai_truco_call")),
        player_points=_points_from_dict(d.get("player_points", {})),
        ai_points=_points_from_dict(d.get("ai_points", {})),
        round_winner=Side(winner) if winner is not None else None,
        closed=bool(d.get("closed", True)),
    )


# --- profile ----------------------------------------------------------------


def profile_to_dict(
    profile: LearningProfile,
    *,
    reasoning_log: Sequence[ReasoningEntry] = (),
    metadata: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """
    Serialize a LearningProfile to a JSON-compatible dict.

    Args:
        profile: The profile to serialize.
        reasoning_log: AI reasoning entries to include alongside it.
        metadata: Optional extra metadata (e.g. game mode).

    Returns:
        Dict with schema_version, exported_at and one key per profile part.
    """
    memory = profile.case_memory
    result: Dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "opponent_model": _model_to_dict(profile.opponent_model),
        "case_memory": {
            "capacity": memory.capacity,
            "cases": [_case_to_dict(c) for c in memory.cases],
        },
        "envido_history": [
            {"round": e.round, "envido": e.envido, "action": e.action, "was_mano": e.was_mano}
            for e in profile.envido_history
        ],
        "play_order_history": [
            {
                "round": e.round,
                "trick": e.trick,
                "card": e.card,
                "was_lead": e.was_lead,
                "was_highest": e.was_highest,
                "hand_strength": e.hand_strength,
            }
            for e in profile.play_order_history
        ],
        "truco_call_history": [
            {"round": e.round, "strength": e.strength, "is_mano": e.is_mano, "is_bluff": e.is_bluff}
            for e in profile.truco_call_history
        ],
        "card_play_stats": _stats_to_dict(profile.card_play_stats),
        "round_history": [_round_to_dict(r) for r in profile.round_history],
        "player_action_history": list(profile.player_action_history),
        "ai_reasoning_log": entries_to_json(reasoning_log),
    }
    if metadata:
        result["metadata"] = metadata
    return result


def _require(d: Any) -> None:
    if not isinstance(d, dict):
        raise ProfileValidationError("Profile data must be a JSON object")
    missing = [k for k in REQUIRED_KEYS if not isinstance(d.get(k), dict)]
    if missing:
        raise ProfileValidationError(f"Profile data is missing {', '.join(missing)}")


def profile_from_dict(
    d: Dict[str, Any],
    *,
    memory_capacity: int | None = None,
    seed: int | None = None,
) -> LearningProfile:
    """
    Deserialize a LearningProfile from a dict (e.g. from JSON).

    The stored case-memory capacity is used unless ``memory_capacity`` is
    given. Raises ProfileValidationError on missing keys or malformed values.
    """
    _require(d)
    try:
        memory_d = d.get("case_memory", {})
        capacity = memory_capacity or int(memory_d.get("capacity", DEFAULT_CAPACITY))
        return LearningProfile(
            opponent_model=_model_from_dict(d["opponent_model"]),
            case_memory=CaseMemory(
                capacity=capacity,
                seed=seed,
                cases=[_case_from_dict(c) for c in memory_d.get("cases", [])],
            ),
            envido_history=[
                EnvidoHistoryEntry(
                    round=int(e["round"]),
                    envido=int(e["envido"]),
                    action=str(e["action"]),
                    was_mano=bool(e["was_mano"]),
                )
                for e in d.get("envido_history", [])[-PLAYER_LOG_LIMIT:]
            ],
            play_order_history=[
                PlayOrderEntry(
                    round=int(e["round"]),
                    trick=int(e["trick"]),
                    card=str(e["card"]),
                    was_lead=bool(e["was_lead"]),
                    was_highest=bool(e["was_highest"]),
                    hand_strength=int(e["hand_strength"]),
                )
                for e in d.get("play_order_history", [])[-PLAYER_LOG_LIMIT:]
            ],
            truco_call_history=[
                TrucoCallEntry(
                    round=int(e["round"]),
                    strength=int(e["strength"]),
                    is_mano=bool(e["is_mano"]),
                    is_bluff=bool(e["is_bluff"]),
                )
                for e in d.get("truco_call_history", [])[-PLAYER_LOG_LIMIT:]
            ],
            card_play_stats=_stats_from_dict(d["card_play_stats"]),
            round_history=[_round_from_dict(r) for r in d.get("round_history", [])],
            player_action_history=[str(a) for a in d.get("player_action_history", [])],
        )
    except ProfileValidationError:
        raise
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise ProfileValidationError(f"Malformed profile data: {exc}") from exc


def reasoning_log_from_dict(d: Dict[str, Any]) -> List[ReasoningEntry]:
    """The AI reasoning log stored with an exported profile (empty if absent)."""
    try:
        return entries_from_json(d.get("ai_reasoning_log", []))
    except (KeyError, TypeError, ValueError) as exc:
        raise ProfileValidationError(f"Malformed reasoning log: {exc}") from exc


def profile_to_json(
    profile: LearningProfile,
    *,
    reasoning_log: Sequence[ReasoningEntry] = (),
    metadata: Dict[str, Any] | None = None,
) -> str:
    """Serialize a LearningProfile to a JSON string."""
    return json.dumps(profile_to_dict(profile, reasoning_log=reasoning_log, metadata=metadata), indent=2)


def profile_from_json(s: str, **kwargs: Any) -> LearningProfile:
    """Deserialize a LearningProfile from a JSON string."""
    return profile_from_dict(_parse(s), **kwargs)


def _parse(s: str) -> Dict[str, Any]:
    try:
        return json.loads(s)
    except json.JSONDecodeError as exc:
        raise ProfileValidationError(f"Invalid JSON: {exc}") from exc


# --- stores -----------------------------------------------------------------


class ProfileStore(Protocol):
    """Key-value persistence boundary for exported profile dicts."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Stored data for ``key``, or None when nothing is stored."""

    def save(self, key: str, data: Dict[str, Any]) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class MemoryProfileStore:
    """In-process store; used by tests and by sessions that should not touch disk."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, data: Dict[str, Any]) -> None:
        self._data[key] = json.dumps(data)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileProfileStore:
    """
    One JSON file per key under ``directory``.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a truncated profile behind.

    Usage:
        store = JsonFileProfileStore(".truco")
        store.save(storage_key("playing"), profile_to_dict(profile))
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, data: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def clear(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()


__all__ = [
    "SCHEMA_VERSION",
    "ProfileValidationError",
    "storage_key",
    "profile_to_dict",
    "profile_from_dict",
    "profile_to_json",
    "profile_from_json",
    "reasoning_log_from_dict",
    "ProfileStore",
    "MemoryProfileStore",
    "JsonFileProfileStore",
]
