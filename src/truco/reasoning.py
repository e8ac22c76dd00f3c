"""
AI reasoning trace items.

Each item is either literal text or a structured record ``{key, options}`` that
a UI can localize later. ``render`` gives a plain-English fallback for the CLI
and logs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Union


@dataclass(frozen=True)
class ReasoningRecord:
    key: str
    options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        if self.options:
            return {"key": self.key, "options": dict(self.options)}
        return {"key": self.key}


ReasoningItem = Union[str, ReasoningRecord]


@dataclass
class ReasoningEntry:
    """All reasoning produced for one AI decision, tagged by round number."""

    round: int
    items: List[ReasoningItem] = field(default_factory=list)


def record(key: str, **options: Any) -> ReasoningRecord:
    return ReasoningRecord(key=key, options=options)


def render(item: ReasoningItem) -> str:
    if isinstance(item, str):
        return item
    if not item.options:
        return item.key
    opts = ", ".join(f"{k}={v}" for k, v in item.options.items())
    return f"{item.key} ({opts})"


def item_to_json(item: ReasoningItem) -> Any:
    return item if isinstance(item, str) else item.to_dict()


def item_from_json(data: Any) -> ReasoningItem:
    if isinstance(data, str):
        return data
    if isinstance(data, dict) and "key" in data:
        return ReasoningRecord(key=str(data["key"]), options=dict(data.get("options", {})))
    raise ValueError(f"Invalid reasoning item: {data!r}")


def entries_to_json(entries: Sequence[ReasoningEntry]) -> List[Dict[str, Any]]:
    return [
        {"round": e.round, "reasoning": [item_to_json(i) for i in e.items]}
        for e in entries
    ]


def entries_from_json(data: Sequence[Dict[str, Any]]) -> List[ReasoningEntry]:
    return [
        ReasoningEntry(
            round=int(d["round"]),
            items=[item_from_json(i) for i in d.get("reasoning", [])],
        )
        for d in data
    ]


__all__ = [
    "ReasoningRecord",
    "ReasoningItem",
    "ReasoningEntry",
    "record",
    "render",
    "item_to_json",
    "item_from_json",
    "entries_to_json",
    "entries_from_json",
]
