"""
Case memory: a bounded store of the AI's past decisions and how they turned out.

Each Case pairs a small feature snapshot (hand-strength bucket, score
differential, trick, phase, mano) with the action taken and the resolved
outcome. Lookup is a linear similarity scan over numpy feature vectors,
restricted to the same action kind; equal distances are broken by a seeded
shuffle so results are reproducible.

Eviction is not FIFO: when over capacity, a random case is dropped from the
most crowded score-differential bucket, so rare high-stakes situations
(large leads, deep deficits) survive regardless of age.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

PHASE_CONTEXTS: tuple[str, ...] = ("trick", "envido", "truco", "flor")

# Relative importance of each feature dimension in the distance.
FEATURE_WEIGHTS = np.array([2.0, 1.5, 1.0, 0.75, 0.5], dtype=np.float64)

SCORE_BUCKET_WIDTH = 4
DEFAULT_CAPACITY = 200


@dataclass(frozen=True)
class CaseFeatures:
    strength_bucket: int  # 0..4
    score_diff: int  # ai_score - player_score
    trick: int  # 0..2
    phase: str  # one of PHASE_CONTEXTS
    is_mano: bool

    def __post_init__(self) -> None:
        if not (0 <= self.strength_bucket <= 4):
            raise ValueError(f"strength_bucket out of range: {self.strength_bucket}")
        if self.phase not in PHASE_CONTEXTS:
            raise ValueError(f"Unknown phase context: {self.phase!r}")

    def vector(self) -> np.ndarray:
        diff = max(-15, min(15, self.score_diff))
        return np.array(
            [
                self.strength_bucket / 4.0,
                diff / 15.0,
                self.trick / 2.0,
                PHASE_CONTEXTS.index(self.phase) / (len(PHASE_CONTEXTS) - 1),
                1.0 if self.is_mano else 0.0,
            ],
            dtype=np.float64,
        )


@dataclass(frozen=True)
class Case:
    features: CaseFeatures
    action_kind: str
    reason_key: str
    is_bluff: bool
    strength: float
    opponent_fold_rate: float
    outcome: str  # "win" | "loss"
    points_swung: int
    round: int = 0

    @property
    def won(self) -> bool:
        return self.outcome == "win"


@dataclass(frozen=True)
class MemoryAdvice:
    count: int
    win_rate: float
    mean_swing: float
    mean_similarity: float


def score_bucket(score_diff: int) -> int:
    return score_diff // SCORE_BUCKET_WIDTH


class CaseMemory:
    """Bounded, seedable case store."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        seed: int | None = None,
        cases: Optional[List[Case]] = None,
    ):
        if capacity < 1:
            raise ValueError("CaseMemory capacity must be >= 1")
        self.capacity = capacity
        self.rng = random.Random(seed)
        self.cases: List[Case] = []
        for case in cases or []:
            self.add(case)

    def __len__(self) -> int:
        return len(self.cases)

    def clear(self) -> None:
        self.cases.clear()

    def bucket_counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for c in self.cases:
            b = score_bucket(c.features.score_diff)
            counts[b] = counts.get(b, 0) + 1
        return counts

    def add(self, case: Case) -> Case | None:
        """Append a case; returns the evicted case when capacity was exceeded."""
        self.cases.append(case)
        if len(self.cases) <= self.capacity:
            return None
        return self._evict_one()

    def _evict_one(self) -> Case:
        counts = self.bucket_counts()
        largest = max(counts.values())
        crowded = sorted(b for b, n in counts.items() if n == largest)
        bucket = self.rng.choice(crowded)
        indices = [
            i for i, c in enumerate(self.cases)
            if score_bucket(c.features.score_diff) == bucket
        ]
        return self.cases.pop(self.rng.choice(indices))

    def nearest(
        self,
        features: CaseFeatures,
        action_kind: str,
        k: int = 5,
        rng: random.Random | None = None,
    ) -> List[Tuple[Case, float]]:
        """
        Up to ``k`` most similar cases of the same action kind, with similarity in (0, 1].

        Ties are broken by shuffling with ``rng``; without one the memory's own
        generator is used, which advances its state.
        """
        pool = [c for c in self.cases if c.action_kind == action_kind]
        if not pool or k <= 0:
            return []
        (rng or self.rng).shuffle(pool)

        matrix = np.stack([c.features.vector() for c in pool])
        deltas = (matrix - features.vector()) * FEATURE_WEIGHTS
        distances = np.sqrt(np.sum(deltas * deltas, axis=1))
        order = np.argsort(distances, kind="stable")[:k]
        return [(pool[i], float(1.0 / (1.0 + distances[i]))) for i in order]

    def advise(
        self,
        features: CaseFeatures,
        action_kind: str,
        k: int = 5,
        min_cases: int = 3,
        rng: random.Random | None = None,
    ) -> MemoryAdvice | None:
        matches = self.nearest(features, action_kind, k=k, rng=rng)
        if len(matches) < min_cases:
            return None
        sims = np.array([s for _, s in matches])
        wins = np.array([1.0 if c.won else 0.0 for c, _ in matches])
        swings = np.array([float(c.points_swung) for c, _ in matches])
        return MemoryAdvice(
            count=len(matches),
            win_rate=float(np.average(wins, weights=sims)),
            mean_swing=float(np.average(swings, weights=sims)),
            mean_similarity=float(sims.mean()),
        )


__all__ = [
    "PHASE_CONTEXTS",
    "FEATURE_WEIGHTS",
    "DEFAULT_CAPACITY",
    "CaseFeatures",
    "Case",
    "MemoryAdvice",
    "CaseMemory",
    "score_bucket",
]
