"""
A playing session: the one owner of the game state.

Session serializes every transition behind a lock (single writer), asks the
AI for its move as soon as it is the AI's turn and applies that move through
the DelayedScheduler, and saves the learning profile when a round or match
ends. Saving runs on a background worker and never blocks play; failures are
logged and retried at the next trigger.

Usage:
    with Session(TrucoConfig(ai_delay=0.5), store=JsonFileProfileStore(".truco")) as session:
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, Side.PLAYER, card_index=0))
        session.wait_for_ai()
"""
from __future__ import annotations

import json
import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .actions import Action, ActionKind
from .ai import AiDecision, TrucoAI, suggest_move
from .config import TrucoConfig
from .game import StepResult, apply_action, is_turn_of, legal_actions, new_match
from .persistence import (
    MemoryProfileStore,
    ProfileStore,
    ProfileValidationError,
    profile_from_dict,
    profile_to_dict,
    profile_to_json,
    reasoning_log_from_dict,
)
from .play import Side
from .profile_analysis import TraitObservation, analyze_profile
from .scheduler import DelayedScheduler
from .state import GamePhase, GameState, LearningProfile, new_profile

logger = logging.getLogger(__name__)

# Phases after which the profile is saved.
SAVE_PHASES = (GamePhase.ROUND_END, GamePhase.GAME_OVER)
SUPERSEDING_ACTIONS = (ActionKind.START_ROUND, ActionKind.RESTART_MATCH)

Listener = Callable[[GameState], None]


class Session:
    """Owns the state, the AI, the profile store and the scheduler."""

    def __init__(
        self,
        config: TrucoConfig | None = None,
        store: ProfileStore | None = None,
        ai: TrucoAI | None = None,
        scheduler: DelayedScheduler | None = None,
    ) -> None:
        self.config = config or TrucoConfig()
        self.store: ProfileStore = store if store is not None else MemoryProfileStore()
        cfg = self.config
        self.ai = ai or TrucoAI(
            archetype=cfg.archetype,
            seed=cfg.seed,
            simulation_iterations=cfg.simulation_iterations,
            opponent_samples=cfg.opponent_samples,
            memory_weight=cfg.memory_weight,
            memory_min_cases=cfg.memory_min_cases,
        )
        self.scheduler = scheduler or DelayedScheduler(cfg.ai_delay)
        # Plays the player's seat in help mode, with its own random stream.
        self._advisor = TrucoAI(
            seed=cfg.seed,
            simulation_iterations=cfg.simulation_iterations,
            opponent_samples=cfg.opponent_samples,
        )
        self._rng = random.Random(cfg.seed)
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="truco-save")
            if cfg.async_persistence
            else None
        )
        self._listeners: List[Listener] = []
        self.state: GameState = new_match(
            target_score=cfg.target_score,
            flor_enabled=cfg.flor_enabled,
            profile=self._fresh_profile(),
            learning_rate=cfg.learning_rate,
        )
        self.version = 0
        self.last_decision: Optional[AiDecision] = None
        self.degraded_decisions = 0

    # ------------------------------------------------------------ lifecycle

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """
        Drop any pending AI move and wait for outstanding saves.

        Saves requested after closing (an AI move already running) are
        written synchronously.
        """
        with self._lock:
            self.scheduler.cancel()
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener(state)`` after every accepted transition (any thread)."""
        self._listeners.append(listener)

    @property
    def help_enabled(self) -> bool:
        return self.config.game_mode == "playing-with-help"

    def start(self) -> GameState:
        """Load the stored profile and deal the first round."""
        with self._lock:
            profile = self._load_profile() or self.state.profile
            self.state = replace(self.state, profile=profile)
            self.dispatch(Action(ActionKind.START_ROUND))
            return self.state

    # ------------------------------------------------------------- dispatch

    def dispatch(self, action: Action) -> StepResult:
        """
        Apply ``action`` to the current state.

        Illegal actions are rejected without changing anything. Starting a
        round or restarting the match cancels any AI move still pending.
        """
        with self._lock:
            if action.kind in SUPERSEDING_ACTIONS:
                self.scheduler.cancel()
            result = apply_action(self.state, action, self._rng)
            if not result.accepted:
                return result
            self.state = result.state
            self.version += 1
            if self.state.phase in SAVE_PHASES:
                self.save_profile()
            self._schedule_ai()
            state = self.state
        for listener in list(self._listeners):
            listener(state)
        return result

    def legal_actions(self, side: Side = Side.PLAYER) -> List[Action]:
        with self._lock:
            return legal_actions(self.state, side)

    @property
    def ai_pending(self) -> bool:
        return self.scheduler.pending

    def wait_for_ai(self, timeout: float | None = None) -> bool:
        """Block until the AI has no move pending; False on timeout."""
        return self.scheduler.wait(timeout)

    def step_ai(self) -> bool:
        """Apply the pending AI move now instead of waiting for the delay."""
        return self.scheduler.run_pending()

    def suggestion(self) -> Optional[AiDecision]:
        """What the AI would play in the player's seat; None when it is not their turn."""
        with self._lock:
            if not is_turn_of(self.state, Side.PLAYER):
                return None
            return suggest_move(self.state, self._advisor)

    def _schedule_ai(self) -> None:
        if not is_turn_of(self.state, Side.AI):
            return
        decision = self.ai.decide(self.state)
        self.last_decision = decision
        if decision.degraded:
            self.degraded_decisions += 1
        version = self.version
        self.scheduler.schedule(
            lambda: self._apply_ai(decision.action, version),
            label=f"{decision.action.kind.value}@{version}",
        )

    def _apply_ai(self, action: Action, version: int) -> None:
        with self._lock:
            if version != self.version:
                logger.debug("Discarding AI %s computed for state version %d", action.kind.value, version)
                return
            result = self.dispatch(action)
        if not result.accepted:
            logger.warning("AI move %s rejected: %s", action.kind.value, result.error)

    # -------------------------------------------------------------- profile

    def _fresh_profile(self) -> LearningProfile:
        return new_profile(self.config.memory_capacity, seed=self.config.seed)

    def _load_profile(self) -> Optional[LearningProfile]:
        key = self.config.storage_key
        try:
            data = self.store.load(key)
        except (OSError, ValueError):
            logger.warning("Could not read stored profile %s; clearing it", key, exc_info=True)
            self._clear_store()
            return None
        if data is None:
            return None
        try:
            profile = profile_from_dict(data, memory_capacity=self.config.memory_capacity, seed=self.config.seed)
            self.state.ai_reasoning_log[:] = reasoning_log_from_dict(data)
        except ProfileValidationError as exc:
            logger.warning("Stored profile %s is invalid (%s); clearing it", key, exc)
            self._clear_store()
            return None
        return profile

    def _clear_store(self) -> None:
        try:
            self.store.clear(self.config.storage_key)
        except (OSError, ValueError):
            logger.warning("Could not clear stored profile", exc_info=True)

    def _save(self, key: str, data: Dict[str, Any]) -> None:
        try:
            self.store.save(key, data)
        except (OSError, ValueError):
            logger.warning("Could not save profile %s", key, exc_info=True)

    def save_profile(self) -> Optional[Future]:
        """
        Persist the learning profile.

        The snapshot is taken now; writing happens on the background worker
        when async persistence is enabled (the returned Future completes then).
        """
        key = self.config.storage_key
        with self._lock:
            data = profile_to_dict(
                self.state.profile,
                reasoning_log=self.state.ai_reasoning_log,
                metadata={"game_mode": self.config.game_mode},
            )
            if self._executor is not None:
                return self._executor.submit(self._save, key, data)
        self._save(key, data)
        return None

    def export_profile(self) -> str:
        with self._lock:
            return profile_to_json(
                self.state.profile,
                reasoning_log=self.state.ai_reasoning_log,
                metadata={"game_mode": self.config.game_mode},
            )

    def import_profile(self, payload: str | Dict[str, Any]) -> bool:
        """
        Replace the learning profile with imported data.

        Returns False, leaving the current profile untouched, when the data
        is not valid JSON or lacks the opponent model or card statistics.
        """
        try:
            data = json.loads(payload) if isinstance(payload, str) else payload
            profile = profile_from_dict(data, memory_capacity=self.config.memory_capacity, seed=self.config.seed)
            log = reasoning_log_from_dict(data)
        except (json.JSONDecodeError, ProfileValidationError) as exc:
            logger.info("Rejected profile import: %s", exc)
            return False
        with self._lock:
            self.state = replace(self.state, profile=profile, ai_reasoning_log=log)
        self.save_profile()
        return True

    def reset_profile(self) -> None:
        """Forget everything learned about the player, in memory and in the store."""
        with self._lock:
            self.state = replace(self.state, profile=self._fresh_profile(), ai_reasoning_log=[])
        self._clear_store()

    def analysis(self) -> List[TraitObservation]:
        with self._lock:
            return analyze_profile(self.state.profile)


__all__ = ["Session", "SAVE_PHASES"]
