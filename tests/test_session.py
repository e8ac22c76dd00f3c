"""Tests for the session: single writer, delayed AI moves, profile persistence."""
import json

from truco.actions import Action, ActionKind
from truco.config import TrucoConfig
from truco.persistence import MemoryProfileStore, profile_to_dict
from truco.play import Side
from truco.state import GamePhase, new_profile
from truco.session import Session


def _config(**kwargs):
    base = dict(
        ai_delay=60.0,
        async_persistence=False,
        seed=3,
        target_score=5,
        simulation_iterations=8,
        opponent_samples=3,
    )
    base.update(kwargs)
    return TrucoConfig(**base)


def _play_out(session, limit=2000):
    """Play the player's side with its first legal action, applying AI moves synchronously."""
    for _ in range(limit):
        state = session.state
        if state.phase is GamePhase.GAME_OVER:
            return state
        if session.ai_pending:
            session.step_ai()
        elif state.phase is GamePhase.ROUND_END:
            session.dispatch(Action(ActionKind.START_ROUND))
        else:
            session.dispatch(session.legal_actions(Side.PLAYER)[0])
    raise AssertionError("match did not finish")


class _BrokenStore(MemoryProfileStore):
    def load(self, key):
        raise OSError("disk gone")

    def save(self, key, data):
        raise OSError("disk gone")


def test_start_deals_first_round():
    with Session(_config()) as session:
        state = session.start()
        assert state.phase is GamePhase.TRICK_1
        assert state.current_turn is Side.PLAYER
        assert session.version == 1
        assert not session.ai_pending


def test_full_match_saves_profile():
    store = MemoryProfileStore()
    with Session(_config(), store=store) as session:
        session.start()
        state = _play_out(session)
        assert state.winner is not None
        assert session.config.storage_key in store
        stored = store.load(session.config.storage_key)
        assert len(stored["round_history"]) == state.round
        assert stored["metadata"] == {"game_mode": "playing"}
        assert session.degraded_decisions == 0


def test_illegal_action_changes_nothing():
    with Session(_config()) as session:
        session.start()
        version = session.version
        state = session.state
        result = session.dispatch(Action(ActionKind.ACCEPT, actor=Side.PLAYER))
        assert not result.accepted
        assert session.version == version
        assert session.state is state


def test_ai_move_waits_for_the_delay():
    with Session(_config()) as session:
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, actor=Side.PLAYER, card_index=0))
        assert session.ai_pending
        assert session.last_decision is not None
        assert session.state.current_turn is Side.AI
        assert session.step_ai()
        assert not session.ai_pending or session.state.current_turn is Side.AI


def test_ai_move_applies_on_timer():
    with Session(_config(ai_delay=0.0)) as session:
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, actor=Side.PLAYER, card_index=0))
        assert session.wait_for_ai(timeout=30)
        assert session.state.ai_tricks[0] is not None or session.state.phase is not GamePhase.TRICK_1


def test_stale_ai_move_is_discarded():
    with Session(_config()) as session:
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, actor=Side.PLAYER, card_index=0))
        action = session.last_decision.action
        stale_version = session.version - 1
        state = session.state
        session._apply_ai(action, stale_version)
        assert session.state is state


def test_restart_cancels_pending_ai_move():
    with Session(_config()) as session:
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, actor=Side.PLAYER, card_index=0))
        pending = session.scheduler._last
        session.dispatch(Action(ActionKind.RESTART_MATCH))
        assert pending.cancelled
        assert session.state.round == 1
        assert session.state.player_score == 0 and session.state.ai_score == 0


def test_listeners_see_every_transition():
    seen = []
    with Session(_config()) as session:
        session.add_listener(lambda state: seen.append(state.phase))
        session.start()
        session.dispatch(Action(ActionKind.PLAY_CARD, actor=Side.PLAYER, card_index=0))
    assert seen == [GamePhase.TRICK_1, GamePhase.TRICK_1]


def test_invalid_stored_profile_is_cleared():
    store = MemoryProfileStore()
    key = _config().storage_key
    store.save(key, {"opponent_model": "broken"})
    with Session(_config(), store=store) as session:
        session.start()
        assert key not in store
        assert session.state.profile.round_history


def test_stored_profile_is_loaded():
    store = MemoryProfileStore()
    profile = new_profile()
    profile.opponent_model.truco_fold_rate = 0.9
    key = _config().storage_key
    store.save(key, profile_to_dict(profile))
    with Session(_config(), store=store) as session:
        session.start()
        assert session.state.profile.opponent_model.truco_fold_rate == 0.9


def test_store_failures_do_not_stop_play():
    with Session(_config(), store=_BrokenStore()) as session:
        session.start()
        assert session.save_profile() is None
        assert session.state.phase is GamePhase.TRICK_1


def test_background_save():
    store = MemoryProfileStore()
    with Session(_config(async_persistence=True), store=store) as session:
        session.start()
        future = session.save_profile()
        assert future is not None
        future.result(timeout=10)
        assert session.config.storage_key in store


def test_saves_after_close_are_written_synchronously():
    store = MemoryProfileStore()
    session = Session(_config(async_persistence=True), store=store)
    session.start()
    session.close()
    # Moves still arriving after close must not hit the stopped worker.
    state = _play_out(session)
    assert state.phase is GamePhase.GAME_OVER
    assert session.save_profile() is None
    saved = store.load(session.config.storage_key)
    assert len(saved["round_history"]) == len(state.profile.round_history)
    session.close()


def test_import_export_and_reset():
    store = MemoryProfileStore()
    key = _config().storage_key
    with Session(_config(), store=store) as session:
        session.start()
        before = session.state.profile
        assert not session.import_profile("{not json")
        assert not session.import_profile(json.dumps({"opponent_model": {}}))
        assert session.state.profile is before

        exported = json.loads(session.export_profile())
        assert exported["metadata"] == {"game_mode": "playing"}
        exported["opponent_model"]["truco_fold_rate"] = 0.8
        assert session.import_profile(exported)
        assert session.state.profile.opponent_model.truco_fold_rate == 0.8
        assert store.load(key)["opponent_model"]["truco_fold_rate"] == 0.8

        session.reset_profile()
        assert key not in store
        assert session.state.profile.opponent_model.truco_fold_rate == 0.3
        assert session.state.ai_reasoning_log == []


def test_help_mode_and_analysis():
    with Session(_config(game_mode="playing-with-help")) as session:
        assert session.help_enabled
        session.start()
        observations = session.analysis()
        assert observations[0].title_key == "traits.not_enough_data.title"
    with Session(_config()) as session:
        assert not session.help_enabled


def test_suggestion_only_on_the_players_turn():
    with Session(_config(game_mode="playing-with-help")) as session:
        session.start()
        suggestion = session.suggestion()
        assert suggestion is not None
        assert suggestion.action.actor is Side.PLAYER
        legal = {(a.kind, a.card_index) for a in session.legal_actions(Side.PLAYER)}
        assert (suggestion.action.kind, suggestion.action.card_index) in legal
        session.dispatch(Action(ActionKind.PLAY_CARD, Side.PLAYER, card_index=0))
        assert session.ai_pending
        assert session.suggestion() is None
