"""CLI-level smoke tests."""
import json
from pathlib import Path

import pytest

from truco.cli import (
    _cmd_export_profile,
    _cmd_import_profile,
    _cmd_reset_profile,
    _cmd_scenario,
    _cmd_show_profile,
    _cmd_simulate,
    _config_from_args,
    build_parser,
    main,
    play_loop,
)
from truco.config import TrucoConfig
from truco.persistence import MemoryProfileStore
from truco.session import Session
from truco.state import GamePhase


class _Args:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


def _profile_args(tmp_path: Path, **kwargs):
    return _Args(config=None, mode=None, profile_dir=str(tmp_path), **kwargs)


def test_scenario_prints_decision(capsys):
    _cmd_scenario(_Args(name="flor_vs_envido", archetype="Balanced", seed=0, reasoning=True))
    out = capsys.readouterr().out
    assert out.startswith("flor_vs_envido: ")
    assert "  -> declare flor" in out
    assert "ai_logic.final_decision" in out


def test_simulate_reports_results(capsys):
    _cmd_simulate(
        _Args(
            matches=2,
            seed=0,
            archetype="Aggressive",
            target_score=5,
            no_flor=False,
            simulation_iterations=5,
        )
    )
    out = capsys.readouterr().out
    assert "[match 1/2]" in out
    assert "[match 2/2]" in out
    assert "AI wins: " in out
    assert "Average score: " in out


def test_profile_commands(tmp_path: Path, capsys):
    _cmd_show_profile(_profile_args(tmp_path))
    assert "No stored profile" in capsys.readouterr().out

    export = tmp_path / "export.json"
    _cmd_export_profile(_profile_args(tmp_path, output=str(export)))
    data = json.loads(export.read_text(encoding="utf-8"))
    assert data["metadata"] == {"game_mode": "playing"}

    data["opponent_model"]["truco_fold_rate"] = 0.75
    export.write_text(json.dumps(data), encoding="utf-8")
    _cmd_import_profile(_profile_args(tmp_path, path=str(export)))
    assert (tmp_path / "truco_profile_playing.json").exists()

    capsys.readouterr()
    _cmd_show_profile(_profile_args(tmp_path))
    out = capsys.readouterr().out
    assert "Truco fold rate 0.75" in out
    assert "traits.not_enough_data.title" in out

    _cmd_reset_profile(_profile_args(tmp_path))
    assert not (tmp_path / "truco_profile_playing.json").exists()


def test_import_rejects_invalid_file(tmp_path: Path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"opponent_model": {}}), encoding="utf-8")
    with pytest.raises(SystemExit):
        _cmd_import_profile(_profile_args(tmp_path, path=str(bad)))
    assert not (tmp_path / "truco_profile_playing.json").exists()


def test_config_overrides(tmp_path: Path):
    config_file = tmp_path / "truco.json"
    config_file.write_text(json.dumps({"archetype": "Cautious", "target_score": 30}), encoding="utf-8")
    args = _Args(
        config=str(config_file),
        mode="playing-with-help",
        profile_dir=None,
        archetype=None,
        target_score=9,
        delay=0.0,
        seed=None,
        no_flor=True,
    )
    cfg = _config_from_args(args)
    assert cfg.archetype == "Cautious"
    assert cfg.target_score == 9
    assert cfg.game_mode == "playing-with-help"
    assert cfg.ai_delay == 0.0
    assert not cfg.flor_enabled
    assert cfg.profile_dir == ".truco"


def test_play_loop_with_scripted_input(capsys):
    answers = iter(["x", "99"] + ["0"] * 3000)

    def input_fn(prompt):
        return next(answers, "q")

    cfg = TrucoConfig(
        ai_delay=0.0,
        async_persistence=False,
        seed=5,
        target_score=3,
        simulation_iterations=5,
        opponent_samples=3,
        game_mode="playing-with-help",
    )
    with Session(cfg, store=MemoryProfileStore()) as session:
        state = play_loop(session, input_fn=input_fn, show_reasoning=True)
    assert state.phase is GamePhase.GAME_OVER
    out = capsys.readouterr().out
    assert "Pick a number" in out
    assert "hand percentile" in out
    assert "suggested: " in out
    assert "wins the match" in out


def test_play_loop_quit(capsys):
    cfg = TrucoConfig(ai_delay=0.0, async_persistence=False, seed=5)
    with Session(cfg, store=MemoryProfileStore()) as session:
        state = play_loop(session, input_fn=lambda prompt: "q")
    assert state.phase is GamePhase.TRICK_1
    assert "Your hand:" in capsys.readouterr().out


def test_parser_and_main(capsys):
    args = build_parser().parse_args(["simulate", "--matches", "3"])
    assert args.matches == 3
    assert args.func is _cmd_simulate
    with pytest.raises(SystemExit):
        build_parser().parse_args([])

    main(["scenario", "--name", "do_or_die"])
    assert "do_or_die: " in capsys.readouterr().out
