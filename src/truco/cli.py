"""
Command-line interface for playing against the Truco AI and inspecting what
it has learned.

Usage examples (after ``pip install -e .``):

    truco play --archetype Deceptive --delay 0.5
    truco simulate --matches 20 --seed 1
    truco scenario --name parda_y_gano --reasoning
    truco show-profile --mode playing
    truco export-profile --output profile.json
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from .actions import Action, ActionKind
from .agents import AiAgent, RandomAgent
from .ai import ARCHETYPES, AiDecision, TrucoAI
from .config import GAME_MODES, TrucoConfig, load_config
from .deck import hand_to_str
from .evaluation import envido_value, hand_percentile
from .game import is_turn_of
from .match import run_matches
from .persistence import (
    JsonFileProfileStore,
    ProfileValidationError,
    profile_from_dict,
    profile_to_json,
)
from .play import Side
from .profile_analysis import analyze_profile
from .reasoning import render
from .scenarios import SCENARIOS, run_scenario
from .session import Session
from .state import GamePhase, GameState, LearningProfile

InputFn = Callable[[str], str]


def _add_common_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON config file; command-line options override its values.",
    )
    parser.add_argument(
        "--mode",
        choices=GAME_MODES,
        default=None,
        help="Game mode; each mode keeps its own stored profile.",
    )
    parser.add_argument(
        "--profile-dir",
        type=str,
        default=None,
        help="Directory holding stored profiles.",
    )


def _config_from_args(args: argparse.Namespace) -> TrucoConfig:
    cfg = load_config(args.config) if getattr(args, "config", None) else TrucoConfig()
    overrides = {
        "game_mode": getattr(args, "mode", None),
        "profile_dir": getattr(args, "profile_dir", None),
        "archetype": getattr(args, "archetype", None),
        "target_score": getattr(args, "target_score", None),
        "ai_delay": getattr(args, "delay", None),
        "seed": getattr(args, "seed", None),
    }
    if getattr(args, "no_flor", False):
        overrides["flor_enabled"] = False
    return replace(cfg, **{k: v for k, v in overrides.items() if v is not None})


# --- play -------------------------------------------------------------------


def _add_play_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("play", help="Play a match against the AI in the terminal.")
    _add_common_config_args(parser)
    parser.add_argument("--archetype", choices=ARCHETYPES, default=None, help="AI personality.")
    parser.add_argument("--target-score", type=int, default=None, help="Points needed to win the match.")
    parser.add_argument("--no-flor", action="store_true", help="Play without flor.")
    parser.add_argument("--delay", type=float, default=None, help="Seconds the AI 'thinks' before moving.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for dealing and the AI.")
    parser.add_argument("--reasoning", action="store_true", help="Print the AI's reasoning after each move.")
    parser.set_defaults(func=_cmd_play)


def _action_label(state: GameState, action: Action) -> str:
    if action.kind is ActionKind.PLAY_CARD and action.card_index is not None:
        return f"play {state.player_hand[action.card_index].name()}"
    return action.describe()


def _print_table(state: GameState, help_enabled: bool, suggestion: Optional[AiDecision] = None) -> None:
    print(f"\nScore  you {state.player_score} - AI {state.ai_score}   (to {state.target_score})")
    played = [
        f"T{i + 1}: {p or '--'} vs {a or '--'}"
        for i, (p, a) in enumerate(zip(state.player_tricks, state.ai_tricks))
        if p is not None or a is not None
    ]
    if played:
        print("Tricks " + "  ".join(played))
    print(f"Your hand: {hand_to_str(state.player_hand)}")
    if help_enabled:
        print(
            f"  envido {envido_value(state.initial_player_hand)}, "
            f"hand percentile {hand_percentile(state.initial_player_hand)}"
        )
        if suggestion is not None:
            print(f"  suggested: {_action_label(state, suggestion.action)}")


def _choose(options: List[Action], state: GameState, input_fn: InputFn) -> Optional[Action]:
    for i, action in enumerate(options):
        print(f"  [{i}] {_action_label(state, action)}")
    while True:
        raw = input_fn("> ").strip().lower()
        if raw in ("q", "quit", "exit"):
            return None
        if raw.isdigit() and int(raw) < len(options):
            return options[int(raw)]
        print(f"Pick a number between 0 and {len(options) - 1}, or q to quit.")


def play_loop(session: Session, input_fn: InputFn = input, show_reasoning: bool = False) -> GameState:
    """Drive an interactive match until it ends or the player quits."""
    seen = 0
    session.start()
    while True:
        session.wait_for_ai()
        state = session.state
        if len(state.message_log) < seen:
            seen = 0
        for line in state.message_log[seen:]:
            print(line)
        seen = len(state.message_log)
        if show_reasoning and session.last_decision is not None:
            for item in session.last_decision.reasoning:
                print(f"    {render(item)}")
            session.last_decision = None

        if state.phase is GamePhase.GAME_OVER:
            return state
        if state.phase is GamePhase.ROUND_END:
            if input_fn("Press Enter for the next round (q to quit) ").strip().lower() == "q":
                return state
            session.dispatch(Action(ActionKind.START_ROUND))
            continue
        if not is_turn_of(state, Side.PLAYER):
            if not session.ai_pending:
                raise RuntimeError(f"Nobody to move during {state.phase.value}")
            continue

        suggestion = session.suggestion() if session.help_enabled else None
        _print_table(state, session.help_enabled, suggestion)
        action = _choose(session.legal_actions(Side.PLAYER), state, input_fn)
        if action is None:
            return state
        result = session.dispatch(action)
        if not result.accepted:
            print(f"Not allowed: {result.error}")


def _cmd_play(args: argparse.Namespace) -> None:
    cfg = _config_from_args(args)
    with Session(cfg, store=JsonFileProfileStore(cfg.profile_dir)) as session:
        try:
            state = play_loop(session, show_reasoning=args.reasoning)
        except (EOFError, KeyboardInterrupt):
            state = session.state
        session.save_profile()
    print(f"\nFinal score  you {state.player_score} - AI {state.ai_score}")


# --- simulate ---------------------------------------------------------------


def _add_simulate_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("simulate", help="Run AI vs random-opponent matches headlessly.")
    parser.add_argument("--matches", type=int, default=10, help="Number of matches to play.")
    parser.add_argument("--seed", type=int, default=0, help="Random seed.")
    parser.add_argument("--archetype", choices=ARCHETYPES, default="Balanced", help="AI personality.")
    parser.add_argument("--target-score", type=int, default=15, help="Points needed to win a match.")
    parser.add_argument("--no-flor", action="store_true", help="Play without flor.")
    parser.add_argument(
        "--simulation-iterations",
        type=int,
        default=60,
        help="Monte Carlo rollouts per truco-strength estimate.",
    )
    parser.set_defaults(func=_cmd_simulate)


def _cmd_simulate(args: argparse.Namespace) -> None:
    ai = TrucoAI(
        archetype=args.archetype,
        seed=args.seed,
        simulation_iterations=args.simulation_iterations,
    )
    ai_agent = AiAgent(ai)
    stats = run_matches(
        args.matches,
        RandomAgent(seed=args.seed + 1),
        ai_agent,
        target_score=args.target_score,
        flor_enabled=not args.no_flor,
        seed=args.seed,
    )
    for i, result in enumerate(stats.results, start=1):
        print(
            f"[match {i}/{stats.matches}] winner={result.winner.value} "
            f"ai={result.ai_score} random={result.player_score} rounds={result.rounds}"
        )
    print(f"AI wins: {stats.ai_wins}/{stats.matches} ({stats.ai_win_rate:.0%})")
    print(f"Average score: AI {stats.avg_ai_score:.2f}, random {stats.avg_player_score:.2f}")
    if ai_agent.degraded_decisions:
        print(f"Fallback decisions: {ai_agent.degraded_decisions}")


# --- scenario ---------------------------------------------------------------


def _add_scenario_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("scenario", help="Show the AI's decision in predefined positions.")
    parser.add_argument(
        "--name",
        choices=sorted(SCENARIOS),
        default=None,
        help="Run a single scenario (default: all).",
    )
    parser.add_argument("--archetype", choices=ARCHETYPES, default="Balanced", help="AI personality.")
    parser.add_argument("--seed", type=int, default=0, help="Random seed for the AI.")
    parser.add_argument("--reasoning", action="store_true", help="Print the full reasoning trace.")
    parser.set_defaults(func=_cmd_scenario)


def _cmd_scenario(args: argparse.Namespace) -> None:
    names = [args.name] if args.name else list(SCENARIOS)
    for name in names:
        scenario = SCENARIOS[name]
        decision = run_scenario(name, TrucoAI(archetype=args.archetype, seed=args.seed))
        action = decision.action
        print(f"{name}: {scenario.description}")
        label = action.describe()
        if action.kind is ActionKind.PLAY_CARD and action.card_index is not None:
            label = f"play {scenario.build().ai_hand[action.card_index].name()}"
        print(f"  -> {label}")
        if args.reasoning:
            for item in decision.reasoning:
                print(f"    {render(item)}")


# --- profile commands -------------------------------------------------------


def _load_stored_profile(cfg: TrucoConfig) -> Optional[LearningProfile]:
    data = JsonFileProfileStore(cfg.profile_dir).load(cfg.storage_key)
    if data is None:
        return None
    return profile_from_dict(data)


def _add_show_profile_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("show-profile", help="Print what the AI has learned about you.")
    _add_common_config_args(parser)
    parser.set_defaults(func=_cmd_show_profile)


def _cmd_show_profile(args: argparse.Namespace) -> None:
    cfg = _config_from_args(args)
    profile = _load_stored_profile(cfg)
    if profile is None:
        print(f"No stored profile for mode {cfg.game_mode!r}.")
        return
    model = profile.opponent_model
    for role, behavior in model.envido_behavior.items():
        print(
            f"Envido as {role}: call threshold {behavior.call_threshold:.1f}, "
            f"fold rate {behavior.fold_rate:.2f}, escalation rate {behavior.escalation_rate:.2f}"
        )
    style = model.play_style
    print(f"Truco fold rate {model.truco_fold_rate:.2f}, AI bluff success {model.bluff_success_rate:.2f}")
    print(
        f"Leads highest {style.lead_with_highest_rate:.2f}, bait {style.bait_rate:.2f}, "
        f"envido primero {style.envido_primero_rate:.2f}, counter {style.counter_tendency:.2f}, "
        f"chain bluff {style.chain_bluff_rate:.2f}"
    )
    print(f"Rounds on record: {len(profile.round_history)}, cases in memory: {len(profile.case_memory)}")
    print("Traits:")
    for obs in analyze_profile(profile):
        print(f"  {obs.title_key} ({obs.confidence:.2f}): {obs.description_key}")


def _add_export_profile_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("export-profile", help="Write the stored profile as JSON.")
    _add_common_config_args(parser)
    parser.add_argument("--output", type=str, default=None, help="Output file (default: stdout).")
    parser.set_defaults(func=_cmd_export_profile)


def _cmd_export_profile(args: argparse.Namespace) -> None:
    cfg = _config_from_args(args)
    profile = _load_stored_profile(cfg) or LearningProfile()
    text = profile_to_json(profile, metadata={"game_mode": cfg.game_mode})
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Profile written to {args.output}")
    else:
        print(text)


def _add_import_profile_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("import-profile", help="Replace the stored profile with a JSON export.")
    _add_common_config_args(parser)
    parser.add_argument("path", type=str, help="Profile JSON file to import.")
    parser.set_defaults(func=_cmd_import_profile)


def _cmd_import_profile(args: argparse.Namespace) -> None:
    cfg = replace(_config_from_args(args), async_persistence=False)
    text = Path(args.path).read_text(encoding="utf-8")
    with Session(cfg, store=JsonFileProfileStore(cfg.profile_dir)) as session:
        if not session.import_profile(text):
            raise SystemExit(f"{args.path} is not a valid profile export")
    print(f"Imported profile for mode {cfg.game_mode!r}.")


def _add_reset_profile_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("reset-profile", help="Forget everything learned about you.")
    _add_common_config_args(parser)
    parser.set_defaults(func=_cmd_reset_profile)


def _cmd_reset_profile(args: argparse.Namespace) -> None:
    cfg = _config_from_args(args)
    JsonFileProfileStore(cfg.profile_dir).clear(cfg.storage_key)
    print(f"Profile for mode {cfg.game_mode!r} cleared.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="truco", description="Truco against a learning AI.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_play_parser(subparsers)
    _add_simulate_parser(subparsers)
    _add_scenario_parser(subparsers)
    _add_show_profile_parser(subparsers)
    _add_export_profile_parser(subparsers)
    _add_import_profile_parser(subparsers)
    _add_reset_profile_parser(subparsers)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")
    if hasattr(args, "func"):
        try:
            args.func(args)
        except ProfileValidationError as exc:
            raise SystemExit(f"Invalid profile: {exc}") from exc
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
