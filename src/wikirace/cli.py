# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""WikiRace CLI: classify, difficulty, score, submit, top, context commands.

Usage:
    python -m wikirace.cli classify PAGE [--online] [--json]
    python -m wikirace.cli difficulty START TARGET [--online] [--strategy tier|connectivity] [--json]
    python -m wikirace.cli score START TARGET --clicks N --time SECONDS [--mode MODE] [--online] [--json]
    python -m wikirace.cli submit START TARGET --clicks N --time SECONDS [--mode MODE] [--player NAME] [--online]
    python -m wikirace.cli top [--mode MODE] [--limit N] [--json]
    python -m wikirace.cli context PLAYER [--mode MODE] [--limit N] [--json]

Classification and scoring are offline (corpus + keyword rules) unless
``--online`` is given.  Engine settings come from ``WIKIRACE_*`` variables;
``--backend`` / ``--corpus`` override them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict
from pathlib import Path

from . import GameMode, RunRecord
from .config import BACKENDS, DIFFICULTY_STRATEGIES, EngineConfig
from .engine import RaceEngine
from .errors import WikiRaceError
from .leaderboard import ScoreEntry
from .logging_config import configure
from .page_names import display_title
from .scoring import format_time


def _require_cli_deps() -> None:
    """Check that CLI optional dependencies are installed."""
    try:
        from tabulate import tabulate  # noqa: F401
    except ImportError as e:
        print(
            f"Missing CLI dependency: {e.name}\nInstall with: pip install wikirace[cli]",
            file=sys.stderr,
        )
        sys.exit(1)


def _config_from_args(args: argparse.Namespace, **overrides: object) -> EngineConfig:
    if getattr(args, "backend", None):
        overrides["backend"] = args.backend
    if getattr(args, "corpus", None):
        overrides["corpus_path"] = Path(args.corpus)
    if getattr(args, "strategy", None):
        overrides["difficulty_strategy"] = args.strategy
    return EngineConfig.from_env(**overrides)


def _run(config: EngineConfig, action: Callable[[RaceEngine], Awaitable[int]]) -> int:
    async def _main() -> int:
        async with await RaceEngine.from_config(config) as engine:
            return await action(engine)

    return asyncio.run(_main())


def _print_json(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _entry_rows(ranked: Sequence[tuple[int, ScoreEntry]]) -> list[list[object]]:
    rows = []
    for rank, entry in ranked:
        rows.append(
            [
                rank,
                entry.player_name,
                f"{display_title(entry.start_page)} → {display_title(entry.target_page)}",
                entry.clicks,
                format_time(entry.time),
                f"{entry.difficulty:.2f}",
                entry.score,
            ]
        )
    return rows


_ENTRY_HEADERS = ["#", "Player", "Route", "Clicks", "Time", "Difficulty", "Score"]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_classify(args: argparse.Namespace) -> int:
    """Tier, category and popularity of one page."""
    _require_cli_deps()
    from tabulate import tabulate

    async def action(engine: RaceEngine) -> int:
        meta = await engine.classify(args.page, args.online)
        if args.json:
            _print_json({"page": args.page, **asdict(meta)})
        else:
            rows = [
                ["tier", meta.tier],
                ["category", f"{meta.category} ({meta.category_source})"],
                ["popularity", meta.popularity],
            ]
            print(tabulate(rows, headers=["", args.page], tablefmt="simple"))
        return 0

    return _run(_config_from_args(args, use_external_lookup=args.online), action)


def cmd_difficulty(args: argparse.Namespace) -> int:
    """Difficulty multiplier for a route."""

    async def action(engine: RaceEngine) -> int:
        value = await engine.estimate_difficulty(args.start, args.target, args.online)
        result: dict[str, object] = {
            "start": args.start,
            "target": args.target,
            "strategy": engine.config.difficulty_strategy,
            "difficulty": round(value, 3),
        }
        if engine.config.difficulty_strategy == "connectivity":
            detail = await engine.connectivity(args.start, args.target)
            result["metrics"] = asdict(detail.metrics)
        if args.json:
            _print_json(result)
        else:
            print(f"{args.start} → {args.target}: {value:.3f} ({result['strategy']})")
        return 0

    return _run(_config_from_args(args, use_external_lookup=args.online), action)


def cmd_score(args: argparse.Namespace) -> int:
    """Score a run without submitting it."""
    run = RunRecord(args.start, args.target, args.clicks, args.time, GameMode(args.mode))

    async def action(engine: RaceEngine) -> int:
        breakdown = await engine.score_run(run, args.online)
        if args.json:
            _print_json(asdict(breakdown))
        else:
            print(
                f"{run.start_page} → {run.target_page} in {run.clicks} clicks, {format_time(run.time_seconds)} "
                f"[{run.mode}]: score {breakdown.score} "
                f"(efficiency {breakdown.click_efficiency:.1f} × difficulty {breakdown.difficulty:.3f} "
                f"× time bonus {breakdown.time_bonus:.3f} × mode {breakdown.mode_multiplier})"
            )
        return 0

    return _run(_config_from_args(args, use_external_lookup=args.online), action)


def cmd_submit(args: argparse.Namespace) -> int:
    """Score a run and add it to the leaderboard."""
    run = RunRecord(args.start, args.target, args.clicks, args.time, GameMode(args.mode))

    async def action(engine: RaceEngine) -> int:
        result = await engine.submit_run(run, args.player)
        if not result.success:
            print(f"Submission failed: {result.error}", file=sys.stderr)
            return 1
        assert result.entry is not None
        board = "" if result.on_board else " (below the leaderboard cut-off)"
        print(f"{result.entry.player_name}: score {result.entry.score}, rank #{result.rank} in {run.mode}{board}")
        return 0

    return _run(_config_from_args(args, use_external_lookup=args.online), action)


def cmd_top(args: argparse.Namespace) -> int:
    """Top entries for one game mode."""
    _require_cli_deps()
    from tabulate import tabulate

    async def action(engine: RaceEngine) -> int:
        entries = await engine.query_top(args.mode, args.limit)
        if args.json:
            _print_json([e.model_dump(mode="json", by_alias=True) for e in entries])
        elif not entries:
            print(f"No {args.mode} scores yet.")
        else:
            rows = _entry_rows(list(enumerate(entries, start=1)))
            print(tabulate(rows, headers=_ENTRY_HEADERS, tablefmt="simple"))
        return 0

    return _run(_config_from_args(args), action)


def cmd_context(args: argparse.Namespace) -> int:
    """A player's best rank and the entries around it."""
    _require_cli_deps()
    from tabulate import tabulate

    async def action(engine: RaceEngine) -> int:
        ctx = await engine.player_context(args.player, args.limit, args.mode)
        if ctx is None:
            print(f"No scores for {args.player!r}.", file=sys.stderr)
            return 1
        if args.json:
            _print_json(
                {
                    "rank": ctx.rank,
                    "entry": ctx.entry.model_dump(mode="json", by_alias=True),
                    "surrounding": [
                        {"rank": r.rank, **r.entry.model_dump(mode="json", by_alias=True)} for r in ctx.surrounding
                    ],
                }
            )
        else:
            print(f"{ctx.entry.player_name} is ranked #{ctx.rank}")
            rows = _entry_rows([(r.rank, r.entry) for r in ctx.surrounding])
            print(tabulate(rows, headers=_ENTRY_HEADERS, tablefmt="simple"))
        return 0

    return _run(_config_from_args(args), action)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_run_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("start", help="Start page (e.g. United_States)")
    p.add_argument("target", help="Target page")
    p.add_argument("--clicks", type=int, required=True, help="Links followed (>= 1)")
    p.add_argument("--time", type=int, required=True, help="Elapsed seconds")
    p.add_argument("--mode", choices=[m.value for m in GameMode], default=GameMode.NORMAL.value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="WikiRace scoring engine CLI",
        prog="python -m wikirace.cli",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--backend", choices=sorted(BACKENDS), help="Leaderboard backend (default: WIKIRACE_BACKEND)")
    parser.add_argument("--corpus", type=str, metavar="PATH", help="Corpus YAML (default: bundled sample)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_classify = subparsers.add_parser("classify", help="Classify a page")
    p_classify.add_argument("page")
    p_classify.add_argument("--online", action="store_true", help="Consult Wikipedia categories")
    p_classify.add_argument("--json", action="store_true")
    p_classify.set_defaults(func=cmd_classify)

    p_difficulty = subparsers.add_parser("difficulty", help="Estimate route difficulty")
    p_difficulty.add_argument("start")
    p_difficulty.add_argument("target")
    p_difficulty.add_argument("--online", action="store_true", help="Consult Wikipedia categories")
    p_difficulty.add_argument("--strategy", choices=sorted(DIFFICULTY_STRATEGIES))
    p_difficulty.add_argument("--json", action="store_true")
    p_difficulty.set_defaults(func=cmd_difficulty)

    p_score = subparsers.add_parser("score", help="Score a run without submitting")
    _add_run_arguments(p_score)
    p_score.add_argument("--online", action="store_true", help="Consult Wikipedia categories")
    p_score.add_argument("--strategy", choices=sorted(DIFFICULTY_STRATEGIES))
    p_score.add_argument("--json", action="store_true")
    p_score.set_defaults(func=cmd_score)

    p_submit = subparsers.add_parser("submit", help="Score a run and submit it to the leaderboard")
    _add_run_arguments(p_submit)
    p_submit.add_argument("--player", default="Anonymous", help="Player name (max 20 characters)")
    p_submit.add_argument("--online", action="store_true", help="Consult Wikipedia categories")
    p_submit.add_argument("--strategy", choices=sorted(DIFFICULTY_STRATEGIES))
    p_submit.set_defaults(func=cmd_submit)

    p_top = subparsers.add_parser("top", help="Show the leaderboard for a game mode")
    p_top.add_argument("--mode", choices=[m.value for m in GameMode], default=GameMode.NORMAL.value)
    p_top.add_argument("--limit", type=int, default=10)
    p_top.add_argument("--json", action="store_true")
    p_top.set_defaults(func=cmd_top)

    p_context = subparsers.add_parser("context", help="Show a player's rank and neighbours")
    p_context.add_argument("player")
    p_context.add_argument("--mode", choices=[m.value for m in GameMode], default=None)
    p_context.add_argument("--limit", type=int, default=5)
    p_context.add_argument("--json", action="store_true")
    p_context.set_defaults(func=cmd_context)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "WARNING")

    try:
        code = args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except (WikiRaceError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
