"""Command-line entry point for :mod:`auction_draft`.

Examples
--------
auction-draft evaluate --players ./data/players.json --top 25
auction-draft optimize --players ./data/players.json --budget 200 --exact
auction-draft optimize --snapshot ./output/draft.json --team team-3
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from auction_draft.data import LeagueSettings, Position, ValuationWeights
from auction_draft.errors import InfeasibleConstraintError
from auction_draft.exact import optimality_gap, solve_exact_roster
from auction_draft.io import (
    load_league_settings_from_json,
    load_patches_from_json,
    load_valuation_weights_from_json,
    read_patches_csv,
)
from auction_draft.main import DraftSession, configure_logging, load_players
from auction_draft.optimizer import LockedPick
from auction_draft.solution import (
    build_evaluation_rows,
    build_roster_summary,
    dumps_roster_summary_pretty,
    evaluation_rows_to_text,
    roster_summary_to_markdown,
)

LOG_LEVEL_ENV = "AUCTION_DRAFT_LOG_LEVEL"

logger = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--players",
        type=Path,
        default=None,
        help="Player feed JSON (list of records). Required unless --snapshot is given.",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="League settings JSON (team_count, budget, roster_size, composition, weights)",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Resume from a saved draft snapshot instead of a fresh player feed",
    )
    parser.add_argument(
        "--patches",
        type=Path,
        default=None,
        help="Patch feed to apply before running (.json list or .csv with player_id,field,value)",
    )
    parser.add_argument(
        "--out-json",
        type=Path,
        default=None,
        help="Write the result as JSON to this path (optional)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auction-draft")
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: ${LOG_LEVEL_ENV} or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    evaluate = sub.add_parser("evaluate", help="Rank players by composite value score")
    _add_common_arguments(evaluate)
    evaluate.add_argument("--top", type=int, default=25, help="Number of players to print (default: 25)")
    evaluate.add_argument(
        "--position",
        type=str,
        default=None,
        choices=[p.value for p in Position],
        help="Only show one position",
    )

    optimize = sub.add_parser("optimize", help="Build a budget-constrained roster")
    _add_common_arguments(optimize)
    optimize.add_argument("--budget", type=int, default=None, help="Override the league budget")
    optimize.add_argument(
        "--team",
        type=str,
        default=None,
        help="With --snapshot: complete this team's roster, keeping its purchases locked",
    )
    optimize.add_argument(
        "--exact",
        action="store_true",
        help="Also solve exactly with CBC and report the greedy optimality gap",
    )
    optimize.add_argument("--time-limit", type=int, default=None, help="CBC time limit in seconds")
    optimize.add_argument("--markdown", action="store_true", help="Print a markdown table instead of JSON")
    return parser


def _load_settings(path: Path | None) -> tuple[LeagueSettings, ValuationWeights]:
    if path is None:
        return LeagueSettings(), ValuationWeights()
    return load_league_settings_from_json(path), load_valuation_weights_from_json(path)


def _build_session(args: argparse.Namespace) -> DraftSession:
    settings, weights = _load_settings(args.settings)

    if args.snapshot is not None:
        session = DraftSession.load(args.snapshot, settings, weights=weights)
    elif args.players is not None:
        loaded = load_players(players_json_path=args.players)
        session = DraftSession(loaded.players, settings, weights=weights)
    else:
        raise SystemExit("error: one of --players or --snapshot is required")

    if args.patches is not None:
        if args.patches.suffix.lower() == ".csv":
            patches = read_patches_csv(args.patches)
        else:
            patches = load_patches_from_json(args.patches)
        session.apply_patches(patches, source_label=str(args.patches))
        logger.info("Applied %d patches from %s", len(patches), args.patches)

    return session


def _run_evaluate(args: argparse.Namespace) -> int:
    session = _build_session(args)
    evaluations = session.evaluate_all()
    if args.position is not None:
        position = Position(args.position)
        evaluations = {
            pid: ev for pid, ev in evaluations.items() if session.catalog.get(pid).position is position
        }

    rows = build_evaluation_rows(evaluations.values(), session.catalog, top=args.top)
    print(evaluation_rows_to_text(rows), end="")

    if args.out_json is not None:
        args.out_json.parent.mkdir(parents=True, exist_ok=True)
        args.out_json.write_text(json.dumps([asdict(r) for r in rows], indent=2), encoding="utf-8")
        print(f"\nWrote {len(rows)} evaluations to {args.out_json}")
    return 0


def _run_optimize(args: argparse.Namespace) -> int:
    session = _build_session(args)

    players = session.catalog.available_players()
    composition = session.settings.composition
    if args.team is not None:
        result = session.optimize_for_team(args.team)
    else:
        budget = session.settings.budget if args.budget is None else args.budget
        result = session.optimize_roster(players, budget, composition)

    gap = None
    if args.exact:
        # Overflow purchases hold no slot; the exact model only sees their cost.
        locked = [LockedPick(player=pk.player, price=pk.price) for pk in result.roster if pk.locked]
        exact_budget = result.budget - sum(lp.cost for lp in result.overflow)
        try:
            exact = solve_exact_roster(players, exact_budget, composition, locked, time_limit_seconds=args.time_limit)
        except InfeasibleConstraintError as e:
            logger.warning("Exact solve failed, optimality gap unavailable: %s", e)
        else:
            gap = optimality_gap(result, exact)
            logger.info("Greedy optimality gap: %.2f%%", gap * 100)

    summary = build_roster_summary(result, optimality_gap=gap)
    if args.markdown:
        print(roster_summary_to_markdown(summary), end="")
    else:
        print(dumps_roster_summary_pretty(summary))

    if args.out_json is not None:
        args.out_json.parent.mkdir(parents=True, exist_ok=True)
        args.out_json.write_text(dumps_roster_summary_pretty(summary), encoding="utf-8")

    return 0 if result.is_complete else 2


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(level=getattr(logging, args.log_level))

    if args.command == "evaluate":
        return _run_evaluate(args)
    return _run_optimize(args)


if __name__ == "__main__":
    raise SystemExit(main())
