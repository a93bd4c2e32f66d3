# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Play a simulated game, or estimate win probability over many games.

Usage:
    uv run game.py --seed 42 --verbose
    uv run game.py --games 5000 --seed 7
    uv run game.py --roster my_rosters.json --games 200 --parallelism 4
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from config import (
    configure_logging,
    get_default_games,
    get_default_seed,
    runner_options_from_env,
)
from models import GameConfig, load_game_config
from simengine.runner import RunnerOptions, SimulationRunner
from simulation import BaseballGameResult, BaseballGameSimulation, estimate_win_probability


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate baseball games play-by-play from per-PA outcome rates."
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for a single game, or base seed for a batch (default: $DIAMOND_SEED or random).",
    )
    parser.add_argument(
        "--games", type=int, nargs="?", default=1, const=get_default_games(), metavar="N",
        help="Number of games. More than one runs a parallel Monte Carlo batch; "
             "a bare --games uses $DIAMOND_GAMES (default 1000).",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log every play of a single game.",
    )
    parser.add_argument(
        "--roster", type=Path, default=None, metavar="PATH",
        help="Roster JSON file (default: the bundled sample rosters).",
    )
    parser.add_argument(
        "--parallelism", type=int, default=None, metavar="N",
        help="Worker threads for a batch (default: $DIAMOND_MAX_PARALLELISM or CPU count).",
    )
    return parser


def print_game_result(result: BaseballGameResult, seed: int) -> None:
    print("=" * 50)
    print(f"  {result.away_team_name} @ {result.home_team_name}  (seed {seed})")
    print("=" * 50)
    note = f" ({result.innings} innings)" if result.innings != 9 else ""
    print(f"Final: {result.away_team_name} {result.away_score} - "
          f"{result.home_team_name} {result.home_score}{note}")
    if result.walk_off:
        print("Walk-off!")
    print(f"Winner: {result.winner}")
    print(f"Plate appearances: {result.plate_appearances}")


def run_single(config: GameConfig, seed: int | None, verbose: bool) -> int:
    runner = SimulationRunner()
    result = runner.run(BaseballGameSimulation(config), seed=seed,
                        parameters={"verbose": verbose})
    if not result.is_success:
        print(f"Simulation failed ({result.status.value}): {result.error}", file=sys.stderr)
        return 1
    print_game_result(result.outcome, result.seed)
    return 0


def run_batch(config: GameConfig, games: int, seed: int | None, options: RunnerOptions) -> int:
    estimate = estimate_win_probability(config, games, base_seed=seed, options=options)

    print("=" * 50)
    print(f"  {config.away_team_name} @ {config.home_team_name}: {games} games")
    print("=" * 50)
    print(f"{config.home_team_name} win probability: {estimate.home_win_probability:.3f}")
    print(f"{config.away_team_name} win probability: {estimate.away_win_probability:.3f}")
    print(f"Mean score: {config.away_team_name} {estimate.mean_away_runs:.2f} - "
          f"{config.home_team_name} {estimate.mean_home_runs:.2f}")
    print(f"Mean innings: {estimate.mean_innings:.2f}")
    if estimate.errors:
        print(f"Failed games: {estimate.errors}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(logging.INFO if args.verbose else None)

    if args.games < 1:
        print("Error: --games must be at least 1.", file=sys.stderr)
        return 2
    if args.parallelism is not None and args.parallelism < 1:
        print("Error: --parallelism must be at least 1.", file=sys.stderr)
        return 2

    try:
        seed = args.seed if args.seed is not None else get_default_seed()
        options = runner_options_from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        config = load_game_config(args.roster)
    except (OSError, ValueError, KeyError) as e:
        kind = "Invalid roster" if isinstance(e, (ValidationError, KeyError)) else "Error"
        print(f"{kind}: {e}", file=sys.stderr)
        return 1

    if args.games == 1:
        return run_single(config, seed, args.verbose)
    if args.parallelism is not None:
        options.max_parallelism = args.parallelism
    return run_batch(config, args.games, seed, options)


if __name__ == "__main__":
    sys.exit(main())
