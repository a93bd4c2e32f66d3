# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Baseball game simulation engine.

Plays a game one plate appearance at a time: resolves the outcome, moves
runners, credits runs, records outs and decides when a half-inning, an
inning and the game end (nine innings, extra innings while tied, and the
walk-off in the bottom of the ninth or later).  Every state change is
published as a baseball event.

``BaseballGameSimulation`` wraps a game as an engine model so it can be
driven by ``SimulationRunner`` or an orchestrator, and
``estimate_win_probability`` runs a Monte Carlo batch of them.

All randomness comes from the resolver's random source, so a seeded run
replays exactly.
"""

from __future__ import annotations

import logging
import statistics
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from baseball_events import (
    AtBatCompletedEvent,
    AtBatStartedEvent,
    GameEndedEvent,
    GameStartedEvent,
    InningEndedEvent,
    InningStartedEvent,
    OutRecordedEvent,
    PitcherChangedEvent,
    PlayByPlayLogger,
    RunnerAdvancedEvent,
    RunScoredEvent,
)
from models import GameConfig, Half, Outcome, Pitcher, Player
from resolver import PlateAppearanceResolver
from simengine.context import SimulationContext, StepResult
from simengine.events import EventScheduler
from simengine.random_source import SeedableRandomSource
from simengine.runner import RunnerOptions, SimulationRunner

logger = logging.getLogger(__name__)

REGULATION_INNINGS = 9
OUTS_PER_HALF_INNING = 3
DEFAULT_PLATE_APPEARANCE_SECONDS = 30


class GameRuleError(RuntimeError):
    """A game-state invariant was violated (e.g. a fourth out)."""


# ---------------------------------------------------------------------------
# Game state
# ---------------------------------------------------------------------------

@dataclass
class GameState:
    """Authoritative game state: inning, outs, bases, score."""
    inning: int = 1
    half: Half = Half.TOP
    outs: int = 0
    home_score: int = 0
    away_score: int = 0
    bases: list[Optional[Player]] = field(default_factory=lambda: [None, None, None])

    def begin_half_inning(self, inning: int, half: Half) -> None:
        if inning < 1:
            raise ValueError(f"Inning must be >= 1, got {inning}")
        self.inning = inning
        self.half = half
        self.outs = 0
        self.clear_bases()

    def record_out(self) -> int:
        """Add an out and return the new count."""
        if self.outs >= OUTS_PER_HALF_INNING:
            raise GameRuleError(
                f"Cannot record out #{self.outs + 1} in the {self.half.value} of inning {self.inning}"
            )
        self.outs += 1
        return self.outs

    def add_run(self, is_home_team: bool) -> int:
        """Credit one run and return the team's new score."""
        if is_home_team:
            self.home_score += 1
            return self.home_score
        self.away_score += 1
        return self.away_score

    def get_base(self, index: int) -> Player | None:
        _check_base_index(index)
        return self.bases[index]

    def set_base(self, index: int, runner: Player | None) -> None:
        _check_base_index(index)
        self.bases[index] = runner

    def clear_bases(self) -> None:
        self.bases = [None, None, None]

    @property
    def bases_loaded(self) -> bool:
        return all(r is not None for r in self.bases)

    @property
    def bases_empty(self) -> bool:
        return all(r is None for r in self.bases)

    @property
    def batting_team_is_home(self) -> bool:
        return self.half == Half.BOTTOM

    def bases_string(self) -> str:
        """Return base state string like '110' for runners on 1st and 2nd."""
        return "".join("1" if r is not None else "0" for r in self.bases)

    def situation_display(self) -> str:
        half_str = "Top" if self.half == Half.TOP else "Bot"
        return (f"{half_str} {self.inning}, {self.outs} out, bases {self.bases_string()}, "
                f"Away {self.away_score} - Home {self.home_score}")


def _check_base_index(index: int) -> None:
    if not 0 <= index <= 2:
        raise IndexError(f"Base index must be 0-2, got {index}")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BaseballGameResult:
    home_team_name: str
    away_team_name: str
    home_score: int
    away_score: int
    innings: int
    plate_appearances: int
    walk_off: bool = False

    @property
    def home_win(self) -> bool:
        return self.home_score > self.away_score

    @property
    def winner(self) -> str | None:
        if self.home_score == self.away_score:
            return None
        return self.home_team_name if self.home_win else self.away_team_name

    def to_dict(self) -> dict:
        return {
            "home": self.home_team_name,
            "away": self.away_team_name,
            "score": {"home": self.home_score, "away": self.away_score},
            "innings": self.innings,
            "plate_appearances": self.plate_appearances,
            "walk_off": self.walk_off,
            "winner": self.winner,
        }


# ---------------------------------------------------------------------------
# Game
# ---------------------------------------------------------------------------

class Game:
    """One game between two lineups, played a plate appearance at a time."""

    def __init__(self, config: GameConfig, resolver: PlateAppearanceResolver | None = None,
                 events: EventScheduler | None = None):
        if config is None:
            raise ValueError("config is required")
        self.config = config
        self.resolver = resolver or PlateAppearanceResolver(SeedableRandomSource())
        self.events = events if events is not None else EventScheduler()
        self.state = GameState()

        self.home_pitcher = config.home_pitcher or Pitcher.league_average(
            f"{config.home_team_name} Starter")
        self.away_pitcher = config.away_pitcher or Pitcher.league_average(
            f"{config.away_team_name} Starter")
        self._bullpens = {
            True: deque(config.home_bullpen),
            False: deque(config.away_bullpen),
        }

        self._batter_index = {True: 0, False: 0}
        self._half_inning_runs = 0
        self.total_plate_appearances = 0
        self.is_game_over = False
        self.walk_off = False
        self._started = False

    # -- read-only views ---------------------------------------------------

    @property
    def home_team_name(self) -> str:
        return self.config.home_team_name

    @property
    def away_team_name(self) -> str:
        return self.config.away_team_name

    @property
    def home_score(self) -> int:
        return self.state.home_score

    @property
    def away_score(self) -> int:
        return self.state.away_score

    @property
    def current_inning(self) -> int:
        return self.state.inning

    def lineup(self, is_home_team: bool) -> list[Player]:
        return self.config.home_team if is_home_team else self.config.away_team

    def pitcher_for(self, is_home_team: bool) -> Pitcher:
        return self.home_pitcher if is_home_team else self.away_pitcher

    def result(self) -> BaseballGameResult:
        return BaseballGameResult(
            home_team_name=self.home_team_name,
            away_team_name=self.away_team_name,
            home_score=self.home_score,
            away_score=self.away_score,
            innings=self.current_inning,
            plate_appearances=self.total_plate_appearances,
            walk_off=self.walk_off,
        )

    # -- flow --------------------------------------------------------------

    def play_game(self) -> BaseballGameResult:
        while self.play_plate_appearance():
            pass
        return self.result()

    def play_plate_appearance(self) -> bool:
        """Play one plate appearance; return False once the game is over."""
        if self.is_game_over:
            return False

        if not self._started:
            self._start_game()

        state = self.state
        is_home = state.batting_team_is_home
        self._maybe_change_pitcher(not is_home)

        lineup = self.lineup(is_home)
        batter = lineup[self._batter_index[is_home]]
        pitcher = self.pitcher_for(not is_home)

        self.events.publish(AtBatStartedEvent(
            batter=batter, pitcher=pitcher.name,
            inning=state.inning, half=state.half, outs=state.outs,
        ))
        outcome = self.resolver.resolve(batter, pitcher)
        self.total_plate_appearances += 1
        self.events.publish(AtBatCompletedEvent(
            batter=batter, pitcher=pitcher.name, outcome=outcome,
            inning=state.inning, half=state.half,
        ))

        if outcome == Outcome.OUT:
            out_number = state.record_out()
            self.events.publish(OutRecordedEvent(
                batter=batter, out_number=out_number, inning=state.inning, half=state.half,
            ))
        else:
            self.advance_runners(outcome, batter, is_home)

        self._batter_index[is_home] = (self._batter_index[is_home] + 1) % len(lineup)
        logger.debug("%s | %s: %s", state.situation_display(), batter.name, outcome.value)

        if (state.half == Half.BOTTOM and state.inning >= REGULATION_INNINGS
                and state.home_score > state.away_score):
            self.walk_off = True
            self._publish_inning_ended()
            self._end_game()
        elif state.outs >= OUTS_PER_HALF_INNING:
            self._end_half_inning()

        return not self.is_game_over

    def _start_game(self) -> None:
        self._started = True
        self.events.publish(GameStartedEvent(
            home_team_name=self.home_team_name,
            away_team_name=self.away_team_name,
            home_pitcher=self.home_pitcher.name,
            away_pitcher=self.away_pitcher.name,
        ))
        self._begin_half_inning(1, Half.TOP)

    def _begin_half_inning(self, inning: int, half: Half) -> None:
        self.state.begin_half_inning(inning, half)
        self._half_inning_runs = 0
        self.events.publish(InningStartedEvent(
            inning=inning, half=half,
            home_score=self.state.home_score, away_score=self.state.away_score,
        ))

    def _publish_inning_ended(self) -> None:
        self.events.publish(InningEndedEvent(
            inning=self.state.inning, half=self.state.half, runs_scored=self._half_inning_runs,
        ))

    def _end_half_inning(self) -> None:
        state = self.state
        self._publish_inning_ended()

        if state.half == Half.TOP:
            # Home team already ahead: no need to bat in the bottom half.
            if state.inning >= REGULATION_INNINGS and state.home_score > state.away_score:
                self._end_game()
                return
            self._begin_half_inning(state.inning, Half.BOTTOM)
            return

        if state.inning >= REGULATION_INNINGS and state.home_score != state.away_score:
            self._end_game()
            return
        if state.inning >= REGULATION_INNINGS:
            logger.debug("Tied after %d innings, going to extra innings", state.inning)
        self._begin_half_inning(state.inning + 1, Half.TOP)

    def _end_game(self) -> None:
        self.is_game_over = True
        self.events.publish(GameEndedEvent(
            home_score=self.state.home_score,
            away_score=self.state.away_score,
            innings=self.state.inning,
        ))
        logger.debug("Game over: %s %d - %s %d (%d innings)", self.away_team_name,
                     self.state.away_score, self.home_team_name, self.state.home_score,
                     self.state.inning)

    # -- pitching changes --------------------------------------------------

    def _maybe_change_pitcher(self, fielding_is_home: bool) -> None:
        current = self.pitcher_for(fielding_is_home)
        bullpen = self._bullpens[fielding_is_home]
        if not current.is_exhausted or not bullpen:
            return

        reliever = bullpen.popleft()
        if fielding_is_home:
            self.home_pitcher = reliever
        else:
            self.away_pitcher = reliever
        self.events.publish(PitcherChangedEvent(
            new_pitcher=reliever.name,
            previous_pitcher=current.name,
            is_home_team=fielding_is_home,
            inning=self.state.inning,
            half=self.state.half,
        ))

    # -- baserunning -------------------------------------------------------

    def advance_runners(self, outcome: Outcome, batter: Player, is_home_team: bool) -> None:
        """Apply a walk or hit to the bases, crediting any runs."""
        if outcome == Outcome.WALK:
            self._handle_walk(batter, is_home_team)
            return
        if not outcome.is_hit:
            return

        # Runners take one base more than the batter; on anything past a
        # single that scores everybody.
        runner_advance = outcome.bases + 1
        for index in (2, 1, 0):
            runner = self.state.get_base(index)
            if runner is None:
                continue
            self.state.set_base(index, None)
            self._move_runner(runner, index + 1, index + 1 + runner_advance,
                              batter, outcome, is_home_team)

        self._move_runner(batter, 0, outcome.bases, batter, outcome, is_home_team)

    def _handle_walk(self, batter: Player, is_home_team: bool) -> None:
        # Only forced runners move; a runner with an open base behind it stays.
        first, second, third = self.state.bases
        forced: list[tuple[Player, int]] = []
        if first is not None:
            forced.append((first, 1))
            if second is not None:
                forced.append((second, 2))
                if third is not None:
                    forced.append((third, 3))

        for runner, base in reversed(forced):
            self.state.set_base(base - 1, None)
            self._move_runner(runner, base, base + 1, batter, Outcome.WALK, is_home_team)
        self._move_runner(batter, 0, 1, batter, Outcome.WALK, is_home_team)

    def _move_runner(self, runner: Player, from_base: int, to_base: int, batter: Player,
                     cause: Outcome, is_home_team: bool) -> None:
        if to_base > 3:
            new_score = self.state.add_run(is_home_team)
            self._half_inning_runs += 1
            self.events.publish(RunScoredEvent(
                runner=runner, batter=batter, is_home_team=is_home_team,
                new_score=new_score, scoring_play=cause,
            ))
            return
        self.state.set_base(to_base - 1, runner)
        self.events.publish(RunnerAdvancedEvent(
            runner=runner, from_base=from_base, to_base=to_base, cause=cause,
        ))


# ---------------------------------------------------------------------------
# Engine model
# ---------------------------------------------------------------------------

class BaseballGameSimulation:
    """A ``Game`` exposed through the engine's model contract.

    Each step is one plate appearance and advances simulated time by the
    ``plate_appearance_seconds`` parameter.  Under an orchestrator it
    publishes the score to the shared context and sits out plate
    appearances while ``weather.delayed`` is set.
    """
    name = "BaseballGame"
    version = "1.0.0"

    def __init__(self, config: GameConfig):
        if config is None:
            raise ValueError("config is required")
        self.config = config
        self.game: Game | None = None
        self._context: SimulationContext | None = None
        self._step_delta = timedelta(seconds=DEFAULT_PLATE_APPEARANCE_SECONDS)
        self._final: BaseballGameResult | None = None

    def initialize(self, context: SimulationContext) -> None:
        self._context = context
        params = context.parameters
        seconds = float(params.get_or_default(
            "plate_appearance_seconds", DEFAULT_PLATE_APPEARANCE_SECONDS))
        self._step_delta = timedelta(seconds=seconds)
        if params.get_or_default("verbose", False):
            context.events.register_handler(PlayByPlayLogger())

        # Pitch counts mutate during play; each run gets its own staff.
        config = self.config.model_copy(deep=True)
        self.game = Game(config, PlateAppearanceResolver(context.random), context.events)
        self._final = None

    @property
    def is_complete(self) -> bool:
        return self.game is not None and self.game.is_game_over

    @property
    def outcome(self) -> BaseballGameResult | None:
        if self.game is not None:
            return self.game.result()
        return self._final

    def step(self) -> StepResult:
        if self.game is None or self._context is None:
            raise RuntimeError("Simulation not initialized; call initialize() first")
        if self.game.is_game_over:
            return StepResult.COMPLETED

        shared = self._context.shared
        if shared is not None and shared.get("weather.delayed"):
            logger.info("Plate appearance delayed: %s",
                        shared.get("weather.delay_reason", "weather"))
        else:
            self.game.play_plate_appearance()

        self._context.clock.advance(self._step_delta)
        self._context.events.advance_time(self._step_delta)

        if shared is not None:
            state = self.game.state
            shared.set("baseball.inning", state.inning)
            shared.set("baseball.half", state.half)
            shared.set("baseball.home_score", state.home_score)
            shared.set("baseball.away_score", state.away_score)

        return StepResult.COMPLETED if self.game.is_game_over else StepResult.CONTINUE

    def dispose(self) -> None:
        if self.game is not None:
            self._final = self.game.result()
        self.game = None
        self._context = None


# ---------------------------------------------------------------------------
# Monte Carlo
# ---------------------------------------------------------------------------

@dataclass
class WinProbabilityEstimate:
    games: int
    completed: int
    errors: int
    home_wins: int
    away_wins: int
    mean_home_runs: float
    mean_away_runs: float
    mean_innings: float
    seeds: list[int] = field(default_factory=list)

    @property
    def home_win_probability(self) -> float:
        return self.home_wins / self.completed if self.completed else 0.0

    @property
    def away_win_probability(self) -> float:
        return self.away_wins / self.completed if self.completed else 0.0

    def to_dict(self) -> dict:
        return {
            "games": self.games,
            "completed": self.completed,
            "errors": self.errors,
            "home_wins": self.home_wins,
            "away_wins": self.away_wins,
            "home_win_probability": round(self.home_win_probability, 4),
            "mean_home_runs": round(self.mean_home_runs, 3),
            "mean_away_runs": round(self.mean_away_runs, 3),
            "mean_innings": round(self.mean_innings, 3),
        }


def estimate_win_probability(config: GameConfig, games: int, base_seed: int | None = None,
                             options: RunnerOptions | None = None,
                             parameters: dict | None = None) -> WinProbabilityEstimate:
    """Play *games* independent games in parallel and aggregate the results."""
    if games < 1:
        raise ValueError(f"games must be >= 1, got {games}")

    runner = SimulationRunner(options)
    results = runner.run_parallel(lambda: BaseballGameSimulation(config), games,
                                  parameters=parameters, base_seed=base_seed)

    finished = [r.outcome for r in results
                if r.is_success and isinstance(r.outcome, BaseballGameResult)]
    errors = sum(1 for r in results if not r.is_success)
    if errors:
        logger.warning("%d of %d simulated games did not complete", errors, games)

    def mean(values: list[int]) -> float:
        return statistics.fmean(values) if values else 0.0

    return WinProbabilityEstimate(
        games=games,
        completed=len(finished),
        errors=errors,
        home_wins=sum(1 for g in finished if g.home_win),
        away_wins=sum(1 for g in finished if not g.home_win),
        mean_home_runs=mean([g.home_score for g in finished]),
        mean_away_runs=mean([g.away_score for g in finished]),
        mean_innings=mean([g.innings for g in finished]),
        seeds=[r.seed for r in results],
    )
