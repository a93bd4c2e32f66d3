# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Baseball domain events published through the engine's event scheduler.

Each variant is a frozen dataclass with an ``event_type`` tag.  Batters and
runners are carried as (immutable) ``Player`` records; pitchers are carried
by name because their pitch count keeps changing after the event.

Base numbering in these events: 0 is home plate (a batter who has not
yet reached), 1-3 are the bases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Union

from models import Half, Outcome, Player
from simengine.events import EventHandler, SimulationEvent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------

GAME_STARTED = "baseball.game.started"
GAME_ENDED = "baseball.game.ended"
INNING_STARTED = "baseball.inning.started"
INNING_ENDED = "baseball.inning.ended"
AT_BAT_STARTED = "baseball.atbat.started"
AT_BAT_COMPLETED = "baseball.atbat.completed"
RUN_SCORED = "baseball.run.scored"
OUT_RECORDED = "baseball.out.recorded"
RUNNER_ADVANCED = "baseball.runner.advanced"
PITCHER_CHANGED = "baseball.pitcher.changed"


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class GameStartedEvent(SimulationEvent):
    event_type: ClassVar[str] = GAME_STARTED
    home_team_name: str
    away_team_name: str
    home_pitcher: str | None = None
    away_pitcher: str | None = None


@dataclass(frozen=True, kw_only=True)
class GameEndedEvent(SimulationEvent):
    event_type: ClassVar[str] = GAME_ENDED
    home_score: int
    away_score: int
    innings: int


@dataclass(frozen=True, kw_only=True)
class InningStartedEvent(SimulationEvent):
    event_type: ClassVar[str] = INNING_STARTED
    inning: int
    half: Half
    home_score: int
    away_score: int


@dataclass(frozen=True, kw_only=True)
class InningEndedEvent(SimulationEvent):
    event_type: ClassVar[str] = INNING_ENDED
    inning: int
    half: Half
    runs_scored: int


@dataclass(frozen=True, kw_only=True)
class AtBatStartedEvent(SimulationEvent):
    event_type: ClassVar[str] = AT_BAT_STARTED
    batter: Player
    pitcher: str | None
    inning: int
    half: Half
    outs: int


@dataclass(frozen=True, kw_only=True)
class AtBatCompletedEvent(SimulationEvent):
    event_type: ClassVar[str] = AT_BAT_COMPLETED
    batter: Player
    pitcher: str | None
    outcome: Outcome
    inning: int
    half: Half


@dataclass(frozen=True, kw_only=True)
class RunScoredEvent(SimulationEvent):
    event_type: ClassVar[str] = RUN_SCORED
    runner: Player
    batter: Player
    is_home_team: bool
    new_score: int
    scoring_play: Outcome


@dataclass(frozen=True, kw_only=True)
class OutRecordedEvent(SimulationEvent):
    event_type: ClassVar[str] = OUT_RECORDED
    batter: Player
    out_number: int
    inning: int
    half: Half


@dataclass(frozen=True, kw_only=True)
class RunnerAdvancedEvent(SimulationEvent):
    event_type: ClassVar[str] = RUNNER_ADVANCED
    runner: Player
    from_base: int
    to_base: int
    cause: Outcome


@dataclass(frozen=True, kw_only=True)
class PitcherChangedEvent(SimulationEvent):
    event_type: ClassVar[str] = PITCHER_CHANGED
    new_pitcher: str
    previous_pitcher: str | None
    is_home_team: bool
    inning: int
    half: Half


BaseballEvent = Union[
    GameStartedEvent,
    GameEndedEvent,
    InningStartedEvent,
    InningEndedEvent,
    AtBatStartedEvent,
    AtBatCompletedEvent,
    RunScoredEvent,
    OutRecordedEvent,
    RunnerAdvancedEvent,
    PitcherChangedEvent,
]

BASEBALL_EVENT_TYPES = frozenset({
    GAME_STARTED, GAME_ENDED, INNING_STARTED, INNING_ENDED, AT_BAT_STARTED,
    AT_BAT_COMPLETED, RUN_SCORED, OUT_RECORDED, RUNNER_ADVANCED, PITCHER_CHANGED,
})


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_OUTCOME_LABELS = {
    Outcome.OUT: "OUT",
    Outcome.WALK: "WALK",
    Outcome.SINGLE: "SINGLE!",
    Outcome.DOUBLE: "DOUBLE!",
    Outcome.TRIPLE: "TRIPLE!",
    Outcome.HOME_RUN: "HOME RUN!",
}

_BASE_LABELS = {0: "home", 1: "1st", 2: "2nd", 3: "3rd"}


def _half_label(half: Half) -> str:
    return "Top" if half == Half.TOP else "Bottom"


def describe_event(event: BaseballEvent) -> str:
    """One play-by-play line for a baseball event."""
    match event:
        case GameStartedEvent():
            return f"GAME START: {event.away_team_name} @ {event.home_team_name}"
        case GameEndedEvent():
            return (f"FINAL SCORE: Away {event.away_score} - Home {event.home_score} "
                    f"({event.innings} innings)")
        case InningStartedEvent():
            return (f"--- {_half_label(event.half)} of Inning {event.inning} | "
                    f"Score: Away {event.away_score} - Home {event.home_score} ---")
        case InningEndedEvent():
            return f"[{event.runs_scored} run(s) scored this half-inning]"
        case AtBatStartedEvent():
            vs = f" vs {event.pitcher}" if event.pitcher else ""
            return f"At bat: {event.batter.name}{vs}"
        case AtBatCompletedEvent():
            return f"Result: {_OUTCOME_LABELS[event.outcome]}"
        case RunScoredEvent():
            side = "Home" if event.is_home_team else "Away"
            return f"{event.runner.name} SCORES! ({side} now has {event.new_score})"
        case OutRecordedEvent():
            return f"Out #{event.out_number}"
        case RunnerAdvancedEvent():
            return f"{event.runner.name} advances to {_BASE_LABELS.get(event.to_base, event.to_base)}"
        case PitcherChangedEvent():
            replaces = f" (replaces {event.previous_pitcher})" if event.previous_pitcher else ""
            return f"Pitching change: {event.new_pitcher} enters{replaces}"
    raise TypeError(f"Not a baseball event: {type(event).__name__}")


class PlayByPlayLogger(EventHandler):
    """Writes one INFO log line per baseball event."""
    event_types = BASEBALL_EVENT_TYPES

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def handle(self, event: SimulationEvent) -> None:
        self._log.info("%s", describe_event(event))
