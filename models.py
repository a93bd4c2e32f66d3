# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for the play-by-play simulator: rate profiles, pitchers, game setup."""

from __future__ import annotations

import json
from importlib import resources
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Outcome(str, Enum):
    WALK = "WALK"
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    HOME_RUN = "HOME_RUN"
    OUT = "OUT"

    @property
    def bases(self) -> int:
        """Bases the batter takes: 1 for a walk or single, 4 for a home run, 0 for an out."""
        return _OUTCOME_BASES[self]

    @property
    def is_hit(self) -> bool:
        return self in (Outcome.SINGLE, Outcome.DOUBLE, Outcome.TRIPLE, Outcome.HOME_RUN)


_OUTCOME_BASES = {
    Outcome.WALK: 1,
    Outcome.SINGLE: 1,
    Outcome.DOUBLE: 2,
    Outcome.TRIPLE: 3,
    Outcome.HOME_RUN: 4,
    Outcome.OUT: 0,
}


class Half(str, Enum):
    TOP = "TOP"
    BOTTOM = "BOTTOM"


# ---------------------------------------------------------------------------
# Rate profiles
# ---------------------------------------------------------------------------

class Player(BaseModel):
    """A batter's per-plate-appearance outcome rates.

    Whatever probability mass the five rates leave over is an out.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    walk_rate: float = Field(ge=0.0, le=1.0, description="Walks per PA")
    single_rate: float = Field(ge=0.0, le=1.0, description="Singles per PA")
    double_rate: float = Field(ge=0.0, le=1.0, description="Doubles per PA")
    triple_rate: float = Field(ge=0.0, le=1.0, description="Triples per PA")
    home_run_rate: float = Field(ge=0.0, le=1.0, description="Home runs per PA")

    @model_validator(mode="after")
    def _rates_fit_in_one(self) -> Player:
        if self.on_base_rate > 1.0 + 1e-9:
            raise ValueError(
                f"Outcome rates for {self.name} sum to {self.on_base_rate:.4f}, exceeding 1.0"
            )
        return self

    @property
    def on_base_rate(self) -> float:
        return (self.walk_rate + self.single_rate + self.double_rate
                + self.triple_rate + self.home_run_rate)

    @property
    def out_rate(self) -> float:
        return max(0.0, 1.0 - self.on_base_rate)


class PitcherStats(BaseModel):
    """Rates a pitcher allows per plate appearance, plus a strikeout rate."""
    model_config = ConfigDict(frozen=True)

    walk_rate: float = Field(ge=0.0, le=1.0)
    singles_allowed_rate: float = Field(ge=0.0, le=1.0)
    doubles_allowed_rate: float = Field(ge=0.0, le=1.0)
    triples_allowed_rate: float = Field(ge=0.0, le=1.0)
    home_runs_allowed_rate: float = Field(ge=0.0, le=1.0)
    strikeout_rate: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _rates_fit_in_one(self) -> PitcherStats:
        total = (self.walk_rate + self.singles_allowed_rate + self.doubles_allowed_rate
                 + self.triples_allowed_rate + self.home_runs_allowed_rate)
        if total > 1.0 + 1e-9:
            raise ValueError(f"Allowed outcome rates sum to {total:.4f}, exceeding 1.0")
        return self

    @classmethod
    def league_average(cls) -> PitcherStats:
        return cls(
            walk_rate=0.08,
            singles_allowed_rate=0.15,
            doubles_allowed_rate=0.045,
            triples_allowed_rate=0.005,
            home_runs_allowed_rate=0.03,
            strikeout_rate=0.22,
        )


class Pitcher(BaseModel):
    """A pitcher: fixed rates plus a pitch count that grows during the game."""
    name: str = Field(min_length=1)
    stats: PitcherStats = Field(default_factory=PitcherStats.league_average)
    fatigue_threshold: int = Field(default=75, ge=0, description="Pitch count where fatigue begins")
    max_pitch_count: int = Field(default=110, ge=0, description="Pitch count at full fatigue")
    pitch_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _max_not_below_threshold(self) -> Pitcher:
        if self.max_pitch_count < self.fatigue_threshold:
            raise ValueError(
                f"max_pitch_count ({self.max_pitch_count}) is below "
                f"fatigue_threshold ({self.fatigue_threshold})"
            )
        return self

    @property
    def fatigue_level(self) -> float:
        """0.0 up to the threshold, rising linearly to 1.0 at the max pitch count."""
        if self.pitch_count <= self.fatigue_threshold:
            return 0.0
        fatigue_range = self.max_pitch_count - self.fatigue_threshold
        if fatigue_range <= 0:
            return 1.0
        return min(1.0, (self.pitch_count - self.fatigue_threshold) / fatigue_range)

    @property
    def is_exhausted(self) -> bool:
        return self.pitch_count >= self.max_pitch_count

    def record_pitches(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"Pitch count increment must be >= 0, got {count}")
        self.pitch_count += count

    def reset_pitch_count(self) -> None:
        self.pitch_count = 0

    def fatigue_adjusted_rate(self, base_rate: float, max_increase: float = 0.5) -> float:
        # Tired pitchers give up more walks and hits.
        return base_rate * (1.0 + self.fatigue_level * max_increase)

    def fatigue_adjusted_strikeout_rate(self, max_decrease: float = 0.4) -> float:
        return self.stats.strikeout_rate * (1.0 - self.fatigue_level * max_decrease)

    @classmethod
    def league_average(cls, name: str) -> Pitcher:
        return cls(name=name)

    def __str__(self) -> str:
        return f"{self.name} ({self.pitch_count} pitches, fatigue {self.fatigue_level:.0%})"


# ---------------------------------------------------------------------------
# Game setup
# ---------------------------------------------------------------------------

class GameConfig(BaseModel):
    """Everything needed to start a game: lineups, names, pitching staffs."""
    home_team: list[Player] = Field(min_length=1, description="Home batting order")
    away_team: list[Player] = Field(min_length=1, description="Away batting order")
    home_team_name: str = "Home"
    away_team_name: str = "Away"
    home_pitcher: Optional[Pitcher] = None
    away_pitcher: Optional[Pitcher] = None
    home_bullpen: list[Pitcher] = Field(default_factory=list)
    away_bullpen: list[Pitcher] = Field(default_factory=list)

    @classmethod
    def from_roster_dict(cls, rosters: dict) -> GameConfig:
        """Build a config from the roster JSON layout (``home``/``away`` blocks)."""
        home = rosters["home"]
        away = rosters["away"]
        return cls(
            home_team=home["lineup"],
            away_team=away["lineup"],
            home_team_name=home.get("name", "Home"),
            away_team_name=away.get("name", "Away"),
            home_pitcher=home.get("pitcher"),
            away_pitcher=away.get("pitcher"),
            home_bullpen=home.get("bullpen", []),
            away_bullpen=away.get("bullpen", []),
        )


# ---------------------------------------------------------------------------
# Roster loading
# ---------------------------------------------------------------------------

SAMPLE_ROSTERS = "sample_rosters.json"


def load_rosters(path: Path | None = None) -> dict:
    """Load both team rosters from JSON."""
    if path is None:
        with resources.files("rosters").joinpath(SAMPLE_ROSTERS).open() as f:
            return json.load(f)
    with open(path) as f:
        return json.load(f)


def load_game_config(path: Path | None = None) -> GameConfig:
    return GameConfig.from_roster_dict(load_rosters(path))
