# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Plate-appearance resolution.

Turns one uniform draw plus batter (and optionally pitcher) rates into an
``Outcome``.  The draw is walked through the categories in a fixed order
(walk, single, double, triple, home run), subtracting each rate until it
falls below one; whatever is left over is an out.  That ordering decides
which outcome a draw lands on at the category boundaries.

With a pitcher, each category is blended with the Log5 formula against a
league-average baseline, using the pitcher's fatigue-adjusted rates.  The
pitcher's pitch count is charged after every matchup; telling a strikeout
from a ball in play on an out takes a second draw.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from models import Outcome, Pitcher, Player
from simengine.random_source import RandomSource


# ---------------------------------------------------------------------------
# League baseline
# ---------------------------------------------------------------------------

LEAGUE_WALK_RATE = 0.085
LEAGUE_SINGLE_RATE = 0.155
LEAGUE_DOUBLE_RATE = 0.045
LEAGUE_TRIPLE_RATE = 0.005
LEAGUE_HOME_RUN_RATE = 0.035
LEAGUE_STRIKEOUT_RATE = 0.22

PITCHES_PER_OUT = 4
PITCHES_PER_WALK = 6
PITCHES_PER_STRIKEOUT = 5
PITCHES_PER_HIT = 3


def log5(batter_rate: float, pitcher_rate: float, league_rate: float) -> float:
    """Blend a batter and pitcher rate against the league rate.

    Falls back to the plain average when the league rate is degenerate.
    The result is clamped to [0, 1].
    """
    if league_rate <= 0 or league_rate >= 1:
        return (batter_rate + pitcher_rate) / 2

    numerator = batter_rate * pitcher_rate / league_rate
    denominator = numerator + (1 - batter_rate) * (1 - pitcher_rate) / (1 - league_rate)
    if denominator <= 0:
        return 0.0
    return max(0.0, min(1.0, numerator / denominator))


@dataclass(frozen=True)
class OutcomeProbabilities:
    walk: float
    single: float
    double: float
    triple: float
    home_run: float
    strikeout: float  # fatigue-adjusted pitcher K rate, not a blended outcome

    def in_draw_order(self) -> tuple[tuple[Outcome, float], ...]:
        return (
            (Outcome.WALK, self.walk),
            (Outcome.SINGLE, self.single),
            (Outcome.DOUBLE, self.double),
            (Outcome.TRIPLE, self.triple),
            (Outcome.HOME_RUN, self.home_run),
        )


def matchup_probabilities(batter: Player, pitcher: Pitcher) -> OutcomeProbabilities:
    stats = pitcher.stats
    return OutcomeProbabilities(
        walk=log5(batter.walk_rate,
                  pitcher.fatigue_adjusted_rate(stats.walk_rate), LEAGUE_WALK_RATE),
        single=log5(batter.single_rate,
                    pitcher.fatigue_adjusted_rate(stats.singles_allowed_rate), LEAGUE_SINGLE_RATE),
        double=log5(batter.double_rate,
                    pitcher.fatigue_adjusted_rate(stats.doubles_allowed_rate), LEAGUE_DOUBLE_RATE),
        triple=log5(batter.triple_rate,
                    pitcher.fatigue_adjusted_rate(stats.triples_allowed_rate), LEAGUE_TRIPLE_RATE),
        home_run=log5(batter.home_run_rate,
                      pitcher.fatigue_adjusted_rate(stats.home_runs_allowed_rate), LEAGUE_HOME_RUN_RATE),
        strikeout=pitcher.fatigue_adjusted_strikeout_rate(),
    )


def _select(roll: float, categories: tuple[tuple[Outcome, float], ...]) -> Outcome:
    for outcome, rate in categories:
        if roll < rate:
            return outcome
        roll -= rate
    return Outcome.OUT


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

_NO_PITCHER: Any = object()


class PlateAppearanceResolver:
    """Resolves plate appearances against a shared random source."""

    def __init__(self, random_source: RandomSource):
        if random_source is None:
            raise ValueError("random_source is required")
        self.random = random_source

    def resolve(self, batter: Player, pitcher: Pitcher = _NO_PITCHER) -> Outcome:
        """Resolve one plate appearance.

        Called with the batter alone, only the batter's rates are used and
        exactly one draw is consumed.  Passing a pitcher (``None`` included)
        goes through ``resolve_matchup``, which rejects a missing pitcher.
        """
        if pitcher is not _NO_PITCHER:
            return self.resolve_matchup(batter, pitcher)
        if batter is None:
            raise ValueError("batter is required")

        return _select(self.random.next_double(), (
            (Outcome.WALK, batter.walk_rate),
            (Outcome.SINGLE, batter.single_rate),
            (Outcome.DOUBLE, batter.double_rate),
            (Outcome.TRIPLE, batter.triple_rate),
            (Outcome.HOME_RUN, batter.home_run_rate),
        ))

    def resolve_matchup(self, batter: Player, pitcher: Pitcher) -> Outcome:
        """Resolve a batter-vs-pitcher plate appearance with Log5 blending.

        Consumes one draw, plus a second on an out to decide strikeout
        (5 pitches) versus ball in play (4 pitches).  Walks cost 6 pitches
        and hits 3.
        """
        if batter is None:
            raise ValueError("batter is required")
        if pitcher is None:
            raise ValueError("pitcher is required")

        probabilities = matchup_probabilities(batter, pitcher)
        outcome = _select(self.random.next_double(), probabilities.in_draw_order())
        pitcher.record_pitches(self._pitches_for(outcome, batter, probabilities))
        return outcome

    def _pitches_for(self, outcome: Outcome, batter: Player,
                     probabilities: OutcomeProbabilities) -> int:
        if outcome == Outcome.WALK:
            return PITCHES_PER_WALK
        if outcome.is_hit:
            return PITCHES_PER_HIT
        strikeout_chance = log5(
            1.0 - batter.on_base_rate, probabilities.strikeout, LEAGUE_STRIKEOUT_RATE
        )
        if self.random.next_double() < strikeout_chance:
            return PITCHES_PER_STRIKEOUT
        return PITCHES_PER_OUT
