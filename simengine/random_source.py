# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Random sources for the simulation engine.

Every draw the rules engine makes goes through a ``RandomSource``.  The
production source wraps a seeded ``random.Random`` so a run can be replayed
from its seed; ``ReplayRandomSource`` hands back a fixed list of draws and
fails loudly when a caller consumes more than it was given.
"""

from __future__ import annotations

import random
import threading
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence, TypeVar

T = TypeVar("T")

MAX_SEED = 2**31 - 1


class RandomSource(Protocol):
    """Anything that can produce the next uniform double in [0, 1)."""

    def next_double(self) -> float: ...


class RandomSourceExhaustedError(RuntimeError):
    """Raised when a replay source has no more values to hand out."""


@dataclass(frozen=True)
class RandomSnapshot:
    seed: int
    generation_count: int


# ---------------------------------------------------------------------------
# Seedable source
# ---------------------------------------------------------------------------

class SeedableRandomSource:
    """Thread-safe PRNG wrapper that remembers its seed and draw count.

    Two instances built with the same seed produce the same sequence of
    draws.  Without a seed, one is picked at random and exposed through
    ``seed`` so the run can be reproduced later.
    """

    def __init__(self, seed: int | None = None):
        if seed is None:
            seed = random.randint(0, MAX_SEED - 1)
        self.seed = seed
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._generation_count = 0

    @property
    def generation_count(self) -> int:
        with self._lock:
            return self._generation_count

    def next_double(self) -> float:
        with self._lock:
            self._generation_count += 1
            return self._rng.random()

    def next_int(self, lo: int, hi: int | None = None) -> int:
        """Return an int in [lo, hi), or in [0, lo) when *hi* is omitted."""
        if hi is None:
            lo, hi = 0, lo
        with self._lock:
            self._generation_count += 1
            return self._rng.randrange(lo, hi)

    def next_bool(self, probability: float = 0.5) -> bool:
        return self.next_double() < probability

    def choose(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot choose from an empty sequence")
        return items[self.next_int(len(items))]

    def snapshot(self) -> RandomSnapshot:
        with self._lock:
            return RandomSnapshot(self.seed, self._generation_count)

    def __repr__(self) -> str:
        return f"SeedableRandomSource(seed={self.seed}, draws={self._generation_count})"


# ---------------------------------------------------------------------------
# Replay source
# ---------------------------------------------------------------------------

class ReplayRandomSource:
    """Replays a fixed queue of draws in order.

    Used to pin the exact number of draws a piece of code consumes: running
    out of values raises ``RandomSourceExhaustedError`` instead of silently
    wrapping around.
    """

    def __init__(self, values: Iterable[float]):
        self._values: deque[float] = deque(values)
        self.consumed = 0

    @property
    def remaining(self) -> int:
        return len(self._values)

    def next_double(self) -> float:
        if not self._values:
            raise RandomSourceExhaustedError(
                f"ReplayRandomSource exhausted after {self.consumed} draws"
            )
        self.consumed += 1
        return self._values.popleft()
