# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Centralized configuration for environment variables."""

from __future__ import annotations

import logging
import os

from simengine.runner import RunnerOptions

SEED_ENV = "DIAMOND_SEED"
MAX_PARALLELISM_ENV = "DIAMOND_MAX_PARALLELISM"
LOG_LEVEL_ENV = "DIAMOND_LOG_LEVEL"
GAMES_ENV = "DIAMOND_GAMES"

DEFAULT_GAMES = 1000
DEFAULT_LOG_LEVEL = "WARNING"


def _int_env(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_default_seed() -> int | None:
    """Return the base seed from the environment, or None for a random one."""
    return _int_env(SEED_ENV)


def get_max_parallelism() -> int:
    value = _int_env(MAX_PARALLELISM_ENV)
    if value is None:
        return os.cpu_count() or 1
    if value < 1:
        raise ValueError(f"{MAX_PARALLELISM_ENV} must be >= 1, got {value}")
    return value


def get_default_games() -> int:
    value = _int_env(GAMES_ENV)
    return DEFAULT_GAMES if value is None else value


def get_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL


def configure_logging(level: str | int | None = None) -> None:
    """Configure the root logger once for command-line use."""
    logging.basicConfig(
        level=level if level is not None else get_log_level(),
        format="%(levelname)s: %(message)s",
    )


def runner_options_from_env() -> RunnerOptions:
    return RunnerOptions(max_parallelism=get_max_parallelism())
