# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Simulation runner: single runs and parallel Monte Carlo batches.

``run`` builds a private context for one model (seeded random source, clock,
event scheduler, snapshot manager, metrics) and steps the model until it
completes or a pause/stop/step-budget boundary is hit.  Any exception that
escapes the model becomes an ``ERROR`` result; the model is always disposed.

``run_parallel`` derives one seed per run from a single base seed and runs
the batch on a thread pool.  Runs share nothing but the read-only seed list
and the results list they are written into.
"""

from __future__ import annotations

import logging
import random
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from simengine.clock import ClockMode, SimulationClock
from simengine.context import (
    RunControl,
    SimulationContext,
    SimulationModel,
    SimulationParameters,
    StepResult,
)
from simengine.events import EventHandler, EventScheduler
from simengine.metrics import MetricsEventHandler, SimulationMetrics, SimulationStatus
from simengine.random_source import MAX_SEED, SeedableRandomSource
from simengine.state import InMemoryStateManager

logger = logging.getLogger(__name__)


class RunnerOptions(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    max_steps: int | None = Field(default=None, ge=0, description="Stop after this many steps")
    clock_mode: ClockMode = ClockMode.DISCRETE_EVENT
    default_time_step: timedelta = timedelta(seconds=1)
    max_parallelism: int | None = Field(default=None, ge=1, description="Worker threads; None lets the pool decide")


@dataclass
class SimulationResult:
    run_id: uuid.UUID
    status: SimulationStatus
    metrics: SimulationMetrics
    seed: int
    error: BaseException | None = None
    outcome: Any = None

    @property
    def is_success(self) -> bool:
        return self.status == SimulationStatus.COMPLETED

    def __str__(self) -> str:
        return f"SimulationResult: {self.status.value} (seed: {self.seed})"


def generate_seeds(count: int, base_seed: int | None = None) -> list[int]:
    """Per-run seeds; identical for the same *base_seed* and *count*."""
    rng = random.Random(base_seed)
    return [rng.randrange(MAX_SEED) for _ in range(count)]


class SimulationRunner:

    def __init__(self, options: RunnerOptions | None = None):
        self.options = options or RunnerOptions()

    def run(self, simulation: SimulationModel, seed: int | None = None,
            parameters: SimulationParameters | Mapping[str, Any] | None = None,
            handlers: Iterable[EventHandler] = (),
            control: RunControl | None = None) -> SimulationResult:
        run_id = uuid.uuid4()
        metrics = SimulationMetrics(run_id)
        rng = SeedableRandomSource(seed)
        clock = SimulationClock(self.options.clock_mode, self.options.default_time_step)
        events = EventScheduler()
        state = InMemoryStateManager(lambda: clock, on_snapshot=lambda _: metrics.record_snapshot())
        if not isinstance(parameters, SimulationParameters):
            parameters = SimulationParameters(parameters)

        context = SimulationContext(
            run_id=run_id,
            random=rng,
            clock=clock,
            events=events,
            state=state,
            parameters=parameters,
            metrics=metrics,
            control=control or RunControl(),
        )
        events.register_handler(MetricsEventHandler(metrics))
        for handler in handlers:
            events.register_handler(handler)

        logger.info("Run %s starting: %s (seed=%d)", run_id, simulation.name, rng.seed)
        try:
            metrics.start()
            simulation.initialize(context)
            status = self._run_loop(simulation, context, metrics)
            result = SimulationResult(run_id, status, metrics, rng.seed,
                                      outcome=getattr(simulation, "outcome", None))
        except Exception as exc:
            metrics.record_error()
            metrics.stop(SimulationStatus.ERROR, clock.current_time)
            logger.error("Run %s (seed=%d) failed: %s", run_id, rng.seed, exc)
            return SimulationResult(run_id, SimulationStatus.ERROR, metrics, rng.seed, exc)
        finally:
            simulation.dispose()

        logger.info("Run %s finished: %s after %d steps", run_id,
                    result.status.value, metrics.step_count)
        return result

    def _run_loop(self, simulation: SimulationModel, context: SimulationContext,
                  metrics: SimulationMetrics) -> SimulationStatus:
        max_steps = self.options.max_steps
        steps = 0

        while not simulation.is_complete and not context.stop_requested:
            if context.pause_requested:
                metrics.stop(SimulationStatus.PAUSED, context.clock.current_time)
                return SimulationStatus.PAUSED

            if max_steps is not None and steps >= max_steps:
                metrics.stop(SimulationStatus.STOPPED, context.clock.current_time)
                return SimulationStatus.STOPPED

            result = simulation.step()
            metrics.record_step()
            steps += 1

            if result == StepResult.CONTINUE:
                continue
            if result == StepResult.COMPLETED:
                metrics.stop(SimulationStatus.COMPLETED, context.clock.current_time)
                return SimulationStatus.COMPLETED
            if result == StepResult.PAUSED:
                metrics.stop(SimulationStatus.PAUSED, context.clock.current_time)
                return SimulationStatus.PAUSED
            metrics.record_error()
            metrics.stop(SimulationStatus.ERROR, context.clock.current_time)
            logger.error("Run %s: %s reported an error step", context.run_id, simulation.name)
            return SimulationStatus.ERROR

        status = SimulationStatus.STOPPED if context.stop_requested else SimulationStatus.COMPLETED
        metrics.stop(status, context.clock.current_time)
        return status

    def run_parallel(self, factory: Callable[[], SimulationModel], count: int,
                     parameters: SimulationParameters | Mapping[str, Any] | None = None,
                     base_seed: int | None = None) -> list[SimulationResult]:
        """Run *count* independent simulations built by *factory*.

        Results come back in seed order regardless of completion order.  A
        run that fails shows up as an ``ERROR`` result; the batch carries on.
        """
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        seeds = generate_seeds(count, base_seed)
        if isinstance(parameters, SimulationParameters):
            parameters = parameters.to_dict()
        base_params = dict(parameters or {})

        results: list[SimulationResult | None] = [None] * count
        lock = threading.Lock()

        def run_one(index: int) -> None:
            try:
                simulation = factory()
            except Exception as exc:
                logger.error("Building simulation %d (seed=%d) failed: %s", index, seeds[index], exc)
                run_id = uuid.uuid4()
                metrics = SimulationMetrics(run_id)
                metrics.record_error()
                metrics.stop(SimulationStatus.ERROR, timedelta(0))
                result = SimulationResult(run_id, SimulationStatus.ERROR, metrics, seeds[index], exc)
            else:
                result = self.run(simulation, seeds[index], SimulationParameters(base_params))
            with lock:
                results[index] = result

        with ThreadPoolExecutor(max_workers=self.options.max_parallelism) as pool:
            futures = [pool.submit(run_one, i) for i in range(count)]
            for future in as_completed(futures):
                future.result()

        logger.info("Parallel batch of %d runs finished (base_seed=%s)", count, base_seed)
        return [r for r in results if r is not None]
