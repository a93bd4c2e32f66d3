# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for multi-model orchestration.

Verifies:
1. Registration ids, duplicates, and registering after initialize
2. Execution order: priority, registration order on ties, dependencies first
3. Circular and unknown dependencies fail initialization
4. Each model sees merged parameters and the orchestrator's shared context
5. Every active model steps once per barrier, then the barrier hook fires
6. Optional model failures disable the model; required failures abort the run
7. Completion, continue_after_complete, and dispose
8. A baseball game and a weather model share state under the runner
"""

import logging
import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from models import load_game_config
from simengine.clock import SimulationClock
from simengine.context import SimulationContext, SimulationParameters, StepResult
from simengine.events import EventScheduler
from simengine.metrics import SimulationStatus
from simengine.orchestrator import (
    ModelOptions,
    ModelState,
    OrchestratedSimulation,
    OrchestratorError,
    OrchestratorState,
    SimulationOrchestrator,
)
from simengine.random_source import SeedableRandomSource
from simengine.runner import SimulationRunner
from simengine.state import InMemoryStateManager
from simulation import BaseballGameResult, BaseballGameSimulation


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class CountingModel:
    """Completes after *steps* steps; optionally raises on step *fail_on*."""
    version = "1.0"

    def __init__(self, name, steps=3, log=None, fail_on=None, fail_init=False,
                 error_result_on=None):
        self.name = name
        self.steps = steps
        self.log = log if log is not None else []
        self.fail_on = fail_on
        self.fail_init = fail_init
        self.error_result_on = error_result_on
        self.taken = 0
        self.context = None
        self.disposed = False

    def initialize(self, context):
        if self.fail_init:
            raise RuntimeError(f"{self.name} cannot start")
        self.context = context

    def step(self):
        self.taken += 1
        self.log.append(self.name)
        if self.fail_on == self.taken:
            raise RuntimeError(f"{self.name} broke on step {self.taken}")
        if self.error_result_on == self.taken:
            return StepResult.ERROR
        return StepResult.COMPLETED if self.is_complete else StepResult.CONTINUE

    @property
    def is_complete(self):
        return self.taken >= self.steps

    def dispose(self):
        self.disposed = True


class WeatherDelay:
    """Rain delay for the first *delayed_steps* steps, then clears and finishes."""
    name = "Weather"
    version = "1.0"

    def __init__(self, delayed_steps=2):
        self.delayed_steps = delayed_steps
        self.taken = 0
        self.context = None

    def initialize(self, context):
        self.context = context

    def step(self):
        self.taken += 1
        delayed = self.taken <= self.delayed_steps
        self.context.shared.set("weather.delayed", delayed)
        if delayed:
            self.context.shared.set("weather.delay_reason", "rain")
        return StepResult.COMPLETED if self.is_complete else StepResult.CONTINUE

    @property
    def is_complete(self):
        return self.taken > self.delayed_steps

    def dispose(self):
        pass


def make_test_context(parameters=None, seed=1):
    clock = SimulationClock()
    return SimulationContext(
        run_id=uuid.uuid4(),
        random=SeedableRandomSource(seed),
        clock=clock,
        events=EventScheduler(),
        state=InMemoryStateManager(lambda: clock),
        parameters=SimulationParameters(parameters),
    )


def run_to_completion(orchestrator, limit=100):
    results = []
    for _ in range(limit):
        results.append(orchestrator.step())
        if results[-1] == StepResult.COMPLETED:
            break
    return results


@pytest.fixture
def orchestrator():
    return SimulationOrchestrator()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegistration:

    def test_id_defaults_to_model_name(self, orchestrator):
        reg = orchestrator.register(CountingModel("Alpha"))
        assert reg.id == "Alpha"
        assert reg.state == ModelState.REGISTERED
        assert orchestrator.state == OrchestratorState.READY

    def test_explicit_id(self, orchestrator):
        reg = orchestrator.register(CountingModel("Alpha"), ModelOptions(id="alpha-2"))
        assert reg.id == "alpha-2"
        assert orchestrator.get_registration("alpha-2") is reg

    def test_duplicate_id_rejected(self, orchestrator):
        orchestrator.register(CountingModel("Alpha"))
        with pytest.raises(ValueError):
            orchestrator.register(CountingModel("Alpha"))

    def test_none_model_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.register(None)

    def test_register_after_initialize_rejected(self, orchestrator):
        orchestrator.register(CountingModel("Alpha"))
        orchestrator.initialize(make_test_context())
        with pytest.raises(OrchestratorError):
            orchestrator.register(CountingModel("Beta"))

    def test_initialize_without_models_rejected(self, orchestrator):
        with pytest.raises(OrchestratorError):
            orchestrator.initialize(make_test_context())

    def test_step_before_initialize_rejected(self, orchestrator):
        orchestrator.register(CountingModel("Alpha"))
        with pytest.raises(OrchestratorError):
            orchestrator.step()


# ---------------------------------------------------------------------------
# Execution order
# ---------------------------------------------------------------------------

class TestExecutionOrder:

    def test_lower_priority_first(self, orchestrator):
        orchestrator.register(CountingModel("A"), ModelOptions(priority=50))
        orchestrator.register(CountingModel("B"), ModelOptions(priority=10))
        orchestrator.register(CountingModel("C"))
        orchestrator.initialize(make_test_context())
        assert orchestrator.execution_order == ["B", "A", "C"]

    def test_ties_keep_registration_order(self, orchestrator):
        for name in ("Z", "Y", "X"):
            orchestrator.register(CountingModel(name), ModelOptions(priority=5))
        orchestrator.initialize(make_test_context())
        assert orchestrator.execution_order == ["Z", "Y", "X"]

    def test_dependency_beats_priority(self, orchestrator):
        log = []
        orchestrator.register(CountingModel("X", steps=2, log=log), ModelOptions(priority=10),
                              depends_on=["Y"])
        orchestrator.register(CountingModel("Y", steps=2, log=log), ModelOptions(priority=200))
        orchestrator.initialize(make_test_context())
        assert orchestrator.execution_order == ["Y", "X"]

        orchestrator.step()
        orchestrator.step()
        assert log == ["Y", "X", "Y", "X"]

    def test_diamond_dependencies(self, orchestrator):
        orchestrator.register(CountingModel("Top"), depends_on=["Left", "Right"])
        orchestrator.register(CountingModel("Left"), depends_on=["Base"])
        orchestrator.register(CountingModel("Right"), depends_on=["Base"])
        orchestrator.register(CountingModel("Base"))
        orchestrator.initialize(make_test_context())
        order = orchestrator.execution_order
        assert order.index("Base") < order.index("Left") < order.index("Top")
        assert order.index("Right") < order.index("Top")
        assert len(order) == 4

    def test_cycle_fails_initialization(self, orchestrator):
        a = CountingModel("A")
        orchestrator.register(a, depends_on=["B"])
        orchestrator.register(CountingModel("B"), depends_on=["A"])
        with pytest.raises(OrchestratorError, match="Circular"):
            orchestrator.initialize(make_test_context())
        assert orchestrator.state != OrchestratorState.RUNNING
        assert a.context is None

    def test_self_dependency_is_a_cycle(self, orchestrator):
        orchestrator.register(CountingModel("A"), depends_on=["A"])
        with pytest.raises(OrchestratorError):
            orchestrator.initialize(make_test_context())

    def test_unknown_dependency_fails_initialization(self, orchestrator):
        orchestrator.register(CountingModel("A"), depends_on=["Ghost"])
        with pytest.raises(OrchestratorError) as excinfo:
            orchestrator.initialize(make_test_context())
        assert "Ghost" in str(excinfo.value)
        assert excinfo.value.model_id == "A"


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

class TestInitialization:

    def test_parameters_merged_per_model(self, orchestrator):
        a = CountingModel("A")
        b = CountingModel("B")
        orchestrator.register(a, ModelOptions(parameters={"speed": 3}))
        orchestrator.register(b)
        orchestrator.initialize(make_test_context({"speed": 1, "mode": "test"}))

        assert a.context.parameters.get("speed") == 3
        assert a.context.parameters.get("mode") == "test"
        assert b.context.parameters.get("speed") == 1

    def test_models_share_orchestrator_context(self, orchestrator):
        a = CountingModel("A")
        b = CountingModel("B")
        orchestrator.register(a)
        orchestrator.register(b)
        orchestrator.initialize(make_test_context())
        a.context.shared.set("note", "hello")
        assert b.context.shared.get("note") == "hello"
        assert a.context.shared is orchestrator.shared

    def test_optional_init_failure_disables_model(self, orchestrator, caplog):
        good = CountingModel("Good", steps=1)
        orchestrator.register(CountingModel("Flaky", fail_init=True), ModelOptions(optional=True))
        orchestrator.register(good)
        with caplog.at_level(logging.WARNING, logger="simengine.orchestrator"):
            orchestrator.initialize(make_test_context())
        assert orchestrator.state == OrchestratorState.RUNNING
        assert orchestrator.get_registration("Flaky").state == ModelState.ERROR
        assert any("Flaky" in r.getMessage() for r in caplog.records)
        run_to_completion(orchestrator)
        assert good.taken == 1

    def test_required_init_failure_raises(self, orchestrator):
        orchestrator.register(CountingModel("Broken", fail_init=True))
        with pytest.raises(OrchestratorError) as excinfo:
            orchestrator.initialize(make_test_context())
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert orchestrator.state == OrchestratorState.ERROR


# ---------------------------------------------------------------------------
# Stepping
# ---------------------------------------------------------------------------

class TestStepping:

    def test_models_finish_at_their_own_pace(self, orchestrator):
        short = CountingModel("Short", steps=1)
        long = CountingModel("Long", steps=2)
        orchestrator.register(short)
        orchestrator.register(long)
        orchestrator.initialize(make_test_context())

        results = run_to_completion(orchestrator)
        assert results == [StepResult.CONTINUE, StepResult.CONTINUE, StepResult.COMPLETED]
        assert (short.taken, long.taken) == (1, 2)
        assert orchestrator.state == OrchestratorState.COMPLETED
        assert orchestrator.get_registration("Short").step_count == 1

    def test_barrier_hook_fires_once_per_step(self, orchestrator):
        barriers = []
        orchestrator.barrier_reached.append(barriers.append)
        orchestrator.register(CountingModel("A", steps=2))
        orchestrator.register(CountingModel("B", steps=3))
        context = make_test_context()
        orchestrator.initialize(context)
        context.clock.advance(timedelta(seconds=5))

        steps = len(run_to_completion(orchestrator))
        assert [b.step_number for b in barriers] == list(range(1, steps + 1))
        assert barriers[0].simulation_time == timedelta(seconds=5)
        assert len(barriers[0].models) == 2

    def test_before_and_after_hooks_bracket_each_model(self, orchestrator):
        calls = []
        orchestrator.before_model_step.append(lambda i: calls.append(("before", i.registration.id)))
        orchestrator.after_model_step.append(
            lambda i: calls.append(("after", i.registration.id, i.result)))
        orchestrator.register(CountingModel("A", steps=1))
        orchestrator.register(CountingModel("B", steps=1))
        orchestrator.initialize(make_test_context())
        orchestrator.step()
        assert calls == [
            ("before", "A"), ("after", "A", StepResult.COMPLETED),
            ("before", "B"), ("after", "B", StepResult.COMPLETED),
        ]

    def test_failing_hook_does_not_strand_model(self, orchestrator, caplog):
        def explode(info):
            raise RuntimeError("hook blew up")

        after = []
        orchestrator.before_model_step.append(explode)
        orchestrator.after_model_step.append(explode)
        orchestrator.after_model_step.append(lambda i: after.append(i.registration.id))
        orchestrator.register(CountingModel("A", steps=2))
        orchestrator.initialize(make_test_context())

        with caplog.at_level(logging.ERROR, logger="simengine.orchestrator"):
            assert orchestrator.step() == StepResult.CONTINUE
        assert orchestrator.get_registration("A").state == ModelState.READY
        assert after == ["A"]
        assert any("hook blew up" in r.getMessage() for r in caplog.records)
        assert run_to_completion(orchestrator)[-1] == StepResult.COMPLETED

    def test_optional_step_failure_disables_model(self, orchestrator, caplog):
        flaky = CountingModel("Flaky", steps=5, fail_on=1)
        steady = CountingModel("Steady", steps=3)
        orchestrator.register(flaky, ModelOptions(optional=True))
        orchestrator.register(steady)
        orchestrator.initialize(make_test_context())

        with caplog.at_level(logging.WARNING, logger="simengine.orchestrator"):
            results = run_to_completion(orchestrator)
        assert results[-1] == StepResult.COMPLETED
        assert flaky.taken == 1
        assert steady.taken == 3
        reg = orchestrator.get_registration("Flaky")
        assert reg.state == ModelState.ERROR
        assert isinstance(reg.error, RuntimeError)
        assert any("Flaky" in r.getMessage() for r in caplog.records)

    def test_required_step_failure_raises_after_hook(self, orchestrator):
        seen = []
        orchestrator.after_model_step.append(seen.append)
        orchestrator.register(CountingModel("Core", steps=5, fail_on=2))
        orchestrator.initialize(make_test_context())

        assert orchestrator.step() == StepResult.CONTINUE
        with pytest.raises(OrchestratorError) as excinfo:
            orchestrator.step()
        assert excinfo.value.model_id == "Core"
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert orchestrator.state == OrchestratorState.ERROR
        assert seen[-1].result == StepResult.ERROR
        assert isinstance(seen[-1].error, RuntimeError)
        with pytest.raises(OrchestratorError):
            orchestrator.step()

    def test_error_step_result_is_a_failure(self, orchestrator):
        orchestrator.register(CountingModel("Core", steps=5, error_result_on=1))
        orchestrator.initialize(make_test_context())
        with pytest.raises(OrchestratorError):
            orchestrator.step()

    def test_continue_after_complete(self, orchestrator):
        observer = CountingModel("Observer", steps=1)
        worker = CountingModel("Worker", steps=3)
        orchestrator.register(observer, ModelOptions(continue_after_complete=True))
        orchestrator.register(worker)
        orchestrator.initialize(make_test_context())

        results = run_to_completion(orchestrator)
        assert results[-1] == StepResult.COMPLETED
        assert worker.taken == 3
        # Stepped on every barrier, including the final one.
        assert observer.taken == len(results)

    def test_dispose_releases_everything(self, orchestrator):
        a = CountingModel("A", steps=1)
        orchestrator.register(a)
        orchestrator.initialize(make_test_context())
        orchestrator.shared.set("k", 1)
        orchestrator.dispose()
        assert a.disposed
        assert orchestrator.registrations == ()
        assert orchestrator.execution_order == []
        assert len(orchestrator.shared) == 0


# ---------------------------------------------------------------------------
# Under the runner
# ---------------------------------------------------------------------------

def test_orchestrated_run_completes():
    orchestrator = SimulationOrchestrator()
    orchestrator.register(CountingModel("A", steps=2))
    orchestrator.register(CountingModel("B", steps=4))
    result = SimulationRunner().run(OrchestratedSimulation(orchestrator), seed=3)
    assert result.status == SimulationStatus.COMPLETED
    assert result.metrics.step_count == 5
    assert set(result.outcome) == {"A", "B"}
    print("  test_orchestrated_run_completes: PASSED")


def test_orchestrated_required_failure_is_error_result():
    orchestrator = SimulationOrchestrator()
    model = CountingModel("Core", steps=5, fail_on=3)
    orchestrator.register(model)
    result = SimulationRunner().run(OrchestratedSimulation(orchestrator), seed=3)
    assert result.status == SimulationStatus.ERROR
    assert isinstance(result.error, OrchestratorError)
    assert model.disposed
    print("  test_orchestrated_required_failure_is_error_result: PASSED")


def test_weather_delay_holds_up_the_game():
    orchestrator = SimulationOrchestrator()
    weather = WeatherDelay(delayed_steps=2)
    game = BaseballGameSimulation(load_game_config())
    orchestrator.register(weather, ModelOptions(priority=10, optional=True))
    orchestrator.register(game, depends_on=["Weather"])

    scores = []
    orchestrator.barrier_reached.append(
        lambda info: scores.append(orchestrator.shared.get("baseball.home_score")))

    result = SimulationRunner().run(OrchestratedSimulation(orchestrator), seed=11)
    assert result.status == SimulationStatus.COMPLETED

    final = result.outcome["BaseballGame"]
    assert isinstance(final, BaseballGameResult)
    assert final.home_score != final.away_score
    # Two delayed steps, then one plate appearance per step, then an idle barrier.
    assert result.metrics.step_count == final.plate_appearances + 3
    assert result.metrics.simulation_time == timedelta(seconds=30 * (final.plate_appearances + 2))
    assert scores[0] == 0
    assert scores[-1] == final.home_score
    print("  test_weather_delay_holds_up_the_game: PASSED")
