# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Multi-model orchestration.

Independent models (a baseball game, a weather system, ...) are registered
with a priority and a list of model ids they depend on.  ``initialize``
resolves one execution order for the whole run and every ``step`` advances
each active model exactly once in that order, then fires the barrier hook.
A hook that raises is logged and skipped, like a failing event handler.

Execution order: registrations are sorted by ascending priority (stable, so
ties keep registration order) and visited depth-first, dependencies before
dependents.  A dependency always runs before its dependent whatever the
priorities say.

Usage::

    orchestrator = SimulationOrchestrator()
    orchestrator.register(weather, ModelOptions(priority=10, optional=True))
    orchestrator.register(game, depends_on=["Weather"])
    result = SimulationRunner().run(OrchestratedSimulation(orchestrator), seed=7)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field

from simengine.context import SharedContext, SimulationContext, SimulationModel, StepResult

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


class OrchestratorError(RuntimeError):
    """Configuration or runtime failure of the orchestrator."""

    def __init__(self, message: str, model_id: str | None = None):
        super().__init__(message)
        self.model_id = model_id


class OrchestratorState(str, Enum):
    CREATED = "CREATED"
    READY = "READY"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class ModelState(str, Enum):
    REGISTERED = "REGISTERED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    STEPPING = "STEPPING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class ModelOptions(BaseModel):
    """Per-model registration options."""
    id: str | None = Field(default=None, description="Registration id; defaults to the model's name")
    priority: int = Field(default=DEFAULT_PRIORITY, description="Lower numbers step earlier")
    optional: bool = Field(default=False, description="A failure disables this model instead of the run")
    continue_after_complete: bool = False
    parameters: dict[str, Any] = Field(default_factory=dict)


@dataclass
class ModelRegistration:
    id: str
    model: SimulationModel
    options: ModelOptions
    depends_on: tuple[str, ...] = ()
    state: ModelState = ModelState.REGISTERED
    step_count: int = 0
    error: BaseException | None = None

    def __repr__(self) -> str:
        return f"ModelRegistration({self.id!r}, {self.state.value})"


@dataclass(frozen=True)
class ModelStepInfo:
    registration: ModelRegistration
    step_number: int
    result: StepResult | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class BarrierInfo:
    step_number: int
    models: tuple[ModelRegistration, ...]
    simulation_time: timedelta


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SimulationOrchestrator:
    """Steps registered models in dependency order, one barrier at a time."""

    def __init__(self):
        self.state = OrchestratorState.CREATED
        self.shared = SharedContext()
        self.step_count = 0
        self.before_model_step: list[Callable[[ModelStepInfo], None]] = []
        self.after_model_step: list[Callable[[ModelStepInfo], None]] = []
        self.barrier_reached: list[Callable[[BarrierInfo], None]] = []
        self._registrations: list[ModelRegistration] = []
        self._by_id: dict[str, ModelRegistration] = {}
        self._execution_order: list[ModelRegistration] = []
        self._context: SimulationContext | None = None

    @property
    def registrations(self) -> tuple[ModelRegistration, ...]:
        return tuple(self._registrations)

    @property
    def execution_order(self) -> list[str]:
        return [r.id for r in self._execution_order]

    def get_registration(self, model_id: str) -> ModelRegistration | None:
        return self._by_id.get(model_id)

    # -- registration ------------------------------------------------------

    def register(self, model: SimulationModel, options: ModelOptions | None = None,
                 depends_on: Iterable[str] = ()) -> ModelRegistration:
        if model is None:
            raise ValueError("model is required")
        if self.state not in (OrchestratorState.CREATED, OrchestratorState.READY):
            raise OrchestratorError(f"Cannot register models in state {self.state.value}")

        options = options or ModelOptions()
        model_id = options.id or model.name
        if model_id in self._by_id:
            raise ValueError(f"Model with id '{model_id}' is already registered")

        registration = ModelRegistration(model_id, model, options, tuple(depends_on))
        self._registrations.append(registration)
        self._by_id[model_id] = registration
        self.state = OrchestratorState.READY
        return registration

    # -- initialisation ----------------------------------------------------

    def initialize(self, context: SimulationContext) -> None:
        if context is None:
            raise ValueError("context is required")
        if self.state != OrchestratorState.READY:
            raise OrchestratorError(
                f"Cannot initialize in state {self.state.value}; register at least one model first"
            )
        if not self._registrations:
            raise OrchestratorError("No models registered")

        self._context = context
        self._execution_order = self._resolve_execution_order()
        logger.debug("Execution order: %s", self.execution_order)

        for registration in self._execution_order:
            registration.state = ModelState.INITIALIZING
            model_context = context.with_parameters(
                context.parameters.merged(registration.options.parameters), self.shared
            )
            try:
                registration.model.initialize(model_context)
            except Exception as exc:
                registration.state = ModelState.ERROR
                registration.error = exc
                if not registration.options.optional:
                    self.state = OrchestratorState.ERROR
                    logger.error("Model '%s' failed to initialize: %s", registration.id, exc)
                    raise OrchestratorError(
                        f"Failed to initialize model '{registration.id}'", registration.id
                    ) from exc
                logger.warning("Optional model '%s' failed to initialize: %s",
                               registration.id, exc)
                continue
            registration.state = ModelState.READY

        self.state = OrchestratorState.RUNNING

    def _resolve_execution_order(self) -> list[ModelRegistration]:
        order: list[ModelRegistration] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(registration: ModelRegistration) -> None:
            if registration.id in visited:
                return
            if registration.id in visiting:
                raise OrchestratorError(
                    f"Circular dependency detected involving model '{registration.id}'",
                    registration.id,
                )
            visiting.add(registration.id)
            for dep_id in registration.depends_on:
                dependency = self._by_id.get(dep_id)
                if dependency is None:
                    raise OrchestratorError(
                        f"Model '{registration.id}' depends on unknown model '{dep_id}'",
                        registration.id,
                    )
                visit(dependency)
            visiting.discard(registration.id)
            visited.add(registration.id)
            order.append(registration)

        for registration in sorted(self._registrations, key=lambda r: r.options.priority):
            visit(registration)
        return order

    # -- stepping ----------------------------------------------------------

    def step(self) -> StepResult:
        """Run one barrier: step every active model once, in execution order.

        Returns ``COMPLETED`` once no model was left to step, otherwise
        ``CONTINUE``.  A non-optional model failure raises ``OrchestratorError``
        after the after-step hooks have seen it.
        """
        if self.state != OrchestratorState.RUNNING or self._context is None:
            raise OrchestratorError(f"Cannot step in state {self.state.value}")

        self.step_count += 1
        has_active = False

        for registration in self._execution_order:
            continues = registration.options.continue_after_complete
            if registration.state == ModelState.ERROR:
                continue
            if registration.state == ModelState.COMPLETED and not continues:
                continue
            if registration.model.is_complete and not continues:
                registration.state = ModelState.COMPLETED
                continue

            # Finished models stepped only because of continue_after_complete
            # do not hold the run open.
            if not registration.model.is_complete:
                has_active = True

            registration.state = ModelState.STEPPING
            _fire(self.before_model_step, ModelStepInfo(registration, self.step_count))

            try:
                result = registration.model.step()
                if result == StepResult.ERROR:
                    raise OrchestratorError(
                        f"Model '{registration.id}' reported an error result", registration.id
                    )
            except Exception as exc:
                registration.state = ModelState.ERROR
                registration.error = exc
                failed = ModelStepInfo(registration, self.step_count, StepResult.ERROR, exc)
                if not registration.options.optional:
                    self.state = OrchestratorState.ERROR
                    logger.error("Model '%s' failed during step %d: %s",
                                 registration.id, self.step_count, exc)
                    _fire(self.after_model_step, failed)
                    raise OrchestratorError(
                        f"Model '{registration.id}' failed during step {self.step_count}",
                        registration.id,
                    ) from exc
                logger.warning("Optional model '%s' failed during step %d and is disabled: %s",
                               registration.id, self.step_count, exc)
                _fire(self.after_model_step, failed)
                continue

            registration.step_count += 1
            if result == StepResult.COMPLETED or registration.model.is_complete:
                registration.state = ModelState.COMPLETED
            else:
                registration.state = ModelState.READY
            _fire(self.after_model_step, ModelStepInfo(registration, self.step_count, result))

        _fire(self.barrier_reached, BarrierInfo(
            step_number=self.step_count,
            models=tuple(self._execution_order),
            simulation_time=self._context.clock.current_time,
        ))

        if not has_active:
            self.state = OrchestratorState.COMPLETED
            return StepResult.COMPLETED
        return StepResult.CONTINUE

    # -- teardown ----------------------------------------------------------

    def dispose(self) -> None:
        for registration in self._registrations:
            try:
                registration.model.dispose()
            except Exception as exc:
                logger.warning("Disposing model '%s' failed: %s", registration.id, exc)
        self._registrations.clear()
        self._by_id.clear()
        self._execution_order.clear()
        self.shared.clear()


def _fire(hooks: list[Callable[[Any], None]], info: Any) -> None:
    for hook in list(hooks):
        try:
            hook(info)
        except Exception as exc:
            logger.error("Orchestrator hook %r failed: %s", hook, exc)


# ---------------------------------------------------------------------------
# Runner adapter
# ---------------------------------------------------------------------------

class OrchestratedSimulation:
    """Presents an orchestrator as a single model so the runner can drive it."""
    version = "1.0.0"

    def __init__(self, orchestrator: SimulationOrchestrator, name: str = "Orchestrator"):
        self.orchestrator = orchestrator
        self.name = name

    def initialize(self, context: SimulationContext) -> None:
        self.orchestrator.initialize(context)

    def step(self) -> StepResult:
        return self.orchestrator.step()

    @property
    def is_complete(self) -> bool:
        return self.orchestrator.state in (OrchestratorState.COMPLETED, OrchestratorState.ERROR)

    @property
    def outcome(self) -> dict[str, Any]:
        """Each registered model's own ``outcome`` attribute, by id."""
        return {
            r.id: getattr(r.model, "outcome", None) for r in self.orchestrator.registrations
        }

    def dispose(self) -> None:
        self.orchestrator.dispose()
