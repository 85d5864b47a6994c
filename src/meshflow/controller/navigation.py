"""
Workflow Navigation (State Machine)
===================================
This module drives a session from the boundary polygon to the FEM result.

Why is this file needed?
------------------------
1. Single Entry Point: Every user action arrives as an `Intent` through
   `WorkflowController.dispatch`; the controller decides which algorithm runs
   and which step becomes active.
2. Ownership: The controller is the only writer of the WorkflowState. Failed
   actions leave it untouched; the active step changes only as the last
   action of a successful transition.
3. Signals: Views follow the session through Qt signals and the `show(state)`
   call of the view registered for the active step.

Classes:
    Intent: The user actions.
    Outcome: Result of one dispatched intent.
    BackRule: Row of the back-navigation table.
    WorkflowController: The state machine.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from enum import StrEnum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, TYPE_CHECKING, assert_never

from PySide6.QtCore import QObject, Signal

from meshflow.algorithms.base import AlgorithmSuite
from meshflow.controller.pipeline import JobExecutor, ResultJob, ResultPipeline
from meshflow.errors import (
    BoundaryLoadFailed,
    ErrorMessages,
    IntentRejected,
    InvalidPolygon,
    InvalidTriangulation,
    SolverFailed,
    TriangulationFailed,
    WorkflowBusy,
    WorkflowError,
    describe_exception,
)
from meshflow.model.bc import EdgeCondition
from meshflow.model.geometry_primitives import Edge, PointsWithEdges
from meshflow.model.geometry_utils import boundary_edges
from meshflow.model.state import Step, WorkflowState

if TYPE_CHECKING:
    from meshflow.model.fem_input import Solution
    from meshflow.model.io import BoundaryLoader

logger = logging.getLogger(__name__)


class Intent(StrEnum):
    CLEAR = "clear"
    RELOAD = "reload"
    GO_MANUAL = "go-manual"
    GO_AUTO = "go-auto"
    CONTINUE = "continue"
    STEP_BACK = "step-back"


@dataclass(frozen=True)
class Outcome:
    """
    What happened to a dispatched intent.

    `pending` is set when the work was handed to an executor; the final
    result then arrives through the controller signals.
    """
    accepted: bool
    step: Step
    error: Optional[WorkflowError] = None
    pending: bool = False

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None


@dataclass(frozen=True)
class BackRule:
    target: Optional[Step]
    discard_mesh: bool = False


def back_rule(step: Step) -> BackRule:
    """Where "step back" leads from `step` (None: nowhere, nothing happens)."""
    match step:
        case Step.EDITING_BOUNDARY:
            return BackRule(target=None)
        case Step.MANUAL_TRIANGULATION:
            return BackRule(target=Step.EDITING_BOUNDARY, discard_mesh=True)
        case Step.TRIANGULATION_RESULT:
            return BackRule(target=Step.EDITING_BOUNDARY, discard_mesh=True)
        case Step.SETTING_EDGE_CONDITIONS:
            return BackRule(target=Step.TRIANGULATION_RESULT)
        case Step.RESULT:
            return BackRule(target=Step.SETTING_EDGE_CONDITIONS)
        case _:
            assert_never(step)


class StepView(Protocol):
    def show(self, state: WorkflowState) -> None:
        ...


class WorkflowController(QObject):
    """Navigation state machine owning the WorkflowState."""
    # Signal(object) keeps the Step enum type intact on the receiving side
    step_changed = Signal(object)
    error_occurred = Signal(str)
    busy_changed = Signal(bool)
    conditions_changed = Signal(object)

    def __init__(
        self,
        loader: BoundaryLoader,
        algorithms: Optional[AlgorithmSuite] = None,
        executor: Optional[JobExecutor] = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._loader = loader
        self._algorithms = algorithms if algorithms is not None else AlgorithmSuite.default()
        self._pipeline = ResultPipeline(self._algorithms)
        self._executor = executor

        self._state: Optional[WorkflowState] = None
        self._views: Dict[Step, StepView] = {}
        self._busy = False
        self._current_job: Optional[ResultJob] = None
        self._boundary_edges_cache: Tuple[Optional[PointsWithEdges], List[Edge]] = (None, [])

    # --- ACCESSORS ---

    @property
    def state(self) -> WorkflowState:
        return self._require_started()

    @property
    def active_step(self) -> Step:
        return self._require_started().active_step

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def algorithms(self) -> AlgorithmSuite:
        return self._algorithms

    def boundary_edges(self) -> List[Edge]:
        """Outer edges of the triangulated mesh (the ones that accept conditions)."""
        mesh = self._require_started().triangulated_mesh
        if mesh is None:
            return []
        cached_mesh, edges = self._boundary_edges_cache
        if cached_mesh is not mesh:
            edges = boundary_edges(mesh)
            self._boundary_edges_cache = (mesh, edges)
        return list(edges)

    # --- LIFECYCLE ---

    def start(self) -> WorkflowState:
        """
        Loads the initial boundary and enters the editing step.

        Raises:
            RuntimeError: If the controller was already started.
            BoundaryLoadFailed: If the loader fails. The session cannot start.
        """
        if self._state is not None:
            raise RuntimeError("The workflow has already been started.")

        try:
            boundary = self._loader.load_initial_boundary()
        except BoundaryLoadFailed:
            logger.exception("Loading the initial boundary failed")
            raise
        except Exception as e:
            logger.exception("Loading the initial boundary failed")
            raise BoundaryLoadFailed(f"{ErrorMessages.BOUNDARY_LOAD_FAILED.value} {describe_exception(e)}") from e

        if not isinstance(boundary, PointsWithEdges):
            raise BoundaryLoadFailed(f"Loader returned {type(boundary).__name__}, expected PointsWithEdges.")

        # Private copy: later changes on the loader side must not leak in
        self._state = WorkflowState.from_initial_boundary(boundary.clone())
        logger.info(f"Workflow started with {len(boundary.points)} boundary points.")
        self._enter(Step.EDITING_BOUNDARY)
        return self._state

    # --- VIEWS ---

    def register_view(self, step: Step, view: StepView) -> None:
        """Registers (or replaces) the view displaying `step`."""
        step = Step(step)
        self._views[step] = view
        if self._state is not None and self._state.active_step == step:
            view.show(self._state)

    def unregister_view(self, step: Step) -> None:
        self._views.pop(Step(step), None)

    # --- DISPATCH ---

    def dispatch(self, intent: Intent | str) -> Outcome:
        """
        Single entry point for navigation.

        Rejected intents and failed actions leave the WorkflowState as it was.
        Port failures are also emitted through `error_occurred`.
        """
        state = self._require_started()
        intent = Intent(intent)

        if self._busy:
            logger.warning(f"Intent '{intent}' ignored, a computation is still running.")
            return Outcome(accepted=False, step=state.active_step, error=WorkflowBusy())

        logger.debug(f"Dispatching '{intent}' in {state.active_step.name}.")
        match (state.active_step, intent):
            case (_, Intent.STEP_BACK):
                return self._step_back()
            case (Step.EDITING_BOUNDARY, Intent.CLEAR):
                return self._restart_editing(PointsWithEdges.empty())
            case (Step.EDITING_BOUNDARY, Intent.RELOAD):
                return self._restart_editing(state.initial_boundary.clone())
            case (Step.EDITING_BOUNDARY, Intent.GO_MANUAL):
                state.manual_draft = state.working_boundary.clone()
                return self._enter(Step.MANUAL_TRIANGULATION)
            case (Step.EDITING_BOUNDARY, Intent.GO_AUTO):
                return self._auto_triangulate()
            case (Step.MANUAL_TRIANGULATION, Intent.CONTINUE):
                return self._accept_manual_mesh()
            case (Step.TRIANGULATION_RESULT, Intent.CONTINUE):
                return self._enter(Step.SETTING_EDGE_CONDITIONS)
            case (Step.SETTING_EDGE_CONDITIONS, Intent.CONTINUE):
                return self._compute_result()
            case _:
                return self._reject(intent)

    # --- EDITING HELPERS (no step change) ---

    def boundary_for_editing(self) -> PointsWithEdges:
        """The live working boundary; only available while editing it."""
        state = self._require_editable(Step.EDITING_BOUNDARY)
        return state.working_boundary

    def draft_for_editing(self) -> PointsWithEdges:
        """The live manual mesh draft; only available during manual triangulation."""
        state = self._require_editable(Step.MANUAL_TRIANGULATION)
        if state.manual_draft is None:
            state.manual_draft = state.working_boundary.clone()
        return state.manual_draft

    def submit_manual_mesh(self, mesh: PointsWithEdges) -> None:
        """Replaces the manual draft with `mesh` (copied)."""
        state = self._require_editable(Step.MANUAL_TRIANGULATION)
        state.manual_draft = mesh.clone()
        logger.info(f"Manual mesh submitted: {len(mesh.points)} points, {len(mesh.edges)} edges.")

    def set_edge_condition(self, edge: Edge | Sequence[int], condition: EdgeCondition) -> None:
        state = self._require_editable(Step.SETTING_EDGE_CONDITIONS)
        edge = self._boundary_edge(edge)
        if not isinstance(condition, EdgeCondition):
            raise ValueError(f"Expected an EdgeCondition, got {type(condition).__name__}.")
        state.edge_conditions[edge] = condition
        state.solution = None
        logger.info(f"Condition on {edge}: {condition.type} = {condition.value:g}")
        self.conditions_changed.emit(dict(state.edge_conditions))

    def clear_edge_condition(self, edge: Edge | Sequence[int]) -> None:
        state = self._require_editable(Step.SETTING_EDGE_CONDITIONS)
        edge = self._boundary_edge(edge)
        if state.edge_conditions.pop(edge, None) is not None:
            state.solution = None
            logger.info(f"Condition on {edge} removed.")
            self.conditions_changed.emit(dict(state.edge_conditions))

    def update_settings(self, **values: Any) -> None:
        """Changes solver settings, e.g. ``update_settings(conductivity=2.0)``."""
        state = self._require_editable(Step.SETTING_EDGE_CONDITIONS)
        try:
            settings = replace(state.settings, **{k: float(v) for k, v in values.items()})
        except TypeError as e:
            raise ValueError(f"Unknown solver setting in {sorted(values)}.") from e
        if settings.conductivity <= 0.0:
            raise ValueError(f"Conductivity must be positive, got {settings.conductivity}.")
        state.settings = settings
        state.solution = None
        logger.info(f"Solver settings updated: {settings}")

    # --- TRANSITIONS ---

    def _enter(self, step: Step) -> Outcome:
        """Makes `step` active, notifies listeners and renders its view."""
        state = self._require_started()
        previous = state.active_step
        state.active_step = step
        logger.info(f"Step {previous.name} -> {step.name}")
        self.step_changed.emit(step)
        view = self._views.get(step)
        if view is not None:
            view.show(state)
        return Outcome(accepted=True, step=step)

    def _restart_editing(self, boundary: PointsWithEdges) -> Outcome:
        state = self._require_started()
        state.discard_mesh()
        state.working_boundary = boundary
        return self._enter(Step.EDITING_BOUNDARY)

    def _step_back(self) -> Outcome:
        state = self._require_started()
        rule = back_rule(state.active_step)
        if rule.target is None:
            logger.debug(f"Step back from {state.active_step.name}: nothing to go back to.")
            return Outcome(accepted=True, step=state.active_step)
        if rule.discard_mesh:
            state.discard_mesh()
        return self._enter(rule.target)

    def _auto_triangulate(self) -> Outcome:
        state = self._require_started()
        boundary = state.working_boundary

        try:
            valid = bool(self._algorithms.polygon_validator.run(boundary.clone()))
        except Exception as e:
            logger.exception("Polygon validation failed")
            return self._report(self._as_error(e, InvalidPolygon))
        if not valid:
            logger.warning("Boundary is not a simple closed polygon.")
            return self._report(InvalidPolygon())

        try:
            mesh = self._algorithms.triangulator.run(boundary.clone())
            if not isinstance(mesh, PointsWithEdges):
                raise TriangulationFailed(f"Triangulator returned {type(mesh).__name__}.")
            accepted = bool(self._algorithms.triangulation_validator.run(mesh.clone()))
        except Exception as e:
            logger.exception("Triangulation failed")
            return self._report(self._as_error(e, TriangulationFailed))
        if not accepted:
            logger.error("Triangulator output rejected by the triangulation validator.")
            return self._report(TriangulationFailed(ErrorMessages.TRIANGULATION_REJECTED.value))

        state.discard_mesh()
        state.triangulated_mesh = mesh
        return self._enter(Step.TRIANGULATION_RESULT)

    def _accept_manual_mesh(self) -> Outcome:
        state = self._require_started()
        draft = state.manual_draft
        if draft is None:
            return self._report(InvalidTriangulation(ErrorMessages.MISSING_TRIANGULATION.value))

        try:
            valid = bool(self._algorithms.triangulation_validator.run(draft.clone()))
        except Exception as e:
            logger.exception("Triangulation validation failed")
            return self._report(self._as_error(e, InvalidTriangulation))
        if not valid:
            logger.warning("Manual mesh is not a valid triangulation.")
            return self._report(InvalidTriangulation())

        state.triangulated_mesh = draft.clone()
        state.manual_draft = None
        state.edge_conditions = {}
        state.solution = None
        return self._enter(Step.SETTING_EDGE_CONDITIONS)

    def _compute_result(self) -> Outcome:
        state = self._require_started()
        if state.triangulated_mesh is None:
            return self._report(InvalidTriangulation(ErrorMessages.MISSING_TRIANGULATION.value))

        job = ResultJob.snapshot(self._pipeline, state.triangulated_mesh, state.edge_conditions, state.settings)

        if self._executor is None:
            try:
                solution = job.run()
            except Exception as e:
                return self._report(self._as_error(e, SolverFailed))
            return self._store_solution(solution)

        self._current_job = job
        self._set_busy(True)
        try:
            self._executor.submit(job, self._on_job_succeeded, self._on_job_failed)
        except Exception as e:
            logger.exception("Submitting the result job failed")
            self._current_job = None
            self._set_busy(False)
            return self._report(self._as_error(e, SolverFailed))
        logger.info("Result job submitted, waiting for the executor.")
        return Outcome(accepted=True, step=state.active_step, pending=True)

    def _store_solution(self, solution: Solution) -> Outcome:
        state = self._require_started()
        state.solution = solution
        logger.info(
            f"Result ready: {len(solution)} values in [{solution.minimum:.4g}, {solution.maximum:.4g}], "
            f"bandwidth {solution.bandwidth_before} -> {solution.bandwidth_after}."
        )
        return self._enter(Step.RESULT)

    # --- EXECUTOR CALLBACKS (main thread) ---

    def _on_job_succeeded(self, job: ResultJob, solution: Solution) -> None:
        if job is not self._current_job:
            logger.debug("Ignoring result of a stale job.")
            return
        self._current_job = None
        self._set_busy(False)
        self._store_solution(solution)

    def _on_job_failed(self, job: ResultJob, error: BaseException) -> None:
        if job is not self._current_job:
            logger.debug("Ignoring failure of a stale job.")
            return
        self._current_job = None
        self._set_busy(False)
        self._report(self._as_error(error, SolverFailed))

    # --- HELPERS ---

    def _require_started(self) -> WorkflowState:
        if self._state is None:
            raise RuntimeError("The workflow has not been started; call start() first.")
        return self._state

    def _require_editable(self, step: Step) -> WorkflowState:
        state = self._require_started()
        if self._busy:
            raise WorkflowBusy()
        if state.active_step != step:
            raise ValueError(f"Only possible in {step.name}, the active step is {state.active_step.name}.")
        return state

    def _boundary_edge(self, edge: Edge | Sequence[int]) -> Edge:
        edge = edge if isinstance(edge, Edge) else Edge(*edge)
        if edge not in set(self.boundary_edges()):
            raise ValueError(f"{edge} is not a boundary edge of the triangulated mesh.")
        return edge

    def _set_busy(self, busy: bool) -> None:
        if busy != self._busy:
            self._busy = busy
            self.busy_changed.emit(busy)

    def _reject(self, intent: Intent) -> Outcome:
        step = self._require_started().active_step
        error = IntentRejected(f"'{intent}' is not available in {step.name}.")
        logger.warning(error.message)
        return Outcome(accepted=False, step=step, error=error)

    def _report(self, error: WorkflowError) -> Outcome:
        """Surfaces a failed action; the active step stays as it is."""
        step = self._require_started().active_step
        logger.error(f"{error.code}: {error.message}")
        self.error_occurred.emit(error.message)
        return Outcome(accepted=False, step=step, error=error)

    @staticmethod
    def _as_error(exc: BaseException, kind: type[WorkflowError]) -> WorkflowError:
        """Keeps workflow errors, wraps anything else into `kind` with its message."""
        if isinstance(exc, WorkflowError):
            return exc
        return kind(f"{kind.default_message()} {describe_exception(exc)}")
