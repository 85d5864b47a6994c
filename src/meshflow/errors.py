"""
Workflow Errors
===============
Error taxonomy of the mesh preparation workflow.

Every failure of an algorithm port is converted by the controller into one of
these exceptions before it reaches the presentation layer. The ``message`` is
what the user sees; the full traceback only goes to the log.
"""
from __future__ import annotations

from enum import StrEnum


class ErrorMessages(StrEnum):
    GRID_MUST_BE_POLYGON = "The boundary must form a single simple closed polygon."
    TRIANGULATION_FAILED = "The polygon could not be triangulated."
    TRIANGULATION_REJECTED = "The triangulator produced a mesh that is not a valid triangulation."
    INVALID_TRIANGULATION = "The mesh is not a valid triangulation of its boundary."
    MISSING_TRIANGULATION = "There is no mesh to continue with."
    RENUMBERING_FAILED = "Renumbering of the mesh nodes failed."
    RENUMBERING_NOT_BIJECTIVE = "The renumbering is not a permutation of the mesh nodes."
    SOLVER_FAILED = "The finite element solver failed."
    SINGULAR_SYSTEM = "The system is singular: at least one boundary edge needs a fixed value."
    BOUNDARY_LOAD_FAILED = "The initial boundary could not be loaded."
    WORKFLOW_BUSY = "Another operation is still running."


class WorkflowError(Exception):
    """Base class of all errors reported by the workflow."""

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.__name__

    @property
    def code(self) -> str:
        """Stable identifier of the failure kind."""
        return type(self).__name__


class InvalidPolygon(WorkflowError):
    """The boundary is not a simple polygon. The user stays on the edit step."""

    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.GRID_MUST_BE_POLYGON.value


NotAPolygon = InvalidPolygon


class TriangulationFailed(WorkflowError):
    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.TRIANGULATION_FAILED.value


class InvalidTriangulation(WorkflowError):
    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.INVALID_TRIANGULATION.value


class RenumberingFailed(WorkflowError):
    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.RENUMBERING_FAILED.value


class SolverFailed(WorkflowError):
    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.SOLVER_FAILED.value


class BoundaryLoadFailed(WorkflowError):
    """Fatal: no session can start without an initial boundary."""

    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.BOUNDARY_LOAD_FAILED.value


class IntentRejected(WorkflowError):
    """The intent has no transition from the active step."""


class WorkflowBusy(WorkflowError):
    @classmethod
    def default_message(cls) -> str:
        return ErrorMessages.WORKFLOW_BUSY.value


def describe_exception(exc: BaseException) -> str:
    """Human-readable message of an arbitrary exception."""
    if isinstance(exc, WorkflowError):
        return exc.message
    text = str(exc).strip()
    return text if text else type(exc).__name__
