"""
Result Pipeline
===============
Turns a triangulated mesh with edge conditions into nodal results.

Why is this file needed?
------------------------
1. Ordering: The renumbering always runs first and the solver only runs on
   its verified output. A failed renumbering never reaches the solver.
2. Translation: The solver works in the renumbered node order; this module
   maps mesh, triangles and edge conditions into that order and maps the
   results back.
3. Threading: A `ResultJob` is a self-contained snapshot, so it can run on a
   worker thread while the GUI keeps the Workflow State untouched.

Note: This module should NOT import PySide6.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Callable, Dict, Protocol, TYPE_CHECKING

import numpy as np

from meshflow.errors import ErrorMessages, RenumberingFailed, SolverFailed, describe_exception
from meshflow.model.bc import EdgeCondition
from meshflow.model.fem_input import FiniteElementMethodInput, Solution
from meshflow.model.geometry_primitives import Edge, PointsWithAdjacencyMatrix, PointsWithEdges
from meshflow.model.geometry_utils import mesh_triangles
from meshflow.model.state import SolverSettings

if TYPE_CHECKING:
    from meshflow.algorithms.base import AlgorithmSuite

logger = logging.getLogger(__name__)


class ResultPipeline:
    def __init__(self, algorithms: AlgorithmSuite) -> None:
        self.renumberer = algorithms.renumberer
        self.fem_solver = algorithms.fem_solver

    def run(
        self,
        mesh: PointsWithEdges,
        conditions: Dict[Edge, EdgeCondition],
        settings: SolverSettings,
    ) -> Solution:
        """
        Renumbers the mesh nodes and solves the finite element problem.

        Raises:
            RenumberingFailed: The renumberer raised or returned something that
                is not a relabelling of the mesh graph. The solver is not called.
            SolverFailed: The solver raised or returned unusable values.
        """
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(mesh)
        renumbered = self._renumber(graph)

        inverse = renumbered.inverse_permutation()
        triangles = np.asarray(mesh_triangles(mesh), dtype=np.int64).reshape(-1, 3)
        fem_input = FiniteElementMethodInput(
            mesh=renumbered,
            triangles=inverse[triangles],
            conditions={
                Edge(int(inverse[e.start]), int(inverse[e.end])): c for e, c in conditions.items()
            },
            conductivity=settings.conductivity,
            source=settings.source,
        )

        values = self._solve(fem_input)

        # values[k] belongs to renumbered node k, i.e. original node permutation[k]
        return Solution(
            values=values[inverse],
            permutation=renumbered.permutation.copy(),
            bandwidth_before=graph.bandwidth,
            bandwidth_after=renumbered.bandwidth,
        )

    def _renumber(self, graph: PointsWithAdjacencyMatrix) -> PointsWithAdjacencyMatrix:
        logger.info(f"Renumbering {graph.number_of_nodes} nodes with {self.renumberer!r}.")
        try:
            renumbered = self.renumberer.run(graph)
        except RenumberingFailed:
            logger.exception("Renumbering failed")
            raise
        except Exception as e:
            logger.exception("Renumbering failed")
            raise RenumberingFailed(f"{ErrorMessages.RENUMBERING_FAILED.value} {describe_exception(e)}") from e

        if not isinstance(renumbered, PointsWithAdjacencyMatrix) or not self.is_relabelling(graph, renumbered):
            logger.error("Renumbering result is not a relabelling of the input graph.")
            raise RenumberingFailed(ErrorMessages.RENUMBERING_NOT_BIJECTIVE.value)
        return renumbered

    def _solve(self, fem_input: FiniteElementMethodInput) -> np.ndarray:
        logger.info(f"Solving {fem_input.number_of_equations} equations with {self.fem_solver!r}.")
        try:
            values = np.asarray(self.fem_solver.run(fem_input), dtype=np.float64).reshape(-1)
        except SolverFailed:
            logger.exception("Solver failed")
            raise
        except Exception as e:
            logger.exception("Solver failed")
            raise SolverFailed(f"{ErrorMessages.SOLVER_FAILED.value} {describe_exception(e)}") from e

        if len(values) != fem_input.number_of_equations:
            raise SolverFailed(
                f"{ErrorMessages.SOLVER_FAILED.value} Expected {fem_input.number_of_equations} values, got {len(values)}."
            )
        return values

    @staticmethod
    def is_relabelling(graph: PointsWithAdjacencyMatrix, renumbered: PointsWithAdjacencyMatrix) -> bool:
        """
        `renumbered` is `graph` with its nodes permuted by `renumbered.permutation`.
        """
        n = graph.number_of_nodes
        perm = renumbered.permutation
        if renumbered.number_of_nodes != n or perm is None or len(perm) != n:
            return False
        if not np.array_equal(np.sort(perm), np.arange(n)):
            return False
        if any(renumbered.points[i] != graph.points[perm[i]] for i in range(n)):
            return False
        expected = graph.adjacency[perm][:, perm]
        return (expected != renumbered.adjacency).nnz == 0


@dataclass
class ResultJob:
    """
    Snapshot of everything the Result step needs, safe to run off the GUI thread.
    """
    pipeline: ResultPipeline
    mesh: PointsWithEdges
    conditions: Dict[Edge, EdgeCondition] = field(default_factory=dict)
    settings: SolverSettings = field(default_factory=SolverSettings)

    @classmethod
    def snapshot(
        cls,
        pipeline: ResultPipeline,
        mesh: PointsWithEdges,
        conditions: Dict[Edge, EdgeCondition],
        settings: SolverSettings,
    ) -> ResultJob:
        # Edge conditions are immutable values; copying the mapping is enough.
        return cls(pipeline=pipeline, mesh=mesh.clone(), conditions=dict(conditions), settings=replace(settings))

    def run(self) -> Solution:
        return self.pipeline.run(self.mesh, self.conditions, self.settings)


class JobExecutor(Protocol):
    """
    Runs a ResultJob somewhere else and reports back exactly once.

    Both callbacks must be invoked on the thread that owns the controller.
    """

    def submit(
        self,
        job: ResultJob,
        on_success: Callable[[ResultJob, Solution], None],
        on_failure: Callable[[ResultJob, BaseException], None],
    ) -> None:
        ...
