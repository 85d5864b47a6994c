"""
Tests for controller/pipeline.py module.
"""

import numpy as np
import pytest
import scipy as sp

from meshflow.algorithms.base import AlgorithmSuite, FunctionAlgorithm
from meshflow.algorithms.triangulation import EarClippingTriangulator
from meshflow.controller.pipeline import ResultJob, ResultPipeline
from meshflow.errors import ErrorMessages, RenumberingFailed, SolverFailed
from meshflow.model.bc import FixedValueCondition
from meshflow.model.geometry_primitives import Edge, PointsWithAdjacencyMatrix
from meshflow.model.state import SolverSettings


class Spy:
    """Callable recording its inputs, optionally delegating to a real step."""

    def __init__(self, func=None, error=None):
        self.func = func
        self.error = error
        self.inputs = []

    def __call__(self, data):
        self.inputs.append(data)
        if self.error is not None:
            raise self.error
        return self.func(data)


def suite_with(renumberer=None, fem_solver=None):
    suite = AlgorithmSuite.default()
    if renumberer is not None:
        suite.renumberer = FunctionAlgorithm(renumberer, name="renumberer")
    if fem_solver is not None:
        suite.fem_solver = FunctionAlgorithm(fem_solver, name="solver")
    return suite


@pytest.fixture
def hexagon_mesh(hexagon):
    return EarClippingTriangulator().run(hexagon)


@pytest.fixture
def hexagon_conditions():
    return {
        Edge(0, 5): FixedValueCondition(0.0),
        Edge(2, 3): FixedValueCondition(2.0),
    }


# =============================================================================
# ResultPipeline
# =============================================================================

class TestResultPipeline:

    def test_values_in_mesh_numbering(self, hexagon_mesh, hexagon_conditions):
        solution = ResultPipeline(AlgorithmSuite.default()).run(hexagon_mesh, hexagon_conditions, SolverSettings())
        np.testing.assert_allclose(solution.values, hexagon_mesh.coordinates()[:, 0], atol=1e-10)
        assert solution.bandwidth_after <= solution.bandwidth_before
        assert solution.minimum == pytest.approx(0.0)
        assert solution.maximum == pytest.approx(2.0)

    def test_renumbering_is_undone(self, hexagon_mesh, hexagon_conditions):
        reverse = Spy(lambda g: g.permuted(np.arange(g.number_of_nodes)[::-1]))
        solver = Spy(AlgorithmSuite.default().fem_solver.run)
        pipeline = ResultPipeline(suite_with(renumberer=reverse, fem_solver=solver))

        solution = pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())

        np.testing.assert_array_equal(solution.permutation, [5, 4, 3, 2, 1, 0])
        np.testing.assert_allclose(solution.values, hexagon_mesh.coordinates()[:, 0], atol=1e-10)
        # The solver saw the conditions in the renumbered numbering
        assert set(solver.inputs[0].conditions) == {Edge(0, 5), Edge(2, 3)}
        assert solver.inputs[0].mesh.points[0] == hexagon_mesh.points[5]

    def test_renumbering_error_skips_solver(self, hexagon_mesh, hexagon_conditions):
        solver = Spy(lambda data: np.zeros(data.number_of_equations))
        pipeline = ResultPipeline(suite_with(renumberer=Spy(error=RuntimeError("boom")), fem_solver=solver))

        with pytest.raises(RenumberingFailed) as excinfo:
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())

        assert "boom" in excinfo.value.message
        assert solver.inputs == []

    def test_non_bijective_renumbering(self, hexagon_mesh, hexagon_conditions):
        solver = Spy(lambda data: np.zeros(data.number_of_equations))
        duplicate = Spy(lambda g: g.permuted([0, 0, 1, 2, 3, 4]))
        pipeline = ResultPipeline(suite_with(renumberer=duplicate, fem_solver=solver))

        with pytest.raises(RenumberingFailed) as excinfo:
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())

        assert excinfo.value.message == ErrorMessages.RENUMBERING_NOT_BIJECTIVE.value
        assert solver.inputs == []

    def test_renumbering_changing_topology(self, hexagon_mesh, hexagon_conditions):
        solver = Spy(lambda data: np.zeros(data.number_of_equations))
        disconnect = Spy(lambda g: PointsWithAdjacencyMatrix(
            points=g.points, adjacency=sp.sparse.csr_matrix((g.number_of_nodes, g.number_of_nodes)),
        ))
        pipeline = ResultPipeline(suite_with(renumberer=disconnect, fem_solver=solver))

        with pytest.raises(RenumberingFailed):
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())
        assert solver.inputs == []

    def test_renumbering_wrong_type(self, hexagon_mesh, hexagon_conditions):
        pipeline = ResultPipeline(suite_with(renumberer=lambda g: list(range(g.number_of_nodes))))
        with pytest.raises(RenumberingFailed):
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())

    def test_solver_error_is_wrapped(self, hexagon_mesh, hexagon_conditions):
        pipeline = ResultPipeline(suite_with(fem_solver=Spy(error=ValueError("matrix exploded"))))
        with pytest.raises(SolverFailed) as excinfo:
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())
        assert "matrix exploded" in excinfo.value.message

    def test_solver_wrong_length(self, hexagon_mesh, hexagon_conditions):
        pipeline = ResultPipeline(suite_with(fem_solver=lambda data: [1.0, 2.0]))
        with pytest.raises(SolverFailed):
            pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings())

    def test_settings_reach_solver(self, hexagon_mesh, hexagon_conditions):
        solver = Spy(lambda data: np.zeros(data.number_of_equations))
        pipeline = ResultPipeline(suite_with(fem_solver=solver))
        pipeline.run(hexagon_mesh, hexagon_conditions, SolverSettings(conductivity=4.0, source=0.5))
        assert solver.inputs[0].conductivity == 4.0
        assert solver.inputs[0].source == 0.5


# =============================================================================
# ResultJob
# =============================================================================

class TestResultJob:

    def test_snapshot_is_isolated(self, hexagon_mesh, hexagon_conditions):
        settings = SolverSettings()
        job = ResultJob.snapshot(ResultPipeline(AlgorithmSuite.default()), hexagon_mesh, hexagon_conditions, settings)

        hexagon_mesh.move_point(0, (-5.0, -5.0))
        hexagon_conditions.clear()
        settings.conductivity = 10.0

        assert job.mesh.points[0].x == 0.0
        assert len(job.conditions) == 2
        assert job.settings.conductivity == 1.0
        np.testing.assert_allclose(job.run().values, job.mesh.coordinates()[:, 0], atol=1e-10)
