"""
Tests for algorithms/renumbering.py module.
"""

import numpy as np
import pytest
import scipy as sp

from meshflow.algorithms.renumbering import ReverseCuthillMcKeeRenumberer
from meshflow.controller.pipeline import ResultPipeline
from meshflow.model.geometry_primitives import PointsWithAdjacencyMatrix, PointsWithEdges


def ladder(columns=20, seed=None):
    """
    Two rows of points connected into a strip of triangles.

    With a seed the point numbering is shuffled, which spreads the
    non-zeros of the adjacency matrix far from the diagonal.
    """
    n = 2 * columns
    coords = [(float(i), 0.0) for i in range(columns)] + [(float(i), 1.0) for i in range(columns)]
    edges = []
    for i in range(columns):
        edges.append((i, columns + i))
        if i + 1 < columns:
            edges += [(i, i + 1), (columns + i, columns + i + 1), (i, columns + i + 1)]

    order = np.arange(n) if seed is None else np.random.default_rng(seed).permutation(n)
    position = np.empty(n, dtype=np.int64)
    position[order] = np.arange(n)
    return PointsWithEdges(
        points=[coords[i] for i in order],
        edges=[(int(position[a]), int(position[b])) for a, b in edges],
    )


# =============================================================================
# Reverse Cuthill-McKee
# =============================================================================

class TestReverseCuthillMcKeeRenumberer:

    @pytest.fixture
    def renumberer(self):
        return ReverseCuthillMcKeeRenumberer()

    def test_reduces_bandwidth_of_shuffled_strip(self, renumberer):
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(ladder(seed=7))
        renumbered = renumberer.run(graph)
        assert renumbered.bandwidth < graph.bandwidth
        assert renumbered.bandwidth <= 4

    def test_is_relabelling(self, renumberer):
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(ladder(seed=3))
        renumbered = renumberer.run(graph)
        np.testing.assert_array_equal(np.sort(renumbered.permutation), np.arange(graph.number_of_nodes))
        assert ResultPipeline.is_relabelling(graph, renumbered)

    def test_never_widens_band(self, renumberer, square):
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(square)
        assert renumberer.run(graph).bandwidth <= graph.bandwidth

    def test_input_unchanged(self, renumberer):
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(ladder(seed=1))
        points = list(graph.points)
        dense = graph.adjacency.toarray()
        renumberer.run(graph)
        assert graph.points == points
        np.testing.assert_array_equal(graph.adjacency.toarray(), dense)

    def test_empty_graph(self, renumberer):
        graph = PointsWithAdjacencyMatrix(points=[], adjacency=sp.sparse.csr_matrix((0, 0)))
        renumbered = renumberer.run(graph)
        assert renumbered.number_of_nodes == 0
        assert len(renumbered.permutation) == 0

    def test_disconnected_nodes(self, renumberer):
        mesh = PointsWithEdges(points=[(0, 0), (1, 0), (5, 5)], edges=[(0, 1)])
        graph = PointsWithAdjacencyMatrix.from_points_with_edges(mesh)
        assert ResultPipeline.is_relabelling(graph, renumberer.run(graph))
