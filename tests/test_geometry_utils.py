"""
Tests for model/geometry_utils.py module.
"""

import math

import numpy as np
import pytest

from meshflow.model.geometry_primitives import Edge, PointsWithEdges
from meshflow.model.geometry_utils import (
    boundary_edges,
    find_triangles,
    is_simple_polygon,
    point_in_triangle,
    polygon_cycle,
    segments_cross_properly,
    segments_intersect,
    signed_polygon_area,
    triangle_edges,
    triangle_quality,
    triangles_overlap,
)

from conftest import SQUARE


def square_with_diagonal():
    return PointsWithEdges(points=SQUARE, edges=[(0, 1), (1, 2), (2, 3), (3, 0), (0, 2)])


# =============================================================================
# Primitive predicates
# =============================================================================

class TestPredicates:

    def test_signed_area(self):
        coords = np.array(SQUARE)
        assert signed_polygon_area(coords) == pytest.approx(1.0)
        assert signed_polygon_area(coords[::-1]) == pytest.approx(-1.0)

    def test_segments_crossing(self):
        assert segments_intersect((0, 0), (1, 1), (0, 1), (1, 0))
        assert segments_cross_properly((0, 0), (1, 1), (0, 1), (1, 0))

    def test_segments_touching(self):
        assert segments_intersect((0, 0), (1, 0), (1, 0), (2, 1))
        assert not segments_cross_properly((0, 0), (1, 0), (1, 0), (2, 1))

    def test_segments_collinear_overlap(self):
        assert segments_intersect((0, 0), (2, 0), (1, 0), (3, 0))

    def test_segments_disjoint(self):
        assert not segments_intersect((0, 0), (1, 0), (0, 1), (1, 1))

    def test_point_in_triangle(self):
        a, b, c = (0, 0), (1, 0), (0, 1)
        assert point_in_triangle((0.2, 0.2), a, b, c)
        assert point_in_triangle((0.5, 0.0), a, b, c)
        assert not point_in_triangle((0.5, 0.0), a, b, c, strict=True)
        assert not point_in_triangle((1.0, 1.0), a, b, c)
        # Orientation of the corners does not matter
        assert point_in_triangle((0.2, 0.2), a, c, b)

    def test_triangle_quality(self):
        equilateral = ((0, 0), (1, 0), (0.5, math.sqrt(3) / 2))
        assert triangle_quality(*equilateral) == pytest.approx(1.0)
        assert triangle_quality((0, 0), (1, 0), (0, 1)) == pytest.approx(2 * (math.sqrt(2) - 1))
        assert triangle_quality((0, 0), (1, 0), (2, 0)) == 0.0

    def test_triangles_overlap(self):
        t1 = np.array([(0, 0), (1, 0), (0, 1)], dtype=float)
        shared_side = np.array([(1, 0), (1, 1), (0, 1)], dtype=float)
        shifted = t1 + 0.25
        assert not triangles_overlap(t1, shared_side)
        assert triangles_overlap(t1, shifted)
        assert triangles_overlap(t1, t1)


# =============================================================================
# Polygons
# =============================================================================

class TestPolygons:

    def test_cycle(self, square):
        assert polygon_cycle(square) == [0, 1, 2, 3]

    def test_cycle_rejects_dangling_point(self, dangling):
        with pytest.raises(ValueError):
            polygon_cycle(dangling)

    def test_cycle_rejects_two_loops(self):
        two = PointsWithEdges(
            points=[(0, 0), (1, 0), (0, 1), (5, 5), (6, 5), (5, 6)],
            edges=[(0, 1), (1, 2), (2, 0), (3, 4), (4, 5), (5, 3)],
        )
        with pytest.raises(ValueError):
            polygon_cycle(two)

    def test_simple_polygons(self, square, l_shape, hexagon):
        for polygon in (square, l_shape, hexagon):
            assert is_simple_polygon(polygon.coordinates(), polygon.edges)

    def test_bow_tie_is_not_simple(self, bow_tie):
        assert not is_simple_polygon(bow_tie.coordinates(), bow_tie.edges)

    def test_zero_area_is_not_simple(self):
        flat = PointsWithEdges.closed_polygon([(0, 0), (2, 0), (1, 0)])
        assert not is_simple_polygon(flat.coordinates(), flat.edges)

    def test_coincident_points_are_not_simple(self):
        polygon = PointsWithEdges.closed_polygon([(0, 0), (1, 0), (1, 1), (1, 0)])
        assert not is_simple_polygon(polygon.coordinates(), polygon.edges)


# =============================================================================
# Faces
# =============================================================================

class TestFaces:

    def test_find_triangles_square(self):
        assert find_triangles(square_with_diagonal()) == [(0, 1, 2), (0, 2, 3)]

    def test_find_triangles_skips_enclosing_cliques(self):
        # Centre point connected to all corners; the outer 3-cliques contain it
        mesh = PointsWithEdges(
            points=SQUARE + [(0.5, 0.5)],
            edges=[(0, 1), (1, 2), (2, 3), (3, 0), (0, 4), (1, 4), (2, 4), (3, 4)],
        )
        faces = find_triangles(mesh)
        assert len(faces) == 4
        assert all(4 in face for face in faces)

    def test_triangle_edges(self):
        usage = triangle_edges([(0, 1, 2), (0, 2, 3)])
        assert usage[Edge(0, 2)] == 2
        assert usage[Edge(0, 1)] == 1
        assert sum(usage.values()) == 6

    def test_boundary_edges(self):
        assert boundary_edges(square_with_diagonal()) == [Edge(0, 1), Edge(0, 3), Edge(1, 2), Edge(2, 3)]
