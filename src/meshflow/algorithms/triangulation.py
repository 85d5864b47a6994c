from __future__ import annotations

import logging

from meshflow.algorithms.base import Algorithm
from meshflow.errors import TriangulationFailed
from meshflow.model.geometry_primitives import Edge, PointsWithEdges, Triangle
from meshflow.model.geometry_utils import (
    orientation,
    point_in_triangle,
    polygon_cycle,
    signed_polygon_area,
    tolerance_for,
    triangle_quality,
)

logger = logging.getLogger(__name__)


class EarClippingTriangulator(Algorithm[PointsWithEdges, PointsWithEdges]):
    """
    Triangulates a simple polygon using its vertices only.

    In every round the best shaped ear (strictly convex corner whose triangle
    contains no other remaining vertex, not even on its sides) is cut off and
    its closing side becomes a diagonal of the mesh. The result keeps the
    point list of the input unchanged and returns the triangles
    counter-clockwise.
    """

    def run(self, data: PointsWithEdges) -> PointsWithEdges:
        try:
            cycle = polygon_cycle(data)
        except ValueError as e:
            raise TriangulationFailed(str(e)) from e

        coords = data.coordinates()
        eps = tolerance_for(coords)
        if signed_polygon_area(coords[cycle]) < 0:
            cycle = [cycle[0]] + cycle[:0:-1]

        remaining = list(cycle)
        triangles: list[Triangle] = []
        diagonals: list[Edge] = []

        while len(remaining) > 3:
            ear = self._best_ear(coords, remaining, eps)
            if ear is None:
                raise TriangulationFailed(f"No ear found with {len(remaining)} vertices left.")
            m = len(remaining)
            prev, cur, nxt = remaining[ear - 1], remaining[ear], remaining[(ear + 1) % m]
            triangles.append((prev, cur, nxt))
            diagonals.append(Edge(prev, nxt))
            del remaining[ear]

        a, b, c = remaining
        if orientation(coords[a], coords[b], coords[c]) <= eps:
            raise TriangulationFailed("Last triangle is degenerate.")
        triangles.append((a, b, c))

        logger.debug(f"Ear clipping: {len(triangles)} triangles, {len(diagonals)} diagonals.")
        return PointsWithEdges(
            points=list(data.points),
            edges=list(data.edges) + diagonals,
            triangles=triangles,
        )

    @staticmethod
    def _best_ear(coords, remaining: list[int], eps: float) -> int | None:
        """Position in `remaining` of the ear with the best triangle quality."""
        m = len(remaining)
        best: int | None = None
        best_quality = -1.0
        for i in range(m):
            prev, cur, nxt = remaining[i - 1], remaining[i], remaining[(i + 1) % m]
            a, b, c = coords[prev], coords[cur], coords[nxt]
            if orientation(a, b, c) <= eps:
                continue
            if any(
                point_in_triangle(coords[k], a, b, c, eps)
                for k in remaining
                if k not in (prev, cur, nxt)
            ):
                continue
            quality = triangle_quality(a, b, c)
            if quality > best_quality:
                best, best_quality = i, quality
        return best
