"""
Geometry Validators
===================
Decide whether a boundary is a usable polygon and whether a mesh is a valid
triangulation of such a polygon.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from meshflow.algorithms.base import Algorithm
from meshflow.model.geometry_primitives import PointsWithEdges
from meshflow.model.geometry_utils import (
    find_triangles,
    is_simple_polygon,
    orientation,
    polygon_cycle,
    signed_polygon_area,
    tolerance_for,
    triangle_edges,
    triangles_overlap,
)

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class PolygonValidator(Algorithm[PointsWithEdges, bool]):
    """
    Accepts exactly one simple, closed polygon: at least three points, each
    with two neighbours, one connected cycle, non-zero area, no crossings.
    """

    def run(self, data: PointsWithEdges) -> bool:
        if data.is_empty:
            logger.debug("Polygon rejected: boundary is empty.")
            return False
        valid = is_simple_polygon(data.coordinates(), data.edges)
        logger.debug(f"Polygon with {len(data.points)} points valid: {valid}")
        return valid


class TriangulationValidator(Algorithm[PointsWithEdges, bool]):
    """
    Accepts a mesh whose edge graph is a conforming triangulation of a simple
    polygon.

    Faces are recovered from the edges (see `find_triangles`); then:
        - every edge borders one or two faces,
        - every point is a corner of some face,
        - edges bordering exactly one face form a simple polygon,
        - the face areas add up to the area of that polygon,
        - no two faces overlap,
        - declared `triangles`, if present, match the recovered faces.
    """

    def run(self, data: PointsWithEdges) -> bool:
        reason = self.check(data)
        if reason is not None:
            logger.debug(f"Triangulation rejected: {reason}")
            return False
        return True

    def check(self, data: PointsWithEdges) -> str | None:
        """Returns the first violated condition, or None for a valid mesh."""
        n = len(data.points)
        if n < 3 or not data.edges:
            return "fewer than three points or no edges"
        if any(e.is_loop for e in data.edges):
            return "edge connecting a point to itself"

        faces = find_triangles(data)
        if not faces:
            return "no triangles"

        usage = triangle_edges(faces)
        for edge in data.edges:
            if usage.get(edge, 0) not in (1, 2):
                return f"{edge} borders {usage.get(edge, 0)} triangles"

        used_points = {i for face in faces for i in face}
        if len(used_points) != n:
            return f"{n - len(used_points)} point(s) not part of any triangle"

        coords = data.coordinates()
        outline = self._outline(coords, [e for e, count in usage.items() if count == 1])
        if outline is None:
            return "outer edges do not form a simple polygon"

        eps = tolerance_for(coords)
        face_area = sum(0.5 * abs(orientation(coords[a], coords[b], coords[c])) for a, b, c in faces)
        outline_area = abs(signed_polygon_area(outline))
        if abs(face_area - outline_area) > max(eps, 1e-9 * outline_area):
            return f"triangle area {face_area:g} differs from enclosed area {outline_area:g}"

        if self._any_overlap(coords, faces, eps):
            return "overlapping triangles"

        if data.triangles:
            declared = {tuple(sorted(t)) for t in data.triangles}
            recovered = {tuple(sorted(t)) for t in faces}
            if declared != recovered:
                return "declared triangles do not match the edges"
        return None

    @staticmethod
    def _outline(coords: npt.NDArray[np.float64], outer_edges) -> npt.NDArray[np.float64] | None:
        """Coordinates of the polygon formed by `outer_edges`, in cycle order."""
        vertices = sorted({i for e in outer_edges for i in e.as_tuple()})
        local = {old: new for new, old in enumerate(vertices)}
        outline = PointsWithEdges(
            points=[tuple(coords[i]) for i in vertices],
            edges=[(local[e.start], local[e.end]) for e in outer_edges],
        )
        local_coords = outline.coordinates()
        if not is_simple_polygon(local_coords, outline.edges):
            return None
        return local_coords[polygon_cycle(outline)]

    @staticmethod
    def _any_overlap(coords: npt.NDArray[np.float64], faces, eps: float) -> bool:
        tri = coords[np.asarray(faces, dtype=np.int64)]  # (T, 3, 2)
        lo = tri.min(axis=1)
        hi = tri.max(axis=1)
        for i in range(len(faces) - 1):
            # Bounding box pre-filter
            candidates = np.nonzero(
                np.all(lo[i + 1:] < hi[i], axis=1) & np.all(hi[i + 1:] > lo[i], axis=1)
            )[0] + i + 1
            for j in candidates:
                if triangles_overlap(tri[i], tri[j], eps):
                    return True
        return False
