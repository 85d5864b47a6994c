from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Iterable, Sequence

import math
import numpy as np

from meshflow.config import GEOMETRY_TOLERANCE
from meshflow.model.geometry_primitives import Edge, PointsWithEdges, Triangle

if TYPE_CHECKING:
    from numpy import typing as npt


def tolerance_for(coords: npt.NDArray[np.float64]) -> float:
    """
    Absolute tolerance for cross products of the given point cloud.

    Cross products scale with the square of the geometry size, so the
    relative GEOMETRY_TOLERANCE is multiplied by the squared extent.
    """
    if len(coords) == 0:
        return GEOMETRY_TOLERANCE
    extent = float(np.max(np.ptp(coords, axis=0)))
    return GEOMETRY_TOLERANCE * max(extent, 1.0) ** 2


def orientation(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """
    Twice the signed area of triangle ABC (CCW > 0).
    """
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def signed_polygon_area(coords: npt.NDArray[np.float64]) -> float:
    """
    Signed polygon area (shoelace formula, CCW positive).

    Args:
        coords: (k, 2) vertices in traversal order, not closed.
    """
    if len(coords) < 3:
        return 0.0
    x = coords[:, 0]
    y = coords[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def _on_segment(p, a, b, eps: float) -> bool:
    """P lies on the closed segment AB (assuming P, A, B are collinear)."""
    return (
        min(a[0], b[0]) - eps <= p[0] <= max(a[0], b[0]) + eps
        and min(a[1], b[1]) - eps <= p[1] <= max(a[1], b[1]) + eps
    )


def segments_intersect(p1, p2, p3, p4, eps: float = 0.0) -> bool:
    """
    Closed segments P1P2 and P3P4 share at least one point (touching counts).
    """
    d1 = orientation(p3, p4, p1)
    d2 = orientation(p3, p4, p2)
    d3 = orientation(p1, p2, p3)
    d4 = orientation(p1, p2, p4)

    if ((d1 > eps and d2 < -eps) or (d1 < -eps and d2 > eps)) and \
            ((d3 > eps and d4 < -eps) or (d3 < -eps and d4 > eps)):
        return True

    # Degenerate configurations: an endpoint on the other segment
    span = eps ** 0.5 if eps > 0 else 0.0
    if abs(d1) <= eps and _on_segment(p1, p3, p4, span):
        return True
    if abs(d2) <= eps and _on_segment(p2, p3, p4, span):
        return True
    if abs(d3) <= eps and _on_segment(p3, p1, p2, span):
        return True
    if abs(d4) <= eps and _on_segment(p4, p1, p2, span):
        return True
    return False


def segments_cross_properly(p1, p2, p3, p4, eps: float = 0.0) -> bool:
    """Segments cross at a single point interior to both."""
    d1 = orientation(p3, p4, p1)
    d2 = orientation(p3, p4, p2)
    d3 = orientation(p1, p2, p3)
    d4 = orientation(p1, p2, p4)
    return ((d1 > eps and d2 < -eps) or (d1 < -eps and d2 > eps)) and \
        ((d3 > eps and d4 < -eps) or (d3 < -eps and d4 > eps))


def point_in_triangle(p, a, b, c, eps: float = 0.0, strict: bool = False) -> bool:
    """
    P lies inside triangle ABC (any orientation).

    With strict=True points on the triangle boundary are outside.
    """
    d1 = orientation(a, b, p)
    d2 = orientation(b, c, p)
    d3 = orientation(c, a, p)
    if orientation(a, b, c) < 0:
        d1, d2, d3 = -d1, -d2, -d3
    if strict:
        return d1 > eps and d2 > eps and d3 > eps
    return d1 >= -eps and d2 >= -eps and d3 >= -eps


def _points_in_triangle(coords: npt.NDArray[np.float64], a, b, c, eps: float) -> npt.NDArray[np.bool_]:
    """Vectorised inclusive `point_in_triangle` over all rows of `coords`."""
    if orientation(a, b, c) < 0:
        b, c = c, b
    x, y = coords[:, 0], coords[:, 1]
    d1 = (b[0] - a[0]) * (y - a[1]) - (b[1] - a[1]) * (x - a[0])
    d2 = (c[0] - b[0]) * (y - b[1]) - (c[1] - b[1]) * (x - b[0])
    d3 = (a[0] - c[0]) * (y - c[1]) - (a[1] - c[1]) * (x - c[0])
    return (d1 >= -eps) & (d2 >= -eps) & (d3 >= -eps)


def polygon_cycle(boundary: PointsWithEdges) -> list[int]:
    """
    Walks the single closed cycle formed by the edges of `boundary`.

    Returns:
        Point indices in traversal order, starting at point 0.

    Raises:
        ValueError: If some point does not have degree 2 or the edges form
            more than one loop.
    """
    n = len(boundary.points)
    if n < 3:
        raise ValueError("A polygon needs at least three points.")
    adj = boundary.neighbours()
    for index, nbrs in adj.items():
        if len(nbrs) != 2:
            raise ValueError(f"Point {index} has degree {len(nbrs)}, expected 2.")

    cycle = [0]
    prev, current = None, 0
    while True:
        a, b = sorted(adj[current])
        next_v = a if a != prev else b
        if next_v == 0:
            break
        cycle.append(next_v)
        prev, current = current, next_v
        if len(cycle) > n:
            break

    if len(cycle) != n:
        raise ValueError(f"The edges form more than one loop ({len(cycle)} of {n} points reached).")
    return cycle


def is_simple_polygon(coords: npt.NDArray[np.float64], edges: Sequence[Edge]) -> bool:
    """
    The edges over `coords` form a single, simple, closed polygon.

    Checks: at least 3 points, every point of degree 2, one connected cycle,
    no coincident points, non-zero area, no pair of edges touching except
    neighbours at their shared vertex, no neighbours folding back onto each
    other.
    """
    n = len(coords)
    if n < 3 or len(edges) != n:
        return False
    if any(e.is_loop for e in edges) or len(set(edges)) != len(edges):
        return False

    boundary = PointsWithEdges(points=[tuple(c) for c in coords], edges=list(edges))
    try:
        cycle = polygon_cycle(boundary)
    except ValueError:
        return False

    eps = tolerance_for(coords)
    if len({(round(x, 12), round(y, 12)) for x, y in coords}) != n:
        return False
    if abs(signed_polygon_area(coords[cycle])) <= eps:
        return False

    for i, e1 in enumerate(edges):
        for e2 in edges[i + 1:]:
            shared = {e1.start, e1.end} & {e2.start, e2.end}
            a1, b1 = coords[e1.start], coords[e1.end]
            a2, b2 = coords[e2.start], coords[e2.end]
            if not shared:
                if segments_intersect(a1, b1, a2, b2, eps):
                    return False
                continue
            # Neighbouring edges: fold-back overlap along a common line
            pivot = shared.pop()
            p = coords[e1.other(pivot)]
            q = coords[e2.other(pivot)]
            c = coords[pivot]
            if abs(orientation(c, p, q)) <= eps and np.dot(p - c, q - c) > 0:
                return False
    return True


def find_triangles(mesh: PointsWithEdges) -> list[Triangle]:
    """
    Recovers the faces of a triangulated mesh from its edge graph.

    A face is a 3-clique of the edge graph with non-zero area that encloses no
    other mesh point (points on its sides also disqualify it). Faces are
    returned counter-clockwise, sorted for determinism.
    """
    coords = mesh.coordinates()
    eps = tolerance_for(coords)
    adj = mesh.neighbours()
    faces: list[Triangle] = []

    for edge in mesh.edges:
        u, v = edge.as_tuple()
        if u == v:
            continue
        for w in adj[u] & adj[v]:
            if w <= v:
                continue
            a, b, c = coords[u], coords[v], coords[w]
            area2 = orientation(a, b, c)
            if abs(area2) <= eps:
                continue
            inside = _points_in_triangle(coords, a, b, c, eps)
            inside[[u, v, w]] = False
            if inside.any():
                continue
            faces.append((u, v, w) if area2 > 0 else (u, w, v))

    return sorted(faces)


def mesh_triangles(mesh: PointsWithEdges) -> list[Triangle]:
    """Declared triangles of the mesh, recovered from the edges when absent."""
    return list(mesh.triangles) if mesh.triangles else find_triangles(mesh)


def triangle_edges(triangles: Iterable[Triangle]) -> Counter[Edge]:
    """How many triangles use each edge."""
    usage: Counter[Edge] = Counter()
    for a, b, c in triangles:
        usage.update((Edge(a, b), Edge(b, c), Edge(c, a)))
    return usage


def boundary_edges(mesh: PointsWithEdges) -> list[Edge]:
    """Edges of a triangulated mesh used by exactly one triangle."""
    usage = triangle_edges(mesh_triangles(mesh))
    return sorted(edge for edge, count in usage.items() if count == 1)


def triangles_overlap(t1, t2, eps: float = 0.0) -> bool:
    """
    The interiors of two triangles (each given as three 2D points) intersect.

    Triangles that only share a vertex or a side do not overlap.
    """
    for i in range(3):
        for j in range(3):
            if segments_cross_properly(t1[i], t1[(i + 1) % 3], t2[j], t2[(j + 1) % 3], eps):
                return True
    for p in t1:
        if point_in_triangle(p, *t2, eps=eps, strict=True):
            return True
    for p in t2:
        if point_in_triangle(p, *t1, eps=eps, strict=True):
            return True
    c1 = np.mean(np.asarray(t1), axis=0)
    c2 = np.mean(np.asarray(t2), axis=0)
    return point_in_triangle(c1, *t2, eps=eps, strict=True) or point_in_triangle(c2, *t1, eps=eps, strict=True)


def triangle_quality(a, b, c) -> float:
    """
    Normalised radius ratio 2 r_in / r_circ: 1.0 for an equilateral triangle,
    0.0 for a degenerate one.
    """
    la = math.dist(b, c)
    lb = math.dist(c, a)
    lc = math.dist(a, b)
    area = 0.5 * abs(orientation(a, b, c))
    if area == 0.0:
        return 0.0
    s = 0.5 * (la + lb + lc)
    r_in = area / s
    r_circ = la * lb * lc / (4.0 * area)
    return 2.0 * r_in / r_circ
