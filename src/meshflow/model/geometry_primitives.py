"""
Geometric Primitives and Mesh Containers.

Point and Edge are immutable values. PointsWithEdges is the mutable container
used both for a boundary polygon and, after triangulation, for a triangulated
mesh (the edges then include the diagonals). PointsWithAdjacencyMatrix is the
graph view of a mesh consumed by the renumbering step.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, TYPE_CHECKING
import math

import numpy as np
import scipy as sp

if TYPE_CHECKING:
    import numpy.typing as npt

Triangle = Tuple[int, int, int]


@dataclass(frozen=True)
class Point:
    """A 2D coordinate."""
    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y])


@dataclass(frozen=True, order=True)
class Edge:
    """
    An undirected connection between two point indices.

    The pair is normalised on construction so that ``Edge(2, 1) == Edge(1, 2)``.
    """
    start: int
    end: int

    def __post_init__(self) -> None:
        a, b = int(self.start), int(self.end)
        if a < 0 or b < 0:
            raise ValueError(f"Edge indices must be non-negative, got ({a}, {b}).")
        if a > b:
            a, b = b, a
        object.__setattr__(self, "start", a)
        object.__setattr__(self, "end", b)

    @property
    def is_loop(self) -> bool:
        return self.start == self.end

    def other(self, index: int) -> int:
        """Returns the endpoint opposite to `index`."""
        if index == self.start:
            return self.end
        if index == self.end:
            return self.start
        raise ValueError(f"Point {index} is not an endpoint of {self}.")

    def as_tuple(self) -> Tuple[int, int]:
        return self.start, self.end


@dataclass
class PointsWithEdges:
    """
    Ordered points plus a duplicate-free list of edges between them.

    Every edge references valid indices into `points`. `triangles` is only
    filled by triangulators (counter-clockwise index triples).
    """
    points: List[Point] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    triangles: List[Triangle] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.points = [p if isinstance(p, Point) else Point(*p) for p in self.points]
        unique: list[Edge] = []
        seen: set[Edge] = set()
        for e in self.edges:
            edge = e if isinstance(e, Edge) else Edge(*e)
            self._check_edge(edge)
            if edge not in seen:
                seen.add(edge)
                unique.append(edge)
        self.edges = unique
        self.triangles = [tuple(int(i) for i in t) for t in self.triangles]
        for tri in self.triangles:
            if len(tri) != 3 or any(i >= len(self.points) for i in tri):
                raise ValueError(f"Triangle {tri} references points outside of the point list.")

    # --- FACTORIES ---

    @classmethod
    def empty(cls) -> PointsWithEdges:
        return cls()

    @classmethod
    def closed_polygon(cls, coords: Iterable[Sequence[float]]) -> PointsWithEdges:
        """Points in the given order, each connected to the next and the last to the first."""
        points = [Point(float(c[0]), float(c[1])) for c in coords]
        n = len(points)
        edges = [Edge(i, (i + 1) % n) for i in range(n)] if n >= 3 else []
        return cls(points=points, edges=edges)

    def clone(self) -> PointsWithEdges:
        """Deep copy; edits to the clone never affect the original."""
        # Point, Edge and the triangle tuples are immutable, copying the lists is enough.
        return PointsWithEdges(
            points=list(self.points),
            edges=list(self.edges),
            triangles=list(self.triangles),
        )

    # --- QUERIES ---

    @property
    def is_empty(self) -> bool:
        return not self.points and not self.edges

    def has_edge(self, a: int, b: int) -> bool:
        return Edge(a, b) in set(self.edges)

    def degree(self, index: int) -> int:
        return sum(1 for e in self.edges if index in (e.start, e.end))

    def neighbours(self) -> Dict[int, set[int]]:
        """Adjacency sets for every point index."""
        adj: Dict[int, set[int]] = {i: set() for i in range(len(self.points))}
        for e in self.edges:
            if e.is_loop:
                continue
            adj[e.start].add(e.end)
            adj[e.end].add(e.start)
        return adj

    def coordinates(self) -> npt.NDArray[np.float64]:
        """(N, 2) array of point coordinates."""
        if not self.points:
            return np.empty((0, 2), dtype=np.float64)
        return np.array([[p.x, p.y] for p in self.points], dtype=np.float64)

    def edge_array(self) -> npt.NDArray[np.int64]:
        """(E, 2) array of edge endpoints."""
        if not self.edges:
            return np.empty((0, 2), dtype=np.int64)
        return np.array([e.as_tuple() for e in self.edges], dtype=np.int64)

    # --- EDITING ---

    def add_point(self, point: Point | Sequence[float]) -> int:
        """Appends a point and returns its index."""
        self.points.append(point if isinstance(point, Point) else Point(*point))
        self.triangles = []
        return len(self.points) - 1

    def move_point(self, index: int, point: Point | Sequence[float]) -> None:
        self._check_index(index)
        self.points[index] = point if isinstance(point, Point) else Point(*point)

    def remove_point(self, index: int) -> None:
        """Removes a point together with its edges; higher indices shift down by one."""
        self._check_index(index)
        del self.points[index]
        remaining = []
        for e in self.edges:
            if index in (e.start, e.end):
                continue
            remaining.append(Edge(
                e.start - 1 if e.start > index else e.start,
                e.end - 1 if e.end > index else e.end,
            ))
        self.edges = remaining
        self.triangles = []

    def add_edge(self, a: int, b: int) -> Edge:
        edge = Edge(a, b)
        self._check_edge(edge)
        if edge not in set(self.edges):
            self.edges.append(edge)
            self.triangles = []
        return edge

    def remove_edge(self, a: int, b: int) -> None:
        edge = Edge(a, b)
        try:
            self.edges.remove(edge)
        except ValueError:
            raise ValueError(f"{edge} is not part of the edge set.") from None
        self.triangles = []

    # --- SERIALIZATION ---

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "points": [[p.x, p.y] for p in self.points],
            "edges": [list(e.as_tuple()) for e in self.edges],
        }
        if self.triangles:
            data["triangles"] = [list(t) for t in self.triangles]
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PointsWithEdges:
        points = [Point(float(x), float(y)) for x, y in data.get("points", [])]
        if "edges" not in data:
            return PointsWithEdges.closed_polygon([(p.x, p.y) for p in points])
        return PointsWithEdges(
            points=points,
            edges=[Edge(int(a), int(b)) for a, b in data["edges"]],
            triangles=[tuple(t) for t in data.get("triangles", [])],
        )

    # --- HELPERS ---

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.points):
            raise IndexError(f"Point index {index} out of range (0..{len(self.points) - 1}).")

    def _check_edge(self, edge: Edge) -> None:
        if edge.end >= len(self.points):
            raise ValueError(f"{edge} references a point outside of the {len(self.points)} points.")


@dataclass
class PointsWithAdjacencyMatrix:
    """
    Graph view of a mesh: points plus a symmetric boolean adjacency matrix.

    `permutation[i]` is the index, in the originating PointsWithEdges, of the
    node now stored at position `i`.
    """
    points: List[Point]
    adjacency: sp.sparse.csr_matrix
    permutation: Optional[npt.NDArray[np.int64]] = None

    def __post_init__(self) -> None:
        n = len(self.points)
        self.adjacency = sp.sparse.csr_matrix(self.adjacency, dtype=np.int8)
        if self.adjacency.shape != (n, n):
            raise ValueError(f"Adjacency shape {self.adjacency.shape} does not match {n} points.")
        if self.permutation is None:
            self.permutation = np.arange(n, dtype=np.int64)
        else:
            self.permutation = np.asarray(self.permutation, dtype=np.int64)

    @classmethod
    def from_points_with_edges(cls, mesh: PointsWithEdges) -> PointsWithAdjacencyMatrix:
        n = len(mesh.points)
        pairs = [e.as_tuple() for e in mesh.edges if not e.is_loop]
        if pairs:
            rows, cols = np.array(pairs, dtype=np.int64).T
        else:
            rows = cols = np.empty(0, dtype=np.int64)
        data = np.ones(2 * len(rows), dtype=np.int8)
        adjacency = sp.sparse.coo_matrix(
            (data, (np.hstack((rows, cols)), np.hstack((cols, rows)))),
            shape=(n, n),
        ).tocsr()
        adjacency.data[:] = 1
        return cls(points=list(mesh.points), adjacency=adjacency)

    @property
    def number_of_nodes(self) -> int:
        return len(self.points)

    @property
    def bandwidth(self) -> int:
        """Largest |i - j| over all non-zero entries."""
        coo = self.adjacency.tocoo()
        if coo.nnz == 0:
            return 0
        return int(np.max(np.abs(coo.row - coo.col)))

    def inverse_permutation(self) -> npt.NDArray[np.int64]:
        """Maps an index of the originating mesh to its position here."""
        inverse = np.empty_like(self.permutation)
        inverse[self.permutation] = np.arange(len(self.permutation), dtype=np.int64)
        return inverse

    def permuted(self, order: Sequence[int]) -> PointsWithAdjacencyMatrix:
        """Same graph with nodes reordered so that new node `i` is old node `order[i]`."""
        order = np.asarray(order, dtype=np.int64)
        return PointsWithAdjacencyMatrix(
            points=[self.points[i] for i in order],
            adjacency=self.adjacency[order][:, order],
            permutation=self.permutation[order],
        )
