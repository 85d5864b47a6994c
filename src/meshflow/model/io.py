"""
Boundary Loaders
Provide the initial boundary polygon of a session, read once at start-up.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Protocol, Union

import meshio
import numpy as np

from meshflow.errors import BoundaryLoadFailed
from meshflow.model.geometry_primitives import Edge, Point, PointsWithEdges

# Get module logger
logger = logging.getLogger(__name__)


class BoundaryLoader(Protocol):
    def load_initial_boundary(self) -> PointsWithEdges:
        ...


class StaticBoundaryLoader:
    """Hands out a fixed, in-memory boundary (embedding and tests)."""

    def __init__(self, boundary: PointsWithEdges) -> None:
        self._boundary = boundary
        self.calls = 0

    def load_initial_boundary(self) -> PointsWithEdges:
        self.calls += 1
        return self._boundary.clone()


class FileBoundaryLoader:
    """
    Reads the boundary from disk.

    `.json` files hold ``{"points": [[x, y], ...], "edges": [[i, j], ...]}``
    (without "edges" the points form a closed polygon in their order). Every
    other extension is handed to meshio and the `line` cells are used as edges.
    """

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = os.fspath(path)

    def load_initial_boundary(self) -> PointsWithEdges:
        logger.info(f"Loading initial boundary from: {self.path}")
        try:
            if self.path.lower().endswith(".json"):
                boundary = self._read_json()
            else:
                boundary = self._read_meshio()
        except BoundaryLoadFailed:
            raise
        except Exception as e:
            logger.exception(f"Failed to load boundary from '{self.path}'")
            raise BoundaryLoadFailed(f"Could not load '{self.path}': {e}") from e

        logger.info(f"Boundary loaded: {len(boundary.points)} points, {len(boundary.edges)} edges.")
        return boundary

    def _read_json(self) -> PointsWithEdges:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or "points" not in data:
            raise BoundaryLoadFailed(f"'{self.path}' does not contain a 'points' list.")
        return PointsWithEdges.from_dict(data)

    def _read_meshio(self) -> PointsWithEdges:
        mesh = meshio.read(self.path)

        lines = [block.data for block in mesh.cells if block.type == "line"]
        if not lines:
            raise BoundaryLoadFailed(f"'{self.path}' contains no line cells.")
        connectivity = np.vstack(lines).astype(np.int64)

        # Keep only referenced points, in their original order
        used = np.unique(connectivity)
        remap = {int(old): new for new, old in enumerate(used)}
        points = [Point(float(mesh.points[i, 0]), float(mesh.points[i, 1])) for i in used]
        edges = [Edge(remap[int(a)], remap[int(b)]) for a, b in connectivity]
        return PointsWithEdges(points=points, edges=edges)
