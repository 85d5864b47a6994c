"""
Quality Triangulation (Gmsh Adapter)
====================================
This module meshes a boundary polygon with Gmsh.

Why is this file needed?
------------------------
1. Translation: It converts a PointsWithEdges polygon into Gmsh geometry
   commands (points, lines, curve loop, plane surface).
2. Extraction: It reads the generated nodes and triangles back into a
   PointsWithEdges mesh, with the boundary points first and in their original
   order, followed by the nodes Gmsh inserted.
"""
from __future__ import annotations

import logging
from typing import Optional

import gmsh
import numpy as np

from meshflow.algorithms.base import Algorithm
from meshflow.config import DEFAULT_GMSH_MESH_SIZE
from meshflow.errors import TriangulationFailed
from meshflow.model.geometry_primitives import Edge, Point, PointsWithEdges, Triangle
from meshflow.model.geometry_utils import orientation, polygon_cycle

# Get logger
logger = logging.getLogger(__name__)

# Gmsh element type of the 3-node triangle
GMSH_TRIANGLE = 2


class GmshTriangulator(Algorithm[PointsWithEdges, PointsWithEdges]):
    def __init__(self, mesh_size: Optional[float] = DEFAULT_GMSH_MESH_SIZE) -> None:
        """
        Args:
            mesh_size: Target element size. When None, a tenth of the largest
                extent of the polygon is used.
        """
        self.mesh_size = mesh_size
        self._initialized = False

    def _ensure_init(self) -> None:
        """Initialize Gmsh if not already initialized."""
        if not self._initialized:
            gmsh.initialize()
            self._initialized = True
        # Double-check gmsh state in case it was finalized externally
        elif not gmsh.is_initialized():
            logger.warning("Gmsh was finalized externally, reinitializing")
            gmsh.initialize()
            self._initialized = True

    def run(self, data: PointsWithEdges) -> PointsWithEdges:
        try:
            cycle = polygon_cycle(data)
        except ValueError as e:
            raise TriangulationFailed(str(e)) from e
        coords = data.coordinates()
        lc = self.mesh_size or 0.1 * float(np.max(np.ptp(coords, axis=0)))

        self._ensure_init()
        try:
            gmsh.option.set_number("General.Terminal", 0)
            gmsh.clear()
            gmsh.model.add("Boundary")
            logger.info(f"Generating gmsh mesh (mesh size {lc:.4g}).")

            # 1. Geometry
            point_tags = {i: gmsh.model.geo.add_point(coords[i, 0], coords[i, 1], 0.0, lc) for i in cycle}
            curve_tags = [
                gmsh.model.geo.add_line(point_tags[a], point_tags[b])
                for a, b in zip(cycle, cycle[1:] + cycle[:1])
            ]
            loop_tag = gmsh.model.geo.add_curve_loop(curve_tags)
            gmsh.model.geo.add_plane_surface([loop_tag])

            # 2. Synchronization & Meshing
            gmsh.model.geo.synchronize()
            gmsh.option.set_number("Mesh.CharacteristicLengthMin", lc * 0.9)
            gmsh.option.set_number("Mesh.CharacteristicLengthMax", lc * 1.1)
            gmsh.model.mesh.generate(2)

            # 3. Extraction
            node_tags, node_coords, _ = gmsh.model.mesh.get_nodes()
            _, element_nodes = gmsh.model.mesh.get_elements_by_type(GMSH_TRIANGLE)
        except Exception as e:
            logger.exception("Gmsh generation failed")
            raise TriangulationFailed(f"Gmsh failed: {e}") from e
        finally:
            # Cleanup: Release memory and reset state
            if self._initialized:
                try:
                    gmsh.finalize()
                except Exception as finalize_error:
                    logger.warning(f"Failed to finalize Gmsh: {finalize_error}")
                finally:
                    self._initialized = False

        mesh = self._to_mesh(data, node_tags, node_coords, element_nodes)
        logger.info(f"Gmsh mesh generated: {len(mesh.points)} nodes, {len(mesh.triangles)} elements.")
        return mesh

    @staticmethod
    def _to_mesh(boundary: PointsWithEdges, node_tags, node_coords, element_nodes) -> PointsWithEdges:
        xyz = np.asarray(node_coords, dtype=np.float64).reshape(-1, 3)
        connectivity = np.asarray(element_nodes, dtype=np.int64).reshape(-1, 3)
        tag_to_row = {int(tag): row for row, tag in enumerate(node_tags)}

        # Boundary points keep their indices, matched to Gmsh nodes by coordinates
        n = len(boundary.points)
        index_of_tag: dict[int, int] = {}
        for i, point in enumerate(boundary.points):
            distances = np.hypot(xyz[:, 0] - point.x, xyz[:, 1] - point.y)
            index_of_tag[int(node_tags[int(np.argmin(distances))])] = i
        if len(index_of_tag) != n:
            raise TriangulationFailed("Gmsh merged boundary points.")

        points = list(boundary.points)
        for tag in np.unique(connectivity):
            tag = int(tag)
            if tag in index_of_tag:
                continue
            x, y, _ = xyz[tag_to_row[tag]]
            index_of_tag[tag] = len(points)
            points.append(Point(x, y))

        triangles: list[Triangle] = []
        edges: list[Edge] = []
        for tags in connectivity:
            a, b, c = (index_of_tag[int(t)] for t in tags)
            pa, pb, pc = points[a], points[b], points[c]
            if orientation((pa.x, pa.y), (pb.x, pb.y), (pc.x, pc.y)) < 0:
                b, c = c, b
            triangles.append((a, b, c))
            edges.extend((Edge(a, b), Edge(b, c), Edge(c, a)))

        return PointsWithEdges(points=points, edges=edges, triangles=triangles)
