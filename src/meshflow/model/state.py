"""
Workflow State (Data Model)
===========================
This module defines the central data structure of a mesh preparation session.

Why is this file needed?
------------------------
1. State Management: It holds the boundary being edited, the triangulated mesh
   and the solver results in one place.
2. Decoupling: Views read from this object; only the WorkflowController writes
   to it.

Classes:
    Step: The steps of the workflow.
    SolverSettings: Material and load parameters of the solve.
    MeshStats: Summary of a triangulated mesh for display.
    WorkflowState: The main container class.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
import logging
from typing import Dict, Optional

import numpy as np

from meshflow.config import DEFAULT_CONDUCTIVITY, DEFAULT_SOURCE
from meshflow.model.bc import EdgeCondition
from meshflow.model.fem_input import Solution
from meshflow.model.geometry_primitives import Edge, PointsWithEdges
from meshflow.model.geometry_utils import mesh_triangles, triangle_quality

logger = logging.getLogger(__name__)


class Step(IntEnum):
    """The steps of the workflow."""
    EDITING_BOUNDARY = 0
    MANUAL_TRIANGULATION = 1
    TRIANGULATION_RESULT = 2
    SETTING_EDGE_CONDITIONS = 3
    RESULT = 4


@dataclass
class SolverSettings:
    conductivity: float = DEFAULT_CONDUCTIVITY
    source: float = DEFAULT_SOURCE


@dataclass
class MeshStats:
    """Basic mesh metrics for the triangulation result step."""
    n_nodes: int = 0
    n_edges: int = 0
    n_elements: int = 0
    quality_min: float = 0.0
    quality_avg: float = 0.0

    @classmethod
    def from_mesh(cls, mesh: PointsWithEdges) -> MeshStats:
        triangles = mesh_triangles(mesh)
        coords = mesh.coordinates()
        qualities = [triangle_quality(coords[a], coords[b], coords[c]) for a, b, c in triangles]
        return cls(
            n_nodes=len(mesh.points),
            n_edges=len(mesh.edges),
            n_elements=len(triangles),
            quality_min=float(np.min(qualities)) if qualities else 0.0,
            quality_avg=float(np.mean(qualities)) if qualities else 0.0,
        )


@dataclass
class WorkflowState:
    """
    Mutable session data, owned and mutated by the WorkflowController only.

    `initial_boundary` is loaded once and never changed; `working_boundary`
    is recreated from it (or emptied) whenever editing is restarted.
    `triangulated_mesh` exists only after a successful triangulation.
    """
    initial_boundary: PointsWithEdges
    working_boundary: PointsWithEdges
    triangulated_mesh: Optional[PointsWithEdges] = None
    active_step: Step = Step.EDITING_BOUNDARY

    manual_draft: Optional[PointsWithEdges] = None
    edge_conditions: Dict[Edge, EdgeCondition] = field(default_factory=dict)
    settings: SolverSettings = field(default_factory=SolverSettings)
    solution: Optional[Solution] = None

    @classmethod
    def from_initial_boundary(cls, boundary: PointsWithEdges) -> WorkflowState:
        # The working copy must never alias the initial boundary
        return cls(initial_boundary=boundary, working_boundary=boundary.clone())

    @property
    def mesh_stats(self) -> Optional[MeshStats]:
        if self.triangulated_mesh is None:
            return None
        return MeshStats.from_mesh(self.triangulated_mesh)

    def discard_mesh(self) -> None:
        """Drops the mesh together with everything derived from it."""
        self.triangulated_mesh = None
        self.manual_draft = None
        self.edge_conditions = {}
        self.solution = None
        logger.debug("Triangulated mesh and derived data discarded.")
