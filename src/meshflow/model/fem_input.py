"""
Finite Element Method Input / Output containers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, TYPE_CHECKING

import numpy as np

from meshflow.config import DEFAULT_CONDUCTIVITY, DEFAULT_SOURCE
from meshflow.model.bc import EdgeCondition
from meshflow.model.geometry_primitives import Edge, PointsWithAdjacencyMatrix

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass
class FiniteElementMethodInput:
    """
    Everything the solver needs, expressed in the renumbered node numbering.

    Solves -div(conductivity * grad u) = source on the triangles, with the
    given conditions on boundary edges and zero flux on all other edges.
    """
    mesh: PointsWithAdjacencyMatrix
    triangles: npt.NDArray[np.int64]
    conditions: Dict[Edge, EdgeCondition] = field(default_factory=dict)
    conductivity: float = DEFAULT_CONDUCTIVITY
    source: float = DEFAULT_SOURCE

    def __post_init__(self) -> None:
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)

    @property
    def number_of_equations(self) -> int:
        # One degree of freedom per node
        return self.mesh.number_of_nodes


@dataclass
class Solution:
    """
    Nodal results of the finite element solve.

    `values[i]` belongs to node `i` of the triangulated mesh (original
    numbering, before renumbering).
    """
    values: npt.NDArray[np.float64]
    permutation: npt.NDArray[np.int64]
    bandwidth_before: int = 0
    bandwidth_after: int = 0

    @property
    def minimum(self) -> float:
        return float(np.min(self.values)) if len(self.values) else 0.0

    @property
    def maximum(self) -> float:
        return float(np.max(self.values)) if len(self.values) else 0.0

    def __len__(self) -> int:
        return len(self.values)
