"""
Steady-State FEM Solver
=======================
Solves -div(k grad u) = f on a mesh of linear triangles (P1 / Tri3).

Why is this file needed?
------------------------
1. Physics: It assembles the conductivity matrix and the load vector from
   the element contributions and the edge conditions.
2. Boundary Conditions: Fixed values are eliminated from the system, fluxes
   are added as consistent edge loads. Edges without a condition are
   insulated (zero flux).

Note: This module should be pure Python/NumPy/SciPy and should NOT import PySide6.
"""
from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Callable

import numpy as np
import scipy as sp
from scipy.sparse.linalg import MatrixRankWarning, spsolve

from meshflow.algorithms.base import Algorithm
from meshflow.errors import ErrorMessages, SolverFailed
from meshflow.model.bc import FixedValueCondition, FluxCondition
from meshflow.model.fem_input import FiniteElementMethodInput

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# B_N = [
#   [dN1(r,s)/dr, dN2(r,s)/dr, dN3(r,s)/dr],
#   [dN1(r,s)/ds, dN2(r,s)/ds, dN3(r,s)/ds]
# ]
B_N = np.array([
    [-1.0, 1.0, 0.0],
    [-1.0, 0.0, 1.0],
])


def tri3_jacobian_matrix(xy: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Jacobian matrix of a linear triangle.

    Args:
        xy: (3, 2) node coordinates.
    """
    return B_N @ xy


def tri3_conductivity_matrix(xy: npt.NDArray[np.float64], conductivity: float) -> npt.NDArray[np.float64]:
    """
    Element conductivity matrix [K_e] = k * A * [B]^T [B], with [B] = [J]^-1 [B_N].

    The gradient of the linear shape functions is constant, so one
    integration point is exact.
    """
    jacobian = tri3_jacobian_matrix(xy)
    det_j = float(np.linalg.det(jacobian))
    if abs(det_j) <= 1e-14 * max(1.0, float(np.max(np.abs(xy))) ** 2):
        raise SolverFailed(f"Degenerate element with corners {xy.tolist()}.")
    area = 0.5 * abs(det_j)
    b_matrix = np.linalg.inv(jacobian) @ B_N
    return conductivity * area * (b_matrix.T @ b_matrix)


def tri3_load_vector(xy: npt.NDArray[np.float64], source: float) -> npt.NDArray[np.float64]:
    """Element load of a uniform source, split equally between the corners."""
    area = 0.5 * abs(float(np.linalg.det(tri3_jacobian_matrix(xy))))
    return np.full(3, source * area / 3.0)


class LinearTriangleSolver(Algorithm[FiniteElementMethodInput, np.ndarray]):
    """
    Steady Poisson solver on P1 triangles.

    The returned values are in the node numbering of the input mesh.
    """

    def run(self, data: FiniteElementMethodInput) -> npt.NDArray[np.float64]:
        neq = data.number_of_equations
        coords = np.array([[p.x, p.y] for p in data.mesh.points], dtype=np.float64).reshape(-1, 2)
        triangles = data.triangles

        if len(triangles) == 0:
            raise SolverFailed("The mesh has no elements.")
        if triangles.max() >= neq or triangles.min() < 0:
            raise SolverFailed("An element references a node outside of the mesh.")

        k_global = self._assemble_global_matrix(
            triangles,
            neq,
            get_local_matrix=lambda tri: tri3_conductivity_matrix(coords[tri], data.conductivity),
        )

        f_global = np.zeros((neq,), dtype=np.float64)
        if data.source != 0.0:
            for tri in triangles:
                f_global[tri] += tri3_load_vector(coords[tri], data.source)

        fixed_values = self._apply_conditions(data, coords, f_global)
        if not fixed_values:
            raise SolverFailed(ErrorMessages.SINGULAR_SYSTEM.value)

        return self._solve(k_global, f_global, fixed_values)

    @staticmethod
    def _assemble_global_matrix(
        triangles: npt.NDArray[np.int64],
        neq: int,
        get_local_matrix: Callable[[npt.NDArray[np.int64]], npt.NDArray[np.float64]],
    ) -> sp.sparse.csr_matrix:
        """
        Assemble a global matrix in CSR form using a provided function to get the element matrix.

        Args:
            triangles: (T, 3) element connectivity.
            neq: Number of equations.
            get_local_matrix: Element matrix for one row of `triangles`.
        """
        rows: list[npt.NDArray[np.int64]] = []
        cols: list[npt.NDArray[np.int64]] = []
        data: list[npt.NDArray[np.float64]] = []

        for dofs in triangles:
            n_dofs = len(dofs)
            m_el = get_local_matrix(dofs)

            rows.append(np.repeat(dofs, n_dofs))
            cols.append(np.tile(dofs, n_dofs))
            data.append(m_el.flatten())

        # COO tolerates duplicates; .tocsr() sums them
        return sp.sparse.coo_matrix(
            (np.hstack(data), (np.hstack(rows), np.hstack(cols))),
            shape=(neq, neq),
        ).tocsr()

    @staticmethod
    def _apply_conditions(
        data: FiniteElementMethodInput,
        coords: npt.NDArray[np.float64],
        f_global: npt.NDArray[np.float64],
    ) -> dict[int, float]:
        """
        Adds flux loads to `f_global` and returns the fixed nodal values.

        A node shared by two fixed-value edges gets the mean of their values.
        """
        sums: dict[int, float] = {}
        counts: dict[int, int] = {}

        for edge, condition in data.conditions.items():
            i, j = edge.as_tuple()
            if max(i, j) >= len(coords):
                raise SolverFailed(f"Condition on {edge} references a node outside of the mesh.")
            if isinstance(condition, FixedValueCondition):
                for node in (i, j):
                    sums[node] = sums.get(node, 0.0) + condition.value
                    counts[node] = counts.get(node, 0) + 1
            elif isinstance(condition, FluxCondition):
                length = float(np.hypot(*(coords[j] - coords[i])))
                f_global[[i, j]] += condition.value * length / 2.0
            else:
                raise SolverFailed(f"Unsupported condition {condition!r} on {edge}.")

        return {node: sums[node] / counts[node] for node in sums}

    @staticmethod
    def _solve(
        k_global: sp.sparse.csr_matrix,
        f_global: npt.NDArray[np.float64],
        fixed_values: dict[int, float],
    ) -> npt.NDArray[np.float64]:
        neq = len(f_global)
        fixed = np.array(sorted(fixed_values), dtype=np.int64)
        free = np.setdiff1d(np.arange(neq, dtype=np.int64), fixed)

        u = np.zeros((neq,), dtype=np.float64)
        u[fixed] = [fixed_values[i] for i in fixed]

        if len(free):
            k_ff = k_global[free][:, free].tocsc()
            rhs = f_global[free] - k_global[free][:, fixed] @ u[fixed]
            with warnings.catch_warnings():
                warnings.simplefilter("error", MatrixRankWarning)
                try:
                    u[free] = np.atleast_1d(spsolve(k_ff, rhs))
                except MatrixRankWarning as e:
                    raise SolverFailed(ErrorMessages.SINGULAR_SYSTEM.value) from e

        if not np.all(np.isfinite(u)):
            raise SolverFailed(ErrorMessages.SINGULAR_SYSTEM.value)

        logger.info(f"Solved {len(free)} unknowns ({len(fixed)} fixed), u in [{u.min():.4g}, {u.max():.4g}].")
        return u
