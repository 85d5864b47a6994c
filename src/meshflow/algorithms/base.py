from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, Literal, Sequence, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from meshflow.model.fem_input import FiniteElementMethodInput
    from meshflow.model.geometry_primitives import PointsWithAdjacencyMatrix, PointsWithEdges

I = TypeVar("I")
O = TypeVar("O")


class Algorithm(ABC, Generic[I, O]):
    """
    A synchronous computation step with one input and one output.

    Any exception raised by `run` counts as a failure of the step.
    """

    @abstractmethod
    def run(self, data: I) -> O:
        pass

    def __call__(self, data: I) -> O:
        return self.run(data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class FunctionAlgorithm(Algorithm[I, O]):
    """Wraps a plain callable as an Algorithm."""

    def __init__(self, func: Callable[[I], O], name: str | None = None) -> None:
        self._func = func
        self.name = name or getattr(func, "__name__", "function")

    def run(self, data: I) -> O:
        return self._func(data)

    def __repr__(self) -> str:
        return f"FunctionAlgorithm({self.name})"


@dataclass
class AlgorithmSuite:
    """The five computation steps the workflow depends on."""
    polygon_validator: Algorithm[PointsWithEdges, bool]
    triangulation_validator: Algorithm[PointsWithEdges, bool]
    triangulator: Algorithm[PointsWithEdges, PointsWithEdges]
    renumberer: Algorithm[PointsWithAdjacencyMatrix, PointsWithAdjacencyMatrix]
    fem_solver: Algorithm[FiniteElementMethodInput, Sequence[float]]

    @classmethod
    def default(
        cls,
        triangulator: Literal["ear", "gmsh"] = "ear",
        mesh_size: float | None = None,
    ) -> AlgorithmSuite:
        """
        Builds the bundled implementations.

        Args:
            triangulator: "ear" triangulates the polygon vertices only,
                "gmsh" creates a quality mesh with interior points.
            mesh_size: Target element size for the gmsh triangulator.
        """
        # Delayed imports keep gmsh optional until it is actually selected
        from meshflow.algorithms.fem import LinearTriangleSolver
        from meshflow.algorithms.renumbering import ReverseCuthillMcKeeRenumberer
        from meshflow.algorithms.triangulation import EarClippingTriangulator
        from meshflow.algorithms.validators import PolygonValidator, TriangulationValidator

        match triangulator:
            case "ear":
                mesher: Algorithm[PointsWithEdges, PointsWithEdges] = EarClippingTriangulator()
            case "gmsh":
                from meshflow.algorithms.gmsh_triangulator import GmshTriangulator
                mesher = GmshTriangulator(mesh_size=mesh_size)
            case _:
                raise ValueError(f"Unknown triangulator '{triangulator}'.")

        return cls(
            polygon_validator=PolygonValidator(),
            triangulation_validator=TriangulationValidator(),
            triangulator=mesher,
            renumberer=ReverseCuthillMcKeeRenumberer(),
            fem_solver=LinearTriangleSolver(),
        )
