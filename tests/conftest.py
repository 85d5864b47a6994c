"""
Shared test fixtures for meshflow tests.

This module provides:
- One QApplication for the whole session (signal delivery, widgets)
- Boundary fixtures (square, L-shape, hexagon, broken polygons)
- Controller fixtures wired to the default algorithms
"""

import os

import pytest

# Widgets must not try to open a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication

from meshflow.algorithms.base import AlgorithmSuite
from meshflow.controller.navigation import WorkflowController
from meshflow.model.geometry_primitives import PointsWithEdges
from meshflow.model.io import StaticBoundaryLoader


# =============================================================================
# Qt
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Single QApplication for all tests."""
    app = QApplication.instance() or QApplication([])
    yield app


# =============================================================================
# Boundaries
# =============================================================================

SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
L_SHAPE = [(0.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0), (1.0, 2.0), (0.0, 2.0)]
# Rectangle 2x1 with a collinear point in the middle of the long sides
HEXAGON = [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (2.0, 1.0), (1.0, 1.0), (0.0, 1.0)]


@pytest.fixture
def square():
    return PointsWithEdges.closed_polygon(SQUARE)


@pytest.fixture
def l_shape():
    return PointsWithEdges.closed_polygon(L_SHAPE)


@pytest.fixture
def hexagon():
    return PointsWithEdges.closed_polygon(HEXAGON)


@pytest.fixture
def dangling(square):
    """Square plus a fifth point connected to a single corner."""
    boundary = square.clone()
    index = boundary.add_point((2.0, 2.0))
    boundary.add_edge(2, index)
    return boundary


@pytest.fixture
def bow_tie():
    """Self-intersecting quadrilateral."""
    return PointsWithEdges.closed_polygon([(0.0, 0.0), (1.0, 1.0), (1.0, 0.0), (0.0, 1.0)])


# =============================================================================
# Controller
# =============================================================================

def make_controller(boundary, algorithms=None, executor=None, start=True):
    controller = WorkflowController(
        loader=StaticBoundaryLoader(boundary),
        algorithms=algorithms or AlgorithmSuite.default(),
        executor=executor,
    )
    if start:
        controller.start()
    return controller


@pytest.fixture
def square_controller(square):
    return make_controller(square)


@pytest.fixture
def hexagon_controller(hexagon):
    return make_controller(hexagon)


class SignalRecorder:
    """Collects the arguments of every emission of a Qt signal."""

    def __init__(self, signal):
        self.calls = []
        signal.connect(self._record)

    def _record(self, *args):
        self.calls.append(args[0] if len(args) == 1 else args)

    def __len__(self):
        return len(self.calls)
