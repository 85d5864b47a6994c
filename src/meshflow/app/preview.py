from __future__ import annotations

from typing import Iterable, Optional, TYPE_CHECKING

import numpy as np
import pyqtgraph as pg
from PySide6.QtWidgets import QVBoxLayout, QWidget

if TYPE_CHECKING:
    import numpy.typing as npt

    from meshflow.model.geometry_primitives import Edge, PointsWithEdges


class MeshPreview(QWidget):
    """
    PyQtGraph preview of a boundary or mesh:
      - edges as thin black lines,
      - highlighted edges (e.g. edges with a condition) in red,
      - nodes as dots, coloured by nodal values when given,
      - node indices as labels for small meshes.
    """
    MAX_LABELS = 60

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.plot_widget = pg.PlotWidget()
        self.plot_widget.setBackground('w')
        self.plot_widget.showGrid(x=True, y=True, alpha=0.3)
        self.plot_widget.setAspectLocked(True)
        self.plot_widget.getAxis('bottom').setPen('k')
        self.plot_widget.getAxis('left').setPen('k')
        layout.addWidget(self.plot_widget)

        self._colormap = pg.colormap.get('viridis')

    def clear(self) -> None:
        self.plot_widget.clear()

    def show_mesh(
        self,
        mesh: Optional[PointsWithEdges],
        highlight: Iterable[Edge] = (),
        values: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        self.plot_widget.clear()
        if mesh is None or not mesh.points:
            return

        coords = mesh.coordinates()
        self._plot_edges(coords, [e.as_tuple() for e in mesh.edges], pg.mkPen('k', width=1))
        highlighted = [e.as_tuple() for e in highlight]
        if highlighted:
            self._plot_edges(coords, highlighted, pg.mkPen('r', width=3))

        if values is not None and len(values) == len(coords):
            span = float(np.ptp(values)) or 1.0
            colors = self._colormap.map((values - np.min(values)) / span, mode='byte')
            brushes = [pg.mkBrush(*c) for c in colors]
        else:
            brushes = [pg.mkBrush(0, 120, 215)] * len(coords)

        scatter = pg.ScatterPlotItem(x=coords[:, 0], y=coords[:, 1], size=8, brush=brushes, pen=None)
        self.plot_widget.addItem(scatter)

        if len(coords) <= self.MAX_LABELS:
            for i, (x, y) in enumerate(coords):
                label = pg.TextItem(str(i), color='k', anchor=(0, 1))
                label.setPos(x, y)
                self.plot_widget.addItem(label)

    def _plot_edges(self, coords: npt.NDArray[np.float64], pairs: list[tuple[int, int]], pen) -> None:
        if not pairs:
            return
        idx = np.asarray(pairs, dtype=np.int64).reshape(-1)
        # "pairs" draws a separate segment for every two consecutive points
        self.plot_widget.plot(coords[idx, 0], coords[idx, 1], pen=pen, connect='pairs')
