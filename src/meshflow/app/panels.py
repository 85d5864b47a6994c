"""
Step Panels
===========
One left-side panel per workflow step.

Every panel implements `refresh(state)` (called through the main window
whenever its step becomes active) and turns button clicks into controller
calls. Only the editing helpers of the controller hand out mutable data.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Signal, Slot
from PySide6.QtWidgets import (
    QComboBox, QDoubleSpinBox, QFormLayout, QGroupBox, QHBoxLayout, QHeaderView,
    QLabel, QPushButton, QSpinBox, QTableWidget, QTableWidgetItem, QVBoxLayout, QWidget,
)

from meshflow.controller.navigation import Intent
from meshflow.model.bc import ConditionType, make_condition
from meshflow.model.geometry_primitives import Edge, Point

if TYPE_CHECKING:
    from meshflow.controller.navigation import WorkflowController
    from meshflow.model.state import WorkflowState

logger = logging.getLogger(__name__)

NO_CONDITION = "none"


def _spin_box(value: float = 0.0, decimals: int = 4) -> QDoubleSpinBox:
    box = QDoubleSpinBox()
    box.setDecimals(decimals)
    box.setRange(-1e9, 1e9)
    box.setValue(value)
    return box


class BasePanel(QWidget):
    """Base class for step panels. Holds a reference to the controller."""
    # Emitted after an edit that does not change the step (preview refresh)
    edited = Signal()

    title = ""

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.controller = controller
        self.layout_ = QVBoxLayout(self)
        header = QLabel(f"<b>{self.title}</b>", self)
        self.layout_.addWidget(header)

    def refresh(self, state: WorkflowState) -> None:
        """Fills the widgets from `state`."""
        pass

    def _button(self, text: str, slot) -> QPushButton:
        button = QPushButton(text, self)
        button.clicked.connect(slot)
        return button


class BoundaryPanel(BasePanel):
    """Editing of the boundary polygon: point table, point and edge helpers."""
    title = "1. Boundary"

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(controller, parent)
        self._updating = False

        self.table = QTableWidget(0, 2, self)
        self.table.setHorizontalHeaderLabels(["x", "y"])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.table.cellChanged.connect(self._on_cell_changed)
        self.layout_.addWidget(self.table)

        edit_row = QHBoxLayout()
        edit_row.addWidget(self._button("Split edge after point", self._on_split))
        edit_row.addWidget(self._button("Remove point", self._on_remove))
        self.layout_.addLayout(edit_row)

        point_box = QGroupBox("New point", self)
        point_form = QFormLayout(point_box)
        self.spin_x = _spin_box()
        self.spin_y = _spin_box()
        point_form.addRow("x", self.spin_x)
        point_form.addRow("y", self.spin_y)
        point_form.addRow(self._button("Add point", self._on_add_point))
        self.layout_.addWidget(point_box)

        edge_box = QGroupBox("Edges", self)
        edge_form = QFormLayout(edge_box)
        self.first = QSpinBox(self)
        self.second = QSpinBox(self)
        edge_form.addRow("From point", self.first)
        edge_form.addRow("To point", self.second)
        edge_buttons = QHBoxLayout()
        edge_buttons.addWidget(self._button("Add edge", self._on_add_edge))
        edge_buttons.addWidget(self._button("Remove edge", self._on_remove_edge))
        edge_form.addRow(edge_buttons)
        self.layout_.addWidget(edge_box)

        nav_row = QHBoxLayout()
        nav_row.addWidget(self._button("Clear", lambda: self.controller.dispatch(Intent.CLEAR)))
        nav_row.addWidget(self._button("Reload", lambda: self.controller.dispatch(Intent.RELOAD)))
        self.layout_.addLayout(nav_row)

        go_row = QHBoxLayout()
        go_row.addWidget(self._button("Manual mesh", lambda: self.controller.dispatch(Intent.GO_MANUAL)))
        go_row.addWidget(self._button("Auto mesh", lambda: self.controller.dispatch(Intent.GO_AUTO)))
        self.layout_.addLayout(go_row)

    def refresh(self, state: WorkflowState) -> None:
        self._updating = True
        try:
            points = state.working_boundary.points
            self.table.setRowCount(len(points))
            for row, p in enumerate(points):
                self.table.setItem(row, 0, QTableWidgetItem(f"{p.x:g}"))
                self.table.setItem(row, 1, QTableWidgetItem(f"{p.y:g}"))
        finally:
            self._updating = False
        for box in (self.first, self.second):
            box.setRange(0, max(len(points) - 1, 0))

    @Slot(int, int)
    def _on_cell_changed(self, row: int, column: int) -> None:
        if self._updating:
            return
        boundary = self.controller.boundary_for_editing()
        try:
            x = float(self.table.item(row, 0).text())
            y = float(self.table.item(row, 1).text())
        except (AttributeError, ValueError):
            logger.warning(f"Ignoring invalid coordinates in row {row}.")
            self._restore_row(row, boundary.points[row])
            return
        boundary.move_point(row, Point(x, y))
        self.edited.emit()

    def _restore_row(self, row: int, point: Point) -> None:
        # Items are edited in place; replacing them inside cellChanged is unsafe
        self._updating = True
        try:
            for column, value in enumerate((point.x, point.y)):
                item = self.table.item(row, column)
                if item is not None:
                    item.setText(f"{value:g}")
        finally:
            self._updating = False

    def _on_split(self) -> None:
        """Inserts a point in the middle of an edge of the selected point."""
        row = self.table.currentRow()
        boundary = self.controller.boundary_for_editing()
        if row < 0 or row >= len(boundary.points):
            return
        neighbours = sorted(boundary.neighbours()[row])
        if not neighbours:
            return
        other = neighbours[-1]
        a, b = boundary.points[row], boundary.points[other]
        boundary.remove_edge(row, other)
        new = boundary.add_point(Point((a.x + b.x) / 2.0, (a.y + b.y) / 2.0))
        boundary.add_edge(row, new)
        boundary.add_edge(new, other)
        self.refresh(self.controller.state)
        self.edited.emit()

    def _on_remove(self) -> None:
        """Removes the selected point and reconnects its two neighbours."""
        row = self.table.currentRow()
        boundary = self.controller.boundary_for_editing()
        if row < 0 or row >= len(boundary.points):
            return
        neighbours = sorted(boundary.neighbours()[row])
        boundary.remove_point(row)
        if len(neighbours) == 2:
            a, b = (n - 1 if n > row else n for n in neighbours)
            boundary.add_edge(a, b)
        self.refresh(self.controller.state)
        self.edited.emit()

    def _on_add_point(self) -> None:
        """
        Appends a point after the last one and keeps the loop closed.

        The closing edge (last, 0) is replaced by (last, new) and (new, 0).
        A second point only gets joined to the first one.
        """
        boundary = self.controller.boundary_for_editing()
        last = len(boundary.points) - 1
        if last >= 2 and Edge(0, last) in set(boundary.edges):
            boundary.remove_edge(0, last)
        new = boundary.add_point(Point(self.spin_x.value(), self.spin_y.value()))
        if last >= 0:
            boundary.add_edge(last, new)
        if last >= 1:
            boundary.add_edge(new, 0)
        self.refresh(self.controller.state)
        self.table.setCurrentCell(new, 0)
        self.edited.emit()

    def _edge_pair(self) -> tuple[int, int] | None:
        a, b = self.first.value(), self.second.value()
        if a == b or max(a, b) >= len(self.controller.state.working_boundary.points):
            logger.warning(f"Ignoring edge ({a}, {b}): two distinct existing points are needed.")
            return None
        return a, b

    def _on_add_edge(self) -> None:
        pair = self._edge_pair()
        if pair is None:
            return
        self.controller.boundary_for_editing().add_edge(*pair)
        self.edited.emit()

    def _on_remove_edge(self) -> None:
        pair = self._edge_pair()
        if pair is None:
            return
        try:
            self.controller.boundary_for_editing().remove_edge(*pair)
        except ValueError as e:
            logger.warning(str(e))
            return
        self.edited.emit()


class ManualTriangulationPanel(BasePanel):
    """Adds and removes mesh edges by hand."""
    title = "2. Manual triangulation"

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(controller, parent)
        self.edges_label = QLabel(self)
        self.layout_.addWidget(self.edges_label)

        form = QFormLayout()
        self.first = QSpinBox(self)
        self.second = QSpinBox(self)
        form.addRow("From point", self.first)
        form.addRow("To point", self.second)
        self.layout_.addLayout(form)

        row = QHBoxLayout()
        row.addWidget(self._button("Add edge", self._on_add))
        row.addWidget(self._button("Remove edge", self._on_remove))
        self.layout_.addLayout(row)

        self.layout_.addStretch(1)
        self.layout_.addWidget(self._button("Continue", lambda: self.controller.dispatch(Intent.CONTINUE)))

    def refresh(self, state: WorkflowState) -> None:
        draft = state.manual_draft
        n = len(draft.points) if draft is not None else 0
        for box in (self.first, self.second):
            box.setRange(0, max(n - 1, 0))
        edges = len(draft.edges) if draft is not None else 0
        self.edges_label.setText(f"{n} points, {edges} edges")

    def _pair(self) -> tuple[int, int]:
        return self.first.value(), self.second.value()

    def _on_add(self) -> None:
        a, b = self._pair()
        if a == b:
            return
        self.controller.draft_for_editing().add_edge(a, b)
        self.refresh(self.controller.state)
        self.edited.emit()

    def _on_remove(self) -> None:
        a, b = self._pair()
        draft = self.controller.draft_for_editing()
        if a != b and draft.has_edge(a, b):
            draft.remove_edge(a, b)
            self.refresh(self.controller.state)
            self.edited.emit()


class TriangulationResultPanel(BasePanel):
    title = "3. Triangulation"

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(controller, parent)
        form = QFormLayout()
        self.lbl_nodes = QLabel("-")
        self.lbl_edges = QLabel("-")
        self.lbl_elements = QLabel("-")
        self.lbl_quality = QLabel("-")
        form.addRow("Nodes:", self.lbl_nodes)
        form.addRow("Edges:", self.lbl_edges)
        form.addRow("Elements:", self.lbl_elements)
        form.addRow("Quality (min / avg):", self.lbl_quality)
        self.layout_.addLayout(form)
        self.layout_.addStretch(1)
        self.layout_.addWidget(self._button("Continue", lambda: self.controller.dispatch(Intent.CONTINUE)))

    def refresh(self, state: WorkflowState) -> None:
        stats = state.mesh_stats
        if stats is None:
            return
        self.lbl_nodes.setText(str(stats.n_nodes))
        self.lbl_edges.setText(str(stats.n_edges))
        self.lbl_elements.setText(str(stats.n_elements))
        self.lbl_quality.setText(f"{stats.quality_min:.3f} / {stats.quality_avg:.3f}")


class EdgeConditionsPanel(BasePanel):
    """Table of boundary edges with a condition type and value for each."""
    title = "4. Edge conditions"

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(controller, parent)
        self._edges: list[Edge] = []
        self._updating = False

        self.table = QTableWidget(0, 3, self)
        self.table.setHorizontalHeaderLabels(["Edge", "Condition", "Value"])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.layout_.addWidget(self.table)

        group = QGroupBox("Material", self)
        form = QFormLayout(group)
        self.spin_conductivity = _spin_box(1.0)
        self.spin_conductivity.setMinimum(1e-9)
        self.spin_source = _spin_box(0.0)
        form.addRow("Conductivity k:", self.spin_conductivity)
        form.addRow("Source f:", self.spin_source)
        self.spin_conductivity.valueChanged.connect(self._on_settings_changed)
        self.spin_source.valueChanged.connect(self._on_settings_changed)
        self.layout_.addWidget(group)

        self.layout_.addWidget(self._button("Solve", lambda: self.controller.dispatch(Intent.CONTINUE)))

    def refresh(self, state: WorkflowState) -> None:
        self._updating = True
        try:
            self._edges = self.controller.boundary_edges()
            self.table.setRowCount(len(self._edges))
            for row, edge in enumerate(self._edges):
                item = QTableWidgetItem(f"{edge.start} - {edge.end}")
                self.table.setItem(row, 0, item)

                condition = state.edge_conditions.get(edge)
                combo = QComboBox(self.table)
                combo.addItems([NO_CONDITION] + [c.value for c in ConditionType])
                combo.setCurrentText(condition.type.value if condition else NO_CONDITION)
                spin = _spin_box(condition.value if condition else 0.0)

                combo.currentTextChanged.connect(lambda _=None, r=row: self._on_row_changed(r))
                spin.valueChanged.connect(lambda _=None, r=row: self._on_row_changed(r))
                self.table.setCellWidget(row, 1, combo)
                self.table.setCellWidget(row, 2, spin)

            self.spin_conductivity.setValue(state.settings.conductivity)
            self.spin_source.setValue(state.settings.source)
        finally:
            self._updating = False

    def _on_row_changed(self, row: int) -> None:
        if self._updating:
            return
        edge = self._edges[row]
        kind = self.table.cellWidget(row, 1).currentText()
        value = self.table.cellWidget(row, 2).value()
        if kind == NO_CONDITION:
            self.controller.clear_edge_condition(edge)
        else:
            self.controller.set_edge_condition(edge, make_condition(kind, value))
        self.edited.emit()

    def _on_settings_changed(self, *_) -> None:
        if self._updating:
            return
        self.controller.update_settings(
            conductivity=self.spin_conductivity.value(),
            source=self.spin_source.value(),
        )


class ResultPanel(BasePanel):
    title = "5. Result"

    def __init__(self, controller: WorkflowController, parent: QWidget | None = None) -> None:
        super().__init__(controller, parent)
        form = QFormLayout()
        self.lbl_range = QLabel("-")
        self.lbl_bandwidth = QLabel("-")
        form.addRow("u (min / max):", self.lbl_range)
        form.addRow("Bandwidth (before / after):", self.lbl_bandwidth)
        self.layout_.addLayout(form)

        self.table = QTableWidget(0, 2, self)
        self.table.setHorizontalHeaderLabels(["Node", "u"])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.layout_.addWidget(self.table)

    def refresh(self, state: WorkflowState) -> None:
        solution = state.solution
        if solution is None:
            self.table.setRowCount(0)
            return
        self.lbl_range.setText(f"{solution.minimum:.6g} / {solution.maximum:.6g}")
        self.lbl_bandwidth.setText(f"{solution.bandwidth_before} / {solution.bandwidth_after}")
        self.table.setRowCount(len(solution))
        for i, value in enumerate(solution.values):
            self.table.setItem(i, 0, QTableWidgetItem(str(i)))
            self.table.setItem(i, 1, QTableWidgetItem(f"{value:.6g}"))
