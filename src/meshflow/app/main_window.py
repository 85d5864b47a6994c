from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Qt, Slot
from PySide6.QtWidgets import (
    QHBoxLayout, QLabel, QMainWindow, QMessageBox, QPushButton, QSplitter, QStackedWidget,
    QStatusBar, QVBoxLayout, QWidget,
)

from meshflow.app.application import VISIBLE_APP_NAME
from meshflow.app.panels import (
    BasePanel,
    BoundaryPanel,
    EdgeConditionsPanel,
    ManualTriangulationPanel,
    ResultPanel,
    TriangulationResultPanel,
)
from meshflow.app.preview import MeshPreview
from meshflow.controller.navigation import Intent
from meshflow.model.state import Step

if TYPE_CHECKING:
    from meshflow.controller.navigation import WorkflowController
    from meshflow.model.state import WorkflowState

logger = logging.getLogger(__name__)


class _StepView:
    """Adapter registered with the controller for one step."""

    def __init__(self, window: MainWindow, step: Step) -> None:
        self.window = window
        self.step = step

    def show(self, state: WorkflowState) -> None:
        self.window.display(self.step, state)


class MainWindow(QMainWindow):
    """Panel stack on the left, mesh preview on the right, shared Back button."""

    def __init__(self, controller: WorkflowController) -> None:
        super().__init__()
        self.setWindowTitle(VISIBLE_APP_NAME)
        self.resize(1200, 800)
        self.controller = controller

        # ---- Central: splitter between panel stack and preview ----
        central = QWidget(self)
        v = QVBoxLayout(central)
        split = QSplitter(Qt.Orientation.Horizontal, central)
        split.setChildrenCollapsible(False)
        v.addWidget(split, 1)

        left = QWidget(split)
        left_layout = QVBoxLayout(left)
        self.panel_stack = QStackedWidget(left)
        left_layout.addWidget(self.panel_stack, 1)

        nav = QHBoxLayout()
        self.btn_back = QPushButton("Back", left)
        self.btn_back.clicked.connect(lambda: self.controller.dispatch(Intent.STEP_BACK))
        nav.addWidget(self.btn_back)
        nav.addStretch(1)
        left_layout.addLayout(nav)

        self.preview = MeshPreview(split)
        split.addWidget(left)
        split.addWidget(self.preview)
        split.setStretchFactor(0, 0)
        split.setStretchFactor(1, 1)
        self.setCentralWidget(central)

        self.status = QStatusBar(self)
        self.status_label = QLabel("", self.status)
        self.status.addWidget(self.status_label)
        self.setStatusBar(self.status)

        # ---- Panels, one per step (stack index == Step value) ----
        self.panels: dict[Step, BasePanel] = {
            Step.EDITING_BOUNDARY: BoundaryPanel(controller, parent=self),
            Step.MANUAL_TRIANGULATION: ManualTriangulationPanel(controller, parent=self),
            Step.TRIANGULATION_RESULT: TriangulationResultPanel(controller, parent=self),
            Step.SETTING_EDGE_CONDITIONS: EdgeConditionsPanel(controller, parent=self),
            Step.RESULT: ResultPanel(controller, parent=self),
        }
        for step in Step:
            panel = self.panels[step]
            self.panel_stack.addWidget(panel)
            panel.edited.connect(self._on_panel_edited)
            controller.register_view(step, _StepView(self, step))

        controller.error_occurred.connect(self.on_error)
        controller.busy_changed.connect(self.on_busy_changed)
        controller.conditions_changed.connect(lambda *_: self._on_panel_edited())

    def display(self, step: Step, state: WorkflowState) -> None:
        """Shows the panel of `step` and the matching geometry."""
        panel = self.panels[step]
        panel.refresh(state)
        self.panel_stack.setCurrentIndex(int(step))
        self.btn_back.setEnabled(step != Step.EDITING_BOUNDARY)
        self.status_label.setText(step.name.replace("_", " ").capitalize())
        self._render_preview(step, state)

    def _render_preview(self, step: Step, state: WorkflowState) -> None:
        match step:
            case Step.EDITING_BOUNDARY:
                self.preview.show_mesh(state.working_boundary)
            case Step.MANUAL_TRIANGULATION:
                self.preview.show_mesh(state.manual_draft)
            case Step.TRIANGULATION_RESULT:
                self.preview.show_mesh(state.triangulated_mesh)
            case Step.SETTING_EDGE_CONDITIONS:
                self.preview.show_mesh(state.triangulated_mesh, highlight=state.edge_conditions.keys())
            case Step.RESULT:
                values = state.solution.values if state.solution is not None else None
                self.preview.show_mesh(state.triangulated_mesh, values=values)

    @Slot()
    def _on_panel_edited(self) -> None:
        state = self.controller.state
        self._render_preview(state.active_step, state)

    @Slot(str)
    def on_error(self, message: str) -> None:
        QMessageBox.warning(self, VISIBLE_APP_NAME, message)

    @Slot(bool)
    def on_busy_changed(self, busy: bool) -> None:
        """Navigation stays disabled while a computation runs in the background."""
        self.panel_stack.setEnabled(not busy)
        self.btn_back.setEnabled(not busy and self.controller.active_step != Step.EDITING_BOUNDARY)
        self.status_label.setText("Computing..." if busy else self.controller.active_step.name.replace("_", " ").capitalize())
