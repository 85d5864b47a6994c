"""
Tests for app/main_window.py, app/panels.py and app/preview.py.

The window is driven through its widgets on the offscreen platform; the
modal error dialog is replaced so nothing blocks.
"""

import numpy as np
import pytest

from meshflow.app import main_window as main_window_module
from meshflow.app.application import VISIBLE_APP_NAME, create_app
from meshflow.app.main_window import MainWindow
from meshflow.app.panels import NO_CONDITION
from meshflow.app.preview import MeshPreview
from meshflow.controller.navigation import Intent
from meshflow.model.geometry_primitives import Edge
from meshflow.model.state import Step

from conftest import make_controller


@pytest.fixture
def warnings_shown(monkeypatch):
    shown = []
    monkeypatch.setattr(
        main_window_module.QMessageBox, "warning",
        lambda parent, title, text: shown.append((title, text)),
    )
    return shown


@pytest.fixture
def window(square):
    controller = make_controller(square, start=False)
    window = MainWindow(controller)
    controller.start()
    yield window
    window.close()


class TestMainWindow:

    def test_starts_on_boundary_panel(self, window):
        assert window.windowTitle() == VISIBLE_APP_NAME
        assert window.panel_stack.currentIndex() == int(Step.EDITING_BOUNDARY)
        assert window.panels[Step.EDITING_BOUNDARY].table.rowCount() == 4
        assert not window.btn_back.isEnabled()

    def test_editing_a_cell_moves_the_point(self, window):
        table = window.panels[Step.EDITING_BOUNDARY].table
        table.item(2, 0).setText("1.5")
        assert window.controller.state.working_boundary.points[2].x == 1.5

    def test_invalid_cell_is_reverted(self, window):
        table = window.panels[Step.EDITING_BOUNDARY].table
        table.item(1, 1).setText("abc")
        assert window.controller.state.working_boundary.points[1].y == 0.0
        assert table.item(1, 1).text() == "0"

    def test_split_and_remove(self, window):
        panel = window.panels[Step.EDITING_BOUNDARY]
        boundary = window.controller.state.working_boundary

        panel.table.setCurrentCell(0, 0)
        panel._on_split()
        assert len(boundary.points) == 5
        assert panel.table.rowCount() == 5

        panel.table.setCurrentCell(4, 0)
        panel._on_remove()
        assert len(boundary.points) == 4
        assert window.controller.dispatch(Intent.GO_AUTO).accepted

    def test_rebuild_boundary_after_clear(self, window):
        controller = window.controller
        panel = window.panels[Step.EDITING_BOUNDARY]

        controller.dispatch(Intent.CLEAR)
        assert panel.table.rowCount() == 0

        for x, y in [(0.0, 0.0), (2.0, 0.0), (0.0, 2.0)]:
            panel.spin_x.setValue(x)
            panel.spin_y.setValue(y)
            panel._on_add_point()

        boundary = controller.state.working_boundary
        assert len(boundary.points) == 3
        assert set(boundary.edges) == {Edge(0, 1), Edge(1, 2), Edge(0, 2)}
        assert panel.table.rowCount() == 3

        outcome = controller.dispatch(Intent.GO_AUTO)
        assert outcome.accepted
        assert controller.active_step == Step.TRIANGULATION_RESULT
        assert len(controller.state.triangulated_mesh.triangles) == 1

    def test_add_point_keeps_loop_closed(self, window):
        panel = window.panels[Step.EDITING_BOUNDARY]
        boundary = window.controller.state.working_boundary
        assert Edge(0, 3) in set(boundary.edges)

        panel.spin_x.setValue(-0.5)
        panel.spin_y.setValue(0.5)
        panel._on_add_point()

        assert len(boundary.points) == 5
        assert Edge(0, 3) not in set(boundary.edges)
        assert {Edge(3, 4), Edge(0, 4)} <= set(boundary.edges)
        assert len(boundary.edges) == 5
        assert window.controller.dispatch(Intent.GO_AUTO).accepted

    def test_add_and_remove_edge(self, window):
        panel = window.panels[Step.EDITING_BOUNDARY]
        boundary = window.controller.state.working_boundary

        panel.first.setValue(0)
        panel.second.setValue(2)
        panel._on_add_edge()
        assert Edge(0, 2) in set(boundary.edges)

        panel._on_remove_edge()
        assert Edge(0, 2) not in set(boundary.edges)

        # Same point twice and missing edges are ignored
        panel.second.setValue(0)
        panel._on_add_edge()
        panel.second.setValue(2)
        panel._on_remove_edge()
        assert len(boundary.edges) == 4

    def test_full_workflow(self, window):
        controller = window.controller

        controller.dispatch(Intent.GO_AUTO)
        assert window.panel_stack.currentIndex() == int(Step.TRIANGULATION_RESULT)
        assert window.panels[Step.TRIANGULATION_RESULT].lbl_elements.text() == "2"
        assert window.btn_back.isEnabled()

        controller.dispatch(Intent.CONTINUE)
        panel = window.panels[Step.SETTING_EDGE_CONDITIONS]
        assert panel.table.rowCount() == 4

        # Rows follow boundary_edges(): (0,1), (0,3), (1,2), (2,3)
        panel.table.cellWidget(1, 1).setCurrentText("fixed-value")
        panel.table.cellWidget(2, 2).setValue(1.0)
        panel.table.cellWidget(2, 1).setCurrentText("fixed-value")
        assert len(controller.state.edge_conditions) == 2

        controller.dispatch(Intent.CONTINUE)
        result = window.panels[Step.RESULT]
        assert window.panel_stack.currentIndex() == int(Step.RESULT)
        assert result.table.rowCount() == 4
        assert result.lbl_range.text() == "0 / 1"

        window.btn_back.click()
        assert controller.active_step == Step.SETTING_EDGE_CONDITIONS

    def test_clearing_a_condition(self, window):
        controller = window.controller
        controller.dispatch(Intent.GO_AUTO)
        controller.dispatch(Intent.CONTINUE)
        panel = window.panels[Step.SETTING_EDGE_CONDITIONS]

        panel.table.cellWidget(0, 1).setCurrentText("flux")
        assert len(controller.state.edge_conditions) == 1
        panel.table.cellWidget(0, 1).setCurrentText(NO_CONDITION)
        assert controller.state.edge_conditions == {}

    def test_settings_spin_boxes(self, window):
        controller = window.controller
        controller.dispatch(Intent.GO_AUTO)
        controller.dispatch(Intent.CONTINUE)
        window.panels[Step.SETTING_EDGE_CONDITIONS].spin_conductivity.setValue(2.5)
        assert controller.state.settings.conductivity == 2.5

    def test_manual_panel(self, window):
        controller = window.controller
        controller.dispatch(Intent.GO_MANUAL)
        panel = window.panels[Step.MANUAL_TRIANGULATION]
        assert window.panel_stack.currentIndex() == int(Step.MANUAL_TRIANGULATION)

        panel.first.setValue(0)
        panel.second.setValue(2)
        panel._on_add()
        assert panel.edges_label.text() == "4 points, 5 edges"

        assert controller.dispatch(Intent.CONTINUE).step == Step.SETTING_EDGE_CONDITIONS

    def test_error_dialog(self, dangling, warnings_shown):
        controller = make_controller(dangling, start=False)
        window = MainWindow(controller)
        controller.start()

        controller.dispatch(Intent.GO_AUTO)

        assert len(warnings_shown) == 1
        assert window.panel_stack.currentIndex() == int(Step.EDITING_BOUNDARY)
        window.close()

    def test_busy_disables_navigation(self, window):
        window.on_busy_changed(True)
        assert not window.panel_stack.isEnabled()
        assert window.status_label.text() == "Computing..."
        window.on_busy_changed(False)
        assert window.panel_stack.isEnabled()


class TestMeshPreview:

    def test_show_mesh_with_values(self, square):
        preview = MeshPreview()
        preview.show_mesh(square, highlight=[square.edges[0]], values=np.array([0.0, 1.0, 1.0, 0.0]))
        assert len(preview.plot_widget.listDataItems()) >= 2

    def test_show_nothing(self):
        preview = MeshPreview()
        preview.show_mesh(None)
        assert preview.plot_widget.listDataItems() == []


def test_create_app_reuses_instance(qapp):
    assert create_app() is qapp
