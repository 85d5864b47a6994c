"""
Application Initialization
==========================
This module constructs the MVC (Model-View-Controller) architecture and starts
the Qt Event Loop.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root. It:
1. Chooses the boundary loader and the algorithm suite.
2. Instantiates the WorkflowController (which owns the WorkflowState).
3. Instantiates the Main Window (View) and connects it to the controller.
4. Prevents circular import errors by being the orchestrator.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from meshflow.config import DEFAULT_BOUNDARY_PATH, DEFAULT_GMSH_MESH_SIZE
from meshflow.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="meshflow", description="Interactive mesh preparation and FEM solve.")
    parser.add_argument("boundary", nargs="?", default=DEFAULT_BOUNDARY_PATH,
                        help="Initial boundary (.json or any meshio format with line cells).")
    parser.add_argument("--triangulator", choices=["ear", "gmsh"], default="ear",
                        help="Algorithm used by 'Auto mesh'.")
    parser.add_argument("--mesh-size", type=float, default=DEFAULT_GMSH_MESH_SIZE,
                        help="Target element size of the gmsh triangulator.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 1. Setup Logging (Console + Optional File)
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, log_file=args.log_file)

    # Delayed imports: Qt widgets only after logging is configured
    from PySide6.QtWidgets import QMessageBox

    from meshflow.algorithms.base import AlgorithmSuite
    from meshflow.app.application import create_app
    from meshflow.app.main_window import MainWindow
    from meshflow.controller.navigation import WorkflowController
    from meshflow.controller.workers import QtJobExecutor
    from meshflow.errors import BoundaryLoadFailed
    from meshflow.model.io import FileBoundaryLoader

    # 2. Create the Qt Application
    app = create_app()

    # 3. Controller with its collaborators
    executor = QtJobExecutor()
    controller = WorkflowController(
        loader=FileBoundaryLoader(args.boundary),
        algorithms=AlgorithmSuite.default(triangulator=args.triangulator, mesh_size=args.mesh_size),
        executor=executor,
    )

    # 4. Main Window, then load the boundary
    window = MainWindow(controller)
    try:
        controller.start()
    except BoundaryLoadFailed as e:
        QMessageBox.critical(None, "MeshFlow", e.message)
        return 1
    window.show()

    # 5. Start Event Loop
    exit_code = app.exec()
    executor.wait_all()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
