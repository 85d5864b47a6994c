"""
Configuration & Path Management
===============================
This module serves as the central registry for file paths and global constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents hardcoded paths and magic numbers (tolerances,
   default material values) scattered throughout the code.
2. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets (sample boundaries) when the app is frozen into an .exe.

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEFAULT_BOUNDARY_PATH (str): Boundary loaded when no file is given.
    GEOMETRY_TOLERANCE (float): Relative tolerance for orientation tests.
"""
import sys
import os
from pathlib import Path


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        # PyInstaller temp folder
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # Development mode: resolve relative to this file
    # config.py is in src/meshflow/
    current_file_path: Path = Path(__file__)
    project_root: Path = current_file_path.parent.parent.parent
    return os.path.join(str(project_root), relative_path)


# Global Constants
ASSETS_PATH: str = get_resource_path("assets")
DEFAULT_BOUNDARY_PATH: str = os.path.join(ASSETS_PATH, "l_shape.json")

# Cross products smaller than this (scaled by the squared extent of the
# geometry) are treated as zero.
GEOMETRY_TOLERANCE: float = 1e-9

# Steady-state Poisson defaults: -div(k grad u) = f
DEFAULT_CONDUCTIVITY: float = 1.0
DEFAULT_SOURCE: float = 0.0

# None lets gmsh derive the element size from the boundary extent
DEFAULT_GMSH_MESH_SIZE: float | None = None
