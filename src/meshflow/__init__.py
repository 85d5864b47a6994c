"""Interactive finite-element mesh preparation workflow."""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("meshflow")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
