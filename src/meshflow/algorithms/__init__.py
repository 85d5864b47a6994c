"""
Algorithm Ports
===============
Pluggable computation steps used by the workflow controller.

Why is this package needed?
---------------------------
1. Substitution: The controller only knows the `Algorithm` interface, so every
   step (validation, triangulation, renumbering, solving) can be swapped for a
   different implementation or a test double.
2. Isolation: Nothing in here imports PySide6; the algorithms run the same on
   the GUI thread, on a worker thread or in a test.
"""
from meshflow.algorithms.base import Algorithm, AlgorithmSuite, FunctionAlgorithm

__all__ = ["Algorithm", "AlgorithmSuite", "FunctionAlgorithm"]
