from __future__ import annotations

import logging

import numpy as np
from scipy.sparse.csgraph import reverse_cuthill_mckee

from meshflow.algorithms.base import Algorithm
from meshflow.model.geometry_primitives import PointsWithAdjacencyMatrix

logger = logging.getLogger(__name__)


class ReverseCuthillMcKeeRenumberer(Algorithm[PointsWithAdjacencyMatrix, PointsWithAdjacencyMatrix]):
    """
    Reorders the nodes to reduce the bandwidth of the adjacency matrix.

    The output is the same graph (same points, same connections) with the
    nodes permuted; `permutation` records where every node came from. If the
    reordering would widen the band the input order is kept.
    """

    def run(self, data: PointsWithAdjacencyMatrix) -> PointsWithAdjacencyMatrix:
        if data.number_of_nodes == 0:
            return data.permuted(np.empty(0, dtype=np.int64))

        order = reverse_cuthill_mckee(data.adjacency, symmetric_mode=True)
        renumbered = data.permuted(order)

        before, after = data.bandwidth, renumbered.bandwidth
        if after > before:
            logger.debug(f"RCM widened the band ({before} -> {after}), keeping the original order.")
            return data.permuted(np.arange(data.number_of_nodes, dtype=np.int64))

        logger.info(f"Renumbered {data.number_of_nodes} nodes, bandwidth {before} -> {after}.")
        return renumbered
