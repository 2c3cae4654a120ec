"""Sequential elimination backend."""

import logging
from typing import Dict, Hashable, List

from ..optimization.ordering import Ordering
from ..optimization.values import Values, VectorValues
from .elimination import GaussianBayesNet, eliminate_dense
from .gaussian_factor_graph import GaussianFactorGraph, JacobianFactor
from .linear_solver import LinearSolver

Key = Hashable

logger = logging.getLogger(__name__)


class SequentialSolver(LinearSolver):
    """Exact solver eliminating one variable at a time.

    Factors wait in a bucket keyed by their earliest variable in the ordering.
    Eliminating a variable consumes its bucket and drops the resulting
    separator factor into the bucket of the separator's earliest variable,
    producing a Gaussian Bayes net that is then back-substituted.
    """

    def __init__(self, graph, values: Values, ordering: Ordering):
        super().__init__(graph, values, ordering)
        self.bayes_net = None

    def eliminate(self, linear_graph: GaussianFactorGraph) -> GaussianBayesNet:
        position = {key: self.ordering.index(key) for key in self.ordering}
        buckets: Dict[Key, List[JacobianFactor]] = {key: [] for key in self.ordering}

        for factor in linear_graph:
            if factor.keys:
                buckets[min(factor.keys, key=position.__getitem__)].append(factor)

        bayes_net = GaussianBayesNet()
        for key in self.ordering:
            conditional, separator_factor = eliminate_dense(buckets.pop(key), [key], self.dims, position)
            bayes_net.add(conditional)
            if separator_factor is not None:
                buckets[separator_factor.keys[0]].append(separator_factor)

        return bayes_net

    def solve(self, linear_graph: GaussianFactorGraph) -> VectorValues:
        self.bayes_net = self.eliminate(linear_graph)
        logger.debug(f"Sequential elimination produced {len(self.bayes_net)} conditionals")
        return self._ordered(self.bayes_net.optimize())
