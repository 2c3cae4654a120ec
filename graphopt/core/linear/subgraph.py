"""Subgraph-preconditioned conjugate gradient backend."""

import logging
import numpy as np
from typing import Dict, Hashable, List, Optional, Tuple
from scipy.sparse import csr_matrix, diags
from scipy.sparse.csgraph import breadth_first_tree, minimum_spanning_tree
from scipy.sparse.linalg import LinearOperator, cg, splu

from ..models.parameters import IterativeOptimizationParameters
from ..optimization.ordering import compute_ordering
from ..optimization.values import Values, VectorValues
from .gaussian_factor_graph import GaussianFactorGraph
from .linear_solver import LinearSolver

Key = Hashable

logger = logging.getLogger(__name__)


class SubgraphSolver(LinearSolver):
    """Approximate solver: conjugate gradient on the normal equations,
    preconditioned by a spanning subgraph of the problem.

    The subgraph holds every unary factor plus one factor per edge of a
    spanning forest of the variable graph. Its normal matrix, with the
    diagonal of the remaining factors added so that it stays positive
    definite, is factorized once per solve and applied as the preconditioner.

    Unlike the elimination backends, this solver computes its own ordering.
    """

    def __init__(
        self,
        graph,
        values: Values,
        parameters: Optional[IterativeOptimizationParameters] = None
    ):
        super().__init__(graph, values, compute_ordering(graph, values))
        self.parameters = parameters or IterativeOptimizationParameters()
        self.index = {key: i for i, key in enumerate(self.ordering)}
        self._structure_key = None
        self._subgraph_mask: List[bool] = []
        self.last_iterations = 0

    def split(self, linear_graph: GaussianFactorGraph) -> List[bool]:
        """Mark the factors that belong to the spanning subgraph."""
        n = len(self.ordering)
        in_subgraph = [False] * len(linear_graph)
        edges: Dict[Tuple[int, int], Tuple[float, int]] = {}

        for i, factor in enumerate(linear_graph):
            keys = factor.keys
            if len(keys) == 1:
                in_subgraph[i] = True
            elif len(keys) == 2:
                a, b = sorted((self.index[keys[0]], self.index[keys[1]]))
                strength = sum(float(np.sum(block**2)) for block in factor.blocks.values())
                weight = 1.0 / (1.0 + strength)
                if (a, b) not in edges or weight < edges[(a, b)][0]:
                    edges[(a, b)] = (weight, i)

        if not edges:
            return in_subgraph

        rows = [a for a, _ in edges]
        cols = [b for _, b in edges]
        weights = [w for w, _ in edges.values()]
        edge_graph = csr_matrix((weights, (rows, cols)), shape=(n, n))

        if self.parameters.spanning_tree == "minimum":
            tree = minimum_spanning_tree(edge_graph)
        else:
            tree = self._breadth_first_forest(edge_graph)

        tree = tree.tocoo()
        for a, b in zip(tree.row, tree.col):
            a, b = sorted((int(a), int(b)))
            in_subgraph[edges[(a, b)][1]] = True

        return in_subgraph

    @staticmethod
    def _breadth_first_forest(edge_graph: csr_matrix) -> csr_matrix:
        n = edge_graph.shape[0]
        symmetric = (edge_graph + edge_graph.T).tocsr()
        visited = np.zeros(n, dtype=bool)
        forest = csr_matrix((n, n))
        for start in range(n):
            if visited[start]:
                continue
            tree = breadth_first_tree(symmetric, start, directed=False)
            forest = forest + tree
            visited[start] = True
            visited[np.unique(tree.tocoo().col)] = True
        return forest

    def solve(self, linear_graph: GaussianFactorGraph) -> VectorValues:
        structure_key = tuple(tuple(factor.keys) for factor in linear_graph)
        if structure_key != self._structure_key:
            self._subgraph_mask = self.split(linear_graph)
            self._structure_key = structure_key
            logger.debug(
                f"Spanning subgraph uses {sum(self._subgraph_mask)} of {len(linear_graph)} factors"
            )

        keys = self.ordering.keys()
        subgraph = GaussianFactorGraph(
            [factor for factor, keep in zip(linear_graph, self._subgraph_mask) if keep]
        )
        remainder = GaussianFactorGraph(
            [factor for factor, keep in zip(linear_graph, self._subgraph_mask) if not keep]
        )

        H, g = linear_graph.hessian(keys, self.dims)
        H_sub, _ = subgraph.hessian(keys, self.dims)
        H_rest, _ = remainder.hessian(keys, self.dims)
        preconditioner = (H_sub + diags(H_rest.diagonal())).tocsc()

        lu = splu(preconditioner)
        M = LinearOperator(H.shape, matvec=lu.solve)

        iterations = 0

        def count(_):
            nonlocal iterations
            iterations += 1

        x, info = cg(
            H,
            g,
            rtol=self.parameters.epsilon_rel,
            atol=self.parameters.epsilon_abs,
            maxiter=self.parameters.max_iterations,
            M=M,
            callback=count
        )
        self.last_iterations = iterations

        if info > 0:
            logger.warning(f"Conjugate gradient stopped after {info} iterations without reaching tolerance")
        else:
            logger.debug(f"Conjugate gradient converged in {iterations} iterations")

        return VectorValues.from_vector(x, keys, self.dims)
