"""Multifrontal elimination backend."""

import logging
from typing import Dict, Hashable, List, Optional, Set

from ..optimization.ordering import Ordering
from ..optimization.values import Values, VectorValues
from .elimination import GaussianConditional, eliminate_dense
from .gaussian_factor_graph import GaussianFactorGraph, JacobianFactor
from .linear_solver import LinearSolver

Key = Hashable

logger = logging.getLogger(__name__)


class Front:
    """A supernode of the elimination tree: variables eliminated together."""

    def __init__(self, frontal_keys: List[Key], separator: Set[Key]):
        self.frontal_keys = frontal_keys
        self.separator = separator
        self.parent: Optional["Front"] = None
        self.children: List["Front"] = []
        self.conditional: Optional[GaussianConditional] = None

    def __repr__(self) -> str:
        return f"Front(frontals={self.frontal_keys}, separator={sorted(map(repr, self.separator))})"


class BayesTree:
    """Cliques produced by multifrontal elimination, solved from the roots down."""

    def __init__(self, fronts: List[Front]):
        self.fronts = fronts
        self.roots = [front for front in fronts if front.parent is None]

    def __len__(self) -> int:
        return len(self.fronts)

    def optimize(self) -> VectorValues:
        solution = VectorValues()
        stack = list(self.roots)
        while stack:
            front = stack.pop()
            front.conditional.solve(solution)
            stack.extend(front.children)
        return solution


class MultifrontalSolver(LinearSolver):
    """Exact solver eliminating supernodal fronts of the elimination tree.

    The symbolic structure (elimination tree and fronts) depends only on the
    ordering and the factor structure, so it is computed on the first solve
    and reused while the structure stays the same.
    """

    def __init__(self, graph, values: Values, ordering: Ordering):
        super().__init__(graph, values, ordering)
        self.position = {key: ordering.index(key) for key in ordering}
        self._structure_key = None
        self._fronts: List[Front] = []
        self._front_of: Dict[Key, int] = {}
        self.bayes_tree: Optional[BayesTree] = None

    def symbolic(self, linear_graph: GaussianFactorGraph) -> List[Front]:
        """Build the supernodal elimination tree for the factor structure of ``linear_graph``."""
        adjacency: Dict[Key, Set[Key]] = {key: set() for key in self.ordering}
        for factor in linear_graph:
            for key in factor.keys:
                adjacency[key].update(k for k in factor.keys if k != key)

        separators: Dict[Key, Set[Key]] = {}
        parent: Dict[Key, Optional[Key]] = {}
        children: Dict[Key, List[Key]] = {key: [] for key in self.ordering}
        for key in self.ordering:
            separator = adjacency.pop(key)
            for neighbour in separator:
                adjacency[neighbour].discard(key)
                adjacency[neighbour].update(n for n in separator if n != neighbour)
            separators[key] = separator
            parent[key] = min(separator, key=self.position.__getitem__) if separator else None
            if parent[key] is not None:
                children[parent[key]].append(key)

        fronts: List[Front] = []
        front_of: Dict[Key, int] = {}
        for key in self.ordering:
            kids = children[key]
            if len(kids) == 1:
                child_front = fronts[front_of[kids[0]]]
                if child_front.frontal_keys[-1] == kids[0] and separators[kids[0]] == {key} | separators[key]:
                    child_front.frontal_keys.append(key)
                    child_front.separator = separators[key]
                    front_of[key] = front_of[kids[0]]
                    continue
            front_of[key] = len(fronts)
            fronts.append(Front([key], separators[key]))

        for front in fronts:
            last = front.frontal_keys[-1]
            if parent[last] is not None:
                front.parent = fronts[front_of[parent[last]]]
                front.parent.children.append(front)

        self._front_of = front_of
        return fronts

    def eliminate(self, linear_graph: GaussianFactorGraph) -> BayesTree:
        structure_key = tuple(tuple(factor.keys) for factor in linear_graph)
        if structure_key != self._structure_key:
            self._fronts = self.symbolic(linear_graph)
            self._structure_key = structure_key
            logger.debug(
                f"Multifrontal symbolic analysis: {len(self.ordering)} variables in {len(self._fronts)} fronts"
            )

        front_factors: List[List[JacobianFactor]] = [[] for _ in self._fronts]
        for factor in linear_graph:
            if factor.keys:
                first = min(factor.keys, key=self.position.__getitem__)
                front_factors[self._front_of[first]].append(factor)

        # Fronts are created in ordering order, so every child precedes its parent
        for index, front in enumerate(self._fronts):
            conditional, update = eliminate_dense(
                front_factors[index], list(front.frontal_keys), self.dims, self.position
            )
            front.conditional = conditional
            if update is not None:
                front_factors[self._front_of[update.keys[0]]].append(update)

        return BayesTree(self._fronts)

    def solve(self, linear_graph: GaussianFactorGraph) -> VectorValues:
        self.bayes_tree = self.eliminate(linear_graph)
        return self._ordered(self.bayes_tree.optimize())
