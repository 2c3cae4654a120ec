"""Common interface of the linear solver backends."""

from abc import ABC, abstractmethod

from ..optimization.ordering import Ordering
from ..optimization.values import Values, VectorValues
from .gaussian_factor_graph import GaussianFactorGraph


class LinearSolver(ABC):
    """Resolves one linearized step of a nonlinear problem.

    A backend is built once per optimization run from the nonlinear graph,
    the initial estimate and an elimination ordering, then asked to solve the
    Gaussian factor graph produced at every linearization point.
    """

    def __init__(self, graph, values: Values, ordering: Ordering):
        ordering.validate_against(values.keys())
        self._ordering = ordering
        self.dims = values.dims()

    @property
    def ordering(self) -> Ordering:
        return self._ordering

    @abstractmethod
    def solve(self, linear_graph: GaussianFactorGraph) -> VectorValues:
        """Least-squares solution of ``linear_graph``, one block per ordered variable."""
        pass

    def _ordered(self, solution: VectorValues) -> VectorValues:
        return VectorValues({key: solution[key] for key in self._ordering})
