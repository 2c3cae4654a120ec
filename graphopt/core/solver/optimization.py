"""Easy interfaces for running a nonlinear optimization end to end.

Each entry point picks a linear solver backend, computes or obtains an
elimination ordering, builds a :class:`NonlinearOptimizer`, runs the chosen
convergence loop and returns the refined estimate.

Which backends the umbrella :func:`optimize` routes to is recorded in
``SOLVER_SUPPORT``. The subgraph-preconditioned backend is refused there
(it does not yet handle pose constraints well) although
:func:`optimize_spcg` remains available for callers who want it anyway.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from ..exceptions import InvalidConfigurationError, SolverNotSupportedError
from ..linear.multifrontal import MultifrontalSolver
from ..linear.sequential import SequentialSolver
from ..linear.subgraph import SubgraphSolver
from ..models.parameters import (
    LinearSolverType,
    NonlinearOptimizationMethod,
    NonlinearOptimizationParameters,
)
from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.ordering import compute_ordering
from ..optimization.values import Values
from .nonlinear_optimizer import NonlinearOptimizer, NonlinearOptimizerResult

logger = logging.getLogger(__name__)

MethodLike = Union[NonlinearOptimizationMethod, str]
SolverLike = Union[LinearSolverType, str]

_METHOD_RUNNERS = {
    NonlinearOptimizationMethod.GAUSS_NEWTON: "gauss_newton",
    NonlinearOptimizationMethod.LEVENBERG_MARQUARDT: "levenberg_marquardt",
}


def _coerce_method(method: MethodLike) -> NonlinearOptimizationMethod:
    if isinstance(method, bool):
        raise InvalidConfigurationError(
            "Nonlinear method must be a NonlinearOptimizationMethod, not a boolean flag"
        )
    try:
        return NonlinearOptimizationMethod(method)
    except ValueError:
        raise InvalidConfigurationError(f"Unknown nonlinear optimization method: {method!r}") from None


def _coerce_solver(solver: SolverLike) -> LinearSolverType:
    if isinstance(solver, bool):
        raise InvalidConfigurationError(f"Unknown linear solver: {solver!r}")
    try:
        return LinearSolverType(solver)
    except ValueError:
        raise InvalidConfigurationError(f"optimize: undefined solver {solver!r}") from None


def _run(optimizer: NonlinearOptimizer, method: NonlinearOptimizationMethod) -> NonlinearOptimizerResult:
    return getattr(optimizer, _METHOD_RUNNERS[method])()


def _optimize_with_elimination(
    solver_class: Callable,
    solver_type: LinearSolverType,
    graph: NonlinearFactorGraph,
    initial_estimate: Values,
    parameters: Optional[NonlinearOptimizationParameters],
    method: MethodLike
) -> Values:
    method = _coerce_method(method)
    parameters = parameters or NonlinearOptimizationParameters()

    logger.info(
        f"Optimizing {len(graph)} factors over {len(initial_estimate)} variables "
        f"with {solver_type.value} elimination and {method.value}"
    )

    # Fill-reducing ordering over the variables of the estimate
    ordering = compute_ordering(graph, initial_estimate)

    backend = solver_class(graph, initial_estimate, ordering)
    optimizer = NonlinearOptimizer(graph, initial_estimate, ordering, backend, parameters)
    result = _run(optimizer, method)

    logger.info(
        f"Finished after {result.iterations} iterations ({result.termination}), "
        f"final error = {result.error:.6g}"
    )
    return result.values


def optimize_sequential(
    graph: NonlinearFactorGraph,
    initial_estimate: Values,
    parameters: Optional[NonlinearOptimizationParameters],
    method: MethodLike
) -> Values:
    """Optimize with a sequential elimination solver.

    Args:
        graph: Factor graph to optimize
        initial_estimate: Starting point, left unchanged
        parameters: Convergence settings (None for defaults)
        method: Gauss-Newton or Levenberg-Marquardt

    Returns:
        Refined estimate over the same variables as ``initial_estimate``
    """
    return _optimize_with_elimination(
        SequentialSolver, LinearSolverType.SEQUENTIAL, graph, initial_estimate, parameters, method
    )


def optimize_multifrontal(
    graph: NonlinearFactorGraph,
    initial_estimate: Values,
    parameters: Optional[NonlinearOptimizationParameters],
    method: MethodLike
) -> Values:
    """Optimize with a multifrontal elimination solver.

    Same contract as :func:`optimize_sequential`.
    """
    return _optimize_with_elimination(
        MultifrontalSolver, LinearSolverType.MULTIFRONTAL, graph, initial_estimate, parameters, method
    )


def optimize_spcg(
    graph: NonlinearFactorGraph,
    initial_estimate: Values,
    parameters: Optional[NonlinearOptimizationParameters] = None,
    method: MethodLike = NonlinearOptimizationMethod.LEVENBERG_MARQUARDT
) -> Values:
    """Optimize with the subgraph-preconditioned conjugate gradient solver.

    The backend computes its own ordering from the graph and estimate; the
    iterative stopping criteria come from ``parameters.iterative``.
    """
    method = _coerce_method(method)
    parameters = parameters or NonlinearOptimizationParameters()

    logger.info(
        f"Optimizing {len(graph)} factors over {len(initial_estimate)} variables "
        f"with subgraph-preconditioned CG and {method.value}"
    )

    backend = SubgraphSolver(graph, initial_estimate, parameters.iterative)
    optimizer = NonlinearOptimizer(graph, initial_estimate, backend.ordering, backend, parameters)
    result = _run(optimizer, method)

    logger.info(
        f"Finished after {result.iterations} iterations ({result.termination}), "
        f"final error = {result.error:.6g}"
    )
    return result.values


@dataclass(frozen=True)
class SolverSupport:
    """Whether :func:`optimize` routes to a solver, and how."""

    entry_point: Optional[Callable[..., Values]]
    unsupported_reason: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.unsupported_reason is None


SOLVER_SUPPORT: Dict[LinearSolverType, SolverSupport] = {
    LinearSolverType.SEQUENTIAL: SolverSupport(optimize_sequential),
    LinearSolverType.MULTIFRONTAL: SolverSupport(optimize_multifrontal),
    LinearSolverType.SPCG: SolverSupport(
        optimize_spcg,
        unsupported_reason="the subgraph preconditioner does not yet handle the specific pose constraint",
    ),
}


def optimize(
    graph: NonlinearFactorGraph,
    initial_estimate: Values,
    parameters: Optional[NonlinearOptimizationParameters],
    solver: SolverLike,
    method: MethodLike
) -> Values:
    """Optimize a factor graph with the chosen linear solver and nonlinear method.

    Args:
        graph: Factor graph to optimize
        initial_estimate: Starting point, left unchanged
        parameters: Convergence settings (None for defaults)
        solver: Linear solver kind
        method: Nonlinear method kind

    Returns:
        Refined estimate over the same variables as ``initial_estimate``

    Raises:
        InvalidConfigurationError: unknown solver or method
        SolverNotSupportedError: the solver is not routed through this facade
    """
    solver = _coerce_solver(solver)
    support = SOLVER_SUPPORT[solver]
    if not support.supported:
        raise SolverNotSupportedError(f"optimize: {solver.value} not supported yet: {support.unsupported_reason}")

    return support.entry_point(graph, initial_estimate, parameters, _coerce_method(method))
