"""Nonlinear least-squares optimizer over factor graphs."""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

from ..linear.gaussian_factor_graph import GaussianFactorGraph
from ..linear.linear_solver import LinearSolver
from ..models.parameters import LambdaMode, NonlinearOptimizationParameters, Verbosity
from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.ordering import Ordering
from ..optimization.values import Values, VectorValues

logger = logging.getLogger(__name__)

LAMBDA_LOWER_BOUND = 1e-10


@dataclass
class NonlinearOptimizerResult:
    """Snapshot of an optimizer after one of its convergence loops finished."""

    values: Values
    error: float
    iterations: int
    lambda_: float
    converged: bool
    termination: str
    error_history: List[float] = field(default_factory=list)


def check_convergence(
    relative_decrease: float,
    absolute_decrease: float,
    sum_error: float,
    current_error: float,
    new_error: float,
    verbosity: Verbosity = Verbosity.SILENT
) -> bool:
    """Decide whether the error change of one iteration ends the optimization.

    Args:
        relative_decrease: Threshold on (current - new) / current
        absolute_decrease: Threshold on current - new
        sum_error: Error at or below which the problem counts as solved
        current_error: Error before the iteration
        new_error: Error after the iteration
        verbosity: Log the decision at INFO instead of DEBUG when >= ERROR

    Returns:
        True if converged
    """
    level = logging.INFO if verbosity >= Verbosity.ERROR else logging.DEBUG

    if new_error <= sum_error:
        logger.log(level, f"Converged: error {new_error:.6g} <= {sum_error:.6g}")
        return True

    decrease = current_error - new_error
    if decrease < 0:
        logger.warning(
            f"Stopping nonlinear iterations because error increased from {current_error:.6g} to {new_error:.6g}"
        )
        return True

    if decrease < absolute_decrease:
        logger.log(level, f"Converged: absolute decrease {decrease:.6g} < {absolute_decrease:.6g}")
        return True

    relative = decrease / current_error
    if relative < relative_decrease:
        logger.log(level, f"Converged: relative decrease {relative:.6g} < {relative_decrease:.6g}")
        return True

    return False


class NonlinearOptimizer:
    """Repeatedly linearizes a factor graph, solves with a backend, and updates the estimate.

    The graph and the initial estimate are never modified; every accepted
    step produces a new :class:`Values`.
    """

    def __init__(
        self,
        graph: NonlinearFactorGraph,
        values: Values,
        ordering: Ordering,
        solver: LinearSolver,
        parameters: Optional[NonlinearOptimizationParameters] = None
    ):
        """Initialize optimizer.

        Args:
            graph: Factor graph to optimize
            values: Initial estimate
            ordering: Elimination ordering over exactly the keys of ``values``
            solver: Linear solver backend
            parameters: Convergence and damping settings
        """
        graph.check_keys(values)
        ordering.validate_against(values.keys())

        self.graph = graph
        self.ordering = ordering
        self.solver = solver
        self.parameters = parameters or NonlinearOptimizationParameters()

        self._values = values.copy()
        self._dims = self._values.dims()
        self._error = graph.error(self._values)
        self._lambda = self.parameters.lambda_initial
        self._iterations = 0
        self._error_history = [self._error]

    @property
    def values(self) -> Values:
        return self._values

    @property
    def error(self) -> float:
        return self._error

    @property
    def lambda_(self) -> float:
        return self._lambda

    @property
    def iterations(self) -> int:
        return self._iterations

    def _log(self, verbosity: Verbosity, message: str) -> None:
        level = logging.INFO if self.parameters.verbosity >= verbosity else logging.DEBUG
        logger.log(level, message)

    def _result(self, converged: bool, termination: str) -> NonlinearOptimizerResult:
        return NonlinearOptimizerResult(
            values=self._values,
            error=self._error,
            iterations=self._iterations,
            lambda_=self._lambda,
            converged=converged,
            termination=termination,
            error_history=list(self._error_history),
        )

    def _accept(self, values: Values, error: float) -> None:
        self._values = values
        self._error = error
        self._error_history.append(error)

    def linearize(self) -> GaussianFactorGraph:
        """Linearize the graph at the current estimate."""
        linear = self.graph.linearize(self._values)
        if self.parameters.verbosity >= Verbosity.LINEAR:
            self._log(Verbosity.LINEAR, f"Linearized graph: {len(linear)} factors")
        return linear

    def iterate(self) -> VectorValues:
        """Take one undamped Gauss-Newton step."""
        delta = self.solver.solve(self.linearize())
        self._log(Verbosity.DELTA, f"delta norm = {delta.norm():.6g}")

        new_values = self._values.retract(delta)
        new_error = self.graph.error(new_values)
        self._iterations += 1
        self._accept(new_values, new_error)
        self._log(Verbosity.ERROR, f"iteration {self._iterations}: error = {new_error:.6g}")
        if self.parameters.verbosity >= Verbosity.VALUES:
            self._log(Verbosity.VALUES, f"values = {new_values}")
        return delta

    def gauss_newton(self) -> NonlinearOptimizerResult:
        """Run Gauss-Newton until convergence or the iteration cap."""
        params = self.parameters
        self._log(Verbosity.ERROR, f"Gauss-Newton: initial error = {self._error:.6g}")

        if self._error <= params.sum_error:
            return self._result(True, "sum_error")

        for _ in range(params.max_iterations):
            current_error = self._error
            self.iterate()
            if check_convergence(
                params.relative_decrease,
                params.absolute_decrease,
                params.sum_error,
                current_error,
                self._error,
                params.verbosity
            ):
                return self._result(True, "converged")

        return self._result(False, "max_iterations")

    def try_lambda(self, linear: GaussianFactorGraph) -> bool:
        """Search for a damping that lowers the error, starting from the current lambda.

        Returns:
            True if a step was accepted, False once lambda passed its upper bound
        """
        params = self.parameters

        while True:
            self._log(Verbosity.TRYLAMBDA, f"trying lambda = {self._lambda:.6g}")
            damped = linear.damped(self._lambda, self._dims)
            if params.verbosity >= Verbosity.DAMPED:
                self._log(Verbosity.DAMPED, f"Damped graph: {len(damped)} factors")

            delta = self.solver.solve(damped)
            if params.verbosity >= Verbosity.TRYDELTA:
                self._log(Verbosity.TRYDELTA, f"candidate delta norm = {delta.norm():.6g}")

            new_values = self._values.retract(delta)
            new_error = self.graph.error(new_values)
            if params.verbosity >= Verbosity.TRYCONFIG:
                self._log(Verbosity.TRYCONFIG, f"candidate values = {new_values}")
            self._log(Verbosity.TRYLAMBDA, f"candidate error = {new_error:.6g}")

            if np.isfinite(new_error) and new_error <= self._error:
                self._accept(new_values, new_error)
                if params.lambda_mode != LambdaMode.CAUTIOUS:
                    self._lambda /= params.lambda_factor
                    if params.lambda_mode == LambdaMode.BOUNDED:
                        self._lambda = max(self._lambda, LAMBDA_LOWER_BOUND)
                self._log(Verbosity.LAMBDA, f"accepted step, lambda = {self._lambda:.6g}")
                return True

            self._lambda *= params.lambda_factor
            self._log(Verbosity.LAMBDA, f"rejected step, lambda = {self._lambda:.6g}")
            if self._lambda > params.lambda_upper_bound:
                self._log(
                    Verbosity.ERROR,
                    f"lambda exceeded {params.lambda_upper_bound:.6g} without decreasing the error"
                )
                return False

    def levenberg_marquardt(self) -> NonlinearOptimizerResult:
        """Run Levenberg-Marquardt until convergence, the iteration cap, or damping exhaustion."""
        params = self.parameters
        self._log(
            Verbosity.ERROR,
            f"Levenberg-Marquardt: initial error = {self._error:.6g}, lambda = {self._lambda:.6g}"
        )

        if self._error <= params.sum_error:
            return self._result(True, "sum_error")

        for _ in range(params.max_iterations):
            current_error = self._error
            accepted = self.try_lambda(self.linearize())
            self._iterations += 1
            if not accepted:
                return self._result(False, "lambda_upper_bound")

            self._log(Verbosity.ERROR, f"iteration {self._iterations}: error = {self._error:.6g}")
            if check_convergence(
                params.relative_decrease,
                params.absolute_decrease,
                params.sum_error,
                current_error,
                self._error,
                params.verbosity
            ):
                return self._result(True, "converged")

        return self._result(False, "max_iterations")
