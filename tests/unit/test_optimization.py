"""Tests for the optimization entry points."""

from unittest import mock

import numpy as np
import pytest

from graphopt.core.exceptions import (
    GraphOptError,
    InvalidConfigurationError,
    SolverNotSupportedError,
)
from graphopt.core.linear.multifrontal import MultifrontalSolver
from graphopt.core.linear.sequential import SequentialSolver
from graphopt.core.linear.subgraph import SubgraphSolver
from graphopt.core.models.parameters import (
    IterativeOptimizationParameters,
    LinearSolverType,
    NonlinearOptimizationMethod,
    NonlinearOptimizationParameters,
)
from graphopt.core.optimization.factor_graph import NonlinearFactorGraph
from graphopt.core.optimization.factors import BetweenFactor, PriorFactor
from graphopt.core.optimization.noise import NoiseModel
from graphopt.core.optimization.ordering import compute_ordering
from graphopt.core.optimization.values import Values
from graphopt.core.solver import optimization
from graphopt.core.solver.nonlinear_optimizer import NonlinearOptimizer
from graphopt.core.solver.optimization import (
    SOLVER_SUPPORT,
    optimize,
    optimize_multifrontal,
    optimize_sequential,
    optimize_spcg,
)
from graphopt.core.synthetic import ProblemGenerator

SUPPORTED_SOLVERS = [LinearSolverType.SEQUENTIAL, LinearSolverType.MULTIFRONTAL]
METHODS = [NonlinearOptimizationMethod.GAUSS_NEWTON, NonlinearOptimizationMethod.LEVENBERG_MARQUARDT]


@pytest.fixture
def three_variable_problem():
    """Prior on a, odometry a -> b -> c."""
    graph = NonlinearFactorGraph()
    graph.add(PriorFactor("a", [0.0], NoiseModel.isotropic(1, 0.1)))
    graph.add(BetweenFactor("a", "b", [1.0], NoiseModel.isotropic(1, 0.1)))
    graph.add(BetweenFactor("b", "c", [1.0], NoiseModel.isotropic(1, 0.1)))
    initial = Values({"a": [0.2], "b": [0.7], "c": [2.5]})
    return graph, initial


@pytest.fixture
def pose_problem():
    graph, _, initial = ProblemGenerator(seed=5).generate_pose2_chain(8)
    return graph, initial


class TestOptimizeDispatch:
    """Test solver and method selection in optimize()."""

    @pytest.mark.parametrize("solver", SUPPORTED_SOLVERS)
    @pytest.mark.parametrize("method", METHODS)
    def test_result_has_same_variables(self, three_variable_problem, solver, method):
        """Every supported combination returns an estimate over the same keys."""
        graph, initial = three_variable_problem

        result = optimize(graph, initial, NonlinearOptimizationParameters(), solver, method)

        assert result.keys() == initial.keys()
        for key in initial.keys():
            assert result.dim(key) == initial.dim(key)
        np.testing.assert_allclose(
            [result.at(key)[0] for key in ("a", "b", "c")], [0.0, 1.0, 2.0], atol=1e-4
        )

    def test_accepts_string_kinds(self, three_variable_problem):
        """Solver and method can be given by their string values."""
        graph, initial = three_variable_problem

        result = optimize(graph, initial, None, "multifrontal", "gauss_newton")

        np.testing.assert_allclose(result.at("c"), [2.0], atol=1e-8)

    @pytest.mark.parametrize("method", METHODS + ["not_a_method"])
    def test_spcg_refused(self, three_variable_problem, method):
        """The subgraph solver is refused before any work is done."""
        graph, initial = three_variable_problem

        with mock.patch.object(optimization, "compute_ordering") as ordering, \
                mock.patch.object(optimization, "SubgraphSolver") as subgraph, \
                mock.patch.object(optimization, "NonlinearOptimizer") as optimizer:
            with pytest.raises(SolverNotSupportedError) as excinfo:
                optimize(graph, initial, None, LinearSolverType.SPCG, method)

        ordering.assert_not_called()
        subgraph.assert_not_called()
        optimizer.assert_not_called()
        assert "spcg" in str(excinfo.value)
        assert isinstance(excinfo.value, NotImplementedError)
        assert isinstance(excinfo.value, GraphOptError)

    @pytest.mark.parametrize("solver", ["cholesky", 42, None, True])
    def test_unknown_solver(self, three_variable_problem, solver):
        """Unrecognized solver kinds are a configuration error."""
        graph, initial = three_variable_problem

        with pytest.raises(InvalidConfigurationError) as excinfo:
            optimize(graph, initial, None, solver, NonlinearOptimizationMethod.GAUSS_NEWTON)

        assert isinstance(excinfo.value, ValueError)

    @pytest.mark.parametrize("method", ["dogleg", True, False, 0])
    def test_unknown_method(self, three_variable_problem, method):
        """Unrecognized or boolean method kinds are a configuration error."""
        graph, initial = three_variable_problem

        with pytest.raises(InvalidConfigurationError):
            optimize(graph, initial, None, LinearSolverType.SEQUENTIAL, method)
        with pytest.raises(InvalidConfigurationError):
            optimize_sequential(graph, initial, None, method)
        with pytest.raises(InvalidConfigurationError):
            optimize_multifrontal(graph, initial, None, method)
        with pytest.raises(InvalidConfigurationError):
            optimize_spcg(graph, initial, None, method)

    @pytest.mark.parametrize("flag", [True, False])
    def test_spcg_boolean_method_builds_nothing(self, three_variable_problem, flag):
        """optimize_spcg rejects a boolean method before building the backend."""
        graph, initial = three_variable_problem

        with mock.patch.object(optimization, "SubgraphSolver") as subgraph, \
                mock.patch.object(optimization, "NonlinearOptimizer") as optimizer:
            with pytest.raises(InvalidConfigurationError):
                optimize_spcg(graph, initial, None, flag)

        subgraph.assert_not_called()
        optimizer.assert_not_called()

    def test_support_table(self):
        """Every solver kind has an entry; only the iterative one is refused."""
        assert set(SOLVER_SUPPORT) == set(LinearSolverType)
        assert SOLVER_SUPPORT[LinearSolverType.SEQUENTIAL].supported
        assert SOLVER_SUPPORT[LinearSolverType.MULTIFRONTAL].supported
        assert not SOLVER_SUPPORT[LinearSolverType.SPCG].supported
        assert SOLVER_SUPPORT[LinearSolverType.SPCG].entry_point is optimize_spcg


class TestOptimizeScenario:
    """Observe which components a single optimize() call builds and runs."""

    def test_sequential_gauss_newton_call_pattern(self, three_variable_problem):
        """One ordering, one sequential backend, one Gauss-Newton loop, no LM."""
        graph, initial = three_variable_problem

        with mock.patch.object(optimization, "compute_ordering", wraps=compute_ordering) as ordering, \
                mock.patch.object(optimization, "SequentialSolver", wraps=SequentialSolver) as sequential, \
                mock.patch.object(optimization, "MultifrontalSolver", wraps=MultifrontalSolver) as multifrontal, \
                mock.patch.object(
                    NonlinearOptimizer, "gauss_newton", autospec=True, side_effect=NonlinearOptimizer.gauss_newton
                ) as gauss_newton, \
                mock.patch.object(
                    NonlinearOptimizer, "levenberg_marquardt", autospec=True,
                    side_effect=NonlinearOptimizer.levenberg_marquardt
                ) as levenberg_marquardt:
            result = optimize(
                graph,
                initial,
                NonlinearOptimizationParameters(),
                LinearSolverType.SEQUENTIAL,
                NonlinearOptimizationMethod.GAUSS_NEWTON
            )

        ordering.assert_called_once()
        assert ordering.call_args.args[1] is initial
        sequential.assert_called_once()
        multifrontal.assert_not_called()
        gauss_newton.assert_called_once()
        levenberg_marquardt.assert_not_called()

        assert sorted(result.keys()) == ["a", "b", "c"]
        np.testing.assert_allclose(result.at("c"), [2.0], atol=1e-8)

    def test_multifrontal_levenberg_marquardt_call_pattern(self, three_variable_problem):
        """The multifrontal route runs Levenberg-Marquardt and builds no sequential backend."""
        graph, initial = three_variable_problem

        with mock.patch.object(optimization, "SequentialSolver", wraps=SequentialSolver) as sequential, \
                mock.patch.object(optimization, "MultifrontalSolver", wraps=MultifrontalSolver) as multifrontal, \
                mock.patch.object(
                    NonlinearOptimizer, "gauss_newton", autospec=True, side_effect=NonlinearOptimizer.gauss_newton
                ) as gauss_newton:
            optimize(graph, initial, None, LinearSolverType.MULTIFRONTAL, NonlinearOptimizationMethod.LEVENBERG_MARQUARDT)

        multifrontal.assert_called_once()
        sequential.assert_not_called()
        gauss_newton.assert_not_called()


class TestOptimizeResults:
    """Test properties of the refined estimates."""

    @pytest.mark.parametrize("method", METHODS)
    def test_sequential_matches_multifrontal(self, pose_problem, method):
        """Both exact backends reach the same estimate."""
        graph, initial = pose_problem
        params = NonlinearOptimizationParameters()

        sequential = optimize_sequential(graph, initial, params, method)
        multifrontal = optimize_multifrontal(graph, initial, params, method)

        assert sequential.equals(multifrontal, tol=1e-6)
        assert graph.error(sequential) < graph.error(initial)

    @pytest.mark.parametrize("solver", SUPPORTED_SOLVERS)
    @pytest.mark.parametrize("method", METHODS)
    def test_inputs_not_modified(self, pose_problem, solver, method):
        """The graph and the initial estimate are left untouched."""
        graph, initial = pose_problem
        before = initial.copy()
        n_factors = len(graph)

        result = optimize(graph, initial, None, solver, method)

        assert initial.equals(before, tol=0.0)
        assert len(graph) == n_factors
        assert result is not initial

    @pytest.mark.parametrize("solver", SUPPORTED_SOLVERS)
    @pytest.mark.parametrize("method", METHODS)
    def test_already_optimal(self, solver, method):
        """An estimate satisfying every factor comes back unchanged."""
        graph = NonlinearFactorGraph()
        graph.add(PriorFactor("a", [1.0, 2.0], NoiseModel.unit(2)))
        graph.add(BetweenFactor("a", "b", [0.5, -1.0], NoiseModel.unit(2)))
        graph.add(BetweenFactor("b", "c", [2.0, 2.0], NoiseModel.unit(2)))
        initial = Values({"a": [1.0, 2.0], "b": [1.5, 1.0], "c": [3.5, 3.0]})

        result = optimize(graph, initial, None, solver, method)

        assert result.equals(initial, tol=1e-12)

    def test_spcg_direct_call(self, pose_problem):
        """optimize_spcg stays usable on its own."""
        graph, initial = pose_problem
        params = NonlinearOptimizationParameters(
            iterative=IterativeOptimizationParameters(max_iterations=500, epsilon_rel=1e-10, epsilon_abs=0.0)
        )

        iterative = optimize_spcg(graph, initial, params)
        exact = optimize_sequential(graph, initial, params, NonlinearOptimizationMethod.LEVENBERG_MARQUARDT)

        assert iterative.keys() == initial.keys()
        assert iterative.equals(exact, tol=1e-3)

    def test_spcg_uses_caller_iterative_parameters(self, pose_problem):
        """The caller's CG stopping criteria reach the subgraph backend."""
        graph, initial = pose_problem
        iterative = IterativeOptimizationParameters(max_iterations=250, spanning_tree="breadth_first")
        params = NonlinearOptimizationParameters(iterative=iterative)

        with mock.patch.object(optimization, "SubgraphSolver", wraps=SubgraphSolver) as subgraph:
            optimize_spcg(graph, initial, params)

        subgraph.assert_called_once()
        assert subgraph.call_args.args[2] is iterative

    def test_decrease_thresholds_respected(self, pose_problem):
        """Loose thresholds stop earlier than tight ones."""
        graph, initial = pose_problem
        loose = NonlinearOptimizationParameters.new_decrease_thresholds(1e3, 0.9)
        tight = NonlinearOptimizationParameters.new_decrease_thresholds(1e-10, 1e-10)

        loose_result = optimize_sequential(graph, initial, loose, NonlinearOptimizationMethod.GAUSS_NEWTON)
        tight_result = optimize_sequential(graph, initial, tight, NonlinearOptimizationMethod.GAUSS_NEWTON)

        assert graph.error(tight_result) <= graph.error(loose_result) + 1e-9
