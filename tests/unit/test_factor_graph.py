"""Tests for noise models, factors and the nonlinear factor graph."""

import numpy as np
import pytest

from graphopt.core.exceptions import MissingVariableError
from graphopt.core.math import pose2
from graphopt.core.math.jacobians import numerical_block_jacobians
from graphopt.core.optimization.factor_graph import NonlinearFactorGraph
from graphopt.core.optimization.factors import (
    BetweenFactor,
    FunctionFactor,
    Pose2BetweenFactor,
    Pose2PriorFactor,
    PriorFactor,
    RangeFactor,
)
from graphopt.core.optimization.noise import NoiseModel
from graphopt.core.optimization.values import Values


class TestNoiseModel:
    """Test Gaussian noise models."""

    def test_whiten(self):
        """Residuals are divided by their standard deviations."""
        noise = NoiseModel.diagonal([0.5, 2.0])

        np.testing.assert_allclose(noise.whiten([1.0, 1.0]), [2.0, 0.5])
        np.testing.assert_allclose(noise.whiten_matrix(np.ones((2, 3))), [[2.0] * 3, [0.5] * 3])

    def test_invalid_sigmas(self):
        """Sigmas must be positive."""
        with pytest.raises(ValueError):
            NoiseModel([1.0, 0.0])

    def test_unknown_loss(self):
        """Unknown robust losses are rejected at construction."""
        with pytest.raises(ValueError):
            NoiseModel.unit(2).robust("tukey")

    def test_loss(self):
        """Quadratic cost without a robust loss, reweighted with one."""
        whitened = np.array([3.0, 4.0])

        rho, weight = NoiseModel.unit(2).loss(whitened)
        assert rho == pytest.approx(12.5)
        assert weight == pytest.approx(1.0)

        rho, weight = NoiseModel.unit(2).robust("huber", delta=1.0).loss(whitened)
        assert rho == pytest.approx(4.5)
        assert weight == pytest.approx(0.2)


class TestFactors:
    """Test concrete factor types."""

    def test_prior_factor(self):
        """Prior residual is the difference to the prior."""
        factor = PriorFactor("x", [1.0, 2.0], NoiseModel.isotropic(2, 0.5))
        variables = {"x": np.array([2.0, 2.0])}

        np.testing.assert_allclose(factor.unwhitened_error(variables), [1.0, 0.0])
        np.testing.assert_allclose(factor.whitened_error(variables), [2.0, 0.0])
        assert factor.error(variables) == pytest.approx(2.0)

    def test_prior_dimension_mismatch(self):
        """Prior size must match the noise model."""
        with pytest.raises(ValueError):
            PriorFactor("x", [1.0, 2.0], NoiseModel.unit(3))

    def test_keys_must_be_distinct(self):
        """A factor cannot reference the same variable twice."""
        with pytest.raises(ValueError):
            BetweenFactor("x", "x", [1.0], NoiseModel.unit(1))

    def test_between_factor(self):
        """Between residual is (x2 - x1) - z."""
        factor = BetweenFactor("a", "b", [1.0], NoiseModel.unit(1))
        variables = {"a": np.array([1.0]), "b": np.array([3.0])}

        np.testing.assert_allclose(factor.unwhitened_error(variables), [1.0])

    def test_range_factor_jacobian(self):
        """Analytic range Jacobian matches central differences."""
        factor = RangeFactor("a", "b", 2.0)
        variables = {"a": np.array([0.5, -1.0]), "b": np.array([2.0, 1.5])}

        analytic = factor.compute_jacobian(variables)
        numeric = numerical_block_jacobians(factor.unwhitened_error, variables, factor.keys)

        for key in factor.keys:
            np.testing.assert_allclose(analytic[key], numeric[key], atol=1e-6)

    def test_range_factor_requires_scalar_noise(self):
        """Range factors measure a single distance."""
        with pytest.raises(ValueError):
            RangeFactor("a", "b", 1.0, NoiseModel.unit(2))

    def test_pose2_between_zero_at_truth(self):
        """Pose2 odometry residual vanishes at the true relative pose."""
        a = np.array([1.0, 2.0, 3.0])
        b = np.array([-1.0, 0.5, -2.9])
        factor = Pose2BetweenFactor("a", "b", pose2.between(a, b))

        np.testing.assert_allclose(factor.unwhitened_error({"a": a, "b": b}), np.zeros(3), atol=1e-12)

    def test_pose2_prior_wraps_heading(self):
        """Heading error of a pose prior is wrapped."""
        factor = Pose2PriorFactor("x", [0.0, 0.0, np.pi - 0.05])
        residual = factor.unwhitened_error({"x": np.array([0.0, 0.0, -np.pi + 0.05])})

        np.testing.assert_allclose(residual, [0.0, 0.0, 0.1], atol=1e-12)

    def test_function_factor_numerical_jacobian(self):
        """Function factors fall back to numerical Jacobians."""
        factor = FunctionFactor(
            ["x", "y"],
            lambda x, y: np.array([x[0] * y[0] - 6.0]),
            NoiseModel.unit(1)
        )
        jacobians = factor.compute_jacobian({"x": np.array([2.0]), "y": np.array([3.0])})

        np.testing.assert_allclose(jacobians["x"], [[3.0]], atol=1e-6)
        np.testing.assert_allclose(jacobians["y"], [[2.0]], atol=1e-6)

    def test_linearize_whitens(self):
        """Linearization produces whitened blocks and b = -whitened residual."""
        factor = BetweenFactor("a", "b", [1.0], NoiseModel.isotropic(1, 0.5))
        linear = factor.linearize({"a": np.array([0.0]), "b": np.array([2.0])})

        np.testing.assert_allclose(linear.blocks["a"], [[-2.0]])
        np.testing.assert_allclose(linear.blocks["b"], [[2.0]])
        np.testing.assert_allclose(linear.b, [-2.0])

    def test_linearize_robust_scaling(self):
        """Robust factors are scaled by the square root of their IRLS weight."""
        noise = NoiseModel.unit(1).robust("huber", delta=1.0)
        factor = PriorFactor("x", [0.0], noise)
        linear = factor.linearize({"x": np.array([4.0])})

        scale = np.sqrt(0.25)
        np.testing.assert_allclose(linear.blocks["x"], [[scale]])
        np.testing.assert_allclose(linear.b, [-4.0 * scale])


class TestNonlinearFactorGraph:
    """Test the nonlinear factor graph."""

    def make_chain(self):
        graph = NonlinearFactorGraph()
        graph.add(PriorFactor("a", [0.0], NoiseModel.unit(1)))
        graph.add(BetweenFactor("a", "b", [1.0], NoiseModel.unit(1)))
        graph.add(BetweenFactor("b", "c", [1.0], NoiseModel.unit(1)))
        return graph

    def test_add_assigns_ids(self):
        """Factors without an id get one from their type and position."""
        graph = self.make_chain()

        assert [factor.factor_id for factor in graph] == ["priorfactor_0", "betweenfactor_1", "betweenfactor_2"]

    def test_add_duplicate_id(self):
        """Factor ids must be unique."""
        graph = NonlinearFactorGraph()
        graph.add(PriorFactor("a", [0.0], NoiseModel.unit(1), factor_id="p"))

        with pytest.raises(ValueError):
            graph.add(PriorFactor("b", [0.0], NoiseModel.unit(1), factor_id="p"))

    def test_keys(self):
        """Keys in order of first appearance."""
        assert self.make_chain().keys() == ["a", "b", "c"]

    def test_error(self):
        """Total error is the sum of factor errors."""
        graph = self.make_chain()
        values = Values({"a": [1.0], "b": [1.0], "c": [3.0]})

        # residuals: 1, -1, 1
        assert graph.error(values) == pytest.approx(1.5)
        np.testing.assert_allclose(graph.residuals(values), [1.0, -1.0, 1.0])

    def test_missing_variable(self):
        """A factor referencing a missing variable is reported."""
        graph = self.make_chain()

        with pytest.raises(MissingVariableError):
            graph.error(Values({"a": [0.0], "b": [1.0]}))
        with pytest.raises(KeyError):
            graph.linearize(Values({"a": [0.0]}))

    def test_linearize(self):
        """One Jacobian factor per nonlinear factor."""
        graph = self.make_chain()
        linear = graph.linearize(Values({"a": [0.0], "b": [1.0], "c": [2.0]}))

        assert len(linear) == 3
        A, b = linear.sparse_jacobian(["a", "b", "c"], {"a": 1, "b": 1, "c": 1})
        np.testing.assert_allclose(A.toarray(), [[1, 0, 0], [-1, 1, 0], [0, -1, 1]])
        np.testing.assert_allclose(b, np.zeros(3))

    def test_adjacency(self):
        """Variables are adjacent when they share a factor."""
        adjacency = self.make_chain().adjacency()

        assert adjacency == {"a": {"b"}, "b": {"a", "c"}, "c": {"b"}}

    def test_summary(self):
        """Summary counts factors by type."""
        summary = self.make_chain().summary()

        assert summary["variables"] == 3
        assert summary["factors"]["total"] == 3
        assert summary["factors"]["by_type"] == {"PriorFactor": 1, "BetweenFactor": 2}
