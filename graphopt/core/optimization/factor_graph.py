"""Nonlinear factor graph representation."""

import numpy as np
from typing import Any, Dict, Hashable, Iterator, List, Optional, Set
from abc import ABC, abstractmethod

from ..exceptions import MissingVariableError
from ..math.jacobians import numerical_block_jacobians
from .noise import NoiseModel
from .values import Values

Key = Hashable


class NonlinearFactor(ABC):
    """Abstract base class for measurement constraints between variables."""

    def __init__(self, keys: List[Key], noise_model: NoiseModel, factor_id: Optional[str] = None):
        """Initialize factor.

        Args:
            keys: Keys of the variables this factor depends on
            noise_model: Measurement noise, its dimension is the residual dimension
            factor_id: Unique identifier (assigned by the graph when omitted)
        """
        if len(set(keys)) != len(keys):
            raise ValueError(f"Factor keys must be distinct, got {keys}")
        self.keys = list(keys)
        self.noise_model = noise_model
        self.factor_id = factor_id

    @abstractmethod
    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        """Compute the raw residual h(x) - z given variable values.

        Args:
            variables: Dictionary mapping keys to their values

        Returns:
            Residual vector of size ``residual_dimension()``
        """
        pass

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        """Jacobian of the raw residual with respect to each key.

        Numerical by default; subclasses with closed forms override this.
        """
        return numerical_block_jacobians(self.unwhitened_error, variables, self.keys)

    def residual_dimension(self) -> int:
        return self.noise_model.dim

    def whitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        return self.noise_model.whiten(self.unwhitened_error(variables))

    def error(self, variables: Dict[Key, np.ndarray]) -> float:
        """Cost contributed by this factor: 0.5 * ||whitened residual||^2, or its robust version."""
        rho, _ = self.noise_model.loss(self.whitened_error(variables))
        return rho

    def linearize(self, variables: Dict[Key, np.ndarray]):
        """Whitened first-order approximation ``A * delta - b`` around ``variables``."""
        from ..linear.gaussian_factor_graph import JacobianFactor

        residual = self.whitened_error(variables)
        jacobians = self.compute_jacobian(variables)

        blocks = {}
        for key in self.keys:
            block = self.noise_model.whiten_matrix(np.atleast_2d(jacobians[key]))
            if block.shape != (len(residual), len(variables[key])):
                raise ValueError(
                    f"Factor {self.factor_id}: Jacobian for {key!r} has shape {block.shape}, "
                    f"expected {(len(residual), len(variables[key]))}"
                )
            blocks[key] = block

        b = -residual
        if self.noise_model.is_robust:
            _, weight = self.noise_model.loss(residual)
            scale = np.sqrt(weight)
            blocks = {key: scale * block for key, block in blocks.items()}
            b = scale * b

        return JacobianFactor(blocks, b)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.factor_id!r}, keys={self.keys})"


class NonlinearFactorGraph:
    """Ordered collection of nonlinear factors."""

    def __init__(self, factors: Optional[List[NonlinearFactor]] = None):
        self.factors: List[NonlinearFactor] = []
        self._factor_ids: Set[str] = set()
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: NonlinearFactor) -> None:
        """Add a factor to the graph.

        Args:
            factor: Factor to add
        """
        if factor.factor_id is None:
            factor.factor_id = f"{type(factor).__name__.lower()}_{len(self.factors)}"

        if factor.factor_id in self._factor_ids:
            raise ValueError(f"Factor {factor.factor_id} already exists")

        self._factor_ids.add(factor.factor_id)
        self.factors.append(factor)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[NonlinearFactor]:
        return iter(self.factors)

    def __getitem__(self, index: int) -> NonlinearFactor:
        return self.factors[index]

    def keys(self) -> List[Key]:
        """All keys referenced by any factor, in order of first appearance."""
        seen = {}
        for factor in self.factors:
            for key in factor.keys:
                seen.setdefault(key, None)
        return list(seen)

    def check_keys(self, values: Values) -> None:
        """Raise MissingVariableError if a factor references a key with no value."""
        for factor in self.factors:
            for key in factor.keys:
                if key not in values:
                    raise MissingVariableError(
                        f"Variable {key!r} required by factor {factor.factor_id} is not in the estimate"
                    )

    def error(self, values: Values) -> float:
        """Total cost of the graph at ``values``."""
        self.check_keys(values)
        variables = values.view()
        return float(sum(factor.error(variables) for factor in self.factors))

    def residuals(self, values: Values) -> np.ndarray:
        """Concatenated whitened residuals of all factors."""
        self.check_keys(values)
        variables = values.view()
        residuals = [factor.whitened_error(variables) for factor in self.factors]
        if not residuals:
            return np.array([])
        return np.concatenate(residuals)

    def linearize(self, values: Values):
        """Linearize every factor at ``values``.

        Returns:
            GaussianFactorGraph with one Jacobian factor per nonlinear factor
        """
        from ..linear.gaussian_factor_graph import GaussianFactorGraph

        self.check_keys(values)
        variables = values.view()
        return GaussianFactorGraph([factor.linearize(variables) for factor in self.factors])

    def adjacency(self, keys: Optional[List[Key]] = None) -> Dict[Key, Set[Key]]:
        """Variable adjacency: two keys are neighbours when a factor touches both."""
        keys = self.keys() if keys is None else keys
        neighbours: Dict[Key, Set[Key]] = {key: set() for key in keys}
        for factor in self.factors:
            for key in factor.keys:
                if key not in neighbours:
                    raise MissingVariableError(
                        f"Variable {key!r} required by factor {factor.factor_id} is not in the estimate"
                    )
                neighbours[key].update(k for k in factor.keys if k != key)
        return neighbours

    def summary(self) -> Dict[str, Any]:
        """Get summary information about the factor graph.

        Returns:
            Dictionary with graph statistics
        """
        factor_type_counts = {}
        total_residual_size = 0

        for factor in self.factors:
            factor_type = type(factor).__name__
            factor_type_counts[factor_type] = factor_type_counts.get(factor_type, 0) + 1
            total_residual_size += factor.residual_dimension()

        return {
            "variables": len(self.keys()),
            "factors": {
                "total": len(self.factors),
                "total_residuals": total_residual_size,
                "by_type": factor_type_counts
            }
        }
