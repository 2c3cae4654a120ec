"""Concrete factor types."""

import numpy as np
from typing import Callable, Dict, Hashable, List, Optional

from .factor_graph import NonlinearFactor
from .noise import NoiseModel
from ..math import pose2

Key = Hashable


class PriorFactor(NonlinearFactor):
    """Anchors a vector variable to a known value."""

    def __init__(self, key: Key, prior, noise_model: NoiseModel, factor_id: Optional[str] = None):
        super().__init__([key], noise_model, factor_id)
        self.prior = np.atleast_1d(np.asarray(prior, dtype=float))
        if len(self.prior) != noise_model.dim:
            raise ValueError(f"Prior size {len(self.prior)} != noise model dimension {noise_model.dim}")

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        return variables[self.keys[0]] - self.prior

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        return {self.keys[0]: np.eye(len(self.prior))}


class BetweenFactor(NonlinearFactor):
    """Relative measurement between two vector variables: x2 - x1 = z."""

    def __init__(self, key1: Key, key2: Key, measured, noise_model: NoiseModel, factor_id: Optional[str] = None):
        super().__init__([key1, key2], noise_model, factor_id)
        self.measured = np.atleast_1d(np.asarray(measured, dtype=float))
        if len(self.measured) != noise_model.dim:
            raise ValueError(f"Measurement size {len(self.measured)} != noise model dimension {noise_model.dim}")

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        key1, key2 = self.keys
        return (variables[key2] - variables[key1]) - self.measured

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        identity = np.eye(len(self.measured))
        key1, key2 = self.keys
        return {key1: -identity, key2: identity}


class RangeFactor(NonlinearFactor):
    """Measured Euclidean distance between two point variables."""

    def __init__(
        self,
        key1: Key,
        key2: Key,
        measured: float,
        noise_model: Optional[NoiseModel] = None,
        factor_id: Optional[str] = None
    ):
        noise_model = noise_model or NoiseModel.unit(1)
        if noise_model.dim != 1:
            raise ValueError("RangeFactor requires a 1-dimensional noise model")
        super().__init__([key1, key2], noise_model, factor_id)
        self.measured = float(measured)

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        key1, key2 = self.keys
        return np.array([np.linalg.norm(variables[key2] - variables[key1]) - self.measured])

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        key1, key2 = self.keys
        diff = variables[key2] - variables[key1]
        distance = np.linalg.norm(diff)
        if distance < 1e-12:
            # Direction undefined at coincident points
            direction = np.zeros_like(diff)
        else:
            direction = diff / distance
        return {key1: -direction[None, :], key2: direction[None, :]}


class Pose2PriorFactor(NonlinearFactor):
    """Prior on a planar pose [x, y, theta], with the heading error wrapped."""

    def __init__(self, key: Key, prior, noise_model: Optional[NoiseModel] = None, factor_id: Optional[str] = None):
        noise_model = noise_model or NoiseModel.unit(3)
        if noise_model.dim != 3:
            raise ValueError("Pose2PriorFactor requires a 3-dimensional noise model")
        super().__init__([key], noise_model, factor_id)
        self.prior = np.asarray(prior, dtype=float)

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        return pose2.local(self.prior, variables[self.keys[0]])

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        return {self.keys[0]: np.eye(3)}


class Pose2BetweenFactor(NonlinearFactor):
    """Odometry-style relative pose measurement: between(x1, x2) = z."""

    def __init__(
        self,
        key1: Key,
        key2: Key,
        measured,
        noise_model: Optional[NoiseModel] = None,
        factor_id: Optional[str] = None
    ):
        noise_model = noise_model or NoiseModel.unit(3)
        if noise_model.dim != 3:
            raise ValueError("Pose2BetweenFactor requires a 3-dimensional noise model")
        super().__init__([key1, key2], noise_model, factor_id)
        self.measured = np.asarray(measured, dtype=float)

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        key1, key2 = self.keys
        return pose2.local(self.measured, pose2.between(variables[key1], variables[key2]))


class FunctionFactor(NonlinearFactor):
    """Factor defined by a user-supplied residual function.

    ``error_function`` receives the values of ``keys`` in order and returns
    the raw residual. Without ``jacobian_function`` the Jacobians are taken
    numerically.
    """

    def __init__(
        self,
        keys: List[Key],
        error_function: Callable[..., np.ndarray],
        noise_model: NoiseModel,
        jacobian_function: Optional[Callable[..., List[np.ndarray]]] = None,
        factor_id: Optional[str] = None
    ):
        super().__init__(keys, noise_model, factor_id)
        self.error_function = error_function
        self.jacobian_function = jacobian_function

    def unwhitened_error(self, variables: Dict[Key, np.ndarray]) -> np.ndarray:
        return np.atleast_1d(self.error_function(*[variables[key] for key in self.keys]))

    def compute_jacobian(self, variables: Dict[Key, np.ndarray]) -> Dict[Key, np.ndarray]:
        if self.jacobian_function is None:
            return super().compute_jacobian(variables)
        jacobians = self.jacobian_function(*[variables[key] for key in self.keys])
        return dict(zip(self.keys, jacobians))
