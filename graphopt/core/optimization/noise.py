"""Gaussian noise models with optional robust loss."""

import numpy as np
from typing import Sequence, Tuple

from ..math.robust import apply_robust_loss


class NoiseModel:
    """Diagonal Gaussian noise model.

    Residuals are whitened by dividing each component by its standard
    deviation. A robust loss, if set, reweights the whole whitened residual
    block according to its norm.
    """

    def __init__(self, sigmas: Sequence[float], loss_type: str = "none", **loss_params):
        sigmas = np.atleast_1d(np.asarray(sigmas, dtype=float))
        if sigmas.ndim != 1 or len(sigmas) == 0:
            raise ValueError("sigmas must be a non-empty 1-D vector")
        if np.any(sigmas <= 0):
            raise ValueError("All sigmas must be positive")

        # Fail early on unknown loss names
        apply_robust_loss(0.0, loss_type, **loss_params)

        self.sigmas = sigmas
        self.loss_type = loss_type
        self.loss_params = loss_params

    @classmethod
    def diagonal(cls, sigmas: Sequence[float]) -> "NoiseModel":
        return cls(sigmas)

    @classmethod
    def isotropic(cls, dim: int, sigma: float) -> "NoiseModel":
        return cls(np.full(dim, sigma))

    @classmethod
    def unit(cls, dim: int) -> "NoiseModel":
        return cls(np.ones(dim))

    def robust(self, loss_type: str, **loss_params) -> "NoiseModel":
        """Copy of this model wrapped in a robust loss ("huber" or "cauchy")."""
        return NoiseModel(self.sigmas, loss_type, **loss_params)

    @property
    def dim(self) -> int:
        return len(self.sigmas)

    @property
    def is_robust(self) -> bool:
        return self.loss_type != "none"

    def whiten(self, residual: np.ndarray) -> np.ndarray:
        return np.asarray(residual, dtype=float) / self.sigmas

    def whiten_matrix(self, matrix: np.ndarray) -> np.ndarray:
        return np.asarray(matrix, dtype=float) / self.sigmas[:, None]

    def loss(self, whitened: np.ndarray) -> Tuple[float, float]:
        """Robust cost and IRLS weight of a whitened residual block."""
        rho, weight = apply_robust_loss(np.linalg.norm(whitened), self.loss_type, **self.loss_params)
        return float(rho), float(weight)

    def __repr__(self) -> str:
        if self.is_robust:
            return f"NoiseModel(sigmas={self.sigmas.tolist()}, loss={self.loss_type!r})"
        return f"NoiseModel(sigmas={self.sigmas.tolist()})"
