"""Robust loss functions for iteratively reweighted least squares.

Each loss is evaluated on the whitened residual norm of a factor and returns
``(rho, weight)``: the robust cost and the weight that turns the factor's
quadratic error into the first-order equivalent of ``rho``.
"""

import numpy as np
from typing import Tuple, Union

ArrayLike = Union[float, np.ndarray]


def huber_loss(norm: ArrayLike, delta: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Huber robust loss function.

    Args:
        norm: Whitened residual norm(s)
        delta: Threshold between the quadratic and linear regimes

    Returns:
        Tuple of (rho, weights)
    """
    abs_norm = np.abs(np.asarray(norm, dtype=float))
    is_inlier = abs_norm <= delta

    rho = np.where(
        is_inlier,
        0.5 * abs_norm**2,
        delta * (abs_norm - 0.5 * delta)
    )

    # d(rho)/d(norm) / norm, taken as 1 at the origin
    weights = np.where(is_inlier, 1.0, delta / np.maximum(abs_norm, 1e-12))

    return rho, weights


def cauchy_loss(norm: ArrayLike, sigma: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Cauchy robust loss function.

    Args:
        norm: Whitened residual norm(s)
        sigma: Scale parameter

    Returns:
        Tuple of (rho, weights)
    """
    norm = np.asarray(norm, dtype=float)
    sigma2 = sigma**2
    r2_over_sigma2 = norm**2 / sigma2

    rho = 0.5 * sigma2 * np.log1p(r2_over_sigma2)
    weights = 1.0 / (1 + r2_over_sigma2)

    return rho, weights


def no_loss(norm: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Identity loss: rho = 0.5 * norm^2, weight = 1."""
    norm = np.asarray(norm, dtype=float)
    return 0.5 * norm**2, np.ones_like(norm)


def apply_robust_loss(norm: ArrayLike, loss_type: str = "none", **kwargs) -> Tuple[np.ndarray, np.ndarray]:
    """Apply a robust loss function by name.

    Args:
        norm: Whitened residual norm(s)
        loss_type: Type of loss ("none", "huber", "cauchy")
        **kwargs: ``delta`` for Huber, ``sigma`` for Cauchy

    Returns:
        Tuple of (rho, weights)
    """
    if loss_type == "none":
        return no_loss(norm)
    elif loss_type == "huber":
        return huber_loss(norm, kwargs.get("delta", 1.0))
    elif loss_type == "cauchy":
        return cauchy_loss(norm, kwargs.get("sigma", 1.0))
    else:
        raise ValueError(f"Unknown loss type: {loss_type}")
