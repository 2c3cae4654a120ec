"""Jacobian computation utilities."""

import numpy as np
from typing import Callable, Dict, Hashable, List, Tuple


def finite_difference_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    method: str = "central"
) -> np.ndarray:
    """Compute Jacobian using finite differences.

    Args:
        func: Function that takes x and returns residual vector
        x: Input parameters
        h: Step size for finite differences
        method: Finite difference method ("forward", "central")

    Returns:
        Jacobian matrix J where J[i,j] = df_i/dx_j
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    f0 = np.atleast_1d(func(x))

    m, n = len(f0), len(x)
    J = np.zeros((m, n))

    if method == "forward":
        for j in range(n):
            x_plus = x.copy()
            x_plus[j] += h
            J[:, j] = (np.atleast_1d(func(x_plus)) - f0) / h

    elif method == "central":
        for j in range(n):
            x_plus = x.copy()
            x_minus = x.copy()
            x_plus[j] += h
            x_minus[j] -= h
            J[:, j] = (np.atleast_1d(func(x_plus)) - np.atleast_1d(func(x_minus))) / (2 * h)

    else:
        raise ValueError(f"Unknown finite difference method: {method}")

    return J


def numerical_block_jacobians(
    func: Callable[[Dict[Hashable, np.ndarray]], np.ndarray],
    variables: Dict[Hashable, np.ndarray],
    keys: List[Hashable],
    h: float = 1e-6
) -> Dict[Hashable, np.ndarray]:
    """Central-difference Jacobian of ``func`` with respect to each variable block.

    Args:
        func: Function of a key -> value mapping returning a residual vector
        variables: Point of linearization
        keys: Keys to differentiate with respect to
        h: Step size

    Returns:
        Dictionary mapping each key to its Jacobian block
    """
    jacobians = {}
    for key in keys:
        def partial(x, key=key):
            shifted = dict(variables)
            shifted[key] = x
            return func(shifted)

        jacobians[key] = finite_difference_jacobian(partial, variables[key], h)
    return jacobians


def check_jacobian(
    func: Callable[[np.ndarray], np.ndarray],
    jacobian_func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    h: float = 1e-6,
    atol: float = 1e-6,
    rtol: float = 1e-6
) -> Tuple[bool, float, np.ndarray]:
    """Check analytic Jacobian against finite differences.

    Args:
        func: Function that computes residuals
        jacobian_func: Function that computes analytic Jacobian
        x: Input parameters
        h: Step size for finite differences
        atol: Absolute tolerance
        rtol: Relative tolerance

    Returns:
        Tuple of (is_correct, max_error, error_matrix)
    """
    J_analytic = jacobian_func(x)
    J_numeric = finite_difference_jacobian(func, x, h)

    error = np.abs(J_analytic - J_numeric)
    max_error = float(np.max(error)) if error.size else 0.0

    is_correct = np.allclose(J_analytic, J_numeric, atol=atol, rtol=rtol)

    return is_correct, max_error, error
