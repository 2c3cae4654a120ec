"""Dense partial elimination of Jacobian factors.

Eliminating a set of frontal variables from the factors that touch them
stacks those factors into one dense ``[A | b]`` block, ordered frontal
columns first, and QR-factorizes it. The upper rows of ``R`` form a Gaussian
conditional ``R x_f + S x_s = d``; the lower rows are a new factor on the
separator ``x_s`` that replaces the eliminated factors.
"""

import numpy as np
from typing import Dict, Hashable, List, Optional, Tuple
from scipy.linalg import solve_triangular

from ..exceptions import IndeterminantLinearSystemError
from ..optimization.values import VectorValues
from .gaussian_factor_graph import JacobianFactor

Key = Hashable

PIVOT_TOLERANCE = 1e-9


class GaussianConditional:
    """Conditional density ``p(x_f | x_s)`` in square-root form ``R x_f + S x_s = d``."""

    def __init__(
        self,
        frontal_keys: List[Key],
        separator_keys: List[Key],
        dims: Dict[Key, int],
        R: np.ndarray,
        S: np.ndarray,
        d: np.ndarray
    ):
        self.frontal_keys = frontal_keys
        self.separator_keys = separator_keys
        self.dims = dims
        self.R = R
        self.S = S
        self.d = d

    def solve(self, solution: VectorValues) -> None:
        """Back-substitute: compute the frontal variables given the separator ones.

        The separator variables must already be present in ``solution``;
        the frontal results are written into it.
        """
        rhs = self.d.copy()
        if self.separator_keys:
            x_s = np.concatenate([solution[key] for key in self.separator_keys])
            rhs -= self.S @ x_s

        x_f = solve_triangular(self.R, rhs, lower=False)

        offset = 0
        for key in self.frontal_keys:
            dim = self.dims[key]
            solution[key] = x_f[offset:offset + dim]
            offset += dim

    def __repr__(self) -> str:
        return f"GaussianConditional(frontals={self.frontal_keys}, separator={self.separator_keys})"


def eliminate_dense(
    factors: List[JacobianFactor],
    frontal_keys: List[Key],
    dims: Dict[Key, int],
    position: Dict[Key, int]
) -> Tuple[GaussianConditional, Optional[JacobianFactor]]:
    """Eliminate ``frontal_keys`` from ``factors``.

    Args:
        factors: Every factor involving at least one frontal key
        frontal_keys: Variables to eliminate, in elimination order
        dims: Dimension of every variable involved
        position: Elimination position of every variable, used to order the separator

    Returns:
        Tuple of (conditional on the frontal keys, factor on the separator or None)

    Raises:
        IndeterminantLinearSystemError: if a frontal variable is not determined
    """
    frontal_set = set(frontal_keys)
    separator = {}
    for factor in factors:
        for key in factor.keys:
            if key not in frontal_set:
                separator.setdefault(key, None)
    separator_keys = sorted(separator, key=lambda k: position[k])

    columns = {}
    offset = 0
    for key in frontal_keys + separator_keys:
        columns[key] = offset
        offset += dims[key]
    n_frontal = sum(dims[key] for key in frontal_keys)
    n_cols = offset

    n_rows = sum(factor.rows for factor in factors)
    if n_rows < n_frontal:
        raise IndeterminantLinearSystemError(_key_at_column(frontal_keys, dims, n_rows))

    Ab = np.zeros((n_rows, n_cols + 1))
    row = 0
    for factor in factors:
        for key, block in factor.blocks.items():
            Ab[row:row + factor.rows, columns[key]:columns[key] + dims[key]] = block
        Ab[row:row + factor.rows, n_cols] = factor.b
        row += factor.rows

    R_full = np.linalg.qr(Ab, mode="r")

    diagonal = np.abs(np.diag(R_full[:n_frontal, :n_frontal]))
    scale = max(1.0, float(np.max(np.abs(Ab))))
    deficient = np.nonzero(diagonal <= PIVOT_TOLERANCE * scale)[0]
    if len(deficient):
        raise IndeterminantLinearSystemError(_key_at_column(frontal_keys, dims, int(deficient[0])))

    conditional = GaussianConditional(
        frontal_keys=list(frontal_keys),
        separator_keys=separator_keys,
        dims=dims,
        R=R_full[:n_frontal, :n_frontal],
        S=R_full[:n_frontal, n_frontal:n_cols],
        d=R_full[:n_frontal, n_cols]
    )

    remaining = R_full[n_frontal:]
    if not separator_keys or remaining.shape[0] == 0:
        return conditional, None

    blocks = {
        key: remaining[:, columns[key]:columns[key] + dims[key]]
        for key in separator_keys
    }
    return conditional, JacobianFactor(blocks, remaining[:, n_cols])


def _key_at_column(keys: List[Key], dims: Dict[Key, int], column: int) -> Key:
    offset = 0
    for key in keys:
        offset += dims[key]
        if column < offset:
            return key
    return keys[-1]


class GaussianBayesNet:
    """Conditionals in elimination order; solved by back-substitution in reverse."""

    def __init__(self, conditionals: Optional[List[GaussianConditional]] = None):
        self.conditionals: List[GaussianConditional] = list(conditionals or [])

    def add(self, conditional: GaussianConditional) -> None:
        self.conditionals.append(conditional)

    def __len__(self) -> int:
        return len(self.conditionals)

    def optimize(self) -> VectorValues:
        solution = VectorValues()
        for conditional in reversed(self.conditionals):
            conditional.solve(solution)
        return solution
