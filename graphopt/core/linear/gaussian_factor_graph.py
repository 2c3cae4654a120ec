"""Linearized (Gaussian) factor graphs."""

import numpy as np
from typing import Dict, Hashable, Iterator, List, Optional, Tuple
from scipy.sparse import coo_matrix, csr_matrix

from ..optimization.values import VectorValues

Key = Hashable


class JacobianFactor:
    """Linear least-squares factor ``||sum_k A_k x_k - b||^2`` over a few keys."""

    def __init__(self, blocks: Dict[Key, np.ndarray], b: np.ndarray):
        self.b = np.atleast_1d(np.asarray(b, dtype=float))
        self.blocks: Dict[Key, np.ndarray] = {}
        for key, block in blocks.items():
            block = np.atleast_2d(np.asarray(block, dtype=float))
            if block.shape[0] != len(self.b):
                raise ValueError(f"Block for {key!r} has {block.shape[0]} rows, expected {len(self.b)}")
            self.blocks[key] = block

    @property
    def keys(self) -> List[Key]:
        return list(self.blocks)

    @property
    def rows(self) -> int:
        return len(self.b)

    def dim(self, key: Key) -> int:
        return self.blocks[key].shape[1]

    def residual(self, delta: VectorValues) -> np.ndarray:
        """A * delta - b."""
        r = -self.b.copy()
        for key, block in self.blocks.items():
            r += block @ delta[key]
        return r

    def error(self, delta: VectorValues) -> float:
        r = self.residual(delta)
        return 0.5 * float(r @ r)

    def __repr__(self) -> str:
        return f"JacobianFactor(keys={self.keys}, rows={self.rows})"


class GaussianFactorGraph:
    """Collection of Jacobian factors produced by linearizing a nonlinear graph."""

    def __init__(self, factors: Optional[List[JacobianFactor]] = None):
        self.factors: List[JacobianFactor] = list(factors or [])

    def add(self, factor: JacobianFactor) -> None:
        self.factors.append(factor)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self.factors)

    def keys(self) -> List[Key]:
        seen = {}
        for factor in self.factors:
            for key in factor.keys:
                seen.setdefault(key, None)
        return list(seen)

    def dims(self) -> Dict[Key, int]:
        """Column dimension of each key, checked for consistency across factors."""
        dims: Dict[Key, int] = {}
        for factor in self.factors:
            for key in factor.keys:
                dim = factor.dim(key)
                if dims.setdefault(key, dim) != dim:
                    raise ValueError(f"Inconsistent dimension for {key!r}: {dims[key]} vs {dim}")
        return dims

    def error(self, delta: VectorValues) -> float:
        return float(sum(factor.error(delta) for factor in self.factors))

    def damped(self, lambda_: float, dims: Dict[Key, int]) -> "GaussianFactorGraph":
        """Copy with a ``sqrt(lambda) * I`` prior on every variable (Levenberg-Marquardt damping)."""
        damped = GaussianFactorGraph(self.factors)
        sigma = np.sqrt(lambda_)
        for key, dim in dims.items():
            damped.add(JacobianFactor({key: sigma * np.eye(dim)}, np.zeros(dim)))
        return damped

    def sparse_jacobian(self, keys: List[Key], dims: Dict[Key, int]) -> Tuple[csr_matrix, np.ndarray]:
        """Stacked Jacobian and right-hand side with columns ordered by ``keys``.

        Returns:
            Tuple of (A, b) with A in CSR format
        """
        col_offsets = {}
        offset = 0
        for key in keys:
            col_offsets[key] = offset
            offset += dims[key]
        n_cols = offset

        rows, cols, data, rhs = [], [], [], []
        row_offset = 0
        for factor in self.factors:
            for key, block in factor.blocks.items():
                r, c = np.nonzero(block)
                rows.append(r + row_offset)
                cols.append(c + col_offsets[key])
                data.append(block[r, c])
            rhs.append(factor.b)
            row_offset += factor.rows

        if not rhs:
            return csr_matrix((0, n_cols)), np.zeros(0)

        A = coo_matrix(
            (np.concatenate(data) if data else np.zeros(0),
             (np.concatenate(rows) if rows else np.zeros(0, int),
              np.concatenate(cols) if cols else np.zeros(0, int))),
            shape=(row_offset, n_cols)
        ).tocsr()
        return A, np.concatenate(rhs)

    def hessian(self, keys: List[Key], dims: Dict[Key, int]) -> Tuple[csr_matrix, np.ndarray]:
        """Normal equations ``(A^T A, A^T b)`` with columns ordered by ``keys``."""
        A, b = self.sparse_jacobian(keys, dims)
        return (A.T @ A).tocsr(), A.T @ b
