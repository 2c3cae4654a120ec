"""Solver diagnostics and analysis tools."""

import numpy as np
from typing import Any, Dict, List, Tuple
from scipy.linalg import svd

from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.values import Values


class SolveDiagnostics:
    """Diagnostics and analysis for optimization results."""

    def __init__(self, top_k: int = 10):
        """Initialize diagnostics.

        Args:
            top_k: Number of factors reported as largest errors
        """
        self.top_k = top_k

    def compute_diagnostics(self, graph: NonlinearFactorGraph, values: Values) -> Dict[str, Any]:
        """Compute diagnostics of ``graph`` at ``values``.

        Args:
            graph: Factor graph
            values: Estimate to evaluate, usually the refined one

        Returns:
            Dictionary with diagnostic information
        """
        per_factor = self._compute_per_factor_errors(graph, values)
        residuals = graph.residuals(values)
        A, _ = graph.linearize(values).sparse_jacobian(values.keys(), values.dims())

        return {
            "total_error": float(sum(per_factor.values())),
            "errors": per_factor,
            "largest_errors": self._find_largest_errors(per_factor),
            "statistics": self._compute_statistics(residuals),
            "jacobian": analyze_jacobian_rank(A.toarray()),
            "graph": graph.summary(),
        }

    def _compute_per_factor_errors(self, graph: NonlinearFactorGraph, values: Values) -> Dict[str, float]:
        variables = values.view()
        return {factor.factor_id: float(factor.error(variables)) for factor in graph}

    def _find_largest_errors(self, per_factor: Dict[str, float]) -> List[Tuple[str, float]]:
        ranked = sorted(per_factor.items(), key=lambda item: item[1], reverse=True)
        return ranked[:self.top_k]

    def _compute_statistics(self, residuals: np.ndarray) -> Dict[str, float]:
        """Compute overall whitened residual statistics.

        Args:
            residuals: Residual vector

        Returns:
            Dictionary with statistics
        """
        if len(residuals) == 0:
            return {
                "total_residuals": 0,
                "rms_residual": 0.0,
                "max_residual": 0.0,
                "mean_residual": 0.0,
                "std_residual": 0.0
            }

        return {
            "total_residuals": len(residuals),
            "rms_residual": float(np.sqrt(np.mean(residuals**2))),
            "max_residual": float(np.max(np.abs(residuals))),
            "mean_residual": float(np.mean(residuals)),
            "std_residual": float(np.std(residuals))
        }


def analyze_jacobian_rank(jacobian: np.ndarray, tolerance: float = 1e-6) -> Dict[str, Any]:
    """Analyze Jacobian matrix rank and condition.

    Args:
        jacobian: Jacobian matrix
        tolerance: Numerical tolerance for rank determination, relative to the largest singular value

    Returns:
        Dictionary with rank analysis
    """
    if jacobian.size == 0:
        return {
            "rank": 0,
            "full_rank": True,
            "condition_number": 1.0,
            "singular_values": [],
            "nullspace_dimension": 0
        }

    s = svd(jacobian, compute_uv=False)

    rank = int(np.sum(s > tolerance * s[0])) if s[0] > 0 else 0
    full_rank = rank == min(jacobian.shape)
    nullspace_dim = jacobian.shape[1] - rank
    condition_number = s[0] / s[-1] if s[-1] > 0 else np.inf

    return {
        "rank": rank,
        "full_rank": bool(full_rank),
        "condition_number": float(condition_number),
        "singular_values": s.tolist(),
        "nullspace_dimension": int(nullspace_dim),
        "matrix_shape": jacobian.shape,
    }
