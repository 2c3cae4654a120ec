"""Nonlinear optimizer engine and the optimization entry points."""

from .nonlinear_optimizer import NonlinearOptimizer, NonlinearOptimizerResult, check_convergence
from .optimization import (
    SOLVER_SUPPORT,
    SolverSupport,
    optimize,
    optimize_multifrontal,
    optimize_sequential,
    optimize_spcg,
)
from .diagnostics import SolveDiagnostics, analyze_jacobian_rank

__all__ = [
    "NonlinearOptimizer",
    "NonlinearOptimizerResult",
    "check_convergence",
    "SOLVER_SUPPORT",
    "SolverSupport",
    "optimize",
    "optimize_multifrontal",
    "optimize_sequential",
    "optimize_spcg",
    "SolveDiagnostics",
    "analyze_jacobian_rank",
]
