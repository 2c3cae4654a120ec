"""graphopt - nonlinear least-squares optimization over factor graphs

Picks a sparse linear solver (sequential or multifrontal elimination, or
subgraph-preconditioned conjugate gradient) and a nonlinear method
(Gauss-Newton or Levenberg-Marquardt) at run time and returns the refined
estimate.
"""

__version__ = "0.1.0"

# Errors
from .core.exceptions import (
    GraphOptError,
    InvalidConfigurationError,
    SolverNotSupportedError,
    InvalidOrderingError,
    MissingVariableError,
    IndeterminantLinearSystemError,
)

# Parameters
from .core.models.parameters import (
    IterativeOptimizationParameters,
    LambdaMode,
    LinearSolverType,
    NonlinearOptimizationMethod,
    NonlinearOptimizationParameters,
    Verbosity,
)

# Factor graphs
from .core.optimization import (
    Values,
    VectorValues,
    NoiseModel,
    NonlinearFactor,
    NonlinearFactorGraph,
    PriorFactor,
    BetweenFactor,
    RangeFactor,
    Pose2PriorFactor,
    Pose2BetweenFactor,
    FunctionFactor,
    Ordering,
    compute_ordering,
)

# Linear solvers
from .core.linear import SequentialSolver, MultifrontalSolver, SubgraphSolver

# Optimization
from .core.solver import (
    NonlinearOptimizer,
    NonlinearOptimizerResult,
    SolveDiagnostics,
    optimize,
    optimize_sequential,
    optimize_multifrontal,
    optimize_spcg,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "GraphOptError",
    "InvalidConfigurationError",
    "SolverNotSupportedError",
    "InvalidOrderingError",
    "MissingVariableError",
    "IndeterminantLinearSystemError",
    # Parameters
    "IterativeOptimizationParameters",
    "LambdaMode",
    "LinearSolverType",
    "NonlinearOptimizationMethod",
    "NonlinearOptimizationParameters",
    "Verbosity",
    # Factor graphs
    "Values",
    "VectorValues",
    "NoiseModel",
    "NonlinearFactor",
    "NonlinearFactorGraph",
    "PriorFactor",
    "BetweenFactor",
    "RangeFactor",
    "Pose2PriorFactor",
    "Pose2BetweenFactor",
    "FunctionFactor",
    "Ordering",
    "compute_ordering",
    # Linear solvers
    "SequentialSolver",
    "MultifrontalSolver",
    "SubgraphSolver",
    # Optimization
    "NonlinearOptimizer",
    "NonlinearOptimizerResult",
    "SolveDiagnostics",
    "optimize",
    "optimize_sequential",
    "optimize_multifrontal",
    "optimize_spcg",
]
