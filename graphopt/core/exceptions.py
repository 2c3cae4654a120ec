"""Exception hierarchy for graphopt."""


class GraphOptError(Exception):
    """Base class for all graphopt errors."""


class InvalidConfigurationError(GraphOptError, ValueError):
    """An unrecognized solver kind, method kind or ordering method was supplied."""


class SolverNotSupportedError(GraphOptError, NotImplementedError):
    """A valid but currently unsupported solver/method combination was requested."""


class InvalidOrderingError(GraphOptError, ValueError):
    """An ordering is not a bijection over the variables being optimized."""


class MissingVariableError(GraphOptError, KeyError):
    """A factor references a variable that has no value in the estimate."""


class IndeterminantLinearSystemError(GraphOptError, ArithmeticError):
    """Elimination hit a numerically zero pivot.

    Usually means a variable is not constrained by any factor, or the
    constraints on it are degenerate (e.g. a gauge freedom without a prior).
    """

    def __init__(self, key):
        self.key = key
        super().__init__(
            f"Indeterminant linear system detected while eliminating variable {key!r}"
        )
