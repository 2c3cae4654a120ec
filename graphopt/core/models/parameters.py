"""Optimization parameters and solver/method selection."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LinearSolverType(str, Enum):
    """Sparse linear-algebra strategy used for each linearized step."""

    SEQUENTIAL = "sequential"
    MULTIFRONTAL = "multifrontal"
    SPCG = "spcg"


class NonlinearOptimizationMethod(str, Enum):
    """Outer nonlinear iteration rule."""

    GAUSS_NEWTON = "gauss_newton"
    LEVENBERG_MARQUARDT = "levenberg_marquardt"


class LambdaMode(str, Enum):
    """How Levenberg-Marquardt updates its damping after an accepted step."""

    FAST = "fast"
    BOUNDED = "bounded"
    CAUTIOUS = "cautious"


class Verbosity(int, Enum):
    """Amount of per-iteration output, in increasing order."""

    SILENT = 0
    ERROR = 1
    LAMBDA = 2
    TRYLAMBDA = 3
    VALUES = 4
    DELTA = 5
    TRYCONFIG = 6
    TRYDELTA = 7
    LINEAR = 8
    DAMPED = 9


class IterativeOptimizationParameters(BaseModel):
    """Stopping criteria for the subgraph-preconditioned conjugate gradient solver."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=100, gt=0, description="Maximum CG iterations per linear solve")
    epsilon_rel: float = Field(default=1e-3, gt=0, description="Relative residual tolerance")
    epsilon_abs: float = Field(default=1e-3, ge=0, description="Absolute residual tolerance")
    spanning_tree: Literal["minimum", "breadth_first"] = Field(
        default="minimum",
        description="How the spanning subgraph used as preconditioner is chosen"
    )


class NonlinearOptimizationParameters(BaseModel):
    """Convergence thresholds, iteration caps and damping settings.

    Instances are immutable; use :meth:`with_updates` to derive a modified copy.
    """

    model_config = ConfigDict(frozen=True)

    absolute_decrease: float = Field(default=1e-5, ge=0, description="Absolute error decrease threshold")
    relative_decrease: float = Field(default=1e-5, ge=0, description="Relative error decrease threshold")
    sum_error: float = Field(default=0.0, ge=0, description="Error below which the problem counts as solved")
    max_iterations: int = Field(default=100, gt=0, description="Maximum nonlinear iterations")
    lambda_initial: float = Field(default=1e-5, gt=0, description="Initial Levenberg-Marquardt damping")
    lambda_factor: float = Field(default=10.0, description="Multiplicative damping update")
    lambda_upper_bound: float = Field(default=1e5, gt=0, description="Damping beyond which LM gives up")
    lambda_mode: LambdaMode = Field(default=LambdaMode.BOUNDED, description="Damping update rule")
    verbosity: Verbosity = Field(default=Verbosity.SILENT, description="Per-iteration output level")
    iterative: IterativeOptimizationParameters = Field(
        default_factory=IterativeOptimizationParameters,
        description="Parameters for the iterative linear solver"
    )

    @field_validator('lambda_factor')
    @classmethod
    def validate_lambda_factor(cls, v):
        if v <= 1.0:
            raise ValueError("lambda_factor must be greater than 1")
        return v

    @field_validator('verbosity', mode='before')
    @classmethod
    def validate_verbosity(cls, v):
        """Accept verbosity levels by name as well as by value."""
        if isinstance(v, str):
            try:
                return Verbosity[v.upper()]
            except KeyError:
                raise ValueError(f"Unknown verbosity level: {v}")
        return v

    def with_updates(self, **changes) -> "NonlinearOptimizationParameters":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return NonlinearOptimizationParameters(**data)

    @classmethod
    def new_decrease_thresholds(
        cls,
        absolute_decrease: float,
        relative_decrease: float,
        verbosity: Verbosity = Verbosity.SILENT
    ) -> "NonlinearOptimizationParameters":
        """Parameters differing from the defaults only in their decrease thresholds."""
        return cls(
            absolute_decrease=absolute_decrease,
            relative_decrease=relative_decrease,
            verbosity=verbosity
        )
