"""Configuration models for graphopt."""

from .parameters import (
    IterativeOptimizationParameters,
    LambdaMode,
    LinearSolverType,
    NonlinearOptimizationMethod,
    NonlinearOptimizationParameters,
    Verbosity,
)

__all__ = [
    "IterativeOptimizationParameters",
    "LambdaMode",
    "LinearSolverType",
    "NonlinearOptimizationMethod",
    "NonlinearOptimizationParameters",
    "Verbosity",
]
