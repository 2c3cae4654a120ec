"""Math primitives for graphopt."""

from .pose2 import compose, invert, between, local, wrap_angle
from .robust import huber_loss, cauchy_loss, apply_robust_loss
from .jacobians import finite_difference_jacobian, numerical_block_jacobians, check_jacobian

__all__ = [
    "compose",
    "invert",
    "between",
    "local",
    "wrap_angle",
    "huber_loss",
    "cauchy_loss",
    "apply_robust_loss",
    "finite_difference_jacobian",
    "numerical_block_jacobians",
    "check_jacobian",
]
