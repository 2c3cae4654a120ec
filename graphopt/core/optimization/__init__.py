"""Factor graph, estimate and ordering modules."""

from .values import Values, VectorValues
from .noise import NoiseModel
from .factor_graph import NonlinearFactor, NonlinearFactorGraph
from .factors import (
    PriorFactor,
    BetweenFactor,
    RangeFactor,
    Pose2PriorFactor,
    Pose2BetweenFactor,
    FunctionFactor,
)
from .ordering import Ordering, compute_ordering

__all__ = [
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
]
