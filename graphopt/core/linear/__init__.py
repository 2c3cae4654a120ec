"""Linearized factor graphs and the linear solver backends."""

from .gaussian_factor_graph import GaussianFactorGraph, JacobianFactor
from .elimination import GaussianBayesNet, GaussianConditional, eliminate_dense
from .linear_solver import LinearSolver
from .sequential import SequentialSolver
from .multifrontal import MultifrontalSolver, BayesTree
from .subgraph import SubgraphSolver

__all__ = [
    "GaussianFactorGraph",
    "JacobianFactor",
    "GaussianBayesNet",
    "GaussianConditional",
    "eliminate_dense",
    "LinearSolver",
    "SequentialSolver",
    "MultifrontalSolver",
    "BayesTree",
    "SubgraphSolver",
]
