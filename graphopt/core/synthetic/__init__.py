"""Synthetic problem generation."""

from .pose_graph import ProblemGenerator

__all__ = ["ProblemGenerator"]
