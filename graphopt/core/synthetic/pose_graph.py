"""Synthetic problem generation utilities."""

import numpy as np
from typing import Optional, Sequence, Tuple

from ..math import pose2
from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.factors import (
    BetweenFactor,
    PriorFactor,
    Pose2BetweenFactor,
    Pose2PriorFactor,
    RangeFactor,
)
from ..optimization.noise import NoiseModel
from ..optimization.values import Values

Problem = Tuple[NonlinearFactorGraph, Values, Values]


class ProblemGenerator:
    """Generator for synthetic factor graphs with known ground truth.

    Every ``generate_*`` method returns ``(graph, ground_truth, initial_estimate)``.
    """

    def __init__(self, seed: Optional[int] = None):
        """Initialize problem generator.

        Args:
            seed: Random seed for reproducible generation
        """
        self.rng = np.random.default_rng(seed)

    def generate_pose2_chain(
        self,
        n_poses: int,
        step: Sequence[float] = (1.0, 0.0, 0.2),
        odometry_sigmas: Sequence[float] = (0.05, 0.05, 0.02),
        initial_noise: float = 0.1,
        loop_closure: bool = True
    ) -> Problem:
        """Planar pose graph: a prior on the first pose and odometry between consecutive poses.

        Args:
            n_poses: Number of poses (keys ``x0 .. x{n-1}``)
            step: True relative motion between consecutive poses [dx, dy, dtheta]
            odometry_sigmas: Noise of the odometry measurements
            initial_noise: Standard deviation of the perturbation applied to the initial estimate
            loop_closure: Add a measurement between the last and the first pose

        Returns:
            Tuple of (graph, ground_truth, initial_estimate)
        """
        if n_poses < 2:
            raise ValueError("A pose chain needs at least 2 poses")

        step = np.asarray(step, dtype=float)
        odometry_noise = NoiseModel.diagonal(odometry_sigmas)

        ground_truth = Values()
        pose = np.zeros(3)
        for i in range(n_poses):
            ground_truth.insert(f"x{i}", pose)
            pose = pose2.compose(pose, step)

        graph = NonlinearFactorGraph()
        graph.add(Pose2PriorFactor("x0", ground_truth.at("x0"), NoiseModel.isotropic(3, 1e-3)))

        for i in range(n_poses - 1):
            true_relative = pose2.between(ground_truth.at(f"x{i}"), ground_truth.at(f"x{i + 1}"))
            measured = true_relative + self.rng.normal(0.0, odometry_noise.sigmas)
            graph.add(Pose2BetweenFactor(f"x{i}", f"x{i + 1}", measured, odometry_noise))

        if loop_closure and n_poses > 2:
            last = f"x{n_poses - 1}"
            true_relative = pose2.between(ground_truth.at(last), ground_truth.at("x0"))
            measured = true_relative + self.rng.normal(0.0, odometry_noise.sigmas)
            graph.add(Pose2BetweenFactor(last, "x0", measured, odometry_noise))

        initial = self._perturb(ground_truth, initial_noise)
        return graph, ground_truth, initial

    def generate_range_network(
        self,
        n_points: int,
        n_anchors: int = 3,
        extent: float = 10.0,
        range_sigma: float = 0.01,
        initial_noise: float = 0.5,
        neighbours: int = 3
    ) -> Problem:
        """Planar localization from ranges to anchors and between nearby points.

        Anchors (keys ``a0 ..``) are held by tight priors; unknown points
        (keys ``p0 ..``) are connected to every anchor and to their
        ``neighbours`` nearest points.

        Returns:
            Tuple of (graph, ground_truth, initial_estimate)
        """
        if n_anchors < 3:
            raise ValueError("At least 3 anchors are needed to fix a planar network")

        ground_truth = Values()
        anchors = self.rng.uniform(0.0, extent, size=(n_anchors, 2))
        points = self.rng.uniform(0.0, extent, size=(n_points, 2))
        for i, anchor in enumerate(anchors):
            ground_truth.insert(f"a{i}", anchor)
        for i, point in enumerate(points):
            ground_truth.insert(f"p{i}", point)

        graph = NonlinearFactorGraph()
        range_noise = NoiseModel.isotropic(1, range_sigma)

        for i, anchor in enumerate(anchors):
            graph.add(PriorFactor(f"a{i}", anchor, NoiseModel.isotropic(2, 1e-3)))

        for j, point in enumerate(points):
            for i, anchor in enumerate(anchors):
                measured = np.linalg.norm(point - anchor) + self.rng.normal(0.0, range_sigma)
                graph.add(RangeFactor(f"a{i}", f"p{j}", measured, range_noise))

        connected = set()
        for j, point in enumerate(points):
            distances = np.linalg.norm(points - point, axis=1)
            for k in np.argsort(distances)[1:neighbours + 1]:
                pair = (min(j, int(k)), max(j, int(k)))
                if pair in connected:
                    continue
                connected.add(pair)
                measured = distances[k] + self.rng.normal(0.0, range_sigma)
                graph.add(RangeFactor(f"p{pair[0]}", f"p{pair[1]}", measured, range_noise))

        initial = self._perturb(ground_truth, initial_noise)
        return graph, ground_truth, initial

    def generate_linear_chain(
        self,
        n_variables: int,
        dim: int = 2,
        sigma: float = 0.1
    ) -> Problem:
        """Vector-space chain with a prior and noisy differences: a linear least-squares problem.

        Returns:
            Tuple of (graph, ground_truth, initial_estimate)
        """
        ground_truth = Values()
        for i in range(n_variables):
            ground_truth.insert(i, self.rng.normal(0.0, 1.0, size=dim))

        graph = NonlinearFactorGraph()
        graph.add(PriorFactor(0, ground_truth.at(0), NoiseModel.isotropic(dim, sigma)))
        for i in range(n_variables - 1):
            measured = ground_truth.at(i + 1) - ground_truth.at(i) + self.rng.normal(0.0, sigma, size=dim)
            graph.add(BetweenFactor(i, i + 1, measured, NoiseModel.isotropic(dim, sigma)))

        initial = Values({key: np.zeros(dim) for key in ground_truth.keys()})
        return graph, ground_truth, initial

    def _perturb(self, values: Values, noise: float) -> Values:
        perturbed = Values()
        for key, value in values.items():
            perturbed.insert(key, value + self.rng.normal(0.0, noise, size=value.shape))
        return perturbed
