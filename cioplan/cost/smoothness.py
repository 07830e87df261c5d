"""Quadratic smoothness costs."""

from typing import Sequence
import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import NumericalDegenerate
from cioplan.utils.finite_difference import difference_matrix

DERIVATIVE_RULES = ("velocity", "acceleration", "jerk")


class SmoothnessCost:
    """
    Smoothness cost of one joint.

    A = Σ_d w_d K_dᵀ K_d over the full trajectory, with K_d the velocity,
    acceleration and jerk difference matrices. Rows and columns of the
    anchors (first and last waypoint) are excluded from the free block.
    """

    def __init__(
        self,
        num_points: int,
        discretization: float,
        derivative_costs: Sequence[float],
        ridge_factor: float = 0.0,
    ):
        if len(derivative_costs) != len(DERIVATIVE_RULES):
            raise ValueError(
                f"Expected {len(DERIVATIVE_RULES)} derivative costs, got {len(derivative_costs)}"
            )
        self.weights = np.asarray(derivative_costs, dtype=float)
        self.matrices = [
            difference_matrix(num_points, rule, discretization)
            for rule in DERIVATIVE_RULES
        ]
        self.quad_cost_full = sum(
            w * K.T @ K for w, K in zip(self.weights, self.matrices)
        )
        free = slice(1, num_points - 1)
        self.quad_cost = self.quad_cost_full[free, free]
        try:
            self.quad_cost_inv = np.linalg.inv(
                self.quad_cost + ridge_factor * np.eye(self.quad_cost.shape[0])
            )
        except np.linalg.LinAlgError as e:
            raise NumericalDegenerate(
                "Smoothness quadratic form is singular; raise ridge_factor"
            ) from e
        self._scale = 1.0

    def max_quad_cost_inv_value(self) -> float:
        return float(np.max(self.quad_cost_inv))

    def scale(self, scale: float) -> None:
        """Divide the quadratic form by ``scale`` (and multiply its inverse)."""
        if scale <= 0.0:
            raise NumericalDegenerate(f"Smoothness scale must be positive, got {scale}")
        self._scale *= scale
        self.quad_cost_full = self.quad_cost_full / scale
        self.quad_cost = self.quad_cost / scale
        self.quad_cost_inv = self.quad_cost_inv * scale

    def cost(self, joint_trajectory: NDArray) -> float:
        """qᵀ A q for one joint trajectory (N,)."""
        return float(joint_trajectory @ self.quad_cost_full @ joint_trajectory)

    def waypoint_costs(self, joint_trajectory: NDArray) -> NDArray:
        """Per-waypoint contributions; they sum to ``cost``."""
        costs = np.zeros(len(joint_trajectory))
        for w, K in zip(self.weights, self.matrices):
            if w == 0.0:
                continue
            costs += w * (K @ joint_trajectory) ** 2
        return costs / self._scale


def build_smoothness_costs(
    num_points: int,
    discretization: float,
    derivative_costs: Sequence[Sequence[float]],
    ridge_factor: float,
) -> list[SmoothnessCost]:
    """
    One cost per joint, normalized by the largest inverse entry across joints
    so no joint dominates numerically.
    """
    costs = [
        SmoothnessCost(num_points, discretization, weights, ridge_factor)
        for weights in derivative_costs
    ]
    if not costs:
        return costs
    max_cost_scale = max(c.max_quad_cost_inv_value() for c in costs)
    for c in costs:
        c.scale(max_cost_scale)
    return costs
