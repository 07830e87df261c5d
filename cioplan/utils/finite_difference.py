"""Finite-difference utilities over waypoint sequences."""

import numpy as np
from numpy.typing import NDArray


# Centered stencils, offsets -2..2
DIFF_RULES = {
    "velocity": (np.array([0.0, -0.5, 0.0, 0.5, 0.0]), 1),
    "acceleration": (np.array([0.0, 1.0, -2.0, 1.0, 0.0]), 2),
    "jerk": (np.array([-0.5, 1.0, 0.0, -1.0, 0.5]), 3),
}


def vector_velocities(values: NDArray, dt: float, start: int, end: int) -> NDArray:
    """
    Centered first derivative over points start..end (inclusive).

    Points outside the range are zero. Requires 1 <= start and end <= N-2.

    Args:
        values: Samples (N, ...) along the first axis
        dt: Sample spacing
        start: First point to differentiate
        end: Last point to differentiate

    Returns:
        Array shaped like ``values``
    """
    result = np.zeros_like(values)
    if end < start:
        return result
    result[start:end + 1] = (values[start + 1:end + 2] - values[start - 1:end]) / (2.0 * dt)
    return result


def vector_velocities_and_accelerations(
    values: NDArray, dt: float, start: int, end: int
) -> tuple[NDArray, NDArray]:
    """Centered first and second derivatives over start..end (inclusive)."""
    velocities = vector_velocities(values, dt, start, end)
    accelerations = np.zeros_like(values)
    if end >= start:
        accelerations[start:end + 1] = (
            values[start + 1:end + 2]
            - 2.0 * values[start:end + 1]
            + values[start - 1:end]
        ) / (dt * dt)
    return velocities, accelerations


def difference_matrix(num_points: int, rule: str, dt: float) -> NDArray:
    """
    Dense (N, N) matrix applying ``rule`` at every waypoint.

    Stencil indices beyond the ends are clamped to the first/last waypoint,
    which extends the trajectory by holding its anchors.

    Args:
        num_points: Trajectory length N
        rule: One of DIFF_RULES
        dt: Waypoint spacing

    Returns:
        K with (K @ q)[i] the derivative estimate at waypoint i
    """
    stencil, order = DIFF_RULES[rule]
    half = len(stencil) // 2
    K = np.zeros((num_points, num_points))
    for i in range(num_points):
        for offset, coefficient in zip(range(-half, half + 1), stencil):
            if coefficient == 0.0:
                continue
            j = min(max(i + offset, 0), num_points - 1)
            K[i, j] += coefficient
    return K / dt ** order
