"""Trajectory storage for optimization."""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import PreconditionViolation, NumericalDegenerate
from cioplan.core.parameters import PlanningParameters
from cioplan.core.robot import JointLimit, PlanningGroup


def quintic_hermite_basis(stride: int) -> NDArray:
    """
    Minimum-jerk Hermite basis sampled at s = j / stride, j = 0..stride.

    Columns weight (p0, T·v0, T·v1, p1) for a segment of duration T with
    zero acceleration at both knots.

    Returns:
        Basis of shape (stride + 1, 4)
    """
    s = np.linspace(0.0, 1.0, stride + 1)
    s3, s4, s5 = s ** 3, s ** 4, s ** 5
    return np.column_stack([
        1.0 - 10.0 * s3 + 15.0 * s4 - 6.0 * s5,
        s - 6.0 * s3 + 8.0 * s4 - 3.0 * s5,
        -4.0 * s3 + 7.0 * s4 - 3.0 * s5,
        10.0 * s3 - 15.0 * s4 + 6.0 * s5,
    ])


def clamp_joint_limits(
    positions: NDArray,
    joint_limits: Sequence[Optional[JointLimit]],
    first: int,
    last: int,
) -> int:
    """
    Clamp rows first..last (inclusive) of ``positions`` in place.

    Joints without limits are left untouched.

    Returns:
        Number of clamped entries
    """
    clamped = 0
    rows = slice(first, last + 1)
    for joint, limit in enumerate(joint_limits):
        if limit is None:
            continue
        column = positions[rows, joint]
        outside = (column > limit.upper) | (column < limit.lower)
        if outside.any():
            clamped += int(outside.sum())
            positions[rows, joint] = np.clip(column, limit.lower, limit.upper)
    return clamped


class TrajectoryBuffer:
    """
    Group-local and full-robot joint trajectories of one planning attempt.

    The trajectory has ``P * stride + 1`` waypoints. Phase boundary ``k`` sits
    at waypoint ``k * stride``; boundaries 0 and P are the start and goal
    anchors, boundaries 1..P-1 are the free points.
    """

    def __init__(
        self,
        group: PlanningGroup,
        params: PlanningParameters,
        start: NDArray,
        goal: NDArray,
    ):
        """
        Args:
            group: Planning group (joint embedding and contacts)
            params: Planning parameters
            start: Full-robot start configuration (F,)
            goal: Group goal configuration (J,)
        """
        if params.discretization <= 0.0:
            raise NumericalDegenerate(
                f"Discretization must be positive, got {params.discretization}"
            )

        self.group = group
        self.discretization = params.discretization
        self.num_contact_phases = params.num_contact_phases
        self.stride = params.phase_stride
        self.num_points = params.num_points
        self.num_joints = group.num_joints
        self.num_contacts = group.num_contacts
        self.embedding = np.array(group.full_joint_indices, dtype=int)

        start = np.asarray(start, dtype=float)
        goal = np.asarray(goal, dtype=float)
        if start.ndim != 1 or (self.embedding >= len(start)).any():
            raise PreconditionViolation(
                f"Start configuration of shape {start.shape} does not cover the group joints"
            )
        if goal.shape != (self.num_joints,):
            raise PreconditionViolation(
                f"Goal has shape {goal.shape}, expected ({self.num_joints},)"
            )

        P = self.num_contact_phases
        start_group = start[self.embedding]
        weights = np.linspace(0.0, 1.0, P + 1)[:, None]
        self.free_points = (1.0 - weights) * start_group + weights * goal
        self.free_velocities = np.zeros((P + 1, self.num_joints))
        self.free_velocities[1:P] = (goal - start_group) / self.duration
        self.contact_values = np.full(
            (P + 1, self.num_contacts), params.initial_contact_value, dtype=float
        )

        self.positions = np.zeros((self.num_points, self.num_joints))
        self.full_positions = np.tile(start, (self.num_points, 1))

        self._basis = quintic_hermite_basis(self.stride)
        self.update_from_free_points()
        self.update_full()

    @property
    def duration(self) -> float:
        return (self.num_points - 1) * self.discretization

    @property
    def num_free_points(self) -> int:
        return self.num_contact_phases - 1

    @property
    def num_full_joints(self) -> int:
        return self.full_positions.shape[1]

    def phase_start(self, phase: int) -> int:
        """Waypoint index of phase boundary ``phase``."""
        return phase * self.stride

    def contact_phase(self, point: int) -> int:
        """Phase owning waypoint ``point``."""
        return min(point // self.stride, self.num_contact_phases)

    def contact_value(self, phase: int, contact: int) -> float:
        return float(self.contact_values[phase, contact])

    def waypoint_activations(self, point: int) -> NDArray:
        """Activations in effect at waypoint ``point``."""
        return self.contact_values[self.contact_phase(point)]

    def write_free_parameters(
        self, positions: NDArray, velocities: NDArray, activations: NDArray
    ) -> None:
        """Copy optimizer parameters into free rows and free-phase contact rows."""
        F = self.num_free_points
        self.free_points[1:F + 1] = positions
        self.free_velocities[1:F + 1] = velocities
        self.contact_values[0:F + 1] = activations

    def update_from_free_points(self) -> None:
        """Rebuild every waypoint from the knots by quintic interpolation."""
        T = self.stride * self.discretization
        h = self._basis
        for phase in range(self.num_contact_phases):
            rows = slice(self.phase_start(phase), self.phase_start(phase + 1) + 1)
            p0, p1 = self.free_points[phase], self.free_points[phase + 1]
            v0, v1 = self.free_velocities[phase], self.free_velocities[phase + 1]
            self.positions[rows] = (
                np.outer(h[:, 0], p0)
                + np.outer(h[:, 1], T * v0)
                + np.outer(h[:, 2], T * v1)
                + np.outer(h[:, 3], p1)
            )

    def clamp_to_joint_limits(self) -> int:
        """Clamp interior waypoints to joint limits; anchors are exempt."""
        return clamp_joint_limits(
            self.positions, self.group.joint_limits, 1, self.num_points - 2
        )

    def update_full(self) -> None:
        """Propagate group joints into the full-robot trajectory."""
        self.full_positions[:, self.embedding] = self.positions

    def full_point(self, point: int) -> NDArray:
        return self.full_positions[point]
