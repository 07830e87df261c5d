"""Whole-body CoM kinematics, angular momentum and reference wrench."""

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

from cioplan.core.errors import NumericalDegenerate
from cioplan.core.robot import RobotModel
from cioplan.utils.finite_difference import (
    vector_velocities,
    vector_velocities_and_accelerations,
)

STANDARD_GRAVITY = 9.81


@dataclass
class RigidBodySnapshot:
    """Per-waypoint aggregate of one evaluation."""

    com_positions: NDArray          # (N, 3)
    com_velocities: NDArray         # (N, 3)
    com_accelerations: NDArray      # (N, 3)
    link_positions: NDArray         # (M, N, 3) world CoG of massed segments
    link_velocities: NDArray        # (M, N, 3)
    link_angular_velocities: NDArray  # (M, N, 3)
    angular_momentums: NDArray      # (N, 3)
    torques: NDArray                # (N, 3) rate of angular momentum
    gravity_wrench: NDArray         # (N, 6)
    inertial_wrench: NDArray        # (N, 6)
    wrench_sum: NDArray             # (N, 6) reference wrench

    @property
    def num_points(self) -> int:
        return self.com_positions.shape[0]


class RigidBodyAggregator:
    """
    Finite-difference rigid-body dynamics over a rolled-out trajectory.

    Forces are expressed in relative units: the gravity force has magnitude
    ``gravity_magnitude`` (1.0 by default, i.e. one body weight) regardless of
    the total mass.
    """

    def __init__(
        self,
        robot: RobotModel,
        discretization: float,
        gravity_magnitude: float = 1.0,
        include_inertial_wrench: bool = False,
    ):
        if discretization <= 0.0:
            raise NumericalDegenerate(
                f"Discretization must be positive, got {discretization}"
            )
        self.mass_segments = robot.mass_segments
        self.total_mass = self.mass_segments.total_mass
        if len(self.mass_segments) == 0 or self.total_mass <= 0.0:
            raise NumericalDegenerate(f"Robot '{robot.name}' has no mass")

        self.discretization = discretization
        self.gravity_force = np.array([0.0, 0.0, -gravity_magnitude])
        self.include_inertial_wrench = include_inertial_wrench
        # physical force -> relative units
        self.force_scale = gravity_magnitude / (self.total_mass * STANDARD_GRAVITY)

    def link_cog_positions(self, frames: NDArray) -> NDArray:
        """World CoG of every massed segment, shape (M, N, 3)."""
        seg = self.mass_segments
        selected = frames[:, seg.indices]                 # (N, M, 4, 4)
        R = selected[..., :3, :3]
        p = selected[..., :3, 3]
        world = np.einsum("nmij,mj->nmi", R, seg.cogs) + p
        return np.transpose(world, (1, 0, 2))

    def center_of_mass(self, link_positions: NDArray) -> NDArray:
        """Mass-weighted CoM per waypoint, shape (N, 3)."""
        m = self.mass_segments.masses
        return np.einsum("m,mni->ni", m, link_positions) / self.total_mass

    def angular_velocities(self, frames: NDArray) -> NDArray:
        """
        Segment angular velocities from consecutive frames, shape (M, N, 3).

        Waypoint i in 1..N-2 uses rotvec(R_i R_{i-1}^T) / dt; the rest are zero.
        """
        seg = self.mass_segments
        N = frames.shape[0]
        omega = np.zeros((len(seg), N, 3))
        if N < 3:
            return omega
        R = frames[:, seg.indices, :3, :3]
        current = R[1:N - 1].reshape(-1, 3, 3)
        previous = R[0:N - 2].reshape(-1, 3, 3)
        diff = Rotation.from_matrix(current) * Rotation.from_matrix(previous).inv()
        rates = diff.as_rotvec().reshape(N - 2, len(seg), 3) / self.discretization
        omega[:, 1:N - 1] = np.transpose(rates, (1, 0, 2))
        return omega

    def compute(self, frames: NDArray) -> RigidBodySnapshot:
        """
        Aggregate rigid-body quantities for every waypoint.

        Args:
            frames: World segment transforms (N, S, 4, 4)

        Returns:
            RigidBodySnapshot
        """
        N = frames.shape[0]
        dt = self.discretization
        last = N - 2
        seg = self.mass_segments

        link_positions = self.link_cog_positions(frames)
        com = self.center_of_mass(link_positions)
        com_vel, com_acc = vector_velocities_and_accelerations(com, dt, 1, last)

        link_velocities = np.stack([
            vector_velocities(link_positions[k], dt, 1, last)
            for k in range(len(seg))
        ])
        omega = self.angular_velocities(frames)

        # world inertia R I R^T per segment and waypoint
        R = frames[:, seg.indices, :3, :3]
        world_inertia = np.einsum("nmij,mjk,nmlk->mnil", R, seg.inertias, R)

        momentum = np.zeros((N, 3))
        if last >= 1:
            interior = slice(1, last + 1)
            relative = link_positions[:, interior] - com[None, interior]
            linear = np.cross(relative, link_velocities[:, interior])
            rotational = np.einsum(
                "mnij,mnj->mni", world_inertia[:, interior], omega[:, interior]
            )
            momentum[interior] = np.einsum(
                "m,mni->ni", seg.masses, linear
            ) + rotational.sum(axis=0)
        torques = vector_velocities(momentum, dt, 2, last - 1)

        gravity_wrench = np.zeros((N, 6))
        gravity_wrench[:, :3] = self.gravity_force
        gravity_wrench[:, 3:] = np.cross(com, self.gravity_force)

        inertial_force = -self.total_mass * com_acc * self.force_scale
        inertial_wrench = np.zeros((N, 6))
        inertial_wrench[:, :3] = inertial_force
        inertial_wrench[:, 3:] = np.cross(com, inertial_force) - torques * self.force_scale

        wrench_sum = gravity_wrench.copy()
        if self.include_inertial_wrench:
            wrench_sum += inertial_wrench

        return RigidBodySnapshot(
            com_positions=com,
            com_velocities=com_vel,
            com_accelerations=com_acc,
            link_positions=link_positions,
            link_velocities=link_velocities,
            link_angular_velocities=omega,
            angular_momentums=momentum,
            torques=torques,
            gravity_wrench=gravity_wrench,
            inertial_wrench=inertial_wrench,
            wrench_sum=wrench_sum,
        )
