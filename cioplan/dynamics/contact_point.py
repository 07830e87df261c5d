"""End-effector contact points."""

import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import ConfigurationError
from cioplan.core.ports import GroundModel
from cioplan.core.robot import RobotModel
from cioplan.utils.finite_difference import vector_velocities


class ContactPoint:
    """
    Binding of a named link to its kinematic segment.

    Everything positional is read from the frames passed in, so nothing
    carries over between evaluations.
    """

    def __init__(self, link_name: str, robot: RobotModel):
        self._link_name = link_name
        self._segment = robot.segment_index(link_name)
        parent = robot.segments[self._segment].parent
        if parent is None:
            raise ConfigurationError(f"Contact link '{link_name}' has no parent segment")
        self._parent_segment = parent

    @property
    def link_name(self) -> str:
        return self._link_name

    @property
    def segment_index(self) -> int:
        return self._segment

    @property
    def parent_segment_index(self) -> int:
        return self._parent_segment

    def position(self, point: int, frames: NDArray) -> NDArray:
        """World position of the contact at waypoint ``point``; frames is (N, S, 4, 4)."""
        return frames[point, self._segment, :3, 3].copy()

    def frame(self, point: int, frames: NDArray) -> NDArray:
        return frames[point, self._segment].copy()

    def parent_frame(self, point: int, frames: NDArray) -> NDArray:
        return frames[point, self._parent_segment].copy()

    def distance_to_ground(self, point: int, frames: NDArray, ground: GroundModel) -> float:
        """Signed distance along the ground normal."""
        position = frames[point, self._segment, :3, 3]
        ground_point, normal = ground.nearest_ground(position)
        return float(np.dot(position - ground_point, normal))

    def violation_and_velocity(
        self,
        start: int,
        end: int,
        dt: float,
        frames: NDArray,
        ground: GroundModel,
    ) -> tuple[NDArray, NDArray]:
        """
        Per-waypoint contact violation and contact velocity.

        The violation is 4D: offset from the nearest ground point, and
        ``1 - cos`` of the angle between the contact's local z axis and the
        ground normal.

        Returns:
            violations: (N, 4), zero outside start..end
            velocities: (N, 3), zero outside start..end
        """
        num_points = frames.shape[0]
        positions = frames[:, self._segment, :3, 3]
        violations = np.zeros((num_points, 4))
        for point in range(start, end + 1):
            ground_point, normal = ground.nearest_ground(positions[point])
            up = frames[point, self._segment, :3, 2]
            violations[point, :3] = positions[point] - ground_point
            violations[point, 3] = 1.0 - float(np.dot(up, normal))
        velocities = vector_velocities(positions, dt, start, end)
        return violations, velocities
