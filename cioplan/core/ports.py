"""Protocols for the external collaborators of the evaluation engine."""

from typing import Protocol, NamedTuple, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray


KinematicsResult = Tuple[NDArray, NDArray, NDArray]


class KinematicsPort(Protocol):
    """Forward kinematics service; deterministic for identical input."""

    @property
    def num_segments(self) -> int:
        """Number of kinematic segments S."""
        ...

    def full_kinematics(self, joint_array: NDArray) -> KinematicsResult:
        """
        Recompute every segment frame.

        Args:
            joint_array: Full-robot joint values (F,)

        Returns:
            joint_positions: (F, 3) world joint origins
            joint_axes: (F, 3) world joint axes
            frames: (S, 4, 4) world segment transforms
        """
        ...

    def partial_kinematics(self, joint_array: NDArray) -> KinematicsResult:
        """Same as full_kinematics, may reuse frames of unaffected segments."""
        ...


class CollisionContact(NamedTuple):
    """A single penetrating pair reported by a collision port."""

    depth: float
    location: Optional[NDArray] = None


class CollisionPort(Protocol):
    """Collision checking against the environment model."""

    def check_collisions(
        self, joint_array: NDArray
    ) -> Sequence[CollisionContact]:
        """
        Report penetrating pairs for a full-robot configuration.

        An empty sequence means collision free. ``None`` is not a valid answer.
        """
        ...


class GroundModel(Protocol):
    """Contact surface model used by contact points."""

    def nearest_ground(self, position: NDArray) -> Tuple[NDArray, NDArray]:
        """Closest ground point and its unit normal for a world position."""
        ...


class NullCollisionChecker:
    """Collision port for scenes without obstacles."""

    def check_collisions(self, joint_array: NDArray) -> Sequence[CollisionContact]:
        return ()


class FlatGround:
    """Horizontal ground plane z = height."""

    def __init__(self, height: float = 0.0):
        self.height = height
        self._normal = np.array([0.0, 0.0, 1.0])

    def nearest_ground(self, position: NDArray) -> Tuple[NDArray, NDArray]:
        point = np.array([position[0], position[1], self.height])
        return point, self._normal.copy()
