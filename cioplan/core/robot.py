"""Robot description consumed by the evaluation engine."""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import ConfigurationError


@dataclass(frozen=True, eq=False)
class Segment:
    """Rigid segment of the kinematic tree; compared by identity."""

    name: str
    parent: Optional[int] = None        # index of parent segment
    mass: float = 0.0
    cog: NDArray = field(default_factory=lambda: np.zeros(3))       # local CoG
    inertia: NDArray = field(default_factory=lambda: np.zeros((3, 3)))  # about CoG, local axes


@dataclass(frozen=True, eq=False)
class MassSegments:
    """Index-stable arrays over the segments that carry mass."""

    indices: NDArray    # (M,) segment indices
    masses: NDArray     # (M,)
    cogs: NDArray       # (M, 3)
    inertias: NDArray   # (M, 3, 3)

    @property
    def total_mass(self) -> float:
        return float(self.masses.sum())

    def __len__(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class RobotModel:
    """Segments and joints of the full robot."""

    name: str
    segments: tuple[Segment, ...]
    joint_names: tuple[str, ...]

    @property
    def num_segments(self) -> int:
        return len(self.segments)

    @property
    def num_joints(self) -> int:
        return len(self.joint_names)

    def segment_index(self, name: str) -> int:
        """Index of the segment called ``name``."""
        for i, segment in enumerate(self.segments):
            if segment.name == name:
                return i
        raise ConfigurationError(f"Unknown segment '{name}' in robot '{self.name}'")

    def joint_index(self, name: str) -> int:
        try:
            return self.joint_names.index(name)
        except ValueError:
            raise ConfigurationError(
                f"Unknown joint '{name}' in robot '{self.name}'"
            ) from None

    @cached_property
    def mass_segments(self) -> MassSegments:
        """Massed segments, built once; zero-mass segments are excluded."""
        massed = [i for i, s in enumerate(self.segments) if s.mass != 0.0]
        return MassSegments(
            indices=np.array(massed, dtype=int),
            masses=np.array([self.segments[i].mass for i in massed], dtype=float),
            cogs=np.array(
                [np.asarray(self.segments[i].cog, dtype=float) for i in massed]
            ).reshape(-1, 3),
            inertias=np.array(
                [np.asarray(self.segments[i].inertia, dtype=float) for i in massed]
            ).reshape(-1, 3, 3),
        )


@dataclass(frozen=True)
class JointLimit:
    lower: float
    upper: float


@dataclass(frozen=True)
class PlanningGroup:
    """Subset of robot joints being optimized, with its contacts."""

    name: str
    joint_names: tuple[str, ...]
    full_joint_indices: tuple[int, ...]
    joint_limits: tuple[Optional[JointLimit], ...]
    contact_links: tuple[str, ...] = ()

    @property
    def num_joints(self) -> int:
        return len(self.joint_names)

    @property
    def num_contacts(self) -> int:
        return len(self.contact_links)

    @classmethod
    def from_robot(
        cls,
        robot: RobotModel,
        name: str,
        joint_names: Sequence[str],
        joint_limits: Optional[dict] = None,
        contact_links: Sequence[str] = (),
    ) -> "PlanningGroup":
        """
        Build a group from joint names of ``robot``.

        Args:
            robot: Full robot model
            name: Group name (matched against dynamic groups)
            joint_names: Group joints, in optimization order
            joint_limits: Optional mapping joint name -> (lower, upper)
            contact_links: Segment names used as end-effector contacts
        """
        joint_limits = joint_limits or {}
        limits = []
        for joint in joint_names:
            bounds = joint_limits.get(joint)
            if bounds is None:
                limits.append(None)
                continue
            lower, upper = bounds
            if lower > upper:
                raise ConfigurationError(
                    f"Joint '{joint}' has lower limit {lower} above upper {upper}"
                )
            limits.append(JointLimit(float(lower), float(upper)))

        for link in contact_links:
            robot.segment_index(link)

        return cls(
            name=name,
            joint_names=tuple(joint_names),
            full_joint_indices=tuple(robot.joint_index(j) for j in joint_names),
            joint_limits=tuple(limits),
            contact_links=tuple(contact_links),
        )
