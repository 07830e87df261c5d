"""Shared fixtures: a floating point-mass body with two planar feet."""

import numpy as np
import pytest

from cioplan.core.parameters import PlanningParameters
from cioplan.core.ports import CollisionContact
from cioplan.core.robot import PlanningGroup, RobotModel, Segment
from cioplan.core.trajectory import TrajectoryBuffer
from cioplan.optimization.evaluation import EvaluationEngine

JOINTS = ("base_x", "base_z", "left_x", "right_x")

# base at (x, 0, z); feet on the ground at (left_x, 0, 0) and (right_x, 0, 0)
STANCE = np.array([0.0, 0.8, -0.2, 0.2])


def translation(x, y, z):
    frame = np.eye(4)
    frame[:3, 3] = (x, y, z)
    return frame


class BipedKinematics:
    """Segments: world, body (massed), left_foot, right_foot (children of body)."""

    num_segments = 4

    def __init__(self):
        self.full_calls = 0
        self.partial_calls = 0

    def _solve(self, q):
        frames = np.array([
            np.eye(4),
            translation(q[0], 0.0, q[1]),
            translation(q[2], 0.0, 0.0),
            translation(q[3], 0.0, 0.0),
        ])
        positions = np.zeros((len(q), 3))
        axes = np.tile([1.0, 0.0, 0.0], (len(q), 1))
        return positions, axes, frames

    def full_kinematics(self, q):
        self.full_calls += 1
        return self._solve(q)

    def partial_kinematics(self, q):
        self.partial_calls += 1
        return self._solve(q)


class FloorCollision:
    """Reports a penetration whenever the body drops below ``clearance``."""

    def __init__(self, clearance=0.5):
        self.clearance = clearance

    def check_collisions(self, q):
        if q[1] < self.clearance:
            return [CollisionContact(depth=self.clearance - q[1], location=np.array([q[0], 0.0, q[1]]))]
        return []


@pytest.fixture
def robot():
    return RobotModel(
        name="point_biped",
        segments=(
            Segment("world"),
            Segment("body", parent=0, mass=2.0, inertia=0.1 * np.eye(3)),
            Segment("left_foot", parent=1),
            Segment("right_foot", parent=1),
        ),
        joint_names=JOINTS,
    )


@pytest.fixture
def params():
    return PlanningParameters(
        discretization=0.1,
        num_contact_phases=3,
        phase_stride=2,
        initial_contact_value=10.0,
        log_interval=0,
    )


@pytest.fixture
def group(robot):
    return PlanningGroup.from_robot(
        robot,
        "whole_body",
        JOINTS,
        joint_limits={"base_z": (0.5, 1.2), "base_x": (-1.0, 1.0)},
        contact_links=("left_foot", "right_foot"),
    )


@pytest.fixture
def kinematics():
    return BipedKinematics()


@pytest.fixture
def make_engine(robot, group, params, kinematics):
    """Factory building a buffer and engine; keyword overrides are forwarded."""

    def _make(
        start=STANCE,
        goal=None,
        group=group,
        params=params,
        collision=None,
        ground=None,
        validity_checks=(),
    ):
        goal = np.asarray(start)[list(group.full_joint_indices)] if goal is None else goal
        buffer = TrajectoryBuffer(group, params, start, goal)
        return EvaluationEngine(
            robot,
            group,
            buffer,
            params,
            kinematics,
            collision=collision,
            ground=ground,
            validity_checks=validity_checks,
        )

    return _make


@pytest.fixture
def free_parameters():
    """Current free parameters of an engine's buffer, as evaluate() expects them."""

    def _params(engine):
        buffer = engine.buffer
        F = buffer.num_free_points
        return (
            buffer.free_points[1:F + 1].copy(),
            buffer.free_velocities[1:F + 1].copy(),
            buffer.contact_values[0:F + 1].copy(),
        )

    return _params
