"""Tests for the trajectory buffer."""

import numpy as np
import pytest

from cioplan.core.errors import NumericalDegenerate, PreconditionViolation
from cioplan.core.parameters import PlanningParameters
from cioplan.core.robot import JointLimit, PlanningGroup
from cioplan.core.trajectory import (
    TrajectoryBuffer,
    clamp_joint_limits,
    quintic_hermite_basis,
)


START = np.array([0.0, 0.8, -0.2, 0.2])
GOAL = np.array([0.3, 0.9, -0.1, 0.4])


def test_buffer_dimensions(group, params):
    buffer = TrajectoryBuffer(group, params, START, GOAL)

    assert buffer.num_points == 3 * 2 + 1
    assert buffer.positions.shape == (7, 4)
    assert buffer.full_positions.shape == (7, 4)
    assert buffer.free_points.shape == (4, 4)
    assert buffer.contact_values.shape == (4, 2)
    assert buffer.num_free_points == 2
    assert np.allclose(buffer.contact_values, 10.0)


def test_interpolation_passes_through_knots(group, params):
    buffer = TrajectoryBuffer(group, params, START, GOAL)
    buffer.free_points[1] += 0.05
    buffer.free_velocities[2] = 0.3
    buffer.update_from_free_points()

    for phase in range(buffer.num_contact_phases + 1):
        point = buffer.phase_start(phase)
        assert np.allclose(buffer.positions[point], buffer.free_points[phase])

    assert np.allclose(buffer.positions[0], START)
    assert np.allclose(buffer.positions[-1], GOAL)


def test_constant_knots_give_constant_trajectory(group, params):
    buffer = TrajectoryBuffer(group, params, START, START)

    assert np.allclose(buffer.positions, START)
    assert np.allclose(buffer.free_velocities, 0.0)


def test_hermite_basis_partition_of_unity():
    """Position weights sum to one, so constants are reproduced."""
    h = quintic_hermite_basis(5)

    assert h.shape == (6, 4)
    assert np.allclose(h[:, 0] + h[:, 3], 1.0)
    assert np.allclose(h[0], [1.0, 0.0, 0.0, 0.0])
    assert np.allclose(h[-1], [0.0, 0.0, 0.0, 1.0])


def test_contact_phase_mapping(group, params):
    buffer = TrajectoryBuffer(group, params, START, GOAL)

    phases = [buffer.contact_phase(i) for i in range(buffer.num_points)]
    assert phases == [0, 0, 1, 1, 2, 2, 3]


def test_clamp_is_idempotent():
    rng = np.random.default_rng(0)
    positions = rng.uniform(-2.0, 2.0, (10, 3))
    limits = (JointLimit(-1.0, 1.0), None, JointLimit(0.0, 0.5))

    once = positions.copy()
    clamp_joint_limits(once, limits, 1, 8)
    twice = once.copy()
    count = clamp_joint_limits(twice, limits, 1, 8)

    assert count == 0
    assert np.array_equal(once, twice)
    # unlimited joint and anchors untouched
    assert np.array_equal(once[:, 1], positions[:, 1])
    assert np.array_equal(once[0], positions[0])
    assert np.array_equal(once[9], positions[9])
    assert np.all(once[1:9, 0] <= 1.0) and np.all(once[1:9, 0] >= -1.0)


def test_clamp_leaves_in_limit_trajectory_unchanged():
    positions = np.linspace(-0.5, 0.5, 12).reshape(6, 2)
    limits = (JointLimit(-1.0, 1.0), JointLimit(-1.0, 1.0))

    clamped = positions.copy()
    count = clamp_joint_limits(clamped, limits, 1, 4)

    assert count == 0
    assert np.array_equal(clamped, positions)


def test_buffer_clamp_exempts_anchors(robot, params):
    group = PlanningGroup.from_robot(
        robot, "whole_body", ("base_x", "base_z"), joint_limits={"base_z": (0.0, 1.0)}
    )
    start = np.array([0.0, 1.5, -0.2, 0.2])
    buffer = TrajectoryBuffer(group, params, start, np.array([0.0, 1.5]))

    clamped = buffer.clamp_to_joint_limits()

    assert clamped == buffer.num_points - 2
    assert buffer.positions[0, 1] == 1.5
    assert buffer.positions[-1, 1] == 1.5
    assert np.all(buffer.positions[1:-1, 1] == 1.0)


def test_full_trajectory_embedding(robot, params):
    group = PlanningGroup.from_robot(robot, "upper", ("base_z", "base_x"))
    buffer = TrajectoryBuffer(group, params, START, np.array([1.0, 0.5]))

    buffer.update_full()

    assert np.allclose(buffer.full_positions[:, 1], buffer.positions[:, 0])
    assert np.allclose(buffer.full_positions[:, 0], buffer.positions[:, 1])
    # non-group joints stay at their start values
    assert np.all(buffer.full_positions[:, 2] == START[2])
    assert np.all(buffer.full_positions[:, 3] == START[3])


def test_write_free_parameters(group, params):
    buffer = TrajectoryBuffer(group, params, START, GOAL)
    positions = np.full((2, 4), 0.1)
    velocities = np.full((2, 4), 0.2)
    activations = np.full((3, 2), 0.3)

    buffer.write_free_parameters(positions, velocities, activations)

    assert np.all(buffer.free_points[1:3] == 0.1)
    assert np.allclose(buffer.free_points[0], START)
    assert np.allclose(buffer.free_points[3], GOAL)
    assert np.all(buffer.free_velocities[1:3] == 0.2)
    assert np.all(buffer.contact_values[:3] == 0.3)
    assert np.all(buffer.contact_values[3] == 10.0)


def test_zero_discretization_is_degenerate(group):
    params = PlanningParameters(discretization=0.0)
    with pytest.raises(NumericalDegenerate):
        TrajectoryBuffer(group, params, START, GOAL)


def test_goal_shape_mismatch(group, params):
    with pytest.raises(PreconditionViolation):
        TrajectoryBuffer(group, params, START, GOAL[:2])
