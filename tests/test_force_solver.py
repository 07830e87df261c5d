import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from cioplan.dynamics.force_solver import (
    ContactForceSolver,
    contact_wrench,
    friction_pyramid,
)

FEET = np.array([[-0.2, 0.0, 0.0], [0.2, 0.0, 0.0]])
FLAT = np.tile(np.eye(4), (2, 1, 1))


def _support_target(com):
    """Wrench the contacts must supply to hold a unit weight at ``com``."""
    gravity = np.array([0.0, 0.0, -1.0])
    return -np.concatenate([gravity, np.cross(com, gravity)])


def test_contact_wrench_moments_about_origin():
    positions = np.array([[1.0, 0.0, 0.0]])
    forces = np.array([[0.0, 0.0, 2.0]])

    wrench = contact_wrench(positions, forces)

    assert np.allclose(wrench, [0.0, 0.0, 2.0, 0.0, -2.0, 0.0])


def test_contact_wrench_without_contacts():
    assert np.array_equal(contact_wrench(np.zeros((0, 3)), np.zeros((0, 3))), np.zeros(6))


def test_friction_pyramid_follows_parent_frame():
    frame = np.eye(4)
    frame[:3, :3] = Rotation.from_euler("x", 90, degrees=True).as_matrix()
    generators = friction_pyramid(frame, 0.5)

    normal = frame[:3, 2]
    assert generators.shape == (4, 3)
    assert np.allclose(generators @ normal, 1.0)
    assert np.allclose(generators.sum(axis=0), 4.0 * normal)


def test_symmetric_stance_splits_weight():
    solver = ContactForceSolver()
    target = _support_target(np.array([0.0, 0.0, 0.8]))

    forces = solver.solve(0.5, FEET, target, np.array([10.0, 10.0]), FLAT)

    assert np.allclose(forces, [[0.0, 0.0, 0.5], [0.0, 0.0, 0.5]], atol=1e-4)
    residual = contact_wrench(FEET, forces) - target
    assert np.linalg.norm(residual) < 1e-4


def test_inactive_contact_gets_no_force():
    solver = ContactForceSolver()
    target = _support_target(np.array([0.2, 0.0, 0.8]))

    forces = solver.solve(0.5, FEET, target, np.array([0.0, 10.0]), FLAT)

    assert np.array_equal(forces[0], np.zeros(3))
    assert forces[1, 2] > 0.0


def test_all_inactive_returns_zero():
    solver = ContactForceSolver()
    forces = solver.solve(
        0.5, FEET, _support_target(np.zeros(3)), np.zeros(2), FLAT
    )

    assert np.array_equal(forces, np.zeros((2, 3)))


def test_forces_stay_inside_friction_pyramid():
    rng = np.random.default_rng(7)
    solver = ContactForceSolver()
    mu = 0.4

    for _ in range(10):
        target = rng.normal(size=6)
        activations = rng.uniform(0.1, 5.0, size=2)
        forces = solver.solve(mu, FEET, target, activations, FLAT)

        assert np.all(forces[:, 2] >= -1e-12)
        tangential = np.abs(forces[:, 0]) + np.abs(forces[:, 1])
        assert np.all(tangential <= mu * forces[:, 2] + 1e-9)


@pytest.mark.parametrize("activation", [1e-1, 1e-2, 1e-3, 1e-4])
def test_force_vanishes_linearly_with_activation(activation):
    solver = ContactForceSolver()
    target = _support_target(np.array([0.0, 0.0, 0.8]))
    bound = solver.force_per_activation(0.5, target)

    forces = solver.solve(0.5, FEET, target, np.full(2, activation), FLAT)

    assert np.all(np.linalg.norm(forces, axis=1) <= bound * activation)


def test_weak_contacts_carry_a_small_share_of_the_weight():
    solver = ContactForceSolver()
    target = _support_target(np.array([0.0, 0.0, 0.8]))

    planted = solver.solve(0.5, FEET, target, np.ones(2), FLAT)
    grazing = solver.solve(0.5, FEET, target, np.full(2, 1e-2), FLAT)

    assert np.allclose(planted[:, 2], 0.5, atol=1e-2)
    assert np.all(grazing[:, 2] < 0.1 * planted[:, 2])


def test_regularization_must_be_positive():
    with pytest.raises(ValueError):
        ContactForceSolver(regularization=0.0)
