"""Friction-cone constrained contact force distribution."""

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import nnls


def contact_wrench(contact_positions: NDArray, forces: NDArray) -> NDArray:
    """Summed wrench [force, torque about the origin] of point forces."""
    wrench = np.zeros(6)
    if len(forces) == 0:
        return wrench
    wrench[:3] = forces.sum(axis=0)
    wrench[3:] = np.cross(contact_positions, forces).sum(axis=0)
    return wrench


def friction_pyramid(parent_frame: NDArray, friction_coefficient: float) -> NDArray:
    """
    Generators of a four-sided friction pyramid, shape (4, 3).

    The pyramid opens around the local z axis of ``parent_frame``.
    """
    R = parent_frame[:3, :3]
    normal, t1, t2 = R[:, 2], R[:, 0], R[:, 1]
    mu = friction_coefficient
    return np.array([
        normal + mu * t1,
        normal - mu * t1,
        normal + mu * t2,
        normal - mu * t2,
    ])


class ContactForceSolver:
    """
    Per-waypoint contact force solve.

    With activations a_i, contact i may apply f_i = a_i · Σ_k β_ik g_ik,
    where g_ik are friction pyramid generators and β ≥ 0. The solve minimizes

        ‖Σ_i [f_i; p_i × f_i] − w_target‖² + ε ‖β‖²

    as a non-negative least-squares problem. Since β = 0 is admissible,
    ε ‖β‖² never exceeds ‖w_target‖², which bounds every contact force by

        ‖f_i‖ ≤ a_i · 2 √(1 + μ²) ‖w_target‖ / √ε

    so force vanishes linearly with activation. Activations at or below the
    threshold give exactly zero force.
    """

    NUM_GENERATORS = 4

    def __init__(self, regularization: float = 1e-2, activation_threshold: float = 1e-9):
        if regularization <= 0.0:
            raise ValueError(f"Force regularization must be positive, got {regularization}")
        self.regularization = regularization
        self.activation_threshold = activation_threshold

    def force_per_activation(
        self, friction_coefficient: float, target_wrench: NDArray
    ) -> float:
        """Upper bound on ‖f_i‖ / a_i for any contact solving ``target_wrench``."""
        return float(
            2.0
            * np.sqrt(1.0 + friction_coefficient ** 2)
            * np.linalg.norm(target_wrench)
            / np.sqrt(self.regularization)
        )

    def solve(
        self,
        friction_coefficient: float,
        contact_positions: NDArray,
        target_wrench: NDArray,
        contact_activations: NDArray,
        contact_parent_frames: NDArray,
    ) -> NDArray:
        """
        Distribute contact forces to realize ``target_wrench``.

        Args:
            friction_coefficient: Pyramid half-width scale μ
            contact_positions: (C, 3) world contact positions
            target_wrench: (6,) wrench the contacts should supply
            contact_activations: (C,) activations, expected non-negative
            contact_parent_frames: (C, 4, 4) parent segment transforms

        Returns:
            (C, 3) contact forces
        """
        num_contacts = len(contact_activations)
        forces = np.zeros((num_contacts, 3))
        active = [
            i for i in range(num_contacts)
            if contact_activations[i] > self.activation_threshold
        ]
        if not active:
            return forces

        k = self.NUM_GENERATORS
        generators = {}
        A = np.zeros((6, k * len(active)))
        for col, i in enumerate(active):
            g = contact_activations[i] * friction_pyramid(
                contact_parent_frames[i], friction_coefficient
            )
            generators[i] = g
            block = slice(col * k, (col + 1) * k)
            A[:3, block] = g.T
            A[3:, block] = np.cross(contact_positions[i], g).T

        n = A.shape[1]
        A_aug = np.vstack([A, np.sqrt(self.regularization) * np.eye(n)])
        b_aug = np.concatenate([target_wrench, np.zeros(n)])
        beta, _ = nnls(A_aug, b_aug)

        for col, i in enumerate(active):
            forces[i] = beta[col * k:(col + 1) * k] @ generators[i]
        return forces
