"""Flat optimization vector layout."""

import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import require_shape
from cioplan.core.trajectory import TrajectoryBuffer


class VariablePacker:
    """
    Packs free points and phase activations into one flat vector.

    Layout: activations of phase 0, then for each free point k = 1..P-1
    its joint positions, joint velocities and the activations of phase k.
    Unpacking folds activations through ``abs`` so the search can stay
    unconstrained.

    The unpack buffers belong to the packer; arrays returned by ``unpack``
    are overwritten by the next call.
    """

    def __init__(self, num_joints: int, num_contacts: int, num_contact_phases: int):
        self.num_joints = num_joints
        self.num_contacts = num_contacts
        self.num_contact_phases = num_contact_phases
        self.num_free_points = num_contact_phases - 1

        self.parameters = np.zeros((self.num_free_points, num_joints))
        self.vel_parameters = np.zeros((self.num_free_points, num_joints))
        self.contact_parameters = np.zeros((num_contact_phases, num_contacts))

    @classmethod
    def for_buffer(cls, buffer: TrajectoryBuffer) -> "VariablePacker":
        return cls(buffer.num_joints, buffer.num_contacts, buffer.num_contact_phases)

    @property
    def size(self) -> int:
        J, C = self.num_joints, self.num_contacts
        return C + self.num_free_points * (2 * J + C)

    def pack_arrays(
        self, free_points: NDArray, free_velocities: NDArray, contact_values: NDArray
    ) -> NDArray:
        """
        Flatten knot arrays.

        Args:
            free_points: (P+1, J) positions at phase boundaries
            free_velocities: (P+1, J) velocities at phase boundaries
            contact_values: (P+1, C) or (P, C) activations per phase

        Returns:
            Vector of length ``size``
        """
        J, C, F = self.num_joints, self.num_contacts, self.num_free_points
        variables = np.empty(self.size)
        variables[:C] = contact_values[0]
        write = C
        for i in range(1, F + 1):
            variables[write:write + J] = free_points[i]
            write += J
            variables[write:write + J] = free_velocities[i]
            write += J
            variables[write:write + C] = contact_values[i]
            write += C
        return variables

    def pack(self, buffer: TrajectoryBuffer) -> NDArray:
        return self.pack_arrays(
            buffer.free_points, buffer.free_velocities, buffer.contact_values
        )

    def unpack(self, variables: NDArray) -> tuple[NDArray, NDArray, NDArray]:
        """
        Split a flat vector into engine parameters.

        Returns:
            parameters (P-1, J), vel_parameters (P-1, J), contact_parameters (P, C)
        """
        variables = np.asarray(variables, dtype=float)
        require_shape("variables", variables, (self.size,))
        J, C, F = self.num_joints, self.num_contacts, self.num_free_points
        self.contact_parameters[0] = np.abs(variables[:C])
        read = C
        for i in range(F):
            self.parameters[i] = variables[read:read + J]
            read += J
            self.vel_parameters[i] = variables[read:read + J]
            read += J
            self.contact_parameters[i + 1] = np.abs(variables[read:read + C])
            read += C
        return self.parameters, self.vel_parameters, self.contact_parameters
