"""Contact points, rigid-body aggregation and contact force distribution."""

from cioplan.dynamics.contact_point import ContactPoint
from cioplan.dynamics.rigid_body import RigidBodyAggregator, RigidBodySnapshot
from cioplan.dynamics.force_solver import ContactForceSolver, contact_wrench

__all__ = [
    "ContactPoint",
    "RigidBodyAggregator",
    "RigidBodySnapshot",
    "ContactForceSolver",
    "contact_wrench",
]
