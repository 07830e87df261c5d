"""Core abstractions: ports, robot model, parameters and trajectory storage."""

from cioplan.core.errors import (
    CioplanError,
    PreconditionViolation,
    NumericalDegenerate,
    ExternalPortFailure,
    ConfigurationError,
)
from cioplan.core.ports import (
    KinematicsPort,
    CollisionPort,
    CollisionContact,
    GroundModel,
    NullCollisionChecker,
    FlatGround,
)
from cioplan.core.robot import Segment, RobotModel, JointLimit, PlanningGroup
from cioplan.core.parameters import PlanningParameters
from cioplan.core.trajectory import TrajectoryBuffer, clamp_joint_limits

__all__ = [
    "CioplanError",
    "PreconditionViolation",
    "NumericalDegenerate",
    "ExternalPortFailure",
    "ConfigurationError",
    "KinematicsPort",
    "CollisionPort",
    "CollisionContact",
    "GroundModel",
    "NullCollisionChecker",
    "FlatGround",
    "Segment",
    "RobotModel",
    "JointLimit",
    "PlanningGroup",
    "PlanningParameters",
    "TrajectoryBuffer",
    "clamp_joint_limits",
]
