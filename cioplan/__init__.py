"""
cioplan: contact-invariant trajectory optimization for articulated bodies.

This library evaluates and optimizes joint trajectories against a composite
cost built from:
- Smoothness of the joint trajectory
- Contact invariance of scheduled end-effector contacts
- Physics violation of a friction-cone constrained contact force solve
- Collision penetration
"""

__version__ = "0.1.0"

from cioplan.core.parameters import PlanningParameters
from cioplan.core.robot import RobotModel, Segment, PlanningGroup
from cioplan.core.trajectory import TrajectoryBuffer
from cioplan.optimization.evaluation import EvaluationEngine
from cioplan.optimization.driver import OptimizerDriver, OptimizationResult

__all__ = [
    "PlanningParameters",
    "RobotModel",
    "Segment",
    "PlanningGroup",
    "TrajectoryBuffer",
    "EvaluationEngine",
    "OptimizerDriver",
    "OptimizationResult",
]
