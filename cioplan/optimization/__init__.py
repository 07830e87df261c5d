"""Evaluation engine and optimizer driver."""

from cioplan.optimization.evaluation import EvaluationEngine
from cioplan.optimization.variables import VariablePacker
from cioplan.optimization.driver import OptimizerDriver, OptimizationResult

__all__ = [
    "EvaluationEngine",
    "VariablePacker",
    "OptimizerDriver",
    "OptimizationResult",
]
