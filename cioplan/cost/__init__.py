"""Trajectory cost terms."""

from cioplan.cost.smoothness import SmoothnessCost, build_smoothness_costs
from cioplan.cost.accumulator import CostAccumulator

__all__ = [
    "SmoothnessCost",
    "build_smoothness_costs",
    "CostAccumulator",
]
