"""Aggregation of per-waypoint cost terms."""

from typing import Dict, Mapping
import logging
import numpy as np
from numpy.typing import NDArray

from cioplan.core.parameters import COST_TERMS

logger = logging.getLogger(__name__)


class CostAccumulator:
    """
    Weighted sum of the smoothness, contact-invariant, physics-violation and
    collision terms, with a feasibility flag.

    Mutated once per evaluation by ``compute``; read afterwards.
    """

    def __init__(
        self,
        num_points: int,
        weights: Mapping[str, float],
        tolerances: Mapping[str, float],
    ):
        self.num_points = num_points
        self.weights = {term: float(weights[term]) for term in COST_TERMS}
        self.tolerances = {term: float(tolerances[term]) for term in COST_TERMS}
        self.term_costs: Dict[str, NDArray] = {
            term: np.zeros(num_points) for term in COST_TERMS
        }
        self.waypoint_costs = np.zeros(num_points)
        self._feasible = False

    def compute(self, terms: Mapping[str, NDArray]) -> float:
        """
        Combine raw per-waypoint term values.

        Args:
            terms: Mapping term name -> (N,) unweighted values. Missing terms
                contribute zero.

        Returns:
            Trajectory cost
        """
        self.waypoint_costs = np.zeros(self.num_points)
        feasible = True
        for term in COST_TERMS:
            raw = terms.get(term)
            if raw is None:
                weighted = np.zeros(self.num_points)
            else:
                weighted = self.weights[term] * np.asarray(raw, dtype=float)
            self.term_costs[term] = weighted
            self.waypoint_costs += weighted
            if weighted.sum() > self.tolerances[term]:
                feasible = False
        self._feasible = feasible
        return self.trajectory_cost

    def is_feasible(self) -> bool:
        return self._feasible

    @property
    def trajectory_cost(self) -> float:
        return float(self.waypoint_costs.sum())

    def waypoint_cost(self, point: int) -> float:
        return float(self.waypoint_costs[point])

    def term_cost(self, term: str) -> float:
        return float(self.term_costs[term].sum())

    def summary(self) -> Dict[str, float]:
        """Weighted totals per term plus the trajectory total."""
        totals = {term: self.term_cost(term) for term in COST_TERMS}
        totals["total"] = self.trajectory_cost
        return totals

    def log_summary(self, iteration: int, level: int = logging.INFO) -> None:
        totals = self.summary()
        breakdown = " ".join(f"{term}={totals[term]:.6g}" for term in COST_TERMS)
        logger.log(
            level,
            f"[{iteration}] cost={totals['total']:.6g} {breakdown} "
            f"feasible={self._feasible}",
        )
