"""Derivative-free quasi-Newton driver over the evaluation engine."""

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import time
import numpy as np
from numpy.typing import NDArray
from scipy.optimize import OptimizeResult, minimize

from cioplan.optimization.evaluation import EvaluationEngine
from cioplan.optimization.variables import VariablePacker

logger = logging.getLogger(__name__)


@dataclass
class OptimizationResult:
    """Outcome of one optimizer invocation."""

    full_trajectory: NDArray    # (N, F) full-robot joint trajectory
    trajectory: NDArray         # (N, J) group trajectory
    contact_values: NDArray     # (P+1, C) activations per phase
    waypoint_costs: NDArray     # (N,)
    cost: float
    feasible: bool
    variables: NDArray
    evaluations: int
    iterations: int
    message: str
    solve_time_ms: float


class ObjectiveDeltaStop:
    """L-BFGS-B callback stopping once the objective changes by less than ``delta``."""

    def __init__(self, delta: float):
        self.delta = delta
        self.iterations = 0
        self._previous: Optional[float] = None

    def __call__(self, intermediate_result: OptimizeResult) -> None:
        value = float(intermediate_result.fun)
        self.iterations += 1
        logger.debug(f"iteration {self.iterations}: objective {value:.9g}")
        if self._previous is not None and abs(self._previous - value) < self.delta:
            raise StopIteration
        self._previous = value


class OptimizerDriver:
    """
    Runs one L-BFGS-B search with finite-difference gradients per call.

    Restart and retry policies belong to the caller.
    """

    def __init__(
        self,
        engine: EvaluationEngine,
        rng: Optional[np.random.Generator] = None,
    ):
        self.engine = engine
        self.params = engine.params
        self.packer = VariablePacker.for_buffer(engine.buffer)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.evaluations = 0

    def objective(self, variables: NDArray) -> float:
        """Cost of a flat candidate vector."""
        self.evaluations += 1
        cost, _ = self.engine.evaluate(*self.packer.unpack(variables))
        return cost

    def scipy_interface(self) -> Callable[[NDArray], float]:
        """Objective function for scipy.optimize.minimize."""
        return self.objective

    def initial_variables(self, add_noise: bool = False) -> NDArray:
        """Pack the current buffer, optionally perturbed by N(0, I) noise."""
        variables = self.packer.pack(self.engine.buffer)
        if add_noise:
            noise = self.rng.standard_normal(variables.shape)
            variables = variables + self.params.noise_scale * noise
        return variables

    def optimize(self, add_noise: bool = False) -> OptimizationResult:
        """
        Minimize the trajectory cost from the current buffer contents.

        Args:
            add_noise: Perturb the starting point to escape local minima

        Returns:
            OptimizationResult with the buffer left at the best point found
        """
        x0 = self.initial_variables(add_noise)
        stop = ObjectiveDeltaStop(self.params.objective_delta)
        options = {"maxcor": self.params.lbfgs_history, "ftol": 0.0}
        if self.params.max_iterations is not None:
            options["maxiter"] = self.params.max_iterations

        logger.info(
            f"Optimizing {self.packer.size} variables "
            f"({self.engine.num_free_points} free points, {self.engine.num_contacts} contacts)"
        )
        start_evaluations = self.evaluations
        t0 = time.perf_counter()
        result = minimize(
            self.scipy_interface(),
            x0,
            method="L-BFGS-B",
            callback=stop,
            options=options,
        )
        solve_time_ms = (time.perf_counter() - t0) * 1000.0

        # leave the buffer at the returned point, not at the last probe
        cost = self.objective(result.x)
        engine = self.engine
        engine.cost_accumulator.log_summary(engine.iteration)
        logger.info(
            f"Optimization finished after {stop.iterations} iterations, "
            f"{self.evaluations - start_evaluations} evaluations, "
            f"{solve_time_ms:.1f} ms: {result.message}"
        )

        buffer = engine.buffer
        return OptimizationResult(
            full_trajectory=buffer.full_positions.copy(),
            trajectory=buffer.positions.copy(),
            contact_values=buffer.contact_values.copy(),
            waypoint_costs=engine.cost_accumulator.waypoint_costs.copy(),
            cost=cost,
            feasible=engine.is_feasible,
            variables=np.asarray(result.x, dtype=float).copy(),
            evaluations=self.evaluations - start_evaluations,
            iterations=stop.iterations,
            message=str(result.message),
            solve_time_ms=solve_time_ms,
        )
