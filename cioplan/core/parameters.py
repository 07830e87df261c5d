"""
Planning parameters.

Loaded once per planning attempt and never mutated during evaluation.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging
import math

import yaml

from cioplan.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

COST_TERMS = ("smoothness", "contact_invariant", "physics_violation", "collision")


def _default_cost_weights() -> Dict[str, float]:
    return {term: 1.0 for term in COST_TERMS}


def _default_tolerances() -> Dict[str, float]:
    return {
        "smoothness": math.inf,
        "contact_invariant": 1e-2,
        "physics_violation": 1e-2,
        "collision": 1e-7,
    }


@dataclass(frozen=True)
class PlanningParameters:
    """
    Read-only configuration of one planning attempt.

    Mapping fields take part in equality but not in the hash.
    """

    # Discretization
    discretization: float = 0.05
    num_contact_phases: int = 4
    phase_stride: int = 5

    # Smoothness
    smoothness_cost_velocity: float = 0.0
    smoothness_cost_acceleration: float = 1.0
    smoothness_cost_jerk: float = 0.0
    ridge_factor: float = 1e-5
    joint_costs: Dict[str, float] = field(default_factory=dict, hash=False)

    # Contacts and dynamics
    friction_coefficient: float = 0.5
    contact_velocity_weight: float = 16.0
    gravity_magnitude: float = 1.0  # relative units: 1.0 == body weight
    include_inertial_wrench: bool = False
    dynamic_groups: tuple = ("lower_body", "whole_body")
    initial_contact_value: float = 1.0
    force_regularization: float = 1e-2  # keeps contact force O(activation)
    activation_threshold: float = 1e-9

    # Aggregation
    cost_weights: Dict[str, float] = field(default_factory=_default_cost_weights, hash=False)
    feasibility_tolerances: Dict[str, float] = field(
        default_factory=_default_tolerances, hash=False
    )

    # Driver
    noise_scale: float = 0.01
    lbfgs_history: int = 10
    objective_delta: float = 1e-7
    max_iterations: Optional[int] = None

    log_interval: int = 1000

    def __post_init__(self):
        if self.num_contact_phases < 2:
            raise ConfigurationError(
                "num_contact_phases must be at least 2 to leave a free point"
            )
        if self.phase_stride < 1:
            raise ConfigurationError("phase_stride must be positive")
        if self.friction_coefficient < 0.0:
            raise ConfigurationError("friction_coefficient must be non-negative")
        if self.lbfgs_history < 1:
            raise ConfigurationError("lbfgs_history must be positive")
        if self.force_regularization <= 0.0:
            raise ConfigurationError("force_regularization must be positive")
        for name in ("cost_weights", "feasibility_tolerances"):
            unknown = set(getattr(self, name)) - set(COST_TERMS)
            if unknown:
                raise ConfigurationError(f"Unknown cost terms in {name}: {sorted(unknown)}")
        object.__setattr__(self, "dynamic_groups", tuple(self.dynamic_groups))
        object.__setattr__(
            self, "cost_weights", {**_default_cost_weights(), **self.cost_weights}
        )
        object.__setattr__(
            self,
            "feasibility_tolerances",
            {**_default_tolerances(), **self.feasibility_tolerances},
        )

    @property
    def num_points(self) -> int:
        """Waypoints in the trajectory, anchors included."""
        return self.num_contact_phases * self.phase_stride + 1

    def joint_cost(self, joint_name: str) -> float:
        return float(self.joint_costs.get(joint_name, 1.0))

    def derivative_costs(self, joint_name: str) -> tuple[float, float, float]:
        """Velocity, acceleration and jerk weights for one joint."""
        scale = self.joint_cost(joint_name)
        return (
            scale * self.smoothness_cost_velocity,
            scale * self.smoothness_cost_acceleration,
            scale * self.smoothness_cost_jerk,
        )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PlanningParameters":
        """
        Build parameters from a mapping, rejecting unknown keys.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        if not isinstance(config, dict):
            raise ConfigurationError("Planning parameters must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown planning parameters: {sorted(unknown)}")
        try:
            return cls(**config)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_yaml(
        cls, path: Union[str, Path], section: Optional[str] = None
    ) -> "PlanningParameters":
        """
        Load parameters from a YAML file.

        Args:
            path: YAML file
            section: Optional top-level key holding the parameters
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with open(path, "r") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if section is not None:
            if section not in config:
                raise ConfigurationError(f"Section '{section}' not found in {path}")
            config = config[section] or {}

        logger.info(f"Loaded planning parameters from {path}")
        return cls.from_dict(config)
