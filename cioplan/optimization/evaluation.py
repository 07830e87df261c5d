"""Trajectory evaluation engine."""

from typing import Callable, Optional, Sequence
import logging
import numpy as np
from numpy.typing import NDArray

from cioplan.core.errors import (
    CioplanError,
    ConfigurationError,
    ExternalPortFailure,
    PreconditionViolation,
    require_shape,
)
from cioplan.core.parameters import PlanningParameters
from cioplan.core.ports import (
    CollisionPort,
    FlatGround,
    GroundModel,
    KinematicsPort,
    NullCollisionChecker,
)
from cioplan.core.robot import PlanningGroup, RobotModel
from cioplan.core.trajectory import TrajectoryBuffer
from cioplan.cost.accumulator import CostAccumulator
from cioplan.cost.smoothness import build_smoothness_costs
from cioplan.dynamics.contact_point import ContactPoint
from cioplan.dynamics.force_solver import ContactForceSolver, contact_wrench
from cioplan.dynamics.rigid_body import RigidBodyAggregator, RigidBodySnapshot

logger = logging.getLogger(__name__)

ValidityCheck = Callable[[int, NDArray], bool]


def _call_port(port: str, fn: Callable, *args):
    """Invoke a port; any foreign exception becomes ExternalPortFailure."""
    try:
        return fn(*args)
    except CioplanError:
        raise
    except Exception as e:
        raise ExternalPortFailure(port, f"{type(e).__name__}: {e}") from e


class EvaluationEngine:
    """
    Maps free-waypoint parameters and contact activations to trajectory costs.

    One instance owns the trajectory buffer and all per-waypoint scratch
    arrays; they are overwritten on every call. Instances are not reentrant
    and must not be shared between threads.
    """

    def __init__(
        self,
        robot: RobotModel,
        group: PlanningGroup,
        buffer: TrajectoryBuffer,
        params: PlanningParameters,
        kinematics: KinematicsPort,
        collision: Optional[CollisionPort] = None,
        ground: Optional[GroundModel] = None,
        validity_checks: Sequence[ValidityCheck] = (),
    ):
        """
        Initialize the engine.

        Args:
            robot: Full robot model (segments and masses)
            group: Planning group being optimized
            buffer: Trajectory buffer of the current planning attempt
            params: Planning parameters
            kinematics: Forward kinematics port
            collision: Collision port (no obstacles if omitted)
            ground: Ground model for contact violations (z = 0 plane if omitted)
            validity_checks: Extra per-waypoint predicates (point, full configuration)
        """
        if kinematics.num_segments != robot.num_segments:
            raise ConfigurationError(
                f"Kinematics reports {kinematics.num_segments} segments, "
                f"robot '{robot.name}' has {robot.num_segments}"
            )
        if buffer.num_full_joints != robot.num_joints:
            raise ConfigurationError(
                f"Trajectory has {buffer.num_full_joints} joints, "
                f"robot '{robot.name}' has {robot.num_joints}"
            )

        self.robot = robot
        self.group = group
        self.buffer = buffer
        self.params = params
        self.kinematics = kinematics
        self.collision = collision if collision is not None else NullCollisionChecker()
        self.ground = ground if ground is not None else FlatGround()
        self.validity_checks = tuple(validity_checks)

        self.num_points = buffer.num_points
        self.num_joints = buffer.num_joints
        self.num_contacts = buffer.num_contacts
        self.num_free_points = buffer.num_free_points
        self.is_dynamic = group.name in params.dynamic_groups

        self.contact_points = [ContactPoint(link, robot) for link in group.contact_links]
        self.aggregator = RigidBodyAggregator(
            robot,
            params.discretization,
            gravity_magnitude=params.gravity_magnitude,
            include_inertial_wrench=params.include_inertial_wrench,
        )
        self.force_solver = ContactForceSolver(
            regularization=params.force_regularization,
            activation_threshold=params.activation_threshold,
        )
        self.smoothness_costs = build_smoothness_costs(
            self.num_points,
            params.discretization,
            [params.derivative_costs(joint) for joint in group.joint_names],
            params.ridge_factor,
        )
        self.cost_accumulator = CostAccumulator(
            self.num_points, params.cost_weights, params.feasibility_tolerances
        )

        N, S, F = self.num_points, robot.num_segments, robot.num_joints
        self.joint_positions = np.zeros((N, F, 3))
        self.joint_axes = np.zeros((N, F, 3))
        self.segment_frames = np.tile(np.eye(4), (N, S, 1, 1))

        self.state_validity = np.ones(N, dtype=bool)
        self.trajectory_validity = True
        self.state_collision_cost = np.zeros(N)
        self.state_contact_invariant_cost = np.zeros(N)
        self.state_physics_violation_cost = np.zeros(N)
        self.contact_forces = np.zeros((N, self.num_contacts, 3))
        self.rigid_body: Optional[RigidBodySnapshot] = None

        self.iteration = 0
        self.last_trajectory_feasible = False
        self._in_evaluation = False

    def begin_attempt(self) -> None:
        """Start a new planning attempt; the next call recomputes every frame."""
        self.iteration = 0

    @property
    def is_feasible(self) -> bool:
        return self.last_trajectory_feasible

    def evaluate(
        self,
        parameters: NDArray,
        vel_parameters: NDArray,
        contact_parameters: NDArray,
    ) -> tuple[float, NDArray]:
        """
        Evaluate one candidate.

        Args:
            parameters: Joint positions at free points (P-1, J)
            vel_parameters: Joint velocities at free points (P-1, J)
            contact_parameters: Activations per free phase (P, C)

        Returns:
            Trajectory cost and per-waypoint costs (N,)

        Raises:
            PreconditionViolation: On shape mismatch or reentrant call
            ExternalPortFailure: If the kinematics, collision or ground port fails
        """
        if self._in_evaluation:
            raise PreconditionViolation("EvaluationEngine.evaluate is not reentrant")

        F, J, C = self.num_free_points, self.num_joints, self.num_contacts
        require_shape("parameters", parameters, (F, J))
        require_shape("vel_parameters", vel_parameters, (F, J))
        require_shape("contact_parameters", contact_parameters, (F + 1, C))

        self._in_evaluation = True
        try:
            self.buffer.write_free_parameters(
                parameters, vel_parameters, contact_parameters
            )
            self.buffer.update_from_free_points()

            self.handle_joint_limits()
            self.update_full_trajectory()

            self.perform_forward_kinematics()
            self.compute_collision_costs()
            self.compute_trajectory_validity()

            if self.is_dynamic:
                self.compute_stability_costs()
            else:
                self.state_contact_invariant_cost[:] = 0.0
                self.state_physics_violation_cost[:] = 0.0

            cost = self.cost_accumulator.compute({
                "smoothness": self.compute_smoothness_costs(),
                "contact_invariant": self.state_contact_invariant_cost,
                "physics_violation": self.state_physics_violation_cost,
                "collision": self.state_collision_cost,
            })
            self.last_trajectory_feasible = (
                self.trajectory_validity and self.cost_accumulator.is_feasible()
            )

            self.iteration += 1
            if self.params.log_interval > 0 and self.iteration % self.params.log_interval == 0:
                self._log_progress()

            return cost, self.cost_accumulator.waypoint_costs.copy()
        finally:
            self._in_evaluation = False

    def handle_joint_limits(self) -> int:
        """Clamp interior waypoints into joint limits."""
        return self.buffer.clamp_to_joint_limits()

    def update_full_trajectory(self) -> None:
        self.buffer.update_full()

    def perform_forward_kinematics(self) -> None:
        """
        Roll out segment frames.

        The first evaluation of an attempt recomputes every waypoint so the
        anchor frames are set; later evaluations only touch the interior.
        """
        if self.iteration <= 0:
            points = range(0, self.num_points)
            solve = self.kinematics.full_kinematics
        else:
            points = range(1, self.num_points - 1)
            solve = self.kinematics.partial_kinematics

        S, F = self.robot.num_segments, self.robot.num_joints
        for i in points:
            result = _call_port("kinematics", solve, self.buffer.full_point(i).copy())
            try:
                positions, axes, frames = (np.asarray(r, dtype=float) for r in result)
            except (TypeError, ValueError) as e:
                raise ExternalPortFailure(
                    "kinematics", f"malformed result at waypoint {i}"
                ) from e
            if frames.shape != (S, 4, 4) or positions.size != 3 * F or axes.size != 3 * F:
                raise ExternalPortFailure(
                    "kinematics",
                    f"result shapes {positions.shape}, {axes.shape}, {frames.shape} "
                    f"at waypoint {i} do not match {F} joints and {S} segments",
                )
            self.joint_positions[i] = positions.reshape(F, 3)
            self.joint_axes[i] = axes.reshape(F, 3)
            self.segment_frames[i] = frames

    def compute_collision_costs(self) -> None:
        """Penetration depth sums for every waypoint, anchors included."""
        for i in range(self.num_points):
            contacts = _call_port(
                "collision", self.collision.check_collisions, self.buffer.full_point(i).copy()
            )
            try:
                depths = [float(contact[0]) for contact in contacts]
            except (TypeError, ValueError, IndexError) as e:
                raise ExternalPortFailure(
                    "collision", f"malformed answer at waypoint {i}: {contacts!r}"
                ) from e
            self.state_collision_cost[i] = sum(depths)
            self.state_validity[i] = len(depths) == 0

    def compute_trajectory_validity(self) -> None:
        self.trajectory_validity = True
        for i in range(self.num_points):
            valid = bool(self.state_validity[i])
            if valid and self.validity_checks:
                configuration = self.buffer.full_point(i)
                valid = all(check(i, configuration) for check in self.validity_checks)
            self.state_validity[i] = valid
            if not valid:
                self.trajectory_validity = False

    def compute_smoothness_costs(self) -> NDArray:
        costs = np.zeros(self.num_points)
        for joint, smoothness in enumerate(self.smoothness_costs):
            costs += smoothness.waypoint_costs(self.buffer.positions[:, joint])
        return costs

    def compute_stability_costs(self) -> None:
        """Contact-invariant and physics-violation costs over the interior."""
        frames = self.segment_frames
        dt = self.buffer.discretization
        last = self.num_points - 2
        mu = self.params.friction_coefficient
        kappa = self.params.contact_velocity_weight

        self.rigid_body = self.aggregator.compute(frames)
        wrench_sum = self.rigid_body.wrench_sum

        violations, velocities = [], []
        for contact in self.contact_points:
            violation, velocity = _call_port(
                "ground", contact.violation_and_velocity, 1, last, dt, frames, self.ground
            )
            violations.append(violation)
            velocities.append(velocity)

        self.state_contact_invariant_cost[:] = 0.0
        self.state_physics_violation_cost[:] = 0.0
        self.contact_forces[:] = 0.0

        for point in range(1, last + 1):
            activations = self.buffer.waypoint_activations(point)
            positions = np.array(
                [c.position(point, frames) for c in self.contact_points]
            ).reshape(-1, 3)
            parent_frames = np.array(
                [c.parent_frame(point, frames) for c in self.contact_points]
            ).reshape(-1, 4, 4)

            forces = self.force_solver.solve(
                mu, positions, -wrench_sum[point], activations, parent_frames
            )
            self.contact_forces[point] = forces

            contact_invariant = 0.0
            for i in range(self.num_contacts):
                v = violations[i][point]
                dv = velocities[i][point]
                contact_invariant += activations[i] * (v @ v + kappa * (dv @ dv))

            residual = contact_wrench(positions, forces) + wrench_sum[point]
            self.state_contact_invariant_cost[point] = contact_invariant
            self.state_physics_violation_cost[point] = float(np.linalg.norm(residual))

    def _log_progress(self) -> None:
        self.cost_accumulator.log_summary(self.iteration, level=logging.DEBUG)
        if not logger.isEnabledFor(logging.DEBUG):
            return
        for phase in range(self.buffer.num_contact_phases + 1):
            point = min(self.buffer.phase_start(phase), self.num_points - 1)
            values = " ".join(f"{v:.4f}" for v in self.buffer.contact_values[phase])
            heights = " ".join(
                f"{c.position(point, self.segment_frames)[2]:.4f}"
                for c in self.contact_points
            )
            logger.debug(f"phase {phase}: contacts [{values}] heights [{heights}]")
