"""Assembly of the per-timestep and trajectory constraint graphs.

For one timestep the graph splits into four groups that share variables:

* q: pose closure across every joint, fixed-link pinning, contact height;
* v: twist closure, zero twist on fixed links, contact velocity;
* a: acceleration closure, zero acceleration on fixed links, contact
  acceleration;
* dynamics: Newton-Euler balance per free link, wrench equivalence and torque
  per joint, optional planar wrench and contact moment constraints.

Forward and inverse dynamics use the same four groups and differ only in the
priors added on top (:meth:`DynamicsGraph.forward_dynamics_priors` and
:meth:`DynamicsGraph.inverse_dynamics_priors`).
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import jax
import jax.numpy as jnp

from .core import JointType, Robot
from .errors import ConfigurationError, UnknownNameError
from .factors import (
    CollocationScheme,
    ContactDynamicsMomentFactor,
    ContactKinematicsAccelFactor,
    ContactKinematicsPoseFactor,
    ContactKinematicsTwistFactor,
    ContactPoint,
    EulerCollocationFactor,
    FactorGraph,
    JointLimitFactor,
    PhaseEulerCollocationFactor,
    PhaseTrapezoidalCollocationFactor,
    PoseFactor,
    TorqueFactor,
    TrapezoidalCollocationFactor,
    TwistAccelFactor,
    TwistFactor,
    WrenchEquivalenceFactor,
    WrenchFactor,
    WrenchPlanarFactor,
    planar_selection,
    prior,
    up_direction,
)
from .factors.collocation import check_scheme
from .keys import (
    Key,
    Values,
    contact_wrench_key,
    joint_accel_key,
    joint_angle_key,
    joint_vel_key,
    phase_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from .settings import OptimizerSetting

logger = logging.getLogger(__name__)

Array = jax.Array
ContactPoints = Optional[Sequence[ContactPoint]]


def _contacts_by_link(robot: Robot, contact_points: ContactPoints) -> Dict[str, List[ContactPoint]]:
    """Group contacts by link; each (link, contact_id) pair owns one wrench variable."""
    grouped: Dict[str, List[ContactPoint]] = {}
    for cp in contact_points or ():
        robot.link(cp.link_name)
        link_contacts = grouped.setdefault(cp.link_name, [])
        if any(other.contact_id == cp.contact_id for other in link_contacts):
            raise ConfigurationError(
                f"Link '{cp.link_name}' has more than one contact with id {cp.contact_id}")
        link_contacts.append(cp)
    return grouped


class DynamicsGraph:
    """Builds constraint graphs for a robot over one or many timesteps.

    Args:
        setting: Sigmas and limits; defaults to :class:`OptimizerSetting()`.
    """

    def __init__(self, setting: Optional[OptimizerSetting] = None):
        self.setting = setting if setting is not None else OptimizerSetting()

    # Single timestep

    def q_factors(self, robot: Robot, t: int,
                  contact_points: ContactPoints = None,
                  gravity: Optional[Array] = None) -> FactorGraph:
        """Pose closure, fixed-link pinning and contact height at timestep t."""
        s = self.setting
        graph = FactorGraph()
        for link in robot.links:
            if link.is_fixed:
                graph.add(prior(pose_key(link.id, t), link.fixed_pose, s.prior_sigma))
        for joint in robot.joints:
            graph.add(PoseFactor(
                keys=(pose_key(joint.parent_id, t), pose_key(joint.child_id, t),
                      joint_angle_key(joint.id, t)),
                sigma=s.p_sigma, joint=joint))
        _contacts_by_link(robot, contact_points)
        up = up_direction(gravity)
        for cp in contact_points or ():
            link = robot.link(cp.link_name)
            graph.add(ContactKinematicsPoseFactor(
                keys=(pose_key(link.id, t),), sigma=s.cp_sigma,
                point=jnp.asarray(cp.point, dtype=jnp.float64), up=up,
                ground_height=cp.ground_height))
        return graph

    def v_factors(self, robot: Robot, t: int,
                  contact_points: ContactPoints = None) -> FactorGraph:
        """Twist closure, fixed-link zero twist and contact velocity at timestep t."""
        s = self.setting
        graph = FactorGraph()
        for link in robot.links:
            if link.is_fixed:
                graph.add(prior(twist_key(link.id, t), jnp.zeros(6), s.prior_sigma))
        for joint in robot.joints:
            graph.add(TwistFactor(
                keys=(twist_key(joint.parent_id, t), twist_key(joint.child_id, t),
                      joint_angle_key(joint.id, t), joint_vel_key(joint.id, t)),
                sigma=s.v_sigma, joint=joint))
        _contacts_by_link(robot, contact_points)
        for cp in contact_points or ():
            link = robot.link(cp.link_name)
            graph.add(ContactKinematicsTwistFactor(
                keys=(twist_key(link.id, t),), sigma=s.cp_sigma,
                point=jnp.asarray(cp.point, dtype=jnp.float64)))
        return graph

    def a_factors(self, robot: Robot, t: int,
                  contact_points: ContactPoints = None) -> FactorGraph:
        """Acceleration closure, fixed-link zero acceleration and contact acceleration."""
        s = self.setting
        graph = FactorGraph()
        for link in robot.links:
            if link.is_fixed:
                graph.add(prior(twist_accel_key(link.id, t), jnp.zeros(6), s.prior_sigma))
        for joint in robot.joints:
            graph.add(TwistAccelFactor(
                keys=(twist_key(joint.child_id, t), twist_accel_key(joint.parent_id, t),
                      twist_accel_key(joint.child_id, t), joint_angle_key(joint.id, t),
                      joint_vel_key(joint.id, t), joint_accel_key(joint.id, t)),
                sigma=s.a_sigma, joint=joint))
        _contacts_by_link(robot, contact_points)
        for cp in contact_points or ():
            link = robot.link(cp.link_name)
            graph.add(ContactKinematicsAccelFactor(
                keys=(twist_accel_key(link.id, t),), sigma=s.cp_sigma,
                point=jnp.asarray(cp.point, dtype=jnp.float64)))
        return graph

    def dynamics_factors(self, robot: Robot, t: int,
                         gravity: Optional[Array] = None,
                         planar_axis: Optional[Array] = None,
                         contact_points: ContactPoints = None) -> FactorGraph:
        """Wrench balance, wrench equivalence, torque and optional planar factors.

        Args:
            robot: Robot to constrain.
            t: Timestep.
            gravity: (3,) gravity in the world frame, or None for no gravity.
            planar_axis: Normal of the motion plane, or None for spatial motion.
            contact_points: Active contacts; each adds a contact wrench to its
                link's balance and a zero-moment constraint.

        Raises:
            ConfigurationError: If a link has more wrench contributions than
                ``setting.max_link_connections``, or two contacts on one link
                share a ``contact_id``.
        """
        s = self.setting
        contacts = _contacts_by_link(robot, contact_points)
        gravity = None if gravity is None else jnp.asarray(gravity, dtype=jnp.float64)

        graph = FactorGraph()
        for link in robot.links:
            if link.is_fixed:
                continue
            link_contacts = contacts.get(link.name, [])
            wrenches = [wrench_key(link.id, j, t) for j in link.joint_ids]
            wrenches += [contact_wrench_key(link.id, cp.contact_id, t) for cp in link_contacts]
            if len(wrenches) > s.max_link_connections:
                raise ConfigurationError(
                    f"Link '{link.name}' has {len(wrenches)} wrench connections, "
                    f"more than the supported {s.max_link_connections}")
            graph.add(WrenchFactor(
                keys=(twist_key(link.id, t), twist_accel_key(link.id, t),
                      pose_key(link.id, t), *wrenches),
                sigma=s.f_sigma, inertia=link.inertia_matrix(), gravity=gravity))
            for cp in link_contacts:
                graph.add(ContactDynamicsMomentFactor(
                    keys=(contact_wrench_key(link.id, cp.contact_id, t),),
                    sigma=s.cm_sigma, point=jnp.asarray(cp.point, dtype=jnp.float64)))

        selection = None if planar_axis is None else planar_selection(planar_axis)
        for joint in robot.joints:
            child_wrench = wrench_key(joint.child_id, joint.id, t)
            graph.add(WrenchEquivalenceFactor(
                keys=(wrench_key(joint.parent_id, joint.id, t), child_wrench,
                      joint_angle_key(joint.id, t)),
                sigma=s.f_sigma, joint=joint))
            graph.add(TorqueFactor(
                keys=(child_wrench, torque_key(joint.id, t)),
                sigma=s.t_sigma, screw_axis=joint.screw_axis))
            if selection is not None:
                graph.add(WrenchPlanarFactor(
                    keys=(child_wrench,), sigma=s.planar_sigma, selection=selection))
        return graph

    def dynamics_factor_graph(self, robot: Robot, t: int,
                              gravity: Optional[Array] = None,
                              planar_axis: Optional[Array] = None,
                              contact_points: ContactPoints = None) -> FactorGraph:
        """Union of the q, v, a and dynamics groups at timestep t."""
        graph = FactorGraph()
        graph.add(self.q_factors(robot, t, contact_points, gravity))
        graph.add(self.v_factors(robot, t, contact_points))
        graph.add(self.a_factors(robot, t, contact_points))
        graph.add(self.dynamics_factors(robot, t, gravity, planar_axis, contact_points))
        logger.debug("Timestep %d: %d factors", t, len(graph))
        return graph

    def joint_limit_factors(self, robot: Robot, t: int) -> FactorGraph:
        """Limit penalties on the angles of every joint with finite limits."""
        graph = FactorGraph()
        for joint in robot.joints:
            if joint.kind is JointType.FIXED:
                continue
            if not (math.isfinite(joint.lower_limit) and math.isfinite(joint.upper_limit)):
                continue
            graph.add(JointLimitFactor(
                keys=(joint_angle_key(joint.id, t),), sigma=self.setting.jl_sigma,
                lower=joint.lower_limit, upper=joint.upper_limit,
                threshold=joint.limit_threshold))
        return graph

    # Collocation

    def _collocation(self, scheme: CollocationScheme, sigma: float,
                     x0: Key, x1: Key, dx0: Key, dx1: Key,
                     dt: Optional[float] = None, phase: Optional[Key] = None):
        if scheme is CollocationScheme.EULER:
            if phase is None:
                return EulerCollocationFactor(keys=(x0, x1, dx0), sigma=sigma, dt=dt)
            return PhaseEulerCollocationFactor(keys=(x0, x1, dx0, phase), sigma=sigma)
        if phase is None:
            return TrapezoidalCollocationFactor(keys=(x0, x1, dx0, dx1), sigma=sigma, dt=dt)
        return PhaseTrapezoidalCollocationFactor(keys=(x0, x1, dx0, dx1, phase), sigma=sigma)

    def collocation_factors(self, robot: Robot, t: int, dt: float,
                            collocation: CollocationScheme = CollocationScheme.EULER
                            ) -> FactorGraph:
        """Angle/velocity and velocity/acceleration integration from t to t+1.

        Raises:
            ConfigurationError: For Runge-Kutta and Hermite-Simpson, which are
                not implemented.
        """
        check_scheme(collocation)
        s = self.setting
        graph = FactorGraph()
        for joint in robot.joints:
            j = joint.id
            graph.add(self._collocation(
                collocation, s.q_col_sigma,
                joint_angle_key(j, t), joint_angle_key(j, t + 1),
                joint_vel_key(j, t), joint_vel_key(j, t + 1), dt=dt))
            graph.add(self._collocation(
                collocation, s.v_col_sigma,
                joint_vel_key(j, t), joint_vel_key(j, t + 1),
                joint_accel_key(j, t), joint_accel_key(j, t + 1), dt=dt))
        return graph

    def multi_phase_collocation_factors(self, robot: Robot, t: int, phase: int,
                                        collocation: CollocationScheme = CollocationScheme.EULER
                                        ) -> FactorGraph:
        """Like :meth:`collocation_factors`, with the step read from ``phase_key(phase)``."""
        check_scheme(collocation)
        s = self.setting
        dt_key = phase_key(phase)
        graph = FactorGraph()
        for joint in robot.joints:
            j = joint.id
            graph.add(self._collocation(
                collocation, s.q_col_sigma,
                joint_angle_key(j, t), joint_angle_key(j, t + 1),
                joint_vel_key(j, t), joint_vel_key(j, t + 1), phase=dt_key))
            graph.add(self._collocation(
                collocation, s.v_col_sigma,
                joint_vel_key(j, t), joint_vel_key(j, t + 1),
                joint_accel_key(j, t), joint_accel_key(j, t + 1), phase=dt_key))
        return graph

    # Trajectories

    def trajectory_fg(self, robot: Robot, num_steps: int, dt: float,
                      collocation: CollocationScheme = CollocationScheme.EULER,
                      gravity: Optional[Array] = None,
                      planar_axis: Optional[Array] = None,
                      contact_points: ContactPoints = None) -> FactorGraph:
        """Dynamics at timesteps 0..num_steps linked by fixed-step collocation."""
        check_scheme(collocation)
        graph = FactorGraph()
        for t in range(num_steps + 1):
            graph.add(self.dynamics_factor_graph(robot, t, gravity, planar_axis, contact_points))
        for t in range(num_steps):
            graph.add(self.collocation_factors(robot, t, dt, collocation))
        logger.debug("Trajectory of %d steps: %d factors", num_steps, len(graph))
        return graph

    def multi_phase_trajectory_fg(self, robots: Sequence[Robot], phase_steps: Sequence[int],
                                  transition_graphs: Sequence[FactorGraph],
                                  collocation: CollocationScheme = CollocationScheme.EULER,
                                  gravity: Optional[Array] = None,
                                  planar_axis: Optional[Array] = None,
                                  phase_contact_points: Optional[Sequence[ContactPoints]] = None
                                  ) -> FactorGraph:
        """Dynamics over consecutive phases with a duration variable per phase.

        Phase p spans ``phase_steps[p]`` steps. Timestep 0 uses ``robots[0]``;
        every step inside phase p uses ``robots[p]``. The boundary step between
        phases p and p+1 is constrained by ``transition_graphs[p]`` instead of
        a generated dynamics graph, and the last step by ``robots[-1]``.
        Collocation then runs over every step with ``phase_key(p)`` as the
        step length.

        Raises:
            ConfigurationError: If the per-phase sequences disagree in length,
                or the collocation scheme is not implemented.
        """
        num_phases = len(robots)
        if len(phase_steps) != num_phases:
            raise ConfigurationError(
                f"Got {len(phase_steps)} phase lengths for {num_phases} phases")
        if len(transition_graphs) != num_phases - 1:
            raise ConfigurationError(
                f"Got {len(transition_graphs)} transition graphs for {num_phases} phases")
        if phase_contact_points is None:
            phase_contact_points = [None] * num_phases
        elif len(phase_contact_points) != num_phases:
            raise ConfigurationError(
                f"Got {len(phase_contact_points)} contact sets for {num_phases} phases")
        check_scheme(collocation)

        graph = FactorGraph()
        graph.add(self.dynamics_factor_graph(
            robots[0], 0, gravity, planar_axis, phase_contact_points[0]))
        t = 0
        for p in range(num_phases):
            for _ in range(phase_steps[p] - 1):
                t += 1
                graph.add(self.dynamics_factor_graph(
                    robots[p], t, gravity, planar_axis, phase_contact_points[p]))
            t += 1
            if p == num_phases - 1:
                graph.add(self.dynamics_factor_graph(
                    robots[p], t, gravity, planar_axis, phase_contact_points[p]))
            else:
                graph.add(transition_graphs[p])

        t = 0
        for p in range(num_phases):
            for _ in range(phase_steps[p]):
                graph.add(self.multi_phase_collocation_factors(robots[p], t, p, collocation))
                t += 1
        logger.debug("Multi-phase trajectory of %d phases, %d steps: %d factors",
                     num_phases, t, len(graph))
        return graph

    # Priors

    def forward_dynamics_priors(self, robot: Robot, t: int,
                                joint_angles, joint_vels, torques) -> FactorGraph:
        """Pin angles, velocities and torques (declared joint order) at timestep t."""
        return self._joint_priors(robot, t, (
            (joint_angle_key, joint_angles),
            (joint_vel_key, joint_vels),
            (torque_key, torques)))

    def inverse_dynamics_priors(self, robot: Robot, t: int,
                                joint_angles, joint_vels, joint_accels) -> FactorGraph:
        """Pin angles, velocities and accelerations (declared joint order) at timestep t."""
        return self._joint_priors(robot, t, (
            (joint_angle_key, joint_angles),
            (joint_vel_key, joint_vels),
            (joint_accel_key, joint_accels)))

    def trajectory_fd_priors(self, robot: Robot, num_steps: int,
                             joint_angles, joint_vels, torques_seq) -> FactorGraph:
        """Initial angles and velocities plus torques at timesteps 0..num_steps."""
        if len(torques_seq) != num_steps + 1:
            raise ConfigurationError(
                f"Expected {num_steps + 1} torque vectors, got {len(torques_seq)}")
        graph = self._joint_priors(robot, 0, (
            (joint_angle_key, joint_angles),
            (joint_vel_key, joint_vels)))
        for t, torques in enumerate(torques_seq):
            graph.add(self._joint_priors(robot, t, ((torque_key, torques),)))
        return graph

    def _joint_priors(self, robot: Robot, t: int, groups) -> FactorGraph:
        graph = FactorGraph()
        for make_key, values in groups:
            values = jnp.asarray(values, dtype=jnp.float64)
            if values.shape != (robot.num_joints,):
                raise ConfigurationError(
                    f"Expected {robot.num_joints} joint values, got shape {values.shape}")
            for joint in robot.joints:
                graph.add(prior(make_key(joint.id, t), values[joint.id], self.setting.prior_sigma))
        return graph

    # Solution queries

    @staticmethod
    def _joint_vector(robot: Robot, values: Values, t: int, make_key) -> Array:
        entries = []
        for joint in robot.joints:
            key = make_key(joint.id, t)
            if key not in values:
                raise UnknownNameError("Variable", str(key), f"joint '{joint.name}'")
            entries.append(jnp.asarray(values[key]).reshape(()))
        return jnp.stack(entries) if entries else jnp.zeros(0)

    @classmethod
    def joint_angles(cls, robot: Robot, values: Values, t: int = 0) -> Array:
        return cls._joint_vector(robot, values, t, joint_angle_key)

    @classmethod
    def joint_vels(cls, robot: Robot, values: Values, t: int = 0) -> Array:
        return cls._joint_vector(robot, values, t, joint_vel_key)

    @classmethod
    def joint_accels(cls, robot: Robot, values: Values, t: int = 0) -> Array:
        return cls._joint_vector(robot, values, t, joint_accel_key)

    @classmethod
    def torques(cls, robot: Robot, values: Values, t: int = 0) -> Array:
        return cls._joint_vector(robot, values, t, torque_key)

    # Initial values

    @staticmethod
    def zero_values(robot: Robot, t: int = 0, contact_points: ContactPoints = None) -> Values:
        """Rest poses and zero for every other variable at timestep t."""
        values: Values = {}
        for link in robot.links:
            values[pose_key(link.id, t)] = link.fixed_pose if link.is_fixed else link.com_pose
            values[twist_key(link.id, t)] = jnp.zeros(6)
            values[twist_accel_key(link.id, t)] = jnp.zeros(6)
        for joint in robot.joints:
            j = joint.id
            values[wrench_key(joint.parent_id, j, t)] = jnp.zeros(6)
            values[wrench_key(joint.child_id, j, t)] = jnp.zeros(6)
            values[torque_key(j, t)] = jnp.zeros(())
            values[joint_angle_key(j, t)] = jnp.zeros(())
            values[joint_vel_key(j, t)] = jnp.zeros(())
            values[joint_accel_key(j, t)] = jnp.zeros(())
        for cp in contact_points or ():
            link = robot.link(cp.link_name)
            values[contact_wrench_key(link.id, cp.contact_id, t)] = jnp.zeros(6)
        return values

    @classmethod
    def zero_values_trajectory(cls, robot: Robot, num_steps: int, num_phases: int = 0,
                               dt: float = 0.0, contact_points: ContactPoints = None) -> Values:
        """Zero values at timesteps 0..num_steps plus ``num_phases`` durations set to dt."""
        values: Values = {}
        for t in range(num_steps + 1):
            values.update(cls.zero_values(robot, t, contact_points))
        for p in range(num_phases):
            values[phase_key(p)] = jnp.asarray(dt, dtype=jnp.float64)
        return values

    @classmethod
    def multi_phase_zero_values(cls, robots: Sequence[Robot], phase_steps: Sequence[int],
                                dt: float,
                                phase_contact_points: Optional[Sequence[ContactPoints]] = None
                                ) -> Values:
        """Initial values matching :meth:`multi_phase_trajectory_fg`.

        A boundary step receives the variables of both adjacent phases, so the
        union of their contact wrenches is covered.
        """
        num_phases = len(robots)
        if len(phase_steps) != num_phases:
            raise ConfigurationError(
                f"Got {len(phase_steps)} phase lengths for {num_phases} phases")
        if phase_contact_points is None:
            phase_contact_points = [None] * num_phases

        values: Values = {}
        t = 0
        for p in range(num_phases):
            for _ in range(phase_steps[p] + 1):
                values.update(cls.zero_values(robots[p], t, phase_contact_points[p]))
                t += 1
            t -= 1
            values[phase_key(p)] = jnp.asarray(dt, dtype=jnp.float64)
        return values
