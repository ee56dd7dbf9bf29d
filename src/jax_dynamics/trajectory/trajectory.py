"""A walk cycle repeated several times and laid out on the global time axis.

Phase p ends at the cumulative step count ``final_time_steps()[p]``. Phase 0
starts at step 0; every later phase starts one step after the previous phase
ends, since the boundary step belongs to the transition between the two.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from ..core import Robot
from ..dynamics_graph import DynamicsGraph
from ..errors import ConfigurationError
from ..factors import CollocationScheme, ContactPoint, FactorGraph, PointGoalFactor
from ..keys import Values, pose_key
from ..transforms import se3
from .phase import Phase
from .walk_cycle import WalkCycle

logger = logging.getLogger(__name__)

Array = jax.Array


class Trajectory:
    """Repeated walk cycle with contact-aware constraint assembly.

    Args:
        walk_cycle: Gait unit to repeat.
        repeat: Number of repetitions, at least one.
    """

    def __init__(self, walk_cycle: WalkCycle, repeat: int):
        if repeat < 1:
            raise ConfigurationError(f"repeat must be positive, got {repeat}")
        if walk_cycle.num_phases == 0:
            raise ConfigurationError("Walk cycle has no phases")
        self.walk_cycle = walk_cycle
        self.repeat = repeat

        declared = list(walk_cycle.phases) * repeat
        ends = np.cumsum([phase.num_time_steps for phase in declared])
        self._phases: Tuple[Phase, ...] = tuple(
            phase.instantiate(int(end) - phase.num_time_steps + (1 if p > 0 else 0), int(end))
            for p, (phase, end) in enumerate(zip(declared, ends)))
        logger.debug("Trajectory with %d phases over %d steps", len(self._phases), int(ends[-1]))

    @property
    def phases(self) -> Tuple[Phase, ...]:
        return self._phases

    @property
    def num_phases(self) -> int:
        return len(self._phases)

    def phase_durations(self) -> List[int]:
        return [phase.num_time_steps for phase in self._phases]

    def phase_contact_points(self) -> List[Tuple[ContactPoint, ...]]:
        return [phase.contact_points for phase in self._phases]

    def phase_robot_models(self) -> List[Robot]:
        return [phase.robot for phase in self._phases]

    def final_time_steps(self) -> List[int]:
        """Global step at which each phase ends."""
        return [phase.end_time_step for phase in self._phases]

    def get_start_time_step(self, p: int) -> int:
        return self._phases[p].start_time_step

    def get_end_time_step(self, p: int) -> int:
        return self._phases[p].end_time_step

    def get_phase_contact_links(self, p: int) -> List[str]:
        return list(self._phases[p].contact_link_names)

    def get_phase_swing_links(self, p: int) -> List[str]:
        """Links in contact somewhere in the walk cycle but not during phase p."""
        phase = self._phases[p]
        return [name for name in self.walk_cycle.link_names() if not phase.has_contact(name)]

    def transition_contact_points(self) -> List[Tuple[ContactPoint, ...]]:
        """Contacts at each boundary: those of both adjacent phases, earlier phase first."""
        transitions = []
        for p in range(1, self.num_phases):
            merged: Dict[str, ContactPoint] = {}
            for cp in self._phases[p - 1].contact_points + self._phases[p].contact_points:
                merged.setdefault(cp.link_name, cp)
            transitions.append(tuple(merged.values()))
        return transitions

    def get_transition_graphs(self, builder: DynamicsGraph,
                              gravity: Optional[Array] = None,
                              planar_axis: Optional[Array] = None) -> List[FactorGraph]:
        """Dynamics at every phase boundary with the merged contact set."""
        robots = self.phase_robot_models()
        final_steps = self.final_time_steps()
        return [
            builder.dynamics_factor_graph(robots[p], final_steps[p - 1], gravity,
                                          planar_axis, contacts)
            for p, contacts in enumerate(self.transition_contact_points(), start=1)
        ]

    def multi_phase_factor_graph(self, builder: DynamicsGraph,
                                 collocation: CollocationScheme = CollocationScheme.EULER,
                                 gravity: Optional[Array] = None,
                                 planar_axis: Optional[Array] = None) -> FactorGraph:
        transition_graphs = self.get_transition_graphs(builder, gravity, planar_axis)
        return builder.multi_phase_trajectory_fg(
            self.phase_robot_models(), self.phase_durations(), transition_graphs,
            collocation, gravity, planar_axis, self.phase_contact_points())

    def multi_phase_initial_values(self, dt: float) -> Values:
        return DynamicsGraph.multi_phase_zero_values(
            self.phase_robot_models(), self.phase_durations(), dt,
            self.phase_contact_points())

    def init_contact_point_goal(self) -> Dict[str, Array]:
        """World position of every contact point at the rest configuration.

        The goal is lifted by the point's ground height along the world z axis.
        """
        robot = self._phases[0].robot
        goals = {}
        for name, cp in self.walk_cycle.contact_points().items():
            position = se3.apply(robot.link(name).com_pose, cp.point)
            goals[name] = position + jnp.array([0.0, 0.0, cp.ground_height])
        return goals

    def point_goal_factor(self, link_name: str, t: int, sigma: float, goal) -> PointGoalFactor:
        """Pin the contact point of ``link_name`` to ``goal`` at step t."""
        contacts = self.walk_cycle.contact_points()
        if link_name not in contacts:
            raise ConfigurationError(f"Link '{link_name}' has no contact point in the walk cycle")
        link = self._phases[0].robot.link(link_name)
        return PointGoalFactor(keys=(pose_key(link.id, t),), sigma=sigma,
                               point=contacts[link_name].point,
                               goal=jnp.asarray(goal, dtype=jnp.float64))

    def contact_point_objectives(self, step: Sequence[float], sigma: float) -> FactorGraph:
        """Point goals that keep stance feet in place and move swing feet by ``step``.

        During each phase a swing foot's goal moves linearly from its current
        goal to the goal plus ``step``; stance feet hold their goal.
        """
        step = jnp.asarray(step, dtype=jnp.float64)
        goals = self.init_contact_point_goal()
        graph = FactorGraph()
        for p, phase in enumerate(self._phases):
            swing = self.get_phase_swing_links(p)
            start, end = phase.start_time_step, phase.end_time_step
            for t in range(start, end + 1):
                fraction = (t - start) / max(end - start, 1)
                for name in phase.contact_link_names:
                    graph.add(self.point_goal_factor(name, t, sigma, goals[name]))
                for name in swing:
                    graph.add(self.point_goal_factor(name, t, sigma, goals[name] + fraction * step))
            for name in swing:
                goals[name] = goals[name] + step
        return graph
