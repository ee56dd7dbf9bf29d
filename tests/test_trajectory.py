"""Tests for phases, walk cycles and multi-phase trajectories."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_dynamics.dynamics_graph import DynamicsGraph
from jax_dynamics.errors import ConfigurationError, UnknownNameError
from jax_dynamics.factors import CollocationScheme, FactorGraph, PhaseEulerCollocationFactor
from jax_dynamics.keys import phase_key, pose_key
from jax_dynamics.trajectory import Phase, PhaseState, Trajectory, WalkCycle

FOOT = jnp.array([0.0, 0.0, -1.0])


@pytest.fixture
def walk_cycle(simple_robot):
    stance_1 = Phase(simple_robot, 2).add_contact_point("l1", FOOT)
    stance_2 = Phase(simple_robot, 3).add_contact_point("l2", FOOT)
    return WalkCycle([stance_1, stance_2])


@pytest.fixture
def trajectory(walk_cycle):
    return Trajectory(walk_cycle, repeat=2)


def test_phase_state_machine(simple_robot):
    """Test phase state transitions."""
    phase = Phase(simple_robot, 4)
    assert phase.state is PhaseState.DECLARED
    phase.add_contact_points(["l1", "l2"], FOOT)
    assert phase.state is PhaseState.CONFIGURED
    assert phase.contact_link_names == ("l1", "l2")

    placed = phase.instantiate(10)
    assert placed.state is PhaseState.INSTANTIATED
    assert (placed.start_time_step, placed.end_time_step) == (10, 14)
    assert phase.state is PhaseState.CONFIGURED

    with pytest.raises(ConfigurationError):
        placed.add_contact_point("l1", FOOT)
    with pytest.raises(ConfigurationError):
        placed.instantiate(0)


def test_phase_rejects_bad_input(simple_robot):
    """Test phase input validation."""
    with pytest.raises(UnknownNameError, match="foot"):
        Phase(simple_robot, 2).add_contact_point("foot", FOOT)
    with pytest.raises(ConfigurationError):
        Phase(simple_robot, 0)
    with pytest.raises(ConfigurationError, match="l1"):
        Phase(simple_robot, 2).add_contact_point("l1", FOOT).add_contact_point("l1", -FOOT)


def test_walk_cycle(walk_cycle, simple_robot):
    """Test walk cycle phases and links."""
    assert walk_cycle.num_phases == 2
    assert walk_cycle.link_names() == ["l1", "l2"]
    with pytest.raises(ConfigurationError):
        walk_cycle.add_phase(Phase(simple_robot, 1).instantiate(0))


def test_time_steps(trajectory):
    """Test phase start and end steps."""
    assert trajectory.num_phases == 4
    assert trajectory.phase_durations() == [2, 3, 2, 3]
    assert trajectory.final_time_steps() == [2, 5, 7, 10]
    assert [trajectory.get_start_time_step(p) for p in range(4)] == [0, 3, 6, 8]
    assert [trajectory.get_end_time_step(p) for p in range(4)] == [2, 5, 7, 10]
    assert all(phase.state is PhaseState.INSTANTIATED for phase in trajectory.phases)


def test_contact_and_swing_links(trajectory):
    """Test contact and swing links per phase."""
    assert trajectory.get_phase_contact_links(0) == ["l1"]
    assert trajectory.get_phase_swing_links(0) == ["l2"]
    assert trajectory.get_phase_swing_links(1) == ["l1"]
    transitions = trajectory.transition_contact_points()
    assert len(transitions) == 3
    assert [cp.link_name for cp in transitions[0]] == ["l1", "l2"]


def test_multi_phase_factor_graph(trajectory):
    """Test the multi-phase factor graph."""
    builder = DynamicsGraph()
    graph = trajectory.multi_phase_factor_graph(builder, CollocationScheme.EULER)
    # Seven factors per step, four more per active contact; ten collocation
    # steps of two factors each.
    one_contact, two_contacts = 11, 15
    dynamics = 8 * one_contact + 3 * two_contacts
    assert len(graph) == dynamics + 10 * 2

    keys = graph.keys()
    assert {phase_key(p) for p in range(4)} <= set(keys)
    assert max(key.t for key in keys) == 10
    collocation = graph.factors_of_type(PhaseEulerCollocationFactor)
    assert [f.keys[-1].index for f in collocation[::2]] == [0, 0, 1, 1, 1, 2, 2, 3, 3, 3]


def test_initial_values_cover_graph(trajectory):
    """Test that initial values cover every graph variable."""
    graph = trajectory.multi_phase_factor_graph(DynamicsGraph())
    values = trajectory.multi_phase_initial_values(0.05)
    assert set(graph.keys()) <= set(values)
    np.testing.assert_allclose(values[phase_key(3)], 0.05)


def test_multi_phase_argument_checks(simple_robot):
    """Test multi-phase argument validation."""
    builder = DynamicsGraph()
    with pytest.raises(ConfigurationError, match="transition"):
        builder.multi_phase_trajectory_fg([simple_robot, simple_robot], [2, 2], [])
    with pytest.raises(ConfigurationError, match="phase lengths"):
        builder.multi_phase_trajectory_fg([simple_robot], [2, 2], [])
    with pytest.raises(ConfigurationError):
        builder.multi_phase_trajectory_fg(
            [simple_robot], [2], [], CollocationScheme.HERMITE_SIMPSON)


def test_transition_graphs(trajectory):
    """Test transition graphs at phase boundaries."""
    graphs = trajectory.get_transition_graphs(DynamicsGraph())
    assert len(graphs) == 3
    assert {key.t for key in graphs[0].keys()} == {2}


def test_contact_point_goals(trajectory, simple_robot):
    """Test contact point goals at rest."""
    goals = trajectory.init_contact_point_goal()
    np.testing.assert_allclose(goals["l1"], jnp.zeros(3), atol=1e-12)
    np.testing.assert_allclose(goals["l2"], jnp.array([0.0, 0.0, 2.0]), atol=1e-12)

    factor = trajectory.point_goal_factor("l2", 4, 1e-2, goals["l2"])
    assert factor.keys == (pose_key(simple_robot.link("l2").id, 4),)
    values = DynamicsGraph.zero_values(simple_robot, 4)
    np.testing.assert_allclose(factor.unwhitened_error(values), jnp.zeros(3), atol=1e-12)

    with pytest.raises(ConfigurationError):
        Trajectory(WalkCycle([Phase(simple_robot, 2)]), 1).point_goal_factor(
            "l1", 0, 1e-2, jnp.zeros(3))


def test_contact_point_objectives(trajectory):
    """Test contact point objectives along the trajectory."""
    graph = trajectory.contact_point_objectives([0.1, 0.0, 0.0], 1e-2)
    assert isinstance(graph, FactorGraph)
    # Every step of every phase gets one goal per contact link.
    assert len(graph) == (3 + 3 + 2 + 3) * 2
    swing_goals = [f.goal for f in graph if f.keys[0].index == 1 and f.keys[0].t == 2]
    np.testing.assert_allclose(swing_goals[0], jnp.array([0.1, 0.0, 2.0]), atol=1e-12)


def test_trajectory_needs_phases(simple_robot):
    """Test that a trajectory needs at least one phase."""
    with pytest.raises(ConfigurationError):
        Trajectory(WalkCycle(), 1)
    with pytest.raises(ConfigurationError):
        Trajectory(WalkCycle([Phase(simple_robot, 2)]), 0)
