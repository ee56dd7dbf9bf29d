"""Tests for per-timestep graph assembly and dynamics solves."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_dynamics import kinematics
from jax_dynamics.dynamics_graph import DynamicsGraph
from jax_dynamics.errors import ConfigurationError, UnknownNameError
from jax_dynamics.factors import (
    ContactDynamicsMomentFactor,
    ContactKinematicsPoseFactor,
    ContactPoint,
    PoseFactor,
    PriorFactor,
    WrenchFactor,
    WrenchPlanarFactor,
)
from jax_dynamics.keys import contact_wrench_key, joint_accel_key, pose_key
from jax_dynamics.optimizer import LevenbergMarquardtOptimizer
from jax_dynamics.settings import OptimizerSetting

GRAVITY = jnp.array([0.0, 0.0, -9.8])


def test_q_factors(simple_robot):
    """Test pose-level factors with and without a fixed link."""
    builder = DynamicsGraph()
    graph = builder.q_factors(simple_robot, 0)
    assert len(graph) == 1
    assert isinstance(graph[0], PoseFactor)

    fixed = builder.q_factors(simple_robot.fix_link("l1"), 0)
    assert len(fixed.factors_of_type(PriorFactor)) == 1
    assert len(fixed) == 2


def test_dynamics_factor_counts(simple_robot):
    """Test dynamics factor counts for spatial, planar and fixed cases."""
    builder = DynamicsGraph()
    assert len(builder.dynamics_factors(simple_robot, 0)) == 4
    planar = builder.dynamics_factors(simple_robot, 0, planar_axis=jnp.array([1.0, 0.0, 0.0]))
    assert len(planar.factors_of_type(WrenchPlanarFactor)) == 1
    # Fixed links get no wrench balance.
    fixed = builder.dynamics_factors(simple_robot.fix_link("l1"), 0)
    assert len(fixed.factors_of_type(WrenchFactor)) == 1


def test_dynamics_factor_graph_is_union(simple_robot):
    """Test that the timestep graph joins all four groups."""
    builder = DynamicsGraph()
    graph = builder.dynamics_factor_graph(simple_robot, 3)
    assert len(graph) == 7
    assert all(key.t == 3 for key in graph.keys())


def test_wrench_arity_follows_connectivity(four_bar):
    """Test that wrench balance arity follows link connectivity."""
    graph = DynamicsGraph().dynamics_factors(four_bar, 0)
    arity = {factor.keys[0].index: len(factor.keys) - 3
             for factor in graph.factors_of_type(WrenchFactor)}
    assert arity[four_bar.link("l1").id] == 3
    assert arity[four_bar.link("l2").id] == 2


def test_too_many_connections(four_bar):
    """Test that exceeding the link connection limit is rejected."""
    builder = DynamicsGraph(OptimizerSetting(max_link_connections=2))
    with pytest.raises(ConfigurationError, match="l1"):
        builder.dynamics_factor_graph(four_bar, 0)


def test_contact_factors(simple_robot):
    """Test the factors added for a contact point."""
    contact = ContactPoint(link_name="l2", point=jnp.array([0.0, 0.0, 1.0]), contact_id=0,
                           ground_height=0.0)
    builder = DynamicsGraph()
    graph = builder.dynamics_factor_graph(simple_robot, 0, GRAVITY, contact_points=[contact])
    assert len(graph.factors_of_type(ContactKinematicsPoseFactor)) == 1
    assert len(graph.factors_of_type(ContactDynamicsMomentFactor)) == 1
    l2 = simple_robot.link("l2").id
    balance = [f for f in graph.factors_of_type(WrenchFactor) if f.keys[0].index == l2][0]
    assert contact_wrench_key(l2, 0, 0) in balance.keys

    with pytest.raises(UnknownNameError, match="foot"):
        builder.dynamics_factor_graph(
            simple_robot, 0, contact_points=[contact.replace(link_name="foot")])


def test_zero_values_satisfy_rest_graph(four_bar):
    """Test that zero values satisfy the rest configuration."""
    builder = DynamicsGraph()
    graph = builder.dynamics_factor_graph(four_bar, 0)
    values = builder.zero_values(four_bar, 0)
    assert set(graph.keys()) <= set(values)
    assert graph.error(values) == pytest.approx(0.0, abs=1e-12)


def test_joint_limit_factors(simple_robot, four_bar):
    """Test joint limit factors for bounded joints."""
    builder = DynamicsGraph()
    assert len(builder.joint_limit_factors(simple_robot, 0)) == 1
    assert len(builder.joint_limit_factors(four_bar, 0)) == 4


def initial_values(robot, q):
    values = DynamicsGraph.zero_values(robot, 0)
    poses = kinematics.forward_kinematics(robot, {joint.name: q for joint in robot.joints})
    for link in robot.links:
        values[pose_key(link.id, 0)] = poses[link.name]
    return values


@pytest.mark.parametrize("q, torque, expected", [
    (0.0, 1.0, 0.75),
    (jnp.pi / 2, 0.0, 7.35),
])
def test_forward_dynamics(pendulum, q, torque, expected):
    """Test pendulum forward dynamics."""
    builder = DynamicsGraph()
    graph = builder.dynamics_factor_graph(pendulum, 0, GRAVITY)
    graph.add(builder.forward_dynamics_priors(pendulum, 0, [q], [0.0], [torque]))

    result = LevenbergMarquardtOptimizer().optimize(graph, initial_values(pendulum, q))
    np.testing.assert_allclose(builder.joint_accels(pendulum, result, 0), [expected], atol=1e-4)
    np.testing.assert_allclose(builder.joint_angles(pendulum, result, 0), [q], atol=1e-6)


def test_inverse_dynamics(pendulum):
    """Test pendulum inverse dynamics."""
    builder = DynamicsGraph()
    graph = builder.dynamics_factor_graph(pendulum, 0, GRAVITY)
    graph.add(builder.inverse_dynamics_priors(pendulum, 0, [0.0], [0.0], [0.75]))

    result = LevenbergMarquardtOptimizer().optimize(graph, initial_values(pendulum, 0.0))
    np.testing.assert_allclose(builder.torques(pendulum, result, 0), [1.0], atol=1e-4)
    np.testing.assert_allclose(builder.joint_vels(pendulum, result, 0), [0.0], atol=1e-6)


def test_prior_length_checked(pendulum):
    """Test that prior sequences must match the joint count."""
    with pytest.raises(ConfigurationError, match="Expected 1"):
        DynamicsGraph().forward_dynamics_priors(pendulum, 0, [0.0, 0.0], [0.0], [0.0])


def test_query_missing_variable(pendulum):
    """Test joint queries on present and missing variables."""
    with pytest.raises(UnknownNameError, match="a0_4"):
        DynamicsGraph.joint_accels(pendulum, {}, 4)
    values = {joint_accel_key(0, 4): jnp.asarray(2.0)}
    np.testing.assert_allclose(DynamicsGraph.joint_accels(pendulum, values, 4), [2.0])


def test_zero_values_trajectory(simple_robot):
    """Test zero values for a trajectory with phase durations."""
    values = DynamicsGraph.zero_values_trajectory(simple_robot, 3, num_phases=2, dt=0.1)
    assert {key.t for key in values} == {-1, 0, 1, 2, 3}
    phase_values = [v for key, v in values.items() if key.t == -1]
    np.testing.assert_allclose(phase_values, [0.1, 0.1])


def test_repeated_contact_id_rejected(simple_robot):
    """Test that two contacts sharing a link and contact id are rejected."""
    left = ContactPoint(link_name="l2", point=jnp.array([0.1, 0.0, 1.0]))
    right = ContactPoint(link_name="l2", point=jnp.array([-0.1, 0.0, 1.0]))
    builder = DynamicsGraph()
    for build in (builder.q_factors, builder.v_factors, builder.a_factors,
                  builder.dynamics_factors):
        with pytest.raises(ConfigurationError, match="l2"):
            build(simple_robot, 0, contact_points=[left, right])

    graph = builder.dynamics_factors(
        simple_robot, 0, contact_points=[left, right.replace(contact_id=1)])
    keys = [key for factor in graph.factors_of_type(WrenchFactor) for key in factor.keys]
    assert len(set(keys)) == len(keys)
    assert len(graph.factors_of_type(ContactDynamicsMomentFactor)) == 2
