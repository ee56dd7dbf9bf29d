"""Tests for contact factors."""

import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from jax_dynamics.factors import (
    ContactDynamicsMomentFactor,
    ContactKinematicsAccelFactor,
    ContactKinematicsPoseFactor,
    ContactKinematicsTwistFactor,
    PointGoalFactor,
    up_direction,
)
from jax_dynamics.keys import contact_wrench_key, pose_key, twist_accel_key, twist_key
from jax_dynamics.transforms import se3, so3

seeds = st.integers(0, 2**31 - 1)
POINT = jnp.array([0.0, 0.0, 1.0])


def assert_jacobians(factor, values, atol=1e-3):
    _, analytic = factor.linearize(values)
    for a, n in zip(analytic, factor.numerical_jacobians(values, 1e-6)):
        np.testing.assert_allclose(a, n, atol=atol)


def pose_factor(ground_height=0.0, gravity=None):
    return ContactKinematicsPoseFactor(keys=(pose_key(0),), sigma=1e-3, point=POINT,
                                       up=up_direction(gravity), ground_height=ground_height)


@pytest.mark.parametrize("rotation, height, expected", [
    (jnp.eye(3), 2.0, 3.0),
    (so3.rot_x(jnp.pi), 2.0, 1.0),
    (so3.rot_x(jnp.pi), 1.0, 0.0),
    (so3.rot_x(jnp.pi / 2), 2.0, 2.0),
    (so3.rot_y(jnp.pi / 3), 0.5, 1.0),
])
def test_contact_height(rotation, height, expected):
    """Test contact height for rotated links."""
    pose = se3.from_position_and_rotation(jnp.array([0.0, 0.0, height]), rotation)
    error = pose_factor().unwhitened_error({pose_key(0): pose})
    np.testing.assert_allclose(error, [expected], atol=1e-9)


def test_contact_height_with_ground_and_gravity():
    """Test contact height with a raised ground and tilted gravity."""
    pose = se3.from_position(jnp.array([0.0, 0.0, 2.0]))
    np.testing.assert_allclose(pose_factor(ground_height=1.0).unwhitened_error({pose_key(0): pose}),
                               [2.0], atol=1e-12)
    # Gravity along -y makes y the up direction.
    sideways = pose_factor(gravity=jnp.array([0.0, -9.8, 0.0]))
    np.testing.assert_allclose(sideways.unwhitened_error({pose_key(0): pose}), [0.0], atol=1e-12)


@given(seeds)
def test_contact_pose_jacobians(seed):
    """Test contact height jacobians against finite differences."""
    rng = np.random.default_rng(seed)
    pose = se3.exp(jnp.array(rng.uniform(-1.0, 1.0, 6)))
    assert_jacobians(pose_factor(), {pose_key(0): pose})


def test_contact_twist_of_rolling_point():
    """Test contact velocity of a point on a spinning link."""
    # Spinning about x at 1 rad/s through the COM moves a point 1 m up along -y.
    factor = ContactKinematicsTwistFactor(keys=(twist_key(0),), sigma=1e-3, point=POINT)
    twist = jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(factor.unwhitened_error({twist_key(0): twist}),
                               jnp.array([0.0, -1.0, 0.0]), atol=1e-12)


@given(seeds)
def test_contact_twist_and_accel_jacobians(seed):
    """Test contact twist and acceleration jacobians."""
    rng = np.random.default_rng(seed)
    twist = ContactKinematicsTwistFactor(keys=(twist_key(0),), sigma=1e-3, point=POINT)
    accel = ContactKinematicsAccelFactor(keys=(twist_accel_key(0),), sigma=1e-3, point=POINT)
    assert_jacobians(twist, {twist_key(0): jnp.array(rng.normal(size=6))})
    assert_jacobians(accel, {twist_accel_key(0): jnp.array(rng.normal(size=6))})


def test_contact_moment():
    """Test that the contact moment vanishes for a pure force at the point."""
    factor = ContactDynamicsMomentFactor(keys=(contact_wrench_key(0, 0),), sigma=1e-3, point=POINT)
    # A vertical force through the contact point has no moment about it.
    vertical = jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, 10.0])
    np.testing.assert_allclose(factor.unwhitened_error({contact_wrench_key(0, 0): vertical}),
                               jnp.zeros(3), atol=1e-12)
    # The same force expressed with a moment at the COM is off-axis.
    lateral = jnp.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0])
    error = factor.unwhitened_error({contact_wrench_key(0, 0): lateral})
    assert float(jnp.linalg.norm(error)) == pytest.approx(1.0)
    assert_jacobians(factor, {contact_wrench_key(0, 0): lateral})


def test_point_goal():
    """Test the point goal error."""
    goal = jnp.array([0.0, 0.0, 3.0])
    factor = PointGoalFactor(keys=(pose_key(0),), sigma=1e-2, point=POINT, goal=goal)
    pose = se3.from_position(jnp.array([0.0, 0.0, 2.0]))
    np.testing.assert_allclose(factor.unwhitened_error({pose_key(0): pose}), jnp.zeros(3),
                               atol=1e-12)
    assert_jacobians(factor, {pose_key(0): pose @ se3.exp(jnp.full(6, 0.2))})
