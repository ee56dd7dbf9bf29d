"""Shared robots for the test suite."""

from pathlib import Path

import hypothesis
import jax.numpy as jnp
import pytest

from jax_dynamics.core import JointType
from jax_dynamics.io import JointRecord, LinkRecord, load_urdf, robot_from_records
from jax_dynamics.transforms import se3

hypothesis.settings.register_profile("ci", max_examples=10, deadline=None)
hypothesis.settings.load_profile("ci")

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def simple_robot():
    """Two links joined by one revolute joint about x, 2 m above the base frame."""
    return load_urdf(str(FIXTURES / "simple_urdf.urdf"))


@pytest.fixture
def four_bar():
    """Square four-bar loop l1-l2-l3-l4 welded to a base l0."""
    return load_urdf(str(FIXTURES / "four_bar_linkage.urdf"))


def pendulum_records(fixed_base: bool = True):
    """Base link l1 and a unit-length rod l2 (mass 1, Ixx 1/3) hinged about x."""
    com = se3.from_position(jnp.array([0.0, 0.0, 1.0]))
    base = LinkRecord(
        name="l1", mass=1.0, inertia=jnp.eye(3), pose=jnp.eye(4), com=com,
        fixed_pose=com if fixed_base else None)
    rod = LinkRecord(
        name="l2", mass=1.0, inertia=jnp.diag(jnp.array([1.0 / 3.0, 1.0 / 3.0, 0.01])),
        pose=se3.from_position(jnp.array([0.0, 0.0, 2.0])), com=com)
    joint = JointRecord(
        name="j1", kind=JointType.REVOLUTE, parent="l1", child="l2",
        axis=jnp.array([1.0, 0.0, 0.0]), lower=-1.57, upper=1.57, limit_threshold=0.1)
    return [base, rod], [joint]


@pytest.fixture
def pendulum():
    return robot_from_records(*pendulum_records())
