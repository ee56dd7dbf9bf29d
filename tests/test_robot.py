"""Tests for the link/joint topology."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_dynamics.errors import ConfigurationError, UnknownNameError
from jax_dynamics.transforms import se3


def test_simple_topology(simple_robot):
    """Test the simple robot topology."""
    j1 = simple_robot.joint("j1")
    assert j1.parent_name == "l1" and j1.child_name == "l2"
    assert [link.name for link in simple_robot.child_links("l1")] == ["l2"]
    assert [link.name for link in simple_robot.parent_links("l2")] == ["l1"]
    assert simple_robot.parent_links("l1") == ()
    assert simple_robot.joint_between("l1", "l2") is j1
    assert simple_robot.joint_between("l2", "l1") is j1


def test_four_bar_connectivity(four_bar):
    """Test four-bar link connectivity."""
    l1 = four_bar.link("l1")
    assert sorted(link.name for link in four_bar.parent_links("l1")) == ["l0", "l4"]
    assert [link.name for link in four_bar.child_links("l1")] == ["l2"]
    assert len(four_bar.link_joints("l1")) == 3
    assert l1.num_connections == 3
    for name in ("l2", "l3", "l4"):
        assert len(four_bar.link_joints(name)) == 2
    assert four_bar.joint_between("l1", "l3") is None


def test_parent_child_queries_are_consistent(four_bar):
    """Test that parent and child queries agree."""
    for link in four_bar.links:
        for child in four_bar.child_links(link.name):
            assert link.name in [l.name for l in four_bar.parent_links(child.name)]
        for parent in four_bar.parent_links(link.name):
            assert link.name in [l.name for l in four_bar.child_links(parent.name)]


def test_lookup_miss_names_entity(simple_robot):
    """Test that lookup misses name the entity."""
    with pytest.raises(UnknownNameError, match="Link 'missing'"):
        simple_robot.link("missing")
    with pytest.raises(UnknownNameError, match="Joint 'j9'"):
        simple_robot.joint("j9")


def test_aggregate_joint_properties(simple_robot):
    """Test aggregate joint properties."""
    assert simple_robot.joint_lower_limits() == {"j1": -1.57}
    assert simple_robot.joint_upper_limits() == {"j1": 1.57}
    assert simple_robot.joint_limit_thresholds() == {"j1": 0.0}
    np.testing.assert_allclose(simple_robot.screw_axes()["j1"],
                               jnp.array([1.0, 0.0, 0.0, 0.0, -1.0, 0.0]), atol=1e-12)


def test_fix_and_unfix_link(simple_robot):
    """Test fixing and unfixing a link."""
    pose = se3.from_position(jnp.array([0.0, 0.0, 5.0]))
    fixed = simple_robot.fix_link("l1", pose)
    assert fixed.link("l1").is_fixed
    np.testing.assert_allclose(fixed.link("l1").fixed_pose, pose)
    assert not simple_robot.link("l1").is_fixed

    at_rest = simple_robot.fix_link("l1")
    np.testing.assert_allclose(at_rest.link("l1").fixed_pose, simple_robot.link("l1").com_pose)

    unfixed = fixed.unfix_link("l1")
    assert not unfixed.link("l1").is_fixed
    assert unfixed.link("l1").fixed_pose is None


def test_inertia_matrix(simple_robot):
    """Test the spatial inertia matrix."""
    G = simple_robot.link("l1").inertia_matrix()
    np.testing.assert_allclose(jnp.diag(G), jnp.array([3.0, 2.0, 1.0, 100.0, 100.0, 100.0]))


def test_inconsistent_back_references_rejected(simple_robot):
    """Test that inconsistent back-references are rejected."""
    from jax_dynamics.core import Robot

    links = list(simple_robot.links)
    links[1] = links[1].replace(parent_joint_ids=())
    with pytest.raises(ConfigurationError, match="joint references"):
        Robot(links, simple_robot.joints)


def test_within_limits(simple_robot):
    """Test joint limit checks."""
    j1 = simple_robot.joint("j1")
    assert j1.within_limits(1.0)
    assert not j1.within_limits(2.0)
