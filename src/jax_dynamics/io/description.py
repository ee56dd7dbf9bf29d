"""Typed robot description records and the topology builder.

Loaders (URDF, hand-written fixtures, other formats) produce
:class:`LinkRecord` and :class:`JointRecord` lists; :func:`robot_from_records`
validates them and builds the :class:`~jax_dynamics.core.Robot` in one step, so
a partially linked topology is never observable.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import jax
import jax.numpy as jnp

from ..core import EffortType, Joint, JointType, Link, Robot, screw_from_axis
from ..errors import ConfigurationError, UnknownNameError
from ..transforms import se3

Array = jax.Array


@dataclass(frozen=True)
class LinkRecord:
    """Description of one link.

    Attributes:
        name: Link name.
        mass: Mass.
        inertia: (3, 3) inertia tensor about the center of mass.
        pose: (4, 4) rest pose of the link frame in the world frame.
        com: (4, 4) center-of-mass frame in the link frame.
        fixed_pose: World pose of the COM frame if the link is pinned.
    """
    name: str
    mass: float = 0.0
    inertia: Array = field(default_factory=lambda: jnp.zeros((3, 3)))
    pose: Array = field(default_factory=lambda: jnp.eye(4))
    com: Array = field(default_factory=lambda: jnp.eye(4))
    fixed_pose: Optional[Array] = None

    @property
    def com_pose(self) -> Array:
        return jnp.asarray(self.pose) @ jnp.asarray(self.com)


@dataclass(frozen=True)
class JointRecord:
    """Description of one joint.

    The joint frame coincides with the child link frame.

    Attributes:
        name: Joint name.
        kind: Revolute, prismatic or fixed.
        parent: Parent link name.
        child: Child link name.
        axis: (3,) unit axis in the joint frame.
        effort_type: Actuated, unactuated or impedance.
        lower, upper: Coordinate limits.
        limit_threshold: Joint limit threshold.
        origin: (4, 4) parent link frame -> child link frame at rest. When
            omitted it is derived from the two links' rest poses.
    """
    name: str
    kind: JointType
    parent: str
    child: str
    axis: Array = field(default_factory=lambda: jnp.array([0.0, 0.0, 1.0]))
    effort_type: EffortType = EffortType.ACTUATED
    lower: float = -jnp.inf
    upper: float = jnp.inf
    limit_threshold: float = 0.0
    origin: Optional[Array] = None


def robot_from_records(link_records: Sequence[LinkRecord],
                       joint_records: Sequence[JointRecord]) -> Robot:
    """Build a robot from description records.

    Args:
        link_records: Links in declaration order.
        joint_records: Joints in declaration order.

    Returns:
        Robot owning one Link per record and one Joint per record.

    Raises:
        UnknownNameError: If a joint references an unknown link.
        ConfigurationError: On duplicate names, self-joints or a disconnected
            topology.
    """
    link_ids: Dict[str, int] = {}
    for i, record in enumerate(link_records):
        if record.name in link_ids:
            raise ConfigurationError(f"Duplicate link name '{record.name}'")
        link_ids[record.name] = i

    joint_names = set()
    for record in joint_records:
        if record.name in joint_names:
            raise ConfigurationError(f"Duplicate joint name '{record.name}'")
        joint_names.add(record.name)
        for end in (record.parent, record.child):
            if end not in link_ids:
                raise UnknownNameError("Link", end, f"referenced by joint '{record.name}'")
        if record.parent == record.child:
            raise ConfigurationError(
                f"Joint '{record.name}' connects link '{record.parent}' to itself")

    joints: List[Joint] = []
    for j, record in enumerate(joint_records):
        parent = link_records[link_ids[record.parent]]
        child = link_records[link_ids[record.child]]
        joints.append(_make_joint(j, record, parent, child,
                                  link_ids[record.parent], link_ids[record.child]))

    links: List[Link] = []
    for i, record in enumerate(link_records):
        parent_joint_ids = tuple(joint.id for joint in joints if joint.child_id == i)
        child_joint_ids = tuple(joint.id for joint in joints if joint.parent_id == i)
        fixed_pose = None
        if record.fixed_pose is not None:
            fixed_pose = jnp.asarray(record.fixed_pose, dtype=jnp.float64)
        links.append(Link(
            name=record.name,
            id=i,
            mass=jnp.asarray(record.mass, dtype=jnp.float64),
            inertia=jnp.asarray(record.inertia, dtype=jnp.float64),
            pose=jnp.asarray(record.pose, dtype=jnp.float64),
            com=jnp.asarray(record.com, dtype=jnp.float64),
            is_fixed=fixed_pose is not None,
            fixed_pose=fixed_pose,
            parent_joint_ids=parent_joint_ids,
            child_joint_ids=child_joint_ids,
        ))

    return Robot(links, joints)


def _make_joint(j: int, record: JointRecord, parent: LinkRecord, child: LinkRecord,
                parent_id: int, child_id: int) -> Joint:
    parent_com = jnp.asarray(parent.com, dtype=jnp.float64)
    child_com = jnp.asarray(child.com, dtype=jnp.float64)

    if record.origin is None:
        origin = se3.inverse(jnp.asarray(parent.pose, dtype=jnp.float64)) @ jnp.asarray(
            child.pose, dtype=jnp.float64)
    else:
        origin = jnp.asarray(record.origin, dtype=jnp.float64)

    joint_screw_axis = screw_from_axis(record.kind, record.axis)
    # Re-express the axis from the child link frame in the child COM frame.
    screw_axis = se3.adjoint(se3.inverse(child_com)) @ joint_screw_axis

    return Joint(
        name=record.name,
        id=j,
        kind=record.kind,
        effort_type=record.effort_type,
        parent_id=parent_id,
        child_id=child_id,
        parent_name=record.parent,
        child_name=record.child,
        lower_limit=float(record.lower),
        upper_limit=float(record.upper),
        limit_threshold=float(record.limit_threshold),
        rest_transform=origin,
        com_rest_transform=se3.inverse(parent_com) @ origin @ child_com,
        joint_screw_axis=joint_screw_axis,
        screw_axis=screw_axis,
    )
