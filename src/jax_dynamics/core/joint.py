"""Joint data structure: a typed coupling between a parent and a child link.

A joint never owns its links. Endpoints are stored as link ids and names and
resolved through the :class:`~jax_dynamics.core.robot.Robot` that owns both.
"""

import enum

import jax
import jax.numpy as jnp
from flax import struct

from ..transforms import se3

Array = jax.Array


class JointType(enum.Enum):
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"
    FIXED = "fixed"


class EffortType(enum.Enum):
    ACTUATED = "actuated"
    UNACTUATED = "unactuated"
    IMPEDANCE = "impedance"


def screw_from_axis(kind: JointType, axis: Array) -> Array:
    """Screw axis of a joint located at the origin of its frame.

    Revolute joints rotate about ``axis``, prismatic joints translate along it
    and fixed joints have a zero screw axis.
    """
    axis = jnp.asarray(axis, dtype=jnp.float64)
    zeros = jnp.zeros(3)
    if kind is JointType.REVOLUTE:
        return jnp.concatenate([axis, zeros])
    elif kind is JointType.PRISMATIC:
        return jnp.concatenate([zeros, axis])
    elif kind is JointType.FIXED:
        return jnp.zeros(6)
    raise ValueError(f"Unsupported joint type {kind!r}")


@struct.dataclass
class Joint:
    """Immutable joint record.

    Attributes:
        name: Joint name, unique within a robot.
        id: Index of the joint in declaration order.
        kind: Revolute, prismatic or fixed.
        effort_type: Actuated, unactuated or impedance.
        parent_id, child_id: Endpoint link ids (non-owning).
        parent_name, child_name: Endpoint link names.
        lower_limit, upper_limit: Coordinate limits.
        limit_threshold: Margin inside the limits where the limit cost kicks in.
        rest_transform: (4, 4) parent link frame -> child link frame at rest.
        com_rest_transform: (4, 4) parent COM frame -> child COM frame at rest.
        joint_screw_axis: (6,) screw axis expressed in the child link frame.
        screw_axis: (6,) screw axis expressed in the child COM frame.
    """
    name: str = struct.field(pytree_node=False)
    id: int = struct.field(pytree_node=False)
    kind: JointType = struct.field(pytree_node=False)
    effort_type: EffortType = struct.field(pytree_node=False)
    parent_id: int = struct.field(pytree_node=False)
    child_id: int = struct.field(pytree_node=False)
    parent_name: str = struct.field(pytree_node=False)
    child_name: str = struct.field(pytree_node=False)
    lower_limit: float = struct.field(pytree_node=False)
    upper_limit: float = struct.field(pytree_node=False)
    limit_threshold: float = struct.field(pytree_node=False)
    rest_transform: Array
    com_rest_transform: Array
    joint_screw_axis: Array
    screw_axis: Array

    def motion(self, q, axis: Array) -> Array:
        """exp(axis * q), the displacement produced by coordinate q."""
        if self.kind is JointType.FIXED:
            return jnp.eye(4)
        elif self.kind in (JointType.REVOLUTE, JointType.PRISMATIC):
            return se3.exp(axis * q)
        raise ValueError(f"Unsupported joint type {self.kind!r}")

    def link_transform(self, q=0.0) -> Array:
        """Child link frame in the parent link frame at coordinate q."""
        return self.rest_transform @ self.motion(q, self.joint_screw_axis)

    def transform_from_parent(self, q=0.0) -> Array:
        """pTc: child COM frame in the parent COM frame at coordinate q."""
        return self.com_rest_transform @ self.motion(q, self.screw_axis)

    def transform_to_parent(self, q=0.0) -> Array:
        """cTp: parent COM frame in the child COM frame at coordinate q."""
        return se3.inverse(self.transform_from_parent(q))

    def other_link_id(self, link_id: int) -> int:
        if link_id == self.parent_id:
            return self.child_id
        if link_id == self.child_id:
            return self.parent_id
        raise ValueError(f"Link {link_id} is not attached to joint '{self.name}'")

    def within_limits(self, q) -> bool:
        return bool(self.lower_limit <= q <= self.upper_limit)
