"""Link data structure: a rigid body with mass properties."""

from typing import Optional, Tuple

import jax
import jax.numpy as jnp
from flax import struct

Array = jax.Array


@struct.dataclass
class Link:
    """Immutable rigid body.

    Joint back-references are stored as joint ids; the owning
    :class:`~jax_dynamics.core.robot.Robot` resolves them.

    Attributes:
        name: Link name, unique within a robot.
        id: Index of the link in declaration order.
        mass: Link mass.
        inertia: (3, 3) inertia tensor about the center of mass.
        pose: (4, 4) rest pose of the link frame in the world frame.
        com: (4, 4) center-of-mass frame in the link frame.
        is_fixed: Whether the link is pinned to the world.
        fixed_pose: World pose of the COM frame when fixed, else None.
        parent_joint_ids: Joints across which this link is the child.
        child_joint_ids: Joints across which this link is the parent.
    """
    name: str = struct.field(pytree_node=False)
    id: int = struct.field(pytree_node=False)
    mass: float
    inertia: Array
    pose: Array
    com: Array
    is_fixed: bool = struct.field(pytree_node=False)
    fixed_pose: Optional[Array]
    parent_joint_ids: Tuple[int, ...] = struct.field(pytree_node=False)
    child_joint_ids: Tuple[int, ...] = struct.field(pytree_node=False)

    @property
    def com_pose(self) -> Array:
        """Rest pose of the COM frame in the world frame (wTcom)."""
        return self.pose @ self.com

    @property
    def joint_ids(self) -> Tuple[int, ...]:
        """All attached joints, in joint declaration order."""
        return tuple(sorted(self.parent_joint_ids + self.child_joint_ids))

    @property
    def num_connections(self) -> int:
        return len(self.parent_joint_ids) + len(self.child_joint_ids)

    def inertia_matrix(self) -> Array:
        """6x6 spatial inertia [[I, 0], [0, m*I3]] about the COM."""
        G = jnp.zeros((6, 6))
        G = G.at[:3, :3].set(self.inertia)
        G = G.at[3:, 3:].set(self.mass * jnp.eye(3))
        return G
