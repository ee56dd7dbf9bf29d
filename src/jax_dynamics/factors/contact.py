"""Point-contact constraints.

A contact point is an offset ``p`` in a link's COM frame that touches the
ground. Its pose equation is one-dimensional: the height of the point along
the up direction (opposite gravity) equals the ground height. The twist and
acceleration equations zero the linear velocity/acceleration of the point,
and a point contact transmits no moment about itself.
"""

import jax
import jax.numpy as jnp
from flax import struct

from ..transforms import se3
from .base import Factor

Array = jax.Array

DEFAULT_GRAVITY = (0.0, 0.0, -9.8)


@struct.dataclass
class ContactPoint:
    """A link-attached point in contact with the ground.

    Attributes:
        link_name: Link carrying the point.
        point: (3,) offset of the point in the link's COM frame.
        contact_id: Index of the point on its link.
        ground_height: Height of the ground along the up direction.
    """
    link_name: str = struct.field(pytree_node=False)
    point: Array
    contact_id: int = struct.field(pytree_node=False, default=0)
    ground_height: float = struct.field(pytree_node=False, default=0.0)


def up_direction(gravity=None) -> Array:
    """Unit vector opposite to gravity."""
    g = jnp.asarray(DEFAULT_GRAVITY if gravity is None else gravity, dtype=jnp.float64)
    return -g / jnp.linalg.norm(g)


@struct.dataclass
class ContactKinematicsPoseFactor(Factor):
    """Height of the contact point above the ground. Keys: link pose."""
    point: Array
    up: Array
    ground_height: float = struct.field(pytree_node=False, default=0.0)

    def evaluate_error(self, pose):
        point_w = se3.apply(pose, self.point)
        return jnp.atleast_1d(self.up @ point_w - self.ground_height)


@struct.dataclass
class ContactKinematicsTwistFactor(Factor):
    """Linear velocity of the contact point. Keys: link twist."""
    point: Array

    def evaluate_error(self, twist):
        cTcom = se3.from_position(-self.point)
        return (se3.adjoint(cTcom) @ twist)[3:]


@struct.dataclass
class ContactKinematicsAccelFactor(Factor):
    """Linear acceleration of the contact point. Keys: link twist acceleration."""
    point: Array

    def evaluate_error(self, accel):
        cTcom = se3.from_position(-self.point)
        return (se3.adjoint(cTcom) @ accel)[3:]


@struct.dataclass
class ContactDynamicsMomentFactor(Factor):
    """Moment of the contact wrench about the contact point. Keys: contact wrench."""
    point: Array

    def evaluate_error(self, wrench):
        comTc = se3.from_position(self.point)
        return (se3.adjoint(comTc).T @ wrench)[:3]


@struct.dataclass
class PointGoalFactor(Factor):
    """World position of a point on a link. Keys: link pose."""
    point: Array
    goal: Array

    def evaluate_error(self, pose):
        return se3.apply(pose, self.point) - self.goal
