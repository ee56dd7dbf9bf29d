"""Newton-Euler wrench balance and joint wrench equations.

Wrenches are [moment, force] in the COM frame of the link they act on.
"""

from typing import Optional

import jax
import jax.numpy as jnp
from flax import struct

from ..core import Joint
from ..transforms import se3
from .base import Factor

Array = jax.Array


@struct.dataclass
class WrenchFactor(Factor):
    """Newton-Euler balance of one link, with any number of applied wrenches.

    Keys: twist, twist acceleration, pose, then one key per applied wrench.

        G A - ad(V)^T G V - sum(F_k) - F_gravity = 0

    where F_gravity = [0, m R^T g] is the gravity wrench in the COM frame.
    """
    inertia: Array
    gravity: Optional[Array] = None

    def evaluate_error(self, twist, accel, pose, *wrenches):
        G = self.inertia
        error = G @ accel - se3.ad(twist).T @ G @ twist
        for wrench in wrenches:
            error = error - wrench
        if self.gravity is not None:
            R = se3.get_rotation(pose)
            force = G[3, 3] * (R.T @ self.gravity)
            error = error - jnp.concatenate([jnp.zeros(3), force])
        return error


@struct.dataclass
class WrenchEquivalenceFactor(Factor):
    """Action and reaction across a joint.

    Keys: wrench on the parent, wrench on the child, joint angle.

        F_p + Ad(cTp)^T F_c = 0
    """
    joint: Joint

    def evaluate_error(self, wrench_p, wrench_c, q):
        cTp = self.joint.transform_to_parent(q)
        return wrench_p + se3.adjoint(cTp).T @ wrench_c


@struct.dataclass
class TorqueFactor(Factor):
    """Projection of the child wrench on the screw axis. Keys: child wrench, torque."""
    screw_axis: Array

    def evaluate_error(self, wrench, torque):
        return jnp.atleast_1d(self.screw_axis @ wrench - torque)


def planar_selection(planar_axis) -> Array:
    """3x6 matrix picking the wrench components that leave the motion plane.

    For a plane with unit normal n these are the two moments about in-plane
    axes and the force along n.
    """
    n = jnp.asarray(planar_axis, dtype=jnp.float64)
    n = n / jnp.linalg.norm(n)
    helper = jnp.eye(3)[jnp.argmin(jnp.abs(n))]
    u1 = jnp.cross(n, helper)
    u1 = u1 / jnp.linalg.norm(u1)
    u2 = jnp.cross(n, u1)
    zeros = jnp.zeros(3)
    return jnp.stack([
        jnp.concatenate([u1, zeros]),
        jnp.concatenate([u2, zeros]),
        jnp.concatenate([zeros, n]),
    ])


@struct.dataclass
class WrenchPlanarFactor(Factor):
    """Zeroes the out-of-plane components of a joint wrench. Keys: wrench."""
    selection: Array

    def evaluate_error(self, wrench):
        return self.selection @ wrench


@struct.dataclass
class JointLimitFactor(Factor):
    """Penalizes a coordinate closer than ``threshold`` to its limits. Keys: coordinate."""
    lower: float = struct.field(pytree_node=False)
    upper: float = struct.field(pytree_node=False)
    threshold: float = struct.field(pytree_node=False)

    def evaluate_error(self, q):
        low = self.lower + self.threshold
        high = self.upper - self.threshold
        return jnp.atleast_1d(jnp.where(q < low, low - q,
                                        jnp.where(q > high, q - high, 0.0)))
