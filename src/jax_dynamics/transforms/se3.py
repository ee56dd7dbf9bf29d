"""SE(3) and se(3) Lie group operations in JAX.

This module implements SE(3) rigid body transforms using homogeneous matrices
and 6D screw vectors. Twists, screw axes and wrenches all use the
[angular, linear] ordering, i.e. twist = [wx, wy, wz, vx, vy, vz] and
wrench = [mx, my, mz, fx, fy, fz].
All functions are pure, JIT-able, and operate on JAX arrays.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array

_SMALL_ANGLE_SQ = 1e-10


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p, dtype=jnp.float64)
    R = jnp.asarray(R, dtype=jnp.float64)
    # Ensure consistent batch shapes
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_position(p) -> Array:
    """Pure translation."""
    return from_position_and_rotation(jnp.asarray(p, dtype=jnp.float64), jnp.eye(3))


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    Args:
        twist: (..., 6) array of twists [wx, wy, wz, vx, vy, vz].

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    twist = jnp.asarray(twist)
    w, v = twist[..., :3], twist[..., 3:]

    R = so3.exp(w)

    theta_sq = jnp.sum(w * w, axis=-1)[..., None, None]
    small = theta_sq < _SMALL_ANGLE_SQ
    safe_theta_sq = jnp.where(small, 1.0, theta_sq)
    theta = jnp.sqrt(safe_theta_sq)

    # V = I + B*K + C*K^2
    # B = (1 - cos(theta)) / theta^2, C = (theta - sin(theta)) / theta^3
    B = jnp.where(small, 0.5 - theta_sq / 24.0 + theta_sq**2 / 720.0,
                  (1.0 - jnp.cos(theta)) / safe_theta_sq)
    C = jnp.where(small, 1.0 / 6.0 - theta_sq / 120.0 + theta_sq**2 / 5040.0,
                  (theta - jnp.sin(theta)) / (safe_theta_sq * theta))

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)
    V = I + B * K + C * jnp.matmul(K, K)

    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def log(T: Array) -> Array:
    """
    SE(3) logarithm map: convert transformation matrix to twist.

    Args:
        T: (..., 4, 4) array of transformation matrices.

    Returns:
        (..., 6) array of twists [wx, wy, wz, vx, vy, vz].
    """
    T = jnp.asarray(T)
    R, t = T[..., :3, :3], T[..., :3, 3]

    w = so3.log(R)
    K = so3.skew_symmetric(w)

    theta_sq = jnp.sum(w * w, axis=-1)[..., None, None]
    small = theta_sq < _SMALL_ANGLE_SQ
    safe_theta_sq = jnp.where(small, 1.0, theta_sq)
    half_theta = 0.5 * jnp.sqrt(safe_theta_sq)

    # V_inv = I - 0.5*K + D*K^2, D = (1 - (theta/2) cot(theta/2)) / theta^2
    D = jnp.where(small, 1.0 / 12.0 + theta_sq / 720.0,
                  (1.0 - half_theta * jnp.cos(half_theta) / jnp.sin(half_theta)) / safe_theta_sq)

    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)
    V_inv = I - 0.5 * K + D * jnp.matmul(K, K)

    v = jnp.einsum("...ij,...j->...i", V_inv, t)

    return jnp.concatenate([w, v], axis=-1)


def multiply(T1: Array, T2: Array) -> Array:
    """Return T1 @ T2."""
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure for efficient computation:
    T^-1 = [[R^T, -R^T @ t], [0, 1]]
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    points = jnp.asarray(points)
    ones = jnp.ones_like(points[..., 0:1])
    points_h = jnp.concatenate([points, ones], axis=-1)

    transformed_h = jnp.einsum("...ij,...j->...i", T, points_h)

    return transformed_h[..., :3]


def get_position(T: Array) -> Array:
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    return T[..., :3, :3]


def adjoint(T: Array) -> Array:
    """
    Compute the Adjoint matrix [Ad_T] of an SE(3) transformation.

    For T = [[R, p], [0, 1]]:
        [Ad_T] = [[R,      0],
                  [[p]_x R, R]]

    Ad_T maps a twist expressed in the frame of T's child into its parent.
    Its transpose maps wrenches the opposite way.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 6, 6) adjoint matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    t_skew = so3.skew_symmetric(t)
    zeros = jnp.zeros_like(R)

    top = jnp.concatenate([R, zeros], axis=-1)
    bottom = jnp.concatenate([jnp.matmul(t_skew, R), R], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def ad(twist: Array) -> Array:
    """
    Lie bracket operator [ad_V] of a twist V = (w, v).

        [ad_V] = [[[w]_x,    0  ],
                  [[v]_x, [w]_x]]
    """
    twist = jnp.asarray(twist)
    w_skew = so3.skew_symmetric(twist[..., :3])
    v_skew = so3.skew_symmetric(twist[..., 3:])
    zeros = jnp.zeros_like(w_skew)

    top = jnp.concatenate([w_skew, zeros], axis=-1)
    bottom = jnp.concatenate([v_skew, w_skew], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def retract(T: Array, delta: Array) -> Array:
    """Right perturbation T * Exp(delta)."""
    return jnp.matmul(T, exp(delta))


def local(T1: Array, T2: Array) -> Array:
    """Local coordinates of T2 around T1: Log(T1^-1 T2)."""
    return log(jnp.matmul(inverse(T1), T2))
