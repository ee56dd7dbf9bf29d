"""SO(3) and so(3) Lie group operations in JAX.

This module implements the mathematical foundation for 3D rotations using
rotation matrices and axis-angle representations. All functions are pure,
JIT-able, and operate on JAX arrays.

The exponential and logarithm maps are written so that their derivatives stay
finite at the identity: constraint jacobians are always taken at a zero
perturbation, so a NaN gradient there would poison every linearization.
"""

import jax
import jax.numpy as jnp

Array = jax.Array

# Below this squared angle the Taylor expansions are used.
_SMALL_ANGLE_SQ = 1e-10


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    v = jnp.asarray(v)
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def vee(S: Array) -> Array:
    """Inverse of skew_symmetric: (..., 3, 3) -> (..., 3)."""
    return jnp.stack([S[..., 2, 1], S[..., 0, 2], S[..., 1, 0]], axis=-1)


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula R = I + A*K + B*K^2 with K = [w]_x,
    A = sin(theta)/theta and B = (1 - cos(theta))/theta^2.

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    log_r = jnp.asarray(log_r)
    theta_sq = jnp.sum(log_r * log_r, axis=-1)[..., None, None]
    small = theta_sq < _SMALL_ANGLE_SQ

    # Double-where keeps the unused branch finite under differentiation.
    safe_theta_sq = jnp.where(small, 1.0, theta_sq)
    theta = jnp.sqrt(safe_theta_sq)

    A = jnp.where(small, 1.0 - theta_sq / 6.0 + theta_sq**2 / 120.0,
                  jnp.sin(theta) / theta)
    B = jnp.where(small, 0.5 - theta_sq / 24.0 + theta_sq**2 / 720.0,
                  (1.0 - jnp.cos(theta)) / safe_theta_sq)

    K = skew_symmetric(log_r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)

    return I + A * K + B * jnp.matmul(K, K)


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors
    """
    R = jnp.asarray(R)
    # s = sin(theta) * axis, c = cos(theta)
    s = 0.5 * vee(R - jnp.swapaxes(R, -1, -2))
    c = 0.5 * (jnp.trace(R, axis1=-2, axis2=-1) - 1.0)

    s_sq = jnp.sum(s * s, axis=-1)
    small = s_sq < _SMALL_ANGLE_SQ
    near_pi = small & (c < 0.0)

    safe_s_norm = jnp.sqrt(jnp.where(small, 1.0, s_sq))
    theta = jnp.arctan2(safe_s_norm, c)

    # theta / sin(theta) ~ 1 + theta^2 / 6 for small angles
    scale = jnp.where(small, 1.0 + s_sq / 6.0, theta / safe_s_norm)
    w_general = scale[..., None] * s

    # Close to pi the axis is the dominant column of (R + I) / 2.
    B = 0.5 * (R + jnp.eye(3, dtype=R.dtype))
    diag_vals = jnp.diagonal(B, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.linalg.norm(axis_pi, axis=-1, keepdims=True)
    w_pi = jnp.pi * axis_pi

    return jnp.where(near_pi[..., None], w_pi, w_general)


def multiply(R1: Array, R2: Array) -> Array:
    """Return R1 @ R2."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """
    Compute inverse of rotation matrix.

    For rotation matrices, the inverse is simply the transpose.
    """
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:  # Single vector case
        return jnp.einsum('...ij,...j->...i', R, v)
    else:  # Multiple vectors case
        return jnp.einsum('...ij,...nj->...ni', R, v)


def rot_x(angle) -> Array:
    """Rotation about the x axis."""
    return exp(jnp.array([1.0, 0.0, 0.0]) * angle)


def rot_y(angle) -> Array:
    """Rotation about the y axis."""
    return exp(jnp.array([0.0, 1.0, 0.0]) * angle)


def rot_z(angle) -> Array:
    """Rotation about the z axis."""
    return exp(jnp.array([0.0, 0.0, 1.0]) * angle)


def from_rpy(roll, pitch, yaw) -> Array:
    """Roll-pitch-yaw angles to rotation matrix, R = Rz(yaw) Ry(pitch) Rx(roll)."""
    return rot_z(yaw) @ rot_y(pitch) @ rot_x(roll)
