"""Integration constraints between adjacent timesteps.

Each factor ties a quantity ``x`` and its derivative ``dx`` at timesteps t and
t+1. The single-phase variants carry a constant step ``dt``; the multi-phase
variants read the step from a phase-duration variable, so the product
``dt * dx`` is bilinear in two unknowns.
"""

import enum

import jax
import jax.numpy as jnp
from flax import struct

from ..errors import ConfigurationError
from .base import Factor

Array = jax.Array


class CollocationScheme(enum.Enum):
    EULER = "euler"
    RUNGE_KUTTA = "runge_kutta"
    TRAPEZOIDAL = "trapezoidal"
    HERMITE_SIMPSON = "hermite_simpson"


IMPLEMENTED_SCHEMES = (CollocationScheme.EULER, CollocationScheme.TRAPEZOIDAL)


def check_scheme(scheme: CollocationScheme) -> None:
    if scheme not in IMPLEMENTED_SCHEMES:
        raise ConfigurationError(f"Collocation scheme {scheme.name} is not implemented")


@jax.custom_jvp
def bilinear(a, b):
    """Product a * b with the exact partial derivatives (b, a)."""
    return a * b


@bilinear.defjvp
def _bilinear_jvp(primals, tangents):
    a, b = primals
    a_dot, b_dot = tangents
    return a * b, b * a_dot + a * b_dot


@struct.dataclass
class EulerCollocationFactor(Factor):
    """x0 + dt * dx0 - x1. Keys: x0, x1, dx0."""
    dt: float = struct.field(pytree_node=False)

    def evaluate_error(self, x0, x1, dx0):
        return jnp.atleast_1d(x0 + self.dt * dx0 - x1)


@struct.dataclass
class TrapezoidalCollocationFactor(Factor):
    """x0 + dt * (dx0 + dx1) / 2 - x1. Keys: x0, x1, dx0, dx1."""
    dt: float = struct.field(pytree_node=False)

    def evaluate_error(self, x0, x1, dx0, dx1):
        return jnp.atleast_1d(x0 + 0.5 * self.dt * (dx0 + dx1) - x1)


@struct.dataclass
class PhaseEulerCollocationFactor(Factor):
    """Euler step scaled by a phase duration. Keys: x0, x1, dx0, dt."""

    def evaluate_error(self, x0, x1, dx0, dt):
        return jnp.atleast_1d(x0 + bilinear(dt, dx0) - x1)


@struct.dataclass
class PhaseTrapezoidalCollocationFactor(Factor):
    """Trapezoidal step scaled by a phase duration. Keys: x0, x1, dx0, dx1, dt."""

    def evaluate_error(self, x0, x1, dx0, dx1, dt):
        return jnp.atleast_1d(x0 + 0.5 * bilinear(dt, dx0 + dx1) - x1)
