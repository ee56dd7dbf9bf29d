"""
JAX-based rigid-body transforms for multibody dynamics.

This module provides mathematically rigorous, differentiable implementations of:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms, twists and wrenches (se3 module)

All functions are pure, stateless, and designed for use inside constraint
jacobians computed with jax.jacfwd.
"""

# Core Lie group modules
from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
