"""Nonlinear least-squares solvers over a :class:`FactorGraph`.

The graph builder only needs something satisfying :class:`Optimizer`. The two
implementations here are dense reference solvers meant for small problems and
tests: every factor is linearized with exact jacobians, whitened, stacked
into one matrix and solved with ``jnp.linalg.lstsq``. Poses are updated on
the manifold, T * Exp(delta).
"""

import logging
from typing import Dict, List, Optional, Protocol, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from .errors import ConfigurationError, OptimizationError
from .factors import FactorGraph, retract
from .keys import Key, Values, tangent_dim
from .settings import OptimizerSetting

logger = logging.getLogger(__name__)

Array = jax.Array


class Optimizer(Protocol):
    def optimize(self, graph: FactorGraph, initial: Values) -> Values:
        """Return an assignment minimizing the graph error, starting from ``initial``."""
        ...


def _ordering(graph: FactorGraph, initial: Values) -> Tuple[List[Key], Dict[Key, int], int]:
    keys = graph.keys()
    missing = [str(key) for key in keys if key not in initial]
    if missing:
        raise ConfigurationError(f"Initial values are missing variables: {', '.join(missing)}")
    offsets = {}
    total = 0
    for key in keys:
        offsets[key] = total
        total += tangent_dim(key)
    return keys, offsets, total


def _linear_system(graph: FactorGraph, values: Values,
                   offsets: Dict[Key, int], dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """Whitened jacobian A and right-hand side b = -error."""
    rows_A, rows_b = [], []
    for factor in graph:
        error, jacobians = factor.linearize(values)
        block = np.zeros((error.shape[0], dim))
        for key, jacobian in zip(factor.keys, jacobians):
            jacobian = np.asarray(jacobian).reshape(error.shape[0], tangent_dim(key))
            start = offsets[key]
            block[:, start:start + tangent_dim(key)] += jacobian
        rows_A.append(block / factor.sigma)
        rows_b.append(-np.asarray(error) / factor.sigma)
    return np.vstack(rows_A), np.concatenate(rows_b)


def _update(values: Values, keys: List[Key], offsets: Dict[Key, int], delta: Array) -> Values:
    updated = dict(values)
    for key in keys:
        start = offsets[key]
        step = delta[start:start + tangent_dim(key)]
        updated[key] = retract(key, values[key], step)
    return updated


def _solve(A: np.ndarray, b: np.ndarray, damping: float = 0.0) -> Array:
    if damping > 0.0:
        n = A.shape[1]
        A = np.vstack([A, np.sqrt(damping) * np.eye(n)])
        b = np.concatenate([b, np.zeros(n)])
    delta, *_ = jnp.linalg.lstsq(jnp.asarray(A), jnp.asarray(b))
    if not bool(jnp.all(jnp.isfinite(delta))):
        raise OptimizationError("Linear solve produced a non-finite step")
    return delta


def _converged(setting: OptimizerSetting, previous: float, current: float) -> bool:
    if current <= setting.absolute_error_tol:
        return True
    decrease = previous - current
    return (abs(decrease) <= setting.absolute_error_tol
            or abs(decrease) <= setting.relative_error_tol * previous)


class GaussNewtonOptimizer:
    """Undamped Gauss-Newton iteration.

    Args:
        setting: Iteration budget and tolerances.
    """

    def __init__(self, setting: Optional[OptimizerSetting] = None):
        self.setting = setting if setting is not None else OptimizerSetting()

    def optimize(self, graph: FactorGraph, initial: Values) -> Values:
        keys, offsets, dim = _ordering(graph, initial)
        values = dict(initial)
        error = graph.error(values)
        logger.debug("Gauss-Newton: %d factors, %d dims, initial error %g",
                     len(graph), dim, error)
        if error <= self.setting.absolute_error_tol:
            return values

        for iteration in range(self.setting.max_iterations):
            A, b = _linear_system(graph, values, offsets, dim)
            values = _update(values, keys, offsets, _solve(A, b))
            new_error = graph.error(values)
            if not np.isfinite(new_error):
                raise OptimizationError(f"Error became non-finite at iteration {iteration}")
            logger.debug("iteration %d: error %g", iteration, new_error)
            if _converged(self.setting, error, new_error):
                return values
            error = new_error
        raise OptimizationError(
            f"Gauss-Newton did not converge in {self.setting.max_iterations} iterations "
            f"(error {error:g})")


class LevenbergMarquardtOptimizer:
    """Levenberg-Marquardt with multiplicative damping updates.

    A step is accepted when it lowers the error, after which the damping
    shrinks by ``lambda_factor``; otherwise the damping grows and the step is
    retried. Once the damping exceeds ``lambda_upper_bound`` the current values
    are returned if they are stationary (whitened gradient below
    ``gradient_tol``); otherwise the solve has stalled and
    :class:`OptimizationError` is raised.

    Args:
        setting: Iteration budget, tolerances and damping schedule.
    """

    def __init__(self, setting: Optional[OptimizerSetting] = None):
        self.setting = setting if setting is not None else OptimizerSetting()

    def optimize(self, graph: FactorGraph, initial: Values) -> Values:
        s = self.setting
        keys, offsets, dim = _ordering(graph, initial)
        values = dict(initial)
        error = graph.error(values)
        logger.debug("Levenberg-Marquardt: %d factors, %d dims, initial error %g",
                     len(graph), dim, error)
        if error <= s.absolute_error_tol:
            return values

        damping = s.lambda_initial
        for iteration in range(s.max_iterations):
            A, b = _linear_system(graph, values, offsets, dim)
            while True:
                candidate = _update(values, keys, offsets, _solve(A, b, damping))
                new_error = graph.error(candidate)
                if np.isfinite(new_error) and new_error < error:
                    damping = max(damping / s.lambda_factor, 1e-12)
                    break
                damping *= s.lambda_factor
                if damping > s.lambda_upper_bound:
                    gradient = float(np.max(np.abs(A.T @ b)))
                    if error > s.absolute_error_tol and gradient > s.gradient_tol:
                        raise OptimizationError(
                            f"Levenberg-Marquardt stalled at iteration {iteration} "
                            f"(error {error:g}, gradient {gradient:g})")
                    logger.warning("Damping exceeded %g at iteration %d; stopping with error %g",
                                   s.lambda_upper_bound, iteration, error)
                    return values
            logger.debug("iteration %d: error %g, lambda %g", iteration, new_error, damping)
            values = candidate
            if _converged(s, error, new_error):
                return values
            error = new_error
        raise OptimizationError(
            f"Levenberg-Marquardt did not converge in {s.max_iterations} iterations "
            f"(error {error:g})")
