"""Base constraint type and linearization machinery.

A factor is an equation ``error(x_1, ..., x_n) = 0`` over the variables named
by its keys, whitened by an isotropic sigma. Jacobians are exact: they are
obtained with ``jax.jacfwd`` in the local coordinates of each variable (poses
are perturbed on the right, T * Exp(delta); everything else additively).
"""

from typing import List, Sequence, Tuple

import jax
import jax.numpy as jnp
from flax import struct

from ..errors import UnknownNameError
from ..keys import Key, Values, is_pose, tangent_dim
from ..transforms import se3

Array = jax.Array


def retract(key: Key, value: Array, delta: Array) -> Array:
    """Move a variable by ``delta`` in its local coordinates."""
    value = jnp.asarray(value)
    if is_pose(key):
        return se3.retract(value, delta)
    if tangent_dim(key) == 1:
        return value + delta[0]
    return value + delta


@struct.dataclass
class Factor:
    """Isotropically whitened nonlinear equation.

    Subclasses implement :meth:`evaluate_error`, which receives the variable
    values in key order and returns the raw error vector.

    Attributes:
        keys: Variables the equation depends on.
        sigma: Standard deviation used to whiten the error.
    """
    keys: Tuple[Key, ...] = struct.field(pytree_node=False)
    sigma: float = struct.field(pytree_node=False)

    def evaluate_error(self, *values) -> Array:
        raise NotImplementedError

    def _gather(self, values: Values) -> List[Array]:
        gathered = []
        for key in self.keys:
            if key not in values:
                raise UnknownNameError("Variable", str(key), type(self).__name__)
            gathered.append(jnp.asarray(values[key]))
        return gathered

    def unwhitened_error(self, values: Values) -> Array:
        return jnp.atleast_1d(self.evaluate_error(*self._gather(values)))

    def whitened_error(self, values: Values) -> Array:
        return self.unwhitened_error(values) / self.sigma

    def error(self, values: Values) -> float:
        """Half the squared norm of the whitened error."""
        e = self.whitened_error(values)
        return 0.5 * float(jnp.dot(e, e))

    def linearize(self, values: Values) -> Tuple[Array, List[Array]]:
        """Unwhitened error and one jacobian per key, d error / d delta_k."""
        xs = self._gather(values)

        def local_error(*deltas):
            moved = [retract(key, x, d) for key, x, d in zip(self.keys, xs, deltas)]
            return jnp.atleast_1d(self.evaluate_error(*moved))

        deltas = tuple(jnp.zeros(tangent_dim(key)) for key in self.keys)
        error = local_error(*deltas)
        jacobians = jax.jacfwd(local_error, argnums=tuple(range(len(deltas))))(*deltas)
        return error, list(jacobians)

    def numerical_jacobians(self, values: Values, delta: float = 1e-6) -> List[Array]:
        """Centered finite-difference jacobians, for checking :meth:`linearize`."""
        xs = self._gather(values)
        jacobians = []
        for k, key in enumerate(self.keys):
            columns = []
            for d in range(tangent_dim(key)):
                step = jnp.zeros(tangent_dim(key)).at[d].set(delta)
                plus = list(xs)
                minus = list(xs)
                plus[k] = retract(key, xs[k], step)
                minus[k] = retract(key, xs[k], -step)
                e_plus = jnp.atleast_1d(self.evaluate_error(*plus))
                e_minus = jnp.atleast_1d(self.evaluate_error(*minus))
                columns.append((e_plus - e_minus) / (2.0 * delta))
            jacobians.append(jnp.stack(columns, axis=-1))
        return jacobians


@struct.dataclass
class PriorFactor(Factor):
    """Pins one variable to a value.

    Poses use the local coordinates Log(prior^-1 * T); vectors and scalars the
    plain difference.
    """
    prior: Array

    def evaluate_error(self, x):
        if is_pose(self.keys[0]):
            return se3.local(self.prior, x)
        return jnp.atleast_1d(x - self.prior)


def prior(key: Key, value, sigma: float) -> PriorFactor:
    return PriorFactor(keys=(key,), sigma=sigma, prior=jnp.asarray(value, dtype=jnp.float64))


class FactorGraph:
    """Ordered collection of factors.

    The solver treats a graph as an unordered set of equations keyed by
    variable identity; insertion order only matters for reporting.
    """

    def __init__(self, factors: Sequence[Factor] = ()):
        self._factors: List[Factor] = []
        for factor in factors:
            self.add(factor)

    def add(self, item) -> "FactorGraph":
        """Add a factor or every factor of another graph."""
        if isinstance(item, FactorGraph):
            self._factors.extend(item)
        elif isinstance(item, Factor):
            self._factors.append(item)
        else:
            raise TypeError(f"Cannot add {type(item).__name__} to a FactorGraph")
        return self

    def __iter__(self):
        return iter(self._factors)

    def __len__(self) -> int:
        return len(self._factors)

    def __getitem__(self, index) -> Factor:
        return self._factors[index]

    def keys(self) -> List[Key]:
        """Sorted set of variables referenced by the graph."""
        return sorted({key for factor in self._factors for key in factor.keys})

    def error(self, values: Values) -> float:
        return sum(factor.error(values) for factor in self._factors)

    def factors_of_type(self, factor_type) -> List[Factor]:
        return [factor for factor in self._factors if isinstance(factor, factor_type)]

    def __str__(self) -> str:
        lines = [f"{type(factor).__name__}: {' '.join(str(k) for k in factor.keys)}"
                 for factor in self._factors]
        return "\n".join(lines)
