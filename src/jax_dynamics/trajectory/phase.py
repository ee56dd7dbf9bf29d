"""A run of timesteps sharing one set of ground contacts."""

import enum
from typing import Dict, Optional, Tuple

import jax.numpy as jnp

from ..core import Robot
from ..errors import ConfigurationError
from ..factors import ContactPoint


class PhaseState(enum.IntEnum):
    DECLARED = 0
    CONFIGURED = 1
    INSTANTIATED = 2


class Phase:
    """Contact configuration held for ``num_time_steps`` steps.

    A phase starts DECLARED, becomes CONFIGURED once contact points are
    attached, and INSTANTIATED once placed on the global time axis by
    :meth:`instantiate`. States only move forward; an instantiated phase can
    no longer be modified.

    Args:
        robot: Robot model used for every step of the phase.
        num_time_steps: Number of steps in the phase, at least one.
    """

    def __init__(self, robot: Robot, num_time_steps: int):
        if num_time_steps < 1:
            raise ConfigurationError(f"A phase needs at least one time step, got {num_time_steps}")
        self.robot = robot
        self.num_time_steps = num_time_steps
        self.state = PhaseState.DECLARED
        self.start_time_step: Optional[int] = None
        self.end_time_step: Optional[int] = None
        self._contact_points: Dict[str, ContactPoint] = {}

    def __repr__(self) -> str:
        return (f"Phase(steps={self.num_time_steps}, contacts={list(self._contact_points)}, "
                f"state={self.state.name})")

    def add_contact_point(self, link_name: str, point, contact_id: int = 0,
                          ground_height: float = 0.0) -> "Phase":
        """Attach a contact on ``link_name`` at ``point`` (link COM frame).

        Raises:
            ConfigurationError: If the phase is instantiated or ``link_name``
                already has a contact.
        """
        if self.state is PhaseState.INSTANTIATED:
            raise ConfigurationError("Cannot add contact points to an instantiated phase")
        self.robot.link(link_name)
        if link_name in self._contact_points:
            raise ConfigurationError(f"Link '{link_name}' already has a contact in this phase")
        self._contact_points[link_name] = ContactPoint(
            link_name=link_name, point=jnp.asarray(point, dtype=jnp.float64),
            contact_id=contact_id, ground_height=ground_height)
        self.state = PhaseState.CONFIGURED
        return self

    def add_contact_points(self, link_names, point, contact_id: int = 0,
                           ground_height: float = 0.0) -> "Phase":
        """Attach the same contact point to several links."""
        for name in link_names:
            self.add_contact_point(name, point, contact_id, ground_height)
        return self

    @property
    def contact_points(self) -> Tuple[ContactPoint, ...]:
        return tuple(self._contact_points.values())

    @property
    def contact_link_names(self) -> Tuple[str, ...]:
        return tuple(self._contact_points)

    def has_contact(self, link_name: str) -> bool:
        return link_name in self._contact_points

    def instantiate(self, start: int, end: Optional[int] = None) -> "Phase":
        """Return a copy fixed to the global steps ``start`` through ``end``.

        ``end`` defaults to ``start + num_time_steps``.
        """
        if self.state is PhaseState.INSTANTIATED:
            raise ConfigurationError("Phase is already instantiated")
        phase = Phase(self.robot, self.num_time_steps)
        phase._contact_points = dict(self._contact_points)
        phase.start_time_step = start
        phase.end_time_step = start + self.num_time_steps if end is None else end
        phase.state = PhaseState.INSTANTIATED
        return phase
