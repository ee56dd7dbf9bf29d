"""Phases, walk cycles and multi-phase trajectories."""

from .phase import Phase, PhaseState
from .trajectory import Trajectory
from .walk_cycle import WalkCycle

__all__ = ["Phase", "PhaseState", "Trajectory", "WalkCycle"]
