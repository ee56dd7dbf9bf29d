"""Robot description loading.

This module turns description records, or URDF files parsed into records,
into :class:`~jax_dynamics.core.Robot` instances.
"""

from .description import JointRecord, LinkRecord, robot_from_records
from .urdf_parser import load_urdf, parse_urdf

__all__ = ["JointRecord", "LinkRecord", "load_urdf", "parse_urdf", "robot_from_records"]
