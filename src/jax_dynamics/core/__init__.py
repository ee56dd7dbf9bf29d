"""Core robot data structures for JAX Dynamics.

This module provides the link/joint topology used by the kinematics engine
and the dynamics graph builder.
"""

from .joint import EffortType, Joint, JointType, screw_from_axis
from .link import Link
from .robot import Robot

__all__ = ["EffortType", "Joint", "JointType", "Link", "Robot", "screw_from_axis"]
