"""
JAX Dynamics: multibody robot kinematics and dynamics constraint graphs.

Robots are link/joint graphs (closed loops allowed) with product-of-exponentials
kinematics. The dynamics graph builder turns a robot and a motion schedule
into factors over pose, twist, acceleration, wrench and joint variables,
differentiated exactly with JAX.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from . import factors
from .core import EffortType, Joint, JointType, Link, Robot
from .dynamics_graph import DynamicsGraph
from .errors import ConfigurationError, OptimizationError, UnknownNameError
from .factors import CollocationScheme, ContactPoint, FactorGraph
from .io import load_urdf, robot_from_records
from .optimizer import GaussNewtonOptimizer, LevenbergMarquardtOptimizer, Optimizer
from .settings import OptimizerSetting
from .trajectory import Phase, PhaseState, Trajectory, WalkCycle

__version__ = "0.1.0"
__all__ = [
    "CollocationScheme",
    "ConfigurationError",
    "ContactPoint",
    "DynamicsGraph",
    "EffortType",
    "FactorGraph",
    "GaussNewtonOptimizer",
    "Joint",
    "JointType",
    "LevenbergMarquardtOptimizer",
    "Link",
    "OptimizationError",
    "Optimizer",
    "OptimizerSetting",
    "Phase",
    "PhaseState",
    "Robot",
    "Trajectory",
    "UnknownNameError",
    "WalkCycle",
    "core",
    "factors",
    "io",
    "load_urdf",
    "robot_from_records",
    "transforms",
]
