"""Constraint equations over pose, twist, acceleration, wrench and joint variables."""

from .base import Factor, FactorGraph, PriorFactor, prior, retract
from .closure import PoseFactor, TwistAccelFactor, TwistFactor
from .collocation import (
    CollocationScheme,
    EulerCollocationFactor,
    PhaseEulerCollocationFactor,
    PhaseTrapezoidalCollocationFactor,
    TrapezoidalCollocationFactor,
    bilinear,
)
from .contact import (
    ContactDynamicsMomentFactor,
    ContactKinematicsAccelFactor,
    ContactKinematicsPoseFactor,
    ContactKinematicsTwistFactor,
    ContactPoint,
    PointGoalFactor,
    up_direction,
)
from .wrench import (
    JointLimitFactor,
    TorqueFactor,
    WrenchEquivalenceFactor,
    WrenchFactor,
    WrenchPlanarFactor,
    planar_selection,
)

__all__ = [
    "CollocationScheme",
    "ContactDynamicsMomentFactor",
    "ContactKinematicsAccelFactor",
    "ContactKinematicsPoseFactor",
    "ContactKinematicsTwistFactor",
    "ContactPoint",
    "EulerCollocationFactor",
    "Factor",
    "FactorGraph",
    "JointLimitFactor",
    "PhaseEulerCollocationFactor",
    "PhaseTrapezoidalCollocationFactor",
    "PointGoalFactor",
    "PoseFactor",
    "PriorFactor",
    "TorqueFactor",
    "TrapezoidalCollocationFactor",
    "TwistAccelFactor",
    "TwistFactor",
    "WrenchEquivalenceFactor",
    "WrenchFactor",
    "WrenchPlanarFactor",
    "bilinear",
    "planar_selection",
    "prior",
    "retract",
    "up_direction",
]
