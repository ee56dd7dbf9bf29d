"""Variable keys shared by the constraint builder and the optimizer.

Every unknown of a trajectory problem is identified by a :class:`Key`, a
(kind, index, sub, t) tuple. Tuples compare lexicographically, which gives the
total order the solver uses to lay out its state vector. Fields that do not
apply to a kind are -1, so two distinct variables can never share a key.
"""

import enum
from typing import Dict, NamedTuple

import jax

Array = jax.Array


class VariableKind(enum.IntEnum):
    POSE = 0
    TWIST = 1
    TWIST_ACCEL = 2
    WRENCH = 3
    CONTACT_WRENCH = 4
    TORQUE = 5
    JOINT_ANGLE = 6
    JOINT_VEL = 7
    JOINT_ACCEL = 8
    PHASE = 9


_LABELS = {
    VariableKind.POSE: "p",
    VariableKind.TWIST: "V",
    VariableKind.TWIST_ACCEL: "A",
    VariableKind.WRENCH: "F",
    VariableKind.CONTACT_WRENCH: "C",
    VariableKind.TORQUE: "T",
    VariableKind.JOINT_ANGLE: "q",
    VariableKind.JOINT_VEL: "v",
    VariableKind.JOINT_ACCEL: "a",
    VariableKind.PHASE: "dt",
}

_TANGENT_DIMS = {
    VariableKind.POSE: 6,
    VariableKind.TWIST: 6,
    VariableKind.TWIST_ACCEL: 6,
    VariableKind.WRENCH: 6,
    VariableKind.CONTACT_WRENCH: 6,
    VariableKind.TORQUE: 1,
    VariableKind.JOINT_ANGLE: 1,
    VariableKind.JOINT_VEL: 1,
    VariableKind.JOINT_ACCEL: 1,
    VariableKind.PHASE: 1,
}


class Key(NamedTuple):
    """Identity of one optimization variable.

    Attributes:
        kind: Quantity kind.
        index: Link id, joint id or phase index.
        sub: Joint id for link wrenches, contact id for contact wrenches, else -1.
        t: Timestep, -1 for phase durations.
    """
    kind: VariableKind
    index: int
    sub: int = -1
    t: int = -1

    def __str__(self) -> str:
        label = _LABELS[self.kind]
        if self.kind == VariableKind.PHASE:
            return f"{label}{self.index}"
        if self.sub >= 0:
            return f"{label}{self.index}_{self.sub}_{self.t}"
        return f"{label}{self.index}_{self.t}"


# Solver assignments map keys to 4x4 poses, 6-vectors or scalars.
Values = Dict[Key, Array]


def pose_key(i: int, t: int = 0) -> Key:
    return Key(VariableKind.POSE, i, -1, t)


def twist_key(i: int, t: int = 0) -> Key:
    return Key(VariableKind.TWIST, i, -1, t)


def twist_accel_key(i: int, t: int = 0) -> Key:
    return Key(VariableKind.TWIST_ACCEL, i, -1, t)


def wrench_key(i: int, j: int, t: int = 0) -> Key:
    """Wrench applied on link i through joint j."""
    return Key(VariableKind.WRENCH, i, j, t)


def contact_wrench_key(i: int, c: int, t: int = 0) -> Key:
    """Wrench applied on link i by its contact point c."""
    return Key(VariableKind.CONTACT_WRENCH, i, c, t)


def torque_key(j: int, t: int = 0) -> Key:
    return Key(VariableKind.TORQUE, j, -1, t)


def joint_angle_key(j: int, t: int = 0) -> Key:
    return Key(VariableKind.JOINT_ANGLE, j, -1, t)


def joint_vel_key(j: int, t: int = 0) -> Key:
    return Key(VariableKind.JOINT_VEL, j, -1, t)


def joint_accel_key(j: int, t: int = 0) -> Key:
    return Key(VariableKind.JOINT_ACCEL, j, -1, t)


def phase_key(k: int) -> Key:
    """Duration of one timestep in phase k."""
    return Key(VariableKind.PHASE, k)


def is_pose(key: Key) -> bool:
    return key.kind == VariableKind.POSE


def tangent_dim(key: Key) -> int:
    """Dimension of the local parameterization of the variable."""
    return _TANGENT_DIMS[key.kind]
