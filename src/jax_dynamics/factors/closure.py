"""Joint closure equations at the pose, twist and acceleration level.

For a joint with screw axis S (child COM frame) and coordinate q, the parent
COM frame seen from the child is cTp(q) = exp(-S q) * cMp, and

    wTc = wTp * pTc(q)
    V_c = Ad(cTp) V_p + S qdot
    A_c = Ad(cTp) A_p + ad(V_c) S qdot + S qddot
"""

from flax import struct

from ..core import Joint
from ..transforms import se3
from .base import Factor


@struct.dataclass
class PoseFactor(Factor):
    """Keys: parent pose, child pose, joint angle."""
    joint: Joint

    def evaluate_error(self, wTp, wTc, q):
        wTc_hat = wTp @ self.joint.transform_from_parent(q)
        return se3.local(wTc, wTc_hat)


@struct.dataclass
class TwistFactor(Factor):
    """Keys: parent twist, child twist, joint angle, joint velocity."""
    joint: Joint

    def evaluate_error(self, twist_p, twist_c, q, qdot):
        cTp = self.joint.transform_to_parent(q)
        return se3.adjoint(cTp) @ twist_p + self.joint.screw_axis * qdot - twist_c


@struct.dataclass
class TwistAccelFactor(Factor):
    """Keys: child twist, parent accel, child accel, angle, velocity, acceleration."""
    joint: Joint

    def evaluate_error(self, twist_c, accel_p, accel_c, q, qdot, qddot):
        S = self.joint.screw_axis
        cTp = self.joint.transform_to_parent(q)
        return (se3.adjoint(cTp) @ accel_p
                + se3.ad(twist_c) @ S * qdot
                + S * qddot
                - accel_c)
