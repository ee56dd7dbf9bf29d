"""Kinematics queries: link transforms, COM transforms and forward kinematics.

Every joint stores its screw axis once, so each query is a single
product-of-exponentials step per joint: rest transform composed with
exp(screw_axis * q). Joints missing from ``joint_angles`` sit at their rest
coordinate (zero). None of the queries mutate the robot.
"""

from collections import deque
from typing import Dict, Mapping, Optional

import jax

from .core import Joint, Robot
from .errors import UnknownNameError
from .transforms import se3

Array = jax.Array


def _angles(robot: Robot, joint_angles: Optional[Mapping[str, float]]) -> Dict[str, float]:
    """Resolve a partial joint-name -> coordinate map against the robot."""
    joint_angles = dict(joint_angles or {})
    for name in joint_angles:
        if name not in robot.joint_names:
            raise UnknownNameError("Joint", name)
    return {joint.name: joint_angles.get(joint.name, 0.0) for joint in robot.joints}


def link_transforms(robot: Robot,
                    joint_angles: Optional[Mapping[str, float]] = None
                    ) -> Dict[str, Dict[str, Array]]:
    """Transform of every link frame relative to each of its parent links.

    A link reached through several joints (closed loop) has one entry per
    parent. Links without parents map to an empty dict.

    Args:
        robot: Robot to query.
        joint_angles: Optional map from joint name to coordinate.

    Returns:
        {link name: {parent link name: (4, 4) pTc}}
    """
    q = _angles(robot, joint_angles)
    transforms: Dict[str, Dict[str, Array]] = {link.name: {} for link in robot.links}
    for joint in robot.joints:
        transforms[joint.child_name][joint.parent_name] = joint.link_transform(q[joint.name])
    return transforms


def child_to_parent_com(robot: Robot, joint_name: str, q: Optional[float] = None) -> Array:
    """Pose of the parent link's COM frame in the child link's COM frame.

    Args:
        robot: Robot to query.
        joint_name: Joint connecting the two links.
        q: Joint coordinate, rest (zero) when omitted.
    """
    joint = robot.joint(joint_name)
    return joint.transform_to_parent(0.0 if q is None else q)


def com_transforms(robot: Robot,
                   joint_angles: Optional[Mapping[str, float]] = None
                   ) -> Dict[str, Dict[str, Array]]:
    """cTp COM transforms for every joint, grouped by child link.

    Returns:
        {child link name: {parent link name: (4, 4) cTp}}; links without
        parents are omitted.
    """
    q = _angles(robot, joint_angles)
    transforms: Dict[str, Dict[str, Array]] = {}
    for joint in robot.joints:
        transforms.setdefault(joint.child_name, {})[joint.parent_name] = (
            joint.transform_to_parent(q[joint.name]))
    return transforms


def forward_kinematics(robot: Robot,
                       joint_angles: Optional[Mapping[str, float]] = None,
                       root: Optional[str] = None) -> Dict[str, Array]:
    """World poses of every link's COM frame.

    Poses are propagated breadth-first from ``root``, whose pose is its fixed
    pose if it is fixed and its rest pose otherwise. In a closed loop the
    first path to reach a link wins; loop-closing joints are not re-traversed.

    Args:
        robot: Robot to query.
        joint_angles: Optional map from joint name to coordinate.
        root: Link to start from. Defaults to the first fixed link, or the
            first declared link when none is fixed.

    Returns:
        {link name: (4, 4) wTcom}
    """
    q = _angles(robot, joint_angles)
    if root is None:
        fixed = [link for link in robot.links if link.is_fixed]
        root_link = fixed[0] if fixed else robot.links[0]
    else:
        root_link = robot.link(root)

    start = root_link.fixed_pose if root_link.is_fixed else root_link.com_pose
    poses: Dict[str, Array] = {root_link.name: start}
    queue = deque([root_link])
    while queue:
        link = queue.popleft()
        for joint in robot.link_joints(link.name):
            other = robot.link_by_id(joint.other_link_id(link.id))
            if other.name in poses:
                continue
            poses[other.name] = poses[link.name] @ _relative_com(joint, link.id, q[joint.name])
            queue.append(other)
    return poses


def _relative_com(joint: Joint, from_id: int, q) -> Array:
    """COM frame of the link across ``joint`` expressed in link ``from_id``."""
    if from_id == joint.parent_id:
        return joint.transform_from_parent(q)
    return joint.transform_to_parent(q)


def spatial_screw_axes(robot: Robot) -> Dict[str, Array]:
    """Screw axes of all joints at the rest configuration, in the world frame."""
    return {
        joint.name: se3.adjoint(robot.link_by_id(joint.child_id).com_pose) @ joint.screw_axis
        for joint in robot.joints
    }
