"""URDF parser producing robot description records.

This module parses URDF files into :class:`LinkRecord` / :class:`JointRecord`
lists. Unlike a strict URDF reader it accepts closed kinematic loops: a link
may be the child of more than one joint (e.g. a four-bar linkage).
"""

from collections import deque
from typing import Dict, List, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from lxml import etree

from ..core import EffortType, JointType, Robot
from ..errors import ConfigurationError
from ..transforms import se3, so3
from .description import JointRecord, LinkRecord, robot_from_records

_JOINT_TYPES = {
    "revolute": JointType.REVOLUTE,
    "continuous": JointType.REVOLUTE,
    "prismatic": JointType.PRISMATIC,
    "fixed": JointType.FIXED,
}


def load_urdf(urdf_path: str,
              effort_types: Optional[Dict[str, EffortType]] = None) -> Robot:
    """Load a URDF file and build a Robot.

    Args:
        urdf_path: Path to the URDF file to load.
        effort_types: Optional map from joint name to effort type. Joints not
            listed are actuated.

    Returns:
        Robot: The link/joint topology described by the file.
    """
    link_records, joint_records = parse_urdf(urdf_path, effort_types)
    return robot_from_records(link_records, joint_records)


def parse_urdf(urdf_path: str,
               effort_types: Optional[Dict[str, EffortType]] = None
               ) -> Tuple[List[LinkRecord], List[JointRecord]]:
    """Parse a URDF file into description records.

    Args:
        urdf_path: Path to the URDF file to load.
        effort_types: Optional map from joint name to effort type.

    Returns:
        Link records in document order and joint records in document order.
    """
    effort_types = effort_types or {}
    tree = etree.parse(urdf_path)
    root = tree.getroot()

    # First pass: joints and the link-frame origins they carry
    joints_info = []
    for joint in root.findall('joint'):
        joint_name = joint.get('name')
        joint_type = joint.get('type')
        if joint_type not in _JOINT_TYPES:
            raise ConfigurationError(
                f"Joint '{joint_name}' has unsupported type '{joint_type}'")

        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            raise ConfigurationError(f"Joint '{joint_name}' needs a parent and a child")

        axis_elem = joint.find('axis')
        axis = _parse_vector(axis_elem.get('xyz') if axis_elem is not None else None,
                             default=(1.0, 0.0, 0.0))

        lower, upper = -np.inf, np.inf
        limit_elem = joint.find('limit')
        if joint_type != 'continuous' and limit_elem is not None:
            lower = float(limit_elem.get('lower', -np.inf))
            upper = float(limit_elem.get('upper', np.inf))

        joints_info.append({
            'name': joint_name,
            'kind': _JOINT_TYPES[joint_type],
            'parent': parent_elem.get('link'),
            'child': child_elem.get('link'),
            'origin': _parse_origin(joint.find('origin')),
            'axis': axis,
            'lower': lower,
            'upper': upper,
        })

    # Second pass: link frames, found breadth-first from the root links. A
    # link reached again through a loop-closing joint keeps its first pose.
    link_elems = root.findall('link')
    link_names = [link.get('name') for link in link_elems]
    child_links = {info['child'] for info in joints_info}
    roots = [name for name in link_names if name not in child_links] or link_names[:1]

    link_poses: Dict[str, jnp.ndarray] = {}
    for root_name in roots:
        if root_name in link_poses:
            continue
        link_poses[root_name] = jnp.eye(4)
        queue = deque([root_name])
        while queue:
            current = queue.popleft()
            for info in joints_info:
                if info['parent'] == current and info['child'] not in link_poses:
                    link_poses[info['child']] = link_poses[current] @ info['origin']
                    queue.append(info['child'])
                elif info['child'] == current and info['parent'] not in link_poses:
                    link_poses[info['parent']] = link_poses[current] @ se3.inverse(info['origin'])
                    queue.append(info['parent'])

    link_records = []
    for link in link_elems:
        name = link.get('name')
        mass, inertia, com = _parse_inertial(link.find('inertial'))
        link_records.append(LinkRecord(
            name=name,
            mass=mass,
            inertia=inertia,
            pose=link_poses.get(name, jnp.eye(4)),
            com=com,
        ))

    joint_records = [
        JointRecord(
            name=info['name'],
            kind=info['kind'],
            parent=info['parent'],
            child=info['child'],
            axis=jnp.asarray(info['axis']),
            effort_type=effort_types.get(info['name'], EffortType.ACTUATED),
            lower=info['lower'],
            upper=info['upper'],
            origin=info['origin'],
        )
        for info in joints_info
    ]

    return link_records, joint_records


def _parse_vector(text: Optional[str], default=(0.0, 0.0, 0.0)) -> np.ndarray:
    if text is None:
        return np.array(default, dtype=np.float64)
    return np.array([float(x) for x in text.split()], dtype=np.float64)


def _parse_origin(origin_elem) -> jnp.ndarray:
    """Convert an <origin xyz rpy> element to a 4x4 transform."""
    if origin_elem is None:
        return jnp.eye(4)
    xyz = _parse_vector(origin_elem.get('xyz'))
    rpy = _parse_vector(origin_elem.get('rpy'))
    R = so3.from_rpy(*rpy)
    return se3.from_position_and_rotation(jnp.array(xyz), R)


def _parse_inertial(inertial_elem):
    """Return mass, 3x3 inertia and the COM frame of an <inertial> element."""
    if inertial_elem is None:
        return 0.0, jnp.zeros((3, 3)), jnp.eye(4)

    mass_elem = inertial_elem.find('mass')
    mass = float(mass_elem.get('value', 0.0)) if mass_elem is not None else 0.0

    inertia = np.zeros((3, 3))
    inertia_elem = inertial_elem.find('inertia')
    if inertia_elem is not None:
        ixx, ixy, ixz, iyy, iyz, izz = (
            float(inertia_elem.get(attr, 0.0))
            for attr in ('ixx', 'ixy', 'ixz', 'iyy', 'iyz', 'izz'))
        inertia = np.array([
            [ixx, ixy, ixz],
            [ixy, iyy, iyz],
            [ixz, iyz, izz],
        ])

    return mass, jnp.asarray(inertia), _parse_origin(inertial_elem.find('origin'))
