"""Robot: the owner of every link and joint of a multibody system.

The link/joint topology is a general graph. Closed kinematic loops such as
four-bar linkages are allowed, so nothing here recurses along owning
pointers: links and joints live in flat tuples and refer to each other by id.
"""

from collections import deque
from typing import Dict, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp

from ..errors import ConfigurationError, UnknownNameError
from .joint import Joint
from .link import Link

Array = jax.Array


class Robot:
    """Immutable link/joint topology with name-indexed lookup.

    Args:
        links: Links in declaration order; ``links[i].id`` must equal ``i``.
        joints: Joints in declaration order; ``joints[j].id`` must equal ``j``.

    Raises:
        ConfigurationError: If the back-references disagree with the joints'
            endpoints, or the topology is not a single connected component.
    """

    def __init__(self, links: Sequence[Link], joints: Sequence[Joint]):
        links = tuple(links)
        joints = tuple(joints)
        _check_topology(links, joints)

        self._links = links
        self._joints = joints
        self._link_map: Dict[str, Link] = {link.name: link for link in links}
        self._joint_map: Dict[str, Joint] = {joint.name: joint for joint in joints}

    def __repr__(self) -> str:
        return f"Robot(links={list(self._link_map)}, joints={list(self._joint_map)})"

    @property
    def links(self) -> Tuple[Link, ...]:
        return self._links

    @property
    def joints(self) -> Tuple[Joint, ...]:
        return self._joints

    @property
    def num_links(self) -> int:
        return len(self._links)

    @property
    def num_joints(self) -> int:
        return len(self._joints)

    @property
    def link_names(self) -> Tuple[str, ...]:
        return tuple(self._link_map)

    @property
    def joint_names(self) -> Tuple[str, ...]:
        return tuple(self._joint_map)

    def link(self, name: str) -> Link:
        try:
            return self._link_map[name]
        except KeyError:
            raise UnknownNameError("Link", name) from None

    def joint(self, name: str) -> Joint:
        try:
            return self._joint_map[name]
        except KeyError:
            raise UnknownNameError("Joint", name) from None

    def link_by_id(self, i: int) -> Link:
        return self._links[i]

    def joint_by_id(self, j: int) -> Joint:
        return self._joints[j]

    # Topology queries

    def link_joints(self, name: str) -> Tuple[Joint, ...]:
        """All joints attached to a link, in joint declaration order."""
        return tuple(self._joints[j] for j in self.link(name).joint_ids)

    def parent_joints(self, name: str) -> Tuple[Joint, ...]:
        return tuple(self._joints[j] for j in self.link(name).parent_joint_ids)

    def child_joints(self, name: str) -> Tuple[Joint, ...]:
        return tuple(self._joints[j] for j in self.link(name).child_joint_ids)

    def parent_links(self, name: str) -> Tuple[Link, ...]:
        return tuple(self._links[joint.parent_id] for joint in self.parent_joints(name))

    def child_links(self, name: str) -> Tuple[Link, ...]:
        return tuple(self._links[joint.child_id] for joint in self.child_joints(name))

    def joint_between(self, name_1: str, name_2: str) -> Optional[Joint]:
        """Return the joint connecting two links, or None if they are not adjacent."""
        link_1 = self.link(name_1)
        link_2 = self.link(name_2)
        for j in link_1.joint_ids:
            if self._joints[j].other_link_id(link_1.id) == link_2.id:
                return self._joints[j]
        return None

    # Aggregate joint properties

    def screw_axes(self) -> Dict[str, Array]:
        """Each joint's screw axis in its child link's COM frame."""
        return {joint.name: joint.screw_axis for joint in self._joints}

    def joint_lower_limits(self) -> Dict[str, float]:
        return {joint.name: joint.lower_limit for joint in self._joints}

    def joint_upper_limits(self) -> Dict[str, float]:
        return {joint.name: joint.upper_limit for joint in self._joints}

    def joint_limit_thresholds(self) -> Dict[str, float]:
        return {joint.name: joint.limit_threshold for joint in self._joints}

    # Fixed-pose overrides

    def fix_link(self, name: str, pose: Optional[Array] = None) -> "Robot":
        """Return a copy of this robot with a link pinned to the world.

        Args:
            name: Link to fix.
            pose: World pose of the link's COM frame. Defaults to its rest pose.
        """
        link = self.link(name)
        fixed_pose = link.com_pose if pose is None else jnp.asarray(pose, dtype=jnp.float64)
        return self._with_link(link.replace(is_fixed=True, fixed_pose=fixed_pose))

    def unfix_link(self, name: str) -> "Robot":
        link = self.link(name)
        return self._with_link(link.replace(is_fixed=False, fixed_pose=None))

    def _with_link(self, link: Link) -> "Robot":
        links = list(self._links)
        links[link.id] = link
        return Robot(links, self._joints)


def _check_topology(links: Tuple[Link, ...], joints: Tuple[Joint, ...]) -> None:
    """Verify ids, back-references and connectivity of a link/joint set."""
    for i, link in enumerate(links):
        if link.id != i:
            raise ConfigurationError(f"Link '{link.name}' has id {link.id}, expected {i}")
    for j, joint in enumerate(joints):
        if joint.id != j:
            raise ConfigurationError(f"Joint '{joint.name}' has id {joint.id}, expected {j}")
        for end in (joint.parent_id, joint.child_id):
            if not 0 <= end < len(links):
                raise ConfigurationError(
                    f"Joint '{joint.name}' references missing link id {end}")

    for link in links:
        expected_parents = tuple(j.id for j in joints if j.child_id == link.id)
        expected_children = tuple(j.id for j in joints if j.parent_id == link.id)
        if (sorted(link.parent_joint_ids) != sorted(expected_parents)
                or sorted(link.child_joint_ids) != sorted(expected_children)):
            raise ConfigurationError(
                f"Link '{link.name}' joint references do not match the joint endpoints")

    if not links:
        return

    # Breadth-first search over the undirected graph; the visited set
    # terminates traversal around closed loops.
    adjacency = {link.id: [] for link in links}
    for joint in joints:
        adjacency[joint.parent_id].append(joint.child_id)
        adjacency[joint.child_id].append(joint.parent_id)

    visited = {links[0].id}
    queue = deque([links[0].id])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency[current]:
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)

    if len(visited) != len(links):
        unreachable = [link.name for link in links if link.id not in visited]
        raise ConfigurationError(
            f"Robot topology is disconnected; unreachable from '{links[0].name}': {unreachable}")
