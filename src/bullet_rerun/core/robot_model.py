"""RobotModel PyTree data structure for a parsed robot description.

The link tree is stored as a flat arena: index ``i`` is the link's position
in the ordered link list and every relationship is an integer index, so the
order is computed once at load time and never re-derived per frame.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from flax import struct
from jax import Array

from ..transforms import Pose


@dataclass(frozen=True, eq=False)
class Visual:
    """One ``<visual>`` element attached to a link.

    Attributes:
        origin: Pose of the geometry in the link frame.
        geometry: One of ``"mesh"``, ``"box"``, ``"cylinder"``, ``"sphere"``.
        size: Full box extents, already scaled.
        radius: Cylinder/sphere radius, already scaled.
        length: Cylinder length, already scaled.
        filename: Mesh reference exactly as written in the description.
        scale: Per-axis mesh scale, already multiplied by the global scaling.
        rgba: Material color in [0, 1], if the description gives one.
    """
    origin: Pose
    geometry: str
    size: Optional[Tuple[float, float, float]] = None
    radius: Optional[float] = None
    length: Optional[float] = None
    filename: Optional[str] = None
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    rgba: Optional[Tuple[float, float, float, float]] = None


@struct.dataclass
class RobotModel:
    """Immutable PyTree representation of a robot's kinematic structure.

    Attributes:
        link_names: Tuple of all link names in depth-first preorder from the
                    root, children in joint-declaration order. Index 0 is the
                    root; index ``i > 0`` is pybullet link index ``i - 1``.
        joint_names: Tuple of all actuated (non-fixed) joint names, in
                     ordered-link order of their child links.
        visuals: Per-link tuple of :class:`Visual`, aligned with link_names.
        parent_indices: Array of shape (num_links,) where parent_indices[i]
                       is the parent link index of link i. Root link parents itself.
        joint_transforms: Array of shape (num_links, 4, 4) holding the fixed
                         parent-to-child joint origin of each link.
        joint_axes: Array of shape (num_links, 6) holding the se(3) twist
                   axis of each link's joint, [vx,vy,vz,wx,wy,wz]. Zero for
                   the root and for fixed joints.
        actuated_joint_to_link_idx: Array of shape (num_dof,) mapping each
                                   actuated joint to the link it moves.
    """
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    visuals: Tuple[Tuple[Visual, ...], ...] = struct.field(pytree_node=False)
    parent_indices: Array
    joint_transforms: Array
    joint_axes: Array
    actuated_joint_to_link_idx: Array

    @property
    def root_link(self) -> str:
        return self.link_names[0]