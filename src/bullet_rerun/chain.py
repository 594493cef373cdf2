"""Forward kinematics over a parsed RobotModel.

The recorder takes live link poses from the simulator. Forward kinematics is
only needed to lay the robot out before the first simulation step, at its
zero configuration placed on the requested base pose.
"""

from typing import Dict, Optional

import jax
import jax.numpy as jnp
from jax import Array

from .core import RobotModel
from .transforms import Pose, se3


def forward_kinematics(robot: RobotModel, q: Array) -> Dict[str, Array]:
    """Compute forward kinematics for all links in the robot.

    Args:
        robot: RobotModel containing the robot's kinematic structure
        q: Joint values of shape (num_dof,) for actuated joints only

    Returns:
        Dictionary mapping link names to their 4x4 SE(3) poses in the root frame
    """
    world_transforms = forward_kinematics_world(robot, q)
    return {name: world_transforms[i] for i, name in enumerate(robot.link_names)}


def forward_kinematics_world(robot: RobotModel, q: Array) -> Array:
    """FK returning an array of root-frame transforms.

    Relies on the depth-first link order: every parent index is smaller than
    its child's, so a single forward scan sees each parent before its children.

    Args:
        robot: RobotModel containing the robot's kinematic structure
        q: Joint values of shape (num_dof,) for actuated joints only

    Returns:
        Array of shape (num_links, 4, 4) with root-frame poses for all links
    """
    num_links = len(robot.link_names)
    q = jnp.asarray(q, dtype=robot.joint_axes.dtype)

    # Scatter the actuated values onto their links; fixed joints stay at zero.
    q_full = jnp.zeros(num_links, dtype=q.dtype).at[robot.actuated_joint_to_link_idx].set(q)

    transforms = jnp.broadcast_to(jnp.eye(4, dtype=q.dtype), (num_links, 4, 4))

    def scan_body(carry, i):
        T_root_parent = carry[robot.parent_indices[i]]
        T_motion = se3.exp(robot.joint_axes[i] * q_full[i])
        T_root_child = T_root_parent @ robot.joint_transforms[i] @ T_motion
        return carry.at[i].set(T_root_child), None

    final_transforms, _ = jax.lax.scan(scan_body, transforms, jnp.arange(1, num_links))
    return final_transforms


def rest_poses(robot: RobotModel, base: Optional[Pose] = None,
               q: Optional[Array] = None) -> Dict[str, Pose]:
    """World poses of every link with the root placed at ``base``.

    Args:
        robot: RobotModel containing the robot's kinematic structure
        base: World pose of the root link, identity if omitted
        q: Actuated joint values, zeros if omitted

    Returns:
        Dictionary mapping link names to world :class:`Pose` values
    """
    if q is None:
        q = jnp.zeros(len(robot.joint_names))
    T_world_root = (base or Pose.identity()).as_matrix()
    world = se3.multiply(T_world_root, forward_kinematics_world(robot, q))
    return {name: Pose.from_matrix(world[i]) for i, name in enumerate(robot.link_names)}
