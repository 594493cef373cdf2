"""
JAX-based transforms used to move poses between the simulator and the recorder.

This module provides:
- SO(3) rotations (so3 module), quaternions in pybullet/rerun xyzw order
- SE(3) rigid body transforms (se3 module)
- the Pose value type (pose module)
"""

from . import so3
from . import se3
from .pose import Pose, PoseLike

__all__ = [
    "so3",
    "se3",
    "Pose",
    "PoseLike",
]
