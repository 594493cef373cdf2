"""Core robot model data structures.

This module provides the flat, ordered link representation shared by the
description loader, the forward-kinematics helpers and the recorder.
"""

from .robot_model import RobotModel, Visual

__all__ = ["RobotModel", "Visual"]
