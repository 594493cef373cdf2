"""I/O utilities for loading robot descriptions.

This module parses URDF files into the flat, ordered RobotModel used by the
description loader and the recorder.
"""

from .urdf_parser import load_urdf

__all__ = ["load_urdf"]
