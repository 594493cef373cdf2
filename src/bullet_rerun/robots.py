"""Robot types.

A robot type is any object (usually a class) with a ``URDF`` attribute naming
its description file relative to a search path. Only the file name is used,
as a lookup key.
"""

from pathlib import Path

import pybullet_data


class RobotType:
    URDF: str = ""


class KukaIiwa(RobotType):
    URDF = "kuka_iiwa/model.urdf"


class FrankaPanda(RobotType):
    URDF = "franka_panda/panda.urdf"


class R2D2(RobotType):
    URDF = "r2d2.urdf"


def pybullet_data_path() -> Path:
    """Directory of the assets bundled with pybullet."""
    return Path(pybullet_data.getDataPath())


def description_filename(robot_type) -> str:
    filename = getattr(robot_type, "URDF", None)
    if not filename:
        raise TypeError(f"{robot_type!r} does not declare a URDF file name")
    return str(filename)
