"""
bullet_rerun: record pybullet robots into rerun, one frame per physics step.

A RerunHost owns the recording session and the description search paths.
Each robot instance gets a RobotRecorder that is attached to the simulator's
step queue and logs joint scalars, velocities and link transforms under
``world/robots/<name>``.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .config import RecordingConfig
from .description import RobotDescription
from .errors import (
    BridgeError,
    BuilderConfigError,
    BuilderConsumedError,
    DescriptionNotFoundError,
    DescriptionParseError,
    MeshResolutionError,
    RecorderStateError,
    SimulationQueryError,
    StaticRegistrationError,
)
from .host import RerunHost
from .recorder import RobotRecorder, RobotRecorderBuilder
from .robots import FrankaPanda, KukaIiwa, R2D2, RobotType, pybullet_data_path
from .search import resolve_search_path
from .simulation import BulletRobot, BulletSimulation, JointState, LinkState
from .transforms import Pose

__version__ = "0.1.0"
__all__ = [
    "transforms", "core", "io",
    "RecordingConfig", "RobotDescription", "RerunHost", "RobotRecorder", "RobotRecorderBuilder",
    "RobotType", "KukaIiwa", "FrankaPanda", "R2D2", "pybullet_data_path", "resolve_search_path",
    "BulletSimulation", "BulletRobot", "JointState", "LinkState", "Pose",
    "BridgeError", "BuilderConfigError", "BuilderConsumedError", "DescriptionNotFoundError",
    "DescriptionParseError", "MeshResolutionError", "RecorderStateError", "SimulationQueryError",
    "StaticRegistrationError",
]
