"""Shared fixtures: a capturing recording session and a scripted physics client."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
import rerun as rr

from bullet_rerun.description import RobotDescription
from bullet_rerun.errors import SimulationQueryError
from bullet_rerun.simulation import JointState, LinkState
from bullet_rerun.transforms import Pose


@dataclass
class LoggedEntry:
    path: str
    entity: Any
    static: bool
    time: Optional[Tuple[str, int]]


@dataclass
class ScalarValues:
    """Stand-in for rr.Scalars that keeps the raw values inspectable."""
    values: List[float]


class CapturingSession:
    """Implements the subset of rr.RecordingStream the bridge uses."""

    def __init__(self):
        self.entries: List[LoggedEntry] = []
        self.time: Optional[Tuple[str, int]] = None

    def set_time(self, timeline: str, *, sequence: int) -> None:
        self.time = (timeline, sequence)

    def reset_time(self) -> None:
        self.time = None

    def log(self, entity_path: str, entity: Any, static: bool = False) -> None:
        self.entries.append(LoggedEntry(entity_path, entity, static, None if static else self.time))

    def paths(self) -> List[str]:
        return [e.path for e in self.entries]

    def at(self, path: str) -> List[LoggedEntry]:
        return [e for e in self.entries if e.path == path]

    def scalars(self, path: str) -> List[List[float]]:
        return [e.entity.values for e in self.at(path)]

    def temporal(self) -> List[LoggedEntry]:
        return [e for e in self.entries if not e.static]

    def clear(self) -> None:
        self.entries.clear()


@pytest.fixture
def session(monkeypatch):
    monkeypatch.setattr(rr, "Scalars", lambda values: ScalarValues([float(v) for v in values]))
    return CapturingSession()


@dataclass
class ScriptedClient:
    """Physics-host double answering state queries from fixed data."""
    joint_states: List[JointState]
    base_pose: Pose = field(default_factory=Pose.identity)
    link_poses: Dict[int, Pose] = field(default_factory=dict)
    base_velocity: Optional[Tuple[float, ...]] = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    link_velocities: Dict[int, Tuple[float, ...]] = field(default_factory=dict)
    fail_joint_states: bool = False
    failing_links: Set[int] = field(default_factory=set)
    calls: List[Tuple] = field(default_factory=list)

    def get_joint_states(self, body_id, joint_indices):
        self.calls.append(("joint_states", body_id, tuple(joint_indices)))
        if self.fail_joint_states:
            raise SimulationQueryError(f"body {body_id} does not exist")
        return list(self.joint_states)

    def get_base_position_and_orientation(self, body_id):
        self.calls.append(("base_pose", body_id))
        return self.base_pose

    def get_base_velocity(self, body_id):
        self.calls.append(("base_velocity", body_id))
        if self.base_velocity is None:
            raise SimulationQueryError("no base velocity")
        return self.base_velocity

    def get_link_state(self, body_id, link_index, compute_velocity, compute_forward_kinematics):
        self.calls.append(("link_state", body_id, link_index))
        if link_index in self.failing_links:
            raise SimulationQueryError(f"link {link_index} unavailable")
        pose = self.link_poses.get(link_index, Pose.from_pybullet([0.0, 0.0, 0.1 * (link_index + 1)], [0, 0, 0, 1]))
        return LinkState(pose, self.link_velocities.get(link_index))


@dataclass
class QueueRobot:
    """Minimal attachable robot: records enqueued callbacks instead of stepping."""
    body_id: int
    joint_indices: Tuple[int, ...]
    callbacks: List = field(default_factory=list)

    def enqueue(self, callback):
        self.callbacks.append(callback)


@pytest.fixture
def frames(monkeypatch):
    """(frame_index, pose map) pairs handed to RobotDescription.log_frame, in call order."""
    logged = []
    original = RobotDescription.log_frame

    def spy(self, session, frame_index, poses, sequence_label):
        logged.append((frame_index, dict(poses)))
        original(self, session, frame_index, poses, sequence_label)

    monkeypatch.setattr(RobotDescription, "log_frame", spy)
    return logged
