"""Per-robot recorders that log simulator state every physics step.

A :class:`RobotRecorderBuilder` collects the configuration for one robot
instance and, on :meth:`~RobotRecorderBuilder.load`, parses the description,
registers its static geometry and returns a :class:`RobotRecorder`. The
recorder is then attached to a :class:`~bullet_rerun.simulation.BulletRobot`
and logs one frame per simulation step under ``world/robots/<name>``.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import rerun as rr

from .description import RobotDescription
from .errors import (
    BuilderConfigError,
    BuilderConsumedError,
    RecorderStateError,
    SimulationQueryError,
)
from .transforms import Pose, PoseLike

logger = logging.getLogger(__name__)

ROBOTS_NAMESPACE = "world/robots"
DEFAULT_TIMELINE = "realtime"


class RobotRecorder:
    """Logs joint scalars, velocities and link transforms for one robot.

    The recorder goes from detached to attached once and back to detached
    once; a detached recorder cannot be attached again.
    """

    def __init__(self, description: RobotDescription, session: rr.RecordingStream,
                 base_fixed: bool = False, per_link_velocity: bool = False,
                 timeline: str = DEFAULT_TIMELINE):
        self.description = description
        self.session = session
        self.base_fixed = base_fixed
        self.per_link_velocity = per_link_velocity
        self.timeline = timeline
        self._links = description.ordered_links()
        self._frame = 0
        self._attached = False
        self._finished = False

    @property
    def root_prefix(self) -> str:
        return self.description.root_prefix

    @property
    def frame(self) -> int:
        """Index of the next frame to be logged."""
        return self._frame

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self, robot) -> "RobotRecorder":
        """Subscribe to ``robot``'s step callbacks.

        The body id and tracked joint indices are captured now; later changes
        to ``robot`` do not affect this subscription.
        """
        if self._attached or self._finished:
            raise RecorderStateError(f"Recorder for {self.root_prefix} cannot be attached again")

        body_id = robot.body_id
        joint_indices = tuple(robot.joint_indices)
        if not joint_indices:
            logger.warning("No movable joints tracked for %s", self.root_prefix)

        def on_step(client, dt: float) -> bool:
            if self._finished:
                return True
            self.record_frame(client, body_id, joint_indices)
            return False

        robot.enqueue(on_step)
        self._attached = True
        logger.info("Recording %s (body %d, %d joints, %d links)", self.root_prefix, body_id,
                    len(joint_indices), len(self._links))
        return self

    def detach(self) -> None:
        """Stop recording; the callback drops out of the queue on its next call."""
        if not self._attached:
            raise RecorderStateError(f"Recorder for {self.root_prefix} is not attached")
        self._attached = False
        self._finished = True
        logger.info("Stopped recording %s after %d frames", self.root_prefix, self._frame)

    def record_frame(self, client, body_id: int, joint_indices: Sequence[int]) -> None:
        """Fetch one step of state from ``client`` and log it as one frame.

        Every mandatory query runs before anything is logged, so a failed
        joint or link-pose query leaves no partial frame behind. Velocity
        queries are optional and only skip their own channel.

        Raises:
            SimulationQueryError: a joint-state or link-pose query failed.
        """
        joint_states = client.get_joint_states(body_id, joint_indices)

        poses: Dict[str, Pose] = {}
        velocities: List[Tuple[str, Sequence[float]]] = []
        for i, link_name in enumerate(self._links):
            if i == 0:
                poses[link_name] = client.get_base_position_and_orientation(body_id)
                try:
                    velocities.append((link_name, client.get_base_velocity(body_id)))
                except SimulationQueryError as exc:
                    logger.debug("No base velocity for %s: %s", self.root_prefix, exc)
                continue

            # Not bounded by len(joint_indices): fixed and virtual links have no tracked joint.
            state = client.get_link_state(body_id, i - 1, True, True)
            logger.debug("Link %s world pose: %s", link_name, state.world_link_frame)
            poses[link_name] = state.world_link_frame
            if state.world_velocity is not None:
                velocities.append((link_name, state.world_velocity))

        self._log(joint_states, velocities, poses)

    def _log(self, joint_states, velocities, poses: Dict[str, Pose]) -> None:
        prefix = self.root_prefix
        self.session.set_time(self.timeline, sequence=self._frame)

        for i, state in enumerate(joint_states):
            self.session.log(f"{prefix}/joint/{i}", rr.Scalars([state.position]))
            self.session.log(f"{prefix}/joint_vel/{i}", rr.Scalars([state.velocity]))
            self.session.log(f"{prefix}/torque/{i}", rr.Scalars([state.motor_torque]))

        # Every velocity shares one channel; the last writer of a frame wins.
        for link_name, velocity in velocities:
            self.session.log(f"{prefix}/cartesian_vel", rr.Scalars(list(velocity)))
            if self.per_link_velocity:
                self.session.log(f"{prefix}/link_vel/{link_name}", rr.Scalars(list(velocity)))

        self.description.log_frame(self.session, self._frame, poses, self.timeline)
        self._frame += 1


class RobotRecorderBuilder:
    """Fluent configuration for one robot recorder.

    Setters do not validate; everything is checked by :meth:`load`, which
    can be called once. The builder is spent after ``load`` even when it
    raises, so retries start from a fresh ``begin_robot`` call.
    """

    def __init__(self, session: rr.RecordingStream, load_file: Union[str, Path],
                 mesh_dir: Optional[Union[str, Path]] = None, name: str = "",
                 timeline: str = DEFAULT_TIMELINE):
        self.session = session
        self.load_file = Path(load_file)
        self.mesh_dir = Path(mesh_dir) if mesh_dir is not None else None
        self.robot_name = name
        self.timeline = timeline
        self.base_pose: Optional[PoseLike] = None
        self.fixed_base = False
        self.scale: Optional[float] = None
        self.link_velocities = False
        self._consumed = False

    def _check(self) -> None:
        if self._consumed:
            raise BuilderConsumedError(f"Builder for '{self.robot_name}' was already loaded")

    def name(self, name: str) -> "RobotRecorderBuilder":
        self._check()
        self.robot_name = str(name)
        return self

    def description_file(self, path: Union[str, Path]) -> "RobotRecorderBuilder":
        self._check()
        self.load_file = Path(path)
        return self

    def mesh_path(self, mesh_path: Union[str, Path]) -> "RobotRecorderBuilder":
        self._check()
        self.mesh_dir = Path(mesh_path)
        return self

    def base(self, base: PoseLike) -> "RobotRecorderBuilder":
        self._check()
        self.base_pose = base
        return self

    def base_fixed(self, base_fixed: bool) -> "RobotRecorderBuilder":
        self._check()
        self.fixed_base = bool(base_fixed)
        return self

    def scaling(self, scaling: float) -> "RobotRecorderBuilder":
        self._check()
        self.scale = scaling
        return self

    def per_link_velocity(self, enabled: bool = True) -> "RobotRecorderBuilder":
        self._check()
        self.link_velocities = bool(enabled)
        return self

    def load(self) -> RobotRecorder:
        """Parse the description, register statics and return the recorder.

        Raises:
            BuilderConfigError: no instance name was set.
            DescriptionNotFoundError: the description file does not exist.
            DescriptionParseError: the description is malformed.
            StaticRegistrationError: static geometry could not be logged
                (MeshResolutionError for unresolvable meshes).
        """
        self._check()
        self._consumed = True
        if not self.robot_name:
            raise BuilderConfigError("A robot recorder needs a name")

        try:
            base = Pose.identity() if self.base_pose is None else Pose.coerce(self.base_pose)
        except (TypeError, ValueError) as exc:
            raise BuilderConfigError(f"Invalid base pose for '{self.robot_name}': {exc}") from exc

        description = RobotDescription.from_file(
            self.load_file,
            self.mesh_dir,
            f"{ROBOTS_NAMESPACE}/{self.robot_name}",
            scaling=self.scale,
        )
        description.register_statics(self.session, base)
        return RobotRecorder(description, self.session, base_fixed=self.fixed_base,
                             per_link_velocity=self.link_velocities, timeline=self.timeline)
