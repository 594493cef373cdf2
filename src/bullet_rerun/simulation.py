"""pybullet physics host with a per-step callback queue.

pybullet itself has no notion of step callbacks, so :class:`BulletSimulation`
keeps an ordered queue and drains it after every ``stepSimulation`` call.
State queries wrap the raw pybullet calls, convert their tuples into small
value types and turn failures into :class:`SimulationQueryError`.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pybullet as p

from .errors import SimulationQueryError
from .robots import description_filename
from .transforms import Pose, PoseLike

logger = logging.getLogger(__name__)

StepCallback = Callable[["BulletSimulation", float], bool]


@dataclass(frozen=True)
class JointState:
    position: float
    velocity: float
    motor_torque: float


@dataclass(frozen=True, eq=False)
class LinkState:
    world_link_frame: Pose
    world_velocity: Optional[Tuple[float, float, float, float, float, float]] = None


@dataclass
class BulletRobot:
    """A body loaded into a :class:`BulletSimulation`.

    ``joint_indices`` lists the tracked (non-fixed) engine joint indices.
    """
    sim: "BulletSimulation"
    body_id: int
    joint_indices: Tuple[int, ...]

    def enqueue(self, callback: StepCallback) -> None:
        self.sim.enqueue(callback)


class BulletSimulation:
    def __init__(self, connection_mode: int = p.DIRECT, time_step: float = 1.0 / 240.0,
                 gravity: Sequence[float] = (0.0, 0.0, -9.81)):
        self.client_id = p.connect(connection_mode)
        if self.client_id < 0:
            raise SimulationQueryError("Could not connect to the pybullet physics server")
        self.time_step = time_step
        p.setTimeStep(time_step, physicsClientId=self.client_id)
        p.setGravity(*gravity, physicsClientId=self.client_id)
        self._callbacks: List[StepCallback] = []
        self._steps = 0

    # Setup
    def add_search_path(self, path: Union[str, Path]) -> "BulletSimulation":
        p.setAdditionalSearchPath(str(path), physicsClientId=self.client_id)
        return self

    def load_robot(self, robot, base: Optional[PoseLike] = None, base_fixed: bool = False,
                   scaling: Optional[float] = None) -> BulletRobot:
        """Load a robot type (anything with a ``URDF`` attribute) or a URDF path.

        Every joint that is not ``JOINT_FIXED`` is tracked, in engine order.
        """
        urdf = robot if isinstance(robot, (str, Path)) else description_filename(robot)
        base = Pose.identity() if base is None else Pose.coerce(base)
        kwargs = dict(basePosition=base.translation_list(), baseOrientation=base.quaternion_xyzw(),
                      useFixedBase=base_fixed, physicsClientId=self.client_id)
        if scaling is not None:
            kwargs["globalScaling"] = scaling
        try:
            body_id = p.loadURDF(str(urdf), **kwargs)
        except p.error as exc:
            raise SimulationQueryError(f"pybullet could not load {urdf}: {exc}") from exc

        joint_indices = tuple(
            j for j in range(p.getNumJoints(body_id, physicsClientId=self.client_id))
            if p.getJointInfo(body_id, j, physicsClientId=self.client_id)[2] != p.JOINT_FIXED
        )
        logger.info("Loaded body %d from %s with %d movable joints", body_id, urdf, len(joint_indices))
        return BulletRobot(self, body_id, joint_indices)

    # State queries
    def get_joint_states(self, body_id: int, joint_indices: Sequence[int]) -> List[JointState]:
        if not joint_indices:
            return []
        try:
            states = p.getJointStates(body_id, list(joint_indices), physicsClientId=self.client_id)
        except p.error as exc:
            raise SimulationQueryError(f"Joint state query failed for body {body_id}: {exc}") from exc
        if states is None or len(states) != len(joint_indices):
            raise SimulationQueryError(f"Joint state query for body {body_id} returned no data")
        # (position, velocity, reaction forces, applied motor torque)
        return [JointState(s[0], s[1], s[3]) for s in states]

    def get_base_position_and_orientation(self, body_id: int) -> Pose:
        """World pose of the base's URDF link frame.

        pybullet reports the base at its centre of mass; the inertial offset
        from the link frame is removed so the root matches ``LinkState``.
        """
        try:
            com_pos, com_orn = p.getBasePositionAndOrientation(body_id, physicsClientId=self.client_id)
            local_pos, local_orn = p.getDynamicsInfo(body_id, -1, physicsClientId=self.client_id)[3:5]
        except p.error as exc:
            raise SimulationQueryError(f"Base pose query failed for body {body_id}: {exc}") from exc
        position, orientation = p.multiplyTransforms(com_pos, com_orn, *p.invertTransform(local_pos, local_orn))
        return Pose.from_pybullet(position, orientation)

    def get_base_velocity(self, body_id: int) -> Tuple[float, ...]:
        try:
            linear, angular = p.getBaseVelocity(body_id, physicsClientId=self.client_id)
        except p.error as exc:
            raise SimulationQueryError(f"Base velocity query failed for body {body_id}: {exc}") from exc
        return tuple(linear) + tuple(angular)

    def get_link_state(self, body_id: int, link_index: int, compute_velocity: bool = True,
                       compute_forward_kinematics: bool = True) -> LinkState:
        try:
            state = p.getLinkState(body_id, link_index,
                                   computeLinkVelocity=int(compute_velocity),
                                   computeForwardKinematics=int(compute_forward_kinematics),
                                   physicsClientId=self.client_id)
        except p.error as exc:
            raise SimulationQueryError(f"Link state query failed for body {body_id}, link {link_index}: {exc}") from exc
        if state is None:
            raise SimulationQueryError(f"Link state query for body {body_id}, link {link_index} returned no data")

        # Indices 4/5 hold the URDF link frame, 6/7 the world velocities when requested.
        velocity = None
        if compute_velocity and len(state) >= 8:
            velocity = tuple(state[6]) + tuple(state[7])
        return LinkState(Pose.from_pybullet(state[4], state[5]), velocity)

    # Step loop
    def enqueue(self, callback: StepCallback) -> None:
        """Run ``callback(sim, dt)`` after every step until it returns True."""
        self._callbacks.append(callback)

    @property
    def num_callbacks(self) -> int:
        return len(self._callbacks)

    @property
    def steps(self) -> int:
        return self._steps

    def step(self, n: int = 1) -> None:
        """Advance ``n`` steps, draining the callback queue after each one.

        An exception raised by a callback propagates to the caller; the
        remaining callbacks for that step do not run.
        """
        for _ in range(n):
            p.stepSimulation(physicsClientId=self.client_id)
            self._steps += 1
            for callback in list(self._callbacks):
                if callback(self, self.time_step):
                    self._callbacks.remove(callback)

    def close(self) -> None:
        if self.client_id >= 0 and p.isConnected(physicsClientId=self.client_id):
            p.disconnect(physicsClientId=self.client_id)
        self._callbacks.clear()

    def __enter__(self) -> "BulletSimulation":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
