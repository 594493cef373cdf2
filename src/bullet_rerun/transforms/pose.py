"""Rigid-body poses as exchanged with the simulator and the recording stream.

Poses read from the simulator every step stay plain numpy arrays; jax only
enters when a pose is built from, or turned into, a transform matrix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax.tree_util import register_pytree_node_class

from . import se3, so3

Array = Union[np.ndarray, jax.Array]
PoseLike = Union["Pose", Tuple[Sequence[float], Sequence[float]]]


@register_pytree_node_class
@dataclass(frozen=True, eq=False)
class Pose:
    """Immutable 6-DoF pose: a position and an (x, y, z, w) quaternion."""
    position: Array     # shape (3,)
    orientation: Array  # shape (4,), xyzw

    # Constructors
    @classmethod
    def identity(cls) -> "Pose":
        return cls(np.zeros(3), np.array([0.0, 0.0, 0.0, 1.0]))

    @classmethod
    def from_pybullet(cls, position: Sequence[float], orientation: Sequence[float]) -> "Pose":
        """Wrap a ``(pos, orn)`` pair as returned by pybullet state queries."""
        position = np.asarray(position, dtype=np.float64)
        orientation = np.asarray(orientation, dtype=np.float64)
        if position.shape != (3,) or orientation.shape != (4,):
            raise ValueError(
                f"expected position (3,) and orientation (4,), got {position.shape} and {orientation.shape}"
            )
        return cls(position, orientation / np.linalg.norm(orientation))

    @classmethod
    def from_matrix(cls, matrix: Array) -> "Pose":
        matrix = jnp.asarray(matrix)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4, 4), got {matrix.shape}")
        return cls(np.asarray(se3.get_position(matrix)), np.asarray(so3.to_quaternion(se3.get_rotation(matrix))))

    @classmethod
    def coerce(cls, value: PoseLike) -> "Pose":
        """Accept either a Pose or a ``(position, orientation)`` pair."""
        if isinstance(value, Pose):
            return value
        position, orientation = value
        return cls.from_pybullet(position, orientation)

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.position, self.orientation), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        return cls(*children)

    # Basic operations
    def as_matrix(self) -> Array:
        return se3.from_position_and_rotation(self.position, so3.from_quaternion(self.orientation))

    # Export helpers for the recording stream
    def translation_list(self) -> list:
        return np.asarray(self.position, dtype=np.float64).tolist()

    def quaternion_xyzw(self) -> list:
        return np.asarray(self.orientation, dtype=np.float64).tolist()

    def __repr__(self) -> str:
        return f"Pose(position={self.translation_list()}, orientation={self.quaternion_xyzw()})"
