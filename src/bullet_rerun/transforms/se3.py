"""SE(3) homogeneous-transform helpers in JAX.

Transforms are (..., 4, 4) matrices and twists are (..., 6) vectors laid out
as [vx, vy, vz, wx, wy, wz], matching the joint-axis encoding of
:class:`bullet_rerun.core.RobotModel`.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transforms from positions and rotation matrices.

    Args:
        p: (..., 3) position vectors
        R: (..., 3, 3) rotation matrices

    Returns:
        (..., 4, 4) homogeneous transformation matrices
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    return T.at[..., 3, 3].set(1.0)


def from_xyz_rpy(xyz: Array, rpy: Array) -> Array:
    """Build the transform described by a URDF ``<origin xyz rpy>`` element."""
    return from_position_and_rotation(xyz, so3.from_rpy(rpy))


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map from twists to transforms.

    Small rotation angles fall back to Taylor expansions of the V-matrix
    coefficients so pure translations stay exact.

    Args:
        twist: (..., 6) twists [vx, vy, vz, wx, wy, wz]

    Returns:
        (..., 4, 4) transformation matrices
    """
    v, w = twist[..., :3], twist[..., 3:]
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)
    angle_sq = angle * angle
    eps = jnp.finfo(twist.dtype).eps
    small = angle < 1e-6

    # A = (1 - cos t) / t^2, B = (t - sin t) / t^3
    A = jnp.where(small, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (angle_sq + eps))
    B = jnp.where(small, 1.0 / 6.0 - angle_sq / 120.0, (angle - jnp.sin(angle)) / (angle_sq * angle + eps))

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=twist.dtype), K.shape)
    V = I + A[..., None] * K + B[..., None] * jnp.matmul(K, K)

    return from_position_and_rotation(jnp.einsum("...ij,...j->...i", V, v), so3.exp(w))


def multiply(T1: Array, T2: Array) -> Array:
    """Compose transforms: apply ``T2`` first, then ``T1``."""
    return jnp.matmul(T1, T2)


def get_position(T: Array) -> Array:
    """Translation part, shape (..., 3)."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """Rotation part, shape (..., 3, 3)."""
    return T[..., :3, :3]
