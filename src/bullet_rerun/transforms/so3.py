"""SO(3) rotation helpers in JAX.

Quaternions in this package use the (x, y, z, w) layout shared by pybullet
and rerun, so values read from the simulator can be passed through without
reordering.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def normalize_quaternion(quaternions: Array) -> Array:
    """Scale (..., 4) quaternions to unit length."""
    return quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (x, y, z, w) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    x, y, z, w = jnp.moveaxis(normalize_quaternion(quaternions), -1, 0)

    xx, yy, zz = x * x, y * y, z * z
    xy, xz, yz = x * y, x * z, y * z
    wx, wy, wz = w * x, w * y, w * z

    return jnp.stack([
        jnp.stack([1 - 2 * (yy + zz), 2 * (xy - wz), 2 * (xz + wy)], axis=-1),
        jnp.stack([2 * (xy + wz), 1 - 2 * (xx + zz), 2 * (yz - wx)], axis=-1),
        jnp.stack([2 * (xz - wy), 2 * (yz + wx), 1 - 2 * (xx + yy)], axis=-1),
    ], axis=-2)


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to (x, y, z, w) quaternions.

    All four branches of Shepperd's method are evaluated and the numerically
    safest one is selected per element, so the function stays jit-friendly.
    The result always has a non-negative w component.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (x, y, z, w) format
    """
    m00, m01, m02 = matrix[..., 0, 0], matrix[..., 0, 1], matrix[..., 0, 2]
    m10, m11, m12 = matrix[..., 1, 0], matrix[..., 1, 1], matrix[..., 1, 2]
    m20, m21, m22 = matrix[..., 2, 0], matrix[..., 2, 1], matrix[..., 2, 2]

    trace = m00 + m11 + m22
    eps = jnp.finfo(matrix.dtype).eps

    # Candidates are (x, y, z, w), each scaled by 4 * its dominant component.
    by_w = jnp.stack([m21 - m12, m02 - m20, m10 - m01, trace + 1.0], axis=-1)
    by_x = jnp.stack([1.0 + m00 - m11 - m22, m01 + m10, m02 + m20, m21 - m12], axis=-1)
    by_y = jnp.stack([m01 + m10, 1.0 + m11 - m00 - m22, m12 + m21, m02 - m20], axis=-1)
    by_z = jnp.stack([m02 + m20, m12 + m21, 1.0 + m22 - m00 - m11, m10 - m01], axis=-1)

    use_w = trace > 0
    use_x = (~use_w) & (m00 > m11) & (m00 > m22)
    use_y = (~use_w) & (~use_x) & (m11 > m22)

    candidate = jnp.where(
        use_w[..., None], by_w,
        jnp.where(use_x[..., None], by_x, jnp.where(use_y[..., None], by_y, by_z)),
    )
    candidate = candidate / jnp.maximum(jnp.linalg.norm(candidate, axis=-1, keepdims=True), eps)

    return jnp.where(candidate[..., 3:4] < 0, -candidate, candidate)


def from_rpy(rpy: Array) -> Array:
    """
    Convert URDF roll-pitch-yaw angles to rotation matrices.

    URDF applies roll about X, then pitch about Y, then yaw about Z, all in
    the fixed parent frame, i.e. R = Rz(yaw) @ Ry(pitch) @ Rx(roll).

    Args:
        rpy: (..., 3) array of [roll, pitch, yaw] in radians

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    roll, pitch, yaw = jnp.moveaxis(rpy, -1, 0)
    cr, sr = jnp.cos(roll), jnp.sin(roll)
    cp, sp = jnp.cos(pitch), jnp.sin(pitch)
    cy, sy = jnp.cos(yaw), jnp.sin(yaw)

    return jnp.stack([
        jnp.stack([cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr], axis=-1),
        jnp.stack([sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr], axis=-1),
        jnp.stack([-sp, cp * sr, cp * cr], axis=-1),
    ], axis=-2)


def skew_symmetric(v: Array) -> Array:
    """Map (..., 3) vectors to their (..., 3, 3) cross-product matrices."""
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1),
    ], axis=-2)


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map via Rodrigues' formula.

    Args:
        log_r: (..., 3) axis-angle vectors

    Returns:
        (..., 3, 3) rotation matrices
    """
    angle_sq = jnp.sum(log_r * log_r, axis=-1, keepdims=True)
    small = angle_sq < 1e-12

    # sqrt only sees safe values so the gradient stays finite at zero.
    angle = jnp.sqrt(jnp.where(small, 1.0, angle_sq))

    # A = sin t / t, B = (1 - cos t) / t^2
    A = jnp.where(small, 1.0 - angle_sq / 6.0, jnp.sin(angle) / angle)
    B = jnp.where(small, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (angle * angle))

    K = skew_symmetric(log_r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=log_r.dtype), log_r.shape[:-1] + (3, 3))

    return I + A[..., None] * K + B[..., None] * jnp.matmul(K, K)
