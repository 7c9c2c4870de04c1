"""NumPy-backed math utilities: Vec3, Quaternion, Mat4 operations.

Provides lightweight wrappers and utility functions for 3D math.
Vectors are plain numpy arrays; quaternions are [x, y, z, w] arrays.
Matrices are 4x4 numpy arrays using column vectors (p' = M @ p), with the
translation stored in M[:3, 3].

Euler rotations are in radians and use XYZ rotate order: X is applied
first, then Y, then Z, so R = Rz @ Ry @ Rx.
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import (
    DECOMPOSE_EPSILON,
    ORTHOGONALITY_TOLERANCE,
)

# Type aliases
Vec3 = NDArray[np.float64]
Vec4 = NDArray[np.float64]
Mat3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def mat4_identity() -> Mat4:
    return np.eye(4, dtype=np.float64)


def as_mat4(values) -> Mat4:
    """Coerce a (4,4) array-like or 16 row-major numbers into a Mat4."""
    m = np.asarray(values, dtype=np.float64)
    if m.shape == (16,):
        m = m.reshape(4, 4)
    if m.shape != (4, 4):
        raise ValueError(f"matrix must be (4,4), got {m.shape}")
    return m.copy()


def mat4_translation(x: float, y: float, z: float) -> Mat4:
    m = np.eye(4, dtype=np.float64)
    m[0, 3] = x
    m[1, 3] = y
    m[2, 3] = z
    return m


def mat4_scale(sx: float, sy: float, sz: float) -> Mat4:
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = sx
    m[1, 1] = sy
    m[2, 2] = sz
    return m


def mat4_rotation_x(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[1, 1] = c
    m[1, 2] = -s
    m[2, 1] = s
    m[2, 2] = c
    return m


def mat4_rotation_y(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = c
    m[0, 2] = s
    m[2, 0] = -s
    m[2, 2] = c
    return m


def mat4_rotation_z(angle_rad: float) -> Mat4:
    c, s = np.cos(angle_rad), np.sin(angle_rad)
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = c
    m[0, 1] = -s
    m[1, 0] = s
    m[1, 1] = c
    return m


def mat4_from_euler(rx: float, ry: float, rz: float) -> Mat4:
    """Rotation matrix for XYZ Euler angles (radians)."""
    return mat4_rotation_z(rz) @ mat4_rotation_y(ry) @ mat4_rotation_x(rx)


def mat4_from_quaternion(q: Quat) -> Mat4:
    """Convert quaternion [x,y,z,w] to 4x4 rotation matrix."""
    x, y, z, w = q
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = 1 - 2 * (y * y + z * z)
    m[0, 1] = 2 * (x * y - z * w)
    m[0, 2] = 2 * (x * z + y * w)
    m[1, 0] = 2 * (x * y + z * w)
    m[1, 1] = 1 - 2 * (x * x + z * z)
    m[1, 2] = 2 * (y * z - x * w)
    m[2, 0] = 2 * (x * z - y * w)
    m[2, 1] = 2 * (y * z + x * w)
    m[2, 2] = 1 - 2 * (x * x + y * y)
    return m


def mat4_compose(position: Vec3, quaternion: Quat, scale: Vec3) -> Mat4:
    """Compose T @ R @ S from position, quaternion rotation, and scale."""
    m = mat4_from_quaternion(quaternion)
    m[:3, 0] *= scale[0]
    m[:3, 1] *= scale[1]
    m[:3, 2] *= scale[2]
    m[0, 3] = position[0]
    m[1, 3] = position[1]
    m[2, 3] = position[2]
    return m


def mat4_compose_euler(translate: Vec3, rotate: Vec3, scale: Vec3) -> Mat4:
    """Compose T @ R @ S from translation, XYZ Euler rotation and scale."""
    m = mat4_from_euler(rotate[0], rotate[1], rotate[2])
    m[:3, 0] *= scale[0]
    m[:3, 1] *= scale[1]
    m[:3, 2] *= scale[2]
    m[:3, 3] = translate[:3]
    return m


def _split_scale(m: Mat4) -> Optional[tuple[Vec3, Mat3]]:
    """Separate an affine 4x4 into (scale, pure rotation), or None.

    Fails for projective matrices, zero scale, and shear.
    """
    if not np.allclose(m[3], [0.0, 0.0, 0.0, 1.0], atol=DECOMPOSE_EPSILON):
        return None
    upper = m[:3, :3]
    scale = np.linalg.norm(upper, axis=0)
    if np.any(scale < DECOMPOSE_EPSILON):
        return None
    if np.linalg.det(upper) < 0:
        scale[0] = -scale[0]
    rot = upper / scale[np.newaxis, :]
    if not np.allclose(rot.T @ rot, np.eye(3), atol=ORTHOGONALITY_TOLERANCE):
        return None
    return scale, rot


def euler_from_mat3(r: Mat3) -> Vec3:
    """Extract XYZ Euler angles (radians) from a pure rotation matrix."""
    sy = -float(np.clip(r[2, 0], -1.0, 1.0))
    ry = np.arcsin(sy)
    if abs(np.cos(ry)) > 1e-6:
        rx = np.arctan2(r[2, 1], r[2, 2])
        rz = np.arctan2(r[1, 0], r[0, 0])
    else:
        # Gimbal lock: fold all of the X/Z rotation into X.
        rx = np.arctan2(-r[1, 2], r[1, 1])
        rz = 0.0
    return vec3(rx, ry, rz)


def mat4_decompose(m: Mat4) -> Optional[tuple[Vec3, Vec3, Vec3]]:
    """Split a transform into (translate, XYZ Euler rotate, scale).

    Returns None when the matrix cannot be represented as T @ R @ S.
    """
    split = _split_scale(np.asarray(m, dtype=np.float64))
    if split is None:
        return None
    scale, rot = split
    translate = np.array(m[:3, 3], dtype=np.float64)
    return translate, euler_from_mat3(rot), scale


def mat4_decompose_quat(m: Mat4) -> Optional[tuple[Vec3, Quat, Vec3]]:
    """Split a transform into (translate, quaternion, scale), or None."""
    split = _split_scale(np.asarray(m, dtype=np.float64))
    if split is None:
        return None
    scale, rot = split
    q = batch_mat3_to_quat(rot[np.newaxis])[0]
    return np.array(m[:3, 3], dtype=np.float64), quat_normalize(q), scale


def is_invertible(m: Mat4) -> bool:
    """True when ``m`` is finite and well-conditioned enough to invert."""
    m = np.asarray(m, dtype=np.float64)
    if not np.isfinite(m).all():
        return False
    return bool(np.linalg.cond(m) < 1.0 / np.finfo(np.float64).eps)


def mat4_inverse(m: Mat4) -> Mat4:
    return np.linalg.inv(m)


# Quaternion operations

def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def quat_normalize(q: Quat) -> Quat:
    n = np.linalg.norm(q)
    if n < 1e-10:
        return quat_identity()
    return q / n


def quat_slerp(a: Quat, b: Quat, t: float) -> Quat:
    """Spherical linear interpolation between two quaternions."""
    dot = np.dot(a, b)
    if dot < 0:
        b = -b
        dot = -dot
    if dot > 0.9995:
        result = a + t * (b - a)
        return quat_normalize(result)
    theta = np.arccos(np.clip(dot, -1.0, 1.0))
    sin_theta = np.sin(theta)
    if sin_theta < 1e-10:
        return a.copy()
    wa = np.sin((1 - t) * theta) / sin_theta
    wb = np.sin(t * theta) / sin_theta
    return quat_normalize(wa * a + wb * b)


# Vector operations

def lerp_vec3(a: Vec3, b: Vec3, t: float) -> Vec3:
    return a + (b - a) * t


def transform_point(m: Mat4, p: Vec3) -> Vec3:
    """Transform a point by a 4x4 matrix."""
    v = np.array([p[0], p[1], p[2], 1.0], dtype=np.float64)
    r = m @ v
    return r[:3]


def transform_points(m: Mat4, points: NDArray) -> NDArray:
    """Transform (N, 3) points by a 4x4 matrix."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return pts @ m[:3, :3].T + m[:3, 3]


# ── Batch (vectorized) operations ─────────────────────────────────────

def batch_mat3_to_quat(R: NDArray) -> NDArray:
    """Convert (N, 3, 3) rotation matrices to (N, 4) quaternions [x, y, z, w].

    Uses Shepperd's method with masked branching for numerical stability.
    """
    N = len(R)
    q = np.zeros((N, 4), dtype=np.float64)
    trace = R[:, 0, 0] + R[:, 1, 1] + R[:, 2, 2]

    # Case 1: trace > 0
    m1 = trace > 0
    if m1.any():
        s = 0.5 / np.sqrt(trace[m1] + 1.0)
        q[m1, 3] = 0.25 / s
        q[m1, 0] = (R[m1, 2, 1] - R[m1, 1, 2]) * s
        q[m1, 1] = (R[m1, 0, 2] - R[m1, 2, 0]) * s
        q[m1, 2] = (R[m1, 1, 0] - R[m1, 0, 1]) * s

    # Case 2: R[0,0] is largest diagonal
    m2 = ~m1 & (R[:, 0, 0] > R[:, 1, 1]) & (R[:, 0, 0] > R[:, 2, 2])
    if m2.any():
        s = 2.0 * np.sqrt(1.0 + R[m2, 0, 0] - R[m2, 1, 1] - R[m2, 2, 2])
        q[m2, 3] = (R[m2, 2, 1] - R[m2, 1, 2]) / s
        q[m2, 0] = 0.25 * s
        q[m2, 1] = (R[m2, 0, 1] + R[m2, 1, 0]) / s
        q[m2, 2] = (R[m2, 0, 2] + R[m2, 2, 0]) / s

    # Case 3: R[1,1] is largest diagonal
    m3 = ~m1 & ~m2 & (R[:, 1, 1] > R[:, 2, 2])
    if m3.any():
        s = 2.0 * np.sqrt(1.0 + R[m3, 1, 1] - R[m3, 0, 0] - R[m3, 2, 2])
        q[m3, 3] = (R[m3, 0, 2] - R[m3, 2, 0]) / s
        q[m3, 0] = (R[m3, 0, 1] + R[m3, 1, 0]) / s
        q[m3, 1] = 0.25 * s
        q[m3, 2] = (R[m3, 1, 2] + R[m3, 2, 1]) / s

    # Case 4: R[2,2] is largest diagonal
    m4 = ~m1 & ~m2 & ~m3
    if m4.any():
        s = 2.0 * np.sqrt(1.0 + R[m4, 2, 2] - R[m4, 0, 0] - R[m4, 1, 1])
        q[m4, 3] = (R[m4, 1, 0] - R[m4, 0, 1]) / s
        q[m4, 0] = (R[m4, 0, 2] + R[m4, 2, 0]) / s
        q[m4, 1] = (R[m4, 1, 2] + R[m4, 2, 1]) / s
        q[m4, 2] = 0.25 * s

    return q


def batch_concatenate(local: NDArray, parents: NDArray) -> NDArray:
    """Concatenate (J, 4, 4) local transforms down a parent hierarchy.

    ``parents[j]`` must be less than ``j`` (ancestors precede
    descendants); roots have parent -1.
    """
    out = np.empty_like(local, dtype=np.float64)
    for j in range(len(local)):
        p = parents[j]
        if p < 0:
            out[j] = local[j]
        else:
            out[j] = out[p] @ local[j]
    return out
