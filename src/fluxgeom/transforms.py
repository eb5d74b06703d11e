"""Rotation, look-at and TRS matrix helpers."""

from __future__ import annotations

import math

import numpy as np


def euler_to_matrix(rx: float, ry: float, rz: float, order: str = "XYZ") -> np.ndarray:
    """Convert Euler angles (radians) to a 3x3 rotation matrix.

    ``order`` names the intrinsic axis order, so ``"XYZ"`` yields ``Rx @ Ry @ Rz``.
    """
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)

    axes = {
        "X": np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]], dtype=np.float64),
        "Y": np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]], dtype=np.float64),
        "Z": np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]], dtype=np.float64),
    }
    if sorted(order) != ["X", "Y", "Z"]:
        raise ValueError(f"Invalid Euler order: {order!r}")

    return axes[order[0]] @ axes[order[1]] @ axes[order[2]]


def quat_to_matrix(qx: float, qy: float, qz: float, qw: float) -> np.ndarray:
    """Convert quaternion (x, y, z, w) to a 3x3 rotation matrix."""
    x2 = qx + qx
    y2 = qy + qy
    z2 = qz + qz
    xx = qx * x2
    xy = qx * y2
    xz = qx * z2
    yy = qy * y2
    yz = qy * z2
    zz = qz * z2
    wx = qw * x2
    wy = qw * y2
    wz = qw * z2

    return np.array(
        [
            [1 - (yy + zz), xy - wz, xz + wy],
            [xy + wz, 1 - (xx + zz), yz - wx],
            [xz - wy, yz + wx, 1 - (xx + yy)],
        ],
        dtype=np.float64,
    )


def matrix_to_quat(rot: np.ndarray) -> np.ndarray:
    """Convert a pure 3x3 rotation matrix to a quaternion (x, y, z, w)."""
    m11, m12, m13 = rot[0]
    m21, m22, m23 = rot[1]
    m31, m32, m33 = rot[2]
    trace = m11 + m22 + m33

    if trace > 0:
        s = 0.5 / math.sqrt(trace + 1.0)
        quat = (
            (m32 - m23) * s,
            (m13 - m31) * s,
            (m21 - m12) * s,
            0.25 / s,
        )
    elif m11 > m22 and m11 > m33:
        s = 2.0 * math.sqrt(1.0 + m11 - m22 - m33)
        quat = (0.25 * s, (m12 + m21) / s, (m13 + m31) / s, (m32 - m23) / s)
    elif m22 > m33:
        s = 2.0 * math.sqrt(1.0 + m22 - m11 - m33)
        quat = ((m12 + m21) / s, 0.25 * s, (m23 + m32) / s, (m13 - m31) / s)
    else:
        s = 2.0 * math.sqrt(1.0 + m33 - m11 - m22)
        quat = ((m13 + m31) / s, (m23 + m32) / s, 0.25 * s, (m21 - m12) / s)

    return np.array(quat, dtype=np.float64)


def compose(position: np.ndarray, quaternion: np.ndarray, scale: np.ndarray) -> np.ndarray:
    """Build a 4x4 matrix from translation, rotation quaternion and scale."""
    m = np.eye(4, dtype=np.float64)
    m[:3, :3] = quat_to_matrix(*quaternion) * np.asarray(scale, dtype=np.float64)
    m[:3, 3] = position
    return m


def decompose(matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split a 4x4 affine matrix into (position, quaternion, scale)."""
    matrix = np.asarray(matrix, dtype=np.float64)
    position = matrix[:3, 3].copy()
    basis = matrix[:3, :3]
    scale = np.linalg.norm(basis, axis=0)
    if np.linalg.det(basis) < 0:
        scale[0] = -scale[0]
    safe = np.where(scale == 0.0, 1.0, scale)
    quaternion = matrix_to_quat(basis / safe)
    return position, quaternion, scale


def look_at_rotation(position: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    """Rotation that points an object's local +z from ``position`` toward ``target``."""
    z = np.asarray(target, dtype=np.float64) - np.asarray(position, dtype=np.float64)
    if np.dot(z, z) == 0.0:
        z = np.array([0.0, 0.0, 1.0])
    z = z / np.linalg.norm(z)

    up = np.asarray(up, dtype=np.float64)
    x = np.cross(up, z)
    if np.dot(x, x) == 0.0:
        # up and z are parallel; nudge z off the up axis
        if abs(up[2]) == 1.0:
            z[0] += 0.0001
        else:
            z[2] += 0.0001
        z = z / np.linalg.norm(z)
        x = np.cross(up, z)
    x = x / np.linalg.norm(x)
    y = np.cross(z, x)

    return np.column_stack([x, y, z])


def translation_matrix(offset) -> np.ndarray:
    m = np.eye(4, dtype=np.float64)
    m[:3, 3] = offset
    return m


def rotation_matrix(rot: np.ndarray) -> np.ndarray:
    m = np.eye(4, dtype=np.float64)
    m[:3, :3] = rot
    return m


def normal_matrix(matrix: np.ndarray) -> np.ndarray:
    """Inverse transpose of the upper 3x3 block, for transforming normals."""
    return np.linalg.inv(matrix[:3, :3]).T


def bake_transform(vertices: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Return ``vertices`` (N, 3) transformed by the 4x4 ``matrix``.

    The input array is left untouched.
    """
    vertices = np.asarray(vertices, dtype=np.float64)
    if len(vertices) == 0:
        return vertices.reshape(0, 3).copy()
    return vertices @ matrix[:3, :3].T + matrix[:3, 3]


def bake_normals(normals: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Return unit ``normals`` (N, 3) transformed by the 4x4 ``matrix``."""
    normals = np.asarray(normals, dtype=np.float64)
    if len(normals) == 0:
        return normals.reshape(0, 3).copy()
    out = normals @ normal_matrix(matrix).T
    lengths = np.linalg.norm(out, axis=1, keepdims=True)
    lengths[lengths == 0.0] = 1.0
    return out / lengths
