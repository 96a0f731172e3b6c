"""Conversions between rigid-body representations and plain matrices."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np


def _quaternion_from_rotation(rotation: np.ndarray) -> np.ndarray:
    """Return the unit quaternion (x, y, z, w) of a 3x3 rotation matrix."""
    m = np.asarray(rotation, dtype=np.float64)
    if m.shape != (3, 3):
        raise ValueError(f"expected a 3x3 rotation, got shape {m.shape}")
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    q = np.zeros(4)
    if trace > 0.0:
        t = np.sqrt(trace + 1.0)
        q[3] = 0.5 * t
        t = 0.5 / t
        q[0] = (m[2, 1] - m[1, 2]) * t
        q[1] = (m[0, 2] - m[2, 0]) * t
        q[2] = (m[1, 0] - m[0, 1]) * t
    else:
        i = int(np.argmax(np.diag(m)))
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = np.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[i] = 0.5 * t
        t = 0.5 / t
        q[3] = (m[k, j] - m[j, k]) * t
        q[j] = (m[j, i] + m[i, j]) * t
        q[k] = (m[k, i] + m[i, k]) * t
    return q


def _rotation_from_quaternion(quaternion: np.ndarray) -> np.ndarray:
    x, y, z, w = np.asarray(quaternion, dtype=np.float64)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def _as_quaternion(rotation: Any) -> np.ndarray:
    arr = np.asarray(rotation, dtype=np.float64)
    if arr.shape == (3, 3):
        arr = _quaternion_from_rotation(arr)
    elif arr.shape != (4,):
        raise ValueError("rotation must be a 3x3 matrix or an (x, y, z, w) quaternion")
    norm = np.linalg.norm(arr)
    if norm == 0.0:
        raise ValueError("quaternion has zero norm")
    return arr / norm


def _as_translation(translation: Any) -> np.ndarray:
    arr = np.asarray(translation, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError("translation must have three components")
    return arr


@dataclass(frozen=True)
class SE3Quat:
    """Rigid transform stored as a unit quaternion (x, y, z, w) and a translation."""

    rotation: np.ndarray
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", _as_quaternion(self.rotation))
        object.__setattr__(self, "translation", _as_translation(self.translation))

    @property
    def rotation_matrix(self) -> np.ndarray:
        return _rotation_from_quaternion(self.rotation)

    def to_homogeneous_matrix(self) -> np.ndarray:
        """Return the 4x4 double-precision homogeneous matrix."""
        out = np.eye(4)
        out[:3, :3] = self.rotation_matrix
        out[:3, 3] = self.translation
        return out


@dataclass(frozen=True)
class Sim3:
    """Similarity transform: rotation quaternion (x, y, z, w), translation and scale."""

    rotation: np.ndarray
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    scale: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", _as_quaternion(self.rotation))
        object.__setattr__(self, "translation", _as_translation(self.translation))
        object.__setattr__(self, "scale", float(self.scale))

    @property
    def rotation_matrix(self) -> np.ndarray:
        return _rotation_from_quaternion(self.rotation)

    def to_matrix(self) -> np.ndarray:
        """Return the 4x4 single-precision matrix [s*R | t]."""
        return to_se3(self.scale * self.rotation_matrix, self.translation)


def to_descriptor_vector(descriptors: np.ndarray) -> list[np.ndarray]:
    """Split a descriptor matrix into a list of its rows."""
    return list(np.asarray(descriptors))


def to_se3_quat(transform: np.ndarray) -> SE3Quat:
    """Build an SE3Quat from a 4x4 (or 3x4) transform matrix."""
    m = np.asarray(transform, dtype=np.float32).astype(np.float64)
    if m.shape[0] < 3 or m.shape[1] < 4:
        raise ValueError(f"expected a 3x4 or 4x4 transform, got shape {m.shape}")
    return SE3Quat(m[:3, :3], m[:3, 3])


def to_matrix(value: Any) -> np.ndarray:
    """Convert a transform, 4x4/3x3 matrix or 3-vector to a float32 matrix."""
    if isinstance(value, SE3Quat):
        return value.to_homogeneous_matrix().astype(np.float32)
    if isinstance(value, Sim3):
        return value.to_matrix()
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape in ((4, 4), (3, 3), (3, 1)):
        return arr.astype(np.float32)
    if arr.shape == (3,):
        return arr.reshape(3, 1).astype(np.float32)
    raise ValueError(f"cannot convert value of shape {arr.shape}")


def to_se3(rotation: np.ndarray, translation: np.ndarray) -> np.ndarray:
    """Assemble a 4x4 float32 matrix from a 3x3 block and a translation."""
    r = np.asarray(rotation, dtype=np.float64)
    if r.shape != (3, 3):
        raise ValueError("rotation block must be 3x3")
    out = np.eye(4, dtype=np.float32)
    out[:3, :3] = r
    out[:3, 3] = _as_translation(translation)
    return out


def to_vector3d(value: Any) -> np.ndarray:
    """Return a double-precision 3-vector from an array or a point with x, y, z."""
    if all(hasattr(value, name) for name in ("x", "y", "z")):
        return np.array([value.x, value.y, value.z], dtype=np.float64)
    arr = np.asarray(value, dtype=np.float32).reshape(-1)
    if arr.size < 3:
        raise ValueError("need at least three components")
    return arr[:3].astype(np.float64)


def to_matrix3d(matrix: np.ndarray) -> np.ndarray:
    """Return the top-left 3x3 block as a double-precision matrix."""
    m = np.asarray(matrix, dtype=np.float32)
    if m.ndim != 2 or m.shape[0] < 3 or m.shape[1] < 3:
        raise ValueError(f"expected at least a 3x3 matrix, got shape {m.shape}")
    return m[:3, :3].astype(np.float64)


def to_quaternion(matrix: np.ndarray) -> list[float]:
    """Return the quaternion of a rotation matrix as [x, y, z, w]."""
    q = _quaternion_from_rotation(to_matrix3d(matrix))
    return [float(np.float32(c)) for c in q]