"""Planes fitted to map points, used to anchor virtual objects in the scene."""

from __future__ import annotations

import math
import random
from typing import Any, Sequence

import numpy as np

from orbslam_geometry.status import TrackingState

_EPS = 1e-4
_UP = np.array([0.0, 1.0, 0.0])
_MIN_PLANE_POINTS = 50
_MIN_OBSERVATIONS = 5
_WHITE = (255, 255, 255)
_RED = (255, 0, 0)
_GREEN = (0, 255, 0)


def exp_so3(x: Any, y: float | None = None, z: float | None = None) -> np.ndarray:
    """Rotation matrix of the axis-angle vector (x, y, z).

    A single 3-vector may be passed in place of the three components.
    """
    if y is None and z is None:
        x, y, z = (float(c) for c in np.asarray(x, dtype=np.float64).reshape(-1)[:3])
    elif y is None or z is None:
        raise TypeError("give either a 3-vector or all three components")
    x, y, z = float(x), float(y), float(z)
    identity = np.eye(3)
    d2 = x * x + y * y + z * z
    d = math.sqrt(d2)
    w = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
    if d < _EPS:
        return identity + w + 0.5 * (w @ w)
    return identity + w * math.sin(d) / d + (w @ w) * (1.0 - math.cos(d)) / d2


def ar_status(status: int, localization_mode: bool) -> tuple[str, tuple[int, int, int]] | None:
    """Overlay text and its (r, g, b) colour for a tracking status, or None for no text."""
    mode = "LOCALIZATION" if localization_mode else "SLAM"
    if status == TrackingState.NOT_INITIALIZED:
        return "SLAM NOT INITIALIZED", _RED
    if status == TrackingState.OK:
        return f"{mode} ON", _GREEN
    if status == TrackingState.LOST:
        return f"{mode} LOST", _RED
    return None


def _random_rang() -> float:
    return -3.14 / 2 + random.random() * 3.14


def _rotation_to_normal(normal: np.ndarray) -> np.ndarray:
    """Rotation taking the up axis (0, 1, 0) onto the given normal."""
    v = np.cross(_UP, normal)
    sa = float(np.linalg.norm(v))
    ca = float(np.dot(_UP, normal))
    if sa == 0.0:
        return np.eye(3) if ca >= 0 else exp_so3(math.pi, 0.0, 0.0)
    angle = math.atan2(sa, ca)
    return exp_so3(v * angle / sa)


def _plane_pose(normal: np.ndarray, origin: np.ndarray, rang: float) -> np.ndarray:
    tpw = np.eye(4)
    tpw[:3, :3] = _rotation_to_normal(normal) @ exp_so3(_UP * rang)
    tpw[:3, 3] = origin
    return tpw


class Plane:
    """A plane through map points, with a pose whose y axis is the plane normal.

    Map points are objects with ``world_pos`` (a 3-vector), ``observations``
    (an int) and ``is_bad`` (a bool).
    """

    def __init__(
        self, map_points: Sequence[Any], tcw: Any, rang: float | None = None
    ) -> None:
        self.map_points = list(map_points)
        pose = np.array(tcw, dtype=np.float64)
        if pose.ndim != 2 or pose.shape[0] < 3 or pose.shape[1] < 4:
            raise ValueError(f"camera pose must be 3x4 or 4x4, got shape {pose.shape}")
        self.tcw: np.ndarray | None = pose
        self.rang = _random_rang() if rang is None else float(rang)
        self.xc: np.ndarray | None = None
        self.normal = np.zeros(3)
        self.origin = np.zeros(3)
        self.tpw = np.eye(4)
        self.recompute()

    @classmethod
    def from_normal(cls, normal: Any, origin: Any, rang: float | None = None) -> "Plane":
        """A plane given directly by its normal and a point on it."""
        plane = cls.__new__(cls)
        plane.map_points = []
        plane.tcw = None
        plane.xc = None
        plane.rang = _random_rang() if rang is None else float(rang)
        plane.normal = np.asarray(normal, dtype=np.float64).reshape(3).copy()
        plane.origin = np.asarray(origin, dtype=np.float64).reshape(3).copy()
        plane.tpw = _plane_pose(plane.normal, plane.origin, plane.rang)
        return plane

    def recompute(self) -> None:
        """Refit the plane to its map points that are still good."""
        positions = [
            np.asarray(mp.world_pos, dtype=np.float64).reshape(3)
            for mp in self.map_points
            if not mp.is_bad
        ]
        if not positions:
            raise ValueError("no valid map points to fit a plane")
        points = np.array(positions)
        a = np.column_stack((points, np.ones(len(points))))
        _, _, vt = np.linalg.svd(a, full_matrices=True)
        abc = vt[3, :3].copy()
        origin = points.mean(axis=0)

        if self.xc is None:
            if self.tcw is None:
                raise ValueError("plane has no camera pose to orient its normal")
            rotation = self.tcw[:3, :3]
            translation = self.tcw[:3, 3]
            camera_center = -rotation.T @ translation
            self.xc = camera_center - origin

        if float(np.dot(self.xc, abc)) > 0:
            abc = -abc

        self.normal = abc / np.linalg.norm(abc)
        self.origin = origin
        self.tpw = _plane_pose(self.normal, self.origin, self.rang)

    def gl_matrix(self) -> list[float]:
        """The plane pose as 16 values in column-major order."""
        out = np.zeros((4, 4))
        out[:3, :] = self.tpw[:3, :]
        out[3, 3] = 1.0
        return [float(v) for v in out.flatten(order="F")]


def detect_plane(tcw: Any, map_points: Sequence[Any], iterations: int = 50) -> Plane | None:
    """Fit a plane by RANSAC to well-observed map points; None if too few points."""
    candidates = [
        mp for mp in map_points if mp is not None and mp.observations > _MIN_OBSERVATIONS
    ]
    n = len(candidates)
    if n < _MIN_PLANE_POINTS:
        return None

    points = np.array(
        [np.asarray(mp.world_pos, dtype=np.float64).reshape(3) for mp in candidates]
    )
    nth = max(int(0.2 * n), 20)
    best_dist = 1e10
    best_distances: np.ndarray | None = None

    for _ in range(iterations):
        sample = random.sample(range(n), 3)
        a = np.column_stack((points[sample], np.ones(3)))
        _, _, vt = np.linalg.svd(a, full_matrices=True)
        plane = vt[3]
        f = 1.0 / np.linalg.norm(plane)
        distances = np.abs(points @ plane[:3] + plane[3]) * f
        median = float(np.sort(distances)[nth])
        if median < best_dist:
            best_dist = median
            best_distances = distances

    if best_distances is None:
        return None

    threshold = 1.4 * best_dist
    inliers = [mp for mp, d in zip(candidates, best_distances) if d < threshold]
    if not inliers:
        return None
    return Plane(inliers, tcw)