"""Camera frame: undistorted keypoints, a search grid, stereo depth and pose."""

from __future__ import annotations

import copy as _copy
import itertools
import math
from dataclasses import dataclass
from typing import ClassVar, Sequence

import numpy as np

GRID_COLS = 64
GRID_ROWS = 48

_UNDISTORT_ITERATIONS = 5


@dataclass(frozen=True)
class KeyPoint:
    """An image feature: position, pyramid level and optional attributes."""

    x: float
    y: float
    octave: int = 0
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0

    def moved(self, x: float, y: float) -> "KeyPoint":
        """Return the same keypoint at a new position."""
        return KeyPoint(x, y, self.octave, self.size, self.angle, self.response)


@dataclass(frozen=True)
class ImageBounds:
    """Extent of the undistorted image."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _distortion(dist_coef: Sequence[float]) -> tuple[float, float, float, float, float]:
    coefs = [float(c) for c in np.asarray(dist_coef, dtype=np.float64).reshape(-1)]
    if len(coefs) < 4:
        raise ValueError("distortion needs at least k1, k2, p1, p2")
    coefs += [0.0] * (5 - len(coefs))
    k1, k2, p1, p2, k3 = coefs[:5]
    return k1, k2, p1, p2, k3


def undistort_points(
    points: np.ndarray, camera_matrix: np.ndarray, dist_coef: Sequence[float]
) -> np.ndarray:
    """Remove radial-tangential distortion from pixel points, keeping the same camera."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    k = np.asarray(camera_matrix, dtype=np.float64)
    fx, fy, cx, cy = k[0, 0], k[1, 1], k[0, 2], k[1, 2]
    k1, k2, p1, p2, k3 = _distortion(dist_coef)

    x0 = (pts[:, 0] - cx) / fx
    y0 = (pts[:, 1] - cy) / fy
    x, y = x0.copy(), y0.copy()
    for _ in range(_UNDISTORT_ITERATIONS):
        r2 = x * x + y * y
        icdist = 1.0 / (1.0 + ((k3 * r2 + k2) * r2 + k1) * r2)
        delta_x = 2.0 * p1 * x * y + p2 * (r2 + 2.0 * x * x)
        delta_y = p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * x * y
        x = (x0 - delta_x) * icdist
        y = (y0 - delta_y) * icdist

    return np.column_stack((x * fx + cx, y * fy + cy)).astype(np.float32)


def compute_image_bounds(
    width: int, height: int, camera_matrix: np.ndarray, dist_coef: Sequence[float]
) -> ImageBounds:
    """Bounds of the image once its corners are undistorted."""
    k1 = _distortion(dist_coef)[0]
    if k1 == 0.0:
        return ImageBounds(0.0, float(width), 0.0, float(height))
    corners = np.array(
        [[0.0, 0.0], [width, 0.0], [0.0, height], [width, height]], dtype=np.float32
    )
    c = undistort_points(corners, camera_matrix, dist_coef)
    return ImageBounds(
        min_x=float(min(c[0, 0], c[2, 0])),
        max_x=float(max(c[1, 0], c[3, 0])),
        min_y=float(min(c[0, 1], c[1, 1])),
        max_y=float(max(c[2, 1], c[3, 1])),
    )


class Frame:
    """A processed camera image with its keypoints, search grid and pose."""

    _ids: ClassVar[itertools.count] = itertools.count()

    def __init__(
        self,
        keys: Sequence[KeyPoint],
        camera_matrix: np.ndarray,
        dist_coef: Sequence[float],
        width: int,
        height: int,
        bf: float = 0.0,
        th_depth: float = 0.0,
        timestamp: float = 0.0,
        descriptors: np.ndarray | None = None,
        depth: np.ndarray | None = None,
    ) -> None:
        self.id = next(Frame._ids)
        self.timestamp = float(timestamp)
        self.camera_matrix = np.array(camera_matrix, dtype=np.float32)
        self.dist_coef = np.array(dist_coef, dtype=np.float32).reshape(-1)
        self.bf = float(bf)
        self.th_depth = float(th_depth)
        self.keys = list(keys)
        self.descriptors = None if descriptors is None else np.array(descriptors)

        self.fx = float(self.camera_matrix[0, 0])
        self.fy = float(self.camera_matrix[1, 1])
        self.cx = float(self.camera_matrix[0, 2])
        self.cy = float(self.camera_matrix[1, 2])
        self.invfx = 1.0 / self.fx
        self.invfy = 1.0 / self.fy
        self.baseline = self.bf / self.fx

        self.bounds = compute_image_bounds(width, height, self.camera_matrix, self.dist_coef)
        self.grid_width_inv = GRID_COLS / (self.bounds.max_x - self.bounds.min_x)
        self.grid_height_inv = GRID_ROWS / (self.bounds.max_y - self.bounds.min_y)

        self.keys_un = self._undistort_keys()
        n = len(self.keys)
        self.u_right = [-1.0] * n
        self.depth = [-1.0] * n
        self.outliers = [False] * n
        if depth is not None and n:
            self.compute_stereo_from_rgbd(depth)

        self.grid: list[list[list[int]]] = [[[] for _ in range(GRID_ROWS)] for _ in range(GRID_COLS)]
        for index, kp in enumerate(self.keys_un):
            cell = self.pos_in_grid(kp)
            if cell is not None:
                self.grid[cell[0]][cell[1]].append(index)

        self.tcw: np.ndarray | None = None
        self.rcw: np.ndarray | None = None
        self.rwc: np.ndarray | None = None
        self.tcw_vec: np.ndarray | None = None
        self.camera_center: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.keys)

    def _undistort_keys(self) -> list[KeyPoint]:
        if not self.keys or self.dist_coef[0] == 0.0:
            return list(self.keys)
        pts = np.array([[kp.x, kp.y] for kp in self.keys], dtype=np.float32)
        und = undistort_points(pts, self.camera_matrix, self.dist_coef)
        return [kp.moved(float(u), float(v)) for kp, (u, v) in zip(self.keys, und)]

    def set_pose(self, tcw: np.ndarray) -> None:
        """Set the world-to-camera transform and derive rotation and camera centre."""
        t = np.array(tcw, dtype=np.float32)
        if t.shape != (4, 4):
            raise ValueError(f"pose must be 4x4, got shape {t.shape}")
        self.tcw = t
        self.rcw = t[:3, :3].copy()
        self.rwc = self.rcw.T.copy()
        self.tcw_vec = t[:3, 3].reshape(3, 1).copy()
        self.camera_center = -self.rcw.T @ self.tcw_vec

    def pos_in_grid(self, keypoint: KeyPoint) -> tuple[int, int] | None:
        """Grid cell holding the keypoint, or None if it falls outside the grid."""
        pos_x = _round_half_away((keypoint.x - self.bounds.min_x) * self.grid_width_inv)
        pos_y = _round_half_away((keypoint.y - self.bounds.min_y) * self.grid_height_inv)
        if pos_x < 0 or pos_x >= GRID_COLS or pos_y < 0 or pos_y >= GRID_ROWS:
            return None
        return pos_x, pos_y

    def get_features_in_area(
        self, x: float, y: float, r: float, min_level: int = -1, max_level: int = -1
    ) -> list[int]:
        """Indices of undistorted keypoints within a square of half-side r around (x, y)."""
        found: list[int] = []
        min_cell_x = max(0, math.floor((x - self.bounds.min_x - r) * self.grid_width_inv))
        if min_cell_x >= GRID_COLS:
            return found
        max_cell_x = min(GRID_COLS - 1, math.ceil((x - self.bounds.min_x + r) * self.grid_width_inv))
        if max_cell_x < 0:
            return found
        min_cell_y = max(0, math.floor((y - self.bounds.min_y - r) * self.grid_height_inv))
        if min_cell_y >= GRID_ROWS:
            return found
        max_cell_y = min(GRID_ROWS - 1, math.ceil((y - self.bounds.min_y + r) * self.grid_height_inv))
        if max_cell_y < 0:
            return found

        check_levels = min_level > 0 or max_level >= 0
        for column in self.grid[min_cell_x : max_cell_x + 1]:
            for cell in column[min_cell_y : max_cell_y + 1]:
                for index in cell:
                    kp = self.keys_un[index]
                    if check_levels:
                        if kp.octave < min_level:
                            continue
                        if max_level >= 0 and kp.octave > max_level:
                            continue
                    if abs(kp.x - x) < r and abs(kp.y - y) < r:
                        found.append(index)
        return found

    def compute_stereo_from_rgbd(self, depth: np.ndarray) -> None:
        """Fill depths and virtual right coordinates from a registered depth image."""
        image = np.asarray(depth, dtype=np.float32)
        n = len(self.keys)
        self.u_right = [-1.0] * n
        self.depth = [-1.0] * n
        for i, (kp, kp_un) in enumerate(zip(self.keys, self.keys_un)):
            d = float(image[int(kp.y), int(kp.x)])
            if d > 0:
                self.depth[i] = d
                self.u_right[i] = kp_un.x - self.bf / d

    def unproject_stereo(self, index: int) -> np.ndarray | None:
        """World position of a keypoint with known depth, or None without depth."""
        z = self.depth[index]
        if z <= 0:
            return None
        if self.rwc is None or self.camera_center is None:
            raise ValueError("frame pose is not set")
        kp = self.keys_un[index]
        x = (kp.x - self.cx) * z * self.invfx
        y = (kp.y - self.cy) * z * self.invfy
        x3dc = np.array([[x], [y], [z]], dtype=np.float32)
        return self.rwc @ x3dc + self.camera_center

    def copy(self) -> "Frame":
        """Independent copy keeping the same id."""
        other = _copy.copy(self)
        other.camera_matrix = self.camera_matrix.copy()
        other.dist_coef = self.dist_coef.copy()
        other.keys = list(self.keys)
        other.keys_un = list(self.keys_un)
        other.descriptors = None if self.descriptors is None else self.descriptors.copy()
        other.u_right = list(self.u_right)
        other.depth = list(self.depth)
        other.outliers = list(self.outliers)
        other.grid = [[list(cell) for cell in column] for column in self.grid]
        other.tcw = None
        other.rcw = other.rwc = other.tcw_vec = other.camera_center = None
        if self.tcw is not None:
            other.set_pose(self.tcw)
        return other