"""Two-view geometry: homographies, fundamental matrices and motion checks."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

HOMOGRAPHY_CHI2 = 5.991
FUNDAMENTAL_CHI2 = 3.841
PARALLAX_COS_LIMIT = 0.99998
_PARALLAX_RANK = 50


def _xy(point: Any) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    x, y = np.asarray(point, dtype=np.float64).reshape(-1)[:2]
    return float(x), float(y)


def _as_points(points: Any) -> np.ndarray:
    if isinstance(points, np.ndarray):
        return points.astype(np.float64).reshape(-1, 2)
    return np.array([_xy(p) for p in points], dtype=np.float64).reshape(-1, 2)


def _paired(points1: Any, points2: Any) -> tuple[np.ndarray, np.ndarray]:
    p1 = _as_points(points1)
    p2 = _as_points(points2)
    if len(p1) != len(p2):
        raise ValueError("point sets differ in length")
    if len(p1) == 0:
        raise ValueError("no points given")
    return p1, p2


def _as_3x3(matrix: Any, name: str) -> np.ndarray:
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (3, 3):
        raise ValueError(f"{name} must be 3x3, got shape {m.shape}")
    return m


def normalize(points: Any) -> tuple[np.ndarray, np.ndarray]:
    """Centre points and scale them to unit mean absolute deviation per axis.

    Returns the normalized points and the 3x3 transform that produces them.
    """
    pts = _as_points(points)
    if len(pts) == 0:
        raise ValueError("no points to normalize")
    mean = pts.mean(axis=0)
    centered = pts - mean
    deviation = np.abs(centered).mean(axis=0)
    with np.errstate(divide="ignore"):
        scale = 1.0 / deviation
    normalized = centered * scale
    transform = np.eye(3)
    transform[0, 0] = scale[0]
    transform[1, 1] = scale[1]
    transform[0, 2] = -mean[0] * scale[0]
    transform[1, 2] = -mean[1] * scale[1]
    return normalized, transform


def compute_h21(points1: Any, points2: Any) -> np.ndarray:
    """Homography mapping points1 onto points2 by the direct linear transform."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    zeros = np.zeros_like(u1)
    ones = np.ones_like(u1)
    a = np.empty((2 * len(p1), 9))
    a[0::2] = np.column_stack((zeros, zeros, zeros, -u1, -v1, -ones, v2 * u1, v2 * v1, v2))
    a[1::2] = np.column_stack((u1, v1, ones, zeros, zeros, zeros, -u2 * u1, -u2 * v1, -u2))
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    return vt[8].reshape(3, 3)


def compute_f21(points1: Any, points2: Any) -> np.ndarray:
    """Rank-two fundamental matrix with x2' F x1 = 0 by the eight-point method."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    a = np.column_stack(
        (u2 * u1, u2 * v1, u2, v2 * u1, v2 * v1, v2, u1, v1, np.ones_like(u1))
    )
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    f_pre = vt[8].reshape(3, 3)
    u, w, vt = np.linalg.svd(f_pre)
    w[2] = 0.0
    return u @ np.diag(w) @ vt


def check_homography(
    h21: Any, h12: Any, points1: Any, points2: Any, sigma: float
) -> tuple[float, list[bool]]:
    """Score a homography by symmetric transfer error; return (score, inliers)."""
    h = _as_3x3(h21, "h21")
    hinv = _as_3x3(h12, "h12")
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    inv_sigma2 = 1.0 / (sigma * sigma)
    th = HOMOGRAPHY_CHI2

    with np.errstate(divide="ignore", invalid="ignore"):
        w2in1 = 1.0 / (hinv[2, 0] * u2 + hinv[2, 1] * v2 + hinv[2, 2])
        u2in1 = (hinv[0, 0] * u2 + hinv[0, 1] * v2 + hinv[0, 2]) * w2in1
        v2in1 = (hinv[1, 0] * u2 + hinv[1, 1] * v2 + hinv[1, 2]) * w2in1
        chi1 = ((u1 - u2in1) ** 2 + (v1 - v2in1) ** 2) * inv_sigma2

        w1in2 = 1.0 / (h[2, 0] * u1 + h[2, 1] * v1 + h[2, 2])
        u1in2 = (h[0, 0] * u1 + h[0, 1] * v1 + h[0, 2]) * w1in2
        v1in2 = (h[1, 0] * u1 + h[1, 1] * v1 + h[1, 2]) * w1in2
        chi2 = ((u2 - u1in2) ** 2 + (v2 - v1in2) ** 2) * inv_sigma2

    in1 = ~(chi1 > th)
    in2 = ~(chi2 > th)
    score = float(np.sum(th - chi1[in1]) + np.sum(th - chi2[in2]))
    return score, [bool(b) for b in in1 & in2]


def check_fundamental(
    f21: Any, points1: Any, points2: Any, sigma: float
) -> tuple[float, list[bool]]:
    """Score a fundamental matrix by point-to-epipolar-line distance; return (score, inliers)."""
    f = _as_3x3(f21, "f21")
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    inv_sigma2 = 1.0 / (sigma * sigma)

    with np.errstate(divide="ignore", invalid="ignore"):
        a2 = f[0, 0] * u1 + f[0, 1] * v1 + f[0, 2]
        b2 = f[1, 0] * u1 + f[1, 1] * v1 + f[1, 2]
        c2 = f[2, 0] * u1 + f[2, 1] * v1 + f[2, 2]
        num2 = a2 * u2 + b2 * v2 + c2
        chi1 = num2 * num2 / (a2 * a2 + b2 * b2) * inv_sigma2

        a1 = f[0, 0] * u2 + f[1, 0] * v2 + f[2, 0]
        b1 = f[0, 1] * u2 + f[1, 1] * v2 + f[2, 1]
        c1 = f[0, 2] * u2 + f[1, 2] * v2 + f[2, 2]
        num1 = a1 * u1 + b1 * v1 + c1
        chi2 = num1 * num1 / (a1 * a1 + b1 * b1) * inv_sigma2

    in1 = ~(chi1 > FUNDAMENTAL_CHI2)
    in2 = ~(chi2 > FUNDAMENTAL_CHI2)
    score = float(np.sum(HOMOGRAPHY_CHI2 - chi1[in1]) + np.sum(HOMOGRAPHY_CHI2 - chi2[in2]))
    return score, [bool(b) for b in in1 & in2]


def triangulate(point1: Any, point2: Any, proj1: Any, proj2: Any) -> np.ndarray:
    """Linear triangulation of one correspondence from two 3x4 projection matrices."""
    x1, y1 = _xy(point1)
    x2, y2 = _xy(point2)
    p1 = np.asarray(proj1, dtype=np.float64)
    p2 = np.asarray(proj2, dtype=np.float64)
    if p1.shape != (3, 4) or p2.shape != (3, 4):
        raise ValueError("projection matrices must be 3x4")
    a = np.vstack(
        (
            x1 * p1[2] - p1[0],
            y1 * p1[2] - p1[1],
            x2 * p2[2] - p2[0],
            y2 * p2[2] - p2[1],
        )
    )
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    x = vt[3]
    with np.errstate(divide="ignore", invalid="ignore"):
        return x[:3] / x[3]


def decompose_e(essential: Any) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an essential matrix into its two rotations and unit translation."""
    e = _as_3x3(essential, "essential matrix")
    u, _, vt = np.linalg.svd(e)
    t = u[:, 2].copy()
    t /= np.linalg.norm(t)
    w = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    r1 = u @ w @ vt
    if np.linalg.det(r1) < 0:
        r1 = -r1
    r2 = u @ w.T @ vt
    if np.linalg.det(r2) < 0:
        r2 = -r2
    return r1, r2, t


@dataclass
class RTCheck:
    """Outcome of testing a motion hypothesis against matched points."""

    n_good: int
    points: np.ndarray
    good: list[bool]
    parallax: float


def check_rt(
    rotation: Any,
    translation: Any,
    keys1: Sequence[Any],
    keys2: Sequence[Any],
    matches: Sequence[tuple[int, int]],
    inliers: Sequence[bool],
    camera_matrix: Any,
    th2: float,
) -> RTCheck:
    """Triangulate inlier matches under (R, t) and count those that pass cheirality and reprojection."""
    r = _as_3x3(rotation, "rotation")
    t = np.asarray(translation, dtype=np.float64).reshape(3)
    k = _as_3x3(camera_matrix, "camera matrix")
    if len(inliers) != len(matches):
        raise ValueError("inlier flags and matches differ in length")
    fx, fy, cx, cy = k[0, 0], k[1, 1], k[0, 2], k[1, 2]

    n1 = len(keys1)
    good = [False] * n1
    points = np.zeros((n1, 3))
    cos_parallaxes: list[float] = []

    proj1 = np.zeros((3, 4))
    proj1[:, :3] = k
    proj2 = k @ np.column_stack((r, t))
    origin2 = -r.T @ t

    n_good = 0
    for (i1, i2), is_inlier in zip(matches, inliers):
        if not is_inlier:
            continue
        x1, y1 = _xy(keys1[i1])
        x2, y2 = _xy(keys2[i2])
        p3d = triangulate((x1, y1), (x2, y2), proj1, proj2)

        if not np.all(np.isfinite(p3d)):
            good[i1] = False
            continue

        normal2 = p3d - origin2
        dist1 = np.linalg.norm(p3d)
        dist2 = np.linalg.norm(normal2)
        with np.errstate(divide="ignore", invalid="ignore"):
            cos_parallax = float(np.dot(p3d, normal2) / (dist1 * dist2))

        if p3d[2] <= 0 and cos_parallax < PARALLAX_COS_LIMIT:
            continue
        p3d_c2 = r @ p3d + t
        if p3d_c2[2] <= 0 and cos_parallax < PARALLAX_COS_LIMIT:
            continue

        with np.errstate(divide="ignore", invalid="ignore"):
            inv_z1 = 1.0 / p3d[2]
            im1x = fx * p3d[0] * inv_z1 + cx
            im1y = fy * p3d[1] * inv_z1 + cy
            error1 = (im1x - x1) ** 2 + (im1y - y1) ** 2
        if error1 > th2:
            continue

        with np.errstate(divide="ignore", invalid="ignore"):
            inv_z2 = 1.0 / p3d_c2[2]
            im2x = fx * p3d_c2[0] * inv_z2 + cx
            im2y = fy * p3d_c2[1] * inv_z2 + cy
            error2 = (im2x - x2) ** 2 + (im2y - y2) ** 2
        if error2 > th2:
            continue

        cos_parallaxes.append(cos_parallax)
        points[i1] = p3d
        n_good += 1
        if cos_parallax < PARALLAX_COS_LIMIT:
            good[i1] = True

    parallax = 0.0
    if n_good > 0:
        cos_parallaxes.sort()
        idx = min(_PARALLAX_RANK, len(cos_parallaxes) - 1)
        cos_value = min(1.0, max(-1.0, cos_parallaxes[idx]))
        parallax = math.degrees(math.acos(cos_value))

    return RTCheck(n_good=n_good, points=points, good=good, parallax=parallax)