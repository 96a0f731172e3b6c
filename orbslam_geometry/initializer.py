"""Map initialization from two views by competing homography and fundamental models."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from orbslam_geometry.epipolar import (
    _as_points,
    check_fundamental,
    check_homography,
    check_rt,
    compute_f21,
    compute_h21,
    decompose_e,
    normalize,
)

_SAMPLE_SIZE = 8
_HOMOGRAPHY_RATIO = 0.40
_DEFAULT_MIN_PARALLAX = 1.0
_DEFAULT_MIN_TRIANGULATED = 50


@dataclass
class Reconstruction:
    """Relative motion of the second view and the points triangulated from it.

    ``points`` holds one row per reference keypoint; ``triangulated`` marks the
    rows that were triangulated with enough parallax.
    """

    rotation: np.ndarray
    translation: np.ndarray
    points: np.ndarray
    triangulated: list[bool]
    model: str


class Initializer:
    """Estimates the motion between a reference view and a later one."""

    def __init__(
        self,
        reference_keys: Sequence[Any],
        camera_matrix: Any,
        sigma: float = 1.0,
        iterations: int = 200,
        seed: int = 0,
    ) -> None:
        if iterations < 1:
            raise ValueError("at least one RANSAC iteration is required")
        self.camera_matrix = np.array(camera_matrix, dtype=np.float64)
        if self.camera_matrix.shape != (3, 3):
            raise ValueError("camera matrix must be 3x3")
        self.keys1 = list(reference_keys)
        self.sigma = float(sigma)
        self.sigma2 = self.sigma * self.sigma
        self.iterations = int(iterations)
        self._rng = random.Random(seed)
        self.keys2: list[Any] = []
        self.matches: list[tuple[int, int]] = []
        self.matched1: list[bool] = []
        self.sets: list[list[int]] = []

    @classmethod
    def from_frame(cls, frame: Any, sigma: float = 1.0, iterations: int = 200) -> "Initializer":
        """Build an initializer from a frame's undistorted keypoints and calibration."""
        return cls(frame.keys_un, frame.camera_matrix, sigma, iterations)

    def initialize(
        self, current_keys: Sequence[Any], matches12: Sequence[int]
    ) -> Reconstruction | None:
        """Try to recover motion and structure; None if no model is trustworthy.

        ``matches12[i]`` is the index of the current keypoint matched to
        reference keypoint ``i``, or a negative number for no match.
        """
        self.keys2 = list(current_keys)
        if len(matches12) > len(self.keys1):
            raise ValueError("more match entries than reference keypoints")
        self.matches = []
        self.matched1 = [False] * len(self.keys1)
        for i1, i2 in enumerate(matches12):
            if i2 < 0:
                continue
            if i2 >= len(self.keys2):
                raise ValueError(f"match index {i2} out of range")
            self.matches.append((i1, int(i2)))
            self.matched1[i1] = True

        n = len(self.matches)
        if n < _SAMPLE_SIZE:
            raise ValueError(f"need at least {_SAMPLE_SIZE} matches, got {n}")

        self.sets = [self._rng.sample(range(n), _SAMPLE_SIZE) for _ in range(self.iterations)]

        score_h, inliers_h, h21 = self.find_homography()
        score_f, inliers_f, f21 = self.find_fundamental()

        total = score_h + score_f
        ratio = score_h / total if total > 0 else math.nan
        if ratio > _HOMOGRAPHY_RATIO:
            return self.reconstruct_h(
                inliers_h, h21, _DEFAULT_MIN_PARALLAX, _DEFAULT_MIN_TRIANGULATED
            )
        return self.reconstruct_f(
            inliers_f, f21, _DEFAULT_MIN_PARALLAX, _DEFAULT_MIN_TRIANGULATED
        )

    def _require_matches(self) -> None:
        if not self.sets:
            raise RuntimeError("initialize() has not supplied matches yet")

    def _matched_pixels(self) -> tuple[np.ndarray, np.ndarray]:
        pts1 = _as_points(self.keys1)
        pts2 = _as_points(self.keys2)
        idx1 = [i1 for i1, _ in self.matches]
        idx2 = [i2 for _, i2 in self.matches]
        return pts1[idx1], pts2[idx2]

    def _normalized_samples(self):
        norm1, t1 = normalize(self.keys1)
        norm2, t2 = normalize(self.keys2)
        for sample in self.sets:
            s1 = norm1[[self.matches[i][0] for i in sample]]
            s2 = norm2[[self.matches[i][1] for i in sample]]
            yield s1, s2, t1, t2

    def find_homography(self) -> tuple[float, list[bool], np.ndarray | None]:
        """RANSAC over the sample sets; return (score, inliers, H21) of the best."""
        self._require_matches()
        pix1, pix2 = self._matched_pixels()
        best_score = 0.0
        best_inliers = [False] * len(self.matches)
        best_h: np.ndarray | None = None
        for s1, s2, t1, t2 in self._normalized_samples():
            hn = compute_h21(s1, s2)
            try:
                h21 = np.linalg.inv(t2) @ hn @ t1
                h12 = np.linalg.inv(h21)
            except np.linalg.LinAlgError:
                continue
            score, inliers = check_homography(h21, h12, pix1, pix2, self.sigma)
            if score > best_score:
                best_score, best_inliers, best_h = score, inliers, h21.copy()
        return best_score, best_inliers, best_h

    def find_fundamental(self) -> tuple[float, list[bool], np.ndarray | None]:
        """RANSAC over the sample sets; return (score, inliers, F21) of the best."""
        self._require_matches()
        pix1, pix2 = self._matched_pixels()
        best_score = 0.0
        best_inliers = [False] * len(self.matches)
        best_f: np.ndarray | None = None
        for s1, s2, t1, t2 in self._normalized_samples():
            fn = compute_f21(s1, s2)
            f21 = t2.T @ fn @ t1
            score, inliers = check_fundamental(f21, pix1, pix2, self.sigma)
            if score > best_score:
                best_score, best_inliers, best_f = score, inliers, f21.copy()
        return best_score, best_inliers, best_f

    def _check(self, rotation: np.ndarray, translation: np.ndarray, inliers: Sequence[bool]):
        return check_rt(
            rotation,
            translation,
            self.keys1,
            self.keys2,
            self.matches,
            inliers,
            self.camera_matrix,
            4.0 * self.sigma2,
        )

    def reconstruct_f(
        self,
        inliers: Sequence[bool],
        f21: Any,
        min_parallax: float = _DEFAULT_MIN_PARALLAX,
        min_triangulated: int = _DEFAULT_MIN_TRIANGULATED,
    ) -> Reconstruction | None:
        """Pick among the four motions of the essential matrix; None if ambiguous."""
        if f21 is None:
            return None
        n_inliers = sum(bool(b) for b in inliers)
        k = self.camera_matrix
        essential = k.T @ np.asarray(f21, dtype=np.float64) @ k
        r1, r2, t = decompose_e(essential)
        hypotheses = [(r1, t), (r2, t), (r1, -t), (r2, -t)]
        checks = [self._check(r, tr, inliers) for r, tr in hypotheses]
        goods = [c.n_good for c in checks]
        max_good = max(goods)
        min_good = max(int(0.9 * n_inliers), min_triangulated)
        similar = sum(1 for g in goods if g > 0.7 * max_good)
        if max_good < min_good or similar > 1:
            return None

        best = goods.index(max_good)
        check = checks[best]
        if check.parallax > min_parallax:
            rotation, translation = hypotheses[best]
            return Reconstruction(
                rotation.copy(), translation.copy(), check.points, check.good, "fundamental"
            )
        return None

    def reconstruct_h(
        self,
        inliers: Sequence[bool],
        h21: Any,
        min_parallax: float = _DEFAULT_MIN_PARALLAX,
        min_triangulated: int = _DEFAULT_MIN_TRIANGULATED,
    ) -> Reconstruction | None:
        """Pick among the eight motions of the homography (Faugeras); None if ambiguous."""
        if h21 is None:
            return None
        n_inliers = sum(bool(b) for b in inliers)
        k = self.camera_matrix
        a = np.linalg.inv(k) @ np.asarray(h21, dtype=np.float64) @ k
        u, w, vt = np.linalg.svd(a, full_matrices=True)
        s = np.linalg.det(u) * np.linalg.det(vt)
        d1, d2, d3 = (float(x) for x in w)

        with np.errstate(divide="ignore", invalid="ignore"):
            if not (d1 / d2 >= 1.00001 and d2 / d3 >= 1.00001):
                return None

        aux1 = math.sqrt((d1 * d1 - d2 * d2) / (d1 * d1 - d3 * d3))
        aux3 = math.sqrt((d2 * d2 - d3 * d3) / (d1 * d1 - d3 * d3))
        x1 = (aux1, aux1, -aux1, -aux1)
        x3 = (aux3, -aux3, aux3, -aux3)

        hypotheses: list[tuple[np.ndarray, np.ndarray]] = []

        # d' = d2
        aux_stheta = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3)) / ((d1 + d3) * d2)
        ctheta = (d2 * d2 + d1 * d3) / ((d1 + d3) * d2)
        stheta = (aux_stheta, -aux_stheta, -aux_stheta, aux_stheta)
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = ctheta
            rp[0, 2] = -stheta[i]
            rp[2, 0] = stheta[i]
            rp[2, 2] = ctheta
            tp = np.array([x1[i], 0.0, -x3[i]]) * (d1 - d3)
            t = u @ tp
            hypotheses.append((s * u @ rp @ vt, t / np.linalg.norm(t)))

        # d' = -d2
        aux_sphi = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3)) / ((d1 - d3) * d2)
        cphi = (d1 * d3 - d2 * d2) / ((d1 - d3) * d2)
        sphi = (aux_sphi, -aux_sphi, -aux_sphi, aux_sphi)
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = cphi
            rp[0, 2] = sphi[i]
            rp[1, 1] = -1.0
            rp[2, 0] = sphi[i]
            rp[2, 2] = -cphi
            tp = np.array([x1[i], 0.0, x3[i]]) * (d1 + d3)
            t = u @ tp
            hypotheses.append((s * u @ rp @ vt, t / np.linalg.norm(t)))

        best_good = 0
        second_good = 0
        best_index = -1
        best_check = None
        for index, (rotation, translation) in enumerate(hypotheses):
            check = self._check(rotation, translation, inliers)
            if check.n_good > best_good:
                second_good = best_good
                best_good = check.n_good
                best_index = index
                best_check = check
            elif check.n_good > second_good:
                second_good = check.n_good

        if (
            best_check is not None
            and second_good < 0.75 * best_good
            and best_check.parallax >= min_parallax
            and best_good > min_triangulated
            and best_good > 0.9 * n_inliers
        ):
            rotation, translation = hypotheses[best_index]
            return Reconstruction(
                rotation.copy(), translation.copy(), best_check.points, best_check.good, "homography"
            )
        return None