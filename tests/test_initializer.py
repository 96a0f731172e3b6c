import numpy as np
import pytest

from orbslam_geometry.initializer import Initializer, Reconstruction

K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])


def _rot_y(angle):
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def _project(points):
    p = (K @ points.T).T
    return p[:, :2] / p[:, 2:3]


def _scene(planar=False, n=100, seed=7):
    rng = np.random.default_rng(seed)
    xs = rng.uniform(-3.0, 3.0, n)
    ys = rng.uniform(-2.0, 2.0, n)
    zs = np.full(n, 6.0) if planar else rng.uniform(4.0, 10.0, n)
    points = np.column_stack((xs, ys, zs))
    rotation = _rot_y(0.1)
    translation = np.array([1.0, 0.1, 0.2])
    points2 = (rotation @ points.T).T + translation
    return points, rotation, translation, _project(points), _project(points2)


def test_initialize_general_scene_recovers_motion():
    points, rotation, translation, keys1, keys2 = _scene()
    init = Initializer(keys1, K, sigma=1.0, iterations=50)
    rec = init.initialize(keys2, list(range(len(keys1))))
    assert isinstance(rec, Reconstruction)
    assert rec.model == "fundamental"
    np.testing.assert_allclose(rec.rotation, rotation, atol=1e-3)
    unit_t = translation / np.linalg.norm(translation)
    np.testing.assert_allclose(rec.translation, unit_t, atol=1e-3)
    scaled = rec.points * np.linalg.norm(translation)
    np.testing.assert_allclose(scaled, points, rtol=1e-2, atol=1e-2)
    assert all(rec.triangulated)


def test_find_fundamental_marks_all_inliers_and_satisfies_epipolar_constraint():
    _, _, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K, iterations=20)
    init.initialize(keys2, list(range(len(keys1))))
    score, inliers, f21 = init.find_fundamental()
    assert all(inliers)
    assert score > 0
    h1 = np.column_stack((keys1, np.ones(len(keys1))))
    h2 = np.column_stack((keys2, np.ones(len(keys2))))
    residual = np.einsum("ij,jk,ik->i", h2, f21 / np.linalg.norm(f21), h1)
    assert np.max(np.abs(residual)) < 1e-6


def test_find_homography_on_plane_maps_points():
    _, _, _, keys1, keys2 = _scene(planar=True)
    init = Initializer(keys1, K, iterations=20)
    init.initialize(keys2, list(range(len(keys1))))
    score, inliers, h21 = init.find_homography()
    assert all(inliers)
    h1 = np.column_stack((keys1, np.ones(len(keys1))))
    mapped = (h21 @ h1.T).T
    mapped = mapped[:, :2] / mapped[:, 2:3]
    np.testing.assert_allclose(mapped, keys2, atol=1e-4)


def test_homography_score_beats_fundamental_on_plane_is_not_lower():
    _, _, _, keys1, keys2 = _scene(planar=True)
    init = Initializer(keys1, K, iterations=20)
    init.initialize(keys2, list(range(len(keys1))))
    score_h, _, _ = init.find_homography()
    score_f, _, _ = init.find_fundamental()
    assert score_h / (score_h + score_f) > 0.40


def test_reconstruct_h_rejects_identity_homography():
    _, _, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K, iterations=5)
    init.initialize(keys2, list(range(len(keys1))))
    assert init.reconstruct_h([True] * len(keys1), np.eye(3), 1.0, 50) is None


def test_reconstruct_returns_none_without_model():
    _, _, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K, iterations=5)
    init.initialize(keys2, list(range(len(keys1))))
    assert init.reconstruct_f([True] * len(keys1), None) is None
    assert init.reconstruct_h([True] * len(keys1), None) is None


def test_reconstruct_f_requires_enough_triangulated_points():
    _, _, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K, iterations=20)
    init.initialize(keys2, list(range(len(keys1))))
    _, inliers, f21 = init.find_fundamental()
    assert init.reconstruct_f(inliers, f21, 1.0, 50) is not None
    assert init.reconstruct_f(inliers, f21, 1.0, 1000) is None


def test_unmatched_keypoints_are_skipped():
    points, rotation, _, keys1, keys2 = _scene()
    matches = list(range(len(keys1)))
    matches[0] = -1
    matches[5] = -1
    init = Initializer(keys1, K, iterations=30)
    rec = init.initialize(keys2, matches)
    assert init.matched1[0] is False and init.matched1[5] is False
    assert len(init.matches) == len(keys1) - 2
    assert rec is not None
    assert rec.triangulated[0] is False
    np.testing.assert_allclose(rec.rotation, rotation, atol=1e-3)


def test_too_few_matches_raises():
    _, _, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K)
    matches = [i if i < 7 else -1 for i in range(len(keys1))]
    with pytest.raises(ValueError):
        init.initialize(keys2, matches)


def test_out_of_range_match_raises():
    _, _, _, keys1, keys2 = _scene(n=20)
    init = Initializer(keys1, K)
    matches = list(range(20))
    matches[3] = 99
    with pytest.raises(ValueError):
        init.initialize(keys2, matches)


def test_find_before_initialize_raises():
    _, _, _, keys1, _ = _scene(n=20)
    init = Initializer(keys1, K)
    with pytest.raises(RuntimeError):
        init.find_homography()
    with pytest.raises(RuntimeError):
        init.find_fundamental()


def test_sample_sets_are_distinct_indices():
    _, _, _, keys1, keys2 = _scene(n=30)
    init = Initializer(keys1, K, iterations=10)
    init.initialize(keys2, list(range(30)))
    assert len(init.sets) == 10
    for sample in init.sets:
        assert len(set(sample)) == 8
        assert all(0 <= i < 30 for i in sample)