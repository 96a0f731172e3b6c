import math

import numpy as np
import pytest

from orbslam_geometry.converter import (
    SE3Quat,
    Sim3,
    to_descriptor_vector,
    to_matrix,
    to_matrix3d,
    to_quaternion,
    to_se3,
    to_se3_quat,
    to_vector3d,
)


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _rot_x(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def test_descriptor_vector_rows():
    desc = np.arange(12, dtype=np.uint8).reshape(3, 4)
    rows = to_descriptor_vector(desc)
    assert len(rows) == 3
    for i, row in enumerate(rows):
        np.testing.assert_array_equal(row, desc[i])


def test_identity_quaternion():
    assert to_quaternion(np.eye(3, dtype=np.float32)) == [0.0, 0.0, 0.0, 1.0]


def test_quaternion_of_z_rotation():
    q = to_quaternion(_rot_z(math.pi / 2).astype(np.float32))
    half = math.sqrt(0.5)
    assert q == pytest.approx([0.0, 0.0, half, half], abs=1e-6)


@pytest.mark.parametrize("angle", [0.3, 1.5, 3.0, -2.5])
def test_quaternion_round_trip(angle):
    rotation = _rot_x(angle) @ _rot_z(angle / 2)
    q = to_quaternion(rotation.astype(np.float32))
    assert sum(c * c for c in q) == pytest.approx(1.0, abs=1e-5)
    np.testing.assert_allclose(SE3Quat(np.array(q)).rotation_matrix, rotation, atol=1e-5)


def test_se3_quat_round_trip():
    transform = np.eye(4, dtype=np.float32)
    transform[:3, :3] = _rot_x(0.7) @ _rot_z(-0.4)
    transform[:3, 3] = [1.0, -2.0, 0.5]
    se3 = to_se3_quat(transform)
    np.testing.assert_allclose(to_matrix(se3), transform, atol=1e-6)
    assert to_matrix(se3).dtype == np.float32


def test_homogeneous_matrix_last_row():
    se3 = SE3Quat(_rot_z(0.2), [3.0, 4.0, 5.0])
    m = se3.to_homogeneous_matrix()
    np.testing.assert_array_equal(m[3], [0.0, 0.0, 0.0, 1.0])
    np.testing.assert_allclose(m[:3, 3], [3.0, 4.0, 5.0])


def test_sim3_scales_rotation_block():
    rotation = _rot_z(0.5)
    sim = Sim3(rotation, [1.0, 2.0, 3.0], 2.0)
    m = to_matrix(sim)
    np.testing.assert_allclose(m[:3, :3], 2.0 * rotation, atol=1e-6)
    np.testing.assert_allclose(m[:3, 3], [1.0, 2.0, 3.0])
    np.testing.assert_array_equal(m[3], [0.0, 0.0, 0.0, 1.0])


def test_to_se3_layout():
    rotation = _rot_x(0.1)
    m = to_se3(rotation, np.array([[7.0], [8.0], [9.0]]))
    assert m.shape == (4, 4)
    np.testing.assert_allclose(m[:3, :3], rotation, atol=1e-7)
    np.testing.assert_allclose(m[:3, 3], [7.0, 8.0, 9.0])


def test_to_matrix_vector_becomes_column():
    m = to_matrix(np.array([1.0, 2.0, 3.0]))
    assert m.shape == (3, 1)
    assert m.dtype == np.float32
    np.testing.assert_array_equal(m.ravel(), [1.0, 2.0, 3.0])


def test_to_matrix_rejects_bad_shape():
    with pytest.raises(ValueError):
        to_matrix(np.zeros((2, 5)))


def test_to_vector3d_from_array_and_point():
    class Point:
        x, y, z = 1.5, -2.0, 4.0

    np.testing.assert_array_equal(to_vector3d(Point()), [1.5, -2.0, 4.0])
    np.testing.assert_array_equal(to_vector3d(np.array([[1.5], [-2.0], [4.0]])), [1.5, -2.0, 4.0])


def test_to_matrix3d_takes_top_left_block():
    m = np.arange(16, dtype=np.float32).reshape(4, 4)
    out = to_matrix3d(m)
    assert out.dtype == np.float64
    np.testing.assert_array_equal(out, m[:3, :3])


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        SE3Quat(np.zeros(4))