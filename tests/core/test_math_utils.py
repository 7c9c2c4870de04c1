"""Tests for math_utils module."""

import numpy as np
import pytest

from rigforge.core.math_utils import (
    as_mat4,
    batch_concatenate,
    euler_from_mat3,
    is_invertible,
    mat4_compose,
    mat4_compose_euler,
    mat4_decompose,
    mat4_decompose_quat,
    mat4_from_euler,
    mat4_identity,
    mat4_inverse,
    mat4_rotation_x,
    mat4_rotation_z,
    mat4_scale,
    mat4_translation,
    quat_identity,
    quat_slerp,
    transform_point,
    transform_points,
    vec3,
)


def test_vec3():
    v = vec3(1, 2, 3)
    assert v.shape == (3,)
    np.testing.assert_array_equal(v, [1, 2, 3])


def test_mat4_translation():
    m = mat4_translation(1, 2, 3)
    np.testing.assert_array_almost_equal(transform_point(m, vec3()), [1, 2, 3])


def test_rotation_z_quarter_turn():
    m = mat4_rotation_z(np.pi / 2)
    np.testing.assert_array_almost_equal(transform_point(m, vec3(1, 0, 0)), [0, 1, 0])


def test_euler_order_is_x_then_y_then_z():
    rx, rz = 0.3, 0.7
    m = mat4_from_euler(rx, 0.0, rz)
    np.testing.assert_array_almost_equal(m, mat4_rotation_z(rz) @ mat4_rotation_x(rx))


def test_as_mat4_accepts_flat_row_major():
    m = as_mat4(list(range(16)))
    assert m[0, 3] == 3
    assert m[3, 0] == 12


def test_as_mat4_rejects_bad_shape():
    with pytest.raises(ValueError):
        as_mat4([1, 2, 3])


def test_compose_decompose_round_trip():
    t, r, s = vec3(1, 2, 3), vec3(0.3, -0.5, 1.1), vec3(2, 1, 0.5)
    parts = mat4_decompose(mat4_compose_euler(t, r, s))
    assert parts is not None
    np.testing.assert_array_almost_equal(parts[0], t)
    np.testing.assert_array_almost_equal(parts[1], r)
    np.testing.assert_array_almost_equal(parts[2], s)


def test_decompose_negative_scale():
    parts = mat4_decompose(mat4_scale(-1, 1, 1))
    assert parts is not None
    np.testing.assert_array_almost_equal(parts[1], [0, 0, 0])
    np.testing.assert_array_almost_equal(parts[2], [-1, 1, 1])


def test_decompose_gimbal_lock_reproduces_matrix():
    m = mat4_compose_euler(vec3(), vec3(0.4, np.pi / 2, 0.2), vec3(1, 1, 1))
    parts = mat4_decompose(m)
    assert parts is not None
    np.testing.assert_array_almost_equal(mat4_compose_euler(*parts), m)


def test_decompose_rejects_shear():
    m = mat4_identity()
    m[0, 1] = 0.5
    assert mat4_decompose(m) is None


def test_decompose_rejects_zero_scale():
    assert mat4_decompose(mat4_scale(1, 0, 1)) is None


def test_decompose_rejects_projective():
    m = mat4_identity()
    m[3, 2] = 1.0
    assert mat4_decompose(m) is None


def test_decompose_quat_round_trip():
    m = mat4_compose_euler(vec3(1, 0, 0), vec3(0.2, 0.1, -0.4), vec3(1, 2, 3))
    t, q, s = mat4_decompose_quat(m)
    np.testing.assert_array_almost_equal(mat4_compose(t, q, s), m)


def test_euler_from_identity():
    np.testing.assert_array_almost_equal(euler_from_mat3(np.eye(3)), [0, 0, 0])


def test_is_invertible():
    assert is_invertible(mat4_translation(1, 2, 3))
    assert not is_invertible(np.zeros((4, 4)))
    assert not is_invertible(mat4_scale(1, 0, 1))


def test_small_uniform_scale_is_invertible():
    m = mat4_scale(5e-5, 5e-5, 5e-5)
    assert is_invertible(m)
    assert not is_invertible(mat4_scale(1, 1e-20, 1))
    m[0, 0] = np.nan
    assert not is_invertible(m)


def test_inverse_round_trip():
    m = mat4_compose_euler(vec3(1, -2, 3), vec3(0.1, 0.2, 0.3), vec3(2, 2, 2))
    np.testing.assert_array_almost_equal(mat4_inverse(m) @ m, np.eye(4))


def test_transform_points_matches_transform_point():
    m = mat4_compose_euler(vec3(1, 2, 3), vec3(0.5, 0, 0), vec3(1, 1, 1))
    pts = np.array([[0, 0, 0], [1, 1, 1]], dtype=np.float64)
    out = transform_points(m, pts)
    for p, o in zip(pts, out):
        np.testing.assert_array_almost_equal(transform_point(m, p), o)


def test_slerp_endpoints():
    a = quat_identity()
    b = np.array([0, 0, np.sin(0.5), np.cos(0.5)])
    np.testing.assert_array_almost_equal(quat_slerp(a, b, 0.0), a)
    np.testing.assert_array_almost_equal(quat_slerp(a, b, 1.0), b)


def test_batch_concatenate_chain():
    local = np.stack([mat4_translation(1, 0, 0), mat4_translation(0, 2, 0),
                      mat4_translation(0, 0, 3)])
    skel = batch_concatenate(local, np.array([-1, 0, 1]))
    np.testing.assert_array_almost_equal(skel[2][:3, 3], [1, 2, 3])
    np.testing.assert_array_almost_equal(skel[0], local[0])
