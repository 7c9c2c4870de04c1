"""Tests for the linear blend skinning deformer."""

import numpy as np
import pytest

from rigforge.core.math_utils import mat4_identity, mat4_rotation_z, mat4_translation
from rigforge.deform.skin_cluster import SkinCluster


def _cluster(num_joints, weights, normalize=False):
    cluster = SkinCluster("skinCluster")
    cluster.set_array_size("matrix", num_joints)
    cluster.set_weights(weights, normalize=normalize)
    return cluster


def test_identity_bind_leaves_points_in_place():
    cluster = _cluster(1, [[1.0], [1.0]])
    cluster.set_value("bindPreMatrix[0]", mat4_identity())
    pts = np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 1.0]])
    out = cluster.deform(pts, [mat4_identity()])
    np.testing.assert_array_almost_equal(out, pts)


def test_blend_of_two_joints():
    cluster = _cluster(2, [[0.5, 0.5]])
    cluster.set_value("bindPreMatrix[0]", mat4_identity())
    cluster.set_value("bindPreMatrix[1]", mat4_identity())
    out = cluster.deform(np.zeros((1, 3)),
                         [mat4_translation(2, 0, 0), mat4_translation(0, 4, 0)])
    np.testing.assert_array_almost_equal(out, [[1.0, 2.0, 0.0]])


def test_bind_pre_matrix_removes_rest_offset():
    rest = mat4_translation(0, 2, 0)
    cluster = _cluster(1, [[1.0]])
    cluster.set_value("bindPreMatrix[0]", np.linalg.inv(rest))
    posed = rest @ mat4_rotation_z(np.pi / 2)
    out = cluster.deform(np.array([[1.0, 2.0, 0.0]]), [posed])
    np.testing.assert_array_almost_equal(out, [[0.0, 3.0, 0.0]])


def test_geom_matrix_applied_first():
    cluster = _cluster(1, [[1.0]])
    cluster.set_value("bindPreMatrix[0]", mat4_identity())
    cluster.set_value("geomMatrix", mat4_translation(0, 0, 5))
    out = cluster.deform(np.zeros((1, 3)), [mat4_identity()])
    np.testing.assert_array_almost_equal(out, [[0.0, 0.0, 5.0]])


def test_unconnected_influence_uses_geom_matrix_only():
    cluster = _cluster(2, [[0.5, 0.5]])
    cluster.set_value("bindPreMatrix[0]", mat4_identity())
    out = cluster.deform(np.zeros((1, 3)), [mat4_translation(2, 0, 0), None])
    np.testing.assert_array_almost_equal(out, [[1.0, 0.0, 0.0]])


def test_weights_stored_unnormalized_unless_requested():
    raw = [[0.2, 0.2]]
    assert _cluster(2, raw).weights.sum() == pytest.approx(0.4)
    normalized = _cluster(2, raw, normalize=True)
    assert normalized.normalize_weights
    assert normalized.weights.sum() == pytest.approx(1.0)


def test_weight_validation():
    cluster = SkinCluster("skinCluster")
    cluster.set_array_size("matrix", 2)
    with pytest.raises(ValueError):
        cluster.set_weights([1.0, 0.0])
    with pytest.raises(ValueError):
        cluster.set_weights([[1.0, 0.0, 0.0]])
    with pytest.raises(ValueError):
        cluster.set_weights([[np.nan, 0.0]])
    with pytest.raises(ValueError):
        cluster.deform(np.zeros((1, 3)), [None, None])


def test_deform_shape_mismatch():
    cluster = _cluster(2, [[1.0, 0.0]])
    with pytest.raises(ValueError):
        cluster.deform(np.zeros((2, 3)), [None, None])
