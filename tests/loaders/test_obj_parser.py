"""Tests for the OBJ parser."""

import numpy as np
import pytest

from rigforge.loaders.obj_parser import load_obj_file, parse_obj


QUAD_OBJ = """\
# unit quad
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vn 0 0 1
f 1//1 2//1 3//1 4//1
"""


def test_quad_is_fan_triangulated():
    geom = parse_obj(QUAD_OBJ)
    assert geom.vertex_count == 4
    assert geom.triangle_count == 2
    np.testing.assert_array_equal(geom.indices, [0, 1, 2, 0, 2, 3])
    np.testing.assert_array_almost_equal(geom.points[2], [1, 1, 0])


def test_normals_computed_from_faces():
    geom = parse_obj(QUAD_OBJ)
    np.testing.assert_array_almost_equal(geom.normals.reshape(-1, 3),
                                         np.tile([0, 0, 1], (4, 1)))


def test_negative_indices_count_from_end():
    geom = parse_obj("v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n")
    np.testing.assert_array_equal(geom.indices, [0, 1, 2])


def test_point_only_file():
    geom = parse_obj("v 0 0 0\nv 1 2 3\n")
    assert geom.vertex_count == 2
    assert not geom.has_indices


def test_bad_face_index():
    with pytest.raises(ValueError):
        parse_obj("v 0 0 0\nf 1 2 3\n")


def test_short_vertex_line():
    with pytest.raises(ValueError, match="line 1"):
        parse_obj("v 0 0\n")


def test_load_from_disk(tmp_path):
    path = tmp_path / "quad.obj"
    path.write_text(QUAD_OBJ)
    assert load_obj_file(path).vertex_count == 4
