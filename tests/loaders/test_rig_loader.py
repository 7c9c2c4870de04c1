"""Tests for rig description loading."""

import json

import numpy as np
import pytest

from rigforge.core.errors import RigFormatError
from rigforge.core.math_utils import mat4_translation
from rigforge.core.options import ImportOptions
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import MeshNode, Scene
from rigforge.loaders.rig_loader import load_rig, parse_rig, parse_xform, populate_scene


def _rig_data(**mesh_overrides):
    mesh = {
        "path": "/Root/Body",
        "points": [[0, 0, 0], [1, 0, 0], [0, 3, 0]],
        "faces": [[0, 1, 2]],
        "joint_indices": [0, 1, 1],
        "joint_weights": [1.0, 1.0, 1.0],
        "influences_per_point": 1,
    }
    mesh.update(mesh_overrides)
    return {
        "skeleton": {
            "path": "/Root/Skel",
            "joints": ["hips", "hips/spine", "hips/spine/head"],
            "rest_transforms": [
                {"translate": [0, 1, 0]},
                {"translate": [0, 2, 0]},
                {"translate": [0, 1, 0], "rotate": [0, 0, 0.5]},
            ],
        },
        "meshes": [mesh],
    }


def test_parse_xform_forms():
    expected = mat4_translation(1, 2, 3)
    np.testing.assert_array_equal(parse_xform(expected.reshape(-1).tolist(), "x"), expected)
    np.testing.assert_array_equal(parse_xform(expected.tolist(), "x"), expected)
    np.testing.assert_array_almost_equal(parse_xform({"translate": [1, 2, 3]}, "x"), expected)


def test_parse_xform_rejects_garbage():
    with pytest.raises(RigFormatError):
        parse_xform([1, 2, 3], "x")
    with pytest.raises(RigFormatError, match="unknown transform keys"):
        parse_xform({"shear": [0, 0, 0]}, "x")


def test_parents_derived_from_paths():
    rig = parse_rig(_rig_data())
    np.testing.assert_array_equal(rig.skeleton.topology.parents, [-1, 0, 1])
    assert rig.skeleton.get_anim_query() is None
    assert rig.meshes[0].name == "Body"
    assert rig.meshes[0].geometry.triangle_count == 1


def test_animation_parsed():
    data = _rig_data()
    identity = np.eye(4).tolist()
    data["skeleton"]["animation"] = {
        "times": [1, 2],
        "joint_transforms": [[identity] * 3, [identity] * 3],
        "root_transforms": [identity, {"translate": [1, 0, 0]}],
    }
    skel = parse_rig(data).skeleton
    assert skel.get_anim_query().get_joint_transform_time_samples() == [1.0, 2.0]
    np.testing.assert_array_almost_equal(skel.compute_anim_transform(2.0)[:3, 3], [1, 0, 0])


def test_animation_frame_count_mismatch():
    data = _rig_data()
    data["skeleton"]["animation"] = {"times": [1, 2], "joint_transforms": [[]]}
    with pytest.raises(RigFormatError, match="frames"):
        parse_rig(data)


def test_missing_key_reported():
    data = _rig_data()
    del data["meshes"][0]["joint_weights"]
    with pytest.raises(RigFormatError, match="joint_weights"):
        parse_rig(data)


def test_invalid_skinning_reported():
    with pytest.raises(RigFormatError):
        parse_rig(_rig_data(joint_weights=[1.0]))


def test_load_rig_resolves_obj_next_to_file(tmp_path):
    (tmp_path / "body.obj").write_text("v 0 0 0\nv 1 0 0\nv 0 3 0\nf 1 2 3\n")
    data = _rig_data(obj="body.obj")
    del data["meshes"][0]["points"]
    del data["meshes"][0]["faces"]
    path = tmp_path / "char.rig.json"
    path.write_text(json.dumps(data))
    rig = load_rig(path)
    assert rig.meshes[0].geometry.vertex_count == 3


def test_load_rig_bad_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(RigFormatError):
        load_rig(path)


def test_populate_scene_registers_paths():
    data = _rig_data(transform={"translate": [0, 0, 5]})
    rig = parse_rig(data)
    scene = Scene()
    registry = NodeRegistry()
    shapes = populate_scene(rig, scene, registry=registry)

    shape = shapes["/Root/Body"]
    assert isinstance(shape, MeshNode)
    assert shape.name == "BodyShape"
    assert scene.node_at("/Root/Body") is shape.parent
    assert shape.parent.get_value("translateZ") == pytest.approx(5.0)
    assert len(registry) == 2
    # The scene owns a copy of the parsed geometry.
    assert shape.mesh.geometry is not rig.meshes[0].geometry


def test_populate_scene_skips_excluded():
    rig = parse_rig(_rig_data())
    scene = Scene()
    shapes = populate_scene(rig, scene, ImportOptions(excluded_prims=["/Root/Body"]))
    assert shapes == {}
    assert scene.node_at("/Root/Body") is None
