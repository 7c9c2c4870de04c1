"""Tests for batched, all-or-nothing graph edits."""

import numpy as np
import pytest

from rigforge.core.errors import GraphWireError
from rigforge.core.graph_edit import GraphEdit
from rigforge.core.scene_graph import Scene, SceneNode
from rigforge.deform.skin_cluster import SkinCluster
from conftest import add_mesh


def test_nothing_applied_before_commit():
    scene = Scene()
    edit = GraphEdit(scene)
    node = edit.create_node("transform", "a")
    assert node.scene is None
    assert len(edit) == 1
    result = edit.commit()
    assert result.ok
    assert node.scene is scene
    assert result.created == [node]


def test_failed_commit_rolls_everything_back():
    scene = Scene()
    a = scene.add_node(SceneNode("a"))
    b = scene.add_node(SceneNode("b"))
    scene.connect(a.plug("translateX"), b.plug("translateX"))

    edit = GraphEdit(scene)
    c = edit.create_node("transform", "c")
    edit.set_value(a, "translateY", 4.0)
    edit.clear_incoming(b.plug("translateX"))
    edit.rename_node(a, "renamed")
    edit.connect(c.plug("translateX"), b.plug("translateZ"))
    edit.set_value(b, "bogus", 1)  # unknown attribute: fails
    result = edit.commit()

    assert not result.ok
    assert isinstance(result.error, KeyError)
    assert "bogus" in result.failed_op
    assert c.scene is None
    assert c not in scene.nodes
    assert a.name == "a"
    assert scene.unique_name("a") == "a1"
    assert scene.unique_name("renamed") == "renamed"
    assert scene.unique_name("c") == "c"
    assert a.get_value("translateY") == 0.0
    assert scene.is_connected(a.plug("translateX"), b.plug("translateX"))
    assert scene.source_of(b.plug("translateZ")) is None


def test_commit_or_raise():
    scene = Scene()
    edit = GraphEdit(scene)
    edit.connect(SceneNode("loose").plug("message"), SceneNode("other").plug("message"))
    with pytest.raises(GraphWireError):
        edit.commit_or_raise()


def test_commit_only_once():
    edit = GraphEdit(Scene())
    edit.commit()
    with pytest.raises(RuntimeError):
        edit.commit()
    with pytest.raises(RuntimeError):
        edit.create_node("transform")


def test_forced_connect_restores_previous_source_on_rollback():
    scene = Scene()
    a = scene.add_node(SceneNode("a"))
    b = scene.add_node(SceneNode("b"))
    c = scene.add_node(SceneNode("c"))
    scene.connect(a.plug("translateX"), c.plug("translateX"))

    edit = GraphEdit(scene)
    edit.connect(b.plug("translateX"), c.plug("translateX"), force=True)
    edit.resize_array(c, "bogus", 2)
    assert not edit.commit().ok
    assert scene.source_of(c.plug("translateX")) == a.plug("translateX")


def test_duplicate_mesh_copies_geometry():
    scene = Scene()
    transform, shape = add_mesh(scene)
    edit = GraphEdit(scene)
    copy = edit.duplicate_mesh(shape, "BodyShape_rest")
    edit.commit_or_raise()
    assert copy.parent is transform
    np.testing.assert_array_equal(copy.mesh.positions, shape.mesh.positions)
    copy.mesh.positions = np.zeros(12)
    assert shape.mesh.positions.any()


def test_set_weights_is_single_operation_and_undoable():
    scene = Scene()
    cluster = scene.add_node(SkinCluster("skinCluster"))
    edit = GraphEdit(scene)
    edit.resize_array(cluster, "matrix", 2)
    edit.set_weights(cluster, [[1.0, 0.0], [0.2, 0.2]], normalize=False)
    edit.set_value(cluster, "bogus", 0)
    assert len(edit) == 3
    assert not edit.commit().ok
    assert cluster.weights is None
    assert cluster.num_influences == 0
