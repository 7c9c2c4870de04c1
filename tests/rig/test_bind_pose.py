"""Tests for the bind-pose record."""

import numpy as np
import pytest

from rigforge.core.errors import GraphWireError
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode
from rigforge.rig.bind_pose import create_bind_pose
from rigforge.rig.joint_hierarchy import create_joint_nodes, create_skeleton_container
from rigforge.rig.rest_state import apply_rest_states


def _joints(scene, skel):
    container = create_skeleton_container(skel, scene)
    nodes = create_joint_nodes(skel, scene, container)
    apply_rest_states(skel, nodes)
    return nodes


def test_three_joint_chain(scene, chain_skel):
    root, mid, tip = _joints(scene, chain_skel)
    registry = NodeRegistry()
    pose = create_bind_pose(chain_skel, [root, mid, tip], scene, registry)

    assert pose.name == "bindPose"
    assert pose.is_bind_pose
    assert pose in registry
    for attr in ("members", "worldMatrix", "xformMatrix", "parents"):
        assert pose.array_size(attr) == 3

    for i, joint in enumerate((root, mid, tip)):
        assert scene.source_of(pose.plug("members", i)) == joint.plug("message")
        assert scene.source_of(pose.plug("worldMatrix", i)) == joint.plug("bindPose")

    assert scene.source_of(pose.plug("parents", 0)) == pose.plug("world")
    assert scene.source_of(pose.plug("parents", 1)) == pose.plug("members", 0)
    assert scene.source_of(pose.plug("parents", 2)) == pose.plug("members", 1)


def test_xform_matrix_holds_local_rest(scene, chain_skel):
    nodes = _joints(scene, chain_skel)
    pose = create_bind_pose(chain_skel, nodes, scene)
    local = chain_skel.compute_joint_local_transforms(at_rest=True)
    for i in range(3):
        np.testing.assert_array_almost_equal(pose.get_value(f"xformMatrix[{i}]"), local[i])


def test_second_record_gets_unique_name(scene, chain_skel):
    nodes = _joints(scene, chain_skel)
    first = create_bind_pose(chain_skel, nodes, scene)
    second = create_bind_pose(chain_skel, nodes, scene)
    assert first.name != second.name


def test_failed_wiring_commits_nothing(scene, chain_skel):
    loose = [JointNode("a"), JointNode("b"), JointNode("c")]
    with pytest.raises(GraphWireError):
        create_bind_pose(chain_skel, loose, scene)
    assert scene.nodes_of_type("dagPose") == []


def test_joint_count_mismatch(scene, chain_skel):
    nodes = _joints(scene, chain_skel)
    with pytest.raises(GraphWireError):
        create_bind_pose(chain_skel, nodes[:2], scene)
