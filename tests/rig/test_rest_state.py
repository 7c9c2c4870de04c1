"""Tests for joint rest states and display radii."""

import numpy as np
import pytest

from rigforge.core.errors import RestStateError
from rigforge.core.math_utils import mat4_translation
from rigforge.rig.joint_hierarchy import create_joint_nodes, create_skeleton_container
from rigforge.rig.rest_state import apply_rest_states, compute_joint_radii


def test_radius_is_tenth_of_average_child_distance():
    # root with two children at distances 2 and 4; each child is a leaf
    rest = np.stack([mat4_translation(0, 0, 0), mat4_translation(2, 0, 0),
                     mat4_translation(0, 4, 0)])
    radii = compute_joint_radii([-1, 0, 0], rest)
    assert radii[0] == pytest.approx(0.3)
    assert radii[1] == pytest.approx(0.3)
    assert radii[2] == pytest.approx(0.3)


def test_chain_radii(chain_skel):
    rest = chain_skel.compute_joint_skel_transforms(at_rest=True)
    radii = compute_joint_radii([-1, 0, 1], rest)
    np.testing.assert_array_almost_equal(radii, [0.2, 0.3, 0.3])


def test_lone_root_gets_default_radius():
    assert compute_joint_radii([-1], np.eye(4)[np.newaxis]).tolist() == [1.0]


def test_apply_rest_states(scene, chain_skel):
    container = create_skeleton_container(chain_skel, scene)
    nodes = create_joint_nodes(chain_skel, scene, container)
    rest = apply_rest_states(chain_skel, nodes)
    np.testing.assert_array_almost_equal(nodes[2].get_value("bindPose"), rest[2])
    np.testing.assert_array_almost_equal(rest[2][:3, 3], [0, 5, 0])
    assert all(n.get_value("segmentScaleCompensate") is False for n in nodes)
    assert nodes[0].get_value("radius") == pytest.approx(0.2)
    assert nodes[2].get_value("radius") == pytest.approx(0.3)


def test_joint_count_mismatch(scene, chain_skel):
    with pytest.raises(RestStateError):
        apply_rest_states(chain_skel, [None, None])
