"""Tests for joint topology."""

from rigforge.skel.topology import Topology


def test_children_and_roots():
    topo = Topology([-1, 0, 0, 1, -1])
    assert topo.children(0) == [1, 2]
    assert topo.children(3) == []
    assert topo.roots() == [0, 4]
    assert topo.is_root(4)
    assert topo.get_parent(3) == 1


def test_validate_accepts_ancestors_first():
    ok, reason = Topology([-1, 0, 1, 0]).validate()
    assert ok
    assert reason == ""


def test_validate_rejects_parent_after_child():
    ok, reason = Topology([1, -1]).validate()
    assert not ok
    assert "joint 0" in reason


def test_validate_rejects_self_parent():
    ok, _ = Topology([-1, 1]).validate()
    assert not ok


def test_from_paths():
    topo = Topology.from_paths(["hips", "hips/spine", "hips/spine/head", "hips/leg", "prop"])
    assert topo.parents.tolist() == [-1, 0, 1, 0, -1]


def test_from_paths_skips_missing_ancestors():
    topo = Topology.from_paths(["a", "", "a/b/c"])
    assert topo.parents.tolist() == [-1, -1, -1]
