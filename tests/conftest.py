"""Shared rig builders for the test suite."""

import numpy as np
import pytest

from rigforge.core.math_utils import mat4_compose_euler, mat4_translation, vec3
from rigforge.core.mesh import BufferGeometry, MeshInstance
from rigforge.core.scene_graph import MeshNode, Scene, SceneNode
from rigforge.skel.skeleton_query import AnimQuery, SkeletonQuery
from rigforge.skel.skinning_query import SkinningQuery


def chain_rest():
    """root at origin, mid 2 up, tip 3 further up (parent-relative)."""
    return np.stack([
        mat4_translation(0, 0, 0),
        mat4_translation(0, 2, 0),
        mat4_translation(0, 3, 0),
    ])


def make_chain_skel(anim=None, prim_path="/Root/Skel"):
    return SkeletonQuery(prim_path, ["root", "root/mid", "root/mid/tip"],
                         [-1, 0, 1], chain_rest(), anim)


def make_chain_anim():
    """Three samples bending ``mid`` about Z, with a root transform moving in X."""
    times = [1.0, 2.0, 3.0]
    frames = []
    for k, angle in enumerate((0.0, 0.5, 1.0)):
        local = chain_rest()
        local[1] = mat4_compose_euler(vec3(0, 2, 0), vec3(0, 0, angle), vec3(1, 1, 1))
        local[0] = mat4_translation(0, 0.5 * k, 0)
        frames.append(local)
    roots = np.stack([mat4_translation(float(k), 0, 0) for k in range(3)])
    return AnimQuery(times, np.stack(frames), roots)


def quad_points():
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 3.0, 0.0],
        [1.0, 3.0, 0.0],
    ])


def add_mesh(scene, prim_path="/Root/Body", points=None, parent=None):
    """Create the transform + mesh shape an upstream mesh import would."""
    points = quad_points() if points is None else np.asarray(points, dtype=np.float64)
    name = prim_path.rpartition("/")[2]
    transform = scene.add_node(SceneNode(name), parent)
    geom = BufferGeometry(positions=points.reshape(-1), vertex_count=len(points))
    shape = scene.add_node(MeshNode(f"{name}Shape", MeshInstance(f"{name}Shape", geom)),
                           transform)
    scene.register_path(prim_path, transform)
    return transform, shape


def make_quad_skinning(prim_path="/Root/Body", geom_bind=None):
    """4 points, 2 influences each; point 2 references joint 0 twice (0.3 + 0.2)."""
    indices = [0, 1,
               0, 1,
               0, 0,
               1, 2]
    weights = [1.0, 0.0,
               0.5, 0.5,
               0.3, 0.2,
               0.25, 0.75]
    return SkinningQuery(prim_path, indices, weights, 2, geom_bind_transform=geom_bind)


@pytest.fixture
def scene():
    return Scene()


@pytest.fixture
def chain_skel():
    return make_chain_skel()


@pytest.fixture
def animated_chain_skel():
    return make_chain_skel(make_chain_anim())
