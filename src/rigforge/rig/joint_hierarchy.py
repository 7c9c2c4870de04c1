"""Creation of the skeleton container and one joint node per joint."""

import logging
from typing import Optional

from rigforge.constants import SKELETON_CONTAINER_NAME
from rigforge.core.errors import MissingParentError
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode, Scene, SceneNode
from rigforge.skel.skeleton_query import SkeletonQuery

logger = logging.getLogger(__name__)


def container_path(skel_query: SkeletonQuery) -> str:
    """Identity path of the transform that parents every joint."""
    return f"{skel_query.prim_path.rstrip('/')}/{SKELETON_CONTAINER_NAME}"


def create_skeleton_container(
    skel_query: SkeletonQuery,
    scene: Scene,
    parent: Optional[SceneNode] = None,
    registry: Optional[NodeRegistry] = None,
) -> SceneNode:
    """Create the plain transform that holds the joints and the root animation."""
    container = scene.add_node(SceneNode(SKELETON_CONTAINER_NAME), parent)
    scene.register_path(container_path(skel_query), container)
    if registry is not None:
        registry.register(container)
    return container


def create_joint_nodes(
    skel_query: SkeletonQuery,
    scene: Scene,
    container: SceneNode,
    registry: Optional[NodeRegistry] = None,
) -> list[Optional[JointNode]]:
    """Create one joint node per non-empty joint path, in joint order.

    Returns a list aligned with the joint order; joints with an empty path
    get ``None``.  Raises :class:`MissingParentError` when a joint's parent
    node does not exist yet, i.e. ancestors do not precede descendants.
    """
    joint_order = skel_query.joint_order
    parents = skel_query.topology.parents
    base_path = container_path(skel_query)
    nodes: list[Optional[JointNode]] = [None] * len(joint_order)

    for i, joint_path in enumerate(joint_order):
        if not joint_path:
            continue

        p = int(parents[i])
        if p < 0:
            parent_node: Optional[SceneNode] = container
        elif p >= i:
            raise MissingParentError(
                f"Joint {joint_path!r} (index {i}) has parent index {p}, "
                f"which does not precede it")
        else:
            parent_node = nodes[p]
        if parent_node is None:
            raise MissingParentError(
                f"Could not find parent node for joint {joint_path!r} (parent index {p})")

        name = joint_path.rstrip("/").rpartition("/")[2]
        node = scene.add_node(JointNode(name), parent_node)
        scene.register_path(f"{base_path}/{joint_path}", node)
        if registry is not None:
            registry.register(node)
        nodes[i] = node

    logger.info("Created %d joints under %s",
                sum(n is not None for n in nodes), container.dag_path)
    return nodes
