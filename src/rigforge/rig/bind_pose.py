"""The dagPose node recording the skeleton's bind pose."""

import logging
from typing import Optional, Sequence

from rigforge.constants import BIND_POSE_NAME, DAG_POSE_TYPE
from rigforge.core.errors import GraphWireError
from rigforge.core.graph_edit import GraphEdit
from rigforge.core.node_types import DagPose
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode, Scene
from rigforge.rig.wiring import JointWiring
from rigforge.skel.skeleton_query import SkeletonQuery

logger = logging.getLogger(__name__)

_ARRAY_ATTRS = ("members", "worldMatrix", "xformMatrix", "parents")


def create_bind_pose(
    skel_query: SkeletonQuery,
    joint_nodes: Sequence[Optional[JointNode]],
    scene: Scene,
    registry: Optional[NodeRegistry] = None,
    wiring: Optional[JointWiring] = None,
) -> DagPose:
    """Build and wire the bind-pose record as a single batched edit.

    For joint i: ``message -> members[i]``, ``bindPose -> worldMatrix[i]``,
    ``members[parent] -> parents[i]`` (``world`` for a root) and
    ``xformMatrix[i]`` = local rest transform.  Raises
    :class:`GraphWireError` with nothing committed if any step fails.
    """
    try:
        if wiring is None:
            wiring = JointWiring(joint_nodes, skel_query.topology.parents)
        local_rest = skel_query.compute_joint_local_transforms(at_rest=True)
    except ValueError as exc:
        raise GraphWireError(f"{skel_query.prim_path}: {exc}") from exc
    if len(local_rest) != len(joint_nodes):
        raise GraphWireError(
            f"{skel_query.prim_path}: {len(local_rest)} rest transforms "
            f"for {len(joint_nodes)} joints")

    edit = GraphEdit(scene)
    dag_pose = edit.create_node(DAG_POSE_TYPE)
    edit.rename_node(dag_pose, BIND_POSE_NAME)
    for attr in _ARRAY_ATTRS:
        edit.resize_array(dag_pose, attr, len(joint_nodes))
    for src, dst in wiring.bind_pose_connections(dag_pose):
        edit.connect(src, dst)
    for link in wiring:
        edit.set_matrix(dag_pose, f"xformMatrix[{link.index}]", local_rest[link.index])
    edit.commit_or_raise()

    dag_pose.set_value("bindPose", True)
    if registry is not None:
        registry.register(dag_pose)
    logger.info("Created bind pose %s with %d members", dag_pose.name, len(joint_nodes))
    return dag_pose
