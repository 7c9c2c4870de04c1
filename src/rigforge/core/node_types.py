"""Node type table: maps type names to node classes."""

from typing import Callable

from rigforge.animation.anim_curve import AnimCurve
from rigforge.constants import (
    ANIM_CURVE_TYPE,
    DAG_POSE_TYPE,
    GROUP_ID_TYPE,
    GROUP_PARTS_TYPE,
    JOINT_TYPE,
    MESH_TYPE,
    SKIN_CLUSTER_TYPE,
    TRANSFORM_TYPE,
)
from rigforge.core.scene_graph import DependencyNode, JointNode, MeshNode, SceneNode
from rigforge.deform.skin_cluster import GroupId, GroupParts, SkinCluster


class DagPose(DependencyNode):
    """Record of a set of DAG nodes and their matrices at a reference pose.

    ``members[i]`` takes a member's ``message``; ``parents[i]`` takes the
    parent's ``members`` entry, or ``world`` for a root member.
    """

    node_type = DAG_POSE_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset({
        "members", "worldMatrix", "xformMatrix", "parents", "world", "bindPose",
    })
    ARRAY_ATTRIBUTES = frozenset({"members", "worldMatrix", "xformMatrix", "parents"})

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.values["bindPose"] = False

    @property
    def is_bind_pose(self) -> bool:
        return bool(self.values.get("bindPose", False))


NODE_FACTORIES: dict[str, Callable[[str], DependencyNode]] = {
    TRANSFORM_TYPE: SceneNode,
    JOINT_TYPE: JointNode,
    MESH_TYPE: MeshNode,
    DAG_POSE_TYPE: DagPose,
    SKIN_CLUSTER_TYPE: SkinCluster,
    GROUP_ID_TYPE: GroupId,
    GROUP_PARTS_TYPE: GroupParts,
    ANIM_CURVE_TYPE: AnimCurve,
}


def create_node(node_type: str, name: str = "") -> DependencyNode:
    """Instantiate a detached node of ``node_type``."""
    try:
        factory = NODE_FACTORIES[node_type]
    except KeyError:
        raise ValueError(f"Unknown node type: {node_type!r}") from None
    return factory(name or node_type)
