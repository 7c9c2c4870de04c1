"""Joint connection graph keyed by joint index.

Built once the full joint-node array exists.  One joint feeds several
consumers (its ``message`` and ``bindPose`` into the bind-pose record,
its ``worldMatrix[0]`` into every skin cluster), so the plug pairs are
derived here from the joint parent relation instead of being wired
incrementally while joints are still being created.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np

from rigforge.core.scene_graph import DependencyNode, JointNode, Plug


@dataclass(frozen=True)
class JointLink:
    """One existing joint node and its parent index (-1 for a root)."""
    index: int
    node: JointNode
    parent: int

    @property
    def is_root(self) -> bool:
        return self.parent < 0


class JointWiring:
    """Adjacency of joint nodes; placeholder (``None``) entries keep their slot."""

    def __init__(self, joint_nodes: Sequence[Optional[JointNode]], parents: Sequence[int]):
        parents = np.asarray(parents, dtype=np.int64).reshape(-1)
        if len(parents) != len(joint_nodes):
            raise ValueError(
                f"{len(joint_nodes)} joint nodes but {len(parents)} parent entries")
        self.joint_nodes = list(joint_nodes)
        self.num_joints = len(self.joint_nodes)
        self.links: list[JointLink] = []
        self._children: dict[int, list[int]] = {}
        for i, node in enumerate(self.joint_nodes):
            p = int(parents[i])
            if p >= self.num_joints:
                p = -1
            if node is not None:
                self.links.append(JointLink(i, node, p))
            if p >= 0:
                self._children.setdefault(p, []).append(i)

    def __iter__(self) -> Iterator[JointLink]:
        return iter(self.links)

    def __len__(self) -> int:
        return self.num_joints

    def children_of(self, index: int) -> list[int]:
        return list(self._children.get(index, []))

    def bind_pose_connections(self, dag_pose: DependencyNode) -> list[tuple[Plug, Plug]]:
        """``(src, dst)`` pairs wiring every joint into a dagPose record."""
        pairs = []
        for link in self.links:
            i = link.index
            pairs.append((link.node.plug("message"), dag_pose.plug("members", i)))
            pairs.append((link.node.plug("bindPose"), dag_pose.plug("worldMatrix", i)))
            if link.is_root:
                parent_src = dag_pose.plug("world")
            else:
                parent_src = dag_pose.plug("members", link.parent)
            pairs.append((parent_src, dag_pose.plug("parents", i)))
        return pairs

    def skin_cluster_connections(self, skin_cluster: DependencyNode) -> list[tuple[Plug, Plug]]:
        """``joint.worldMatrix[0] -> skinCluster.matrix[i]`` for every joint."""
        return [(link.node.plug("worldMatrix", 0), skin_cluster.plug("matrix", link.index))
                for link in self.links]
