"""Skin cluster deformer and the component-group nodes feeding it."""

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import GROUP_ID_TYPE, GROUP_PARTS_TYPE, SKIN_CLUSTER_TYPE
from rigforge.core.math_utils import Mat4, mat4_identity
from rigforge.core.scene_graph import DependencyNode
from rigforge.deform.weights import normalize_rows


class GroupId(DependencyNode):
    node_type = GROUP_ID_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset({"groupId"})


class GroupParts(DependencyNode):
    """Selects the components of ``inputGeometry`` a deformer acts on."""

    node_type = GROUP_PARTS_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset({
        "inputGeometry", "outputGeometry", "groupId", "inputComponents",
    })


class SkinCluster(DependencyNode):
    """Linear blend skinning deformer.

    For every point ``p`` of the rest geometry::

        world(p) = sum_j w[p, j] * (matrix[j] @ bindPreMatrix[j] @ geomMatrix) @ p

    ``matrix[j]`` is joint j's world matrix (connected from the joint),
    ``bindPreMatrix[j]`` the inverse of its bind transform.
    """

    node_type = SKIN_CLUSTER_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset({
        "input", "outputGeometry", "matrix", "bindPreMatrix",
        "geomMatrix", "bindPose", "weightList",
    })
    ARRAY_ATTRIBUTES = frozenset({"input", "outputGeometry", "matrix", "bindPreMatrix", "weightList"})

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.weights: Optional[NDArray[np.float64]] = None
        self.normalize_weights: bool = False

    @property
    def num_influences(self) -> int:
        return self.array_size("matrix")

    @property
    def geom_matrix(self) -> Mat4:
        m = self.values.get("geomMatrix")
        return m if m is not None else mat4_identity()

    def bind_pre_matrix(self, index: int) -> Optional[Mat4]:
        return self.values.get(f"bindPreMatrix[{index}]")

    def set_weights(self, weights, normalize: bool = False) -> None:
        """Replace the whole ``[points, influences]`` weight matrix."""
        weights = np.array(weights, dtype=np.float64)
        if weights.ndim != 2:
            raise ValueError(f"{self.name}: weights must be 2-D, got shape {weights.shape}")
        if self.num_influences and weights.shape[1] != self.num_influences:
            raise ValueError(
                f"{self.name}: {weights.shape[1]} weight columns for "
                f"{self.num_influences} influences")
        if not np.all(np.isfinite(weights)):
            raise ValueError(f"{self.name}: weights must be finite")
        if normalize:
            weights = normalize_rows(weights)
        self.weights = weights
        self.normalize_weights = normalize

    def skinning_matrices(self, joint_matrices: Sequence[Optional[Mat4]]) -> NDArray[np.float64]:
        """Per-influence ``matrix @ bindPreMatrix @ geomMatrix``, shape (J, 4, 4).

        Influences with no driving joint or no bind-pre matrix contribute
        ``geomMatrix`` alone.
        """
        geom = self.geom_matrix
        out = np.empty((len(joint_matrices), 4, 4))
        for i, world in enumerate(joint_matrices):
            bind_pre = self.bind_pre_matrix(i)
            if world is None or bind_pre is None:
                out[i] = geom
            else:
                out[i] = world @ bind_pre @ geom
        return out

    def deform(self, rest_points: NDArray[np.float64],
               joint_matrices: Sequence[Optional[Mat4]]) -> NDArray[np.float64]:
        """Deform (N, 3) rest points into world space."""
        if self.weights is None:
            raise ValueError(f"{self.name}: no weights have been set")
        pts = np.asarray(rest_points, dtype=np.float64).reshape(-1, 3)
        if self.weights.shape != (len(pts), len(joint_matrices)):
            raise ValueError(
                f"{self.name}: weights {self.weights.shape} do not match "
                f"{len(pts)} points x {len(joint_matrices)} influences")
        skin = self.skinning_matrices(joint_matrices)
        homo = np.hstack([pts, np.ones((len(pts), 1))])
        # (J,4,4) x (N,4) -> (N,J,4), then weighted sum over J
        per_joint = np.einsum("jab,nb->nja", skin, homo)
        blended = np.einsum("nj,nja->na", self.weights, per_joint)
        return blended[:, :3]
