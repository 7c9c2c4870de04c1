"""Binding of skinned meshes to an imported skeleton.

Per mesh the binder builds::

    mesh_rest.outMesh -> groupParts -> skinCluster.input[0] -> skinCluster.outputGeometry[0] -> mesh.inMesh
    joint_i.worldMatrix[0] -> skinCluster.matrix[i]

inside one :class:`GraphEdit`, so a mesh is either fully bound or left
untouched.  A failure on one mesh does not stop the others.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import (
    ALL_VERTS_COMPONENT,
    GROUP_ID_TYPE,
    GROUP_PARTS_TYPE,
    REST_MESH_SUFFIX,
    ROTATE_ATTRS,
    SCALE_ATTRS,
    SKIN_CLUSTER_GROUP_ID_NAME,
    SKIN_CLUSTER_GROUP_PARTS_NAME,
    SKIN_CLUSTER_TYPE,
    TRANSLATE_ATTRS,
)
from rigforge.core.errors import SingularBindMatrixError, SkinBindError
from rigforge.core.graph_edit import GraphEdit
from rigforge.core.math_utils import Mat4, is_invertible, mat4_decompose, mat4_inverse
from rigforge.core.node_types import DagPose
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode, MeshNode, ResolutionKind, Scene, SceneNode
from rigforge.deform.skin_cluster import SkinCluster
from rigforge.deform.weights import compute_dense_weights
from rigforge.rig.wiring import JointWiring
from rigforge.skel.skeleton_query import SkeletonQuery
from rigforge.skel.skinning_query import SkinningQuery

logger = logging.getLogger(__name__)


class BindStatus(Enum):
    BOUND = auto()
    SKIPPED_MISSING = auto()      # no live mesh node: excluded upstream
    SKIPPED_UNSUPPORTED = auto()  # resolved, but not a mesh
    FAILED = auto()


@dataclass
class SkinBindResult:
    """Outcome of binding one skinnable prim."""
    prim_path: str
    status: BindStatus
    skin_cluster: Optional[SkinCluster] = None
    rest_mesh: Optional[MeshNode] = None
    weights: Optional[NDArray[np.float64]] = None
    error: Optional[SkinBindError] = None

    @property
    def ok(self) -> bool:
        return self.status != BindStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status in (BindStatus.SKIPPED_MISSING, BindStatus.SKIPPED_UNSUPPORTED)


def compute_inverse_bind_matrices(rest_xforms) -> NDArray[np.float64]:
    """Invert every skel-space rest transform.

    Raises :class:`SingularBindMatrixError` naming the first joint whose
    rest transform is not invertible.
    """
    rest_xforms = np.asarray(rest_xforms, dtype=np.float64)
    out = np.empty_like(rest_xforms)
    for i, xform in enumerate(rest_xforms):
        if not is_invertible(xform):
            raise SingularBindMatrixError(f"Rest transform of joint {i} is not invertible")
        out[i] = mat4_inverse(xform)
    return out


class SkinBinder:
    """Creates skin clusters binding meshes to one skeleton's joints."""

    def __init__(
        self,
        skel_query: SkeletonQuery,
        joint_nodes: Sequence[Optional[JointNode]],
        scene: Scene,
        bind_pose: Optional[DagPose] = None,
        registry: Optional[NodeRegistry] = None,
        wiring: Optional[JointWiring] = None,
    ):
        self.skel_query = skel_query
        self.joint_nodes = list(joint_nodes)
        self.scene = scene
        self.bind_pose = bind_pose
        self.registry = registry
        self.wiring = wiring or JointWiring(self.joint_nodes, skel_query.topology.parents)
        self._inverse_bind: Optional[NDArray[np.float64]] = None

    @property
    def num_joints(self) -> int:
        return len(self.joint_nodes)

    def inverse_bind_matrices(self) -> NDArray[np.float64]:
        """Inverse skel-space rest transforms, computed once per binder."""
        if self._inverse_bind is None:
            rest = self.skel_query.compute_joint_skel_transforms(at_rest=True)
            if len(rest) != self.num_joints:
                raise SkinBindError(
                    f"{len(rest)} rest transforms for {self.num_joints} joints")
            self._inverse_bind = compute_inverse_bind_matrices(rest)
        return self._inverse_bind

    # ── Binding ──

    def bind(self, skinning_query: SkinningQuery) -> SkinBindResult:
        """Bind one prim. Never raises for per-mesh failures; see ``status``."""
        prim_path = skinning_query.prim_path
        resolution = self.scene.resolve_shape(prim_path)

        if resolution.kind == ResolutionKind.MISSING:
            logger.info("%s: no mesh node was imported; skipping skin binding", prim_path)
            return SkinBindResult(prim_path, BindStatus.SKIPPED_MISSING)
        if resolution.kind == ResolutionKind.UNSUPPORTED:
            logger.info("%s: only meshes can be skinned; skipping", prim_path)
            return SkinBindResult(prim_path, BindStatus.SKIPPED_UNSUPPORTED)

        try:
            return self._bind_mesh(skinning_query, resolution.transform, resolution.shape)
        except SkinBindError as exc:
            logger.warning("%s: skin binding failed: %s", prim_path, exc)
            return SkinBindResult(prim_path, BindStatus.FAILED, error=exc)
        except (ValueError, KeyError) as exc:
            logger.warning("%s: skin binding failed: %s", prim_path, exc)
            error = SkinBindError(f"{prim_path}: {exc}")
            error.__cause__ = exc
            return SkinBindResult(prim_path, BindStatus.FAILED, error=error)

    def bind_all(self, skinning_queries: Iterable[SkinningQuery]) -> list[SkinBindResult]:
        return [self.bind(q) for q in skinning_queries]

    def _bind_mesh(self, skinning_query: SkinningQuery, transform: SceneNode,
                   shape: MeshNode) -> SkinBindResult:
        inverse_bind = self.inverse_bind_matrices()
        geom_bind = skinning_query.geom_bind_transform
        indices, weights = skinning_query.compute_varying_joint_influences(shape.num_points)
        dense = compute_dense_weights(
            indices, weights, self.num_joints, skinning_query.num_influences_per_point)

        edit = GraphEdit(self.scene)

        rest_mesh = edit.duplicate_mesh(shape, shape.name + REST_MESH_SUFFIX, parent=transform)
        edit.set_value(rest_mesh, "intermediateObject", True)

        self._configure_transform(edit, transform, geom_bind, skinning_query.prim_path)

        skin_cluster = edit.create_node(SKIN_CLUSTER_TYPE)
        group_id = edit.create_node(GROUP_ID_TYPE, SKIN_CLUSTER_GROUP_ID_NAME)
        group_parts = edit.create_node(GROUP_PARTS_TYPE, SKIN_CLUSTER_GROUP_PARTS_NAME)

        edit.set_value(group_parts, "inputComponents", ALL_VERTS_COMPONENT)
        edit.connect(rest_mesh.plug("outMesh"), group_parts.plug("inputGeometry"))
        edit.connect(group_id.plug("groupId"), group_parts.plug("groupId"))
        edit.connect(group_id.plug("groupId"),
                     shape.plug("instObjGroups[0].objectGroups[0].objectGroupId"),
                     force=True)

        edit.resize_array(skin_cluster, "input", 1)
        edit.resize_array(skin_cluster, "outputGeometry", 1)
        edit.connect(group_parts.plug("outputGeometry"),
                     skin_cluster.plug("input[0].inputGeometry"))
        edit.connect(group_id.plug("groupId"), skin_cluster.plug("input[0].groupId"))
        edit.connect(skin_cluster.plug("outputGeometry", 0), shape.plug("inMesh"), force=True)

        edit.resize_array(skin_cluster, "matrix", self.num_joints)
        edit.resize_array(skin_cluster, "bindPreMatrix", self.num_joints)
        for src, dst in self.wiring.skin_cluster_connections(skin_cluster):
            edit.connect(src, dst)
        for link in self.wiring:
            edit.set_matrix(skin_cluster, f"bindPreMatrix[{link.index}]",
                            inverse_bind[link.index])

        if self.bind_pose is not None:
            edit.connect(self.bind_pose.plug("message"), skin_cluster.plug("bindPose"))

        edit.set_matrix(skin_cluster, "geomMatrix", geom_bind)
        edit.resize_array(skin_cluster, "weightList", shape.num_points)
        edit.set_weights(skin_cluster, dense, normalize=False)

        result = edit.commit()
        if not result.ok:
            raise SkinBindError(
                f"{skinning_query.prim_path}: {result.failed_op}: {result.error}"
            ) from result.error

        if self.registry is not None:
            self.registry.register_all(result.created)
        logger.info("Bound %s to %d joints (%s)", skinning_query.prim_path,
                    self.num_joints, skin_cluster.name)
        return SkinBindResult(skinning_query.prim_path, BindStatus.BOUND,
                              skin_cluster=skin_cluster, rest_mesh=rest_mesh,
                              weights=dense)

    @staticmethod
    def _configure_transform(edit: GraphEdit, transform: SceneNode, geom_bind: Mat4,
                             prim_path: str) -> None:
        """Stop the mesh transform inheriting and set it to the geom bind transform."""
        edit.set_value(transform, "inheritsTransform", False)
        parts = mat4_decompose(geom_bind)
        if parts is None:
            logger.warning("%s: geom bind transform cannot be decomposed; "
                           "transform channels left unchanged", prim_path)
            return
        for attrs, values in zip((TRANSLATE_ATTRS, ROTATE_ATTRS, SCALE_ATTRS), parts):
            for attr, value in zip(attrs, values):
                # Earlier import stages may have animated these channels
                edit.clear_incoming(transform.plug(attr))
                edit.set_value(transform, attr, float(value))
