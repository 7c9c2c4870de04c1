"""Evaluation of an imported rig at a given time.

Drives transform channels from their animation curves, updates world
matrices, then runs every skin cluster on its rest geometry and writes
the result into the mesh it feeds.
"""

import logging
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import ANIM_CURVE_TYPE, SKIN_CLUSTER_TYPE
from rigforge.core.math_utils import mat4_inverse, transform_points
from rigforge.core.scene_graph import MeshNode, Scene, SceneNode
from rigforge.deform.skin_cluster import SkinCluster

logger = logging.getLogger(__name__)


class GraphEvaluator:
    """Pulls values through the scene's connections for one time at a time."""

    def __init__(self, scene: Scene):
        self.scene = scene

    def apply_curves(self, time: float) -> int:
        """Set every curve-driven channel to its value at ``time``."""
        count = 0
        for curve in self.scene.nodes_of_type(ANIM_CURVE_TYPE):
            value = curve.evaluate(time)
            for dst in self.scene.destinations_of(curve.plug("output")):
                dst.node.set_value(dst.attribute, value)
                count += 1
        return count

    def rest_mesh_of(self, skin_cluster: SkinCluster) -> Optional[MeshNode]:
        """Follow ``input[0].inputGeometry`` back through group parts to the rest mesh."""
        src = self.scene.source_of(skin_cluster.plug("input[0].inputGeometry"))
        while src is not None and not isinstance(src.node, MeshNode):
            src = self.scene.source_of(src.node.plug("inputGeometry"))
        return src.node if src is not None else None

    def joint_matrices(self, skin_cluster: SkinCluster) -> list:
        """World matrix of the node driving each ``matrix[i]``, or None."""
        matrices = []
        for i in range(skin_cluster.num_influences):
            src = self.scene.source_of(skin_cluster.plug("matrix", i))
            if src is not None and isinstance(src.node, SceneNode):
                matrices.append(src.node.world_matrix.copy())
            else:
                matrices.append(None)
        return matrices

    def deform(self, skin_cluster: SkinCluster) -> Optional[NDArray[np.float64]]:
        """World-space deformed points of ``skin_cluster``, also written to its output mesh."""
        rest = self.rest_mesh_of(skin_cluster)
        if rest is None or rest.mesh is None:
            logger.warning("%s: no rest geometry connected", skin_cluster.name)
            return None
        world_points = skin_cluster.deform(rest.mesh.geometry.points,
                                           self.joint_matrices(skin_cluster))
        for dst in self.scene.destinations_of(skin_cluster.plug("outputGeometry", 0)):
            target = dst.node
            if isinstance(target, MeshNode) and target.mesh is not None:
                # The mesh stores object-space points under its own transform.
                target.mesh.positions = transform_points(
                    mat4_inverse(target.world_matrix), world_points)
        return world_points

    def evaluate(self, time: float) -> dict[str, NDArray[np.float64]]:
        """Evaluate the scene at ``time``.

        Returns world-space deformed points keyed by the name of each
        skinned mesh shape.
        """
        self.apply_curves(time)
        self.scene.update()
        deformed: dict[str, NDArray[np.float64]] = {}
        for skin_cluster in self.scene.nodes_of_type(SKIN_CLUSTER_TYPE):
            points = self.deform(skin_cluster)
            if points is None:
                continue
            for dst in self.scene.destinations_of(skin_cluster.plug("outputGeometry", 0)):
                deformed[dst.node.name] = points
        return deformed
