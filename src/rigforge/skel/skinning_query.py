"""Per-mesh skinning data: geometry bind transform and joint influences."""

import logging
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from rigforge.core.math_utils import Mat4, as_mat4, mat4_identity

logger = logging.getLogger(__name__)

VERTEX_INTERPOLATION = "vertex"
CONSTANT_INTERPOLATION = "constant"


class SkinningQuery:
    """Sparse joint influences of one skinnable prim.

    ``joint_indices`` / ``joint_weights`` hold ``num_influences_per_point``
    consecutive slots per point.  With ``constant`` interpolation a single
    set of slots applies rigidly to every point.
    """

    def __init__(self, prim_path: str, joint_indices, joint_weights,
                 num_influences_per_point: int,
                 geom_bind_transform: Optional[Mat4] = None,
                 interpolation: str = VERTEX_INTERPOLATION):
        self.prim_path = prim_path
        self.joint_indices = np.asarray(joint_indices, dtype=np.int64).reshape(-1)
        self.joint_weights = np.asarray(joint_weights, dtype=np.float64).reshape(-1)
        if len(self.joint_indices) != len(self.joint_weights):
            raise ValueError(
                f"{prim_path}: {len(self.joint_indices)} joint indices but "
                f"{len(self.joint_weights)} joint weights")
        if num_influences_per_point <= 0:
            raise ValueError(
                f"{prim_path}: influences per point must be positive, "
                f"got {num_influences_per_point}")
        if len(self.joint_indices) % num_influences_per_point:
            raise ValueError(
                f"{prim_path}: {len(self.joint_indices)} influences is not a multiple "
                f"of {num_influences_per_point} per point")
        if interpolation not in (VERTEX_INTERPOLATION, CONSTANT_INTERPOLATION):
            raise ValueError(f"{prim_path}: unknown interpolation {interpolation!r}")
        if interpolation == CONSTANT_INTERPOLATION and \
                len(self.joint_indices) != num_influences_per_point:
            raise ValueError(
                f"{prim_path}: constant influences must hold exactly "
                f"{num_influences_per_point} slots")
        self.num_influences_per_point = int(num_influences_per_point)
        self.interpolation = interpolation
        self._geom_bind = (as_mat4(geom_bind_transform)
                           if geom_bind_transform is not None else mat4_identity())

    @property
    def geom_bind_transform(self) -> Mat4:
        return self._geom_bind.copy()

    @property
    def is_rigidly_deformed(self) -> bool:
        return self.interpolation == CONSTANT_INTERPOLATION

    def compute_varying_joint_influences(
            self, num_points: int) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        """Influence slots for every one of ``num_points`` points.

        Constant influences are repeated per point.  Raises ``ValueError``
        when vertex influences do not cover exactly ``num_points`` points.
        """
        if self.is_rigidly_deformed:
            return (np.tile(self.joint_indices, num_points),
                    np.tile(self.joint_weights, num_points))
        authored = len(self.joint_indices) // self.num_influences_per_point
        if authored != num_points:
            raise ValueError(
                f"{self.prim_path}: influences authored for {authored} points, "
                f"mesh has {num_points}")
        return self.joint_indices.copy(), self.joint_weights.copy()
