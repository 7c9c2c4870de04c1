"""Array-backed skeleton and animation queries.

A :class:`SkeletonQuery` answers "what is joint j's transform at time t"
for a skeleton whose joints are listed ancestors-first.  Local transforms
are parent-relative; skel-space transforms are relative to the skeleton
root (``skel[j] = skel[parent(j)] @ local[j]``).
"""

import bisect
import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import EARLIEST_TIME
from rigforge.core.math_utils import (
    Mat4,
    batch_concatenate,
    lerp_vec3,
    mat4_compose,
    mat4_decompose_quat,
    quat_slerp,
)
from rigforge.skel.topology import Topology

logger = logging.getLogger(__name__)


def _as_xform_array(values, name: str) -> NDArray[np.float64]:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim < 2 or arr.shape[-2:] != (4, 4):
        raise ValueError(f"{name} must be an array of 4x4 matrices, got shape {arr.shape}")
    return arr


def interpolate_xform(a: Mat4, b: Mat4, t: float) -> Mat4:
    """Blend two transforms: translation/scale lerp, rotation slerp.

    Falls back to ``a`` when either matrix has no TRS decomposition.
    """
    da = mat4_decompose_quat(a)
    db = mat4_decompose_quat(b)
    if da is None or db is None:
        return np.array(a, dtype=np.float64)
    return mat4_compose(
        lerp_vec3(da[0], db[0], t),
        quat_slerp(da[1], db[1], t),
        lerp_vec3(da[2], db[2], t),
    )


class AnimQuery:
    """Time-sampled joint local transforms plus an optional root transform.

    ``joint_transforms`` has shape (T, J, 4, 4), ``root_transforms`` (T, 4, 4).
    Between samples values are interpolated; outside they are held.
    """

    def __init__(self, times: Sequence[float], joint_transforms,
                 root_transforms=None):
        self.times = np.asarray(times, dtype=np.float64).reshape(-1)
        self.joint_transforms = _as_xform_array(joint_transforms, "joint_transforms")
        if self.joint_transforms.ndim != 4 or len(self.joint_transforms) != len(self.times):
            raise ValueError(
                f"joint_transforms must have shape (T={len(self.times)}, J, 4, 4), "
                f"got {self.joint_transforms.shape}")
        if len(self.times) > 1 and np.any(np.diff(self.times) <= 0):
            raise ValueError("animation times must be strictly increasing")
        self.root_transforms = None
        if root_transforms is not None:
            self.root_transforms = _as_xform_array(root_transforms, "root_transforms")
            if self.root_transforms.shape != (len(self.times), 4, 4):
                raise ValueError(
                    f"root_transforms must have shape ({len(self.times)}, 4, 4), "
                    f"got {self.root_transforms.shape}")

    @property
    def num_joints(self) -> int:
        return self.joint_transforms.shape[1]

    def get_joint_transform_time_samples(self) -> list[float]:
        return [float(t) for t in self.times]

    def get_joint_transform_time_samples_in_interval(self, start: float, end: float) -> list[float]:
        """Samples with ``start <= t <= end``."""
        return [float(t) for t in self.times if start <= t <= end]

    def _bracket(self, time: float) -> tuple[int, int, float]:
        if len(self.times) == 0:
            raise ValueError("animation has no time samples")
        hi = bisect.bisect_left(self.times.tolist(), time)
        if hi < len(self.times) and self.times[hi] == time:
            return hi, hi, 0.0
        if hi == 0:
            return 0, 0, 0.0
        if hi >= len(self.times):
            last = len(self.times) - 1
            return last, last, 0.0
        lo = hi - 1
        t = (time - self.times[lo]) / (self.times[hi] - self.times[lo])
        return lo, hi, float(t)

    def compute_joint_local_transforms(self, time: float) -> NDArray[np.float64]:
        lo, hi, t = self._bracket(time)
        if lo == hi:
            return self.joint_transforms[lo].copy()
        a, b = self.joint_transforms[lo], self.joint_transforms[hi]
        return np.stack([interpolate_xform(a[j], b[j], t) for j in range(len(a))])

    def compute_root_transform(self, time: float) -> Optional[Mat4]:
        if self.root_transforms is None or len(self.times) == 0:
            return None
        lo, hi, t = self._bracket(time)
        if lo == hi:
            return self.root_transforms[lo].copy()
        return interpolate_xform(self.root_transforms[lo], self.root_transforms[hi], t)


class SkeletonQuery:
    """Joint order, topology, rest pose and optional animation of one skeleton."""

    def __init__(self, prim_path: str, joint_order: Sequence[str], parents: Sequence[int],
                 rest_transforms, anim_query: Optional[AnimQuery] = None):
        self.prim_path = prim_path
        self.joint_order = list(joint_order)
        self.topology = Topology(parents)
        self.rest_transforms = _as_xform_array(rest_transforms, "rest_transforms")
        if len(self.topology) != len(self.joint_order):
            raise ValueError(
                f"{len(self.joint_order)} joints but {len(self.topology)} parent entries")
        if self.rest_transforms.shape != (len(self.joint_order), 4, 4):
            raise ValueError(
                f"rest_transforms must have shape ({len(self.joint_order)}, 4, 4), "
                f"got {self.rest_transforms.shape}")
        if anim_query is not None and anim_query.num_joints != len(self.joint_order):
            raise ValueError(
                f"animation drives {anim_query.num_joints} joints, "
                f"skeleton has {len(self.joint_order)}")
        self._anim_query = anim_query

    @property
    def num_joints(self) -> int:
        return len(self.joint_order)

    def get_anim_query(self) -> Optional[AnimQuery]:
        return self._anim_query

    def compute_joint_local_transforms(self, time: float = EARLIEST_TIME,
                                       at_rest: bool = False) -> NDArray[np.float64]:
        """Parent-relative transforms of every joint, (J, 4, 4)."""
        if at_rest or self._anim_query is None or len(self._anim_query.times) == 0:
            return self.rest_transforms.copy()
        return self._anim_query.compute_joint_local_transforms(time)

    def compute_joint_skel_transforms(self, time: float = EARLIEST_TIME,
                                      at_rest: bool = False) -> NDArray[np.float64]:
        """Skeleton-space transforms of every joint, (J, 4, 4)."""
        ok, reason = self.topology.validate()
        if not ok:
            raise ValueError(f"{self.prim_path}: invalid topology: {reason}")
        local = self.compute_joint_local_transforms(time, at_rest=at_rest)
        return batch_concatenate(local, self.topology.parents)

    def compute_anim_transform(self, time: float) -> Optional[Mat4]:
        """Animated transform of the skeleton root, or None when not authored."""
        if self._anim_query is None:
            return None
        return self._anim_query.compute_root_transform(time)
