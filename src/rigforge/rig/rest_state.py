"""Bind-pose matrices and display radii for freshly created joints."""

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import DEFAULT_JOINT_RADIUS, JOINT_RADIUS_SCALE
from rigforge.core.errors import RestStateError
from rigforge.core.scene_graph import JointNode
from rigforge.skel.skeleton_query import SkeletonQuery

logger = logging.getLogger(__name__)


def compute_joint_radii(parents: Sequence[int], rest_xforms) -> NDArray[np.float64]:
    """Display radius per joint from its bone lengths.

    A joint with children gets ``JOINT_RADIUS_SCALE`` times the average
    distance from its rest pivot to its children's pivots.  A leaf takes
    its parent's radius, or ``DEFAULT_JOINT_RADIUS`` when it is a root.
    """
    parents = np.asarray(parents, dtype=np.int64).reshape(-1)
    rest_xforms = np.asarray(rest_xforms, dtype=np.float64)
    n = len(parents)
    pivots = rest_xforms[:, :3, 3]

    lengths = np.zeros(n)
    counts = np.zeros(n, dtype=np.int64)
    child = np.flatnonzero((parents >= 0) & (parents < n))
    if len(child):
        bone = np.linalg.norm(pivots[child] - pivots[parents[child]], axis=1)
        np.add.at(lengths, parents[child], bone)
        np.add.at(counts, parents[child], 1)

    radii = np.full(n, DEFAULT_JOINT_RADIUS)
    for i in range(n):
        if counts[i] > 0:
            radii[i] = JOINT_RADIUS_SCALE * lengths[i] / counts[i]
        elif 0 <= parents[i] < n:
            # Leaf joint: same size as its parent
            radii[i] = radii[parents[i]]
    return radii


def apply_rest_states(
    skel_query: SkeletonQuery,
    joint_nodes: Sequence[Optional[JointNode]],
) -> NDArray[np.float64]:
    """Write each joint's skel-space rest transform and display radius.

    Also disables ``segmentScaleCompensate`` so ancestor scale is not
    applied twice.  Returns the (J, 4, 4) rest transforms.
    """
    try:
        rest_xforms = skel_query.compute_joint_skel_transforms(at_rest=True)
    except ValueError as exc:
        raise RestStateError(f"{skel_query.prim_path}: {exc}") from exc
    if len(rest_xforms) != len(joint_nodes):
        raise RestStateError(
            f"{skel_query.prim_path}: {len(rest_xforms)} rest transforms "
            f"for {len(joint_nodes)} joints")

    for node, xform in zip(joint_nodes, rest_xforms):
        if node is None:
            continue
        node.set_value("bindPose", xform)
        node.set_value("segmentScaleCompensate", False)

    radii = compute_joint_radii(skel_query.topology.parents, rest_xforms)
    for node, radius in zip(joint_nodes, radii):
        if node is not None:
            node.set_value("radius", float(radius))

    logger.debug("Applied rest states to %d joints", len(joint_nodes))
    return rest_xforms
