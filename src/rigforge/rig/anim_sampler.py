"""Sampling of skeleton animation onto transform channels.

One time sample is written as static translate/rotate/scale values;
several are written as nine animation curves per node, keyed at the
resolved times.
"""

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.animation.anim_curve import AnimCurve
from rigforge.constants import EARLIEST_TIME, ROTATE_ATTRS, SCALE_ATTRS, TRANSLATE_ATTRS
from rigforge.core.errors import AnimWriteError
from rigforge.core.graph_edit import GraphEdit
from rigforge.core.math_utils import mat4_decompose, mat4_identity
from rigforge.core.options import ImportOptions
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode, Scene, SceneNode
from rigforge.skel.skeleton_query import SkeletonQuery

logger = logging.getLogger(__name__)


def resolve_time_samples(skel_query: SkeletonQuery, options: ImportOptions) -> list[float]:
    """Times at which joint animation is sampled.

    Falls back to ``[EARLIEST_TIME]`` when animation is not read, the
    skeleton has no animation source, or no samples lie in range.
    Samples exactly on the bounds of a custom range are best effort.
    """
    times: list[float] = []
    if options.read_anim_data:
        anim_query = skel_query.get_anim_query()
        if anim_query is not None:
            if options.use_custom_frame_range:
                times = anim_query.get_joint_transform_time_samples_in_interval(
                    options.start_time, options.end_time)
            else:
                times = anim_query.get_joint_transform_time_samples()
    if not times:
        times = [EARLIEST_TIME]
    return times


def decompose_samples(xforms) -> tuple[NDArray, NDArray, NDArray, NDArray]:
    """Decompose (N, 4, 4) transforms into translate, rotate and scale arrays.

    Returns ``(translates, rotates, scales, ok)``.  A sample that cannot be
    decomposed keeps the defaults (zero translate/rotate, unit scale) and
    is flagged ``False`` in ``ok``.
    """
    n = len(xforms)
    translates = np.zeros((n, 3))
    rotates = np.zeros((n, 3))
    scales = np.ones((n, 3))
    ok = np.zeros(n, dtype=bool)
    for i, xform in enumerate(xforms):
        parts = mat4_decompose(xform)
        if parts is None:
            continue
        translates[i], rotates[i], scales[i] = parts
        ok[i] = True
    return translates, rotates, scales, ok


def set_transform_anim(
    node: SceneNode,
    xforms: Sequence,
    times: Sequence[float],
    scene: Scene,
    registry: Optional[NodeRegistry] = None,
) -> list[AnimCurve]:
    """Write ``xforms`` sampled at ``times`` onto ``node``'s TRS channels.

    Returns the created curves (empty for a static write).  Raises
    :class:`AnimWriteError` when the counts differ or a curve cannot be
    written; in that case no curve is left in the scene.
    """
    if len(xforms) != len(times):
        raise AnimWriteError(
            f"{node.name}: {len(xforms)} transforms for {len(times)} time samples")
    if len(xforms) == 0:
        return []

    translates, rotates, scales, ok = decompose_samples(xforms)
    failed = int(np.count_nonzero(~ok))
    if failed:
        logger.warning("%s: %d of %d samples could not be decomposed; "
                       "their channels keep default values", node.name, failed, len(ok))

    if len(times) == 1:
        if ok[0]:
            for attrs, values in ((TRANSLATE_ATTRS, translates[0]),
                                  (ROTATE_ATTRS, rotates[0]),
                                  (SCALE_ATTRS, scales[0])):
                for attr, value in zip(attrs, values):
                    node.set_value(attr, float(value))
        return []

    edit = GraphEdit(scene)
    curves: list[AnimCurve] = []
    for attrs, values in ((TRANSLATE_ATTRS, translates),
                          (ROTATE_ATTRS, rotates),
                          (SCALE_ATTRS, scales)):
        for c, attr in enumerate(attrs):
            curve = edit.create_node(AnimCurve.node_type, f"{node.name}_{attr}")
            try:
                curve.add_keys(times, values[:, c])
            except ValueError as exc:
                raise AnimWriteError(f"{node.name}.{attr}: {exc}") from exc
            edit.clear_incoming(node.plug(attr))
            edit.connect(curve.plug("output"), node.plug(attr))
            curves.append(curve)

    result = edit.commit()
    if not result.ok:
        raise AnimWriteError(f"{node.name}: {result.failed_op}: {result.error}") from result.error
    if registry is not None:
        registry.register_all(curves)
    return curves


def sample_joint_transforms(skel_query: SkeletonQuery,
                            times: Sequence[float]) -> NDArray[np.float64]:
    """Local transforms of every joint at every time, shape (T, J, 4, 4).

    The whole hierarchy is evaluated once per time.
    """
    samples = np.empty((len(times), skel_query.num_joints, 4, 4))
    for i, time in enumerate(times):
        try:
            samples[i] = skel_query.compute_joint_local_transforms(time)
        except ValueError as exc:
            raise AnimWriteError(
                f"{skel_query.prim_path}: could not sample joints at time {time}: {exc}"
            ) from exc
    return samples


def copy_anim_from_skel(
    skel_query: SkeletonQuery,
    container: SceneNode,
    joint_nodes: Sequence[Optional[JointNode]],
    options: ImportOptions,
    scene: Scene,
    registry: Optional[NodeRegistry] = None,
) -> list[float]:
    """Write the root animation onto ``container`` and joint animation onto the joints.

    Returns the resolved time samples.
    """
    times = resolve_time_samples(skel_query, options)

    if skel_query.get_anim_query() is not None:
        root_xforms = []
        for time in times:
            try:
                xform = skel_query.compute_anim_transform(time)
            except ValueError as exc:
                raise AnimWriteError(
                    f"{skel_query.prim_path}: could not sample the root transform "
                    f"at time {time}: {exc}"
                ) from exc
            root_xforms.append(xform if xform is not None else mat4_identity())
        set_transform_anim(container, root_xforms, times, scene, registry)

    samples = sample_joint_transforms(skel_query, times)
    for j, node in enumerate(joint_nodes):
        if node is None:
            continue
        set_transform_anim(node, samples[:, j], times, scene, registry)

    logger.info("Sampled %s at %d time(s)", skel_query.prim_path, len(times))
    return times
