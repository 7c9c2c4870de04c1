"""JSON rig description loading.

A rig file holds one skeleton and the meshes skinned to it::

    {
      "skeleton": {
        "path": "/Root/Skel",
        "joints": ["hips", "hips/spine", "hips/spine/head"],
        "parents": [-1, 0, 1],                  # optional, derived from paths
        "rest_transforms": [<xform>, ...],      # parent-relative, one per joint
        "animation": {                          # optional
          "times": [1, 2, 3],
          "joint_transforms": [[<xform> per joint] per time],
          "root_transforms": [<xform> per time]  # optional
        }
      },
      "meshes": [{
        "path": "/Root/Body",
        "points": [[x, y, z], ...],             # or "obj": "body.obj"
        "faces": [[0, 1, 2], ...],              # optional with "points"
        "joint_indices": [...], "joint_weights": [...],
        "influences_per_point": 2,
        "interpolation": "vertex",              # or "constant"
        "geom_bind_transform": <xform>,         # optional
        "transform": <xform>                    # optional, the mesh node's own
      }]
    }

An ``<xform>`` is 16 row-major numbers, a nested 4x4 list, or an object
with ``translate``, ``rotate`` (XYZ Euler, radians) and ``scale``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import numpy as np

from rigforge.core.config_loader import load_json
from rigforge.core.errors import RigFormatError
from rigforge.core.math_utils import Mat4, as_mat4, mat4_compose_euler, mat4_decompose, vec3
from rigforge.core.mesh import BufferGeometry, MeshInstance
from rigforge.core.options import ImportOptions
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import MeshNode, Scene, SceneNode
from rigforge.loaders.obj_parser import load_obj_file
from rigforge.skel.skeleton_query import AnimQuery, SkeletonQuery
from rigforge.skel.skinning_query import VERTEX_INTERPOLATION, SkinningQuery
from rigforge.skel.topology import Topology

logger = logging.getLogger(__name__)


@dataclass
class MeshDescription:
    """Geometry and skinning of one mesh prim."""
    prim_path: str
    geometry: BufferGeometry
    skinning: SkinningQuery
    transform: Optional[Mat4] = None

    @property
    def name(self) -> str:
        return self.prim_path.rstrip("/").rpartition("/")[2]


@dataclass
class RigDescription:
    skeleton: SkeletonQuery
    meshes: list[MeshDescription] = field(default_factory=list)

    @property
    def skinning_queries(self) -> list[SkinningQuery]:
        return [m.skinning for m in self.meshes]


def parse_xform(value: Any, where: str) -> Mat4:
    """Convert one ``<xform>`` entry to a 4x4 matrix."""
    if isinstance(value, dict):
        unknown = set(value) - {"translate", "rotate", "scale"}
        if unknown:
            raise RigFormatError(f"{where}: unknown transform keys {sorted(unknown)}")
        try:
            return mat4_compose_euler(
                vec3(*value.get("translate", (0.0, 0.0, 0.0))),
                vec3(*value.get("rotate", (0.0, 0.0, 0.0))),
                vec3(*value.get("scale", (1.0, 1.0, 1.0))),
            )
        except TypeError as exc:
            raise RigFormatError(f"{where}: {exc}") from exc
    try:
        return as_mat4(value)
    except (TypeError, ValueError) as exc:
        raise RigFormatError(f"{where}: {exc}") from exc


def _require(data: dict, key: str, where: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise RigFormatError(f"{where}: missing {key!r}") from None


def _parse_animation(data: dict, num_joints: int) -> AnimQuery:
    times = _require(data, "times", "animation")
    frames = _require(data, "joint_transforms", "animation")
    if len(frames) != len(times):
        raise RigFormatError(
            f"animation: {len(frames)} joint transform frames for {len(times)} times")
    joint_xforms = np.empty((len(times), num_joints, 4, 4))
    for t, frame in enumerate(frames):
        if len(frame) != num_joints:
            raise RigFormatError(
                f"animation frame {t}: {len(frame)} transforms for {num_joints} joints")
        for j, value in enumerate(frame):
            joint_xforms[t, j] = parse_xform(value, f"animation frame {t} joint {j}")

    root_xforms = None
    if "root_transforms" in data:
        roots = data["root_transforms"]
        if len(roots) != len(times):
            raise RigFormatError(
                f"animation: {len(roots)} root transforms for {len(times)} times")
        root_xforms = np.stack([parse_xform(v, f"animation root {t}")
                                for t, v in enumerate(roots)])
    try:
        return AnimQuery(times, joint_xforms, root_xforms)
    except ValueError as exc:
        raise RigFormatError(f"animation: {exc}") from exc


def parse_skeleton(data: dict) -> SkeletonQuery:
    prim_path = _require(data, "path", "skeleton")
    joints = [str(j) for j in _require(data, "joints", "skeleton")]
    if "parents" in data:
        parents = data["parents"]
    else:
        parents = Topology.from_paths(joints).parents
    rest = _require(data, "rest_transforms", "skeleton")
    if len(rest) != len(joints):
        raise RigFormatError(
            f"skeleton: {len(rest)} rest transforms for {len(joints)} joints")
    rest_xforms = np.stack([parse_xform(v, f"skeleton rest {i}") for i, v in enumerate(rest)]) \
        if rest else np.zeros((0, 4, 4))

    anim_query = None
    if data.get("animation") is not None:
        anim_query = _parse_animation(data["animation"], len(joints))
    try:
        return SkeletonQuery(prim_path, joints, parents, rest_xforms, anim_query)
    except ValueError as exc:
        raise RigFormatError(f"skeleton {prim_path}: {exc}") from exc


def parse_mesh(data: dict, base_dir: Optional[Path] = None) -> MeshDescription:
    prim_path = _require(data, "path", "mesh")
    where = f"mesh {prim_path}"
    if "obj" in data:
        obj_path = Path(data["obj"])
        if base_dir is not None and not obj_path.is_absolute():
            obj_path = base_dir / obj_path
        try:
            geometry = load_obj_file(obj_path)
        except (OSError, ValueError) as exc:
            raise RigFormatError(f"{where}: {exc}") from exc
    else:
        points = np.asarray(_require(data, "points", where), dtype=np.float64)
        if points.size and (points.ndim != 2 or points.shape[1] != 3):
            raise RigFormatError(f"{where}: points must be a list of [x, y, z]")
        indices = None
        if "faces" in data:
            tris = []
            for face in data["faces"]:
                for k in range(1, len(face) - 1):
                    tris.extend([face[0], face[k], face[k + 1]])
            indices = np.array(tris, dtype=np.uint32)
        geometry = BufferGeometry(positions=points.reshape(-1), indices=indices,
                                  vertex_count=len(points))

    geom_bind = None
    if "geom_bind_transform" in data:
        geom_bind = parse_xform(data["geom_bind_transform"], f"{where} geom bind")
    transform = None
    if "transform" in data:
        transform = parse_xform(data["transform"], f"{where} transform")
    try:
        skinning = SkinningQuery(
            prim_path,
            _require(data, "joint_indices", where),
            _require(data, "joint_weights", where),
            int(_require(data, "influences_per_point", where)),
            geom_bind_transform=geom_bind,
            interpolation=data.get("interpolation", VERTEX_INTERPOLATION),
        )
    except ValueError as exc:
        raise RigFormatError(str(exc)) from exc
    return MeshDescription(prim_path, geometry, skinning, transform)


def parse_rig(data: Any, base_dir: Optional[Path] = None) -> RigDescription:
    if not isinstance(data, dict):
        raise RigFormatError("rig description must be a JSON object")
    skeleton = parse_skeleton(_require(data, "skeleton", "rig"))
    meshes = [parse_mesh(m, base_dir) for m in data.get("meshes", [])]
    return RigDescription(skeleton, meshes)


def load_rig(path) -> RigDescription:
    """Load a rig description file; relative OBJ paths resolve next to it."""
    path = Path(path)
    try:
        data = load_json(path)
    except ValueError as exc:
        raise RigFormatError(f"{path}: {exc}") from exc
    rig = parse_rig(data, base_dir=path.parent)
    logger.info("Loaded rig %s: %d joints, %d meshes", path.name,
                rig.skeleton.num_joints, len(rig.meshes))
    return rig


def populate_scene(
    rig: RigDescription,
    scene: Scene,
    options: Optional[ImportOptions] = None,
    registry: Optional[NodeRegistry] = None,
    parent: Optional[SceneNode] = None,
) -> dict[str, MeshNode]:
    """Create a transform and mesh shape per mesh, keyed by prim path.

    Meshes listed in ``options.excluded_prims`` are left out, so binding
    later skips them.
    """
    options = options or ImportOptions()
    shapes: dict[str, MeshNode] = {}
    for desc in rig.meshes:
        if options.is_excluded(desc.prim_path):
            logger.info("Excluding %s from import", desc.prim_path)
            continue
        transform = scene.add_node(SceneNode(desc.name), parent)
        if desc.transform is not None:
            parts = mat4_decompose(desc.transform)
            if parts is None:
                logger.warning("%s: transform cannot be decomposed; using identity",
                               desc.prim_path)
            else:
                transform.set_translate(*parts[0])
                transform.set_rotate(*parts[1])
                transform.set_scale(*parts[2])
        shape_name = f"{desc.name}Shape"
        shape = scene.add_node(
            MeshNode(shape_name, MeshInstance(shape_name, desc.geometry.clone())), transform)
        scene.register_path(desc.prim_path, transform)
        if registry is not None:
            registry.register_all([transform, shape])
        shapes[desc.prim_path] = shape
    return shapes
