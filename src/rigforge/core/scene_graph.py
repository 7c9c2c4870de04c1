"""Scene graph with hierarchical transforms, typed attributes and connections.

Every node carries named attributes addressed through :class:`Plug`
objects (``node.plug("matrix", 3)`` is ``skinCluster.matrix[3]``).  DAG
nodes (:class:`SceneNode`) additionally form a parent/child hierarchy:
position, rotation and scale -> local matrix, and
world matrix = parent.world_matrix @ local_matrix unless
``inherits_transform`` is off.
"""

import re
import threading
from collections import Counter
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterator, Optional

import numpy as np

from rigforge.constants import (
    JOINT_TYPE,
    MESH_TYPE,
    ROTATE_ATTRS,
    SCALE_ATTRS,
    TRANSFORM_TYPE,
    TRANSLATE_ATTRS,
    TRS_ATTRS,
)
from rigforge.core.math_utils import Mat4, Vec3, mat4_compose_euler, mat4_identity, vec3
from rigforge.core.mesh import MeshInstance

_PLUG_RE = re.compile(r"^([A-Za-z_]\w*)(?:\[(\d+)\])?(?:\.(.+))?$")
_TRAILING_DIGITS_RE = re.compile(r"\d+$")


def split_attribute(attribute: str) -> tuple[str, Optional[int], Optional[str]]:
    """Split ``"input[0].groupId"`` into ``("input", 0, "groupId")``."""
    m = _PLUG_RE.match(attribute)
    if m is None:
        raise ValueError(f"Malformed attribute name: {attribute!r}")
    base, index, rest = m.groups()
    return base, int(index) if index is not None else None, rest


@dataclass(frozen=True)
class Plug:
    """A (node, attribute) address used as a connection endpoint."""
    node: "DependencyNode"
    attribute: str

    @property
    def base(self) -> str:
        return split_attribute(self.attribute)[0]

    @property
    def index(self) -> Optional[int]:
        return split_attribute(self.attribute)[1]

    def element(self, index: int) -> "Plug":
        return Plug(self.node, f"{self.attribute}[{index}]")

    def child(self, name: str) -> "Plug":
        return Plug(self.node, f"{self.attribute}.{name}")

    def __str__(self) -> str:
        return f"{self.node.name}.{self.attribute}"


class DependencyNode:
    """A non-DAG node: named attribute storage plus array sizes."""

    node_type = "node"
    ATTRIBUTES: frozenset[str] = frozenset({"message"})
    ARRAY_ATTRIBUTES: frozenset[str] = frozenset()

    def __init__(self, name: str = ""):
        self.name = name or self.node_type
        self.scene: Optional["Scene"] = None
        self.values: dict[str, Any] = {}
        self.array_sizes: dict[str, int] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} ({self.node_type})>"

    def plug(self, attribute: str, index: Optional[int] = None) -> Plug:
        if index is not None:
            attribute = f"{attribute}[{index}]"
        return Plug(self, attribute)

    def has_attribute(self, attribute: str) -> bool:
        try:
            base = split_attribute(attribute)[0]
        except ValueError:
            return False
        return base in self.ATTRIBUTES

    def check_attribute(self, attribute: str) -> None:
        if not self.has_attribute(attribute):
            raise KeyError(f"{self.node_type} node {self.name!r} has no attribute {attribute!r}")

    def get_value(self, attribute: str, default: Any = None) -> Any:
        self.check_attribute(attribute)
        return self.values.get(attribute, default)

    def set_value(self, attribute: str, value: Any) -> None:
        self.check_attribute(attribute)
        if isinstance(value, np.ndarray):
            value = value.copy()
        self.values[attribute] = value

    def clear_value(self, attribute: str) -> None:
        self.values.pop(attribute, None)

    def array_size(self, attribute: str) -> int:
        return self.array_sizes.get(attribute, 0)

    def set_array_size(self, attribute: str, size: int) -> None:
        if attribute not in self.ARRAY_ATTRIBUTES:
            raise KeyError(f"{self.node_type} node {self.name!r} has no array attribute {attribute!r}")
        if size < 0:
            raise ValueError(f"array size must be >= 0, got {size}")
        self.array_sizes[attribute] = size


class SceneNode(DependencyNode):
    """A DAG node in the scene hierarchy.

    translate, rotate (XYZ Euler, radians), scale -> local matrix.
    World matrix = parent.world_matrix @ local_matrix.
    """

    node_type = TRANSFORM_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset(TRS_ATTRS) | frozenset({
        "inheritsTransform", "visibility", "matrix", "worldMatrix",
    })
    ARRAY_ATTRIBUTES = frozenset({"worldMatrix"})

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.parent: Optional["SceneNode"] = None
        self.children: list["SceneNode"] = []

        # Transform
        self.translate: Vec3 = vec3()
        self.rotate: Vec3 = vec3()
        self.scale: Vec3 = vec3(1, 1, 1)
        self.inherits_transform: bool = True

        # Matrices
        self.local_matrix: Mat4 = mat4_identity()
        self.world_matrix: Mat4 = mat4_identity()

        self.visible: bool = True

        # Dirty flag for matrix updates
        self._matrix_dirty: bool = True

    def add(self, child: "SceneNode") -> "SceneNode":
        """Add a child node. Removes from previous parent if any."""
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        child._matrix_dirty = True
        return self

    def remove(self, child: "SceneNode") -> "SceneNode":
        """Remove a child node."""
        if child in self.children:
            self.children.remove(child)
            child.parent = None
        return self

    def set_translate(self, x: float, y: float, z: float) -> "SceneNode":
        self.translate = vec3(x, y, z)
        self._matrix_dirty = True
        return self

    def set_rotate(self, x: float, y: float, z: float) -> "SceneNode":
        self.rotate = vec3(x, y, z)
        self._matrix_dirty = True
        return self

    def set_scale(self, x: float, y: float, z: float) -> "SceneNode":
        self.scale = vec3(x, y, z)
        self._matrix_dirty = True
        return self

    # ── Attribute access for transform channels ──

    def _channel(self, attribute: str) -> Optional[tuple[Vec3, int]]:
        for vec, names in ((self.translate, TRANSLATE_ATTRS),
                           (self.rotate, ROTATE_ATTRS),
                           (self.scale, SCALE_ATTRS)):
            if attribute in names:
                return vec, names.index(attribute)
        return None

    def get_value(self, attribute: str, default: Any = None) -> Any:
        channel = self._channel(attribute)
        if channel is not None:
            vec, axis = channel
            return float(vec[axis])
        if attribute == "inheritsTransform":
            return self.inherits_transform
        if attribute == "visibility":
            return self.visible
        if attribute == "matrix":
            return self.local_matrix.copy()
        if split_attribute(attribute)[0] == "worldMatrix":
            return self.world_matrix.copy()
        return super().get_value(attribute, default)

    def set_value(self, attribute: str, value: Any) -> None:
        channel = self._channel(attribute)
        if channel is not None:
            vec, axis = channel
            vec[axis] = float(value)
            self._matrix_dirty = True
            return
        if attribute == "inheritsTransform":
            self.inherits_transform = bool(value)
            self._matrix_dirty = True
            return
        if attribute == "visibility":
            self.visible = bool(value)
            return
        if attribute in ("matrix", "worldMatrix") or attribute.startswith("worldMatrix["):
            raise KeyError(f"{attribute!r} is an output attribute of {self.name!r}")
        super().set_value(attribute, value)

    # ── Matrices ──

    def update_local_matrix(self) -> None:
        """Recompute local matrix from translate, rotate, scale."""
        self.local_matrix = mat4_compose_euler(self.translate, self.rotate, self.scale)
        self._matrix_dirty = False

    def update_world_matrix(self, force: bool = False) -> None:
        """Recursively update world matrices for this node and all descendants."""
        if self._matrix_dirty or force:
            self.update_local_matrix()

        if self.parent is not None and self.inherits_transform:
            self.world_matrix = self.parent.world_matrix @ self.local_matrix
        else:
            self.world_matrix = self.local_matrix.copy()

        for child in self.children:
            child.update_world_matrix(force=force)

    @property
    def dag_path(self) -> str:
        """Full DAG path, e.g. ``|Root|Skeleton|hips``."""
        parts = []
        node: Optional[SceneNode] = self
        while node is not None and not isinstance(node, Scene):
            parts.append(node.name)
            node = node.parent
        return "|" + "|".join(reversed(parts))

    def shapes(self) -> list["ShapeNode"]:
        return [c for c in self.children if isinstance(c, ShapeNode)]


class JointNode(SceneNode):
    """A skeleton joint: a transform carrying bind-pose and display data."""

    node_type = JOINT_TYPE
    ATTRIBUTES = SceneNode.ATTRIBUTES | frozenset({
        "bindPose", "segmentScaleCompensate", "radius",
    })

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.values["segmentScaleCompensate"] = True
        self.values["radius"] = 1.0


class ShapeNode(SceneNode):
    """Geometry-bearing leaf of a transform. ``shape_type`` names its kind."""

    ATTRIBUTES = SceneNode.ATTRIBUTES | frozenset({"intermediateObject", "instObjGroups"})

    def __init__(self, name: str = "", shape_type: str = "shape"):
        super().__init__(name)
        self.node_type = shape_type
        self.values["intermediateObject"] = False

    @property
    def intermediate_object(self) -> bool:
        return bool(self.values.get("intermediateObject", False))


class MeshNode(ShapeNode):
    """A polygon mesh shape. ``inMesh`` feeds geometry, ``outMesh`` exposes it."""

    ATTRIBUTES = ShapeNode.ATTRIBUTES | frozenset({"inMesh", "outMesh"})

    def __init__(self, name: str = "", mesh: Optional[MeshInstance] = None):
        super().__init__(name, shape_type=MESH_TYPE)
        self.mesh = mesh

    @property
    def num_points(self) -> int:
        return self.mesh.num_points if self.mesh is not None else 0


class ResolutionKind(Enum):
    MESH = auto()
    UNSUPPORTED = auto()
    MISSING = auto()


@dataclass
class NodeResolution:
    """Result of resolving an identity path to a deformable shape."""
    kind: ResolutionKind
    transform: Optional[SceneNode] = None
    shape: Optional[ShapeNode] = None


class Scene(SceneNode):
    """Root scene node; owns every node, identity path and connection."""

    def __init__(self):
        super().__init__(name="world")
        self.scene = self
        self.nodes: list[DependencyNode] = []
        # name -> number of member nodes using it
        self._name_counts: Counter[str] = Counter()
        self._by_path: dict[str, DependencyNode] = {}
        # destination plug -> source plug (one source per destination)
        self._sources: dict[Plug, Plug] = {}
        # Serializes batched edits.
        self.lock = threading.RLock()

    # ── Node management ──

    def add_node(self, node: DependencyNode, parent: Optional[SceneNode] = None) -> DependencyNode:
        """Attach a new node, renaming it if its name is already taken."""
        if node.scene is not None:
            raise ValueError(f"{node!r} already belongs to a scene")
        node.name = self.unique_name(node.name)
        node.scene = self
        self.nodes.append(node)
        self._name_counts[node.name] += 1
        if isinstance(node, SceneNode):
            (parent if parent is not None else self).add(node)
        elif parent is not None:
            raise ValueError(f"{node!r} is not a DAG node and cannot be parented")
        return node

    def remove_node(self, node: DependencyNode) -> None:
        """Detach a node (and DAG descendants) with all of its connections."""
        if isinstance(node, SceneNode):
            for child in list(node.children):
                self.remove_node(child)
            if node.parent is not None:
                node.parent.remove(node)
        for dst, src in list(self._sources.items()):
            if dst.node is node or src.node is node:
                del self._sources[dst]
        for path, registered in list(self._by_path.items()):
            if registered is node:
                del self._by_path[path]
        if node.scene is self:
            self.nodes.remove(node)
            self._release_name(node.name)
        node.scene = None

    def _release_name(self, name: str) -> None:
        self._name_counts[name] -= 1
        if self._name_counts[name] <= 0:
            del self._name_counts[name]

    def _name_taken(self, name: str, ignore: Optional[DependencyNode]) -> bool:
        count = self._name_counts.get(name, 0)
        if ignore is not None and ignore.scene is self and ignore.name == name:
            count -= 1
        return count > 0

    def unique_name(self, name: str, ignore: Optional[DependencyNode] = None) -> str:
        """Return ``name``, or ``name`` with the next free numeric suffix."""
        if not self._name_taken(name, ignore):
            return name
        stem = _TRAILING_DIGITS_RE.sub("", name) or name
        i = 1
        while self._name_taken(f"{stem}{i}", ignore):
            i += 1
        return f"{stem}{i}"

    def rename_node(self, node: DependencyNode, name: str) -> str:
        new_name = self.unique_name(name, ignore=node)
        if node.scene is self:
            self._release_name(node.name)
            self._name_counts[new_name] += 1
        node.name = new_name
        return node.name

    def node_named(self, name: str) -> Optional[DependencyNode]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def nodes_of_type(self, node_type: str) -> list[DependencyNode]:
        return [n for n in self.nodes if n.node_type == node_type]

    # ── Identity paths ──

    def register_path(self, path: str, node: DependencyNode) -> None:
        self._by_path[path] = node

    def unregister_path(self, path: str) -> None:
        self._by_path.pop(path, None)

    def node_at(self, path: str) -> Optional[DependencyNode]:
        """Return the node created for an identity path, if any."""
        return self._by_path.get(path)

    def resolve_shape(self, path: str) -> NodeResolution:
        """Resolve an identity path to a mesh shape and its transform."""
        node = self.node_at(path)
        if node is None:
            return NodeResolution(ResolutionKind.MISSING)
        if isinstance(node, ShapeNode):
            shape, transform = node, node.parent
        elif isinstance(node, SceneNode):
            shapes = [s for s in node.shapes() if not s.intermediate_object]
            if not shapes:
                return NodeResolution(ResolutionKind.UNSUPPORTED, transform=node)
            shape, transform = shapes[0], node
        else:
            return NodeResolution(ResolutionKind.UNSUPPORTED)
        if isinstance(shape, MeshNode) and transform is not None:
            return NodeResolution(ResolutionKind.MESH, transform=transform, shape=shape)
        return NodeResolution(ResolutionKind.UNSUPPORTED, transform=transform, shape=shape)

    # ── Connections ──

    def _check_plug(self, plug: Plug) -> None:
        if plug.node.scene is not self:
            raise KeyError(f"{plug.node!r} is not part of this scene")
        plug.node.check_attribute(plug.attribute)

    def connect(self, src: Plug, dst: Plug, force: bool = False) -> Optional[Plug]:
        """Connect ``src -> dst``. Returns the source ``force`` replaced."""
        self._check_plug(src)
        self._check_plug(dst)
        if src == dst:
            raise ValueError(f"Cannot connect {src} to itself")
        previous = self._sources.get(dst)
        if previous == src:
            return None
        if previous is not None and not force:
            raise ValueError(f"{dst} is already connected from {previous}")
        self._sources[dst] = src
        return previous

    def disconnect(self, src: Plug, dst: Plug) -> None:
        if self._sources.get(dst) != src:
            raise ValueError(f"{src} is not connected to {dst}")
        del self._sources[dst]

    def source_of(self, dst: Plug) -> Optional[Plug]:
        return self._sources.get(dst)

    def destinations_of(self, src: Plug) -> list[Plug]:
        return [dst for dst, s in self._sources.items() if s == src]

    def incoming(self, node: DependencyNode) -> Iterator[tuple[Plug, Plug]]:
        """Yield ``(src, dst)`` for every connection into ``node``."""
        for dst, src in list(self._sources.items()):
            if dst.node is node:
                yield src, dst

    def is_connected(self, src: Plug, dst: Plug) -> bool:
        return self._sources.get(dst) == src

    def update(self) -> None:
        """Update all world matrices in the scene."""
        self.update_world_matrix(force=False)
