"""Batched, all-or-nothing edits against a :class:`Scene`.

A :class:`GraphEdit` accumulates mutation intents without touching the
scene.  :meth:`GraphEdit.commit` applies them in order under the scene
lock; if any operation raises, every operation already applied is undone
in reverse order and the scene is left exactly as it was.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np

from rigforge.core.errors import GraphWireError
from rigforge.core.math_utils import as_mat4
from rigforge.core.node_types import create_node
from rigforge.core.scene_graph import DependencyNode, MeshNode, Plug, Scene, SceneNode

logger = logging.getLogger(__name__)

_MISSING = object()

Undo = Callable[[], None]


@dataclass
class _Op:
    description: str
    apply: Callable[[], Undo]


@dataclass
class EditResult:
    """Outcome of a commit: ``ok``, or the error and the operation that raised it."""
    ok: bool
    error: Optional[Exception] = None
    failed_op: Optional[str] = None
    created: list[DependencyNode] = field(default_factory=list)


class GraphEdit:
    """Transactional builder of scene mutations."""

    def __init__(self, scene: Scene):
        self.scene = scene
        self._ops: list[_Op] = []
        self._created: list[DependencyNode] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    def _add(self, description: str, apply: Callable[[], Undo]) -> None:
        if self._committed:
            raise RuntimeError("GraphEdit has already been committed")
        self._ops.append(_Op(description, apply))

    # ── Node creation ──

    def create_node(self, node_type: str, name: str = "",
                    parent: Optional[SceneNode] = None) -> DependencyNode:
        """Queue creation of a node. The returned node joins the scene on commit."""
        node = create_node(node_type, name)
        self._queue_add(node, parent, f"createNode {node_type} {node.name}")
        return node

    def duplicate_mesh(self, source: MeshNode, name: str,
                       parent: Optional[SceneNode] = None) -> MeshNode:
        """Queue a copy of ``source``'s current geometry as a new mesh shape."""
        if source.mesh is None:
            raise ValueError(f"{source.name!r} has no geometry to duplicate")
        node = MeshNode(name, source.mesh.copy(name))
        if parent is None:
            parent = source.parent
        self._queue_add(node, parent, f"duplicate {source.name} -> {name}")
        return node

    def _queue_add(self, node: DependencyNode, parent: Optional[SceneNode],
                   description: str) -> None:
        def apply() -> Undo:
            self.scene.add_node(node, parent)
            return lambda: self.scene.remove_node(node)

        self._add(description, apply)
        self._created.append(node)

    def rename_node(self, node: DependencyNode, name: str) -> None:
        def apply() -> Undo:
            old = node.name
            self.scene.rename_node(node, name)

            def undo():
                self.scene.rename_node(node, old)
            return undo

        self._add(f"rename {node.name} -> {name}", apply)

    # ── Connections ──

    def connect(self, src: Plug, dst: Plug, force: bool = False) -> None:
        """Queue ``src -> dst``. ``force`` replaces an existing source."""
        def apply() -> Undo:
            if self.scene.is_connected(src, dst):
                return lambda: None
            previous = self.scene.connect(src, dst, force=force)

            def undo():
                self.scene.disconnect(src, dst)
                if previous is not None:
                    self.scene.connect(previous, dst)
            return undo

        self._add(f"connect {src} -> {dst}", apply)

    def disconnect(self, src: Plug, dst: Plug) -> None:
        def apply() -> Undo:
            self.scene.disconnect(src, dst)
            return lambda: self.scene.connect(src, dst)

        self._add(f"disconnect {src} -> {dst}", apply)

    def clear_incoming(self, dst: Plug) -> None:
        """Queue removal of whatever drives ``dst`` (no-op when nothing does)."""
        def apply() -> Undo:
            src = self.scene.source_of(dst)
            if src is None:
                return lambda: None
            self.scene.disconnect(src, dst)
            return lambda: self.scene.connect(src, dst)

        self._add(f"clear incoming {dst}", apply)

    # ── Values ──

    def set_value(self, node: DependencyNode, attribute: str, value: Any) -> None:
        def apply() -> Undo:
            old = node.get_value(attribute, _MISSING)
            node.set_value(attribute, value)

            def undo():
                if old is _MISSING:
                    node.clear_value(attribute)
                else:
                    node.set_value(attribute, old)
            return undo

        self._add(f"setAttr {node.name}.{attribute}", apply)

    def set_matrix(self, node: DependencyNode, attribute: str, matrix) -> None:
        """Queue a 4x4 matrix value (validated when queued)."""
        self.set_value(node, attribute, as_mat4(matrix))

    def resize_array(self, node: DependencyNode, attribute: str, size: int) -> None:
        def apply() -> Undo:
            old = node.array_size(attribute)
            node.set_array_size(attribute, size)
            return lambda: node.set_array_size(attribute, old)

        self._add(f"resize {node.name}.{attribute}[{size}]", apply)

    def set_weights(self, deformer, weights: np.ndarray, normalize: bool = False) -> None:
        """Queue a full weight-matrix assignment as one operation."""
        weights = np.array(weights, dtype=np.float64)

        def apply() -> Undo:
            old = deformer.weights
            old_normalize = deformer.normalize_weights
            deformer.set_weights(weights, normalize=normalize)

            def undo():
                deformer.weights = old
                deformer.normalize_weights = old_normalize
            return undo

        self._add(f"setWeights {deformer.name} {weights.shape}", apply)

    # ── Commit ──

    def commit(self) -> EditResult:
        """Apply every queued operation, or none of them."""
        if self._committed:
            raise RuntimeError("GraphEdit has already been committed")
        self._committed = True
        undo_stack: list[Undo] = []
        with self.scene.lock:
            for op in self._ops:
                try:
                    undo_stack.append(op.apply())
                except Exception as exc:
                    logger.warning("Graph edit failed at '%s': %s (rolling back %d ops)",
                                   op.description, exc, len(undo_stack))
                    for undo in reversed(undo_stack):
                        undo()
                    return EditResult(ok=False, error=exc, failed_op=op.description)
        return EditResult(ok=True, created=list(self._created))

    def commit_or_raise(self) -> EditResult:
        """Commit, raising :class:`GraphWireError` if the edit was rolled back."""
        result = self.commit()
        if not result.ok:
            raise GraphWireError(f"{result.failed_op}: {result.error}") from result.error
        return result
