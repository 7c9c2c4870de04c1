"""Caller-owned record of every node an import creates."""

from typing import Callable, Iterator, Optional

from rigforge.core.scene_graph import DependencyNode


class NodeRegistry:
    """Accumulates created nodes in creation order.

    Passed explicitly into each builder so the caller can undo an import
    (or inspect what it produced).  An optional ``on_register`` callback
    is invoked for each node as it is recorded.
    """

    def __init__(self, on_register: Optional[Callable[[DependencyNode], None]] = None):
        self._nodes: list[DependencyNode] = []
        self._ids: set[int] = set()
        self._on_register = on_register

    def register(self, node: DependencyNode) -> None:
        if id(node) in self._ids:
            return
        self._ids.add(id(node))
        self._nodes.append(node)
        if self._on_register is not None:
            self._on_register(node)

    def register_all(self, nodes) -> None:
        for node in nodes:
            self.register(node)

    @property
    def nodes(self) -> list[DependencyNode]:
        return list(self._nodes)

    def of_type(self, node_type: str) -> list[DependencyNode]:
        return [n for n in self._nodes if n.node_type == node_type]

    def __contains__(self, node: DependencyNode) -> bool:
        return id(node) in self._ids

    def __iter__(self) -> Iterator[DependencyNode]:
        return iter(list(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)

    def clear(self) -> None:
        self._nodes.clear()
        self._ids.clear()

    def undo(self) -> None:
        """Remove every registered node from its scene, newest first."""
        for node in reversed(self._nodes):
            if node.scene is not None:
                node.scene.remove_node(node)
        self.clear()
