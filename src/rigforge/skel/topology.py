"""Joint parent/child relationships of a skeleton."""

from typing import Sequence

import numpy as np


class Topology:
    """Parent index per joint; -1 marks a root."""

    def __init__(self, parents: Sequence[int]):
        self.parents = np.asarray(parents, dtype=np.int64).reshape(-1)

    @classmethod
    def from_paths(cls, joint_paths: Sequence[str]) -> "Topology":
        """Derive parents from slash-separated joint paths.

        A joint's parent is the joint whose path is its parent path;
        joints with no such ancestor in the list are roots.
        """
        index = {path: i for i, path in enumerate(joint_paths) if path}
        parents = []
        for path in joint_paths:
            parent_path = path.rpartition("/")[0]
            parents.append(index.get(parent_path, -1) if parent_path else -1)
        return cls(parents)

    def __len__(self) -> int:
        return len(self.parents)

    @property
    def num_joints(self) -> int:
        return len(self.parents)

    def get_parent(self, index: int) -> int:
        return int(self.parents[index])

    def is_root(self, index: int) -> bool:
        return self.parents[index] < 0

    def children(self, index: int) -> list[int]:
        return [int(c) for c in np.flatnonzero(self.parents == index)]

    def roots(self) -> list[int]:
        return [int(r) for r in np.flatnonzero(self.parents < 0)]

    def validate(self) -> tuple[bool, str]:
        """Check that every parent precedes its children.

        Returns ``(ok, reason)``; ``reason`` is empty when valid.
        """
        for i, p in enumerate(self.parents):
            if p >= len(self.parents):
                return False, f"joint {i} has out-of-range parent {p}"
            if p >= i:
                return False, f"joint {i} has parent {p}, which does not precede it"
        return True, ""
