"""Mesh data structures for geometry storage."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray


@dataclass
class BufferGeometry:
    """Stores point attribute arrays for a mesh.

    positions: Nx3 flat float64 array (x,y,z per point)
    normals: Nx3 flat float64 array, optional
    indices: triangle index array (uint32), optional for point-only geometry
    """
    positions: NDArray[np.float64]
    normals: Optional[NDArray[np.float64]] = None
    indices: Optional[NDArray[np.uint32]] = None
    vertex_count: int = 0

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1)
        if self.vertex_count == 0:
            self.vertex_count = len(self.positions) // 3

    @property
    def points(self) -> NDArray[np.float64]:
        """Positions viewed as an (N, 3) array."""
        return self.positions.reshape(-1, 3)[:self.vertex_count]

    @property
    def triangle_count(self) -> int:
        if self.indices is not None:
            return len(self.indices) // 3
        return 0

    @property
    def has_indices(self) -> bool:
        return self.indices is not None and len(self.indices) > 0

    def compute_normals(self) -> None:
        """Compute per-vertex normals by accumulating indexed face normals."""
        pos = self.positions.reshape(-1, 3)
        norms = np.zeros_like(pos)
        if self.has_indices:
            tri = self.indices.reshape(-1, 3).astype(np.int64)
            v0, v1, v2 = pos[tri[:, 0]], pos[tri[:, 1]], pos[tri[:, 2]]
            face_n = np.cross(v1 - v0, v2 - v0)
            for k in range(3):
                np.add.at(norms, tri[:, k], face_n)
        lengths = np.linalg.norm(norms, axis=1, keepdims=True)
        lengths = np.maximum(lengths, 1e-10)
        self.normals = (norms / lengths).ravel()

    def clone(self) -> "BufferGeometry":
        """Create a deep copy."""
        return BufferGeometry(
            positions=self.positions.copy(),
            normals=self.normals.copy() if self.normals is not None else None,
            indices=self.indices.copy() if self.indices is not None else None,
            vertex_count=self.vertex_count,
        )


@dataclass
class MeshInstance:
    """Geometry owned by a mesh shape node."""
    name: str
    geometry: BufferGeometry
    visible: bool = True

    @property
    def num_points(self) -> int:
        return self.geometry.vertex_count

    @property
    def positions(self) -> NDArray[np.float64]:
        return self.geometry.positions

    @positions.setter
    def positions(self, value: NDArray[np.float64]):
        self.geometry.positions = np.asarray(value, dtype=np.float64).reshape(-1)

    def copy(self, name: str) -> "MeshInstance":
        return MeshInstance(name=name, geometry=self.geometry.clone(), visible=self.visible)
