"""Wavefront OBJ parser -> BufferGeometry."""

from pathlib import Path

import numpy as np

from rigforge.core.mesh import BufferGeometry


def parse_obj(text: str) -> BufferGeometry:
    """Parse a Wavefront OBJ string into indexed BufferGeometry.

    Only ``v`` and ``f`` lines are read; point order is the ``v`` order,
    which is what skinning influences index.  Quads and n-gons are fan
    triangulated and smooth normals are computed from the triangles.

    Parameters
    ----------
    text : str
        The OBJ file contents.

    Returns
    -------
    BufferGeometry
        Indexed geometry with positions, normals, and triangle indices.
    """
    positions: list[list[float]] = []
    tri_indices: list[int] = []

    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        key = parts[0]

        if key == "v":
            if len(parts) < 4:
                raise ValueError(f"line {lineno}: vertex needs 3 coordinates")
            positions.append([float(parts[1]), float(parts[2]), float(parts[3])])
        elif key == "f":
            vi: list[int] = []
            for token in parts[1:]:
                index = int(token.split("/")[0])
                # OBJ is 1-based; negative indices count back from the last vertex
                vi.append(index - 1 if index > 0 else len(positions) + index)
            for k in range(1, len(vi) - 1):
                tri_indices.extend([vi[0], vi[k], vi[k + 1]])

    vertex_count = len(positions)
    if tri_indices and (min(tri_indices) < 0 or max(tri_indices) >= vertex_count):
        raise ValueError("face references a vertex that does not exist")

    geometry = BufferGeometry(
        positions=np.array(positions, dtype=np.float64).reshape(-1),
        indices=np.array(tri_indices, dtype=np.uint32),
        vertex_count=vertex_count,
    )
    geometry.compute_normals()
    return geometry


def load_obj_file(path) -> BufferGeometry:
    """Load an OBJ file from disk."""
    return parse_obj(Path(path).read_text())
