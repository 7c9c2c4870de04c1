"""Conversion of sparse per-point joint influences to dense weight matrices."""

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix


def compute_dense_weights(
    joint_indices,
    joint_weights,
    num_joints: int,
    influences_per_point: int,
) -> NDArray[np.float64]:
    """Build the ``[num_points, num_joints]`` weight matrix.

    ``joint_indices`` / ``joint_weights`` hold ``influences_per_point``
    consecutive slots per point.  Slots referencing the same joint are
    summed; slots whose joint index is outside ``[0, num_joints)`` are
    dropped.  Rows are not renormalized.
    """
    indices = np.asarray(joint_indices, dtype=np.int64).reshape(-1)
    weights = np.asarray(joint_weights, dtype=np.float64).reshape(-1)
    if len(indices) != len(weights):
        raise ValueError(
            f"{len(indices)} influence indices but {len(weights)} influence weights")
    if influences_per_point <= 0:
        raise ValueError(f"influences_per_point must be positive, got {influences_per_point}")
    if len(indices) % influences_per_point:
        raise ValueError(
            f"{len(indices)} influence slots is not a multiple of {influences_per_point}")

    num_points = len(indices) // influences_per_point
    if num_points == 0 or num_joints <= 0:
        return np.zeros((num_points, max(num_joints, 0)))

    rows = np.repeat(np.arange(num_points), influences_per_point)
    valid = (indices >= 0) & (indices < num_joints)
    # COO -> dense sums duplicate (row, col) entries
    dense = coo_matrix(
        (weights[valid], (rows[valid], indices[valid])),
        shape=(num_points, num_joints),
    ).toarray()
    return np.asarray(dense, dtype=np.float64)


def normalize_rows(weights: NDArray[np.float64]) -> NDArray[np.float64]:
    """Scale each row to sum to 1. All-zero rows stay zero."""
    weights = np.asarray(weights, dtype=np.float64)
    sums = weights.sum(axis=1, keepdims=True)
    safe = np.where(np.abs(sums) > 1e-12, sums, 1.0)
    return weights / safe
