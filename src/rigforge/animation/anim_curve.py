"""Keyed animation curves driving a single scalar channel."""

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from rigforge.constants import ANIM_CURVE_TYPE
from rigforge.core.scene_graph import DependencyNode


class AnimCurve(DependencyNode):
    """Time -> value curve with linear interpolation.

    Outside the keyed range the first/last key value holds.  The curve's
    ``output`` plug is connected to the channel it animates.
    """

    node_type = ANIM_CURVE_TYPE
    ATTRIBUTES = DependencyNode.ATTRIBUTES | frozenset({"output", "input"})

    def __init__(self, name: str = ""):
        super().__init__(name)
        self._times: NDArray[np.float64] = np.zeros(0)
        self._values: NDArray[np.float64] = np.zeros(0)

    @property
    def num_keys(self) -> int:
        return len(self._times)

    @property
    def key_times(self) -> NDArray[np.float64]:
        return self._times.copy()

    @property
    def key_values(self) -> NDArray[np.float64]:
        return self._values.copy()

    def add_keys(self, times: Sequence[float], values: Sequence[float]) -> None:
        """Append keys. Times must be strictly increasing and follow existing keys."""
        times = np.asarray(times, dtype=np.float64).reshape(-1)
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if len(times) != len(values):
            raise ValueError(
                f"{self.name}: {len(times)} key times but {len(values)} key values")
        if not np.all(np.isfinite(times)) or not np.all(np.isfinite(values)):
            raise ValueError(f"{self.name}: key times and values must be finite")
        if len(times) > 1 and np.any(np.diff(times) <= 0):
            raise ValueError(f"{self.name}: key times must be strictly increasing")
        if len(times) and self.num_keys and times[0] <= self._times[-1]:
            raise ValueError(f"{self.name}: new keys must follow the last existing key")
        self._times = np.concatenate([self._times, times])
        self._values = np.concatenate([self._values, values])

    def evaluate(self, time: float) -> float:
        if self.num_keys == 0:
            return 0.0
        return float(np.interp(time, self._times, self._values))
