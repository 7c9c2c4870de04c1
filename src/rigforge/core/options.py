"""Import options controlling which parts of a rig are translated."""

from dataclasses import dataclass, field, fields
from typing import Any, Optional


@dataclass
class ImportOptions:
    """User-facing switches for a skeleton import."""
    # Animation
    read_anim_data: bool = True
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    # Bind pose record (dagPose) for the skin clusters
    create_bind_pose: bool = True

    # Prim paths the mesh import step leaves out; their skinning is skipped
    excluded_prims: list[str] = field(default_factory=list)

    @property
    def use_custom_frame_range(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def set_frame_range(self, start: float, end: float) -> None:
        if start > end:
            raise ValueError(f"start_time {start} is after end_time {end}")
        self.start_time = float(start)
        self.end_time = float(end)

    def is_excluded(self, prim_path: str) -> bool:
        return prim_path in self.excluded_prims

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown import options: {', '.join(sorted(unknown))}")
        opts = cls(**data)
        opts.excluded_prims = list(opts.excluded_prims)
        if opts.use_custom_frame_range:
            opts.set_frame_range(opts.start_time, opts.end_time)
        return opts
