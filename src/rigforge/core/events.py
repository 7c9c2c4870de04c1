"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Skeleton import
    JOINTS_CREATED = auto()       # data: container (SceneNode), count (int)
    ANIMATION_SAMPLED = auto()    # data: num_samples (int), animated (bool)
    BIND_POSE_CREATED = auto()    # data: node (DependencyNode)

    # Skin binding, one event per mesh
    MESH_BOUND = auto()           # data: result (SkinBindResult)
    MESH_SKIPPED = auto()         # data: result (SkinBindResult)
    MESH_FAILED = auto()          # data: result (SkinBindResult)

    IMPORT_COMPLETE = auto()      # data: result (ImportResult)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        for handler in list(self._handlers[event_type]):
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
