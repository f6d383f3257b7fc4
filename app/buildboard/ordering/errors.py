from __future__ import annotations


class OrderingError(Exception):
    """Base class for rejected reorder / structural operations."""


class NotFound(OrderingError):
    """Referenced item, container or parent does not exist."""

    def __init__(self, kind: str, ref: str | None):
        self.kind = kind
        self.ref = ref
        super().__init__(f"{kind} not found: {ref!r}")


class InvalidTarget(OrderingError):
    """A tree reparent would make a node its own ancestor."""

    def __init__(self, dragged_id: str, target_id: str):
        self.dragged_id = dragged_id
        self.target_id = target_id
        super().__init__(f"Cannot move {dragged_id!r} into {target_id!r}: target is the node itself or one of its descendants")
