"""
Ordered-collection and hierarchy reordering engine.

Pure Python, no Flask or database imports: the boards, the menu builder and
the module catalog load their rows into these structures, mutate them, and
write the resulting snapshot back.
"""
from .board import Board
from .buckets import ColumnMutator
from .errors import InvalidTarget, NotFound, OrderingError
from .nodes import BRANCH, LEAF, Branch, Container, Leaf, Node, is_contiguous
from .resolver import DEFAULT_CONTAINER_PADDING, DEFAULT_ITEM_EXTENT, DropGeometry, resolve_index
from .session import DragController, DragSession, DragState, HoverTarget
from .tree import TreeMutator

__all__ = [
    "BRANCH",
    "Board",
    "Branch",
    "ColumnMutator",
    "Container",
    "DEFAULT_CONTAINER_PADDING",
    "DEFAULT_ITEM_EXTENT",
    "DragController",
    "DragSession",
    "DragState",
    "DropGeometry",
    "HoverTarget",
    "InvalidTarget",
    "LEAF",
    "Leaf",
    "Node",
    "NotFound",
    "OrderingError",
    "TreeMutator",
    "is_contiguous",
    "resolve_index",
]
