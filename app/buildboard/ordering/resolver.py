from __future__ import annotations

import math
from dataclasses import dataclass

# Approximate rendered card height (including margin) and column padding, in px.
DEFAULT_ITEM_EXTENT = 140
DEFAULT_CONTAINER_PADDING = 16


def resolve_index(
    pointer_offset: float,
    container_padding: float,
    estimated_item_extent: float,
    current_item_count: int,
) -> int:
    """
    Map a pointer offset (relative to the container's top edge) to an
    insertion index in ``[0, current_item_count]``.

    Every item is assumed to have the same extent; variable-height items
    will misplace the preview.
    """
    if current_item_count <= 0:
        return 0
    if estimated_item_extent <= 0:
        raise ValueError("estimated_item_extent must be positive")
    index = math.floor((pointer_offset - container_padding) / estimated_item_extent)
    return max(0, min(index, current_item_count))


@dataclass(frozen=True)
class DropGeometry:
    item_extent: float = DEFAULT_ITEM_EXTENT
    container_padding: float = DEFAULT_CONTAINER_PADDING

    def resolve(self, pointer_offset: float, current_item_count: int) -> int:
        return resolve_index(pointer_offset, self.container_padding, self.item_extent, current_item_count)
