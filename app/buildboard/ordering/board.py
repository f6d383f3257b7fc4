"""
Flat ordered containers (kanban columns).

All lookups and guards run before anything is touched; a rejected call
leaves the board exactly as it was.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from .errors import NotFound
from .nodes import Container, Leaf, clamp_index, index_of, node_to_dict, renumber_in_place

logger = logging.getLogger(__name__)


class Board:
    hierarchical = False

    def __init__(self, containers: Iterable[Container] = (), *, status_field: str | None = "status"):
        # Payload key mirroring the owning column (e.g. "draft" / "published"); None disables it.
        self.status_field = status_field
        self._containers: list[Container] = []
        for c in containers:
            self._adopt(c)

    def _adopt(self, c: Container) -> None:
        if any(existing.id == c.id for existing in self._containers):
            raise ValueError(f"Duplicate container id: {c.id!r}")
        items = list(c.items)
        for item in items:
            item.container_id = c.id
            if self.status_field:
                item.payload[self.status_field] = c.id
        renumber_in_place(items)
        self._containers.append(Container(id=c.id, label=c.label, items=items))

    # ---------- lookups ----------
    @property
    def containers(self) -> tuple[Container, ...]:
        return tuple(self._containers)

    def container(self, container_id: str) -> Container:
        for c in self._containers:
            if c.id == container_id:
                return c
        raise NotFound("container", container_id)

    def locate(self, item_id: str) -> tuple[Container, int]:
        for c in self._containers:
            i = index_of(c.items, item_id)
            if i >= 0:
                return c, i
        raise NotFound("item", item_id)

    def item(self, item_id: str) -> Leaf:
        c, i = self.locate(item_id)
        return c.items[i]

    def item_count(self, container_id: str) -> int:
        return len(self.container(container_id).items)

    def index_in(self, item_id: str, container_id: str) -> int:
        i = index_of(self.container(container_id).items, item_id)
        if i < 0:
            raise NotFound("item", item_id)
        return i

    def count(self) -> int:
        return sum(len(c.items) for c in self._containers)

    # ---------- moves ----------
    def move_item(self, item_id: str, source_container_id: str, target_container_id: str, target_index: int) -> list[dict[str, Any]]:
        src = self.container(source_container_id)
        dst = self.container(target_container_id)
        idx = index_of(src.items, item_id)
        if idx < 0:
            raise NotFound("item", item_id)

        src_items = list(src.items)
        node = src_items.pop(idx)
        dst_items = src_items if dst is src else list(dst.items)
        final_index = clamp_index(target_index, len(dst_items))
        dst_items.insert(final_index, node)

        if dst is not src:
            node.container_id = dst.id
            if self.status_field:
                node.payload[self.status_field] = dst.id
            renumber_in_place(src_items)
            src.items = src_items
        renumber_in_place(dst_items)
        dst.items = dst_items

        logger.debug("move_item %s: %s[%s] -> %s[%s]", item_id, src.id, idx, dst.id, final_index)
        return self.snapshot()

    def drop(self, item_id: str, source_container_id: str, target_container_id: str, target_index: int) -> list[dict[str, Any]]:
        return self.move_item(item_id, source_container_id, target_container_id, target_index)

    # ---------- cards ----------
    def add_item(self, container_id: str, item_id: str, payload: dict[str, Any] | None = None) -> Leaf:
        c = self.container(container_id)
        if any(index_of(other.items, item_id) >= 0 for other in self._containers):
            raise ValueError(f"Duplicate item id: {item_id!r}")
        data = dict(payload or {})
        if self.status_field:
            data[self.status_field] = c.id
        node = Leaf(id=item_id, order=len(c.items), payload=data, container_id=c.id)
        c.items = [*c.items, node]
        return node

    def update_item(self, item_id: str, changes: dict[str, Any]) -> Leaf:
        node = self.item(item_id)
        data = {k: v for k, v in changes.items() if k != self.status_field}
        node.payload.update(data)
        return node

    def remove_item(self, item_id: str) -> Leaf:
        c, idx = self.locate(item_id)
        items = list(c.items)
        node = items.pop(idx)
        renumber_in_place(items)
        c.items = items
        return node

    # ---------- columns ----------
    def add_container(self, container_id: str, label: str) -> Container:
        self._adopt(Container(id=container_id, label=label))
        return self._containers[-1]

    def rename_container(self, container_id: str, label: str) -> Container:
        c = self.container(container_id)
        c.label = label
        return c

    def remove_container(self, container_id: str) -> list[Leaf]:
        """
        Drop a column, moving its items to the end of the first column.
        The first column itself cannot be removed.
        """
        c = self.container(container_id)
        pos = self._containers.index(c)
        if pos == 0:
            raise ValueError("The first column cannot be removed.")
        first = self._containers[0]
        moved = list(c.items)
        for node in moved:
            node.container_id = first.id
            if self.status_field:
                node.payload[self.status_field] = first.id
        merged = [*first.items, *moved]
        renumber_in_place(merged)
        first.items = merged
        self._containers = [x for x in self._containers if x is not c]
        logger.info("remove_container %s: %d item(s) moved to %s", container_id, len(moved), first.id)
        return moved

    # ---------- views ----------
    def snapshot(self) -> list[dict[str, Any]]:
        return [
            {"id": c.id, "label": c.label, "items": [node_to_dict(n) for n in c.items]}
            for c in self._containers
        ]

    def filtered(self, predicate: Callable[[Leaf], bool]) -> list[dict[str, Any]]:
        """Snapshot restricted to matching items; order values are left untouched."""
        return [
            {"id": c.id, "label": c.label, "items": [node_to_dict(n) for n in c.items if predicate(n)]}
            for c in self._containers
        ]
