"""
Bucket reclassification: a board whose columns are a tag on each item
(e.g. "core" vs "additional" modules) rather than separate containers.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from .errors import NotFound
from .nodes import Leaf, clamp_index, index_of, node_to_dict, renumber_in_place

logger = logging.getLogger(__name__)


class ColumnMutator:
    hierarchical = False

    def __init__(self, buckets: Sequence[str], items: Iterable[Leaf] = (), *, bucket_field: str = "bucket"):
        if not buckets:
            raise ValueError("At least one bucket is required")
        self.buckets = tuple(buckets)
        self.bucket_field = bucket_field
        self._items: list[Leaf] = []
        for item in items:
            if self._bucket_of(item) not in self.buckets:
                raise NotFound("bucket", self._bucket_of(item))
            item.container_id = self._bucket_of(item)
            self._items.append(item)
        for b in self.buckets:
            renumber_in_place(self.members(b))

    def _bucket_of(self, item: Leaf) -> str:
        return item.payload.get(self.bucket_field)

    def _require_bucket(self, bucket: str) -> None:
        if bucket not in self.buckets:
            raise NotFound("bucket", bucket)

    def members(self, bucket: str) -> list[Leaf]:
        # Stable sort keeps load order for ties, so duplicate order values get resolved deterministically.
        return sorted((i for i in self._items if self._bucket_of(i) == bucket), key=lambda i: i.order)

    def item(self, item_id: str) -> Leaf:
        i = index_of(self._items, item_id)
        if i < 0:
            raise NotFound("item", item_id)
        return self._items[i]

    def item_count(self, bucket: str) -> int:
        self._require_bucket(bucket)
        return len(self.members(bucket))

    def index_in(self, item_id: str, bucket: str) -> int:
        self._require_bucket(bucket)
        i = index_of(self.members(bucket), item_id)
        if i < 0:
            raise NotFound("item", item_id)
        return i

    def count(self) -> int:
        return len(self._items)

    def add_item(self, bucket: str, item_id: str, payload: dict[str, Any] | None = None) -> Leaf:
        self._require_bucket(bucket)
        if index_of(self._items, item_id) >= 0:
            raise ValueError(f"Duplicate item id: {item_id!r}")
        data = dict(payload or {})
        data[self.bucket_field] = bucket
        node = Leaf(id=item_id, order=len(self.members(bucket)), payload=data, container_id=bucket)
        self._items.append(node)
        return node

    def reclassify(self, item_id: str, new_bucket: str, target_index: int) -> dict[str, list[dict[str, Any]]]:
        node = self.item(item_id)
        self._require_bucket(new_bucket)
        old_bucket = self._bucket_of(node)

        source = [i for i in self.members(old_bucket) if i.id != item_id]
        target = source if new_bucket == old_bucket else self.members(new_bucket)
        # Empty bucket -> 0, past the end -> len(target)
        final_index = clamp_index(target_index, len(target))
        target.insert(final_index, node)

        node.payload[self.bucket_field] = new_bucket
        node.container_id = new_bucket
        if target is not source:
            renumber_in_place(source)
        renumber_in_place(target)
        logger.debug("reclassify %s: %s -> %s[%s]", item_id, old_bucket, new_bucket, final_index)
        return self.snapshot()

    def drop(self, item_id: str, source_bucket: str, target_bucket: str, target_index: int) -> dict[str, list[dict[str, Any]]]:
        return self.reclassify(item_id, target_bucket, target_index)

    def toggle_flag(self, item_id: str, flag: str = "enabled") -> bool:
        node = self.item(item_id)
        node.payload[flag] = not bool(node.payload.get(flag, True))
        return node.payload[flag]

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {b: [node_to_dict(n) for n in self.members(b)] for b in self.buckets}
