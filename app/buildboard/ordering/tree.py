"""
Hierarchical ordering (menu builder).

The tree is treated as immutable: each structural edit rebuilds only the
nodes on the path from the root to the edited sibling list, reuses every
other subtree by reference, and swaps the new root list in at the very end.
A rejected edit therefore never leaves a half-applied tree behind.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from .errors import InvalidTarget, NotFound
from .nodes import BRANCH, LEAF, Branch, Node, clamp_index, index_of, make_node, node_to_dict, renumbered

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")


def _new_id() -> str:
    return uuid.uuid4().hex


def _path_to(nodes: list[Node], node_id: str) -> list[Node]:
    """Nodes from a root down to ``node_id`` inclusive; empty if absent."""
    for n in nodes:
        if n.id == node_id:
            return [n]
        if isinstance(n, Branch):
            sub = _path_to(n.children, node_id)
            if sub:
                return [n, *sub]
    return []


def _normalised(nodes: Iterable[Node], parent_id: str | None) -> list[Node]:
    """Stamp ``parent_id`` on every level and renumber each sibling list to 0..n-1."""
    out: list[Node] = []
    for i, n in enumerate(nodes):
        changes: dict[str, Any] = {}
        if n.order != i:
            changes["order"] = i
        if n.parent_id != parent_id:
            changes["parent_id"] = parent_id
        if n.container_id is not None:
            changes["container_id"] = None
        if isinstance(n, Branch):
            children = _normalised(n.children, n.id)
            if any(a is not b for a, b in zip(children, n.children)):
                changes["children"] = children
        out.append(replace(n, **changes) if changes else n)
    return out


def _without(nodes: list[Node], node_id: str) -> list[Node]:
    if index_of(nodes, node_id) < 0:
        raise NotFound("node", node_id)
    return [n for n in nodes if n.id != node_id]


def _splice(roots: list[Node], path: list[Node], new_node: Node) -> list[Node]:
    """Replace ``path[-1]`` with ``new_node``, copying its ancestors only."""
    for ancestor in reversed(path[:-1]):
        if not isinstance(ancestor, Branch):
            raise NotFound("branch", ancestor.id)
        children = [new_node if c.id == new_node.id else c for c in ancestor.children]
        new_node = replace(ancestor, children=children)
    return [new_node if r.id == new_node.id else r for r in roots]


def _count(nodes: Iterable[Node]) -> int:
    total = 0
    for n in nodes:
        total += 1
        if isinstance(n, Branch):
            total += _count(n.children)
    return total


class TreeMutator:
    hierarchical = True

    def __init__(self, roots: Iterable[Node] = (), *, id_factory: Callable[[], str] = _new_id):
        self._roots: list[Node] = _normalised(roots, None)
        self._id_factory = id_factory

    # ---------- construction ----------
    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]], **kwargs: Any) -> "TreeMutator":
        """
        Build a tree from flat records carrying ``id``, ``parent_id``,
        ``order``, ``kind`` and ``payload``. Rows whose parent is missing
        become roots; sibling orders are renumbered to ``0..n-1``.
        """
        rows = list(rows)
        ids = {str(r["id"]) for r in rows}
        by_parent: dict[str | None, list[Mapping[str, Any]]] = {}
        for r in rows:
            pid = r.get("parent_id")
            pid = str(pid) if pid is not None else None
            if pid is not None and pid not in ids:
                logger.warning("Menu row %s references missing parent %s; treating as root", r["id"], pid)
                pid = None
            by_parent.setdefault(pid, []).append(r)

        seen: set[str] = set()

        def build(parent_id: str | None) -> list[Node]:
            out: list[Node] = []
            siblings = sorted(by_parent.get(parent_id, []), key=lambda r: (r.get("order") or 0, str(r["id"])))
            for i, r in enumerate(siblings):
                nid = str(r["id"])
                if nid in seen:
                    continue
                seen.add(nid)
                kind = r.get("kind") or LEAF
                fields: dict[str, Any] = {
                    "order": i,
                    "payload": dict(r.get("payload") or {}),
                    "parent_id": parent_id,
                }
                if kind == BRANCH:
                    fields["children"] = build(nid)
                out.append(make_node(kind, nid, **fields))
            return renumbered(out)

        roots = build(None)
        dropped = ids - seen
        if dropped:
            logger.warning("Dropped %d unreachable menu row(s): %s", len(dropped), ", ".join(sorted(dropped)))
        return cls(roots, **kwargs)

    # ---------- lookups ----------
    @property
    def roots(self) -> tuple[Node, ...]:
        return tuple(self._roots)

    def find(self, node_id: str) -> Node:
        path = _path_to(self._roots, node_id)
        if not path:
            raise NotFound("node", node_id)
        return path[-1]

    def ancestors(self, node_id: str) -> list[Node]:
        """Ancestors of ``node_id``, nearest first."""
        path = _path_to(self._roots, node_id)
        if not path:
            raise NotFound("node", node_id)
        return list(reversed(path[:-1]))

    def siblings(self, parent_id: str | None) -> tuple[Node, ...]:
        if parent_id is None:
            return tuple(self._roots)
        parent = self.find(parent_id)
        if not isinstance(parent, Branch):
            raise NotFound("branch", parent_id)
        return tuple(parent.children)

    def item_count(self, parent_id: str | None) -> int:
        return len(self.siblings(parent_id))

    def index_in(self, node_id: str, parent_id: str | None) -> int:
        i = index_of(self.siblings(parent_id), node_id)
        if i < 0:
            raise NotFound("node", node_id)
        return i

    def count(self) -> int:
        return _count(self._roots)

    def walk(self) -> Iterator[tuple[Node, int]]:
        """Depth-first (node, depth) pairs in display order."""
        stack: list[tuple[Node, int]] = [(n, 0) for n in reversed(self._roots)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            if isinstance(node, Branch):
                stack.extend((c, depth + 1) for c in reversed(node.children))

    # ---------- internal ----------
    def _edit_siblings(self, roots: list[Node], parent_id: str | None, edit: Callable[[list[Node]], list[Node]]) -> list[Node]:
        if parent_id is None:
            return renumbered(edit(list(roots)))
        path = _path_to(roots, parent_id)
        if not path or not isinstance(path[-1], Branch):
            raise NotFound("branch", parent_id)
        parent = path[-1]
        new_parent = replace(parent, children=renumbered(edit(list(parent.children))))
        return _splice(roots, path, new_parent)

    def _replace_node(self, node_id: str, **changes: Any) -> Node:
        path = _path_to(self._roots, node_id)
        if not path:
            raise NotFound("node", node_id)
        new_node = replace(path[-1], **changes)
        self._roots = _splice(self._roots, path, new_node)
        return new_node

    # ---------- edits ----------
    def add_root(self, label: str, *, kind: str = BRANCH, node_id: str | None = None, **payload: Any) -> Node:
        node = make_node(
            kind,
            node_id or self._id_factory(),
            order=len(self._roots),
            payload={"label": label, "visible": True, **payload},
            parent_id=None,
        )
        self._roots = [*self._roots, node]
        return node

    def add_child(self, parent_id: str, label: str, *, kind: str = LEAF, node_id: str | None = None, **payload: Any) -> Node:
        parent = self.find(parent_id)
        if not isinstance(parent, Branch):
            raise NotFound("branch", parent_id)
        node = make_node(
            kind,
            node_id or self._id_factory(),
            order=len(parent.children),
            payload={"label": label, "visible": True, **payload},
            parent_id=parent_id,
        )
        self._roots = self._edit_siblings(self._roots, parent_id, lambda kids: [*kids, node])
        return node

    def rename(self, node_id: str, label: str) -> Node:
        node = self.find(node_id)
        return self._replace_node(node_id, payload={**node.payload, "label": label})

    def toggle_visible(self, node_id: str) -> Node:
        node = self.find(node_id)
        visible = not bool(node.payload.get("visible", True))
        return self._replace_node(node_id, payload={**node.payload, "visible": visible})

    def update_payload(self, node_id: str, changes: Mapping[str, Any]) -> Node:
        node = self.find(node_id)
        return self._replace_node(node_id, payload={**node.payload, **changes})

    def remove(self, node_id: str) -> int:
        """Remove a node and all of its descendants; returns how many nodes went away."""
        node = self.find(node_id)
        removed = _count([node])
        self._roots = self._edit_siblings(self._roots, node.parent_id, lambda kids: _without(kids, node_id))
        logger.debug("remove %s (%d node(s))", node_id, removed)
        return removed

    def move_into(self, dragged_id: str, target_id: str) -> Node:
        """Reparent ``dragged_id`` as the first child of ``target_id``."""
        dragged = self.find(dragged_id)
        target_path = _path_to(self._roots, target_id)
        if not target_path:
            raise NotFound("node", target_id)
        if dragged_id == target_id or any(a.id == dragged_id for a in target_path[:-1]):
            raise InvalidTarget(dragged_id, target_id)
        if not isinstance(target_path[-1], Branch):
            raise NotFound("branch", target_id)

        moved = replace(dragged, parent_id=target_id, order=0)
        roots = self._edit_siblings(self._roots, dragged.parent_id, lambda kids: _without(kids, dragged_id))
        roots = self._edit_siblings(roots, target_id, lambda kids: [moved, *kids])
        self._roots = roots
        logger.debug("move_into %s -> %s", dragged_id, target_id)
        return self.find(dragged_id)

    def move_to(self, node_id: str, parent_id: str | None, index: int) -> Node:
        """Reparent (or reorder) ``node_id`` to ``index`` within ``parent_id``'s children."""
        node = self.find(node_id)
        if parent_id is not None:
            target_path = _path_to(self._roots, parent_id)
            if not target_path:
                raise NotFound("node", parent_id)
            if node_id == parent_id or any(a.id == node_id for a in target_path[:-1]):
                raise InvalidTarget(node_id, parent_id)
            if not isinstance(target_path[-1], Branch):
                raise NotFound("branch", parent_id)

        moved = replace(node, parent_id=parent_id)

        def _insert(kids: list[Node]) -> list[Node]:
            kids.insert(clamp_index(index, len(kids)), moved)
            return kids

        roots = self._edit_siblings(self._roots, node.parent_id, lambda kids: _without(kids, node_id))
        self._roots = self._edit_siblings(roots, parent_id, _insert)
        return self.find(node_id)

    def swap_with_sibling(self, node_id: str, direction: str) -> bool:
        """Swap with the adjacent sibling; returns False when already at that end."""
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
        node = self.find(node_id)
        kids = self.siblings(node.parent_id)
        idx = index_of(kids, node_id)
        if idx < 0:
            raise NotFound("node", node_id)
        new_idx = max(0, idx - 1) if direction == "up" else min(len(kids) - 1, idx + 1)
        if new_idx == idx:
            return False

        def _swap(items: list[Node]) -> list[Node]:
            items[idx], items[new_idx] = items[new_idx], items[idx]
            return items

        self._roots = self._edit_siblings(self._roots, node.parent_id, _swap)
        return True

    def drop(self, item_id: str, source_parent_id: str | None, target_id: str, target_index: int) -> list[dict[str, Any]]:
        self.move_into(item_id, target_id)
        return self.snapshot()

    # ---------- views ----------
    def snapshot(self) -> list[dict[str, Any]]:
        return [node_to_dict(n) for n in self._roots]

    def flatten(self) -> list[dict[str, Any]]:
        """Parent-before-child flat rows, the inverse of ``from_rows``."""
        return [
            {
                "id": node.id,
                "parent_id": node.parent_id,
                "order": node.order,
                "kind": node.kind,
                "payload": dict(node.payload),
            }
            for node, _depth in self.walk()
        ]
