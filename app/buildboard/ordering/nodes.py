"""
Orderable units shared by the boards, the menu tree and the module catalog.

A Node is either a Leaf or a Branch. Only a Branch owns children, so every
traversal switches on the concrete type instead of probing for a children
attribute.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Union

LEAF = "leaf"
BRANCH = "branch"
KINDS = (LEAF, BRANCH)


@dataclass
class Leaf:
    id: str
    order: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    container_id: str | None = None
    parent_id: str | None = None

    kind: ClassVar[str] = LEAF


@dataclass
class Branch:
    id: str
    order: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    container_id: str | None = None
    parent_id: str | None = None
    children: list["Node"] = field(default_factory=list)

    kind: ClassVar[str] = BRANCH


Node = Union[Leaf, Branch]


@dataclass
class Container:
    id: str
    label: str
    items: list[Leaf] = field(default_factory=list)


def make_node(kind: str, node_id: str, **fields: Any) -> Node:
    if kind == BRANCH:
        return Branch(id=node_id, **fields)
    if kind == LEAF:
        fields.pop("children", None)
        return Leaf(id=node_id, **fields)
    raise ValueError(f"Unknown node kind: {kind!r}")


def renumbered(nodes: Iterable[Node]) -> list[Node]:
    """
    Copy-on-write renumbering: nodes whose order already matches their
    position are reused as-is, the rest are replaced.
    """
    out: list[Node] = []
    for i, n in enumerate(nodes):
        out.append(n if n.order == i else replace(n, order=i))
    return out


def renumber_in_place(nodes: Sequence[Node]) -> None:
    for i, n in enumerate(nodes):
        n.order = i


def is_contiguous(nodes: Sequence[Node]) -> bool:
    return [n.order for n in nodes] == list(range(len(nodes)))


def index_of(nodes: Sequence[Node], node_id: str) -> int:
    for i, n in enumerate(nodes):
        if n.id == node_id:
            return i
    return -1


def clamp_index(index: int, length: int) -> int:
    return max(0, min(int(index), length))


def node_to_dict(node: Node) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": node.id,
        "order": node.order,
        "kind": node.kind,
        "payload": dict(node.payload),
    }
    if node.container_id is not None:
        d["container_id"] = node.container_id
    else:
        d["parent_id"] = node.parent_id
    if isinstance(node, Branch):
        d["children"] = [node_to_dict(c) for c in node.children]
    return d
