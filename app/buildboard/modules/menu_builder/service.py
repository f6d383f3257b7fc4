"""
Menu builder service layer.
Loads the stored menu into a TreeMutator, applies one edit, writes the tree back and audits it.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.buildboard.audit import record_event
from app.buildboard.ordering import BRANCH, LEAF, DragController, TreeMutator

from .models import MenuItem

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.buildboard.models import User

logger = logging.getLogger(__name__)

PAYLOAD_FIELDS = ("icon", "path", "module_key")

DEFAULT_MENU: list[dict[str, Any]] = [
    {"label": "Dashboard", "icon": "home", "path": "/dashboard", "module_key": "dashboard"},
    {
        "label": "Projects",
        "icon": "folder",
        "children": [
            {"label": "All Projects", "path": "/projects", "module_key": "projects"},
            {"label": "Programme", "path": "/programme", "module_key": "programme"},
            {"label": "Documents", "path": "/documents", "module_key": "documents"},
        ],
    },
    {
        "label": "CRM",
        "icon": "users",
        "children": [
            {"label": "Clients", "path": "/crm/clients", "module_key": "clients"},
            {"label": "Contractors", "path": "/crm/contractors", "module_key": "contractors"},
            {"label": "Consultants", "path": "/crm/consultants", "module_key": "consultants"},
        ],
    },
    {"label": "Notes", "icon": "sticky-note", "path": "/notes", "module_key": "notes"},
    {"label": "Roadmap", "icon": "map", "path": "/roadmap", "module_key": "roadmap"},
    {
        "label": "Settings",
        "icon": "settings",
        "children": [
            {"label": "Menu Builder", "path": "/settings/menu", "module_key": "menu_builder"},
            {"label": "Modules", "path": "/settings/modules", "module_key": "modules"},
            {"label": "Users & Roles", "path": "/settings/users", "module_key": "users"},
        ],
    },
]


# ---------- load / persist ----------
def _row_to_record(row: MenuItem) -> dict[str, Any]:
    return {
        "id": row.id,
        "parent_id": row.parent_id,
        "order": row.order_index,
        "kind": row.kind,
        "payload": {
            "label": row.label,
            "icon": row.icon,
            "path": row.path,
            "module_key": row.module_key,
            "visible": bool(row.is_visible),
        },
    }


def load_tree(s: "Session") -> TreeMutator:
    rows = s.query(MenuItem).order_by(MenuItem.order_index.asc(), MenuItem.id.asc()).all()
    return TreeMutator.from_rows(_row_to_record(r) for r in rows)


def _apply_record(row: MenuItem, rec: dict[str, Any]) -> bool:
    p = rec["payload"]
    values = {
        "parent_id": rec["parent_id"],
        "order_index": rec["order"],
        "kind": rec["kind"],
        "label": p.get("label") or "",
        "icon": p.get("icon"),
        "path": p.get("path"),
        "module_key": p.get("module_key"),
        "is_visible": bool(p.get("visible", True)),
    }
    dirty = False
    for k, v in values.items():
        if getattr(row, k) != v:
            setattr(row, k, v)
            dirty = True
    return dirty


def persist_tree(s: "Session", tree: TreeMutator) -> dict[str, int]:
    """
    Make the menu_items table match the tree.
    New rows are inserted parent-first, then existing rows are updated, then
    rows no longer in the tree are deleted.
    """
    records = tree.flatten()
    existing = {r.id: r for r in s.query(MenuItem).all()}
    now = datetime.utcnow()
    stats = {"inserted": 0, "updated": 0, "deleted": 0}

    for rec in records:
        if rec["id"] in existing:
            continue
        row = MenuItem(id=rec["id"], created_at=now, updated_at=now)
        _apply_record(row, rec)
        s.add(row)
        stats["inserted"] += 1
    s.flush()

    for rec in records:
        row = existing.get(rec["id"])
        if row is not None and _apply_record(row, rec):
            row.updated_at = now
            stats["updated"] += 1
    s.flush()

    keep = {rec["id"] for rec in records}
    stale = [rid for rid in existing if rid not in keep]
    if stale:
        stats["deleted"] = s.query(MenuItem).filter(MenuItem.id.in_(stale)).delete(synchronize_session=False)
    logger.debug("persist_tree: %s", stats)
    return stats


def _edit(s: "Session", user: "User", action: str, entity_id: str | None, fn: Callable[[TreeMutator], Any], metadata: dict | None = None) -> tuple[TreeMutator, Any]:
    tree = load_tree(s)
    before = tree.count()
    result = fn(tree)  # NotFound / InvalidTarget raised here, before any write
    persist_tree(s, tree)
    record_event(
        s,
        actor=user,
        action=action,
        entity_type="MenuItem",
        entity_id=entity_id,
        metadata={**(metadata or {}), "node_count": {"before": before, "after": tree.count()}},
    )
    return tree, result


# ---------- edits ----------
def validate_menu_entry(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("label") or "").strip():
        errors.append("Label is required.")
    kind = (payload.get("kind") or "").strip()
    if kind and kind not in (BRANCH, LEAF):
        errors.append("Kind must be 'branch' or 'leaf'.")
    path = (payload.get("path") or "").strip()
    if path and not path.startswith("/"):
        errors.append("Path must start with '/'.")
    return errors


def _entry_payload(payload: dict) -> dict[str, Any]:
    return {k: (str(payload.get(k) or "").strip() or None) for k in PAYLOAD_FIELDS}


def add_root(s: "Session", payload: dict, user: "User") -> tuple[TreeMutator, Any]:
    label = payload["label"].strip()
    kind = (payload.get("kind") or "").strip() or BRANCH
    return _edit(
        s, user, "menu.add", None,
        lambda t: t.add_root(label, kind=kind, **_entry_payload(payload)),
        {"label": label, "parent_id": None},
    )


def add_child(s: "Session", parent_id: str, payload: dict, user: "User") -> tuple[TreeMutator, Any]:
    label = payload["label"].strip()
    kind = (payload.get("kind") or "").strip() or LEAF
    return _edit(
        s, user, "menu.add", None,
        lambda t: t.add_child(parent_id, label, kind=kind, **_entry_payload(payload)),
        {"label": label, "parent_id": parent_id},
    )


def rename(s: "Session", node_id: str, label: str, user: "User") -> tuple[TreeMutator, Any]:
    return _edit(s, user, "menu.rename", node_id, lambda t: t.rename(node_id, label), {"label": label})


def update_entry(s: "Session", node_id: str, payload: dict, user: "User") -> tuple[TreeMutator, Any]:
    changes = {k: (str(payload.get(k) or "").strip() or None) for k in PAYLOAD_FIELDS if k in payload}
    return _edit(s, user, "menu.edit", node_id, lambda t: t.update_payload(node_id, changes), {"changes": changes})


def toggle_visible(s: "Session", node_id: str, user: "User") -> tuple[TreeMutator, Any]:
    return _edit(s, user, "menu.toggle_visible", node_id, lambda t: t.toggle_visible(node_id))


def remove(s: "Session", node_id: str, user: "User") -> tuple[TreeMutator, Any]:
    return _edit(s, user, "menu.delete", node_id, lambda t: t.remove(node_id))


def move_into(s: "Session", dragged_id: str, target_id: str, user: "User") -> tuple[TreeMutator, Any]:
    """Drag-and-drop reparent: dragged entry becomes the first child of target."""

    def _drop(tree: TreeMutator) -> Any:
        source_parent = tree.find(dragged_id).parent_id
        return DragController(tree).perform_drop(dragged_id, source_parent, target_id)

    return _edit(s, user, "menu.move", dragged_id, _drop, {"target_id": target_id})


def move_to(s: "Session", node_id: str, parent_id: str | None, index: int, user: "User") -> tuple[TreeMutator, Any]:
    return _edit(
        s, user, "menu.move", node_id,
        lambda t: t.move_to(node_id, parent_id, index),
        {"parent_id": parent_id, "index": index},
    )


def swap(s: "Session", node_id: str, direction: str, user: "User") -> tuple[TreeMutator, Any]:
    return _edit(s, user, "menu.swap", node_id, lambda t: t.swap_with_sibling(node_id, direction), {"direction": direction})


# ---------- bulk ----------
def build_tree(entries: Sequence[dict[str, Any]]) -> TreeMutator:
    """
    Build a tree from a nested payload (``label``, optional ``id``, ``kind``,
    ``visible``, ``children`` and entry fields). Raises ValueError on bad input.
    """
    tree = TreeMutator()
    seen: set[str] = set()

    def add(entry: dict[str, Any], parent_id: str | None) -> None:
        errors = validate_menu_entry(entry)
        if errors:
            raise ValueError(errors[0])
        children = entry.get("children") or []
        kind = (entry.get("kind") or "").strip() or (BRANCH if children or parent_id is None else LEAF)
        if children and kind != BRANCH:
            raise ValueError(f"Leaf entry {entry['label']!r} cannot have children.")
        node_id = str(entry.get("id") or "").strip() or None
        if node_id:
            if node_id in seen:
                raise ValueError(f"Duplicate menu id: {node_id}")
            seen.add(node_id)
        extra = {**_entry_payload(entry), "visible": bool(entry.get("visible", True))}
        label = entry["label"].strip()
        if parent_id is None:
            node = tree.add_root(label, kind=kind, node_id=node_id, **extra)
        else:
            node = tree.add_child(parent_id, label, kind=kind, node_id=node_id, **extra)
        for child in children:
            add(child, node.id)

    for entry in entries:
        add(entry, None)
    return tree


def replace_menu(s: "Session", entries: Sequence[dict[str, Any]], user: "User", *, action: str = "menu.replace") -> TreeMutator:
    tree = build_tree(entries)
    stats = persist_tree(s, tree)
    record_event(s, actor=user, action=action, entity_type="MenuItem", metadata={**stats, "node_count": tree.count()})
    return tree


def reset_menu(s: "Session", user: "User | None") -> TreeMutator:
    return replace_menu(s, DEFAULT_MENU, user, action="menu.reset")
