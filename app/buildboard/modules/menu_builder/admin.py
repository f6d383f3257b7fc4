from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.buildboard.db import db_session
from app.buildboard.models import User
from app.buildboard.modules.menu_builder import service
from app.buildboard.ordering import OrderingError
from app.buildboard.rbac import require_permission
from app.buildboard.utils import json_errors, ordering_error_response, parse_int, request_payload

bp = Blueprint("menu_builder", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _tree_response(tree, status: int = 200, **extra):
    return jsonify({"menu": tree.snapshot(), "count": tree.count(), **extra}), status


def _apply(fn, *args, status: int = 200):
    """Run one menu edit; map engine rejections to JSON errors."""
    s = db_session()
    u = _current_user()
    try:
        tree, result = fn(s, *args, u)
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    except ValueError as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    extra = {}
    if isinstance(result, bool):
        extra["changed"] = result
    elif isinstance(result, int):
        extra["removed"] = result
    elif result is not None and hasattr(result, "id"):
        extra["id"] = result.id
    return _tree_response(tree, status, **extra)


# ---------- Menu ----------
@bp.get("/menu")
@require_permission("menu.view")
def menu_get():
    s = db_session()
    tree = service.load_tree(s)
    return _tree_response(tree)


@bp.put("/menu")
@require_permission("menu.edit")
def menu_replace():
    s = db_session()
    u = _current_user()
    payload = request_payload()
    entries = payload.get("menu")
    if not isinstance(entries, list):
        return json_errors(["menu must be a list of entries"])
    try:
        tree = service.replace_menu(s, entries, u)
    except (ValueError, OrderingError) as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    return _tree_response(tree)


@bp.post("/menu/reset")
@require_permission("menu.edit")
def menu_reset():
    s = db_session()
    tree = service.reset_menu(s, _current_user())
    s.commit()
    return _tree_response(tree)


# ---------- Entries ----------
@bp.post("/menu/roots")
@require_permission("menu.edit")
def menu_add_root():
    payload = request_payload()
    errors = service.validate_menu_entry(payload)
    if errors:
        return json_errors(errors)
    return _apply(service.add_root, payload, status=201)


@bp.post("/menu/<node_id>/children")
@require_permission("menu.edit")
def menu_add_child(node_id: str):
    payload = request_payload()
    errors = service.validate_menu_entry(payload)
    if errors:
        return json_errors(errors)
    return _apply(service.add_child, node_id, payload, status=201)


@bp.post("/menu/<node_id>/rename")
@require_permission("menu.edit")
def menu_rename(node_id: str):
    label = (request_payload().get("label") or "").strip()
    if not label:
        return json_errors(["Label is required."])
    return _apply(service.rename, node_id, label)


@bp.post("/menu/<node_id>/edit")
@require_permission("menu.edit")
def menu_edit(node_id: str):
    payload = request_payload()
    path = (payload.get("path") or "").strip()
    if path and not path.startswith("/"):
        return json_errors(["Path must start with '/'."])
    return _apply(service.update_entry, node_id, payload)


@bp.post("/menu/<node_id>/toggle")
@require_permission("menu.edit")
def menu_toggle(node_id: str):
    return _apply(service.toggle_visible, node_id)


@bp.post("/menu/<node_id>/delete")
@require_permission("menu.edit")
def menu_delete(node_id: str):
    return _apply(service.remove, node_id)


@bp.post("/menu/<node_id>/move-into")
@require_permission("menu.edit")
def menu_move_into(node_id: str):
    target_id = str(request_payload().get("target_id") or "").strip()
    if not target_id:
        return json_errors(["target_id is required"])
    return _apply(service.move_into, node_id, target_id)


@bp.post("/menu/<node_id>/move")
@require_permission("menu.edit")
def menu_move(node_id: str):
    payload = request_payload()
    parent_id = str(payload.get("parent_id") or "").strip() or None
    index = parse_int(payload.get("index"))
    if index is None:
        return json_errors(["index is required"])
    return _apply(service.move_to, node_id, parent_id, index)


@bp.post("/menu/<node_id>/swap")
@require_permission("menu.edit")
def menu_swap(node_id: str):
    direction = (request_payload().get("direction") or "").strip()
    if direction not in ("up", "down"):
        return json_errors(["direction must be 'up' or 'down'"])
    return _apply(service.swap, node_id, direction)
