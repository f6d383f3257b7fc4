from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.buildboard.db import db_session
from app.buildboard.models import User
from app.buildboard.modules.boards.service import (
    add_column,
    board_payload,
    delete_card,
    load_board,
    move_card,
    remove_column,
    rename_column,
    validate_column_payload,
)
from app.buildboard.modules.roadmap.models import RoadmapItem
from app.buildboard.modules.roadmap.service import (
    ROADMAP_BOARD,
    VALID_CATEGORIES,
    VALID_PRIORITIES,
    create_item,
    update_item,
    validate_roadmap_payload,
)
from app.buildboard.ordering import OrderingError
from app.buildboard.rbac import require_permission
from app.buildboard.utils import json_errors, ordering_error_response, parse_float, parse_int, request_payload

bp = Blueprint("roadmap", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _board_response(s, status: int = 200, **extra):
    board = load_board(s, ROADMAP_BOARD)
    return jsonify({"columns": board.snapshot(), **extra}), status


# ---------- Board ----------
@bp.get("/roadmap")
@require_permission("roadmap.view")
def roadmap_board():
    s = db_session()
    board = load_board(s, ROADMAP_BOARD)
    s.commit()

    # Filters
    search = (request.args.get("q") or "").strip()
    filters = {
        "status": (request.args.get("status") or "").strip(),
        "priority": (request.args.get("priority") or "").strip(),
        "category": (request.args.get("category") or "").strip(),
    }
    return jsonify({
        "columns": board_payload(board, q=search, filters=filters),
        "search": search,
        "filters": filters,
        "priorities": list(VALID_PRIORITIES),
        "categories": list(VALID_CATEGORIES),
        "total": board.count(),
    })


# ---------- Items ----------
@bp.post("/roadmap")
@require_permission("roadmap.edit")
def roadmap_create():
    s = db_session()
    u = _current_user()
    payload = request_payload()

    errors = validate_roadmap_payload(s, payload)
    if errors:
        return json_errors(errors)

    item = create_item(s, payload, u)
    s.commit()
    return _board_response(s, 201, id=str(item.id))


@bp.post("/roadmap/<int:item_id>/edit")
@require_permission("roadmap.edit")
def roadmap_edit(item_id: int):
    s = db_session()
    u = _current_user()
    item = s.get(RoadmapItem, item_id)
    if not item:
        abort(404)

    payload = request_payload()
    payload.pop("status", None)
    errors = validate_roadmap_payload(s, payload, partial=True)
    if errors:
        return json_errors(errors)

    update_item(s, item, payload, u)
    s.commit()
    return _board_response(s)


@bp.post("/roadmap/<int:item_id>/delete")
@require_permission("roadmap.edit")
def roadmap_delete(item_id: int):
    s = db_session()
    u = _current_user()
    item = s.get(RoadmapItem, item_id)
    if not item:
        abort(404)
    delete_card(s, ROADMAP_BOARD, item, u)
    s.commit()
    return _board_response(s)


@bp.post("/roadmap/move")
@require_permission("roadmap.edit")
def roadmap_move():
    s = db_session()
    u = _current_user()
    payload = request_payload()

    item_id = str(payload.get("item_id") or "").strip()
    source = (payload.get("source") or "").strip()
    target = (payload.get("target") or "").strip()
    if not item_id or not source or not target:
        return json_errors(["item_id, source and target are required"])

    try:
        snapshot = move_card(
            s,
            ROADMAP_BOARD,
            item_id=item_id,
            source=source,
            target=target,
            user=u,
            target_index=parse_int(payload.get("target_index")),
            pointer_offset=parse_float(payload.get("pointer_offset")),
            config=current_app.config,
        )
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)

    s.commit()
    return jsonify({"columns": snapshot, "moved": snapshot is not None})


# ---------- Columns ----------
@bp.post("/roadmap/columns")
@require_permission("roadmap.edit")
def roadmap_column_add():
    s = db_session()
    u = _current_user()
    payload = request_payload()
    errors = validate_column_payload(payload)
    if errors:
        return json_errors(errors)
    try:
        add_column(s, ROADMAP_BOARD, payload, u)
    except ValueError as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    return _board_response(s, 201)


@bp.post("/roadmap/columns/<key>/rename")
@require_permission("roadmap.edit")
def roadmap_column_rename(key: str):
    s = db_session()
    u = _current_user()
    payload = request_payload()
    errors = validate_column_payload(payload, require_key=False)
    if errors:
        return json_errors(errors)
    try:
        rename_column(s, ROADMAP_BOARD, key, payload["label"].strip(), u)
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    s.commit()
    return _board_response(s)


@bp.post("/roadmap/columns/<key>/delete")
@require_permission("roadmap.edit")
def roadmap_column_delete(key: str):
    s = db_session()
    u = _current_user()
    try:
        remove_column(s, ROADMAP_BOARD, key, u)
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    except ValueError as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    return _board_response(s)
