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
from app.buildboard.modules.notes_board.models import Note
from app.buildboard.modules.notes_board.service import NOTES_BOARD, create_note, update_note, validate_note_payload
from app.buildboard.ordering import OrderingError
from app.buildboard.rbac import require_permission
from app.buildboard.utils import json_errors, ordering_error_response, parse_float, parse_int, request_payload

bp = Blueprint("notes_board", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _board_response(s, status: int = 200, **extra):
    board = load_board(s, NOTES_BOARD)
    return jsonify({"columns": board.snapshot(), **extra}), status


# ---------- Board ----------
@bp.get("/notes")
@require_permission("notes.view")
def notes_board():
    s = db_session()
    board = load_board(s, NOTES_BOARD)
    s.commit()  # default columns may have been seeded

    search = (request.args.get("q") or "").strip()
    color = (request.args.get("color") or "").strip()
    return jsonify({
        "columns": board_payload(board, q=search, filters={"color": color}),
        "search": search,
        "total": board.count(),
    })


# ---------- Cards ----------
@bp.post("/notes")
@require_permission("notes.edit")
def notes_create():
    s = db_session()
    u = _current_user()
    payload = request_payload()

    errors = validate_note_payload(s, payload)
    if errors:
        return json_errors(errors)

    note = create_note(s, payload, u)
    s.commit()
    return _board_response(s, 201, id=str(note.id))


@bp.post("/notes/<int:note_id>/edit")
@require_permission("notes.edit")
def notes_edit(note_id: int):
    s = db_session()
    u = _current_user()
    note = s.get(Note, note_id)
    if not note:
        abort(404)

    payload = request_payload()
    payload.pop("status", None)
    errors = validate_note_payload(s, payload, partial=True)
    if errors:
        return json_errors(errors)

    update_note(s, note, payload, u)
    s.commit()
    return _board_response(s)


@bp.post("/notes/<int:note_id>/delete")
@require_permission("notes.edit")
def notes_delete(note_id: int):
    s = db_session()
    u = _current_user()
    note = s.get(Note, note_id)
    if not note:
        abort(404)
    delete_card(s, NOTES_BOARD, note, u)
    s.commit()
    return _board_response(s)


@bp.post("/notes/move")
@require_permission("notes.edit")
def notes_move():
    """
    Drop a card. Body: item_id, source, target and either target_index or
    pointer_offset (px from the top of the target column).
    """
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
            NOTES_BOARD,
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
@bp.post("/notes/columns")
@require_permission("notes.edit")
def notes_column_add():
    s = db_session()
    u = _current_user()
    payload = request_payload()
    errors = validate_column_payload(payload)
    if errors:
        return json_errors(errors)
    try:
        add_column(s, NOTES_BOARD, payload, u)
    except ValueError as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    return _board_response(s, 201)


@bp.post("/notes/columns/<key>/rename")
@require_permission("notes.edit")
def notes_column_rename(key: str):
    s = db_session()
    u = _current_user()
    payload = request_payload()
    errors = validate_column_payload(payload, require_key=False)
    if errors:
        return json_errors(errors)
    try:
        rename_column(s, NOTES_BOARD, key, payload["label"].strip(), u)
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    s.commit()
    return _board_response(s)


@bp.post("/notes/columns/<key>/delete")
@require_permission("notes.edit")
def notes_column_delete(key: str):
    s = db_session()
    u = _current_user()
    try:
        remove_column(s, NOTES_BOARD, key, u)
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    except ValueError as e:
        s.rollback()
        return json_errors([str(e)])
    s.commit()
    return _board_response(s)
