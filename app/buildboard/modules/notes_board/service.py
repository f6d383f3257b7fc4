from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.buildboard.audit import record_event
from app.buildboard.modules.boards.service import BoardSpec, ensure_default_columns, next_order_index

from .models import Note

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.buildboard.models import User


NOTES_BOARD = BoardSpec(
    key="notes",
    card_model=Note,
    entity_type="Note",
    default_columns=(
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ),
)

VALID_COLORS = ("yellow", "pink", "blue", "green", "purple", "orange")


def parse_tags(raw) -> list[str]:
    """Accept a list or a comma-separated string."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return [str(t).strip() for t in raw if str(t).strip()]


def validate_note_payload(s: "Session", payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    title = (payload.get("title") or "").strip()
    if not partial and not title:
        errors.append("Title is required.")
    if partial and "title" in payload and not title:
        errors.append("Title cannot be blank.")
    color = (payload.get("color") or "").strip()
    if color and color not in VALID_COLORS:
        errors.append(f"Invalid color. Must be one of: {', '.join(VALID_COLORS)}")
    status = (payload.get("status") or "").strip()
    if status and status not in {c.key for c in ensure_default_columns(s, NOTES_BOARD)}:
        errors.append(f"Unknown column: {status}")
    return errors


def create_note(s: "Session", payload: dict, user: "User") -> Note:
    status = (payload.get("status") or "").strip() or NOTES_BOARD.default_columns[0][0]
    now = datetime.utcnow()
    note = Note(
        status=status,
        order_index=next_order_index(s, NOTES_BOARD, status),
        title=(payload.get("title") or "").strip(),
        content=(payload.get("content") or "").strip() or None,
        color=(payload.get("color") or "").strip() or "yellow",
        tags=parse_tags(payload.get("tags")),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(note)
    s.flush()

    record_event(
        s,
        actor=user,
        action="notes.create",
        entity_type="Note",
        entity_id=str(note.id),
        metadata={"title": note.title, "status": note.status},
    )
    return note


def update_note(s: "Session", note: Note, payload: dict, user: "User") -> Note:
    """Edit card content. Column and position only change through a move."""
    changes = {}

    if "title" in payload:
        new_title = (payload.get("title") or "").strip()
        if new_title and new_title != note.title:
            changes["title"] = {"old": note.title, "new": new_title}
            note.title = new_title

    if "content" in payload:
        new_content = (payload.get("content") or "").strip() or None
        if new_content != note.content:
            changes["content"] = {"old": note.content, "new": new_content}
            note.content = new_content

    if "color" in payload:
        new_color = (payload.get("color") or "").strip() or None
        if new_color != note.color:
            changes["color"] = {"old": note.color, "new": new_color}
            note.color = new_color

    if "tags" in payload:
        new_tags = parse_tags(payload.get("tags"))
        if new_tags != list(note.tags or []):
            changes["tags"] = {"old": list(note.tags or []), "new": new_tags}
            note.tags = new_tags

    note.updated_at = datetime.utcnow()
    note.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="notes.edit",
        entity_type="Note",
        entity_id=str(note.id),
        metadata={"title": note.title, "changes": changes},
    )
    return note
