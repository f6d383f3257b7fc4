"""
Roadmap service layer.
Item CRUD and validation; board moves go through the shared boards service.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from app.buildboard.audit import record_event
from app.buildboard.modules.boards.service import BoardSpec, ensure_default_columns, next_order_index
from app.buildboard.modules.notes_board.service import parse_tags

from .models import RoadmapItem

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.buildboard.models import User


ROADMAP_BOARD = BoardSpec(
    key="roadmap",
    card_model=RoadmapItem,
    entity_type="RoadmapItem",
    default_columns=(
        ("idea", "Ideas"),
        ("planned", "Planned"),
        ("in-progress", "In Progress"),
        ("debugging", "Debugging"),
        ("released", "Released"),
    ),
)

VALID_PRIORITIES = ("low", "medium", "high", "critical")
VALID_CATEGORIES = ("feature", "module", "component", "bugfix", "enhancement", "integration")

EDITABLE_FIELDS = ("title", "description", "priority", "category", "progress", "tags", "version", "estimated_date", "changelog")


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def _parse_progress(raw) -> int | None:
    if raw is None or raw == "":
        return None
    return int(raw)


def validate_roadmap_payload(s: "Session", payload: dict, *, partial: bool = False) -> list[str]:
    """Validate roadmap item creation/update payload. Returns list of errors."""
    errors = []
    title = (payload.get("title") or "").strip()
    if not partial and not title:
        errors.append("Title is required.")
    if partial and "title" in payload and not title:
        errors.append("Title cannot be blank.")

    priority = (payload.get("priority") or "").strip()
    if priority and priority not in VALID_PRIORITIES:
        errors.append(f"Invalid priority. Must be one of: {', '.join(VALID_PRIORITIES)}")
    category = (payload.get("category") or "").strip()
    if category and category not in VALID_CATEGORIES:
        errors.append(f"Invalid category. Must be one of: {', '.join(VALID_CATEGORIES)}")

    try:
        progress = _parse_progress(payload.get("progress"))
        if progress is not None and not 0 <= progress <= 100:
            errors.append("Progress must be between 0 and 100.")
    except (TypeError, ValueError):
        errors.append("Progress must be a whole number.")

    try:
        parse_date(payload.get("estimated_date"))
    except ValueError:
        errors.append("Estimated date must be YYYY-MM-DD.")

    status = (payload.get("status") or "").strip()
    if status and status not in {c.key for c in ensure_default_columns(s, ROADMAP_BOARD)}:
        errors.append(f"Unknown column: {status}")
    return errors


def create_item(s: "Session", payload: dict, user: "User") -> RoadmapItem:
    status = (payload.get("status") or "").strip() or ROADMAP_BOARD.default_columns[0][0]
    now = datetime.utcnow()
    item = RoadmapItem(
        status=status,
        order_index=next_order_index(s, ROADMAP_BOARD, status),
        title=(payload.get("title") or "").strip(),
        description=(payload.get("description") or "").strip() or None,
        priority=(payload.get("priority") or "").strip() or "medium",
        category=(payload.get("category") or "").strip() or "feature",
        progress=_parse_progress(payload.get("progress")) or 0,
        tags=parse_tags(payload.get("tags")),
        version=(payload.get("version") or "").strip() or None,
        estimated_date=parse_date(payload.get("estimated_date")),
        changelog=(payload.get("changelog") or "").strip() or None,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(item)
    s.flush()

    record_event(
        s,
        actor=user,
        action="roadmap.create",
        entity_type="RoadmapItem",
        entity_id=str(item.id),
        metadata={"title": item.title, "status": item.status, "priority": item.priority},
    )
    return item


def update_item(s: "Session", item: RoadmapItem, payload: dict, user: "User") -> RoadmapItem:
    """Update card fields present in the payload. Status only changes through a move."""
    changes = {}
    for field in EDITABLE_FIELDS:
        if field not in payload:
            continue
        raw = payload.get(field)
        if field == "tags":
            new = parse_tags(raw)
        elif field == "progress":
            new = _parse_progress(raw) or 0
        elif field == "estimated_date":
            new = parse_date(raw)
        else:
            new = str(raw or "").strip() or None
            if field in ("title", "priority", "category") and not new:
                continue
        old = getattr(item, field)
        if field == "tags":
            old = list(old or [])
        if new != old:
            changes[field] = {"old": str(old) if field == "estimated_date" else old, "new": str(new) if field == "estimated_date" else new}
            setattr(item, field, new)

    item.updated_at = datetime.utcnow()
    item.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="roadmap.edit",
        entity_type="RoadmapItem",
        entity_id=str(item.id),
        metadata={"title": item.title, "changes": changes},
    )
    return item
