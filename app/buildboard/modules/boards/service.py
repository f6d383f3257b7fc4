"""
Board service layer shared by the notes and roadmap modules.

Rows are loaded into an in-memory ``Board``, mutated there, and the
resulting snapshot is written back as (status, order_index) pairs.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.buildboard.audit import record_event
from app.buildboard.ordering import (
    DEFAULT_CONTAINER_PADDING,
    DEFAULT_ITEM_EXTENT,
    Board,
    Container,
    DragController,
    DropGeometry,
    Leaf,
)
from app.buildboard.ordering.session import DEFAULT_MOTION_THRESHOLD

from .models import BoardColumn

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.buildboard.models import User

logger = logging.getLogger(__name__)

COLUMN_KEY_RE = re.compile(r"[a-z0-9][a-z0-9-]{0,63}")
SEARCH_FIELDS = ("title", "content", "description")


@dataclass(frozen=True)
class BoardSpec:
    key: str  # board_columns.board value and audit action prefix
    card_model: type
    entity_type: str
    default_columns: tuple[tuple[str, str], ...]


def geometry_from_config(config: Mapping[str, Any]) -> DropGeometry:
    return DropGeometry(
        item_extent=float(config.get("DRAG_ITEM_EXTENT") or DEFAULT_ITEM_EXTENT),
        container_padding=float(config.get("DRAG_CONTAINER_PADDING") or DEFAULT_CONTAINER_PADDING),
    )


def drag_controller(target: Any, config: Mapping[str, Any] | None = None) -> DragController:
    """DragController for one request, tuned from the app config (defaults when None)."""
    config = config or {}
    return DragController(
        target,
        geometry=geometry_from_config(config),
        motion_threshold=float(config.get("DRAG_MOTION_THRESHOLD") or DEFAULT_MOTION_THRESHOLD),
    )


# ---------- columns ----------
def list_columns(s: "Session", spec: BoardSpec) -> list[BoardColumn]:
    return (
        s.query(BoardColumn)
        .filter(BoardColumn.board == spec.key)
        .order_by(BoardColumn.order_index.asc(), BoardColumn.id.asc())
        .all()
    )


def ensure_default_columns(s: "Session", spec: BoardSpec) -> list[BoardColumn]:
    """Create the default columns for a board that has none (idempotent)."""
    cols = list_columns(s, spec)
    if cols:
        return cols
    now = datetime.utcnow()
    for i, (key, label) in enumerate(spec.default_columns):
        s.add(BoardColumn(board=spec.key, key=key, label=label, order_index=i, created_at=now, updated_at=now))
    s.flush()
    return list_columns(s, spec)


def validate_column_payload(payload: dict, *, require_key: bool = True) -> list[str]:
    errors = []
    key = (payload.get("key") or "").strip()
    label = (payload.get("label") or "").strip()
    if require_key and not COLUMN_KEY_RE.fullmatch(key):
        errors.append("Column key must be lowercase letters, digits or dashes.")
    if not label:
        errors.append("Column label is required.")
    return errors


# ---------- load / persist ----------
def load_board(s: "Session", spec: BoardSpec) -> Board:
    columns = ensure_default_columns(s, spec)
    model = spec.card_model
    rows = s.query(model).order_by(model.order_index.asc(), model.id.asc()).all()

    buckets: dict[str, list[Leaf]] = {c.key: [] for c in columns}
    first_key = columns[0].key
    for row in rows:
        key = row.status
        if key not in buckets:
            logger.warning("%s %s has unknown status %r; showing it in %r", spec.entity_type, row.id, key, first_key)
            key = first_key
        buckets[key].append(Leaf(id=str(row.id), order=row.order_index, payload=row.to_payload()))

    return Board(
        [Container(id=c.key, label=c.label, items=buckets[c.key]) for c in columns],
        status_field="status",
    )


def persist_board(s: "Session", spec: BoardSpec, snapshot: list[dict[str, Any]]) -> int:
    """
    Write (status, order_index) for every card in the snapshot.
    Returns the number of rows that changed.
    """
    changed = 0
    now = datetime.utcnow()
    for col in snapshot:
        for item in col["items"]:
            row = s.get(spec.card_model, int(item["id"]))
            if row is None:
                logger.warning("persist_board(%s): card %s vanished", spec.key, item["id"])
                continue
            if row.status != col["id"] or row.order_index != item["order"]:
                row.status = col["id"]
                row.order_index = item["order"]
                row.updated_at = now
                changed += 1
    logger.debug("persist_board(%s): %d row(s) updated", spec.key, changed)
    return changed


def board_payload(board: Board, *, q: str = "", filters: Mapping[str, str] | None = None) -> list[dict[str, Any]]:
    """Board snapshot for rendering, optionally filtered (order values are not renumbered)."""
    needle = (q or "").strip().lower()
    active = {k: v for k, v in (filters or {}).items() if v and v != "all"}
    if not needle and not active:
        return board.snapshot()

    def matches(node: Leaf) -> bool:
        p = node.payload
        for k, v in active.items():
            if str(p.get(k) or "") != v:
                return False
        if needle:
            haystack = [str(p.get(f) or "") for f in SEARCH_FIELDS] + [str(t) for t in (p.get("tags") or [])]
            return any(needle in h.lower() for h in haystack)
        return True

    return board.filtered(matches)


# ---------- cards ----------
def next_order_index(s: "Session", spec: BoardSpec, status: str) -> int:
    model = spec.card_model
    return s.query(model).filter(model.status == status).count()


def move_card(
    s: "Session",
    spec: BoardSpec,
    *,
    item_id: str,
    source: str,
    target: str,
    user: "User",
    target_index: int | None = None,
    pointer_offset: float | None = None,
    config: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]] | None:
    """
    Replay a drag gesture against the stored board and persist the result.
    Returns the new snapshot, or None when the gesture produced no drop.
    Raises NotFound (unknown card/column) before anything is written.
    """
    board = load_board(s, spec)
    controller = drag_controller(board, config)

    @controller.on_commit
    def _persist(snapshot: list[dict[str, Any]]) -> None:
        persist_board(s, spec, snapshot)

    snapshot = controller.perform_drop(item_id, source, target, pointer_coordinate=pointer_offset, index=target_index)
    if snapshot is None:
        return None

    record_event(
        s,
        actor=user,
        action=f"{spec.key}.move",
        entity_type=spec.entity_type,
        entity_id=str(item_id),
        metadata={
            "from": source,
            "to": target,
            "index": board.index_in(item_id, target),
        },
    )
    return snapshot


def delete_card(s: "Session", spec: BoardSpec, card: Any, user: "User") -> None:
    board = load_board(s, spec)
    board.remove_item(str(card.id))
    s.delete(card)
    persist_board(s, spec, board.snapshot())
    record_event(
        s,
        actor=user,
        action=f"{spec.key}.delete",
        entity_type=spec.entity_type,
        entity_id=str(card.id),
        metadata={"title": card.title, "status": card.status},
    )


# ---------- column edits ----------
def add_column(s: "Session", spec: BoardSpec, payload: dict, user: "User") -> BoardColumn:
    key = payload["key"].strip()
    label = payload["label"].strip()
    board = load_board(s, spec)
    board.add_container(key, label)  # raises ValueError on duplicate key
    now = datetime.utcnow()
    col = BoardColumn(
        board=spec.key,
        key=key,
        label=label,
        color=(payload.get("color") or "").strip() or None,
        order_index=len(board.containers) - 1,
        created_at=now,
        updated_at=now,
    )
    s.add(col)
    s.flush()
    record_event(s, actor=user, action=f"{spec.key}.column_add", entity_type="BoardColumn", entity_id=str(col.id), metadata={"key": key, "label": label})
    return col


def rename_column(s: "Session", spec: BoardSpec, key: str, label: str, user: "User") -> BoardColumn:
    board = load_board(s, spec)
    old_label = board.container(key).label
    board.rename_container(key, label)
    col = s.query(BoardColumn).filter(BoardColumn.board == spec.key, BoardColumn.key == key).one()
    col.label = label
    col.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action=f"{spec.key}.column_rename",
        entity_type="BoardColumn",
        entity_id=str(col.id),
        metadata={"key": key, "changes": {"label": {"old": old_label, "new": label}}},
    )
    return col


def remove_column(s: "Session", spec: BoardSpec, key: str, user: "User") -> list[dict[str, Any]]:
    """Delete a column; its cards move to the end of the first column."""
    board = load_board(s, spec)
    moved = board.remove_container(key)  # NotFound / ValueError before any write
    persist_board(s, spec, board.snapshot())

    col = s.query(BoardColumn).filter(BoardColumn.board == spec.key, BoardColumn.key == key).one()
    s.delete(col)
    remaining = [c for c in list_columns(s, spec) if c.key != key]
    for i, c in enumerate(remaining):
        c.order_index = i

    record_event(
        s,
        actor=user,
        action=f"{spec.key}.column_delete",
        entity_type="BoardColumn",
        entity_id=str(col.id),
        metadata={"key": key, "moved_cards": [m.id for m in moved], "moved_to": board.containers[0].id},
    )
    return board.snapshot()
