from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.buildboard.audit import record_event
from app.buildboard.modules.boards.service import drag_controller
from app.buildboard.ordering import ColumnMutator, Leaf

from .models import ModuleSetting

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.buildboard.models import User

logger = logging.getLogger(__name__)

BUCKETS = ("core", "additional")

# (key, label, bucket)
DEFAULT_MODULES: tuple[tuple[str, str, str], ...] = (
    ("projects", "Projects", "core"),
    ("programme", "Programme", "core"),
    ("tasks", "Tasks", "core"),
    ("documents", "Document Management", "core"),
    ("clients", "Client Management", "core"),
    ("notes", "Notes", "core"),
    ("contractors", "Contractor Management", "additional"),
    ("consultants", "Consultant Management", "additional"),
    ("roadmap", "Product Roadmap", "additional"),
    ("e-signature", "E-Signature", "additional"),
    ("audit-trail", "Audit Trail", "additional"),
    ("reports", "Reports", "additional"),
)


def ensure_default_modules(s: "Session") -> int:
    """Insert any default module that is missing (idempotent). Returns the number added."""
    existing = {k for (k,) in s.query(ModuleSetting.key).all()}
    counts = {b: s.query(ModuleSetting).filter(ModuleSetting.bucket == b).count() for b in BUCKETS}
    now = datetime.utcnow()
    added = 0
    for key, label, bucket in DEFAULT_MODULES:
        if key in existing:
            continue
        s.add(ModuleSetting(key=key, label=label, bucket=bucket, order_index=counts[bucket], enabled=True, created_at=now, updated_at=now))
        counts[bucket] += 1
        added += 1
    if added:
        s.flush()
    return added


def load_catalog(s: "Session") -> ColumnMutator:
    ensure_default_modules(s)
    rows = s.query(ModuleSetting).order_by(ModuleSetting.order_index.asc(), ModuleSetting.key.asc()).all()
    items = []
    for row in rows:
        bucket = row.bucket
        if bucket not in BUCKETS:
            logger.warning("Module %s has unknown bucket %r; treating it as additional", row.key, bucket)
            bucket = "additional"
        items.append(
            Leaf(
                id=row.key,
                order=row.order_index,
                payload={"label": row.label, "description": row.description, "bucket": bucket, "enabled": bool(row.enabled)},
            )
        )
    return ColumnMutator(BUCKETS, items, bucket_field="bucket")


def persist_catalog(s: "Session", snapshot: dict[str, list[dict[str, Any]]]) -> int:
    changed = 0
    now = datetime.utcnow()
    for bucket, members in snapshot.items():
        for item in members:
            row = s.get(ModuleSetting, item["id"])
            if row is None:
                logger.warning("persist_catalog: module %s vanished", item["id"])
                continue
            enabled = bool(item["payload"].get("enabled", True))
            if row.bucket != bucket or row.order_index != item["order"] or row.enabled != enabled:
                row.bucket = bucket
                row.order_index = item["order"]
                row.enabled = enabled
                row.updated_at = now
                changed += 1
    logger.debug("persist_catalog: %d row(s) updated", changed)
    return changed


def reclassify(
    s: "Session",
    *,
    key: str,
    bucket: str,
    user: "User",
    target_index: int | None = None,
    pointer_offset: float | None = None,
    config: Mapping[str, Any] | None = None,
) -> dict[str, list[dict[str, Any]]] | None:
    """
    Drag a module into ``bucket`` at ``target_index`` (or the index resolved
    from ``pointer_offset``; append when neither is given).
    """
    catalog = load_catalog(s)
    source = catalog.item(key).payload["bucket"]  # NotFound for unknown module
    controller = drag_controller(catalog, config)

    @controller.on_commit
    def _persist(snapshot: dict[str, list[dict[str, Any]]]) -> None:
        persist_catalog(s, snapshot)

    snapshot = controller.perform_drop(key, source, bucket, pointer_coordinate=pointer_offset, index=target_index)
    if snapshot is None:
        return None

    record_event(
        s,
        actor=user,
        action="modules.reclassify",
        entity_type="ModuleSetting",
        entity_id=key,
        metadata={"from": source, "to": bucket, "index": catalog.index_in(key, bucket)},
    )
    return snapshot


def toggle_enabled(s: "Session", key: str, user: "User") -> tuple[ColumnMutator, bool]:
    catalog = load_catalog(s)
    enabled = catalog.toggle_flag(key, "enabled")
    persist_catalog(s, catalog.snapshot())
    record_event(
        s,
        actor=user,
        action="modules.enable" if enabled else "modules.disable",
        entity_type="ModuleSetting",
        entity_id=key,
    )
    return catalog, enabled
