import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.buildboard.models import AuditEvent, User

logger = logging.getLogger(__name__)

AUDIT_PAGE_MAX = 200


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append one audit event to the session.
    Reorders and structural edits call this after the engine accepted the
    change, so a rejected drop never leaves an event behind.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    logger.debug("audit %s %s:%s", action, entity_type, entity_id)
    return ev


def query_events(
    s: Session,
    *,
    action: str = "",
    entity_type: str = "",
    entity_id: str = "",
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = AUDIT_PAGE_MAX,
) -> list[AuditEvent]:
    """Newest first. ``action`` is a substring match; the date range is inclusive."""
    limit = max(1, min(limit, AUDIT_PAGE_MAX))
    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()


def event_to_dict(e: AuditEvent) -> dict[str, Any]:
    metadata: Any = None
    if e.metadata_json:
        try:
            metadata = json.loads(e.metadata_json)
        except ValueError:
            logger.warning("Audit event %s has malformed metadata", e.id)
            metadata = e.metadata_json
    return {
        "id": e.id,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "actor": e.actor_user_email,
        "action": e.action,
        "entity_type": e.entity_type,
        "entity_id": e.entity_id,
        "reason": e.reason,
        "metadata": metadata,
    }
