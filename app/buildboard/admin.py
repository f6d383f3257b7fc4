from datetime import date

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func, text

from app.buildboard.audit import AUDIT_PAGE_MAX, event_to_dict, query_events
from app.buildboard.db import db_session
from app.buildboard.models import User
from app.buildboard.modules.menu_builder.models import MenuItem
from app.buildboard.modules.module_catalog.models import ModuleSetting
from app.buildboard.modules.notes_board.models import Note
from app.buildboard.modules.roadmap.models import RoadmapItem
from app.buildboard.rbac import require_permission, user_permission_keys
from app.buildboard.utils import json_errors, parse_int

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _count_by(s, column) -> dict[str, int]:
    return {str(k): n for k, n in s.query(column, func.count()).group_by(column).all()}


@bp.get("/")
@require_permission("admin.view")
def index():
    """Dashboard summary: DB status plus per-column counts for each screen."""
    s = db_session()
    status = {"db_connected": False, "db_error": None}
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        s.rollback()
        status["db_error"] = str(e)
        return jsonify({"system_status": status}), 503

    return jsonify({
        "system_status": status,
        "notes": _count_by(s, Note.status),
        "roadmap": _count_by(s, RoadmapItem.status),
        "modules": _count_by(s, ModuleSetting.bucket),
        "menu_entries": s.query(func.count(MenuItem.id)).scalar() or 0,
    })


@bp.get("/me")
@require_permission("admin.view")
def me():
    user: User = g.current_user
    return jsonify({
        "id": user.id,
        "email": user.email,
        "roles": sorted({r.key for r in (user.roles or [])}),
        "permissions": sorted(user_permission_keys(user)),
    })


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Recent audit events, newest first. Filters:
    - action (contains, e.g. "menu." or "roadmap.move")
    - entity_type / entity_id (exact)
    - date range (YYYY-MM-DD, inclusive)
    - limit (default and max 200)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    entity_type = (request.args.get("entity_type") or "").strip()
    entity_id = (request.args.get("entity_id") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    errors = []
    if (request.args.get("date_from") or "").strip() and not date_from:
        errors.append("date_from must be YYYY-MM-DD")
    if (request.args.get("date_to") or "").strip() and not date_to:
        errors.append("date_to must be YYYY-MM-DD")
    if errors:
        return json_errors(errors)

    limit = parse_int(request.args.get("limit"), AUDIT_PAGE_MAX) or AUDIT_PAGE_MAX
    events = query_events(
        s,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return jsonify({"events": [event_to_dict(e) for e in events]})
