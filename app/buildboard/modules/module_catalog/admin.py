from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from app.buildboard.db import db_session
from app.buildboard.models import User
from app.buildboard.modules.module_catalog.service import BUCKETS, load_catalog, reclassify, toggle_enabled
from app.buildboard.ordering import OrderingError
from app.buildboard.rbac import require_permission
from app.buildboard.utils import json_errors, ordering_error_response, parse_float, parse_int, request_payload

bp = Blueprint("module_catalog", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/modules-catalog")
@require_permission("modules.view")
def modules_catalog():
    s = db_session()
    catalog = load_catalog(s)
    s.commit()  # default modules may have been seeded
    return jsonify({"buckets": catalog.snapshot(), "total": catalog.count()})


@bp.post("/modules-catalog/reclassify")
@require_permission("modules.edit")
def modules_reclassify():
    """Body: key, bucket and optionally target_index or pointer_offset."""
    s = db_session()
    u = _current_user()
    payload = request_payload()
    key = (payload.get("key") or "").strip()
    bucket = (payload.get("bucket") or "").strip()
    if not key or bucket not in BUCKETS:
        return json_errors([f"key is required and bucket must be one of: {', '.join(BUCKETS)}"])

    try:
        snapshot = reclassify(
            s,
            key=key,
            bucket=bucket,
            user=u,
            target_index=parse_int(payload.get("target_index")),
            pointer_offset=parse_float(payload.get("pointer_offset")),
            config=current_app.config,
        )
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)

    s.commit()
    return jsonify({"buckets": snapshot, "moved": snapshot is not None})


@bp.post("/modules-catalog/<key>/toggle")
@require_permission("modules.edit")
def modules_toggle(key: str):
    s = db_session()
    try:
        catalog, enabled = toggle_enabled(s, key, _current_user())
    except OrderingError as e:
        s.rollback()
        return ordering_error_response(e)
    s.commit()
    return jsonify({"buckets": catalog.snapshot(), "key": key, "enabled": enabled})
