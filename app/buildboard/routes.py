from flask import Blueprint, current_app, g, render_template
from sqlalchemy import text

from app.buildboard.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html", user=getattr(g, "current_user", None))


@bp.get("/health")
def health():
    """Health check with a DB round-trip. Returns JSON."""
    try:
        db_session().execute(text("SELECT 1"))
    except Exception as e:
        current_app.logger.error("Health check DB error: %s", e)
        return {"ok": False, "db": "unreachable"}, 503
    return {"ok": True, "db": "ok"}


@bp.get("/healthz")
def healthz():
    """Liveness probe. No DB access."""
    return "ok", 200
