import logging
import os
from datetime import timedelta

from flask import Flask, g, jsonify, render_template, request, session
from dotenv import load_dotenv

from app.buildboard.config import load_config
from app.buildboard.db import init_db, teardown_db_session
from app.buildboard.routes import bp as routes_bp
from app.buildboard.auth import bp as auth_bp, load_current_user
from app.buildboard.admin import bp as admin_bp
from app.buildboard.modules.notes_board.admin import bp as notes_board_bp
from app.buildboard.modules.roadmap.admin import bp as roadmap_bp
from app.buildboard.modules.menu_builder.admin import bp as menu_builder_bp
from app.buildboard.modules.module_catalog.admin import bp as module_catalog_bp
from app.buildboard.rbac import wants_json


def _error_response(template: str, status: int, message: str, **context):
    if wants_json():
        return jsonify({"error": message, **context}), status
    return render_template(template, message=message, **context), status


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.buildboard.security import csrf_check_required, ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.buildboard.rbac import user_has_permission

        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm}

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if csrf_check_required(request) and not validate_csrf(request):
            return _error_response("errors/400.html", 400, "CSRF token missing or invalid.")
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("CSRF_ENABLED"):
            raise RuntimeError("CSRF_ENABLED cannot be turned off in production.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(notes_board_bp, url_prefix="/admin")
    app.register_blueprint(roadmap_bp, url_prefix="/admin")
    app.register_blueprint(menu_builder_bp, url_prefix="/admin")
    app.register_blueprint(module_catalog_bp, url_prefix="/admin")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return _error_response("errors/400.html", 400, getattr(e, "description", None) or "Bad request.")

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return _error_response("errors/403.html", 403, "Forbidden.", missing_permission=missing)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return _error_response("errors/404.html", 404, "Not found.")

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _error_response("errors/500.html", 500, "Internal server error.")

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
