import secrets

from flask import Request, current_app, session

CSRF_EXEMPT_PREFIXES = ("/static/", "/health", "/healthz")
MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def _submitted_token(req: Request) -> str | None:
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from header, form, or JSON body."""
    token = _submitted_token(req)
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def csrf_check_required(req: Request) -> bool:
    if not current_app.config.get("CSRF_ENABLED", True):
        return False
    if req.method not in MUTATING_METHODS or req.path.startswith(CSRF_EXEMPT_PREFIXES):
        return False
    # Login/logout carry no session token yet.
    return not (req.endpoint or "").startswith("auth.")
