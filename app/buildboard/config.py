import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    # Drag-and-drop tuning (pixels)
    drag_item_extent: float
    drag_container_padding: float
    drag_motion_threshold: float

    csrf_enabled: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getfloat(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    env = _getenv("ENV", "development")
    csrf_default = "0" if env.lower() == "test" else "1"
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=env,
        database_url=_getenv("DATABASE_URL", "sqlite:///buildboard.db"),
        drag_item_extent=_getfloat("DRAG_ITEM_EXTENT", 140.0),
        drag_container_padding=_getfloat("DRAG_CONTAINER_PADDING", 16.0),
        drag_motion_threshold=_getfloat("DRAG_MOTION_THRESHOLD", 4.0),
        csrf_enabled=_getenv("CSRF_ENABLED", csrf_default).lower() in ("1", "true", "yes", "on"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DRAG_ITEM_EXTENT": s.drag_item_extent,
        "DRAG_CONTAINER_PADDING": s.drag_container_padding,
        "DRAG_MOTION_THRESHOLD": s.drag_motion_threshold,
        "CSRF_ENABLED": s.csrf_enabled,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; a whole menu is well under 1MB
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
