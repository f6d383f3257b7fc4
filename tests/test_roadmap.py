"""Tests for the product roadmap board."""
import pytest
from werkzeug.security import generate_password_hash

from app.buildboard import create_app
from app.buildboard.db import session_scope
from app.buildboard.models import Base, Permission, Role, User
from app.buildboard.modules.roadmap.models import RoadmapItem


def _seed_roadmap_permissions(s, keys):
    perms = []
    for key in keys:
        p = Permission(key=key, name=f"Roadmap: {key.split('.')[-1]}")
        s.add(p)
        perms.append(p)
    return perms


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("CSRF_ENABLED", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        view, edit = _seed_roadmap_permissions(s, ("roadmap.view", "roadmap.edit"))
        admin = Role(key="admin", name="Administrator")
        admin.permissions.extend([view, edit])
        viewer = Role(key="viewer", name="Viewer")
        viewer.permissions.append(view)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(admin)
        v = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        v.roles.append(viewer)
        s.add_all([admin, viewer, u, v])

    return app


def _login(client, email="admin@example.com"):
    client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=False)


@pytest.fixture()
def client(app):
    c = app.test_client()
    _login(c)
    return c


def _create(client, title, **fields):
    r = client.post("/admin/roadmap", json={"title": title, **fields})
    assert r.status_code == 201, r.json
    return r.json["id"]


def _titles(payload, key):
    col = next(c for c in payload["columns"] if c["id"] == key)
    return [i["payload"]["title"] for i in col["items"]]


def test_default_columns(client):
    r = client.get("/admin/roadmap")
    assert r.status_code == 200
    assert [c["id"] for c in r.json["columns"]] == ["idea", "planned", "in-progress", "debugging", "released"]
    assert "critical" in r.json["priorities"]
    assert "integration" in r.json["categories"]


def test_create_with_fields(app, client):
    _create(
        client,
        "Gantt export",
        status="planned",
        priority="high",
        category="module",
        progress=40,
        tags=["programme", "export"],
        version="2.1",
        estimated_date="2026-12-01",
    )
    r = client.get("/admin/roadmap")
    col = next(c for c in r.json["columns"] if c["id"] == "planned")
    p = col["items"][0]["payload"]
    assert p["priority"] == "high"
    assert p["progress"] == 40
    assert p["estimated_date"] == "2026-12-01"
    assert p["tags"] == ["programme", "export"]


@pytest.mark.parametrize(
    "fields",
    [
        {"priority": "urgent"},
        {"category": "misc"},
        {"progress": 150},
        {"progress": "lots"},
        {"estimated_date": "next week"},
    ],
)
def test_create_validation(client, fields):
    r = client.post("/admin/roadmap", json={"title": "x", **fields})
    assert r.status_code == 400


def test_move_through_pipeline(app, client):
    item = _create(client, "Offline mode")
    other = _create(client, "Dark theme", status="in-progress")

    r = client.post("/admin/roadmap/move", json={"item_id": item, "source": "idea", "target": "in-progress", "target_index": 0})
    assert _titles(r.json, "in-progress") == ["Offline mode", "Dark theme"]
    r = client.post("/admin/roadmap/move", json={"item_id": item, "source": "in-progress", "target": "released", "target_index": 3})
    assert _titles(r.json, "released") == ["Offline mode"]
    assert _titles(r.json, "in-progress") == ["Dark theme"]

    with session_scope(app) as s:
        assert s.get(RoadmapItem, int(item)).status == "released"
        assert s.get(RoadmapItem, int(other)).order_index == 0


def test_move_from_wrong_source_is_404(client):
    item = _create(client, "A")
    r = client.post("/admin/roadmap/move", json={"item_id": item, "source": "planned", "target": "released"})
    assert r.status_code == 404


def test_viewer_cannot_move(app):
    c = app.test_client()
    _login(c, "viewer@example.com")
    assert c.get("/admin/roadmap").status_code == 200
    r = c.post("/admin/roadmap/move", json={"item_id": "1", "source": "idea", "target": "planned"})
    assert r.status_code == 403


def test_edit_partial(client):
    item = _create(client, "A", priority="low")
    r = client.post(f"/admin/roadmap/{item}/edit", json={"priority": "critical", "progress": 80, "title": ""})
    assert r.status_code == 400  # blank title rejected
    r = client.post(f"/admin/roadmap/{item}/edit", json={"priority": "critical", "progress": 80})
    assert r.status_code == 200
    p = r.json["columns"][0]["items"][0]["payload"]
    assert (p["title"], p["priority"], p["progress"]) == ("A", "critical", 80)


def test_filters(client):
    _create(client, "A", priority="high", category="bugfix")
    _create(client, "B", priority="low", category="bugfix")
    _create(client, "C", priority="high", category="feature", status="planned")
    r = client.get("/admin/roadmap?priority=high")
    assert _titles(r.json, "idea") == ["A"]
    assert _titles(r.json, "planned") == ["C"]
    r = client.get("/admin/roadmap?category=bugfix&priority=all")
    assert _titles(r.json, "idea") == ["A", "B"]
    r = client.get("/admin/roadmap?status=planned")
    assert _titles(r.json, "idea") == []
    assert _titles(r.json, "planned") == ["C"]
