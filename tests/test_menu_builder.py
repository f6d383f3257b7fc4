"""Tests for the sidebar menu builder."""
import pytest
from werkzeug.security import generate_password_hash

from app.buildboard import create_app
from app.buildboard.db import session_scope
from app.buildboard.models import AuditEvent, Base, Permission, Role, User
from app.buildboard.modules.menu_builder.models import MenuItem
from app.buildboard.modules.menu_builder.service import DEFAULT_MENU, build_tree, load_tree, persist_tree


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("CSRF_ENABLED", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key in ("menu.view", "menu.edit"):
            r.permissions.append(Permission(key=key, name=key))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u])

    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    c.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    return c


def _labels(nodes):
    return [n["payload"]["label"] for n in nodes]


def _by_label(nodes, label):
    return next(n for n in nodes if n["payload"]["label"] == label)


def _menu(client):
    r = client.get("/admin/menu")
    assert r.status_code == 200
    return r.json["menu"]


def test_reset_builds_default_menu(client):
    r = client.post("/admin/menu/reset")
    assert r.status_code == 200
    menu = r.json["menu"]
    assert _labels(menu) == [e["label"] for e in DEFAULT_MENU]
    projects = _by_label(menu, "Projects")
    assert projects["kind"] == "branch"
    assert [c["order"] for c in projects["children"]] == [0, 1, 2]
    assert _labels(_menu(client)) == _labels(menu)


def test_add_root_and_child(client):
    r = client.post("/admin/menu/roots", json={"label": "Reports", "icon": "chart"})
    assert r.status_code == 201
    root_id = r.json["id"]
    r = client.post(f"/admin/menu/{root_id}/children", json={"label": "Cost report", "path": "/reports/cost"})
    assert r.status_code == 201
    r = client.post(f"/admin/menu/{root_id}/children", json={"label": "Progress report"})
    menu = _menu(client)
    reports = _by_label(menu, "Reports")
    assert _labels(reports["children"]) == ["Cost report", "Progress report"]
    assert reports["children"][0]["payload"]["path"] == "/reports/cost"
    assert reports["children"][1]["order"] == 1


def test_add_validation(client):
    assert client.post("/admin/menu/roots", json={"label": " "}).status_code == 400
    assert client.post("/admin/menu/roots", json={"label": "X", "path": "no-slash"}).status_code == 400
    assert client.post("/admin/menu/ghost/children", json={"label": "X"}).status_code == 404


def test_move_into_makes_first_child(app, client):
    client.post("/admin/menu/reset")
    menu = _menu(client)
    notes = _by_label(menu, "Notes")
    projects = _by_label(menu, "Projects")

    r = client.post(f"/admin/menu/{notes['id']}/move-into", json={"target_id": projects["id"]})
    assert r.status_code == 200
    menu = r.json["menu"]
    assert "Notes" not in _labels(menu)
    assert _labels(_by_label(menu, "Projects")["children"])[0] == "Notes"
    assert [n["order"] for n in menu] == list(range(len(menu)))

    with session_scope(app) as s:
        row = s.get(MenuItem, notes["id"])
        assert row.parent_id == projects["id"]
        assert row.order_index == 0
        assert s.query(AuditEvent).filter(AuditEvent.action == "menu.move").count() == 1


def test_move_into_descendant_is_409(client):
    client.post("/admin/menu/reset")
    menu = _menu(client)
    settings = _by_label(menu, "Settings")
    child = settings["children"][0]
    before = _menu(client)

    r = client.post(f"/admin/menu/{settings['id']}/move-into", json={"target_id": settings["id"]})
    assert r.status_code == 409

    r = client.post(f"/admin/menu/{child['id']}/children", json={"label": "Deeper"})
    assert r.status_code == 404  # leaf cannot own children

    r = client.post(f"/admin/menu/{settings['id']}/move-into", json={"target_id": child["id"]})
    assert r.status_code == 409

    notes = _by_label(menu, "Notes")
    r = client.post(f"/admin/menu/{notes['id']}/move-into", json={"target_id": child["id"]})
    assert r.status_code == 404
    assert r.json["kind"] == "branch"
    assert _menu(client) == before


def test_move_to_index(client):
    client.post("/admin/menu/reset")
    menu = _menu(client)
    roadmap = _by_label(menu, "Roadmap")
    r = client.post(f"/admin/menu/{roadmap['id']}/move", json={"index": 0})
    assert _labels(r.json["menu"])[0] == "Roadmap"
    crm = _by_label(r.json["menu"], "CRM")
    r = client.post(f"/admin/menu/{roadmap['id']}/move", json={"parent_id": crm["id"], "index": 99})
    assert _labels(_by_label(r.json["menu"], "CRM")["children"])[-1] == "Roadmap"
    assert client.post(f"/admin/menu/{roadmap['id']}/move", json={}).status_code == 400


def test_swap_up_and_down(client):
    client.post("/admin/menu/reset")
    first = _menu(client)[0]
    r = client.post(f"/admin/menu/{first['id']}/swap", json={"direction": "up"})
    assert r.json["changed"] is False
    r = client.post(f"/admin/menu/{first['id']}/swap", json={"direction": "down"})
    assert r.json["changed"] is True
    assert r.json["menu"][1]["id"] == first["id"]
    assert client.post(f"/admin/menu/{first['id']}/swap", json={"direction": "left"}).status_code == 400


def test_rename_toggle_edit(client):
    r = client.post("/admin/menu/roots", json={"label": "Docs"})
    node_id = r.json["id"]
    r = client.post(f"/admin/menu/{node_id}/rename", json={"label": "Documents"})
    assert r.json["menu"][0]["payload"]["label"] == "Documents"
    r = client.post(f"/admin/menu/{node_id}/toggle")
    assert r.json["menu"][0]["payload"]["visible"] is False
    r = client.post(f"/admin/menu/{node_id}/edit", json={"icon": "file", "path": "/documents"})
    assert r.json["menu"][0]["payload"]["icon"] == "file"
    assert client.post(f"/admin/menu/{node_id}/rename", json={"label": ""}).status_code == 400
    assert client.post("/admin/menu/ghost/toggle").status_code == 404


def test_delete_branch_cascades(app, client):
    client.post("/admin/menu/reset")
    menu = _menu(client)
    crm = _by_label(menu, "CRM")
    total = sum(1 + len(n.get("children", [])) for n in menu)

    r = client.post(f"/admin/menu/{crm['id']}/delete")
    assert r.status_code == 200
    assert r.json["removed"] == 4
    assert r.json["count"] == total - 4
    assert [n["order"] for n in r.json["menu"]] == list(range(len(r.json["menu"])))
    with session_scope(app) as s:
        assert s.query(MenuItem).count() == total - 4


def test_replace_menu(app, client):
    client.post("/admin/menu/reset")
    r = client.put(
        "/admin/menu",
        json={
            "menu": [
                {"label": "Home", "path": "/"},
                {"label": "Admin", "children": [{"label": "Users", "path": "/users"}, {"label": "Audit"}]},
            ]
        },
    )
    assert r.status_code == 200
    menu = r.json["menu"]
    assert _labels(menu) == ["Home", "Admin"]
    assert _labels(menu[1]["children"]) == ["Users", "Audit"]
    with session_scope(app) as s:
        assert s.query(MenuItem).count() == 4

    assert client.put("/admin/menu", json={"menu": "nope"}).status_code == 400
    assert client.put("/admin/menu", json={"menu": [{"label": ""}]}).status_code == 400
    bad = [{"label": "Leaf", "kind": "leaf", "children": [{"label": "X"}]}]
    assert client.put("/admin/menu", json={"menu": bad}).status_code == 400
    assert _labels(_menu(client)) == ["Home", "Admin"]


def test_persist_round_trip_keeps_ids(app):
    with session_scope(app) as s:
        tree = build_tree(DEFAULT_MENU)
        persist_tree(s, tree)
        s.flush()
        loaded = load_tree(s)
        assert loaded.snapshot() == tree.snapshot()

        settings = next(n for n in loaded.roots if n.payload["label"] == "Settings")
        loaded.remove(settings.id)
        stats = persist_tree(s, loaded)
        assert stats["deleted"] == 4
        assert stats["inserted"] == 0


def test_view_only_role_cannot_edit(app):
    with session_scope(app) as s:
        perm = s.query(Permission).filter(Permission.key == "menu.view").one()
        role = Role(key="viewer", name="Viewer")
        role.permissions.append(perm)
        v = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        v.roles.append(role)
        s.add_all([role, v])

    c = app.test_client()
    c.post("/auth/login", data={"email": "viewer@example.com", "password": "pw"})
    assert c.get("/admin/menu").status_code == 200
    assert c.post("/admin/menu/reset").status_code == 403
    assert c.post("/admin/menu/roots", json={"label": "X"}).status_code == 403
