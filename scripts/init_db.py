import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.buildboard.models import MenuItem, Permission, Role, User
from app.buildboard.modules.boards.service import ensure_default_columns
from app.buildboard.modules.menu_builder.service import reset_menu
from app.buildboard.modules.module_catalog.service import ensure_default_modules
from app.buildboard.modules.notes_board.service import NOTES_BOARD
from app.buildboard.modules.roadmap.service import ROADMAP_BOARD
from scripts._db_utils import script_session

# (key, name)
PERMISSIONS = (
    ("admin.view", "Admin: view dashboard and audit trail"),
    ("notes.view", "Notes: view board"),
    ("notes.edit", "Notes: create, edit, move"),
    ("roadmap.view", "Roadmap: view board"),
    ("roadmap.edit", "Roadmap: create, edit, move"),
    ("menu.view", "Menu builder: view"),
    ("menu.edit", "Menu builder: edit"),
    ("modules.view", "Modules: view catalog"),
    ("modules.edit", "Modules: reclassify and toggle"),
)

# role key -> (display name, permission keys)
ROLES = {
    "admin": ("Administrator", tuple(k for k, _ in PERMISSIONS)),
    "editor": ("Editor", ("notes.view", "notes.edit", "roadmap.view", "roadmap.edit", "menu.view", "modules.view")),
    "viewer": ("Viewer", ("notes.view", "roadmap.view", "menu.view", "modules.view")),
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions, roles, the admin user and default board columns, menu
    and module catalog. Idempotent; does NOT overwrite an existing admin
    user's password or a menu that already has entries.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@buildboard.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///buildboard.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for role_key, (role_name, perm_keys) in ROLES.items():
            role = s.query(Role).filter(Role.key == role_key).one_or_none()
            if not role:
                role = Role(key=role_key, name=role_name)
                s.add(role)
            for k in perm_keys:
                if perms[k] not in role.permissions:
                    role.permissions.append(perms[k])
            roles[role_key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])
        s.flush()

        ensure_default_columns(s, NOTES_BOARD)
        ensure_default_columns(s, ROADMAP_BOARD)
        added_modules = ensure_default_modules(s)
        if s.query(MenuItem).count() == 0:
            reset_menu(s, None)
            print("Seeded default menu.")
        if added_modules:
            print(f"Seeded {added_modules} module(s).")

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
