"""initial schema: auth, audit trail, boards, menu builder, module catalog

Revision ID: a1c4e7b20f31
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a1c4e7b20f31"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))
        except Exception:
            return False

    def _ensure_index(name: str, table: str, cols: list[str]) -> None:
        if table in existing_tables and not _has_index(table, name):
            op.create_index(name, table, cols)

    # ---------- auth ----------
    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )
        existing_tables.add("users")

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("key", name="uq_roles_key"),
        )
        existing_tables.add("roles")

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.UniqueConstraint("key", name="uq_permissions_key"),
        )
        existing_tables.add("permissions")

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )
        existing_tables.add("user_roles")

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
        )
        existing_tables.add("role_permissions")

    # ---------- audit ----------
    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )
        existing_tables.add("audit_events")
    _ensure_index("idx_audit_events_action", "audit_events", ["action"])

    # ---------- boards ----------
    if "board_columns" not in existing_tables:
        op.create_table(
            "board_columns",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("board", sa.String(32), nullable=False),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("label", sa.String(128), nullable=False),
            sa.Column("color", sa.String(32), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.UniqueConstraint("board", "key", name="uq_board_columns_board_key"),
        )
        existing_tables.add("board_columns")
    _ensure_index("idx_board_columns_board_order", "board_columns", ["board", "order_index"])

    if "notes" not in existing_tables:
        op.create_table(
            "notes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("status", sa.String(64), nullable=False, server_default="draft"),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("color", sa.String(32), nullable=True),
            sa.Column("tags", JSON_TYPE, nullable=True),
            *_timestamps(),
            sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        )
        existing_tables.add("notes")
    _ensure_index("idx_notes_status_order", "notes", ["status", "order_index"])

    if "roadmap_items" not in existing_tables:
        op.create_table(
            "roadmap_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("status", sa.String(64), nullable=False, server_default="idea"),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("priority", sa.String(32), nullable=False, server_default="medium"),
            sa.Column("category", sa.String(32), nullable=False, server_default="feature"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("tags", JSON_TYPE, nullable=True),
            sa.Column("version", sa.String(32), nullable=True),
            sa.Column("estimated_date", sa.Date(), nullable=True),
            sa.Column("changelog", sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        )
        existing_tables.add("roadmap_items")
    _ensure_index("idx_roadmap_items_status_order", "roadmap_items", ["status", "order_index"])
    _ensure_index("idx_roadmap_items_priority", "roadmap_items", ["priority"])
    _ensure_index("idx_roadmap_items_category", "roadmap_items", ["category"])

    # ---------- menu builder ----------
    if "menu_items" not in existing_tables:
        op.create_table(
            "menu_items",
            sa.Column("id", sa.String(32), primary_key=True),
            sa.Column("parent_id", sa.String(32), sa.ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("kind", sa.String(16), nullable=False, server_default="leaf"),
            sa.Column("label", sa.String(128), nullable=False),
            sa.Column("icon", sa.String(64), nullable=True),
            sa.Column("path", sa.String(255), nullable=True),
            sa.Column("module_key", sa.String(64), nullable=True),
            sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        existing_tables.add("menu_items")
    _ensure_index("idx_menu_items_parent_order", "menu_items", ["parent_id", "order_index"])

    # ---------- module catalog ----------
    if "module_settings" not in existing_tables:
        op.create_table(
            "module_settings",
            sa.Column("key", sa.String(64), primary_key=True),
            sa.Column("label", sa.String(128), nullable=False),
            sa.Column("description", sa.String(512), nullable=True),
            sa.Column("bucket", sa.String(32), nullable=False, server_default="additional"),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        existing_tables.add("module_settings")
    _ensure_index("idx_module_settings_bucket_order", "module_settings", ["bucket", "order_index"])


def downgrade() -> None:
    for table in (
        "module_settings",
        "menu_items",
        "roadmap_items",
        "notes",
        "board_columns",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
