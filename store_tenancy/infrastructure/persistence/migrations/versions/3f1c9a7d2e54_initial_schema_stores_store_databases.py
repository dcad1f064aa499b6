"""initial_schema_stores_store_databases_theme_defaults

Revision ID: 3f1c9a7d2e54
Revises:
Create Date: 2026-09-28 10:14:52.118406

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2e54"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema - stores, store_databases (encrypted credentials), theme_defaults."""

    op.create_table(
        "stores",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column(
            "status", sa.String(), nullable=False, server_default="pending_database"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("published", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("theme_preset", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending_database', 'provisioning', 'active', 'suspended')",
            name="stores_status_check",
        ),
        sa.CheckConstraint(
            "is_active = false OR status = 'active'",
            name="stores_active_requires_active_status",
        ),
    )
    op.create_index("ix_stores_user_id", "stores", ["user_id"])
    op.create_index("ix_stores_status", "stores", ["status"])
    # Slugs are unique among live stores; a suspended store releases its slug.
    op.create_index(
        "uq_stores_slug_live",
        "stores",
        ["slug"],
        unique=True,
        postgresql_where=sa.text("status <> 'suspended'"),
    )

    op.create_table(
        "store_databases",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("store_id", sa.String(), nullable=False),
        sa.Column("database_kind", sa.String(), nullable=False),
        sa.Column("project_url_encrypted", sa.Text(), nullable=True),
        sa.Column("service_role_key_encrypted", sa.Text(), nullable=True),
        sa.Column("anon_key_encrypted", sa.Text(), nullable=True),
        sa.Column("connection_string_encrypted", sa.Text(), nullable=True),
        sa.Column("host", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "connection_status", sa.String(), nullable=False, server_default="pending"
        ),
        sa.Column("last_connection_test", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("store_id", name="uq_store_databases_store_id"),
        sa.CheckConstraint(
            "database_kind IN ('supabase', 'postgresql')",
            name="store_databases_kind_check",
        ),
        sa.CheckConstraint(
            "connection_status IN ('pending', 'connected', 'failed')",
            name="store_databases_connection_status_check",
        ),
    )
    op.create_index("ix_store_databases_host", "store_databases", ["host"])
    # Backstop for the advisory-locked duplicate check: one active row per host.
    op.create_index(
        "uq_store_databases_active_host",
        "store_databases",
        ["host"],
        unique=True,
        postgresql_where=sa.text("is_active AND host IS NOT NULL"),
    )

    op.create_table(
        "theme_defaults",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("preset_name", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column(
            "theme_settings",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "is_system_default", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("preset_name", name="uq_theme_defaults_preset_name"),
    )


def downgrade() -> None:
    """Downgrade schema - drop theme_defaults, store_databases, stores."""
    op.drop_table("theme_defaults")
    op.drop_index("uq_store_databases_active_host", table_name="store_databases")
    op.drop_index("ix_store_databases_host", table_name="store_databases")
    op.drop_table("store_databases")
    op.drop_index("uq_stores_slug_live", table_name="stores")
    op.drop_index("ix_stores_status", table_name="stores")
    op.drop_index("ix_stores_user_id", table_name="stores")
    op.drop_table("stores")
