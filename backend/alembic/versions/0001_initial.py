"""Initial schema: users, sessions, records, activity log, app settings.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

_ROLES = ("admin", "comando", "oficial", "dono_org", "user", "pending")
_ACTIONS = ("create", "edit", "delete", "role_change", "user_remove")


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if with_updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        )
    return columns


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(*_ROLES, name="user_role", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_index("ix_users_username", "users", ["username"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    # user_sessions
    op.create_table(
        "user_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])
    op.create_index("ix_user_sessions_created_at", "user_sessions", ["created_at"])

    # prison_records
    op.create_table(
        "prison_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("individual_name", sa.String(200), nullable=False),
        sa.Column("individual_key", sa.String(200), nullable=False),
        sa.Column("fixed_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("date_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(300), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("articles", sa.Text, nullable=False, server_default=""),
        sa.Column("observations", sa.Text, nullable=False, server_default=""),
        sa.Column("seized_items", sa.Text, nullable=False, server_default=""),
        sa.Column("responsible_officers", sa.Text, nullable=False),
        sa.Column("screenshots", sa.JSON, nullable=False),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("edited_by", sa.String(100), nullable=True),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_prison_records_sequence", "prison_records", ["sequence"], unique=True)
    op.create_index("ix_prison_records_individual_key", "prison_records", ["individual_key"])
    op.create_index("ix_prison_records_created_at", "prison_records", ["created_at"])

    # activity_logs
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column(
            "action",
            sa.Enum(*_ACTIONS, name="activity_action", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("performed_by", sa.String(100), nullable=False),
        sa.Column("target_user", sa.String(100), nullable=True),
        sa.Column("target_record", sa.JSON, nullable=True),
        sa.Column("details", sa.Text, nullable=False, server_default=""),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entry_hash", sa.String(64), nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.UniqueConstraint("entry_hash", name="uq_activity_entry_hash"),
    )
    op.create_index("ix_activity_logs_position", "activity_logs", ["position"], unique=True)
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_performed_by", "activity_logs", ["performed_by"])

    # app_settings
    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("webhook_url", sa.String(500), nullable=True),
        sa.Column("message_template", sa.Text, nullable=False),
        sa.Column("app_title", sa.String(200), nullable=False),
        sa.Column("app_subtitle", sa.String(300), nullable=False),
        sa.Column("brasilia_logo_url", sa.String(500), nullable=False),
        sa.Column("bope_logo_url", sa.String(500), nullable=False),
        sa.Column("updated_by", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_app_settings_created_at", "app_settings", ["created_at"])


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_table("activity_logs")
    op.drop_table("prison_records")
    op.drop_table("user_sessions")
    op.drop_table("users")
