"""Initial vault schema: users, folders, files, shares, audit logs,
WhatsApp sessions.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

TABLES = ("whatsapp_sessions", "audit_logs", "shares", "files", "folders", "users")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # create only what is missing so re-running against a partial schema is safe
    if not insp.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("phone", sa.String(40), unique=True, nullable=True),
            sa.Column("email", sa.String(255), unique=True, nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=True),
            sa.Column("foundarv_id", sa.String(16), unique=True, nullable=False),
            sa.Column("user_type", sa.String(20), nullable=False, server_default="individual"),
            *_timestamps(),
        )
        op.create_index("ix_users_phone", "users", ["phone"])

    if not insp.has_table("folders"):
        op.create_table(
            "folders",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("parent_id", sa.Integer, sa.ForeignKey("folders.id"), nullable=True),
            sa.Column("folder_type", sa.String(20), nullable=False, server_default="custom"),
            *_timestamps(),
        )
        op.create_index("ix_folders_user_id", "folders", ["user_id"])
        op.create_index("ix_folders_parent_id", "folders", ["parent_id"])

    if not insp.has_table("files"):
        op.create_table(
            "files",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
            sa.Column("folder_id", sa.Integer, sa.ForeignKey("folders.id"), nullable=True),
            sa.Column("original_name", sa.String(255), nullable=False),
            sa.Column("display_name", sa.String(255), nullable=False),
            sa.Column("file_type", sa.String(120)),
            sa.Column("file_size", sa.Integer),
            sa.Column("mime_type", sa.String(128)),
            sa.Column("storage_path", sa.String(512), nullable=False, unique=True),
            sa.Column("encrypted_key", sa.String(64)),
            sa.Column("ai_generated_name", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("tags", sa.JSON),
            sa.Column("file_metadata", sa.JSON),
            *_timestamps(),
        )
        op.create_index("ix_files_user_id", "files", ["user_id"])
        op.create_index("ix_files_folder_id", "files", ["folder_id"])
        op.create_index("ix_files_display_name", "files", ["display_name"])

    if not insp.has_table("shares"):
        op.create_table(
            "shares",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("file_id", sa.Integer, sa.ForeignKey("files.id"), nullable=True),
            sa.Column("folder_id", sa.Integer, sa.ForeignKey("folders.id"), nullable=True),
            sa.Column("shared_by", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
            sa.Column("shared_with_foundarv_id", sa.String(16)),
            sa.Column("shared_with_email", sa.String(255)),
            sa.Column("permission", sa.String(10), nullable=False, server_default="view"),
            sa.Column("expires_at", sa.DateTime),
            sa.Column("access_token", sa.String(64), nullable=False, unique=True),
            *_timestamps(),
        )
        op.create_index("ix_shares_shared_by", "shares", ["shared_by"])

    if not insp.has_table("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
            sa.Column("action", sa.String(64), nullable=False),
            sa.Column("resource_type", sa.String(32), nullable=False),
            sa.Column("resource_id", sa.Integer),
            sa.Column("details", sa.JSON),
            sa.Column("ip_address", sa.String(64)),
            sa.Column("user_agent", sa.String(512)),
            sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])

    if not insp.has_table("whatsapp_sessions"):
        op.create_table(
            "whatsapp_sessions",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
            sa.Column("phone_number", sa.String(40), nullable=False, unique=True),
            sa.Column("session_data", sa.JSON, nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_whatsapp_sessions_user_id", "whatsapp_sessions", ["user_id"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    # children first
    for t in TABLES:
        if insp.has_table(t):
            op.drop_table(t)
