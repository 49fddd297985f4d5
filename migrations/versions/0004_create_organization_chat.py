"""create organization chat tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0004_create_organization_chat"
down_revision = "0003_create_notification_reads"
branch_labels = None
depends_on = None


def _message_fk() -> sa.Column:
    return sa.Column(
        "message_id",
        sa.String(length=36),
        sa.ForeignKey("organization_chat.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "organization_chat",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "reply_to_id",
            sa.String(length=36),
            sa.ForeignKey("organization_chat.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("edited_at", sa.DateTime(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_organization_chat_organization_id", "organization_chat", ["organization_id"], unique=False)
    op.create_index("ix_organization_chat_user_id", "organization_chat", ["user_id"], unique=False)
    op.create_index("ix_organization_chat_reply_to_id", "organization_chat", ["reply_to_id"], unique=False)
    op.create_index("ix_organization_chat_created_at", "organization_chat", ["created_at"], unique=False)

    op.create_table(
        "organization_chat_reactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _message_fk(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("reaction", sa.String(length=32), nullable=False),
        sa.UniqueConstraint("message_id", "user_id", name="uq_chat_reaction"),
    )
    op.create_index(
        "ix_organization_chat_reactions_message_id", "organization_chat_reactions", ["message_id"], unique=False
    )

    op.create_table(
        "organization_chat_attachments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _message_fk(),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=120), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_organization_chat_attachments_message_id",
        "organization_chat_attachments",
        ["message_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_organization_chat_attachments_message_id", table_name="organization_chat_attachments")
    op.drop_table("organization_chat_attachments")
    op.drop_index("ix_organization_chat_reactions_message_id", table_name="organization_chat_reactions")
    op.drop_table("organization_chat_reactions")
    for name in (
        "ix_organization_chat_created_at",
        "ix_organization_chat_reply_to_id",
        "ix_organization_chat_user_id",
        "ix_organization_chat_organization_id",
    ):
        op.drop_index(name, table_name="organization_chat")
    op.drop_table("organization_chat")
