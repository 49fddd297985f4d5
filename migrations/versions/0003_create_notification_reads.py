"""create notification read ledger"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_create_notification_reads"
down_revision = "0002_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "notification_reads",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("notification_type", sa.String(length=40), nullable=False),
        sa.Column("notification_id", sa.String(length=64), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "notification_type", "notification_id", name="uq_notification_read"
        ),
    )
    op.create_index("ix_notification_reads_user_id", "notification_reads", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_reads_user_id", table_name="notification_reads")
    op.drop_table("notification_reads")
