"""create tasks, assignments, stages and reports tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_tasks"
down_revision = "0001_create_organizations"
branch_labels = None
depends_on = None


def _task_fk() -> sa.Column:
    return sa.Column(
        "task_id",
        sa.String(length=36),
        sa.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("deadline", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("actual_completed_at", sa.DateTime(), nullable=True),
        sa.Column("estimated_completion_hours", sa.Integer(), nullable=True),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        sa.Column("last_edited_at", sa.DateTime(), nullable=True),
        sa.Column("last_edited_by", sa.String(length=36), nullable=True),
    )
    op.create_index("ix_tasks_organization_id", "tasks", ["organization_id"], unique=False)
    op.create_index("ix_tasks_assigned_by", "tasks", ["assigned_by"], unique=False)
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"], unique=False)
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
    op.create_index("ix_tasks_deadline", "tasks", ["deadline"], unique=False)
    op.create_index("ix_tasks_org_status", "tasks", ["organization_id", "status"], unique=False)

    op.create_table(
        "task_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _task_fk(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.UniqueConstraint("task_id", "user_id", name="uq_task_assignment"),
    )
    op.create_index("ix_task_assignments_task_id", "task_assignments", ["task_id"], unique=False)
    op.create_index("ix_task_assignments_user_id", "task_assignments", ["user_id"], unique=False)

    op.create_table(
        "task_stages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _task_fk(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_task_stages_task_id", "task_stages", ["task_id"], unique=False)

    op.create_table(
        "task_reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _task_fk(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("report_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_task_reports_task_id", "task_reports", ["task_id"], unique=False)

    op.create_table(
        "task_attachments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "task_report_id",
            sa.String(length=36),
            sa.ForeignKey("task_reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=120), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
    )
    op.create_index("ix_task_attachments_task_report_id", "task_attachments", ["task_report_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_attachments_task_report_id", table_name="task_attachments")
    op.drop_table("task_attachments")
    op.drop_index("ix_task_reports_task_id", table_name="task_reports")
    op.drop_table("task_reports")
    op.drop_index("ix_task_stages_task_id", table_name="task_stages")
    op.drop_table("task_stages")
    op.drop_index("ix_task_assignments_user_id", table_name="task_assignments")
    op.drop_index("ix_task_assignments_task_id", table_name="task_assignments")
    op.drop_table("task_assignments")
    for name in (
        "ix_tasks_org_status",
        "ix_tasks_deadline",
        "ix_tasks_status",
        "ix_tasks_assigned_to",
        "ix_tasks_assigned_by",
        "ix_tasks_organization_id",
    ):
        op.drop_index(name, table_name="tasks")
    op.drop_table("tasks")
