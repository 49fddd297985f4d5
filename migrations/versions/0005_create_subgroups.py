"""create subgroups and task subgroup assignments"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0005_create_subgroups"
down_revision = "0004_create_organization_chat"
branch_labels = None
depends_on = None


def _subgroup_fk() -> sa.Column:
    return sa.Column(
        "subgroup_id",
        sa.String(length=36),
        sa.ForeignKey("subgroups.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "subgroups",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_subgroups_organization_id", "subgroups", ["organization_id"], unique=False)

    op.create_table(
        "subgroup_members",
        sa.Column("id", sa.String(length=36), primary_key=True),
        _subgroup_fk(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.UniqueConstraint("subgroup_id", "user_id", name="uq_subgroup_member"),
    )
    op.create_index("ix_subgroup_members_subgroup_id", "subgroup_members", ["subgroup_id"], unique=False)
    op.create_index("ix_subgroup_members_user_id", "subgroup_members", ["user_id"], unique=False)

    op.create_table(
        "task_subgroup_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(length=36),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _subgroup_fk(),
        sa.UniqueConstraint("task_id", "subgroup_id", name="uq_task_subgroup"),
    )
    op.create_index(
        "ix_task_subgroup_assignments_task_id", "task_subgroup_assignments", ["task_id"], unique=False
    )
    op.create_index(
        "ix_task_subgroup_assignments_subgroup_id", "task_subgroup_assignments", ["subgroup_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_task_subgroup_assignments_subgroup_id", table_name="task_subgroup_assignments")
    op.drop_index("ix_task_subgroup_assignments_task_id", table_name="task_subgroup_assignments")
    op.drop_table("task_subgroup_assignments")
    op.drop_index("ix_subgroup_members_user_id", table_name="subgroup_members")
    op.drop_index("ix_subgroup_members_subgroup_id", table_name="subgroup_members")
    op.drop_table("subgroup_members")
    op.drop_index("ix_subgroups_organization_id", table_name="subgroups")
    op.drop_table("subgroups")
