from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from tasky.domain.clock import utcnow

from .db import Base


def new_id() -> str:
    return str(uuid.uuid4())


class ProfileModel(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    full_name = Column(String(200), nullable=False, default="")
    email = Column(String(320), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class OrganizationModel(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    members = relationship("MemberModel", cascade="all, delete-orphan", passive_deletes=True)
    invitations = relationship("InvitationModel", cascade="all, delete-orphan", passive_deletes=True)
    tasks = relationship("TaskModel", cascade="all, delete-orphan", passive_deletes=True)
    messages = relationship("ChatMessageModel", cascade="all, delete-orphan", passive_deletes=True)
    subgroups = relationship("SubgroupModel", cascade="all, delete-orphan", passive_deletes=True)


class MemberModel(Base):
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_org_member"),)

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    position = Column(String(120), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class InvitationModel(Base):
    __tablename__ = "organization_invitations"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    accepted_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)


class TaskModel(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_org_status", "organization_id", "status"),)

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    assigned_by = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    deadline = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    started_at = Column(DateTime, nullable=True)
    actual_completed_at = Column(DateTime, nullable=True)
    estimated_completion_hours = Column(Integer, nullable=True)
    decline_reason = Column(Text, nullable=True)
    last_edited_at = Column(DateTime, nullable=True)
    last_edited_by = Column(String(36), nullable=True)

    assignments = relationship(
        "AssignmentModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    stages = relationship(
        "StageModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    reports = relationship(
        "ReportModel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ReportModel.created_at",
    )
    subgroup_links = relationship(
        "TaskSubgroupModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )


class AssignmentModel(Base):
    __tablename__ = "task_assignments"
    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_task_assignment"),)

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)


class SubgroupModel(Base):
    __tablename__ = "subgroups"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    members = relationship(
        "SubgroupMemberModel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="SubgroupMemberModel.user_id",
    )


class SubgroupMemberModel(Base):
    __tablename__ = "subgroup_members"
    __table_args__ = (UniqueConstraint("subgroup_id", "user_id", name="uq_subgroup_member"),)

    id = Column(String(36), primary_key=True, default=new_id)
    subgroup_id = Column(
        String(36), ForeignKey("subgroups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)


class TaskSubgroupModel(Base):
    __tablename__ = "task_subgroup_assignments"
    __table_args__ = (UniqueConstraint("task_id", "subgroup_id", name="uq_task_subgroup"),)

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    subgroup_id = Column(
        String(36), ForeignKey("subgroups.id", ondelete="CASCADE"), nullable=False, index=True
    )


class StageModel(Base):
    __tablename__ = "task_stages"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ReportModel(Base):
    __tablename__ = "task_reports"

    id = Column(String(36), primary_key=True, default=new_id)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    report_text = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    attachments = relationship(
        "TaskAttachmentModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )


class TaskAttachmentModel(Base):
    __tablename__ = "task_attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    task_report_id = Column(
        String(36), ForeignKey("task_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_url = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(120), nullable=False)
    file_size = Column(Integer, nullable=True)


class NotificationReadModel(Base):
    __tablename__ = "notification_reads"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "notification_type", "notification_id", name="uq_notification_read"
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    notification_type = Column(String(40), nullable=False)
    notification_id = Column(String(64), nullable=False)
    read_at = Column(DateTime, nullable=False, default=utcnow)


class ChatMessageModel(Base):
    __tablename__ = "organization_chat"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    message = Column(Text, nullable=False, default="")
    reply_to_id = Column(
        String(36), ForeignKey("organization_chat.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    edited_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    reactions = relationship(
        "ChatReactionModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    attachments = relationship(
        "ChatAttachmentModel", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )


class ChatReactionModel(Base):
    __tablename__ = "organization_chat_reactions"
    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_chat_reaction"),)

    id = Column(String(36), primary_key=True, default=new_id)
    message_id = Column(
        String(36), ForeignKey("organization_chat.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    reaction = Column(String(32), nullable=False)


class ChatAttachmentModel(Base):
    __tablename__ = "organization_chat_attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    message_id = Column(
        String(36), ForeignKey("organization_chat.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_url = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(120), nullable=False)
    file_size = Column(Integer, nullable=True)
