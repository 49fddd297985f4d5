from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import InvitationStatus, StageStatus, TaskStatus


@dataclass(frozen=True)
class StageEntity:
    id: str
    task_id: str
    title: str
    description: str | None
    order_index: int
    status: StageStatus


@dataclass(frozen=True)
class AttachmentEntity:
    id: str
    file_url: str
    file_name: str
    file_type: str
    file_size: int | None


@dataclass(frozen=True)
class ReportEntity:
    id: str
    task_id: str
    user_id: str
    report_text: str
    created_at: datetime
    attachments: tuple[AttachmentEntity, ...] = ()


@dataclass(frozen=True)
class TaskEntity:
    id: str
    organization_id: str | None
    title: str
    description: str | None
    assigned_by: str
    assigned_to: str
    status: TaskStatus
    deadline: datetime
    created_at: datetime
    started_at: Optional[datetime]
    actual_completed_at: Optional[datetime]
    estimated_completion_hours: int | None
    decline_reason: str | None
    last_edited_at: Optional[datetime]
    last_edited_by: str | None
    assignee_ids: tuple[str, ...] = ()
    stages: tuple[StageEntity, ...] = ()
    reports: tuple[ReportEntity, ...] = ()
    subgroup_ids: tuple[str, ...] = ()

    def is_assignee(self, user_id: str) -> bool:
        return user_id == self.assigned_to or user_id in self.assignee_ids

    def is_participant(self, user_id: str) -> bool:
        return user_id == self.assigned_by or self.is_assignee(user_id)


@dataclass(frozen=True)
class ProfileEntity:
    id: str
    full_name: str
    email: str | None


@dataclass(frozen=True)
class OrganizationEntity:
    id: str
    name: str
    description: str | None
    created_by: str
    created_at: datetime


@dataclass(frozen=True)
class MemberEntity:
    id: str
    organization_id: str
    user_id: str
    position: str | None
    created_at: datetime


@dataclass(frozen=True)
class SubgroupEntity:
    id: str
    organization_id: str
    name: str
    description: str | None
    created_by: str
    created_at: datetime
    member_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class InvitationEntity:
    id: str
    organization_id: str
    employee_id: str
    message: str | None
    status: InvitationStatus
    created_at: datetime
    accepted_at: Optional[datetime]
    declined_at: Optional[datetime]


@dataclass(frozen=True)
class NotificationReadEntity:
    id: str
    user_id: str
    notification_type: str
    notification_id: str
    read_at: datetime


@dataclass(frozen=True)
class ReactionEntity:
    user_id: str
    reaction: str


@dataclass(frozen=True)
class ChatMessageEntity:
    id: str
    organization_id: str
    user_id: str
    message: str
    reply_to_id: str | None
    created_at: datetime
    edited_at: Optional[datetime]
    is_deleted: bool
    reactions: tuple[ReactionEntity, ...] = ()
    attachments: tuple[AttachmentEntity, ...] = ()


@dataclass(frozen=True)
class Notification:
    """A candidate notification enumerated by one feature, with its read flag."""

    type: str
    id: str
    organization_id: str | None
    title: str
    created_at: datetime
    read: bool = False
    payload: dict = field(default_factory=dict)
