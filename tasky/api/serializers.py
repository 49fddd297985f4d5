"""JSON shapes returned by the HTTP and socket layers."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from tasky.domain.entities import (
    AttachmentEntity,
    ChatMessageEntity,
    InvitationEntity,
    MemberEntity,
    Notification,
    NotificationReadEntity,
    OrganizationEntity,
    ReportEntity,
    StageEntity,
    SubgroupEntity,
    TaskEntity,
)
from tasky.domain.progress import completion_percentage
from tasky.domain.urgency import classify


def iso(value: Optional[datetime]) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"


def serialize_attachment(attachment: AttachmentEntity) -> dict:
    return {
        "id": attachment.id,
        "fileUrl": attachment.file_url,
        "fileName": attachment.file_name,
        "fileType": attachment.file_type,
        "fileSize": attachment.file_size,
    }


def serialize_stage(stage: StageEntity) -> dict:
    return {
        "id": stage.id,
        "taskId": stage.task_id,
        "title": stage.title,
        "description": stage.description,
        "orderIndex": stage.order_index,
        "status": stage.status.value,
    }


def serialize_report(report: ReportEntity) -> dict:
    return {
        "id": report.id,
        "taskId": report.task_id,
        "userId": report.user_id,
        "reportText": report.report_text,
        "createdAt": iso(report.created_at),
        "attachments": [serialize_attachment(a) for a in report.attachments],
    }


def serialize_task(task: TaskEntity, now: datetime) -> dict:
    return {
        "id": task.id,
        "organizationId": task.organization_id,
        "title": task.title,
        "description": task.description,
        "assignedBy": task.assigned_by,
        "assignedTo": task.assigned_to,
        "assigneeIds": list(task.assignee_ids),
        "subgroupIds": list(task.subgroup_ids),
        "status": task.status.value,
        "deadline": iso(task.deadline),
        "createdAt": iso(task.created_at),
        "startedAt": iso(task.started_at),
        "actualCompletedAt": iso(task.actual_completed_at),
        "estimatedCompletionHours": task.estimated_completion_hours,
        "declineReason": task.decline_reason,
        "lastEditedAt": iso(task.last_edited_at),
        "lastEditedBy": task.last_edited_by,
        "urgency": classify(task.deadline, task.status, now).value,
        "completionPercentage": completion_percentage(task.stages),
        "stages": [serialize_stage(s) for s in task.stages],
        "reports": [serialize_report(r) for r in task.reports],
    }


def serialize_organization(organization: OrganizationEntity) -> dict:
    return {
        "id": organization.id,
        "name": organization.name,
        "description": organization.description,
        "createdBy": organization.created_by,
        "createdAt": iso(organization.created_at),
    }


def serialize_member(member: MemberEntity) -> dict:
    return {
        "id": member.id,
        "organizationId": member.organization_id,
        "userId": member.user_id,
        "position": member.position,
        "createdAt": iso(member.created_at),
    }


def serialize_subgroup(subgroup: SubgroupEntity) -> dict:
    return {
        "id": subgroup.id,
        "organizationId": subgroup.organization_id,
        "name": subgroup.name,
        "description": subgroup.description,
        "createdBy": subgroup.created_by,
        "createdAt": iso(subgroup.created_at),
        "memberIds": list(subgroup.member_ids),
    }


def serialize_invitation(invitation: InvitationEntity) -> dict:
    return {
        "id": invitation.id,
        "organizationId": invitation.organization_id,
        "employeeId": invitation.employee_id,
        "message": invitation.message,
        "status": invitation.status.value,
        "createdAt": iso(invitation.created_at),
        "acceptedAt": iso(invitation.accepted_at),
        "declinedAt": iso(invitation.declined_at),
    }


def serialize_read(row: NotificationReadEntity) -> dict:
    return {
        "id": row.id,
        "notificationType": row.notification_type,
        "notificationId": row.notification_id,
        "readAt": iso(row.read_at),
    }


def serialize_notification(notification: Notification) -> dict:
    return {
        "type": notification.type,
        "id": notification.id,
        "organizationId": notification.organization_id,
        "title": notification.title,
        "createdAt": iso(notification.created_at),
        "read": notification.read,
        **notification.payload,
    }


def serialize_message(message: ChatMessageEntity) -> dict:
    return {
        "id": message.id,
        "organizationId": message.organization_id,
        "userId": message.user_id,
        "message": "" if message.is_deleted else message.message,
        "replyToId": message.reply_to_id,
        "createdAt": iso(message.created_at),
        "editedAt": iso(message.edited_at),
        "isDeleted": message.is_deleted,
        "reactions": [{"userId": r.user_id, "reaction": r.reaction} for r in message.reactions],
        "attachments": [] if message.is_deleted else [serialize_attachment(a) for a in message.attachments],
    }


def serialize_calendar_day(day: dict, now: datetime) -> dict:
    when: date = day["date"]
    return {
        "date": when.isoformat(),
        "urgency": day["urgency"].value,
        "allCompleted": day["all_completed"],
        "tasks": [serialize_task(task, now) for task in day["tasks"]],
    }


def serialize_stats(stats: dict) -> dict:
    return {
        "organizationId": stats["organization_id"],
        "total": stats["total"],
        "byStatus": stats["by_status"],
        "byUrgency": stats["by_urgency"],
        "completionRate": stats["completion_rate"],
        "onTime": stats["on_time"],
        "averageProgress": stats["average_progress"],
        "members": [
            {
                "userId": member["user_id"],
                "total": member["total"],
                "pending": member["pending"],
                "inProgress": member["in_progress"],
                "completed": member["completed"],
                "overdue": member["overdue"],
                "onTime": member["on_time"],
            }
            for member in stats["members"]
        ],
    }
