"""Read tracking for notifications.

The ledger only records acknowledgements. What counts as a notification is
decided by each feature through a source object; the service merges the
candidates and marks those already present in the ledger as read.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Protocol

from tasky.domain.clock import utcnow
from tasky.domain.entities import Notification, NotificationReadEntity
from tasky.domain.enums import InvitationStatus, NotificationType, TaskStatus
from tasky.domain.errors import ValidationError
from tasky.domain.filters import TaskFilters
from tasky.domain.principal import Principal
from tasky.infra.chat import ChatRepository
from tasky.infra.notifications import NotificationReadRepository
from tasky.infra.organizations import InvitationRepository, OrganizationRepository
from tasky.infra.repository import TaskRepository

logger = logging.getLogger(__name__)

MAX_TYPE_LENGTH = 40
MAX_ID_LENGTH = 64


class NotificationSource(Protocol):
    def candidates(self, user_id: str) -> list[Notification]: ...


class InvitationSource:
    def __init__(self, invitations: InvitationRepository, organizations: OrganizationRepository) -> None:
        self._invitations = invitations
        self._organizations = organizations

    def candidates(self, user_id: str) -> list[Notification]:
        result = []
        for invitation in self._invitations.list_for_employee(user_id, InvitationStatus.PENDING):
            organization = self._organizations.get_organization(invitation.organization_id)
            result.append(
                Notification(
                    type=NotificationType.INVITATION.value,
                    id=invitation.id,
                    organization_id=invitation.organization_id,
                    title=f"Invitation to {organization.name}" if organization else "Invitation",
                    created_at=invitation.created_at,
                    payload={"message": invitation.message},
                )
            )
        return result


class AssignedTaskSource:
    def __init__(self, tasks: TaskRepository) -> None:
        self._tasks = tasks

    def candidates(self, user_id: str) -> list[Notification]:
        tasks = self._tasks.list_tasks(TaskFilters(assigned_to=user_id), paginate=False)
        return [
            Notification(
                type=NotificationType.TASK.value,
                id=task.id,
                organization_id=task.organization_id,
                title=task.title,
                created_at=task.created_at,
                payload={"deadline": task.deadline.isoformat(), "assignedBy": task.assigned_by},
            )
            for task in tasks
        ]


class CompletedTaskSource:
    """Tasks the user handed out that an assignee has finished."""

    def __init__(self, tasks: TaskRepository) -> None:
        self._tasks = tasks

    def candidates(self, user_id: str) -> list[Notification]:
        filters = TaskFilters(assigned_by=user_id, status=TaskStatus.COMPLETED)
        return [
            Notification(
                type=NotificationType.TASK_COMPLETED.value,
                id=task.id,
                organization_id=task.organization_id,
                title=task.title,
                created_at=task.actual_completed_at or task.created_at,
                payload={"assignedTo": task.assigned_to},
            )
            for task in self._tasks.list_tasks(filters, paginate=False)
        ]


class ChatReplySource:
    def __init__(self, chat: ChatRepository, organizations: OrganizationRepository) -> None:
        self._chat = chat
        self._organizations = organizations

    def candidates(self, user_id: str) -> list[Notification]:
        organization_ids = self._organizations.organization_ids_for(user_id)
        return [
            Notification(
                type=NotificationType.CHAT_REPLY.value,
                id=message.id,
                organization_id=message.organization_id,
                title=message.message[:120],
                created_at=message.created_at,
                payload={"authorId": message.user_id, "replyToId": message.reply_to_id},
            )
            for message in self._chat.list_replies_to(user_id, organization_ids)
        ]


class NotificationService:
    def __init__(
        self,
        reads: NotificationReadRepository,
        sources: Iterable[NotificationSource] = (),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._reads = reads
        self._sources = list(sources)
        self._clock = clock

    def mark_read(self, principal: Principal, notification_type: str, notification_id: str) -> NotificationReadEntity:
        notification_type = _require_key(notification_type, "notificationType", MAX_TYPE_LENGTH)
        notification_id = _require_key(notification_id, "notificationId", MAX_ID_LENGTH)
        row = self._reads.insert_if_absent(principal.user_id, notification_type, notification_id, self._clock())
        logger.debug("%s read %s:%s", principal.user_id, notification_type, notification_id)
        return row

    def mark_all_read(self, principal: Principal) -> int:
        marked = 0
        for notification in self.feed(principal):
            if not notification.read:
                self.mark_read(principal, notification.type, notification.id)
                marked += 1
        return marked

    def is_read(self, principal: Principal, notification_type: str, notification_id: str) -> bool:
        return self._reads.find(principal.user_id, notification_type, notification_id) is not None

    def list_reads(self, principal: Principal) -> list[NotificationReadEntity]:
        return self._reads.list_for_user(principal.user_id)

    def feed(self, principal: Principal) -> list[Notification]:
        read = self._reads.read_keys(principal.user_id)
        items = []
        for source in self._sources:
            for notification in source.candidates(principal.user_id):
                items.append(replace(notification, read=(notification.type, notification.id) in read))
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items

    def unread_count(self, principal: Principal) -> int:
        return sum(1 for notification in self.feed(principal) if not notification.read)


def _require_key(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} is too long")
    return value
