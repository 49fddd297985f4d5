from __future__ import annotations

from enum import IntEnum, StrEnum


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StageStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class InvitationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class NotificationType(StrEnum):
    INVITATION = "invitation"
    TASK = "task"
    TASK_COMPLETED = "task_completed"
    CHAT_REPLY = "chat_reply"


class Urgency(StrEnum):
    NONE = "none"
    OVERDUE = "overdue"
    CRITICAL = "critical"
    URGENT = "urgent"
    NORMAL = "normal"


class UrgencyRank(IntEnum):
    """Lower is more pressing."""

    OVERDUE = 0
    CRITICAL = 1
    URGENT = 2
    NORMAL = 3
    NONE = 4


class StageMove(StrEnum):
    UP = "up"
    DOWN = "down"
