from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from flask import current_app
from sqlalchemy.orm import sessionmaker

from tasky.config import Settings
from tasky.infra.chat import ChatRepository
from tasky.infra.notifications import NotificationReadRepository
from tasky.infra.organizations import (
    InvitationRepository,
    OrganizationRepository,
    ProfileRepository,
)
from tasky.infra.repository import TaskRepository
from tasky.infra.subgroups import SubgroupRepository
from tasky.realtime.broadcaster import Broadcaster
from tasky.services.chat_service import ChatService
from tasky.services.notification_service import (
    AssignedTaskSource,
    ChatReplySource,
    CompletedTaskSource,
    InvitationSource,
    NotificationService,
)
from tasky.services.organization_service import OrganizationService
from tasky.services.stats_service import StatsService
from tasky.services.subgroup_service import SubgroupService
from tasky.services.task_service import TaskService

from .serializers import serialize_message

EXTENSION_KEY = "tasky"


@dataclass
class Services:
    tasks: TaskService
    organizations: OrganizationService
    notifications: NotificationService
    chat: ChatService
    stats: StatsService
    subgroups: SubgroupService
    profiles: ProfileRepository
    clock: Callable[[], datetime]


def build_services(
    settings: Settings,
    session_factory: sessionmaker,
    broadcaster: Broadcaster,
    clock: Callable[[], datetime],
) -> Services:
    tasks = TaskRepository(session_factory)
    organizations = OrganizationRepository(session_factory)
    invitations = InvitationRepository(session_factory)
    profiles = ProfileRepository(session_factory)
    chat = ChatRepository(session_factory)
    reads = NotificationReadRepository(session_factory)
    subgroups = SubgroupRepository(session_factory)

    return Services(
        tasks=TaskService(
            tasks,
            organizations,
            profiles,
            broadcaster=broadcaster,
            clock=clock,
            page_limit=settings.task_page_limit,
            subgroups=subgroups,
        ),
        organizations=OrganizationService(
            organizations, invitations, profiles, broadcaster=broadcaster, clock=clock
        ),
        notifications=NotificationService(
            reads,
            sources=(
                InvitationSource(invitations, organizations),
                AssignedTaskSource(tasks),
                CompletedTaskSource(tasks),
                ChatReplySource(chat, organizations),
            ),
            clock=clock,
        ),
        chat=ChatService(
            chat,
            organizations,
            broadcaster=broadcaster,
            serialize=serialize_message,
            clock=clock,
            history_limit=settings.chat_history_limit,
        ),
        stats=StatsService(tasks, organizations, clock=clock),
        subgroups=SubgroupService(subgroups, organizations, clock=clock),
        profiles=profiles,
        clock=clock,
    )


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
