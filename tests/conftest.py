from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import datetime

import pytest

from tasky.domain.principal import Principal
from tasky.infra import models  # noqa: F401
from tasky.infra.chat import ChatRepository
from tasky.infra.db import Base, build_engine, build_session_factory
from tasky.infra.notifications import NotificationReadRepository
from tasky.infra.organizations import (
    InvitationRepository,
    OrganizationRepository,
    ProfileRepository,
)
from tasky.infra.repository import TaskRepository

NOW = datetime(2026, 3, 2, 9, 0, 0)


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict, str]] = []

    def emit(self, event: str, payload: dict, room: str) -> None:
        self.events.append((event, payload, room))

    def named(self, event: str) -> list[tuple[str, dict, str]]:
        return [e for e in self.events if e[0] == event]


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def profiles(session_factory) -> ProfileRepository:
    return ProfileRepository(session_factory)


@pytest.fixture
def organizations(session_factory) -> OrganizationRepository:
    return OrganizationRepository(session_factory)


@pytest.fixture
def invitations(session_factory) -> InvitationRepository:
    return InvitationRepository(session_factory)


@pytest.fixture
def task_repo(session_factory) -> TaskRepository:
    return TaskRepository(session_factory)


@pytest.fixture
def reads(session_factory) -> NotificationReadRepository:
    return NotificationReadRepository(session_factory)


@pytest.fixture
def chat_repo(session_factory) -> ChatRepository:
    return ChatRepository(session_factory)


@pytest.fixture
def people(profiles) -> dict[str, Principal]:
    """An employer and two employees with profiles."""
    result = {}
    for name in ("boss", "alice", "bob"):
        profile = profiles.create_profile({"full_name": name.title(), "email": f"{name}@example.com"})
        result[name] = Principal(user_id=profile.id)
    return result


@pytest.fixture
def org(session_factory, organizations, people, clock):
    """Organization created by ``boss`` with ``alice`` and ``bob`` as members."""
    organization = organizations.create_organization(
        {"name": "Acme", "created_by": people["boss"].user_id, "created_at": clock()},
        position="CEO",
    )
    with session_factory() as session:
        for name in ("alice", "bob"):
            session.add(
                models.MemberModel(
                    organization_id=organization.id,
                    user_id=people[name].user_id,
                    position="Member",
                )
            )
        session.commit()
    return organization
