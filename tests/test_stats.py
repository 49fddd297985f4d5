from __future__ import annotations

from datetime import date, timedelta

import pytest

from tasky.domain.enums import TaskStatus, Urgency
from tasky.domain.errors import Forbidden, ValidationError
from tasky.domain.principal import Principal
from tasky.services.stats_service import StatsService

from conftest import NOW


@pytest.fixture
def service(task_repo, organizations, clock) -> StatsService:
    return StatsService(task_repo, organizations, clock=clock)


def assign(task_repo, people, org, who="alice", **extra):
    data = {
        "title": "Task",
        "organization_id": org.id,
        "assigned_by": people["boss"].user_id,
        "assigned_to": people[who].user_id,
        "deadline": NOW + timedelta(days=10),
        "status": TaskStatus.PENDING.value,
        "created_at": NOW,
    }
    data.update(extra)
    return task_repo.create_task(data, [data["assigned_to"]])


def test_urgent_tasks_most_pressing_first(service, task_repo, people, org) -> None:
    assign(task_repo, people, org, title="urgent", deadline=NOW + timedelta(hours=48))
    assign(task_repo, people, org, title="overdue", deadline=NOW - timedelta(hours=1))
    assign(task_repo, people, org, title="critical", deadline=NOW + timedelta(hours=10))
    assign(task_repo, people, org, title="relaxed", deadline=NOW + timedelta(days=10))
    done = assign(task_repo, people, org, title="done", deadline=NOW - timedelta(days=1))
    task_repo.complete_task(done.id, people["alice"].user_id, "ok", [], NOW)
    assign(task_repo, people, org, who="bob", title="not mine", deadline=NOW + timedelta(hours=1))

    titles = [t.title for t in service.urgent_tasks(people["alice"])]

    assert titles == ["overdue", "critical", "urgent"]


def test_organization_stats(service, task_repo, people, org) -> None:
    on_time = assign(task_repo, people, org, deadline=NOW + timedelta(days=1))
    task_repo.complete_task(on_time.id, people["alice"].user_id, "ok", [], NOW)
    assign(task_repo, people, org, who="bob", deadline=NOW - timedelta(hours=2))
    assign(task_repo, people, org, who="bob")
    started = assign(task_repo, people, org, estimated_completion_hours=2)
    task_repo.transition_status(started.id, [TaskStatus.PENDING], {"status": TaskStatus.IN_PROGRESS.value})

    stats = service.organization_stats(people["boss"], org.id)

    assert stats["total"] == 4
    assert stats["by_status"] == {"pending": 2, "in_progress": 1, "completed": 1}
    assert stats["by_urgency"][Urgency.OVERDUE.value] == 1
    assert stats["by_urgency"][Urgency.NONE.value] == 1
    assert stats["completion_rate"] == 25
    assert stats["on_time"] == 1
    members = {m["user_id"]: m for m in stats["members"]}
    assert members[people["bob"].user_id]["overdue"] == 1
    assert members[people["alice"].user_id]["completed"] == 1
    assert stats["members"][0]["user_id"] == people["alice"].user_id


def test_stats_are_for_members_only(service, profiles, org) -> None:
    stranger = Principal(profiles.create_profile({"full_name": "Eve"}).id)
    with pytest.raises(Forbidden):
        service.organization_stats(stranger, org.id)


def test_calendar_groups_by_day_with_most_pressing_urgency(service, task_repo, people, org) -> None:
    assign(task_repo, people, org, deadline=NOW + timedelta(hours=5))
    assign(task_repo, people, org, deadline=NOW + timedelta(hours=8))
    assign(task_repo, people, org, deadline=NOW + timedelta(days=7))
    assign(task_repo, people, org, deadline=NOW + timedelta(days=40))

    days = service.calendar(people["alice"], NOW.year, NOW.month)

    assert [d["date"] for d in days] == [date(2026, 3, 2), date(2026, 3, 9)]
    assert days[0]["urgency"] == Urgency.CRITICAL
    assert len(days[0]["tasks"]) == 2
    assert days[1]["urgency"] == Urgency.NORMAL
    assert not days[0]["all_completed"]


def test_calendar_month_is_validated(service, people) -> None:
    with pytest.raises(ValidationError):
        service.calendar(people["alice"], 2026, 13)
