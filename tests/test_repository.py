from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from tasky.domain.enums import StageMove, StageStatus, TaskStatus
from tasky.domain.errors import Conflict
from tasky.domain.filters import TaskFilters
from tasky.domain.progress import completion_percentage
from tasky.infra.models import (
    AssignmentModel,
    ChatMessageModel,
    MemberModel,
    ReportModel,
    StageModel,
    TaskAttachmentModel,
    TaskModel,
)
from tasky.services.task_service import TaskService

from conftest import NOW


def make_task(task_repo, people, org, **extra):
    data = {
        "title": "Ship release",
        "organization_id": org.id,
        "assigned_by": people["boss"].user_id,
        "assigned_to": people["alice"].user_id,
        "deadline": NOW + timedelta(days=2),
        "status": TaskStatus.PENDING.value,
        "created_at": NOW,
    }
    data.update(extra)
    stages = [
        {"title": name, "order_index": i, "status": StageStatus.PENDING.value}
        for i, name in enumerate(("Plan", "Build", "Review"), start=1)
    ]
    return task_repo.create_task(data, [people["alice"].user_id], stages)


def count(session_factory, model) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


def test_create_and_load_task(task_repo, people, org) -> None:
    task = make_task(task_repo, people, org)

    loaded = task_repo.get_task(task.id)

    assert loaded.title == "Ship release"
    assert loaded.assignee_ids == (people["alice"].user_id,)
    assert [s.title for s in loaded.stages] == ["Plan", "Build", "Review"]


def test_only_one_of_two_starts_wins(task_repo, people, org) -> None:
    task = make_task(task_repo, people, org, estimated_completion_hours=3)
    values = {"status": TaskStatus.IN_PROGRESS.value, "started_at": NOW}

    first = task_repo.transition_status(task.id, [TaskStatus.PENDING], values)
    second = task_repo.transition_status(task.id, [TaskStatus.PENDING], values)

    assert (first, second) == (True, False)
    assert task_repo.get_task(task.id).status == TaskStatus.IN_PROGRESS


def test_concurrent_start_through_service_reports_conflict(task_repo, organizations, profiles, people, org, clock):
    service = TaskService(task_repo, organizations, profiles, clock=clock)
    task = make_task(task_repo, people, org, estimated_completion_hours=3)
    task_repo.set_assignments(task.id, [people["alice"].user_id, people["bob"].user_id])

    service.start(people["alice"], task.id)
    with pytest.raises(Conflict):
        service.start(people["bob"], task.id)


def test_complete_writes_report_and_attachments(task_repo, session_factory, people, org) -> None:
    task = make_task(task_repo, people, org)

    ok = task_repo.complete_task(
        task.id,
        people["alice"].user_id,
        "Released 1.4",
        [{"file_url": "https://files/notes.md", "file_name": "notes.md", "file_type": "text/markdown", "file_size": 120}],
        NOW,
    )

    loaded = task_repo.get_task(task.id)
    assert ok is True
    assert loaded.status == TaskStatus.COMPLETED
    assert loaded.actual_completed_at == NOW
    assert loaded.reports[0].report_text == "Released 1.4"
    assert loaded.reports[0].attachments[0].file_size == 120


def test_complete_rolls_back_when_attachment_insert_fails(task_repo, session_factory, people, org) -> None:
    task = make_task(task_repo, people, org)

    with pytest.raises(IntegrityError):
        task_repo.complete_task(
            task.id,
            people["alice"].user_id,
            "Released 1.4",
            [{"file_url": "https://files/x", "file_name": None, "file_type": "text/plain"}],
            NOW,
        )

    loaded = task_repo.get_task(task.id)
    assert loaded.status == TaskStatus.PENDING
    assert loaded.actual_completed_at is None
    assert count(session_factory, ReportModel) == 0
    assert count(session_factory, TaskAttachmentModel) == 0


def test_complete_is_refused_once_completed(task_repo, people, org) -> None:
    task = make_task(task_repo, people, org)
    assert task_repo.complete_task(task.id, people["alice"].user_id, "one", [], NOW)

    assert task_repo.complete_task(task.id, people["alice"].user_id, "two", [], NOW) is False
    assert len(task_repo.get_task(task.id).reports) == 1


def test_stage_swap_with_neighbour(task_repo, people, org) -> None:
    task = make_task(task_repo, people, org)
    plan, build, review = task.stages

    assert task_repo.swap_stage(plan.id, StageMove.UP) is False
    assert task_repo.swap_stage(review.id, StageMove.DOWN) is False
    assert task_repo.swap_stage(plan.id, StageMove.DOWN) is True

    titles = [s.title for s in task_repo.get_task(task.id).stages]
    assert titles == ["Build", "Plan", "Review"]


def test_add_stage_appends_after_last(task_repo, people, org) -> None:
    task = make_task(task_repo, people, org)

    stage = task_repo.add_stage(task.id, {"title": "Deploy", "status": StageStatus.PENDING.value})

    assert stage.order_index == 4
    assert task_repo.get_task(task.id).stages[-1].title == "Deploy"


def test_delete_task_cascades(task_repo, session_factory, people, org) -> None:
    task = make_task(task_repo, people, org)
    task_repo.complete_task(
        task.id,
        people["alice"].user_id,
        "done",
        [{"file_url": "u", "file_name": "n", "file_type": "t"}],
        NOW,
    )

    assert task_repo.delete_task(task.id) is True

    for model in (TaskModel, AssignmentModel, StageModel, ReportModel, TaskAttachmentModel):
        assert count(session_factory, model) == 0


def test_delete_organization_cascades(organizations, task_repo, chat_repo, session_factory, people, org) -> None:
    make_task(task_repo, people, org)
    parent = chat_repo.create_message(
        {"organization_id": org.id, "user_id": people["alice"].user_id, "message": "hi", "created_at": NOW}
    )
    chat_repo.create_message(
        {
            "organization_id": org.id,
            "user_id": people["bob"].user_id,
            "message": "hey",
            "reply_to_id": parent.id,
            "created_at": NOW,
        }
    )

    assert organizations.delete_organization(org.id) is True

    for model in (MemberModel, TaskModel, StageModel, ChatMessageModel):
        assert count(session_factory, model) == 0


def test_list_filters(task_repo, people, org) -> None:
    early = make_task(task_repo, people, org, title="early", deadline=NOW + timedelta(hours=5))
    make_task(task_repo, people, org, title="late", deadline=NOW + timedelta(days=9))
    mine = make_task(task_repo, people, org, title="bob's", assigned_to=people["bob"].user_id)
    task_repo.set_assignments(mine.id, [people["bob"].user_id])

    by_deadline = task_repo.list_tasks(TaskFilters(organization_id=org.id))
    assert [t.title for t in by_deadline][0] == "early"

    for_bob = task_repo.list_tasks(TaskFilters(assigned_to=people["bob"].user_id))
    assert [t.title for t in for_bob] == ["bob's"]

    window = task_repo.list_tasks(
        TaskFilters(deadline_from=NOW, deadline_to=NOW + timedelta(days=1)), paginate=False
    )
    assert [t.id for t in window] == [early.id]

    assert task_repo.count_by_status(org.id) == {"pending": 3, "in_progress": 0, "completed": 0}


def test_completion_percentage_after_completing(task_repo, organizations, profiles, people, org, clock) -> None:
    service = TaskService(task_repo, organizations, profiles, clock=clock)
    task = make_task(task_repo, people, org)
    for stage in task.stages[:2]:
        service.update_stage(people["alice"], stage.id, {"status": "completed"})

    done = service.complete(people["alice"], task.id, "wrapped up")

    assert done.status == TaskStatus.COMPLETED
    assert completion_percentage(done.stages) == 67
