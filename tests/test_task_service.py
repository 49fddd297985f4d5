from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from tasky.domain.entities import OrganizationEntity, StageEntity, SubgroupEntity, TaskEntity
from tasky.domain.enums import StageStatus, TaskStatus
from tasky.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from tasky.domain.filters import TaskFilters
from tasky.domain.principal import Principal
from tasky.services.task_service import TaskService

NOW = datetime(2026, 3, 2, 9, 0, 0)
BOSS = Principal("boss")
ALICE = Principal("alice")
BOB = Principal("bob")
OUTSIDER = Principal("mallory")


class FakeRepo:
    def __init__(self) -> None:
        self.tasks: list[TaskEntity] = []
        self.reports: list[dict] = []
        self._id = 1

    def list_tasks(self, filters: TaskFilters, paginate: bool = True) -> list[TaskEntity]:
        self.last_filters = filters
        return self.tasks

    def get_task(self, task_id: str) -> TaskEntity | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def create_task(self, data: dict, assignee_ids, stages=(), subgroup_ids=()) -> TaskEntity:
        task_id = f"t{self._id}"
        task = TaskEntity(
            id=task_id,
            organization_id=data.get("organization_id"),
            title=data["title"],
            description=data.get("description"),
            assigned_by=data["assigned_by"],
            assigned_to=data["assigned_to"],
            status=TaskStatus(data.get("status", "pending")),
            deadline=data["deadline"],
            created_at=data.get("created_at", NOW),
            started_at=None,
            actual_completed_at=None,
            estimated_completion_hours=data.get("estimated_completion_hours"),
            decline_reason=None,
            last_edited_at=None,
            last_edited_by=None,
            assignee_ids=tuple(sorted(assignee_ids)),
            subgroup_ids=tuple(sorted(subgroup_ids)),
            stages=tuple(
                StageEntity(
                    id=f"{task_id}-s{i}",
                    task_id=task_id,
                    title=s["title"],
                    description=None,
                    order_index=s["order_index"],
                    status=StageStatus(s["status"]),
                )
                for i, s in enumerate(stages)
            ),
        )
        self.tasks.append(task)
        self._id += 1
        return task

    def update_task(self, task_id: str, data: dict, assignee_ids=None, subgroup_ids=None) -> TaskEntity | None:
        task = self.get_task(task_id)
        if not task:
            return None
        changes = dict(data)
        if "status" in changes:
            changes["status"] = TaskStatus(changes["status"])
        if assignee_ids is not None:
            changes["assignee_ids"] = tuple(sorted(assignee_ids))
        if subgroup_ids is not None:
            changes["subgroup_ids"] = tuple(sorted(subgroup_ids))
        updated = replace(task, **changes)
        self.tasks = [updated if t.id == task_id else t for t in self.tasks]
        return updated

    def transition_status(self, task_id: str, from_statuses, values: dict) -> bool:
        task = self.get_task(task_id)
        if not task or task.status not in [TaskStatus(s) for s in from_statuses]:
            return False
        self.update_task(task_id, values)
        return True

    def complete_task(self, task_id, user_id, report_text, attachments, completed_at) -> bool:
        task = self.get_task(task_id)
        if not task or task.status == TaskStatus.COMPLETED:
            return False
        self.update_task(task_id, {"status": "completed", "actual_completed_at": completed_at})
        self.reports.append({"task_id": task_id, "text": report_text, "attachments": list(attachments)})
        return True

    def delete_task(self, task_id: str) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return len(self.tasks) != before

    def set_assignments(self, task_id: str, assignee_ids) -> TaskEntity | None:
        return self.update_task(task_id, {}, assignee_ids)

    def get_stage(self, stage_id: str) -> StageEntity | None:
        return next((s for t in self.tasks for s in t.stages if s.id == stage_id), None)

    def update_stage(self, stage_id: str, data: dict) -> StageEntity | None:
        stage = self.get_stage(stage_id)
        if not stage:
            return None
        changes = dict(data)
        if "status" in changes:
            changes["status"] = StageStatus(changes["status"])
        updated = replace(stage, **changes)
        stages = [updated if s.id == stage_id else s for s in self.get_task(stage.task_id).stages]
        self.update_task(stage.task_id, {"stages": tuple(stages)})
        return updated

    def delete_stage(self, stage_id: str) -> bool:
        stage = self.get_stage(stage_id)
        if not stage:
            return False
        stages = [s for s in self.get_task(stage.task_id).stages if s.id != stage_id]
        self.update_task(stage.task_id, {"stages": tuple(stages)})
        return True


class FakeOrganizations:
    def __init__(self) -> None:
        self.organization = OrganizationEntity(
            id="org", name="Acme", description=None, created_by=BOSS.user_id, created_at=NOW
        )
        self.members = {BOSS.user_id, ALICE.user_id, BOB.user_id}

    def get_organization(self, organization_id: str):
        return self.organization if organization_id == "org" else None

    def find_member(self, organization_id: str, user_id: str):
        return organization_id == "org" and user_id in self.members

    def member_user_ids(self, organization_id: str) -> set[str]:
        return set(self.members) if organization_id == "org" else set()


class FakeProfiles:
    def get_profiles(self, user_ids):
        return {u: u for u in user_ids if u in {BOSS.user_id, ALICE.user_id, BOB.user_id}}


class FakeSubgroups:
    def __init__(self, *subgroups: SubgroupEntity) -> None:
        self.subgroups = list(subgroups)

    def get_subgroups(self, subgroup_ids):
        wanted = set(subgroup_ids)
        return [s for s in self.subgroups if s.id in wanted]


class Recorder:
    def __init__(self) -> None:
        self.events = []

    def emit(self, event, payload, room) -> None:
        self.events.append((event, payload, room))


def make_service(
    repo: FakeRepo | None = None,
    broadcaster: Recorder | None = None,
    subgroups: FakeSubgroups | None = None,
) -> TaskService:
    return TaskService(
        repo or FakeRepo(),
        FakeOrganizations(),
        FakeProfiles(),
        broadcaster=broadcaster,
        clock=lambda: NOW,
        subgroups=subgroups,
    )


def new_task(service: TaskService, **extra) -> TaskEntity:
    data = {
        "title": "Quarterly report",
        "organization_id": "org",
        "assigned_to": ALICE.user_id,
        "deadline": (NOW + timedelta(days=5)).isoformat(),
    }
    data.update(extra)
    return service.create_task(BOSS, data)


def test_create_task_adds_default_stages_and_notifies_assignees() -> None:
    recorder = Recorder()
    service = make_service(broadcaster=recorder)

    task = new_task(service, assignee_ids=[BOB.user_id])

    assert [s.title for s in task.stages] == ["Planning", "In Progress", "Review", "Complete"]
    assert task.assignee_ids == (ALICE.user_id, BOB.user_id)
    rooms = {room for event, _, room in recorder.events if event == "notification"}
    assert rooms == {"user:alice", "user:bob"}
    assert all(p["type"] == "task_assigned" for e, p, _ in recorder.events if e == "notification")


def test_create_task_rejects_assignee_outside_organization() -> None:
    service = make_service()

    with pytest.raises(ValidationError):
        new_task(service, assigned_to=OUTSIDER.user_id)


def test_create_task_requires_membership() -> None:
    service = make_service()

    with pytest.raises(Forbidden):
        service.create_task(
            OUTSIDER,
            {"title": "x", "organization_id": "org", "assigned_to": ALICE.user_id, "deadline": NOW.isoformat()},
        )


def test_start_without_estimate_is_rejected() -> None:
    repo = FakeRepo()
    service = make_service(repo)
    task = new_task(service)

    with pytest.raises(ValidationError):
        service.start(ALICE, task.id)

    assert repo.get_task(task.id).status == TaskStatus.PENDING


def test_start_after_estimate_moves_to_in_progress() -> None:
    service = make_service()
    task = new_task(service)

    service.set_estimate(ALICE, task.id, 6)
    started = service.start(ALICE, task.id)

    assert started.status == TaskStatus.IN_PROGRESS
    assert started.started_at == NOW


def test_second_start_is_a_conflict() -> None:
    service = make_service()
    task = new_task(service, estimated_completion_hours=4)
    service.start(ALICE, task.id)

    with pytest.raises(Conflict):
        service.start(ALICE, task.id)


def test_only_assignees_can_start() -> None:
    service = make_service()
    task = new_task(service, estimated_completion_hours=4)

    with pytest.raises(Forbidden):
        service.start(BOB, task.id)
    with pytest.raises(Forbidden):
        service.start(BOSS, task.id)


def test_decline_keeps_status() -> None:
    recorder = Recorder()
    service = make_service(broadcaster=recorder)
    task = new_task(service)

    declined = service.decline(ALICE, task.id, "  Out sick this week ")

    assert declined.status == TaskStatus.PENDING
    assert declined.decline_reason == "Out sick this week"
    assert ("notification", "user:boss") in {(e, r) for e, _, r in recorder.events}


def test_decline_requires_reason() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(ValidationError):
        service.decline(ALICE, task.id, "   ")


def test_complete_from_pending_stores_report() -> None:
    repo = FakeRepo()
    service = make_service(repo)
    task = new_task(service)

    done = service.complete(
        ALICE,
        task.id,
        "All figures reconciled",
        [{"file_url": "https://files/x.pdf", "file_name": "x.pdf", "file_type": "application/pdf"}],
    )

    assert done.status == TaskStatus.COMPLETED
    assert done.actual_completed_at == NOW
    assert repo.reports[0]["attachments"][0]["file_name"] == "x.pdf"


def test_complete_twice_is_a_conflict() -> None:
    service = make_service()
    task = new_task(service)
    service.complete(ALICE, task.id, "done")

    with pytest.raises(Conflict):
        service.complete(ALICE, task.id, "done again")


def test_complete_requires_report_text() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(ValidationError):
        service.complete(ALICE, task.id, "")


def test_estimate_must_be_positive_integer() -> None:
    service = make_service()
    task = new_task(service)

    for hours in (0, -3, 2.5, "4", True):
        with pytest.raises(ValidationError):
            service.set_estimate(ALICE, task.id, hours)


def test_estimate_after_completion_is_a_conflict() -> None:
    service = make_service()
    task = new_task(service)
    service.complete(ALICE, task.id, "done")

    with pytest.raises(Conflict):
        service.set_estimate(BOSS, task.id, 3)


def test_get_task_hidden_from_non_participants() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(NotFound):
        service.get_task(OUTSIDER, task.id)
    assert service.get_task(BOSS, task.id).id == task.id


def test_update_rejects_status_changes() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(ValidationError):
        service.update_task(BOSS, task.id, {"status": "completed"})
    with pytest.raises(Forbidden):
        service.update_task(ALICE, task.id, {"title": "mine now"})


def test_list_scopes_to_visible_tasks_for_members() -> None:
    repo = FakeRepo()
    service = make_service(repo)

    service.list_tasks(ALICE, TaskFilters(organization_id="org", limit=500))

    assert repo.last_filters.visible_to == ALICE.user_id
    assert repo.last_filters.limit == 100


def test_list_by_creator_sees_whole_organization() -> None:
    repo = FakeRepo()
    service = make_service(repo)

    service.list_tasks(BOSS, TaskFilters(organization_id="org"))

    assert repo.last_filters.visible_to is None


def test_decline_after_completion_is_a_conflict() -> None:
    service = make_service()
    task = new_task(service)
    service.complete(ALICE, task.id, "done")

    with pytest.raises(Conflict):
        service.decline(ALICE, task.id, "Too late")


def test_set_assignments_notifies_only_new_assignees() -> None:
    recorder = Recorder()
    service = make_service(broadcaster=recorder)
    task = new_task(service)
    recorder.events.clear()

    updated = service.set_assignments(BOSS, task.id, [BOB.user_id])

    assert updated.assignee_ids == (ALICE.user_id, BOB.user_id)
    notified = [(p["type"], room) for event, p, room in recorder.events if event == "notification"]
    assert notified == [("task_assigned", "user:bob")]


def test_set_assignments_rules() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(Forbidden):
        service.set_assignments(ALICE, task.id, [BOB.user_id])
    with pytest.raises(ValidationError):
        service.set_assignments(BOSS, task.id, [OUTSIDER.user_id])
    with pytest.raises(ValidationError):
        service.set_assignments(BOSS, task.id, "bob")


def test_assignee_fields_must_be_ids() -> None:
    service = make_service()

    with pytest.raises(ValidationError):
        new_task(service, assigned_to=[ALICE.user_id])
    with pytest.raises(ValidationError):
        new_task(service, assignee_ids="bob")
    with pytest.raises(ValidationError):
        new_task(service, assignee_ids=[["bob"]])


def test_delete_stage_recomputes_the_list() -> None:
    service = make_service()
    task = new_task(service)
    first = task.stages[0]

    updated = service.delete_stage(ALICE, first.id)

    assert [s.title for s in updated.stages] == ["In Progress", "Review", "Complete"]
    with pytest.raises(NotFound):
        service.delete_stage(ALICE, first.id)


def test_update_stage_rejects_unknown_status() -> None:
    service = make_service()
    task = new_task(service)

    with pytest.raises(ValidationError):
        service.update_stage(ALICE, task.stages[0].id, {"status": "done"})

    updated = service.update_stage(ALICE, task.stages[0].id, {"status": "completed"})
    assert updated.stages[0].status == StageStatus.COMPLETED


def test_stage_changes_need_a_participant() -> None:
    service = make_service()
    task = new_task(service)
    stage_id = task.stages[0].id

    with pytest.raises(Forbidden):
        service.add_stage(OUTSIDER, task.id, {"title": "Sneak in"})
    with pytest.raises(Forbidden):
        service.update_stage(OUTSIDER, stage_id, {"title": "Renamed"})
    with pytest.raises(Forbidden):
        service.delete_stage(OUTSIDER, stage_id)
    with pytest.raises(Forbidden):
        service.move_stage(OUTSIDER, stage_id, "down")


def test_subgroup_members_become_assignees() -> None:
    design = SubgroupEntity(
        id="design", organization_id="org", name="Design", description=None,
        created_by=BOSS.user_id, created_at=NOW, member_ids=(BOB.user_id,),
    )
    recorder = Recorder()
    service = make_service(broadcaster=recorder, subgroups=FakeSubgroups(design))

    task = new_task(service, subgroup_ids=["design"])

    assert task.assignee_ids == (ALICE.user_id, BOB.user_id)
    assert task.subgroup_ids == ("design",)
    rooms = {room for event, _, room in recorder.events if event == "notification"}
    assert rooms == {"user:alice", "user:bob"}


def test_subgroups_must_belong_to_the_task_organization() -> None:
    elsewhere = SubgroupEntity(
        id="ops", organization_id="other", name="Ops", description=None,
        created_by=BOSS.user_id, created_at=NOW,
    )
    service = make_service(subgroups=FakeSubgroups(elsewhere))

    with pytest.raises(ValidationError):
        new_task(service, subgroup_ids=["ops"])
    with pytest.raises(ValidationError):
        new_task(service, subgroup_ids=["missing"])
    with pytest.raises(ValidationError):
        new_task(service, organization_id=None, subgroup_ids=["ops"])
