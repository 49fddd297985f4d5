from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable

from tasky.domain.clock import to_naive_utc, utcnow
from tasky.domain.entities import TaskEntity
from tasky.domain.enums import NotificationType, StageMove, StageStatus, TaskStatus
from tasky.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from tasky.domain.filters import TaskFilters
from tasky.domain.principal import Principal
from tasky.infra.organizations import OrganizationRepository, ProfileRepository
from tasky.infra.repository import TaskRepository
from tasky.infra.subgroups import SubgroupRepository
from tasky.realtime.broadcaster import Broadcaster, NullBroadcaster, notify_users, org_room

from .validation import id_list, is_int, optional_text, require_text, validate_attachment

logger = logging.getLogger(__name__)

DEFAULT_STAGES = ("Planning", "In Progress", "Review", "Complete")
MAX_PAGE_SIZE = 100
OPEN_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        organizations: OrganizationRepository,
        profiles: ProfileRepository,
        broadcaster: Broadcaster | None = None,
        clock: Callable[[], datetime] = utcnow,
        page_limit: int = MAX_PAGE_SIZE,
        subgroups: SubgroupRepository | None = None,
    ) -> None:
        self._repo = repo
        self._organizations = organizations
        self._profiles = profiles
        self._broadcaster = broadcaster or NullBroadcaster()
        self._clock = clock
        self._page_limit = min(page_limit, MAX_PAGE_SIZE)
        self._subgroups = subgroups

    # queries

    def list_tasks(self, principal: Principal, filters: TaskFilters) -> list[TaskEntity]:
        user_id = principal.user_id
        if filters.assigned_by and filters.assigned_by != user_id:
            raise Forbidden("Not allowed to list tasks assigned by another user")
        if filters.organization_id:
            self._require_member(filters.organization_id, user_id)

        scoped = filters
        if not (filters.assigned_to or filters.assigned_by):
            if not (filters.organization_id and self._is_creator(filters.organization_id, user_id)):
                scoped = replace(filters, visible_to=user_id)
        scoped = replace(scoped, limit=max(1, min(filters.limit or self._page_limit, self._page_limit)))
        return self._repo.list_tasks(scoped)

    def get_task(self, principal: Principal, task_id: str) -> TaskEntity:
        task = self._load(task_id)
        if not self._can_view(task, principal.user_id):
            raise NotFound("Task not found")
        return task

    # assignment and editing

    def create_task(self, principal: Principal, data: dict) -> TaskEntity:
        title = require_text(data.get("title"), "title")
        deadline = _require_deadline(data.get("deadline"))
        assigned_to = data.get("assigned_to")
        if not assigned_to:
            raise ValidationError("assigned_to is required")
        organization_id = _optional_id(data.get("organization_id"), "organization_id")
        assignees = _assignee_list(assigned_to, data.get("assignee_ids"))
        subgroup_ids = id_list(data.get("subgroup_ids"), "subgroup_ids")

        if organization_id:
            self._require_member(organization_id, principal.user_id)
            # everyone in an assigned subgroup becomes an assignee
            grouped = self._subgroup_members(organization_id, subgroup_ids)
            assignees = _assignee_list(assigned_to, [*assignees, *grouped])
            self._require_members(organization_id, assignees)
        else:
            if subgroup_ids:
                raise ValidationError("Subgroups can only be assigned within an organization")
            self._require_profiles(assignees)

        estimate = data.get("estimated_completion_hours")
        if estimate is not None:
            estimate = _validate_hours(estimate)

        now = self._clock()
        task = self._repo.create_task(
            {
                "title": title,
                "description": optional_text(data.get("description"), "description"),
                "organization_id": organization_id,
                "assigned_by": principal.user_id,
                "assigned_to": assigned_to,
                "deadline": deadline,
                "estimated_completion_hours": estimate,
                "status": TaskStatus.PENDING.value,
                "created_at": now,
            },
            assignees,
            [
                {"title": name, "order_index": index, "status": StageStatus.PENDING.value}
                for index, name in enumerate(DEFAULT_STAGES, start=1)
            ],
            subgroup_ids=subgroup_ids,
        )
        logger.info("task %s assigned by %s to %s", task.id, principal.user_id, ", ".join(assignees))
        self._publish(task, "task_created", "task_assigned", assignees, principal.user_id)
        return task

    def update_task(self, principal: Principal, task_id: str, data: dict) -> TaskEntity:
        task = self._load(task_id)
        if task.assigned_by != principal.user_id:
            raise Forbidden("Only the assigner can edit this task")
        if "status" in data:
            raise ValidationError("Status changes go through the task status endpoint")

        changes: dict = {}
        if data.get("title") is not None:
            changes["title"] = require_text(data["title"], "title")
        if "description" in data:
            changes["description"] = optional_text(data["description"], "description")
        if data.get("deadline") is not None:
            changes["deadline"] = _require_deadline(data["deadline"])
        if data.get("estimated_completion_hours") is not None:
            if task.status == TaskStatus.COMPLETED:
                raise Conflict("Cannot change the estimate of a completed task")
            changes["estimated_completion_hours"] = _validate_hours(data["estimated_completion_hours"])

        assignees = None
        if data.get("assigned_to") or data.get("assignee_ids") is not None:
            assigned_to = data.get("assigned_to") or task.assigned_to
            assignees = _assignee_list(assigned_to, data.get("assignee_ids", list(task.assignee_ids)))
            self._check_assignees(task.organization_id, assignees)
            changes["assigned_to"] = assigned_to

        subgroup_ids = None
        if data.get("subgroup_ids") is not None:
            subgroup_ids = id_list(data["subgroup_ids"], "subgroup_ids")
            if subgroup_ids and not task.organization_id:
                raise ValidationError("Subgroups can only be assigned within an organization")
            self._subgroup_members(task.organization_id, subgroup_ids)

        changes["last_edited_at"] = self._clock()
        changes["last_edited_by"] = principal.user_id
        updated = self._repo.update_task(task_id, changes, assignees, subgroup_ids)
        if not updated:
            raise NotFound("Task not found")
        recipients = set(updated.assignee_ids) | {updated.assigned_to}
        self._publish(updated, "task_updated", "task_updated", recipients, principal.user_id)
        return updated

    def set_assignments(self, principal: Principal, task_id: str, assignee_ids: Iterable[str]) -> TaskEntity:
        task = self._load(task_id)
        if task.assigned_by != principal.user_id:
            raise Forbidden("Only the assigner can change assignees")
        assignees = _assignee_list(task.assigned_to, assignee_ids)
        self._check_assignees(task.organization_id, assignees)
        updated = self._repo.set_assignments(task_id, assignees)
        if not updated:
            raise NotFound("Task not found")
        added = set(updated.assignee_ids) - set(task.assignee_ids)
        self._publish(updated, "task_updated", "task_assigned", added, principal.user_id)
        return updated

    def delete_task(self, principal: Principal, task_id: str) -> None:
        task = self._load(task_id)
        if not task.is_participant(principal.user_id):
            raise Forbidden("Not allowed to delete this task")
        self._repo.delete_task(task_id)
        logger.info("task %s deleted by %s", task_id, principal.user_id)
        if task.organization_id:
            self._broadcaster.emit(
                "task_deleted", {"taskId": task_id}, org_room(task.organization_id)
            )

    # lifecycle

    def start(self, principal: Principal, task_id: str) -> TaskEntity:
        task = self._load(task_id)
        self._require_assignee(task, principal)
        if task.status != TaskStatus.PENDING:
            raise Conflict(f"Task is already {task.status.value}")
        if task.estimated_completion_hours is None:
            raise ValidationError("Set an estimated completion time before starting the task")

        now = self._clock()
        started = self._repo.transition_status(
            task_id,
            [TaskStatus.PENDING],
            {
                "status": TaskStatus.IN_PROGRESS.value,
                "started_at": now,
                "last_edited_at": now,
                "last_edited_by": principal.user_id,
            },
        )
        if not started:
            raise Conflict("Task is already in progress")
        logger.info("task %s started by %s", task_id, principal.user_id)
        updated = self._load(task_id)
        self._publish(updated, "task_updated", "task_started", [task.assigned_by], principal.user_id)
        return updated

    def complete(
        self,
        principal: Principal,
        task_id: str,
        report_text: str | None,
        attachments: Iterable[dict] | None = None,
    ) -> TaskEntity:
        task = self._load(task_id)
        self._require_assignee(task, principal)
        if task.status == TaskStatus.COMPLETED:
            raise Conflict("Task is already completed")
        text = require_text(report_text, "report text")
        files = [validate_attachment(item) for item in attachments or []]

        completed = self._repo.complete_task(task_id, principal.user_id, text, files, self._clock())
        if not completed:
            raise Conflict("Task is already completed")
        logger.info("task %s completed by %s", task_id, principal.user_id)
        updated = self._load(task_id)
        self._publish(
            updated, "task_updated", NotificationType.TASK_COMPLETED, [task.assigned_by], principal.user_id
        )
        return updated

    def decline(self, principal: Principal, task_id: str, reason: str | None) -> TaskEntity:
        """Record why the assignee declines. The status is left as it is."""
        task = self._load(task_id)
        self._require_assignee(task, principal)
        text = require_text(reason, "decline reason")
        now = self._clock()
        declined = self._repo.transition_status(
            task_id,
            OPEN_STATUSES,
            {"decline_reason": text, "last_edited_at": now, "last_edited_by": principal.user_id},
        )
        if not declined:
            raise Conflict("A completed task cannot be declined")
        logger.info("task %s declined by %s", task_id, principal.user_id)
        updated = self._load(task_id)
        self._publish(updated, "task_updated", "task_declined", [task.assigned_by], principal.user_id)
        return updated

    def set_estimate(self, principal: Principal, task_id: str, hours) -> TaskEntity:
        task = self._load(task_id)
        if not task.is_participant(principal.user_id):
            raise Forbidden("Not allowed to estimate this task")
        value = _validate_hours(hours)
        now = self._clock()
        updated = self._repo.transition_status(
            task_id,
            OPEN_STATUSES,
            {
                "estimated_completion_hours": value,
                "last_edited_at": now,
                "last_edited_by": principal.user_id,
            },
        )
        if not updated:
            raise Conflict("Cannot change the estimate of a completed task")
        return self._load(task_id)

    # stages

    def add_stage(self, principal: Principal, task_id: str, data: dict) -> TaskEntity:
        task = self._load(task_id)
        self._require_participant(task, principal)
        order_index = data.get("order_index")
        self._repo.add_stage(
            task_id,
            {
                "title": require_text(data.get("title"), "title"),
                "description": data.get("description"),
                "order_index": _validate_order(order_index) if order_index is not None else None,
                "status": _validate_stage_status(data.get("status") or StageStatus.PENDING),
            },
        )
        return self._load(task_id)

    def update_stage(self, principal: Principal, stage_id: str, data: dict) -> TaskEntity:
        stage = self._repo.get_stage(stage_id)
        if not stage:
            raise NotFound("Stage not found")
        task = self._load(stage.task_id)
        self._require_participant(task, principal)

        changes: dict = {}
        if data.get("title") is not None:
            changes["title"] = require_text(data["title"], "title")
        if "description" in data:
            changes["description"] = data["description"]
        if data.get("order_index") is not None:
            changes["order_index"] = _validate_order(data["order_index"])
        if data.get("status") is not None:
            changes["status"] = _validate_stage_status(data["status"])
        self._repo.update_stage(stage_id, changes)
        return self._load(stage.task_id)

    def delete_stage(self, principal: Principal, stage_id: str) -> TaskEntity:
        stage = self._repo.get_stage(stage_id)
        if not stage:
            raise NotFound("Stage not found")
        task = self._load(stage.task_id)
        self._require_participant(task, principal)
        self._repo.delete_stage(stage_id)
        return self._load(stage.task_id)

    def move_stage(self, principal: Principal, stage_id: str, direction) -> TaskEntity:
        """Swap a stage with its neighbour. Moving past either end leaves the order alone."""
        stage = self._repo.get_stage(stage_id)
        if not stage:
            raise NotFound("Stage not found")
        try:
            move = StageMove(direction)
        except ValueError as exc:
            raise ValidationError("direction must be 'up' or 'down'") from exc
        task = self._load(stage.task_id)
        self._require_participant(task, principal)
        self._repo.swap_stage(stage_id, move)
        return self._load(stage.task_id)

    # helpers

    def _load(self, task_id: str) -> TaskEntity:
        task = self._repo.get_task(task_id)
        if not task:
            raise NotFound("Task not found")
        return task

    def _can_view(self, task: TaskEntity, user_id: str) -> bool:
        if task.is_participant(user_id):
            return True
        return bool(task.organization_id and self._is_creator(task.organization_id, user_id))

    def _is_creator(self, organization_id: str, user_id: str) -> bool:
        organization = self._organizations.get_organization(organization_id)
        return bool(organization and organization.created_by == user_id)

    def _require_member(self, organization_id: str, user_id: str) -> None:
        if not self._organizations.get_organization(organization_id):
            raise NotFound("Organization not found")
        if not self._organizations.find_member(organization_id, user_id):
            raise Forbidden("Not a member of this organization")

    def _require_members(self, organization_id: str, user_ids: Iterable[str]) -> None:
        members = self._organizations.member_user_ids(organization_id)
        outsiders = [user_id for user_id in user_ids if user_id not in members]
        if outsiders:
            raise ValidationError("Assignees must be members of the organization")

    def _require_profiles(self, user_ids: list[str]) -> None:
        known = self._profiles.get_profiles(user_ids)
        if len(known) != len(set(user_ids)):
            raise ValidationError("Unknown assignee")

    def _subgroup_members(self, organization_id: str | None, subgroup_ids: list[str]) -> list[str]:
        if not subgroup_ids:
            return []
        found = self._subgroups.get_subgroups(subgroup_ids) if self._subgroups else []
        if len(found) != len(subgroup_ids) or any(s.organization_id != organization_id for s in found):
            raise ValidationError("Unknown subgroup")
        return [user_id for subgroup in found for user_id in subgroup.member_ids]

    def _check_assignees(self, organization_id: str | None, assignees: list[str]) -> None:
        if organization_id:
            self._require_members(organization_id, assignees)
        else:
            self._require_profiles(assignees)

    @staticmethod
    def _require_assignee(task: TaskEntity, principal: Principal) -> None:
        if not task.is_assignee(principal.user_id):
            raise Forbidden("Only an assignee can do this")

    @staticmethod
    def _require_participant(task: TaskEntity, principal: Principal) -> None:
        if not task.is_participant(principal.user_id):
            raise Forbidden("Not a participant of this task")

    def _publish(
        self,
        task: TaskEntity,
        event: str,
        notification_type: str,
        recipients: Iterable[str],
        actor_id: str,
    ) -> None:
        payload = {
            "taskId": task.id,
            "organizationId": task.organization_id,
            "title": task.title,
            "status": task.status.value,
            "actorId": actor_id,
        }
        notify_users(
            self._broadcaster,
            [user_id for user_id in recipients if user_id != actor_id],
            str(notification_type),
            payload,
        )
        if task.organization_id:
            self._broadcaster.emit(event, payload, org_room(task.organization_id))


def _require_deadline(value) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("deadline must be an ISO 8601 timestamp") from exc
    if not isinstance(value, datetime):
        raise ValidationError("deadline is required")
    return to_naive_utc(value)


def _validate_hours(value) -> int:
    if not is_int(value) or value <= 0:
        raise ValidationError("estimated hours must be a positive whole number")
    return value


def _validate_order(value) -> int:
    if not is_int(value):
        raise ValidationError("order_index must be an integer")
    return value


def _validate_stage_status(value) -> str:
    try:
        return StageStatus(value).value
    except ValueError as exc:
        raise ValidationError("stage status must be pending, in_progress or completed") from exc


def _optional_id(value, field: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an id")
    return value


def _assignee_list(assigned_to, assignee_ids) -> list[str]:
    if not isinstance(assigned_to, str) or not assigned_to:
        raise ValidationError("assigned_to must be a user id")
    return list(dict.fromkeys([assigned_to, *id_list(assignee_ids, "assignee_ids")]))
