from __future__ import annotations

from collections import defaultdict
from datetime import MAXYEAR, MINYEAR, date, datetime
from typing import Callable

from tasky.domain.clock import utcnow
from tasky.domain.entities import TaskEntity
from tasky.domain.enums import TaskStatus, Urgency
from tasky.domain.errors import Forbidden, NotFound, ValidationError
from tasky.domain.filters import TaskFilters
from tasky.domain.principal import Principal
from tasky.domain.progress import completion_percentage
from tasky.domain.urgency import PRESSING, classify, most_pressing, rank
from tasky.infra.organizations import OrganizationRepository
from tasky.infra.repository import TaskRepository


class StatsService:
    def __init__(
        self,
        repo: TaskRepository,
        organizations: OrganizationRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repo
        self._organizations = organizations
        self._clock = clock

    def organization_stats(self, principal: Principal, organization_id: str) -> dict:
        organization = self._organizations.get_organization(organization_id)
        if not organization:
            raise NotFound("Organization not found")
        if not self._organizations.find_member(organization_id, principal.user_id):
            raise Forbidden("Not a member of this organization")

        now = self._clock()
        tasks = self._repo.list_tasks(TaskFilters(organization_id=organization_id), paginate=False)
        counts = self._repo.count_by_status(organization_id)
        urgency_counts = {urgency.value: 0 for urgency in Urgency}
        members: dict[str, dict] = defaultdict(_member_bucket)

        on_time = 0
        for task in tasks:
            urgency = classify(task.deadline, task.status, now)
            urgency_counts[urgency.value] += 1
            finished_on_time = _finished_on_time(task)
            on_time += finished_on_time
            for user_id in set(task.assignee_ids) | {task.assigned_to}:
                bucket = members[user_id]
                bucket["total"] += 1
                bucket[task.status.value] += 1
                bucket["on_time"] += finished_on_time
                if urgency == Urgency.OVERDUE:
                    bucket["overdue"] += 1

        total = len(tasks)
        completed = counts[TaskStatus.COMPLETED.value]
        return {
            "organization_id": organization_id,
            "total": total,
            "by_status": counts,
            "by_urgency": urgency_counts,
            "completion_rate": round(100 * completed / total) if total else 0,
            "on_time": on_time,
            "average_progress": (
                round(sum(completion_percentage(t.stages) for t in tasks) / total) if total else 0
            ),
            "members": [
                {"user_id": user_id, **bucket}
                for user_id, bucket in sorted(members.items(), key=lambda item: -item[1]["completed"])
            ],
        }

    def urgent_tasks(self, principal: Principal, organization_id: str | None = None) -> list[TaskEntity]:
        """Open tasks assigned to the caller whose deadline is close or already passed."""
        now = self._clock()
        filters = TaskFilters(assigned_to=principal.user_id, organization_id=organization_id)
        tasks = [
            task
            for task in self._repo.list_tasks(filters, paginate=False)
            if classify(task.deadline, task.status, now) in PRESSING
        ]
        tasks.sort(key=lambda task: (rank(classify(task.deadline, task.status, now)), task.deadline))
        return tasks

    def calendar(
        self,
        principal: Principal,
        year: int,
        month: int,
        organization_id: str | None = None,
    ) -> list[dict]:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        # the month after must still be a representable date
        if not MINYEAR <= year < MAXYEAR:
            raise ValidationError(f"year must be between {MINYEAR} and {MAXYEAR - 1}")
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
        if organization_id and not self._organizations.find_member(organization_id, principal.user_id):
            raise Forbidden("Not a member of this organization")

        now = self._clock()
        filters = TaskFilters(
            visible_to=principal.user_id,
            organization_id=organization_id,
            deadline_from=start,
            deadline_to=end,
        )
        days: dict[date, list[TaskEntity]] = defaultdict(list)
        for task in self._repo.list_tasks(filters, paginate=False):
            days[task.deadline.date()].append(task)

        result = []
        for day in sorted(days):
            tasks = days[day]
            result.append(
                {
                    "date": day,
                    "urgency": most_pressing(classify(t.deadline, t.status, now) for t in tasks),
                    "all_completed": all(t.status == TaskStatus.COMPLETED for t in tasks),
                    "tasks": tasks,
                }
            )
        return result


def _member_bucket() -> dict:
    return {
        "total": 0,
        TaskStatus.PENDING.value: 0,
        TaskStatus.IN_PROGRESS.value: 0,
        TaskStatus.COMPLETED.value: 0,
        "overdue": 0,
        "on_time": 0,
    }


def _finished_on_time(task: TaskEntity) -> int:
    if task.status != TaskStatus.COMPLETED or not task.actual_completed_at:
        return 0
    return int(task.actual_completed_at <= task.deadline)
