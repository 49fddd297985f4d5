from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import sessionmaker

from tasky.domain.entities import (
    AttachmentEntity,
    ReportEntity,
    StageEntity,
    TaskEntity,
)
from tasky.domain.enums import StageMove, StageStatus, TaskStatus
from tasky.domain.filters import TaskFilters

from .db import SessionLocal
from .models import (
    AssignmentModel,
    ReportModel,
    StageModel,
    TaskAttachmentModel,
    TaskModel,
    TaskSubgroupModel,
)

STATUS_COMPLETED = TaskStatus.COMPLETED.value


def _stage_entity(model: StageModel) -> StageEntity:
    return StageEntity(
        id=model.id,
        task_id=model.task_id,
        title=model.title,
        description=model.description,
        order_index=model.order_index,
        status=StageStatus(model.status),
    )


def _attachment_entity(model) -> AttachmentEntity:
    return AttachmentEntity(
        id=model.id,
        file_url=model.file_url,
        file_name=model.file_name,
        file_type=model.file_type,
        file_size=model.file_size,
    )


def _report_entity(model: ReportModel) -> ReportEntity:
    return ReportEntity(
        id=model.id,
        task_id=model.task_id,
        user_id=model.user_id,
        report_text=model.report_text,
        created_at=model.created_at,
        attachments=tuple(_attachment_entity(a) for a in model.attachments),
    )


def _to_entity(model: TaskModel) -> TaskEntity:
    stages = sorted(model.stages, key=lambda s: (s.order_index, s.id))
    return TaskEntity(
        id=model.id,
        organization_id=model.organization_id,
        title=model.title,
        description=model.description,
        assigned_by=model.assigned_by,
        assigned_to=model.assigned_to,
        status=TaskStatus(model.status),
        deadline=model.deadline,
        created_at=model.created_at,
        started_at=model.started_at,
        actual_completed_at=model.actual_completed_at,
        estimated_completion_hours=model.estimated_completion_hours,
        decline_reason=model.decline_reason,
        last_edited_at=model.last_edited_at,
        last_edited_by=model.last_edited_by,
        assignee_ids=tuple(sorted(a.user_id for a in model.assignments)),
        stages=tuple(_stage_entity(s) for s in stages),
        reports=tuple(_report_entity(r) for r in model.reports),
        subgroup_ids=tuple(sorted(link.subgroup_id for link in model.subgroup_links)),
    )


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.organization_id:
        stmt = stmt.where(TaskModel.organization_id == filters.organization_id)
    if filters.status:
        stmt = stmt.where(TaskModel.status == TaskStatus(filters.status).value)
    if filters.assigned_by:
        stmt = stmt.where(TaskModel.assigned_by == filters.assigned_by)
    if filters.assigned_to:
        assigned = select(AssignmentModel.task_id).where(
            AssignmentModel.user_id == filters.assigned_to
        )
        stmt = stmt.where(
            or_(TaskModel.assigned_to == filters.assigned_to, TaskModel.id.in_(assigned))
        )
    if filters.visible_to:
        assigned = select(AssignmentModel.task_id).where(
            AssignmentModel.user_id == filters.visible_to
        )
        stmt = stmt.where(
            or_(
                TaskModel.assigned_by == filters.visible_to,
                TaskModel.assigned_to == filters.visible_to,
                TaskModel.id.in_(assigned),
            )
        )
    if filters.ids:
        stmt = stmt.where(TaskModel.id.in_(filters.ids))
    if filters.deadline_from:
        stmt = stmt.where(TaskModel.deadline >= filters.deadline_from)
    if filters.deadline_to:
        stmt = stmt.where(TaskModel.deadline < filters.deadline_to)
    return stmt


class TaskRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def list_tasks(self, filters: TaskFilters, paginate: bool = True) -> list[TaskEntity]:
        with self._sessions() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(TaskModel.deadline.asc(), TaskModel.created_at.asc())
            if paginate:
                stmt = stmt.limit(filters.limit).offset(filters.offset)
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: str) -> Optional[TaskEntity]:
        with self._sessions() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(
        self,
        data: dict,
        assignee_ids: Iterable[str],
        stages: Iterable[dict] = (),
        subgroup_ids: Iterable[str] = (),
    ) -> TaskEntity:
        with self._sessions() as session:
            task = TaskModel(**data)
            task.assignments = [AssignmentModel(user_id=user_id) for user_id in assignee_ids]
            task.subgroup_links = [TaskSubgroupModel(subgroup_id=s) for s in dict.fromkeys(subgroup_ids)]
            task.stages = [StageModel(**stage) for stage in stages]
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(
        self,
        task_id: str,
        data: dict,
        assignee_ids: Iterable[str] | None = None,
        subgroup_ids: Iterable[str] | None = None,
    ) -> Optional[TaskEntity]:
        with self._sessions() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            for key, value in data.items():
                setattr(task, key, value)
            if assignee_ids is not None:
                _replace_assignments(session, task, assignee_ids)
            if subgroup_ids is not None:
                _replace_subgroups(task, subgroup_ids)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def set_assignments(self, task_id: str, assignee_ids: Iterable[str]) -> Optional[TaskEntity]:
        return self.update_task(task_id, {}, assignee_ids)

    def delete_task(self, task_id: str) -> bool:
        with self._sessions() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return False
            session.delete(task)
            session.commit()
            return True

    def transition_status(
        self,
        task_id: str,
        from_statuses: Iterable[TaskStatus],
        values: dict,
    ) -> bool:
        """Conditional update; False when the row was not in one of ``from_statuses``."""
        allowed = [TaskStatus(s).value for s in from_statuses]
        with self._sessions() as session:
            result = session.execute(
                update(TaskModel)
                .where(TaskModel.id == task_id, TaskModel.status.in_(allowed))
                .values(**values)
            )
            session.commit()
            return result.rowcount == 1

    def complete_task(
        self,
        task_id: str,
        user_id: str,
        report_text: str,
        attachments: Iterable[dict],
        completed_at: datetime,
    ) -> bool:
        """Mark completed and store the report in one transaction."""
        with self._sessions() as session, session.begin():
            result = session.execute(
                update(TaskModel)
                .where(TaskModel.id == task_id, TaskModel.status != STATUS_COMPLETED)
                .values(
                    status=STATUS_COMPLETED,
                    actual_completed_at=completed_at,
                    last_edited_at=completed_at,
                    last_edited_by=user_id,
                )
            )
            if result.rowcount != 1:
                return False
            report = ReportModel(
                task_id=task_id,
                user_id=user_id,
                report_text=report_text,
                created_at=completed_at,
            )
            report.attachments = [TaskAttachmentModel(**a) for a in attachments]
            session.add(report)
            session.flush()
        return True

    def add_stage(self, task_id: str, data: dict) -> StageEntity:
        with self._sessions() as session:
            if data.get("order_index") is None:
                data["order_index"] = self._next_order_index(session, task_id)
            stage = StageModel(task_id=task_id, **data)
            session.add(stage)
            session.commit()
            session.refresh(stage)
            return _stage_entity(stage)

    def get_stage(self, stage_id: str) -> Optional[StageEntity]:
        with self._sessions() as session:
            stage = session.get(StageModel, stage_id)
            return _stage_entity(stage) if stage else None

    def update_stage(self, stage_id: str, data: dict) -> Optional[StageEntity]:
        with self._sessions() as session:
            stage = session.get(StageModel, stage_id)
            if not stage:
                return None
            for key, value in data.items():
                setattr(stage, key, value)
            session.commit()
            session.refresh(stage)
            return _stage_entity(stage)

    def delete_stage(self, stage_id: str) -> bool:
        with self._sessions() as session:
            stage = session.get(StageModel, stage_id)
            if not stage:
                return False
            session.delete(stage)
            session.commit()
            return True

    def swap_stage(self, stage_id: str, direction: StageMove) -> bool:
        """Swap ``order_index`` with the neighbouring stage. False at either end."""
        with self._sessions() as session, session.begin():
            stage = session.get(StageModel, stage_id)
            if not stage:
                return False
            siblings = list(
                session.scalars(
                    select(StageModel)
                    .where(StageModel.task_id == stage.task_id)
                    .order_by(StageModel.order_index.asc(), StageModel.id.asc())
                )
            )
            position = next(i for i, s in enumerate(siblings) if s.id == stage.id)
            target = position - 1 if direction == StageMove.UP else position + 1
            if target < 0 or target >= len(siblings):
                return False
            neighbour = siblings[target]
            stage.order_index, neighbour.order_index = neighbour.order_index, stage.order_index
        return True

    def count_by_status(self, organization_id: str) -> dict[str, int]:
        with self._sessions() as session:
            rows = session.execute(
                select(TaskModel.status, func.count())
                .where(TaskModel.organization_id == organization_id)
                .group_by(TaskModel.status)
            ).all()
        counts = {status.value: 0 for status in TaskStatus}
        for status, count in rows:
            counts[status] = count
        return counts

    @staticmethod
    def _next_order_index(session, task_id: str) -> int:
        max_order = session.scalar(
            select(func.max(StageModel.order_index)).where(StageModel.task_id == task_id)
        )
        return (max_order or 0) + 1


def _replace_assignments(session, task: TaskModel, assignee_ids: Iterable[str]) -> None:
    wanted = list(dict.fromkeys(assignee_ids))
    existing = {a.user_id: a for a in task.assignments}
    task.assignments = [existing.get(user_id) or AssignmentModel(user_id=user_id) for user_id in wanted]


def _replace_subgroups(task: TaskModel, subgroup_ids: Iterable[str]) -> None:
    existing = {link.subgroup_id: link for link in task.subgroup_links}
    task.subgroup_links = [
        existing.get(subgroup_id) or TaskSubgroupModel(subgroup_id=subgroup_id)
        for subgroup_id in dict.fromkeys(subgroup_ids)
    ]
