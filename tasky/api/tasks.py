from __future__ import annotations

from flask import Blueprint, jsonify, request

from tasky.domain.enums import TaskStatus
from tasky.domain.errors import ValidationError
from tasky.domain.filters import TaskFilters

from .auth import current_principal, require_principal
from .container import get_services
from .requests import json_body, query_int, remap
from .serializers import serialize_calendar_day, serialize_task

tasks_bp = Blueprint("tasks", __name__, url_prefix="/tasks")

TASK_FIELDS = {
    "title": "title",
    "description": "description",
    "organizationId": "organization_id",
    "assignedTo": "assigned_to",
    "assigneeIds": "assignee_ids",
    "subgroupIds": "subgroup_ids",
    "deadline": "deadline",
    "estimatedCompletionHours": "estimated_completion_hours",
    "status": "status",
}
STAGE_FIELDS = {
    "title": "title",
    "description": "description",
    "orderIndex": "order_index",
    "status": "status",
}


def _task_response(task, status: int = 200):
    services = get_services()
    return jsonify({"success": True, "task": serialize_task(task, services.clock())}), status


def _list_filters() -> TaskFilters:
    principal = current_principal()
    scope = request.args.get("scope", "all")
    if scope not in ("all", "assigned_to_me", "assigned_by_me"):
        raise ValidationError("scope must be all, assigned_to_me or assigned_by_me")
    status = request.args.get("status")
    if status:
        try:
            status = TaskStatus(status)
        except ValueError as exc:
            raise ValidationError("status must be pending, in_progress or completed") from exc
    ids = tuple(i for i in request.args.get("ids", "").split(",") if i)
    return TaskFilters(
        organization_id=request.args.get("organizationId") or None,
        status=status or None,
        assigned_to=principal.user_id if scope == "assigned_to_me" else None,
        assigned_by=principal.user_id if scope == "assigned_by_me" else None,
        ids=ids,
        limit=query_int("limit", 50),
        offset=max(0, query_int("offset", 0)),
    )


@tasks_bp.post("")
@require_principal
def create_task():
    task = get_services().tasks.create_task(current_principal(), remap(json_body(), TASK_FIELDS))
    return _task_response(task, 201)


@tasks_bp.get("")
@require_principal
def list_tasks():
    services = get_services()
    tasks = services.tasks.list_tasks(current_principal(), _list_filters())
    now = services.clock()
    return jsonify({"success": True, "tasks": [serialize_task(t, now) for t in tasks]})


@tasks_bp.get("/urgent")
@require_principal
def urgent_tasks():
    services = get_services()
    tasks = services.stats.urgent_tasks(current_principal(), request.args.get("organizationId") or None)
    now = services.clock()
    return jsonify({"success": True, "tasks": [serialize_task(t, now) for t in tasks]})


@tasks_bp.get("/calendar")
@require_principal
def calendar():
    services = get_services()
    days = services.stats.calendar(
        current_principal(),
        query_int("year", required=True),
        query_int("month", required=True),
        request.args.get("organizationId") or None,
    )
    now = services.clock()
    return jsonify({"success": True, "days": [serialize_calendar_day(d, now) for d in days]})


@tasks_bp.get("/<task_id>")
@require_principal
def get_task(task_id: str):
    return _task_response(get_services().tasks.get_task(current_principal(), task_id))


@tasks_bp.patch("/<task_id>")
@require_principal
def update_task(task_id: str):
    task = get_services().tasks.update_task(current_principal(), task_id, remap(json_body(), TASK_FIELDS))
    return _task_response(task)


@tasks_bp.delete("/<task_id>")
@require_principal
def delete_task(task_id: str):
    get_services().tasks.delete_task(current_principal(), task_id)
    return jsonify({"success": True})


@tasks_bp.post("/<task_id>/assignments")
@require_principal
def set_assignments(task_id: str):
    assignee_ids = json_body().get("assigneeIds")
    if not isinstance(assignee_ids, list):
        raise ValidationError("assigneeIds must be a list")
    task = get_services().tasks.set_assignments(current_principal(), task_id, assignee_ids)
    return _task_response(task)


@tasks_bp.post("/<task_id>/estimate")
@require_principal
def set_estimate(task_id: str):
    hours = json_body().get("estimatedCompletionHours")
    task = get_services().tasks.set_estimate(current_principal(), task_id, hours)
    return _task_response(task)


@tasks_bp.post("/<task_id>/status")
@require_principal
def change_status(task_id: str):
    body = json_body()
    tasks = get_services().tasks
    principal = current_principal()
    status = body.get("status")

    if "declineReason" in body:
        task = tasks.decline(principal, task_id, body["declineReason"])
    elif status == TaskStatus.IN_PROGRESS:
        task = tasks.start(principal, task_id)
    elif status == TaskStatus.COMPLETED:
        task = tasks.complete(principal, task_id, body.get("reportText"), body.get("attachments"))
    else:
        raise ValidationError("status must be in_progress or completed, or give a declineReason")
    return _task_response(task)


@tasks_bp.post("/<task_id>/reports")
@require_principal
def submit_report(task_id: str):
    body = json_body()
    task = get_services().tasks.complete(
        current_principal(), task_id, body.get("reportText"), body.get("attachments")
    )
    return _task_response(task, 201)


@tasks_bp.post("/<task_id>/stages")
@require_principal
def add_stage(task_id: str):
    task = get_services().tasks.add_stage(current_principal(), task_id, remap(json_body(), STAGE_FIELDS))
    return _task_response(task, 201)


@tasks_bp.patch("/stages/<stage_id>")
@require_principal
def update_stage(stage_id: str):
    task = get_services().tasks.update_stage(current_principal(), stage_id, remap(json_body(), STAGE_FIELDS))
    return _task_response(task)


@tasks_bp.delete("/stages/<stage_id>")
@require_principal
def delete_stage(stage_id: str):
    return _task_response(get_services().tasks.delete_stage(current_principal(), stage_id))


@tasks_bp.post("/stages/<stage_id>/move")
@require_principal
def move_stage(stage_id: str):
    direction = json_body().get("direction")
    return _task_response(get_services().tasks.move_stage(current_principal(), stage_id, direction))
