from __future__ import annotations

from flask import Blueprint, jsonify

from .auth import current_principal, require_principal
from .container import get_services
from .requests import json_body
from .serializers import serialize_notification, serialize_read

notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@notifications_bp.post("/reads")
@require_principal
def mark_read():
    body = json_body()
    row = get_services().notifications.mark_read(
        current_principal(), body.get("notificationType"), body.get("notificationId")
    )
    return jsonify({"success": True, "read": serialize_read(row)})


@notifications_bp.get("/reads")
@require_principal
def list_reads():
    rows = get_services().notifications.list_reads(current_principal())
    return jsonify({"success": True, "reads": [serialize_read(r) for r in rows]})


@notifications_bp.post("/reads/all")
@require_principal
def mark_all_read():
    marked = get_services().notifications.mark_all_read(current_principal())
    return jsonify({"success": True, "marked": marked})


@notifications_bp.get("")
@require_principal
def feed():
    items = get_services().notifications.feed(current_principal())
    return jsonify({"success": True, "notifications": [serialize_notification(n) for n in items]})


@notifications_bp.get("/unread-count")
@require_principal
def unread_count():
    return jsonify({"success": True, "count": get_services().notifications.unread_count(current_principal())})
