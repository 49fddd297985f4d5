from __future__ import annotations

from flask import Blueprint, jsonify

from .auth import current_principal, require_principal
from .container import get_services
from .requests import json_body, query_int
from .serializers import serialize_message

chat_bp = Blueprint("chat", __name__, url_prefix="/chat")


@chat_bp.get("/<organization_id>/messages")
@require_principal
def list_messages(organization_id: str):
    messages = get_services().chat.list_messages(current_principal(), organization_id, query_int("limit"))
    return jsonify({"success": True, "messages": [serialize_message(m) for m in messages]})


@chat_bp.post("/<organization_id>/messages")
@require_principal
def send_message(organization_id: str):
    body = json_body()
    message = get_services().chat.send(
        current_principal(),
        organization_id,
        body.get("message"),
        reply_to_id=body.get("replyToId"),
        attachments=body.get("attachments"),
    )
    return jsonify({"success": True, "message": serialize_message(message)}), 201


@chat_bp.post("/messages/<message_id>/reactions")
@require_principal
def react(message_id: str):
    message = get_services().chat.react(current_principal(), message_id, json_body().get("reaction"))
    return jsonify({"success": True, "message": serialize_message(message)})


@chat_bp.patch("/messages/<message_id>")
@require_principal
def edit_message(message_id: str):
    message = get_services().chat.edit(current_principal(), message_id, json_body().get("message"))
    return jsonify({"success": True, "message": serialize_message(message)})


@chat_bp.delete("/messages/<message_id>")
@require_principal
def delete_message(message_id: str):
    message = get_services().chat.delete(current_principal(), message_id)
    return jsonify({"success": True, "message": serialize_message(message)})
