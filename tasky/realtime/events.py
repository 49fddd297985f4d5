"""Socket.IO handlers for the organization channel.

Clients authenticate on connect with the same bearer token the HTTP API
uses and are placed in their ``user:{id}`` room. They join ``org:{id}``
rooms explicitly, and only for organizations they belong to.
"""
from __future__ import annotations

import logging
from functools import wraps

from flask import request
from flask_socketio import emit, join_room, leave_room

from tasky.api.auth import principal_from_token
from tasky.api.container import get_services
from tasky.api.serializers import serialize_message
from tasky.domain.errors import DomainError, Unauthorized

from .broadcaster import org_room, user_room

logger = logging.getLogger(__name__)


def get_socket_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def register_events(socketio) -> None:
    principals = {}

    def authenticated(handler):
        @wraps(handler)
        def wrapper(data=None):
            principal = principals.get(get_socket_sid())
            if principal is None:
                emit("error", {"error": Unauthorized.kind, "message": "Authentication required"})
                return None
            try:
                return handler(principal, data if isinstance(data, dict) else {})
            except DomainError as exc:
                logger.info("socket %s rejected: %s", handler.__name__, exc.message)
                emit("error", {"error": exc.kind, "message": exc.message, "event": handler.__name__})
                return None

        return wrapper

    @socketio.on("connect")
    def handle_connect(auth=None):
        token = (auth or {}).get("token") if isinstance(auth, dict) else None
        try:
            principal = principal_from_token(token or request.args.get("token"))
        except DomainError as exc:
            logger.info("socket connection refused: %s", exc.message)
            return False
        sid = get_socket_sid()
        principals[sid] = principal
        join_room(user_room(principal.user_id))
        logger.debug("socket %s connected as %s", sid, principal.user_id)
        emit("connected", {"userId": principal.user_id})
        return None

    @socketio.on("disconnect")
    def handle_disconnect(*_args):
        principal = principals.pop(get_socket_sid(), None)
        if principal:
            logger.debug("socket for %s disconnected", principal.user_id)

    @socketio.on("join_org")
    @authenticated
    def join_org(principal, data):
        organization_id = data.get("organizationId")
        get_services().organizations.require_member(organization_id, principal.user_id)
        join_room(org_room(organization_id))
        emit("joined_org", {"organizationId": organization_id})
        return {"success": True}

    @socketio.on("leave_org")
    @authenticated
    def leave_org(principal, data):
        organization_id = data.get("organizationId")
        if organization_id:
            leave_room(org_room(organization_id))
        return {"success": True}

    @socketio.on("message")
    @authenticated
    def message(principal, data):
        saved = get_services().chat.send(
            principal,
            data.get("organizationId"),
            data.get("message"),
            reply_to_id=data.get("replyToId"),
            attachments=data.get("attachments"),
        )
        return {"success": True, "message": serialize_message(saved)}

    @socketio.on("reaction")
    @authenticated
    def reaction(principal, data):
        updated = get_services().chat.react(principal, data.get("messageId"), data.get("reaction"))
        return {"success": True, "message": serialize_message(updated)}

    @socketio.on("typing")
    @authenticated
    def typing(principal, data):
        get_services().chat.typing(principal, data.get("organizationId"))
        return None
