"""Outbound realtime events.

Services publish through a :class:`Broadcaster` so the lifecycle, invitation
and chat code can feed the same organization channel the chat uses without
knowing about sockets. Delivery is best effort: a failed emit is logged and
never propagates into the request that caused it.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


def org_room(organization_id: str) -> str:
    return f"org:{organization_id}"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


class Broadcaster(Protocol):
    def emit(self, event: str, payload: dict[str, Any], room: str) -> None: ...


class NullBroadcaster:
    def emit(self, event: str, payload: dict[str, Any], room: str) -> None:
        logger.debug("dropping %s for %s (no realtime channel)", event, room)


class SocketIOBroadcaster:
    def __init__(self, socketio) -> None:
        self._socketio = socketio

    def emit(self, event: str, payload: dict[str, Any], room: str) -> None:
        try:
            self._socketio.emit(event, payload, to=room)
        except Exception:  # noqa: BLE001
            logger.exception("broadcast of %s to %s failed", event, room)


def notify_users(
    broadcaster: Broadcaster,
    user_ids: Iterable[str],
    notification_type: str,
    payload: dict[str, Any],
) -> None:
    message = {"type": notification_type, **payload}
    for user_id in dict.fromkeys(user_ids):
        broadcaster.emit(NOTIFICATION_EVENT, message, user_room(user_id))
