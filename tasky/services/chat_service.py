from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from tasky.domain.clock import utcnow
from tasky.domain.entities import ChatMessageEntity
from tasky.domain.errors import Forbidden, NotFound, ValidationError
from tasky.domain.principal import Principal
from tasky.infra.chat import ChatRepository
from tasky.infra.organizations import OrganizationRepository
from tasky.realtime.broadcaster import Broadcaster, NullBroadcaster, org_room

from .validation import optional_text, require_text, validate_attachment

logger = logging.getLogger(__name__)

MAX_REACTION_LENGTH = 32


class ChatService:
    """Organization chat. Every write is persisted first, then fanned out."""

    def __init__(
        self,
        chat: ChatRepository,
        organizations: OrganizationRepository,
        broadcaster: Broadcaster | None = None,
        serialize: Callable[[ChatMessageEntity], dict] | None = None,
        clock: Callable[[], datetime] = utcnow,
        history_limit: int = 100,
    ) -> None:
        self._chat = chat
        self._organizations = organizations
        self._broadcaster = broadcaster or NullBroadcaster()
        self._serialize = serialize or _default_payload
        self._clock = clock
        self._history_limit = history_limit

    def list_messages(self, principal: Principal, organization_id: str, limit: int | None = None) -> list[ChatMessageEntity]:
        self._require_member(organization_id, principal.user_id)
        limit = max(1, min(limit or self._history_limit, self._history_limit))
        return self._chat.list_messages(organization_id, limit)

    def send(
        self,
        principal: Principal,
        organization_id: str,
        message: str | None,
        reply_to_id: str | None = None,
        attachments: Iterable[dict] | None = None,
    ) -> ChatMessageEntity:
        self._require_member(organization_id, principal.user_id)
        files = [validate_attachment(item) for item in attachments or []]
        text = optional_text(message, "message") or ""
        if not text and not files:
            raise ValidationError("message is required")
        if reply_to_id:
            parent = self._chat.get_message(reply_to_id)
            if not parent or parent.organization_id != organization_id:
                raise NotFound("Message to reply to not found")

        saved = self._chat.create_message(
            {
                "organization_id": organization_id,
                "user_id": principal.user_id,
                "message": text,
                "reply_to_id": reply_to_id,
                "created_at": self._clock(),
            },
            files,
        )
        logger.info("chat message %s in %s by %s", saved.id, organization_id, principal.user_id)
        self._broadcast("message", saved)
        return saved

    def react(self, principal: Principal, message_id: str, reaction: str | None) -> ChatMessageEntity:
        message = self._load(message_id)
        self._require_member(message.organization_id, principal.user_id)
        if message.is_deleted:
            raise NotFound("Message not found")
        reaction = optional_text(reaction, "reaction")
        if not reaction or len(reaction) > MAX_REACTION_LENGTH:
            raise ValidationError("reaction is required")
        updated = self._chat.set_reaction(message_id, principal.user_id, reaction)
        if not updated:
            raise NotFound("Message not found")
        self._broadcast("reaction", updated)
        return updated

    def edit(self, principal: Principal, message_id: str, text: str | None) -> ChatMessageEntity:
        message = self._load(message_id)
        if message.user_id != principal.user_id:
            raise Forbidden("Only the author can edit a message")
        if message.is_deleted:
            raise NotFound("Message not found")
        text = require_text(text, "message")
        updated = self._chat.update_message(message_id, {"message": text, "edited_at": self._clock()})
        self._broadcast("message_updated", updated)
        return updated

    def delete(self, principal: Principal, message_id: str) -> ChatMessageEntity:
        message = self._load(message_id)
        if message.user_id != principal.user_id:
            organization = self._organizations.get_organization(message.organization_id)
            if not organization or organization.created_by != principal.user_id:
                raise Forbidden("Not allowed to delete this message")
        updated = self._chat.update_message(message_id, {"is_deleted": True})
        logger.info("chat message %s deleted by %s", message_id, principal.user_id)
        self._broadcast("message_deleted", updated)
        return updated

    def typing(self, principal: Principal, organization_id: str) -> None:
        self._require_member(organization_id, principal.user_id)
        self._broadcaster.emit("typing", {"userId": principal.user_id}, org_room(organization_id))

    def _load(self, message_id: str) -> ChatMessageEntity:
        message = self._chat.get_message(message_id)
        if not message:
            raise NotFound("Message not found")
        return message

    def _require_member(self, organization_id: str, user_id: str) -> None:
        if not organization_id:
            raise ValidationError("organizationId is required")
        if not self._organizations.get_organization(organization_id):
            raise NotFound("Organization not found")
        if not self._organizations.find_member(organization_id, user_id):
            raise Forbidden("Not a member of this organization")

    def _broadcast(self, event: str, message: ChatMessageEntity) -> None:
        self._broadcaster.emit(event, self._serialize(message), org_room(message.organization_id))


def _default_payload(message: ChatMessageEntity) -> dict:
    return {"id": message.id, "organizationId": message.organization_id}

