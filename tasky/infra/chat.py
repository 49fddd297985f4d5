from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import aliased, sessionmaker

from tasky.domain.entities import AttachmentEntity, ChatMessageEntity, ReactionEntity

from .db import SessionLocal
from .models import ChatAttachmentModel, ChatMessageModel, ChatReactionModel


def _to_entity(model: ChatMessageModel) -> ChatMessageEntity:
    return ChatMessageEntity(
        id=model.id,
        organization_id=model.organization_id,
        user_id=model.user_id,
        message=model.message,
        reply_to_id=model.reply_to_id,
        created_at=model.created_at,
        edited_at=model.edited_at,
        is_deleted=model.is_deleted,
        reactions=tuple(ReactionEntity(user_id=r.user_id, reaction=r.reaction) for r in model.reactions),
        attachments=tuple(
            AttachmentEntity(
                id=a.id,
                file_url=a.file_url,
                file_name=a.file_name,
                file_type=a.file_type,
                file_size=a.file_size,
            )
            for a in model.attachments
        ),
    )


class ChatRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def list_messages(self, organization_id: str, limit: int) -> list[ChatMessageEntity]:
        with self._sessions() as session:
            stmt = (
                select(ChatMessageModel)
                .where(ChatMessageModel.organization_id == organization_id)
                .order_by(ChatMessageModel.created_at.desc(), ChatMessageModel.id.desc())
                .limit(limit)
            )
            rows = [_to_entity(row) for row in session.scalars(stmt)]
        rows.reverse()
        return rows

    def get_message(self, message_id: str) -> Optional[ChatMessageEntity]:
        with self._sessions() as session:
            message = session.get(ChatMessageModel, message_id)
            return _to_entity(message) if message else None

    def create_message(self, data: dict, attachments: Iterable[dict] = ()) -> ChatMessageEntity:
        with self._sessions() as session:
            message = ChatMessageModel(**data)
            message.attachments = [ChatAttachmentModel(**a) for a in attachments]
            session.add(message)
            session.commit()
            session.refresh(message)
            return _to_entity(message)

    def update_message(self, message_id: str, data: dict) -> Optional[ChatMessageEntity]:
        with self._sessions() as session:
            message = session.get(ChatMessageModel, message_id)
            if not message:
                return None
            for key, value in data.items():
                setattr(message, key, value)
            session.commit()
            session.refresh(message)
            return _to_entity(message)

    def set_reaction(self, message_id: str, user_id: str, reaction: str) -> Optional[ChatMessageEntity]:
        with self._sessions() as session:
            message = session.get(ChatMessageModel, message_id)
            if not message:
                return None
            existing = next((r for r in message.reactions if r.user_id == user_id), None)
            if existing:
                existing.reaction = reaction
            else:
                message.reactions.append(ChatReactionModel(user_id=user_id, reaction=reaction))
            session.commit()
            session.refresh(message)
            return _to_entity(message)

    def list_replies_to(self, user_id: str, organization_ids: Iterable[str]) -> list[ChatMessageEntity]:
        """Live replies written by others to messages authored by ``user_id``."""
        org_ids = list(organization_ids)
        if not org_ids:
            return []
        parent = aliased(ChatMessageModel)
        with self._sessions() as session:
            stmt = (
                select(ChatMessageModel)
                .join(parent, ChatMessageModel.reply_to_id == parent.id)
                .where(
                    parent.user_id == user_id,
                    ChatMessageModel.user_id != user_id,
                    ChatMessageModel.organization_id.in_(org_ids),
                    ChatMessageModel.is_deleted.is_(False),
                )
                .order_by(ChatMessageModel.created_at.desc())
            )
            return [_to_entity(row) for row in session.scalars(stmt)]
