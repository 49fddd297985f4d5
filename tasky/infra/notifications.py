from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tasky.domain.entities import NotificationReadEntity

from .db import SessionLocal
from .models import NotificationReadModel

logger = logging.getLogger(__name__)


def _to_entity(model: NotificationReadModel) -> NotificationReadEntity:
    return NotificationReadEntity(
        id=model.id,
        user_id=model.user_id,
        notification_type=model.notification_type,
        notification_id=model.notification_id,
        read_at=model.read_at,
    )


class NotificationReadRepository:
    """Append-only ledger of acknowledged notifications."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def find(
        self, user_id: str, notification_type: str, notification_id: str
    ) -> Optional[NotificationReadEntity]:
        with self._sessions() as session:
            row = session.scalar(
                select(NotificationReadModel).where(
                    NotificationReadModel.user_id == user_id,
                    NotificationReadModel.notification_type == notification_type,
                    NotificationReadModel.notification_id == notification_id,
                )
            )
            return _to_entity(row) if row else None

    def insert_if_absent(
        self, user_id: str, notification_type: str, notification_id: str, read_at: datetime
    ) -> NotificationReadEntity:
        existing = self.find(user_id, notification_type, notification_id)
        if existing:
            return existing
        try:
            with self._sessions() as session:
                row = NotificationReadModel(
                    user_id=user_id,
                    notification_type=notification_type,
                    notification_id=notification_id,
                    read_at=read_at,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_entity(row)
        except IntegrityError:
            # lost the race to a concurrent insert of the same triple
            logger.debug("read already recorded for %s %s:%s", user_id, notification_type, notification_id)
            return self.find(user_id, notification_type, notification_id)

    def list_for_user(self, user_id: str) -> list[NotificationReadEntity]:
        with self._sessions() as session:
            stmt = (
                select(NotificationReadModel)
                .where(NotificationReadModel.user_id == user_id)
                .order_by(NotificationReadModel.read_at.desc())
            )
            return [_to_entity(row) for row in session.scalars(stmt)]

    def read_keys(self, user_id: str) -> set[tuple[str, str]]:
        with self._sessions() as session:
            rows = session.execute(
                select(
                    NotificationReadModel.notification_type,
                    NotificationReadModel.notification_id,
                ).where(NotificationReadModel.user_id == user_id)
            ).all()
        return {(row[0], row[1]) for row in rows}
