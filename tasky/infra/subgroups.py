from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from tasky.domain.entities import SubgroupEntity

from .db import SessionLocal
from .models import SubgroupMemberModel, SubgroupModel


def _to_entity(model: SubgroupModel) -> SubgroupEntity:
    return SubgroupEntity(
        id=model.id,
        organization_id=model.organization_id,
        name=model.name,
        description=model.description,
        created_by=model.created_by,
        created_at=model.created_at,
        member_ids=tuple(m.user_id for m in model.members),
    )


class SubgroupRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def create_subgroup(self, data: dict) -> SubgroupEntity:
        with self._sessions() as session:
            subgroup = SubgroupModel(**data)
            session.add(subgroup)
            session.commit()
            session.refresh(subgroup)
            return _to_entity(subgroup)

    def get_subgroup(self, subgroup_id: str) -> Optional[SubgroupEntity]:
        with self._sessions() as session:
            subgroup = session.get(SubgroupModel, subgroup_id)
            return _to_entity(subgroup) if subgroup else None

    def get_subgroups(self, subgroup_ids: Iterable[str]) -> list[SubgroupEntity]:
        ids = list(set(subgroup_ids))
        if not ids:
            return []
        with self._sessions() as session:
            rows = session.scalars(select(SubgroupModel).where(SubgroupModel.id.in_(ids)))
            return [_to_entity(row) for row in rows]

    def list_for_organization(self, organization_id: str) -> list[SubgroupEntity]:
        with self._sessions() as session:
            stmt = (
                select(SubgroupModel)
                .where(SubgroupModel.organization_id == organization_id)
                .order_by(SubgroupModel.created_at.asc(), SubgroupModel.name.asc())
            )
            return [_to_entity(row) for row in session.scalars(stmt)]

    def update_subgroup(self, subgroup_id: str, data: dict) -> Optional[SubgroupEntity]:
        with self._sessions() as session:
            subgroup = session.get(SubgroupModel, subgroup_id)
            if not subgroup:
                return None
            for key, value in data.items():
                setattr(subgroup, key, value)
            session.commit()
            session.refresh(subgroup)
            return _to_entity(subgroup)

    def delete_subgroup(self, subgroup_id: str) -> bool:
        with self._sessions() as session:
            subgroup = session.get(SubgroupModel, subgroup_id)
            if not subgroup:
                return False
            session.delete(subgroup)
            session.commit()
            return True

    def set_members(self, subgroup_id: str, user_ids: Iterable[str]) -> Optional[SubgroupEntity]:
        """Replace the member list."""
        with self._sessions() as session:
            subgroup = session.get(SubgroupModel, subgroup_id)
            if not subgroup:
                return None
            existing = {m.user_id: m for m in subgroup.members}
            subgroup.members = [
                existing.get(user_id) or SubgroupMemberModel(user_id=user_id)
                for user_id in dict.fromkeys(user_ids)
            ]
            session.commit()
            session.refresh(subgroup)
            return _to_entity(subgroup)

    def remove_member(self, subgroup_id: str, user_id: str) -> Optional[SubgroupEntity]:
        with self._sessions() as session:
            subgroup = session.get(SubgroupModel, subgroup_id)
            if not subgroup:
                return None
            subgroup.members = [m for m in subgroup.members if m.user_id != user_id]
            session.commit()
            session.refresh(subgroup)
            return _to_entity(subgroup)
