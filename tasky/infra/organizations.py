from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import sessionmaker

from tasky.domain.entities import (
    InvitationEntity,
    MemberEntity,
    OrganizationEntity,
    ProfileEntity,
)
from tasky.domain.enums import InvitationStatus

from .db import SessionLocal
from .models import InvitationModel, MemberModel, OrganizationModel, ProfileModel

STATUS_PENDING = InvitationStatus.PENDING.value


def _profile_entity(model: ProfileModel) -> ProfileEntity:
    return ProfileEntity(id=model.id, full_name=model.full_name, email=model.email)


def _organization_entity(model: OrganizationModel) -> OrganizationEntity:
    return OrganizationEntity(
        id=model.id,
        name=model.name,
        description=model.description,
        created_by=model.created_by,
        created_at=model.created_at,
    )


def _member_entity(model: MemberModel) -> MemberEntity:
    return MemberEntity(
        id=model.id,
        organization_id=model.organization_id,
        user_id=model.user_id,
        position=model.position,
        created_at=model.created_at,
    )


def _invitation_entity(model: InvitationModel) -> InvitationEntity:
    return InvitationEntity(
        id=model.id,
        organization_id=model.organization_id,
        employee_id=model.employee_id,
        message=model.message,
        status=InvitationStatus(model.status),
        created_at=model.created_at,
        accepted_at=model.accepted_at,
        declined_at=model.declined_at,
    )


class ProfileRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def create_profile(self, data: dict) -> ProfileEntity:
        with self._sessions() as session:
            profile = ProfileModel(**data)
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return _profile_entity(profile)

    def get_profile(self, user_id: str) -> Optional[ProfileEntity]:
        with self._sessions() as session:
            profile = session.get(ProfileModel, user_id)
            return _profile_entity(profile) if profile else None

    def get_profiles(self, user_ids: Iterable[str]) -> dict[str, ProfileEntity]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        with self._sessions() as session:
            rows = session.scalars(select(ProfileModel).where(ProfileModel.id.in_(ids)))
            return {row.id: _profile_entity(row) for row in rows}


class OrganizationRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def create_organization(self, data: dict, position: str) -> OrganizationEntity:
        with self._sessions() as session:
            organization = OrganizationModel(**data)
            organization.members = [MemberModel(user_id=data["created_by"], position=position)]
            session.add(organization)
            session.commit()
            session.refresh(organization)
            return _organization_entity(organization)

    def get_organization(self, organization_id: str) -> Optional[OrganizationEntity]:
        with self._sessions() as session:
            organization = session.get(OrganizationModel, organization_id)
            return _organization_entity(organization) if organization else None

    def list_for_user(self, user_id: str) -> list[OrganizationEntity]:
        with self._sessions() as session:
            stmt = (
                select(OrganizationModel)
                .join(MemberModel, MemberModel.organization_id == OrganizationModel.id)
                .where(MemberModel.user_id == user_id)
                .order_by(OrganizationModel.created_at.desc())
            )
            return [_organization_entity(row) for row in session.scalars(stmt)]

    def search(self, query: str, limit: int) -> list[OrganizationEntity]:
        pattern = f"%{query}%"
        with self._sessions() as session:
            stmt = (
                select(OrganizationModel)
                .where(
                    or_(
                        OrganizationModel.name.ilike(pattern),
                        OrganizationModel.description.ilike(pattern),
                    )
                )
                .order_by(OrganizationModel.created_at.desc())
                .limit(limit)
            )
            return [_organization_entity(row) for row in session.scalars(stmt)]

    def update_organization(self, organization_id: str, data: dict) -> Optional[OrganizationEntity]:
        with self._sessions() as session:
            organization = session.get(OrganizationModel, organization_id)
            if not organization:
                return None
            for key, value in data.items():
                setattr(organization, key, value)
            session.commit()
            session.refresh(organization)
            return _organization_entity(organization)

    def delete_organization(self, organization_id: str) -> bool:
        with self._sessions() as session:
            organization = session.get(OrganizationModel, organization_id)
            if not organization:
                return False
            session.delete(organization)
            session.commit()
            return True

    def list_members(self, organization_id: str) -> list[MemberEntity]:
        with self._sessions() as session:
            stmt = (
                select(MemberModel)
                .where(MemberModel.organization_id == organization_id)
                .order_by(MemberModel.created_at.asc())
            )
            return [_member_entity(row) for row in session.scalars(stmt)]

    def get_member(self, member_id: str) -> Optional[MemberEntity]:
        with self._sessions() as session:
            member = session.get(MemberModel, member_id)
            return _member_entity(member) if member else None

    def find_member(self, organization_id: str, user_id: str) -> Optional[MemberEntity]:
        with self._sessions() as session:
            member = session.scalar(
                select(MemberModel).where(
                    MemberModel.organization_id == organization_id,
                    MemberModel.user_id == user_id,
                )
            )
            return _member_entity(member) if member else None

    def update_member(self, member_id: str, data: dict) -> Optional[MemberEntity]:
        with self._sessions() as session:
            member = session.get(MemberModel, member_id)
            if not member:
                return None
            for key, value in data.items():
                setattr(member, key, value)
            session.commit()
            session.refresh(member)
            return _member_entity(member)

    def delete_member(self, member_id: str) -> bool:
        with self._sessions() as session:
            member = session.get(MemberModel, member_id)
            if not member:
                return False
            session.delete(member)
            session.commit()
            return True

    def member_user_ids(self, organization_id: str) -> set[str]:
        with self._sessions() as session:
            rows = session.scalars(
                select(MemberModel.user_id).where(MemberModel.organization_id == organization_id)
            )
            return set(rows)

    def organization_ids_for(self, user_id: str) -> list[str]:
        with self._sessions() as session:
            rows = session.scalars(
                select(MemberModel.organization_id).where(MemberModel.user_id == user_id)
            )
            return list(rows)


class InvitationRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sessions = session_factory

    def get_invitation(self, invitation_id: str) -> Optional[InvitationEntity]:
        with self._sessions() as session:
            invitation = session.get(InvitationModel, invitation_id)
            return _invitation_entity(invitation) if invitation else None

    def find_pending(self, organization_id: str, employee_id: str) -> Optional[InvitationEntity]:
        with self._sessions() as session:
            invitation = session.scalar(
                select(InvitationModel).where(
                    InvitationModel.organization_id == organization_id,
                    InvitationModel.employee_id == employee_id,
                    InvitationModel.status == STATUS_PENDING,
                )
            )
            return _invitation_entity(invitation) if invitation else None

    def create_invitation(self, data: dict) -> InvitationEntity:
        with self._sessions() as session:
            invitation = InvitationModel(**data)
            session.add(invitation)
            session.commit()
            session.refresh(invitation)
            return _invitation_entity(invitation)

    def update_invitation(self, invitation_id: str, data: dict) -> Optional[InvitationEntity]:
        with self._sessions() as session:
            invitation = session.get(InvitationModel, invitation_id)
            if not invitation:
                return None
            for key, value in data.items():
                setattr(invitation, key, value)
            session.commit()
            session.refresh(invitation)
            return _invitation_entity(invitation)

    def accept_invitation(
        self, invitation_id: str, accepted_at: datetime, position: str
    ) -> Optional[InvitationEntity]:
        """Accept a pending invitation and add the membership in one transaction."""
        with self._sessions() as session, session.begin():
            invitation = session.get(InvitationModel, invitation_id)
            if not invitation or invitation.status != STATUS_PENDING:
                return None
            invitation.status = InvitationStatus.ACCEPTED.value
            invitation.accepted_at = accepted_at
            already_member = session.scalar(
                select(MemberModel.id).where(
                    MemberModel.organization_id == invitation.organization_id,
                    MemberModel.user_id == invitation.employee_id,
                )
            )
            if not already_member:
                session.add(
                    MemberModel(
                        organization_id=invitation.organization_id,
                        user_id=invitation.employee_id,
                        position=position,
                    )
                )
            session.flush()
            return _invitation_entity(invitation)

    def decline_invitation(self, invitation_id: str, declined_at: datetime) -> Optional[InvitationEntity]:
        """Conditional update; None when the invitation is no longer pending."""
        with self._sessions() as session:
            result = session.execute(
                update(InvitationModel)
                .where(InvitationModel.id == invitation_id, InvitationModel.status == STATUS_PENDING)
                .values(status=InvitationStatus.DECLINED.value, declined_at=declined_at)
            )
            session.commit()
            if result.rowcount != 1:
                return None
            return _invitation_entity(session.get(InvitationModel, invitation_id))

    def list_for_employee(
        self, employee_id: str, status: InvitationStatus | None = None
    ) -> list[InvitationEntity]:
        with self._sessions() as session:
            stmt = select(InvitationModel).where(InvitationModel.employee_id == employee_id)
            if status:
                stmt = stmt.where(InvitationModel.status == InvitationStatus(status).value)
            stmt = stmt.order_by(InvitationModel.created_at.desc())
            return [_invitation_entity(row) for row in session.scalars(stmt)]

    def list_for_organization(self, organization_id: str) -> list[InvitationEntity]:
        with self._sessions() as session:
            stmt = (
                select(InvitationModel)
                .where(InvitationModel.organization_id == organization_id)
                .order_by(InvitationModel.created_at.desc())
            )
            return [_invitation_entity(row) for row in session.scalars(stmt)]
