from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from tasky.domain.clock import utcnow
from tasky.domain.entities import (
    InvitationEntity,
    MemberEntity,
    OrganizationEntity,
)
from tasky.domain.enums import InvitationStatus, NotificationType
from tasky.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from tasky.domain.principal import Principal
from tasky.infra.organizations import (
    InvitationRepository,
    OrganizationRepository,
    ProfileRepository,
)
from tasky.realtime.broadcaster import (
    Broadcaster,
    NullBroadcaster,
    notify_users,
    org_room,
    user_room,
)

from .validation import optional_text, require_text

logger = logging.getLogger(__name__)

CREATOR_POSITION = "CEO"
MEMBER_POSITION = "Member"
SEARCH_LIMIT = 20


class OrganizationService:
    def __init__(
        self,
        organizations: OrganizationRepository,
        invitations: InvitationRepository,
        profiles: ProfileRepository,
        broadcaster: Broadcaster | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._organizations = organizations
        self._invitations = invitations
        self._profiles = profiles
        self._broadcaster = broadcaster or NullBroadcaster()
        self._clock = clock

    def create_organization(self, principal: Principal, data: dict) -> OrganizationEntity:
        name = require_text(data.get("name"), "name")
        organization = self._organizations.create_organization(
            {
                "name": name,
                "description": optional_text(data.get("description"), "description"),
                "created_by": principal.user_id,
                "created_at": self._clock(),
            },
            position=CREATOR_POSITION,
        )
        logger.info("organization %s created by %s", organization.id, principal.user_id)
        return organization

    def get_organization(self, principal: Principal, organization_id: str) -> OrganizationEntity:
        organization = self._load(organization_id)
        self.require_member(organization_id, principal.user_id)
        return organization

    def list_for_user(self, principal: Principal) -> list[OrganizationEntity]:
        return self._organizations.list_for_user(principal.user_id)

    def search(self, query: str | None) -> list[OrganizationEntity]:
        """Organizations whose name or description contains ``query``, newest first."""
        text = optional_text(query, "q")
        if not text:
            return []
        return self._organizations.search(text, SEARCH_LIMIT)

    def update_organization(self, principal: Principal, organization_id: str, data: dict) -> OrganizationEntity:
        self._require_creator(organization_id, principal, "Only the creator can update the organization")
        changes: dict = {}
        if data.get("name") is not None:
            changes["name"] = require_text(data["name"], "name")
        if "description" in data:
            changes["description"] = optional_text(data["description"], "description")
        updated = self._organizations.update_organization(organization_id, changes)
        if not updated:
            raise NotFound("Organization not found")
        return updated

    def delete_organization(self, principal: Principal, organization_id: str) -> None:
        self._require_creator(organization_id, principal, "Only the creator can delete the organization")
        self._organizations.delete_organization(organization_id)
        logger.info("organization %s deleted by %s", organization_id, principal.user_id)

    def list_members(self, principal: Principal, organization_id: str) -> list[MemberEntity]:
        self._load(organization_id)
        self.require_member(organization_id, principal.user_id)
        return self._organizations.list_members(organization_id)

    def remove_member(self, principal: Principal, member_id: str) -> None:
        member = self._organizations.get_member(member_id)
        if not member:
            raise NotFound("Member not found")
        organization = self._require_creator(
            member.organization_id, principal, "Only the creator can remove members"
        )
        if member.user_id == organization.created_by:
            raise Forbidden("Cannot remove the organization creator")
        self._organizations.delete_member(member_id)
        logger.info("member %s removed from %s", member.user_id, organization.id)

    def update_member_position(self, principal: Principal, member_id: str, position) -> MemberEntity:
        member = self._organizations.get_member(member_id)
        if not member:
            raise NotFound("Member not found")
        self._require_creator(member.organization_id, principal, "Only the creator can update members")
        updated = self._organizations.update_member(member_id, {"position": require_text(position, "position")})
        if not updated:
            raise NotFound("Member not found")
        logger.info("member %s of %s is now %s", updated.user_id, updated.organization_id, updated.position)
        return updated

    def require_member(self, organization_id: str, user_id: str) -> None:
        if not self._organizations.find_member(organization_id, user_id):
            raise Forbidden("Not a member of this organization")

    # invitations

    def invite(self, principal: Principal, organization_id: str, data: dict) -> InvitationEntity:
        organization = self._require_creator(organization_id, principal, "Only the creator can invite")
        employee_id = data.get("employee_id")
        if not employee_id:
            raise ValidationError("employee_id is required")
        if not self._profiles.get_profile(employee_id):
            raise NotFound("User not found")
        if self._organizations.find_member(organization_id, employee_id):
            raise Conflict("User is already a member of this organization")

        message = data.get("message")
        pending = self._invitations.find_pending(organization_id, employee_id)
        if pending:
            invitation = self._invitations.update_invitation(pending.id, {"message": message})
        else:
            invitation = self._invitations.create_invitation(
                {
                    "organization_id": organization_id,
                    "employee_id": employee_id,
                    "message": message,
                    "status": InvitationStatus.PENDING.value,
                    "created_at": self._clock(),
                }
            )
        logger.info("invitation %s to %s for %s", invitation.id, employee_id, organization_id)
        payload = {
            "invitationId": invitation.id,
            "organizationId": organization_id,
            "organizationName": organization.name,
        }
        self._broadcaster.emit("invitation_received", payload, user_room(employee_id))
        notify_users(self._broadcaster, [employee_id], NotificationType.INVITATION.value, payload)
        return invitation

    def accept_invitation(self, principal: Principal, invitation_id: str) -> InvitationEntity:
        invitation = self._own_invitation(principal, invitation_id)
        accepted = self._invitations.accept_invitation(invitation.id, self._clock(), MEMBER_POSITION)
        if not accepted:
            raise Conflict(f"Invitation is already {self._current_status(invitation_id)}")
        logger.info("invitation %s accepted by %s", invitation_id, principal.user_id)
        self._broadcaster.emit(
            "member_joined",
            {"organizationId": invitation.organization_id, "userId": principal.user_id},
            org_room(invitation.organization_id),
        )
        return accepted

    def decline_invitation(self, principal: Principal, invitation_id: str) -> InvitationEntity:
        invitation = self._own_invitation(principal, invitation_id)
        declined = self._invitations.decline_invitation(invitation.id, self._clock())
        if not declined:
            raise Conflict(f"Invitation is already {self._current_status(invitation_id)}")
        logger.info("invitation %s declined by %s", invitation_id, principal.user_id)
        return declined

    def list_my_invitations(self, principal: Principal, status: str | None = None) -> list[InvitationEntity]:
        if status:
            try:
                status = InvitationStatus(status)
            except ValueError as exc:
                raise ValidationError("status must be pending, accepted or declined") from exc
        return self._invitations.list_for_employee(principal.user_id, status)

    def list_organization_invitations(self, principal: Principal, organization_id: str) -> list[InvitationEntity]:
        self._require_creator(organization_id, principal, "Only the creator can view invitations")
        return self._invitations.list_for_organization(organization_id)

    # helpers

    def _load(self, organization_id: str) -> OrganizationEntity:
        organization = self._organizations.get_organization(organization_id)
        if not organization:
            raise NotFound("Organization not found")
        return organization

    def _require_creator(self, organization_id: str, principal: Principal, message: str) -> OrganizationEntity:
        organization = self._load(organization_id)
        if organization.created_by != principal.user_id:
            raise Forbidden(message)
        return organization

    def _own_invitation(self, principal: Principal, invitation_id: str) -> InvitationEntity:
        invitation = self._invitations.get_invitation(invitation_id)
        if not invitation or invitation.employee_id != principal.user_id:
            raise NotFound("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise Conflict(f"Invitation is already {invitation.status.value}")
        return invitation

    def _current_status(self, invitation_id: str) -> str:
        invitation = self._invitations.get_invitation(invitation_id)
        return invitation.status.value if invitation else "gone"
