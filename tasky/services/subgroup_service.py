"""Named groups of organization members that tasks can be assigned to as a whole."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from tasky.domain.clock import utcnow
from tasky.domain.entities import SubgroupEntity
from tasky.domain.errors import Forbidden, NotFound, ValidationError
from tasky.domain.principal import Principal
from tasky.infra.organizations import OrganizationRepository
from tasky.infra.subgroups import SubgroupRepository

from .validation import id_list, optional_text, require_text

logger = logging.getLogger(__name__)


class SubgroupService:
    def __init__(
        self,
        subgroups: SubgroupRepository,
        organizations: OrganizationRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._subgroups = subgroups
        self._organizations = organizations
        self._clock = clock

    def list_subgroups(self, principal: Principal, organization_id: str | None) -> list[SubgroupEntity]:
        if not organization_id:
            raise ValidationError("organizationId is required")
        self._require_member(organization_id, principal.user_id)
        return self._subgroups.list_for_organization(organization_id)

    def get_subgroup(self, principal: Principal, subgroup_id: str) -> SubgroupEntity:
        subgroup = self._load(subgroup_id)
        self._require_member(subgroup.organization_id, principal.user_id)
        return subgroup

    def create_subgroup(self, principal: Principal, data: dict) -> SubgroupEntity:
        organization_id = data.get("organization_id")
        if not isinstance(organization_id, str) or not organization_id:
            raise ValidationError("organization_id is required")
        self._require_member(organization_id, principal.user_id)
        subgroup = self._subgroups.create_subgroup(
            {
                "organization_id": organization_id,
                "name": require_text(data.get("name"), "name"),
                "description": optional_text(data.get("description"), "description"),
                "created_by": principal.user_id,
                "created_at": self._clock(),
            }
        )
        logger.info("subgroup %s created in %s by %s", subgroup.id, organization_id, principal.user_id)
        return subgroup

    def update_subgroup(self, principal: Principal, subgroup_id: str, data: dict) -> SubgroupEntity:
        self._require_manager(subgroup_id, principal, "Only the creator can update this subgroup")
        changes: dict = {}
        if data.get("name") is not None:
            changes["name"] = require_text(data["name"], "name")
        if "description" in data:
            changes["description"] = optional_text(data["description"], "description")
        updated = self._subgroups.update_subgroup(subgroup_id, changes)
        if not updated:
            raise NotFound("Subgroup not found")
        return updated

    def delete_subgroup(self, principal: Principal, subgroup_id: str) -> None:
        self._require_manager(subgroup_id, principal, "Only the creator can delete this subgroup")
        self._subgroups.delete_subgroup(subgroup_id)
        logger.info("subgroup %s deleted by %s", subgroup_id, principal.user_id)

    def set_members(self, principal: Principal, subgroup_id: str, user_ids) -> SubgroupEntity:
        subgroup = self._require_manager(subgroup_id, principal, "Only the creator can change members")
        wanted = id_list(user_ids, "userIds")
        members = self._organizations.member_user_ids(subgroup.organization_id)
        if any(user_id not in members for user_id in wanted):
            raise ValidationError("Subgroup members must belong to the organization")
        updated = self._subgroups.set_members(subgroup_id, wanted)
        if not updated:
            raise NotFound("Subgroup not found")
        return updated

    def remove_member(self, principal: Principal, subgroup_id: str, user_id: str) -> SubgroupEntity:
        """Managers can remove anyone; members can remove themselves."""
        subgroup = self._load(subgroup_id)
        if user_id != principal.user_id:
            self._require_manager(subgroup_id, principal, "Only the creator can change members")
        else:
            self._require_member(subgroup.organization_id, principal.user_id)
        updated = self._subgroups.remove_member(subgroup_id, user_id)
        if not updated:
            raise NotFound("Subgroup not found")
        return updated

    def _load(self, subgroup_id: str) -> SubgroupEntity:
        subgroup = self._subgroups.get_subgroup(subgroup_id)
        if not subgroup:
            raise NotFound("Subgroup not found")
        return subgroup

    def _require_member(self, organization_id: str, user_id: str) -> None:
        if not self._organizations.get_organization(organization_id):
            raise NotFound("Organization not found")
        if not self._organizations.find_member(organization_id, user_id):
            raise Forbidden("Not a member of this organization")

    def _require_manager(self, subgroup_id: str, principal: Principal, message: str) -> SubgroupEntity:
        """The subgroup's creator, or the creator of its organization."""
        subgroup = self._load(subgroup_id)
        if subgroup.created_by == principal.user_id:
            return subgroup
        organization = self._organizations.get_organization(subgroup.organization_id)
        if organization and organization.created_by == principal.user_id:
            return subgroup
        raise Forbidden(message)
