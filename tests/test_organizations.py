from __future__ import annotations

import pytest

from tasky.domain.enums import InvitationStatus
from tasky.domain.errors import Conflict, Forbidden, NotFound, ValidationError
from tasky.domain.principal import Principal
from tasky.infra.organizations import InvitationRepository
from tasky.services.organization_service import OrganizationService


@pytest.fixture
def service(organizations, invitations, profiles, broadcaster, clock) -> OrganizationService:
    return OrganizationService(organizations, invitations, profiles, broadcaster=broadcaster, clock=clock)


@pytest.fixture
def carol(profiles) -> Principal:
    return Principal(profiles.create_profile({"full_name": "Carol", "email": "carol@example.com"}).id)


def test_creator_becomes_ceo_member(service, organizations, people) -> None:
    organization = service.create_organization(people["boss"], {"name": "  Initech  "})

    members = service.list_members(people["boss"], organization.id)

    assert organization.name == "Initech"
    assert [(m.user_id, m.position) for m in members] == [(people["boss"].user_id, "CEO")]


def test_create_requires_name(service, people) -> None:
    with pytest.raises(ValidationError):
        service.create_organization(people["boss"], {"name": " "})


def test_invite_accept_adds_membership(service, broadcaster, org, people, carol) -> None:
    invitation = service.invite(people["boss"], org.id, {"employee_id": carol.user_id, "message": "Join us"})

    assert invitation.status == InvitationStatus.PENDING
    assert broadcaster.named("invitation_received")[0][2] == f"user:{carol.user_id}"
    assert broadcaster.named("notification")[0][1]["type"] == "invitation"

    accepted = service.accept_invitation(carol, invitation.id)

    assert accepted.status == InvitationStatus.ACCEPTED
    assert accepted.accepted_at is not None
    assert carol.user_id in {m.user_id for m in service.list_members(people["boss"], org.id)}
    assert broadcaster.named("member_joined")[0][2] == f"org:{org.id}"


def test_reinvite_refreshes_pending_invitation(service, org, people, carol) -> None:
    first = service.invite(people["boss"], org.id, {"employee_id": carol.user_id, "message": "v1"})
    second = service.invite(people["boss"], org.id, {"employee_id": carol.user_id, "message": "v2"})

    assert second.id == first.id
    assert second.message == "v2"
    assert len(service.list_organization_invitations(people["boss"], org.id)) == 1


def test_reinvite_after_decline_creates_new_row(service, org, people, carol) -> None:
    first = service.invite(people["boss"], org.id, {"employee_id": carol.user_id})
    service.decline_invitation(carol, first.id)

    second = service.invite(people["boss"], org.id, {"employee_id": carol.user_id})

    assert second.id != first.id
    statuses = sorted(i.status.value for i in service.list_my_invitations(carol))
    assert statuses == ["declined", "pending"]


def test_decided_invitations_are_terminal(service, org, people, carol) -> None:
    invitation = service.invite(people["boss"], org.id, {"employee_id": carol.user_id})
    service.decline_invitation(carol, invitation.id)

    with pytest.raises(Conflict):
        service.accept_invitation(carol, invitation.id)
    with pytest.raises(Conflict):
        service.decline_invitation(carol, invitation.id)


def test_invitation_belongs_to_its_employee(service, org, people, carol) -> None:
    invitation = service.invite(people["boss"], org.id, {"employee_id": carol.user_id})

    with pytest.raises(NotFound):
        service.accept_invitation(people["alice"], invitation.id)


def test_invite_rules(service, org, people, carol) -> None:
    with pytest.raises(Forbidden):
        service.invite(people["alice"], org.id, {"employee_id": carol.user_id})
    with pytest.raises(Conflict):
        service.invite(people["boss"], org.id, {"employee_id": people["bob"].user_id})
    with pytest.raises(NotFound):
        service.invite(people["boss"], org.id, {"employee_id": "nobody"})
    with pytest.raises(ValidationError):
        service.invite(people["boss"], org.id, {})


def test_only_creator_manages_organization(service, organizations, org, people) -> None:
    with pytest.raises(Forbidden):
        service.update_organization(people["alice"], org.id, {"name": "Mine"})
    with pytest.raises(Forbidden):
        service.delete_organization(people["alice"], org.id)

    renamed = service.update_organization(people["boss"], org.id, {"name": "Acme Corp"})
    assert renamed.name == "Acme Corp"


def test_remove_member_never_removes_creator(service, organizations, org, people) -> None:
    members = {m.user_id: m for m in service.list_members(people["boss"], org.id)}

    with pytest.raises(Forbidden):
        service.remove_member(people["boss"], members[people["boss"].user_id].id)

    service.remove_member(people["boss"], members[people["bob"].user_id].id)
    assert organizations.find_member(org.id, people["bob"].user_id) is None


def test_outsiders_cannot_see_organization(service, org, carol) -> None:
    with pytest.raises(Forbidden):
        service.get_organization(carol, org.id)
    with pytest.raises(NotFound):
        service.get_organization(carol, "missing")


class AcceptBeforeDecline(InvitationRepository):
    """Lets an accept commit between the pending check and the decline write."""

    def decline_invitation(self, invitation_id, declined_at):
        self.accept_invitation(invitation_id, declined_at, "Member")
        return super().decline_invitation(invitation_id, declined_at)


def test_decline_loses_to_a_concurrent_accept(session_factory, organizations, profiles, clock, org, people, carol) -> None:
    invitations = AcceptBeforeDecline(session_factory)
    service = OrganizationService(organizations, invitations, profiles, clock=clock)
    invitation = service.invite(people["boss"], org.id, {"employee_id": carol.user_id})

    with pytest.raises(Conflict):
        service.decline_invitation(carol, invitation.id)

    assert invitations.get_invitation(invitation.id).status == InvitationStatus.ACCEPTED
    assert organizations.find_member(org.id, carol.user_id) is not None


def test_organization_names_must_be_text(service, org, people) -> None:
    with pytest.raises(ValidationError):
        service.update_organization(people["boss"], org.id, {"name": 5})
    with pytest.raises(ValidationError):
        service.update_organization(people["boss"], org.id, {"name": "   "})
    with pytest.raises(ValidationError):
        service.create_organization(people["boss"], {"name": ["Acme"]})
    with pytest.raises(ValidationError):
        service.update_organization(people["boss"], org.id, {"description": {"text": "x"}})


def test_creator_sets_member_position(service, org, people) -> None:
    members = {m.user_id: m for m in service.list_members(people["boss"], org.id)}
    alice_member = members[people["alice"].user_id]

    updated = service.update_member_position(people["boss"], alice_member.id, "  Designer ")

    assert updated.position == "Designer"
    with pytest.raises(Forbidden):
        service.update_member_position(people["alice"], alice_member.id, "CEO")
    with pytest.raises(ValidationError):
        service.update_member_position(people["boss"], alice_member.id, "")
    with pytest.raises(NotFound):
        service.update_member_position(people["boss"], "missing", "Designer")


def test_search_matches_name_or_description(service, people) -> None:
    service.create_organization(people["boss"], {"name": "Blue Rocket Labs"})
    service.create_organization(people["alice"], {"name": "Harbor", "description": "Rocket parts supplier"})
    service.create_organization(people["bob"], {"name": "Quiet Garden"})

    found = service.search("rocket")

    assert sorted(o.name for o in found) == ["Blue Rocket Labs", "Harbor"]
    assert service.search("   ") == []
    assert service.search(None) == []
