from __future__ import annotations

from flask import Blueprint, jsonify, request

from .auth import current_principal, require_principal
from .container import get_services
from .requests import json_body, remap
from .serializers import (
    serialize_invitation,
    serialize_member,
    serialize_organization,
    serialize_stats,
)

organizations_bp = Blueprint("organizations", __name__, url_prefix="/organizations")
invitations_bp = Blueprint("invitations", __name__, url_prefix="/invitations")

ORGANIZATION_FIELDS = {"name": "name", "description": "description"}
INVITATION_FIELDS = {"employeeId": "employee_id", "message": "message"}


@organizations_bp.post("")
@require_principal
def create_organization():
    organization = get_services().organizations.create_organization(
        current_principal(), remap(json_body(), ORGANIZATION_FIELDS)
    )
    return jsonify({"success": True, "organization": serialize_organization(organization)}), 201


@organizations_bp.get("")
@require_principal
def list_organizations():
    organizations = get_services().organizations.list_for_user(current_principal())
    return jsonify({"success": True, "organizations": [serialize_organization(o) for o in organizations]})


@organizations_bp.get("/search")
@require_principal
def search_organizations():
    organizations = get_services().organizations.search(request.args.get("q"))
    return jsonify({"success": True, "organizations": [serialize_organization(o) for o in organizations]})


@organizations_bp.get("/<organization_id>")
@require_principal
def get_organization(organization_id: str):
    organization = get_services().organizations.get_organization(current_principal(), organization_id)
    return jsonify({"success": True, "organization": serialize_organization(organization)})


@organizations_bp.patch("/<organization_id>")
@require_principal
def update_organization(organization_id: str):
    organization = get_services().organizations.update_organization(
        current_principal(), organization_id, remap(json_body(), ORGANIZATION_FIELDS)
    )
    return jsonify({"success": True, "organization": serialize_organization(organization)})


@organizations_bp.delete("/<organization_id>")
@require_principal
def delete_organization(organization_id: str):
    get_services().organizations.delete_organization(current_principal(), organization_id)
    return jsonify({"success": True})


@organizations_bp.get("/<organization_id>/members")
@require_principal
def list_members(organization_id: str):
    members = get_services().organizations.list_members(current_principal(), organization_id)
    return jsonify({"success": True, "members": [serialize_member(m) for m in members]})


@organizations_bp.patch("/members/<member_id>")
@require_principal
def update_member_position(member_id: str):
    member = get_services().organizations.update_member_position(
        current_principal(), member_id, json_body().get("position")
    )
    return jsonify({"success": True, "member": serialize_member(member)})


@organizations_bp.delete("/members/<member_id>")
@require_principal
def remove_member(member_id: str):
    get_services().organizations.remove_member(current_principal(), member_id)
    return jsonify({"success": True})


@organizations_bp.post("/<organization_id>/invitations")
@require_principal
def invite(organization_id: str):
    invitation = get_services().organizations.invite(
        current_principal(), organization_id, remap(json_body(), INVITATION_FIELDS)
    )
    return jsonify({"success": True, "invitation": serialize_invitation(invitation)}), 201


@organizations_bp.get("/<organization_id>/invitations")
@require_principal
def list_organization_invitations(organization_id: str):
    invitations = get_services().organizations.list_organization_invitations(
        current_principal(), organization_id
    )
    return jsonify({"success": True, "invitations": [serialize_invitation(i) for i in invitations]})


@organizations_bp.get("/<organization_id>/stats")
@require_principal
def organization_stats(organization_id: str):
    stats = get_services().stats.organization_stats(current_principal(), organization_id)
    return jsonify({"success": True, "stats": serialize_stats(stats)})


@invitations_bp.get("")
@require_principal
def list_my_invitations():
    invitations = get_services().organizations.list_my_invitations(
        current_principal(), request.args.get("status") or None
    )
    return jsonify({"success": True, "invitations": [serialize_invitation(i) for i in invitations]})


@invitations_bp.post("/<invitation_id>/accept")
@require_principal
def accept_invitation(invitation_id: str):
    invitation = get_services().organizations.accept_invitation(current_principal(), invitation_id)
    return jsonify({"success": True, "invitation": serialize_invitation(invitation)})


@invitations_bp.post("/<invitation_id>/decline")
@require_principal
def decline_invitation(invitation_id: str):
    invitation = get_services().organizations.decline_invitation(current_principal(), invitation_id)
    return jsonify({"success": True, "invitation": serialize_invitation(invitation)})
