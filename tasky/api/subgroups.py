from __future__ import annotations

from flask import Blueprint, jsonify, request

from .auth import current_principal, require_principal
from .container import get_services
from .requests import json_body, remap
from .serializers import serialize_subgroup

subgroups_bp = Blueprint("subgroups", __name__, url_prefix="/subgroups")

SUBGROUP_FIELDS = {"organizationId": "organization_id", "name": "name", "description": "description"}


def _subgroup_response(subgroup, status: int = 200):
    return jsonify({"success": True, "subgroup": serialize_subgroup(subgroup)}), status


@subgroups_bp.get("")
@require_principal
def list_subgroups():
    subgroups = get_services().subgroups.list_subgroups(
        current_principal(), request.args.get("organizationId") or None
    )
    return jsonify({"success": True, "subgroups": [serialize_subgroup(s) for s in subgroups]})


@subgroups_bp.post("")
@require_principal
def create_subgroup():
    subgroup = get_services().subgroups.create_subgroup(
        current_principal(), remap(json_body(), SUBGROUP_FIELDS)
    )
    return _subgroup_response(subgroup, 201)


@subgroups_bp.get("/<subgroup_id>")
@require_principal
def get_subgroup(subgroup_id: str):
    return _subgroup_response(get_services().subgroups.get_subgroup(current_principal(), subgroup_id))


@subgroups_bp.patch("/<subgroup_id>")
@require_principal
def update_subgroup(subgroup_id: str):
    subgroup = get_services().subgroups.update_subgroup(
        current_principal(), subgroup_id, remap(json_body(), SUBGROUP_FIELDS)
    )
    return _subgroup_response(subgroup)


@subgroups_bp.delete("/<subgroup_id>")
@require_principal
def delete_subgroup(subgroup_id: str):
    get_services().subgroups.delete_subgroup(current_principal(), subgroup_id)
    return jsonify({"success": True})


@subgroups_bp.post("/<subgroup_id>/members")
@require_principal
def set_members(subgroup_id: str):
    subgroup = get_services().subgroups.set_members(
        current_principal(), subgroup_id, json_body().get("userIds")
    )
    return _subgroup_response(subgroup)


@subgroups_bp.delete("/<subgroup_id>/members/<user_id>")
@require_principal
def remove_member(subgroup_id: str, user_id: str):
    subgroup = get_services().subgroups.remove_member(current_principal(), subgroup_id, user_id)
    return _subgroup_response(subgroup)
