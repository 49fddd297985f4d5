from __future__ import annotations

from flask import request

from tasky.domain.errors import ValidationError


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def remap(body: dict, fields: dict[str, str]) -> dict:
    """Translate camelCase request keys into the service's field names."""
    return {field: body[key] for key, field in fields.items() if key in body}


def query_int(name: str, default: int | None = None, required: bool = False) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required")
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc
