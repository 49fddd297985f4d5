from __future__ import annotations

from tasky.domain.errors import ValidationError


def require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_attachment(item) -> dict:
    """Attachment metadata; the files themselves live in external storage."""
    if not isinstance(item, dict):
        raise ValidationError("attachments must be objects")
    file_size = item.get("file_size")
    if file_size is not None and (not is_int(file_size) or file_size < 0):
        raise ValidationError("file_size must be a non-negative integer")
    return {
        "file_url": require_text(item.get("file_url"), "file_url"),
        "file_name": require_text(item.get("file_name"), "file_name"),
        "file_type": require_text(item.get("file_type"), "file_type"),
        "file_size": file_size,
    }


def optional_text(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def id_list(value, field: str) -> list[str]:
    """Distinct ids in the order given. ``None`` means none."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
        raise ValidationError(f"{field} must be a list of ids")
    return list(dict.fromkeys(value))
