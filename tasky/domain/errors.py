from __future__ import annotations


class DomainError(Exception):
    """Base class for failures surfaced to the caller as-is."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    status_code = 404
    kind = "not_found"


class Forbidden(DomainError):
    status_code = 403
    kind = "forbidden"


class Conflict(DomainError):
    status_code = 409
    kind = "conflict"


class ValidationError(DomainError):
    status_code = 400
    kind = "validation"


class Unauthorized(DomainError):
    status_code = 401
    kind = "unauthorized"
