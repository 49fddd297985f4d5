from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. Services trust it without re-checking credentials."""

    user_id: str
