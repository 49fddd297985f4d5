from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    organization_id: str | None = None
    status: Optional[TaskStatus] = None
    assigned_to: str | None = None
    assigned_by: str | None = None
    visible_to: str | None = None
    ids: tuple[str, ...] = ()
    deadline_from: Optional[datetime] = None
    deadline_to: Optional[datetime] = None
    limit: int = 50
    offset: int = 0
