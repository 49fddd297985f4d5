from __future__ import annotations

from typing import Iterable

from .entities import StageEntity
from .enums import StageStatus


def completion_percentage(stages: Iterable[StageEntity]) -> int:
    """Share of completed stages, 0-100, rounded half up. No stages means 0."""
    stages = list(stages)
    total = len(stages)
    if total == 0:
        return 0
    completed = sum(1 for stage in stages if stage.status == StageStatus.COMPLETED)
    return (200 * completed + total) // (2 * total)


def ordered(stages: Iterable[StageEntity]) -> list[StageEntity]:
    return sorted(stages, key=lambda stage: (stage.order_index, stage.id))
