"""Deadline urgency classification.

Every screen that colours, filters or counts tasks by how close their deadline
is goes through :func:`classify`.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from .enums import TaskStatus, Urgency, UrgencyRank

CRITICAL_WINDOW = timedelta(hours=24)
URGENT_WINDOW = timedelta(hours=72)

PRESSING = frozenset({Urgency.OVERDUE, Urgency.CRITICAL, Urgency.URGENT})


def classify(deadline: datetime, status: TaskStatus | str, now: datetime) -> Urgency:
    if TaskStatus(status) == TaskStatus.COMPLETED:
        return Urgency.NONE
    if now > deadline:
        return Urgency.OVERDUE
    remaining = deadline - now
    if remaining < CRITICAL_WINDOW:
        return Urgency.CRITICAL
    if remaining < URGENT_WINDOW:
        return Urgency.URGENT
    return Urgency.NORMAL


def rank(urgency: Urgency) -> int:
    return UrgencyRank[urgency.name].value


def most_pressing(urgencies) -> Urgency:
    ordered = sorted(urgencies, key=rank)
    return ordered[0] if ordered else Urgency.NONE
