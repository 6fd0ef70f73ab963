# src/recurring_issues/tasks/recurrence.py

from __future__ import annotations

from datetime import date

from ..schedule.models import WEEKDAYS, Recurrence


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def is_due(recurrence: Recurrence, day: date) -> bool:
    """True if a task with this recurrence gets an item on `day`. An empty day set is never due."""
    if recurrence.every_day:
        return True
    return weekday_name(day) in {d.lower() for d in recurrence.days}
