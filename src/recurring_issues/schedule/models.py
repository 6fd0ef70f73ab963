# src/recurring_issues/schedule/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time, tzinfo
from zoneinfo import ZoneInfo

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# Both spellings are accepted in schedule files.
EVERY_DAY_ALIASES = frozenset({"daily", "every day", "everyday"})


@dataclass(frozen=True, slots=True)
class Recurrence:
    every_day: bool = False
    days: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def daily(cls) -> Recurrence:
        return cls(every_day=True)

    @classmethod
    def on(cls, *days: str) -> Recurrence:
        return cls(every_day=False, days=frozenset(d.strip().lower() for d in days))


@dataclass(frozen=True, slots=True)
class TaskSpec:
    category: str
    name: str
    description: str
    deadline: time
    recurrence: Recurrence

    @property
    def deadline_str(self) -> str:
        return self.deadline.strftime("%H:%M")


@dataclass(frozen=True, slots=True)
class ScheduleDefinition:
    repo: str
    timezone: str
    tasks: tuple[TaskSpec, ...]

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def categories(self) -> list[str]:
        return [t.category for t in self.tasks]
