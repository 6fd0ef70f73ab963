# src/recurring_issues/schedule/loader.py

"""
schedule.yaml loader.

Expected shape:

    repo: owner/name
    timezone: Europe/Berlin
    tasks:
      - name: Daily study
        category: study
        deadline: "18:00"
        recurrence:
          days: daily            # or: [monday, wednesday]
        description: |
          - [ ] Read one chapter

Validation collects every problem before failing, so a broken file is fixed in one pass.
"""

from __future__ import annotations

import logging
import re
from datetime import time
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .models import EVERY_DAY_ALIASES, WEEKDAYS, Recurrence, ScheduleDefinition, TaskSpec

logger = logging.getLogger(__name__)

_DEADLINE_RE = re.compile(r"^(\d{2}):(\d{2})$")


class ScheduleError(ValueError):
    def __init__(self, problems: list[str], *, source: str | None = None) -> None:
        self.problems = list(problems)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Invalid schedule{where}: " + "; ".join(self.problems))


def parse_deadline(raw: Any) -> time:
    """
    Parse a strict HH:MM string (00:00..23:59).

    PyYAML (YAML 1.1) reads an unquoted `18:00` as the base-60 integer 1080,
    so integers in 0..1439 are accepted as minutes since midnight.
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        if not 0 <= raw < 24 * 60:
            raise ValueError(f"time out of range: {raw!r}")
        hour, minute = divmod(raw, 60)
        return time(hour=hour, minute=minute)

    m = _DEADLINE_RE.match(str(raw).strip()) if isinstance(raw, str) else None
    if not m:
        raise ValueError(f"expected HH:MM format, got {raw!r}")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"time out of range: {raw!r}")
    return time(hour=hour, minute=minute)


def _parse_recurrence(raw: Any, where: str, problems: list[str]) -> Recurrence | None:
    if not isinstance(raw, dict) or "days" not in raw:
        problems.append(f"{where}.recurrence: expected a mapping with 'days'")
        return None

    days = raw["days"]
    if isinstance(days, str):
        if days.strip().lower() in EVERY_DAY_ALIASES:
            return Recurrence.daily()
        days = [days]

    if not isinstance(days, list) or not days:
        problems.append(f"{where}.recurrence.days: expected 'daily' or a non-empty list of weekdays")
        return None

    names: list[str] = []
    for d in days:
        name = str(d).strip().lower()
        if name in EVERY_DAY_ALIASES:
            return Recurrence.daily()
        if name not in WEEKDAYS:
            problems.append(f"{where}.recurrence.days: unknown weekday {d!r}")
            continue
        names.append(name)

    if not names:
        return None
    return Recurrence.on(*names)


def _require_str(task: dict[str, Any], key: str, where: str, problems: list[str], *, allow_empty: bool = False) -> str:
    value = task.get(key)
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        problems.append(f"{where}.{key}: required string")
        return ""
    return value if allow_empty else value.strip()


def parse_schedule(data: Any, *, source: str | None = None) -> ScheduleDefinition:
    """Validate an already-parsed YAML document into a ScheduleDefinition."""
    problems: list[str] = []

    if not isinstance(data, dict):
        raise ScheduleError(["top level: expected a mapping"], source=source)

    repo = data.get("repo")
    if not isinstance(repo, str) or repo.count("/") != 1 or not all(repo.split("/")):
        problems.append(f"repo: expected 'owner/name', got {repo!r}")
        repo = ""

    tz_name = data.get("timezone")
    if not isinstance(tz_name, str) or not tz_name.strip():
        problems.append("timezone: required string")
        tz_name = ""
    else:
        tz_name = tz_name.strip()
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            problems.append(f"timezone: unknown timezone {tz_name!r}")

    raw_tasks = data.get("tasks")
    if not isinstance(raw_tasks, list):
        problems.append("tasks: expected a list")
        raw_tasks = []

    tasks: list[TaskSpec] = []
    seen: set[str] = set()

    for i, raw in enumerate(raw_tasks):
        where = f"tasks[{i}]"
        if not isinstance(raw, dict):
            problems.append(f"{where}: expected a mapping")
            continue

        n_before = len(problems)
        name = _require_str(raw, "name", where, problems)
        category = _require_str(raw, "category", where, problems)
        description = _require_str(raw, "description", where, problems, allow_empty=True)

        deadline: time | None = None
        try:
            deadline = parse_deadline(raw.get("deadline"))
        except ValueError as e:
            problems.append(f"{where}.deadline: {e}")

        recurrence = _parse_recurrence(raw.get("recurrence"), where, problems)

        if category:
            if category in seen:
                problems.append(f"{where}.category: duplicate category {category!r}")
            seen.add(category)

        if len(problems) == n_before and deadline is not None and recurrence is not None:
            tasks.append(
                TaskSpec(
                    category=category,
                    name=name,
                    description=description,
                    deadline=deadline,
                    recurrence=recurrence,
                )
            )

    if problems:
        raise ScheduleError(problems, source=source)

    return ScheduleDefinition(repo=repo, timezone=tz_name, tasks=tuple(tasks))


def load_schedule(path: str | Path = "schedule.yaml") -> ScheduleDefinition:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ScheduleError([f"cannot read file: {e}"], source=str(path)) from e
    except yaml.YAMLError as e:
        raise ScheduleError([f"invalid YAML: {e}"], source=str(path)) from e

    schedule = parse_schedule(data, source=str(path))
    logger.info(
        "Schedule loaded path=%s repo=%s timezone=%s tasks=%d",
        path,
        schedule.repo,
        schedule.timezone,
        len(schedule.tasks),
    )
    return schedule
