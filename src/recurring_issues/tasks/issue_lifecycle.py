# src/recurring_issues/tasks/issue_lifecycle.py

from __future__ import annotations

"""
Daily issue creation with carry-forward.

For each task due today that has no issue yet:
- collect unchecked todos from closed issues still marked unresolved,
- create today's issue (description + deadline banner + migrated todos),
- record the creation date,
- drop the unresolved marker from the sources so they are not migrated twice.

Categories are independent: a tracker failure skips that category (it is retried on the
next run because its creation date stays unset) and the loop moves on.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo

from ..core.ports import TrackerClient
from ..schedule.models import ScheduleDefinition, TaskSpec
from ..tracker.errors import TrackerError
from ..tracker.models import ItemState, TrackedItem
from .recurrence import is_due
from .state_store import StateStore
from .todo_parser import extract_unchecked, format_migrated_todos

logger = logging.getLogger(__name__)

Clock = Callable[[tzinfo], datetime]


@dataclass(slots=True)
class CreationResult:
    created: int = 0
    skipped: int = 0
    failed: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CarryForward:
    todos: list[str]
    sources: list[TrackedItem]


def format_deadline(day: date, deadline: time) -> str:
    return f"{day:%a}, {day:%b} {day.day} at {deadline:%H:%M}"


def build_issue_body(description: str, day: date, deadline: time, migrated_todos: list[str]) -> str:
    body = description.rstrip()
    body += f"\n\n---\n**⏰ Deadline:** {format_deadline(day, deadline)}"
    body += format_migrated_todos(migrated_todos)
    return body


class IssueLifecycle:
    def __init__(
            self,
            tracker: TrackerClient,
            state_store: StateStore,
            *,
            managed_label: str = "pm-managed",
            unresolved_label: str = "incomplete",
            clock: Clock = datetime.now,
    ) -> None:
        self._tracker = tracker
        self._state = state_store
        self._managed_label = managed_label
        self._unresolved_label = unresolved_label
        self._clock = clock

    def collect_carry_forward(self, category: str) -> CarryForward:
        sources = self._tracker.list_items_by_labels(
            [category, self._unresolved_label, self._managed_label],
            ItemState.CLOSED,
        )
        todos: list[str] = []
        for item in sources:
            todos.extend(extract_unchecked(item.body))

        logger.info(
            "Extracted unresolved todos category=%s issues=%d todos=%d",
            category,
            len(sources),
            len(todos),
        )
        return CarryForward(todos=todos, sources=sources)

    def clear_unresolved(self, category: str, sources: list[TrackedItem]) -> int:
        """Remove the unresolved marker from migrated issues. Failures are logged, not raised."""
        cleared = 0
        for item in sources:
            try:
                self._tracker.remove_label(item.number, self._unresolved_label)
                cleared += 1
            except TrackerError as e:
                logger.warning(
                    "Failed to remove unresolved label category=%s issue=%s error=%s",
                    category,
                    item.number,
                    e,
                )
        if sources:
            logger.info("Cleaned up unresolved labels category=%s count=%d", category, cleared)
        return cleared

    def create_for_task(self, task: TaskSpec, today: date, assignee: str | None = None) -> int:
        """Create today's issue for one task (no due/idempotency checks). Returns the issue number."""
        carry = self.collect_carry_forward(task.category)
        body = build_issue_body(task.description, today, task.deadline, carry.todos)

        number = self._tracker.create_item(
            title=task.name,
            body=body,
            labels=[task.category, self._managed_label],
            assignees=[assignee] if assignee else [],
        )
        logger.info(
            "Issue created category=%s issue=%s migrated=%d",
            task.category,
            number,
            len(carry.todos),
        )

        # StateWriteError propagates; the issue already exists in the tracker.
        self._state.mark_issue_created(task.category, today)

        if carry.sources:
            self.clear_unresolved(task.category, carry.sources)
        return number

    def run_daily_creation(self, schedule: ScheduleDefinition, assignee: str | None = None) -> CreationResult:
        today = self._clock(schedule.tzinfo).date()
        result = CreationResult()

        logger.info("Starting daily issue creation date=%s tasks=%d", today, len(schedule.tasks))

        for task in schedule.tasks:
            if not is_due(task.recurrence, today):
                logger.debug("Task not scheduled for today category=%s", task.category)
                result.skipped += 1
                continue

            if not self._state.needs_issue_creation(task.category, today):
                logger.debug("Issue already created today category=%s", task.category)
                result.skipped += 1
                continue

            try:
                self.create_for_task(task, today, assignee)
            except TrackerError as e:
                logger.error(
                    "Failed to create issue category=%s op=create_issue error=%s",
                    task.category,
                    e,
                    exc_info=True,
                )
                result.failed.append(task.category)
                continue

            result.created += 1

        logger.info(
            "Daily issue creation complete created=%d skipped=%d failed=%d total=%d",
            result.created,
            result.skipped,
            len(result.failed),
            len(schedule.tasks),
        )
        return result
