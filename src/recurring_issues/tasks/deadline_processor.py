# src/recurring_issues/tasks/deadline_processor.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum

from ..core.ports import TrackerClient
from ..schedule.models import TaskSpec
from ..tracker.errors import TrackerError
from ..tracker.models import ItemState
from .state_store import StateStore
from .todo_parser import has_unchecked

logger = logging.getLogger(__name__)

Clock = Callable[[tzinfo], datetime]


class DeadlineStatus(StrEnum):
    """
    Per-category, per-day deadline state.

    PENDING -> DUE is time-driven and recomputed on every call;
    DUE -> PROCESSED is the only transition that is persisted.
    """

    PENDING = "pending"
    DUE = "due"
    PROCESSED = "processed"


class DeadlineProcessingError(RuntimeError):
    def __init__(self, category: str, cause: BaseException) -> None:
        super().__init__(f"Deadline processing failed for category {category!r}: {cause}")
        self.category = category


@dataclass(slots=True, frozen=True)
class DeadlineOutcome:
    category: str
    closed: int
    unresolved: int


def deadline_at(day: date, deadline: time, tz: tzinfo) -> datetime:
    return datetime.combine(day, deadline, tzinfo=tz)


def is_deadline_passed(deadline: time, now: datetime) -> bool:
    """now must be timezone-aware; the deadline is interpreted on now's calendar day."""
    return now >= deadline_at(now.date(), deadline, now.tzinfo)


def next_deadline_after(deadline: time, now: datetime) -> datetime:
    """Next wall-clock instant of `deadline` strictly after `now` (today if still ahead, else tomorrow)."""
    candidate = deadline_at(now.date(), deadline, now.tzinfo)
    if candidate <= now:
        candidate = deadline_at(now.date() + timedelta(days=1), deadline, now.tzinfo)
    return candidate


class DeadlineProcessor:
    def __init__(
            self,
            tracker: TrackerClient,
            state_store: StateStore,
            *,
            tz: tzinfo,
            managed_label: str = "pm-managed",
            unresolved_label: str = "incomplete",
            clock: Clock = datetime.now,
            fail_fast: bool = True,
    ) -> None:
        self._tracker = tracker
        self._state = state_store
        self._tz = tz
        self._managed_label = managed_label
        self._unresolved_label = unresolved_label
        self._clock = clock
        self._fail_fast = fail_fast

    def _now(self) -> datetime:
        return self._clock(self._tz)

    def deadline_status(self, category: str, deadline: time) -> DeadlineStatus:
        now = self._now()
        if not self._state.needs_deadline_processing(category, now.date()):
            return DeadlineStatus.PROCESSED
        if not is_deadline_passed(deadline, now):
            return DeadlineStatus.PENDING
        return DeadlineStatus.DUE

    def process_category(self, category: str, deadline: time) -> DeadlineOutcome | None:
        """
        Close every open managed issue of `category` once today's deadline has passed.

        Issues that still have unchecked todos get the unresolved label, which is what the
        next creation run migrates from. Returns None when there was nothing to do.
        """
        now = self._now()
        today = now.date()

        if not self._state.needs_deadline_processing(category, today):
            logger.debug("Deadline already processed today category=%s", category)
            return None

        if not is_deadline_passed(deadline, now):
            logger.debug("Deadline not yet passed category=%s deadline=%s", category, f"{deadline:%H:%M}")
            return None

        open_items = self._tracker.list_items_by_labels([category, self._managed_label], ItemState.OPEN)

        closed = 0
        unresolved = 0
        for item in open_items:
            self._tracker.close_item(item.number)
            closed += 1

            if has_unchecked(item.body):
                self._tracker.add_labels(item.number, [self._unresolved_label])
                unresolved += 1
                logger.info("Issue closed with unresolved todos category=%s issue=%s", category, item.number)
            else:
                logger.info("Issue closed category=%s issue=%s", category, item.number)

        # Zero open issues is a normal outcome and still counts as processed.
        self._state.mark_deadline_processed(category, today)

        logger.info(
            "Deadline processing complete category=%s closed=%d unresolved=%d",
            category,
            closed,
            unresolved,
        )
        return DeadlineOutcome(category=category, closed=closed, unresolved=unresolved)

    def process_all(self, tasks: Iterable[TaskSpec]) -> list[DeadlineOutcome]:
        tasks = list(tasks)
        logger.info("Processing deadlines for all categories count=%d", len(tasks))

        outcomes: list[DeadlineOutcome] = []
        for task in tasks:
            try:
                outcome = self.process_category(task.category, task.deadline)
            except Exception as e:
                logger.error(
                    "Failed to process deadline category=%s op=process_deadline error=%s",
                    task.category,
                    e,
                    exc_info=True,
                )
                # State write failures abort the batch even when categories are isolated.
                if self._fail_fast or not isinstance(e, TrackerError):
                    raise DeadlineProcessingError(task.category, e) from e
                continue

            if outcome is not None:
                outcomes.append(outcome)

        logger.info("All deadlines processed processed=%d", len(outcomes))
        return outcomes
