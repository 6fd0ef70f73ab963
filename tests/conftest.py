# tests/conftest.py

from __future__ import annotations

from datetime import datetime, time, timezone

import pytest

from recurring_issues.schedule.models import Recurrence, ScheduleDefinition, TaskSpec
from recurring_issues.tasks.deadline_processor import DeadlineProcessor
from recurring_issues.tasks.issue_lifecycle import IssueLifecycle
from recurring_issues.tasks.state_store import MemoryStateBackend, StateStore

from .fakes import FakeTracker, FixedClock

# 2026-10-19 is a Monday.
MONDAY_MORNING = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def schedule() -> ScheduleDefinition:
    """
    Two tasks in UTC:
    - study: every day, deadline 18:00
    - gym: mon/wed/fri, deadline 07:30
    """
    return ScheduleDefinition(
        repo="octo/tasks",
        timezone="UTC",
        tasks=(
            TaskSpec(
                category="study",
                name="Daily study",
                description="Study plan\n- [ ] Read one chapter",
                deadline=time(18, 0),
                recurrence=Recurrence.daily(),
            ),
            TaskSpec(
                category="gym",
                name="Gym",
                description="Workout",
                deadline=time(7, 30),
                recurrence=Recurrence.on("monday", "wednesday", "friday"),
            ),
        ),
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(MONDAY_MORNING)


@pytest.fixture()
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture()
def state_store(schedule: ScheduleDefinition) -> StateStore:
    """In-memory store already synced with the schedule (both dates absent)."""
    store = StateStore(MemoryStateBackend())
    store.sync_with_schedule(schedule)
    return store


@pytest.fixture()
def lifecycle(tracker: FakeTracker, state_store: StateStore, clock: FixedClock) -> IssueLifecycle:
    return IssueLifecycle(tracker, state_store, clock=clock)


@pytest.fixture()
def processor(tracker: FakeTracker, state_store: StateStore, clock: FixedClock) -> DeadlineProcessor:
    return DeadlineProcessor(tracker, state_store, tz=timezone.utc, clock=clock)
