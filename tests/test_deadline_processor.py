# tests/test_deadline_processor.py

from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from recurring_issues.schedule.models import ScheduleDefinition
from recurring_issues.tasks.deadline_processor import (
    DeadlineOutcome,
    DeadlineProcessingError,
    DeadlineProcessor,
    DeadlineStatus,
    is_deadline_passed,
    next_deadline_after,
)
from recurring_issues.tasks.state_store import StateStore
from recurring_issues.tracker.errors import TrackerError
from recurring_issues.tracker.models import ItemState

from .fakes import FakeTracker, FixedClock

TODAY = date(2026, 10, 19)
UTC = timezone.utc


def _at(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def test_is_deadline_passed_boundaries() -> None:
    assert not is_deadline_passed(time(18, 0), _at(17, 59))
    assert is_deadline_passed(time(18, 0), _at(18, 0))
    assert is_deadline_passed(time(18, 0), _at(23, 59))


def test_next_deadline_after_is_strictly_in_the_future() -> None:
    assert next_deadline_after(time(18, 0), _at(9)) == _at(18)
    assert next_deadline_after(time(18, 0), _at(18)) == _at(18, day=date(2026, 10, 20))
    assert next_deadline_after(time(0, 0), _at(0)) == _at(0, day=date(2026, 10, 20))


def test_closes_open_items_and_marks_unresolved(
    processor: DeadlineProcessor, tracker: FakeTracker, state_store: StateStore, clock: FixedClock
) -> None:
    unfinished = tracker.add_item(body="- [x] warm up\n- [ ] read", labels=["study", "pm-managed"])
    finished = tracker.add_item(body="- [x] warm up", labels=["study", "pm-managed"])
    other = tracker.add_item(body="- [ ] lift", labels=["gym", "pm-managed"])
    foreign = tracker.add_item(body="- [ ] not ours", labels=["study"])
    clock.set(_at(18, 5))

    outcome = processor.process_category("study", time(18, 0))

    assert outcome == DeadlineOutcome(category="study", closed=2, unresolved=1)
    assert tracker.items[unfinished.number].state is ItemState.CLOSED
    assert "incomplete" in tracker.items[unfinished.number].labels
    assert tracker.items[finished.number].state is ItemState.CLOSED
    assert "incomplete" not in tracker.items[finished.number].labels
    assert tracker.items[other.number].state is ItemState.OPEN
    assert tracker.items[foreign.number].state is ItemState.OPEN
    assert state_store.get_by_category("study").deadline_processed_date == TODAY


def test_second_call_same_day_does_nothing(
    processor: DeadlineProcessor, tracker: FakeTracker, clock: FixedClock
) -> None:
    tracker.add_item(body="- [ ] read", labels=["study", "pm-managed"])
    clock.set(_at(18, 5))

    assert processor.process_category("study", time(18, 0)) is not None
    tracker.add_item(body="- [ ] late arrival", labels=["study", "pm-managed"])
    assert processor.process_category("study", time(18, 0)) is None

    assert len(tracker.calls_named("close_item")) == 1


def test_before_deadline_nothing_happens(
    processor: DeadlineProcessor, tracker: FakeTracker, state_store: StateStore
) -> None:
    tracker.add_item(body="- [ ] read", labels=["study", "pm-managed"])

    assert processor.deadline_status("study", time(18, 0)) is DeadlineStatus.PENDING
    assert processor.process_category("study", time(18, 0)) is None

    assert tracker.calls == []
    assert state_store.get_by_category("study").deadline_processed_date is None


def test_zero_open_items_still_marks_processed(
    processor: DeadlineProcessor, state_store: StateStore, clock: FixedClock
) -> None:
    clock.set(_at(19))

    outcome = processor.process_category("study", time(18, 0))

    assert outcome == DeadlineOutcome(category="study", closed=0, unresolved=0)
    assert processor.deadline_status("study", time(18, 0)) is DeadlineStatus.PROCESSED
    assert state_store.get_by_category("study").deadline_processed_date == TODAY


def test_status_moves_from_pending_to_due_to_processed(processor: DeadlineProcessor, clock: FixedClock) -> None:
    assert processor.deadline_status("gym", time(7, 30)) is DeadlineStatus.DUE  # 09:00 already past 07:30
    assert processor.deadline_status("study", time(18, 0)) is DeadlineStatus.PENDING

    processor.process_category("gym", time(7, 30))
    assert processor.deadline_status("gym", time(7, 30)) is DeadlineStatus.PROCESSED

    clock.advance(days=1)
    assert processor.deadline_status("gym", time(7, 30)) is DeadlineStatus.DUE


def test_unknown_category_is_never_processed(processor: DeadlineProcessor, tracker: FakeTracker) -> None:
    assert processor.process_category("ghost", time(0, 0)) is None
    assert tracker.calls == []


def test_process_all_fail_fast_stops_at_first_error(
    tracker: FakeTracker, state_store: StateStore, clock: FixedClock, schedule: ScheduleDefinition
) -> None:
    clock.set(_at(20))
    tracker.fail_list_for.add("study")
    processor = DeadlineProcessor(tracker, state_store, tz=UTC, clock=clock, fail_fast=True)

    with pytest.raises(DeadlineProcessingError) as exc_info:
        processor.process_all(schedule.tasks)

    assert exc_info.value.category == "study"
    # gym comes after study in the schedule and is never reached.
    assert state_store.get_by_category("gym").deadline_processed_date is None


def test_process_all_isolated_continues_after_tracker_error(
    tracker: FakeTracker, state_store: StateStore, clock: FixedClock, schedule: ScheduleDefinition
) -> None:
    clock.set(_at(20))
    tracker.fail_list_for.add("study")
    tracker.add_item(body="- [x] lift", labels=["gym", "pm-managed"])
    processor = DeadlineProcessor(tracker, state_store, tz=UTC, clock=clock, fail_fast=False)

    outcomes = processor.process_all(schedule.tasks)

    assert outcomes == [DeadlineOutcome(category="gym", closed=1, unresolved=0)]
    assert state_store.get_by_category("study").deadline_processed_date is None
    assert state_store.get_by_category("gym").deadline_processed_date == TODAY


def test_close_failure_leaves_category_unprocessed(
    processor: DeadlineProcessor, tracker: FakeTracker, state_store: StateStore, clock: FixedClock
) -> None:
    item = tracker.add_item(body="- [ ] read", labels=["study", "pm-managed"])
    tracker.fail_close.add(item.number)
    clock.set(_at(18, 1))

    with pytest.raises(TrackerError):
        processor.process_category("study", time(18, 0))

    assert state_store.get_by_category("study").deadline_processed_date is None
