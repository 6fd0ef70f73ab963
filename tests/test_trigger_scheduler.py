# tests/test_trigger_scheduler.py

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, time, timezone

import pytest

from recurring_issues.schedule.models import Recurrence, ScheduleDefinition, TaskSpec
from recurring_issues.tasks.trigger_scheduler import MAX_SLEEP_SECONDS, SchedulerState, TriggerScheduler

from .fakes import FixedClock

UTC = timezone.utc


class RecordingProcessor:
    """DeadlineProcessor stand-in: records calls, optionally fails for some categories."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.calls: list[tuple[str, time]] = []
        self.fail_for = fail_for or set()
        self._lock = threading.Lock()

    def process_category(self, category: str, deadline: time) -> None:
        with self._lock:
            self.calls.append((category, deadline))
        if category in self.fail_for:
            raise RuntimeError(f"boom {category}")


class RecordingLifecycle:
    def __init__(self) -> None:
        self.calls: list[str | None] = []

    def run_daily_creation(self, schedule: ScheduleDefinition, assignee: str | None = None) -> None:
        self.calls.append(assignee)


class ParkingSleep:
    """
    Fake sleeper driving a FixedClock forward.

    Once the clock reaches `park_at`, every further sleep blocks until cancelled,
    so trigger loops come to rest instead of spinning through future days.
    """

    def __init__(self, clock: FixedClock, park_at: datetime) -> None:
        self.clock = clock
        self.park_at = park_at
        self.requested: list[float] = []

    async def __call__(self, seconds: float) -> None:
        if self.clock.now >= self.park_at:
            await asyncio.Event().wait()
        self.requested.append(seconds)
        self.clock.advance(seconds=seconds)
        await asyncio.sleep(0)


def _task(category: str, hh: int, mm: int) -> TaskSpec:
    return TaskSpec(
        category=category,
        name=category.title(),
        description="",
        deadline=time(hh, mm),
        recurrence=Recurrence.daily(),
    )


def _schedule(*tasks: TaskSpec) -> ScheduleDefinition:
    return ScheduleDefinition(repo="octo/tasks", timezone="UTC", tasks=tasks)


def test_build_triggers_groups_by_deadline_time() -> None:
    scheduler = TriggerScheduler(RecordingProcessor(), RecordingLifecycle())
    schedule = _schedule(_task("study", 18, 0), _task("gym", 7, 30), _task("reading", 18, 0))

    triggers = scheduler.build_triggers(schedule, "octocat")

    assert [t.name for t in triggers] == ["deadline@07:30", "deadline@18:00", "daily-creation@00:00"]
    assert [t.at for t in triggers] == [time(7, 30), time(18, 0), time(0, 0)]


def test_deadline_callback_isolates_categories_sharing_a_time() -> None:
    processor = RecordingProcessor(fail_for={"study"})
    scheduler = TriggerScheduler(processor, RecordingLifecycle())
    schedule = _schedule(_task("study", 18, 0), _task("reading", 18, 0))

    deadline_trigger = scheduler.build_triggers(schedule, None)[0]
    deadline_trigger.callback()

    assert processor.calls == [("study", time(18, 0)), ("reading", time(18, 0))]


def test_midnight_callback_runs_daily_creation_with_assignee() -> None:
    lifecycle = RecordingLifecycle()
    scheduler = TriggerScheduler(RecordingProcessor(), lifecycle)

    scheduler.build_triggers(_schedule(_task("study", 18, 0)), "octocat")[-1].callback()

    assert lifecycle.calls == ["octocat"]


def test_next_fire_today_or_tomorrow() -> None:
    scheduler = TriggerScheduler(RecordingProcessor(), RecordingLifecycle())
    trig = scheduler.build_triggers(_schedule(_task("study", 18, 0)), None)[0]

    assert trig.next_fire(datetime(2026, 10, 19, 9, 0, tzinfo=UTC)) == datetime(2026, 10, 19, 18, 0, tzinfo=UTC)
    assert trig.next_fire(datetime(2026, 10, 19, 18, 0, tzinfo=UTC)) == datetime(2026, 10, 20, 18, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_deadline_trigger_fires_once_at_its_time() -> None:
    clock = FixedClock(datetime(2026, 10, 19, 9, 0, tzinfo=UTC))
    sleeper = ParkingSleep(clock, park_at=datetime(2026, 10, 19, 22, 0, tzinfo=UTC))
    processor = RecordingProcessor()
    lifecycle = RecordingLifecycle()
    scheduler = TriggerScheduler(processor, lifecycle, clock=clock, sleep=sleeper)

    scheduler.start(_schedule(_task("study", 18, 0)), "octocat")
    assert scheduler.state is SchedulerState.RUNNING

    for _ in range(200):
        if processor.calls:
            break
        await asyncio.sleep(0.01)

    scheduler.stop()
    await scheduler.wait()

    assert processor.calls == [("study", time(18, 0))]
    assert lifecycle.calls == []
    assert max(sleeper.requested) <= MAX_SLEEP_SECONDS


@pytest.mark.asyncio
async def test_start_twice_and_stop_twice() -> None:
    clock = FixedClock(datetime(2026, 10, 19, 9, 0, tzinfo=UTC))
    sleeper = ParkingSleep(clock, park_at=clock.now)
    scheduler = TriggerScheduler(RecordingProcessor(), RecordingLifecycle(), clock=clock, sleep=sleeper)
    schedule = _schedule(_task("study", 18, 0), _task("gym", 7, 30))

    scheduler.start(schedule)
    scheduler.start(schedule)
    assert len(scheduler.triggers) == 3

    names = [name for name, _ in scheduler.describe()]
    assert names == ["deadline@07:30", "deadline@18:00", "daily-creation@00:00"]

    scheduler.stop()
    scheduler.stop()
    await scheduler.wait()

    assert scheduler.state is SchedulerState.STOPPED
    scheduler.start(schedule)
    assert scheduler.state is SchedulerState.STOPPED


def test_describe_before_start_is_empty() -> None:
    assert TriggerScheduler(RecordingProcessor(), RecordingLifecycle()).describe() == []
